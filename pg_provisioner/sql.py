"""
Names and DDL/DCL statements used by the provisioning sequence.

Identifiers (database, schema, role and user names) cannot be bound as query
parameters, so each one is checked against an allowlist and always emitted
double-quoted. Passwords are emitted as escaped SQL literals.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from pg8000.native import literal

from .config import Settings

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$-]*$")
_MAX_IDENTIFIER_BYTES = 63  # NAMEDATALEN - 1

ROLE_ATTRIBUTES = "NOLOGIN INHERIT CREATEDB CREATEROLE"
USER_ATTRIBUTES = "LOGIN INHERIT CREATEDB CREATEROLE"
USER_LIMITS = "NOREPLICATION CONNECTION LIMIT -1"


class InvalidIdentifierError(ValueError):
    """Raised when a name cannot safely be used as a PostgreSQL identifier."""
    pass


def quote_identifier(name: str, kind: str = "identifier") -> str:
    if not name or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(
            f"Invalid {kind} name {name!r}: use letters, digits, '_', '$' or '-', "
            "starting with a letter or '_'"
        )
    if len(name.encode("utf-8")) > _MAX_IDENTIFIER_BYTES:
        raise InvalidIdentifierError(
            f"Invalid {kind} name {name!r}: longer than {_MAX_IDENTIFIER_BYTES} bytes"
        )
    return f'"{name}"'


def is_azure(platform: Optional[str], settings: Settings) -> bool:
    if not (platform and platform.strip()):
        return False
    return platform.strip().lower().startswith(settings.azure_platform_prefix.lower())


def strip_server_suffix(user: str) -> str:
    """Azure single-server logins look like ``name@server``; roles are just ``name``."""
    return user.split("@", 1)[0]


def role_name_for(database_name: str) -> str:
    if any(c.isupper() for c in database_name):
        return f"{database_name}_Role"
    return f"{database_name}_role"


def login_user_for_connection(database_name: str, host: str, platform: Optional[str], settings: Settings) -> str:
    """
    Name the login user authenticates with. Azure single server (platform
    exactly ``Azure``) wants ``user@server``; other Azure flavours take the
    plain name.
    """
    if (platform or "").strip().lower() == settings.azure_platform_prefix.lower():
        idx = host.find(settings.azure_host_marker)
        if idx > 0:
            return f"{database_name}@{host[:idx]}"
    return database_name


@dataclass(frozen=True)
class ProvisioningNames:
    database: str
    role: str
    login_user: str
    connect_user: str
    admin_role: str
    azure: bool


def derive_names(
    database_name: str,
    host: str,
    admin_user: str,
    platform: Optional[str],
    settings: Settings,
) -> ProvisioningNames:
    names = ProvisioningNames(
        database=database_name,
        role=role_name_for(database_name),
        login_user=database_name,
        connect_user=login_user_for_connection(database_name, host, platform, settings),
        admin_role=strip_server_suffix(admin_user),
        azure=is_azure(platform, settings),
    )
    # Fail before any connection is opened
    quote_identifier(names.database, "database")
    quote_identifier(names.role, "role")
    quote_identifier(names.admin_role, "administrator role")
    quote_identifier(settings.azure_admin_role, "platform admin role")
    return names


# -- server phase -----------------------------------------------------------

def create_role(names: ProvisioningNames, settings: Settings) -> str:
    if names.azure:
        membership = f"IN ROLE {quote_identifier(settings.azure_admin_role)}"
    else:
        membership = "SUPERUSER"
    return f"CREATE ROLE {quote_identifier(names.role)} WITH {ROLE_ATTRIBUTES} {membership}"


def alter_role(names: ProvisioningNames) -> str:
    attributes = ROLE_ATTRIBUTES if names.azure else f"{ROLE_ATTRIBUTES} SUPERUSER"
    return f"ALTER ROLE {quote_identifier(names.role)} WITH {attributes}"


def grant_role(role: str, grantee: str) -> str:
    return f"GRANT {quote_identifier(role)} TO {quote_identifier(grantee)}"


def upsert_user(names: ProvisioningNames, password: str, exists: bool) -> str:
    verb = "ALTER" if exists else "CREATE"
    attributes = USER_ATTRIBUTES if names.azure else f"{USER_ATTRIBUTES} SUPERUSER"
    return (
        f"{verb} USER {quote_identifier(names.login_user)} "
        f"WITH {attributes} {USER_LIMITS} PASSWORD {literal(password)}"
    )


def create_database(names: ProvisioningNames, settings: Settings) -> str:
    return (
        f"CREATE DATABASE {quote_identifier(names.database)} "
        f"TEMPLATE {quote_identifier(settings.database_template)} "
        f"OWNER {quote_identifier(names.role)}"
    )


# -- database phase ---------------------------------------------------------

def schema_statements(schema: str, role: str) -> List[str]:
    quoted = quote_identifier(schema, "schema")
    return [
        f"CREATE SCHEMA IF NOT EXISTS {quoted}",
        f"GRANT ALL PRIVILEGES ON SCHEMA {quoted} TO {quote_identifier(role)}",
    ]


def ownership_statements(names: ProvisioningNames, revoke_public_access: bool) -> List[str]:
    db = quote_identifier(names.database)
    role = quote_identifier(names.role)
    statements = [
        f"ALTER DATABASE {db} OWNER TO {role}",
        f"GRANT ALL PRIVILEGES ON DATABASE {db} TO {role}",
        f"GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA public TO {role}",
        f"GRANT ALL PRIVILEGES ON ALL SEQUENCES IN SCHEMA public TO {role}",
        f"GRANT ALL PRIVILEGES ON SCHEMA public TO {role}",
        f"REASSIGN OWNED BY {quote_identifier(names.login_user)} TO {role}",
    ]
    if revoke_public_access:
        statements.append(f"REVOKE ALL ON DATABASE {db} FROM PUBLIC CASCADE")
    return statements
