import logging
from typing import Dict, List, Optional
from urllib.parse import unquote_plus

from pg8000.native import Connection, Error

from . import sql
from .config import Settings
from .connection import connect, database_exists, role_exists, ssl_context_for
from .schemas import ConnectionTarget, ProvisionRequest, QueryRequest

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
    ("Host", "host"),
    ("User", "user"),
    ("Password", "password"),
    ("DatabaseName", "database_name"),
)


class DatabaseNotFoundError(Exception):
    """Raised when the target database of a query does not exist."""
    pass


class QueryExecutionError(Exception):
    """Raised when a read query fails; surfaced to callers as a bad request."""
    pass


def validate_connection_target(target: ConnectionTarget) -> str:
    """Return a message naming every missing required field, or '' when complete."""
    message = ""
    for label, attr in _REQUIRED_FIELDS:
        value = getattr(target, attr)
        if not (value and value.strip()):
            message += f"{label} is required. "
    return message.strip()


def _url_decode(text: str, enabled: bool) -> str:
    return unquote_plus(text) if enabled else text


def _execute(conn: Connection, statement: str, log_as: Optional[str] = None) -> None:
    logger.debug("Executing: %s", log_as or statement)
    conn.run(statement)


# -- provisioning -----------------------------------------------------------

def provision_database(request: ProvisionRequest, settings: Settings) -> bool:
    """
    Ensure the database, its owning role and its login user exist with the
    expected privileges.

    Runs in two phases with different credentials:

    1. server phase, as the caller's administrator on the maintenance
       database: role, login user, memberships and CREATE DATABASE;
    2. database phase, as the new login user on the target database:
       schemas, ownership, grants, public revoke and additional SQL.

    Statements are autocommitted one by one; a failure leaves earlier ones
    applied. Returns False when the database exists and modify_existing is
    off, in which case nothing is changed.
    """
    names = sql.derive_names(
        request.database_name,
        request.host,
        request.user,
        request.platform,
        settings,
    )
    for schema in request.schemas or []:
        sql.quote_identifier(schema, "schema")
    ssl_context_for(request.ssl_mode)

    exists = database_exists(request, settings)
    if exists and not request.modify_existing:
        logger.info("Database %s already exists; modifyExisting is off, skipping", names.database)
        return False

    password = request.new_user_password or request.password

    logger.info("Provisioning %s: server phase (role=%s, user=%s)", names.database, names.role, names.login_user)
    with connect(request, settings, alt_database=settings.maintenance_database) as conn:
        _apply_server_phase(conn, names, password, create_db=not exists, settings=settings)

    logger.info("Provisioning %s: database phase as %s", names.database, names.connect_user)
    with connect(request, settings, alt_user=names.connect_user, alt_password=password) as conn:
        _apply_database_phase(conn, names, request)

    logger.info("Provisioned database %s", names.database)
    return True


def _apply_server_phase(
    conn: Connection,
    names: sql.ProvisioningNames,
    password: str,
    create_db: bool,
    settings: Settings,
) -> None:
    if role_exists(conn, names.role):
        _execute(conn, sql.alter_role(names))
        if names.azure:
            _execute(conn, sql.grant_role(settings.azure_admin_role, names.role))
    else:
        _execute(conn, sql.create_role(names, settings))

    # Lets the administrator hand objects over to the role
    _execute(conn, sql.grant_role(names.role, names.admin_role))

    user_exists = role_exists(conn, names.login_user)
    _execute(
        conn,
        sql.upsert_user(names, password, user_exists),
        log_as=f"{'ALTER' if user_exists else 'CREATE'} USER {names.login_user} (password hidden)",
    )
    _execute(conn, sql.grant_role(names.role, names.login_user))
    if names.azure:
        _execute(conn, sql.grant_role(settings.azure_admin_role, names.login_user))

    if create_db:
        _execute(conn, sql.create_database(names, settings))


def _apply_database_phase(conn: Connection, names: sql.ProvisioningNames, request: ProvisionRequest) -> None:
    for schema in request.schemas or []:
        for statement in sql.schema_statements(schema, names.role):
            _execute(conn, statement)

    for statement in sql.ownership_statements(names, request.revoke_public_access):
        _execute(conn, statement)

    for command in request.additional_sql_commands or []:
        _execute(conn, _url_decode(command, request.url_decode_additional_sql_commands))


# -- ad-hoc queries ---------------------------------------------------------

def _require_database(request: QueryRequest, settings: Settings) -> None:
    ssl_context_for(request.ssl_mode)
    if not database_exists(request, settings):
        raise DatabaseNotFoundError(f"Database {request.database_name} does not exist")


def _stringify(value: object) -> str:
    return "" if value is None else str(value)


def run_read_query(request: QueryRequest, settings: Settings) -> List[Dict[str, str]]:
    _require_database(request, settings)
    query = _url_decode(request.query_string or "", request.url_decode_query_string)

    with connect(request, settings) as conn:
        try:
            rows = conn.run(query)
        except Error as exc:
            logger.warning("Read query failed on %s: %s", request.database_name, exc)
            raise QueryExecutionError(error_message(exc)) from exc
        column_names = [column["name"] for column in conn.columns or []]

    if len(set(column_names)) != len(column_names):
        raise QueryExecutionError(f"Duplicate column names in result: {column_names}")

    results: List[Dict[str, str]] = []
    for row in rows or []:
        results.append({name: _stringify(value) for name, value in zip(column_names, row)})
    logger.info("Read query on %s returned %s rows", request.database_name, len(results))
    return results


def run_write_query(request: QueryRequest, settings: Settings) -> None:
    _require_database(request, settings)
    query = _url_decode(request.query_string or "", request.url_decode_query_string)

    with connect(request, settings) as conn:
        conn.run(query)
    logger.info("Write query executed on %s", request.database_name)


def error_message(exc: Exception) -> str:
    """pg8000 server errors carry a dict of response fields; 'M' is the message."""
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("M") or str(exc)
    return str(exc)
