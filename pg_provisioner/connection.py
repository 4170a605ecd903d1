import logging
import ssl
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from pg8000.native import Connection

from .config import Settings
from .schemas import ConnectionTarget

logger = logging.getLogger(__name__)

_MASK = "********"


class InvalidSslModeError(ValueError):
    """Raised for an sslMode the service does not know how to honour."""
    pass


def build_connection_string(
    target: ConnectionTarget,
    alt_database: Optional[str] = None,
    alt_user: Optional[str] = None,
    alt_password: Optional[str] = None,
) -> str:
    return (
        f"Server={target.host};"
        f"Database={alt_database or target.database_name};"
        f"Port={target.port};"
        f"User Id={alt_user or target.user};"
        f"Password={alt_password or target.password};"
        f"Ssl Mode={target.ssl_mode};"
        "Pooling=false;"
    )


def ssl_context_for(ssl_mode: Optional[str]) -> Union[ssl.SSLContext, bool, None]:
    """
    Map an sslMode value (Disable, Allow, Prefer, Require, VerifyCA, VerifyFull)
    to the ssl_context argument pg8000 expects.

    False never requests TLS. None requests TLS and carries on in plaintext
    when the server refuses it. An SSLContext makes TLS mandatory.
    """
    normalized = (ssl_mode or "").strip().lower().replace("-", "").replace("_", "")
    if normalized == "disable":
        return False
    if normalized in {"allow", "prefer", ""}:
        return None
    if normalized == "require":
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context
    if normalized == "verifyca":
        context = ssl.create_default_context()
        context.check_hostname = False
        return context
    if normalized == "verifyfull":
        return ssl.create_default_context()
    raise InvalidSslModeError(f"Unknown sslMode {ssl_mode!r}")


@contextmanager
def connect(
    target: ConnectionTarget,
    settings: Settings,
    alt_database: Optional[str] = None,
    alt_user: Optional[str] = None,
    alt_password: Optional[str] = None,
) -> Iterator[Connection]:
    """Open one unpooled connection and close it on every exit path."""
    logger.info(
        "Opening connection %s",
        build_connection_string(target, alt_database, alt_user, alt_password=_MASK),
    )
    conn = Connection(
        user=alt_user or target.user,
        password=alt_password or target.password,
        host=target.host,
        port=target.port,
        database=alt_database or target.database_name,
        ssl_context=ssl_context_for(target.ssl_mode),
        timeout=settings.connect_timeout_seconds,
        application_name=settings.application_name,
    )
    try:
        yield conn
    finally:
        conn.close()


def role_exists(conn: Connection, name: str) -> bool:
    return bool(conn.run("SELECT 1 FROM pg_catalog.pg_roles WHERE rolname = :name", name=name))


def database_exists(target: ConnectionTarget, settings: Settings) -> bool:
    with connect(target, settings, alt_database=settings.maintenance_database) as conn:
        rows = conn.run(
            "SELECT 1 FROM pg_catalog.pg_database WHERE datname = :name",
            name=target.database_name,
        )
    exists = bool(rows)
    logger.debug("Database %s exists=%s", target.database_name, exists)
    return exists
