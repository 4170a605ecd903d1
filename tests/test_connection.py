"""
SSL negotiation against a plaintext-only server, using the real pg8000
driver and a local socket that answers the SSLRequest with 'N'.
"""
import socket
import struct
import threading

import pytest
from pg8000.native import Error

from pg_provisioner.config import Settings
from pg_provisioner.connection import connect
from pg_provisioner.schemas import ConnectionTarget

SSL_REQUEST_CODE = 80877103
PROTOCOL_3_0 = 196608


def _recv_exact(conn, size):
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            return None
        data += chunk
    return data


def _error_response():
    fields = b"SFATAL\x00C28000\x00Mno pg_hba.conf entry\x00\x00"
    return b"E" + struct.pack("!i", len(fields) + 4) + fields


def _ready_for_query():
    return b"Z" + struct.pack("!i", 5) + b"I"


class PlaintextOnlyServer:
    """Accepts one client, refuses TLS, rejects the login after the startup packet."""

    def __init__(self):
        self.codes = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.sock.settimeout(5)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        conn, _ = self.sock.accept()
        conn.settimeout(5)
        with conn:
            while True:
                header = _recv_exact(conn, 8)
                if header is None:
                    return
                length, code = struct.unpack("!ii", header)
                if length > 8 and _recv_exact(conn, length - 8) is None:
                    return
                self.codes.append(code)
                if code == SSL_REQUEST_CODE:
                    conn.sendall(b"N")
                    continue
                conn.sendall(_error_response() + _ready_for_query())
                return

    def close(self):
        self.thread.join(timeout=5)
        self.sock.close()


@pytest.fixture
def plaintext_server():
    server = PlaintextOnlyServer()
    yield server
    server.close()


def _target(port, ssl_mode):
    return ConnectionTarget(
        host="127.0.0.1",
        port=port,
        user="postgres",
        password="s3cret",
        database_name="orders",
        ssl_mode=ssl_mode,
    )


def _attempt(server, ssl_mode):
    settings = Settings(connect_timeout_seconds=5)
    with pytest.raises(Error) as excinfo:
        with connect(_target(server.port, ssl_mode), settings):
            pass
    server.close()
    return excinfo.value


def test_prefer_falls_back_to_plaintext(plaintext_server):
    error = _attempt(plaintext_server, "Prefer")
    assert plaintext_server.codes == [SSL_REQUEST_CODE, PROTOCOL_3_0]
    assert "Server refuses SSL" not in str(error)


def test_disable_never_requests_tls(plaintext_server):
    _attempt(plaintext_server, "Disable")
    assert plaintext_server.codes == [PROTOCOL_3_0]


def test_require_refuses_plaintext(plaintext_server):
    error = _attempt(plaintext_server, "Require")
    assert plaintext_server.codes == [SSL_REQUEST_CODE]
    assert "SSL" in str(error)
