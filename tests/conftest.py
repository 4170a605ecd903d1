"""
Pytest fixtures: an in-memory stand-in for pg8000.native.Connection so the
HTTP -> service -> driver path runs without a PostgreSQL server.
"""
import re

import pytest
from fastapi.testclient import TestClient
from pg8000.native import DatabaseError

from pg_provisioner import connection as connection_module
from pg_provisioner.main import create_app

_QUOTED_NAME = re.compile(r'"([^"]+)"')


class FakeServer:
    def __init__(self):
        self.databases = {"postgres", "template0", "template1"}
        self.roles = {"postgres"}
        self.connections = []
        # sql text -> (column names, rows) or an exception instance
        self.results = {}
        self.fail_on = None

    @property
    def statements(self):
        return [sql for conn in self.connections for sql, _ in conn.executed]

    def ddl(self):
        """Statements other than catalog lookups."""
        return [s for s in self.statements if not s.startswith("SELECT 1 FROM pg_catalog")]


class FakeConnection:
    def __init__(self, server, **kwargs):
        self.server = server
        self.kwargs = kwargs
        self.executed = []
        self.columns = None
        self.closed = False
        server.connections.append(self)

    def run(self, sql, **params):
        self.executed.append((sql, params))
        self.columns = None
        server = self.server

        if server.fail_on and server.fail_on in sql:
            raise DatabaseError({"S": "ERROR", "C": "42501", "M": f"permission denied: {sql}"})

        if sql.startswith("SELECT 1 FROM pg_catalog.pg_database"):
            return [[1]] if params["name"] in server.databases else []
        if sql.startswith("SELECT 1 FROM pg_catalog.pg_roles"):
            return [[1]] if params["name"] in server.roles else []

        if sql in server.results:
            result = server.results[sql]
            if isinstance(result, Exception):
                raise result
            column_names, rows = result
            self.columns = [{"name": name} for name in column_names]
            return rows

        name = _QUOTED_NAME.search(sql)
        if sql.startswith(("CREATE ROLE", "CREATE USER")):
            server.roles.add(name.group(1))
        elif sql.startswith("CREATE DATABASE"):
            server.databases.add(name.group(1))
        return None

    def close(self):
        self.closed = True


@pytest.fixture
def server(monkeypatch):
    fake = FakeServer()
    monkeypatch.setattr(
        connection_module,
        "Connection",
        lambda **kwargs: FakeConnection(fake, **kwargs),
    )
    return fake


@pytest.fixture
def client(server):
    return TestClient(create_app())


@pytest.fixture
def target():
    return {
        "host": "db.example.com",
        "port": 5432,
        "user": "postgres",
        "password": "s3cret",
        "databaseName": "orders",
    }
