import os
import copy
import pytest
from types import SimpleNamespace
from httpx import AsyncClient, ASGITransport
from typing import AsyncGenerator

# Set test environment vars before importing app
os.environ["ENVIRONMENT"] = "testing"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""
os.environ["JWT_SECRET"] = "super-secret-test-key-32-chars-long"
os.environ["RTC_APP_ID"] = "test-app-id"
os.environ["RTC_APP_SECRET"] = "test-secret-key-must-be-at-least-32-bytes-long"

from main import app
from core.security import create_access_token
from fastapi_limiter import FastAPILimiter
import fakeredis.aioredis


class FakeQuery:
    """Just enough of the Supabase table query builder for the services"""

    def __init__(self, db, table_name):
        self._db = db
        self._table = table_name
        self._op = "select"
        self._payload = None
        self._filters = []
        self._order = []
        self._limit = None

    def select(self, *args, **kwargs):
        self._op = "select"
        return self

    def insert(self, record):
        self._op = "insert"
        self._payload = record
        return self

    def update(self, data):
        self._op = "update"
        self._payload = data
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matching(self):
        rows = self._db.tables.setdefault(self._table, [])
        return [row for row in rows if all(f(row) for f in self._filters)]

    def execute(self):
        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            data = [self._db.add(self._table, self._payload)]
        elif self._op == "update":
            data = []
            for row in self._matching():
                row.update(self._payload)
                data.append(copy.deepcopy(row))
        elif self._op == "delete":
            matched = self._matching()
            self._db.tables[self._table] = [row for row in rows if row not in matched]
            data = copy.deepcopy(matched)
        else:
            data = copy.deepcopy(self._matching())
            for column, desc in reversed(self._order):
                data.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if self._limit is not None:
                data = data[: self._limit]
        return SimpleNamespace(data=data)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self._next_id = {}

    def add(self, table_name, record):
        row = copy.deepcopy(record)
        if "id" not in row:
            self._next_id[table_name] = self._next_id.get(table_name, 0) + 1
            row["id"] = self._next_id[table_name]
        self.tables.setdefault(table_name, []).append(row)
        return copy.deepcopy(row)

    def seed(self, table_name, **record):
        return self.add(table_name, record)

    def rows(self, table_name):
        return self.tables.get(table_name, [])

    def table(self, table_name):
        return FakeQuery(self, table_name)


@pytest.fixture
def fake_db(mocker):
    db = FakeSupabase()
    mocker.patch("core.database.supabase", db)
    return db


@pytest.fixture
def auth_headers():
    def make(user_id, role):
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
async def rate_limiter():
    """Fake Redis behind the limiter; without it rate limiting is off"""
    redis_conn = fakeredis.aioredis.FakeRedis()
    await FastAPILimiter.init(redis_conn)
    yield redis_conn
    await redis_conn.flushall()
    FastAPILimiter.redis = None
    await redis_conn.aclose()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
