"""
Shared fixtures: an in-memory stand-in for the Supabase client and a Flask
test client wired to it.

The fake covers the query builder calls the app makes (select / insert /
update / delete, eq, order, limit, the profiles(full_name) embed) plus the
auth calls (password sign-in, sign-up, admin create_user). Set
``store.fail(table, message)`` to make a query on that table fail.
"""
import itertools
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import urlparse

import pytest
from supabase import AuthError, PostgrestAPIError

from app import create_app


class FakeAuthError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


def api_error(message):
    return PostgrestAPIError({"message": message, "code": "500", "hint": None, "details": None})


class FakeStore:
    def __init__(self):
        self.tables = {"profiles": [], "products": []}
        self.users = {}
        self.errors = {}
        self.admin_calls = []
        self.expires_at = time.time() + 3600
        self.confirm_email = False
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def fail(self, table, message, skip=0):
        # the query after ``skip`` successful ones on ``table`` raises
        self.errors[table] = [skip, api_error(message)]

    def take_error(self, table):
        pending = self.errors.get(table)
        if pending is None:
            return None
        if pending[0] > 0:
            pending[0] -= 1
            return None
        del self.errors[table]
        return pending[1]

    def tick(self):
        self._clock += timedelta(minutes=1)
        return self._clock.isoformat()

    def add_user(self, email, password, role="farmer", full_name=""):
        user = {"id": f"user-{next(self._ids)}", "email": email, "password": password}
        self.users[email] = user
        # mirrors the on_auth_user_created trigger
        self.tables["profiles"].append({
            "id": user["id"],
            "full_name": full_name,
            "role": role,
            "created_at": self.tick(),
        })
        return user

    def add_product(self, farmer_id, name, category, production_date="2024-05-01"):
        stamp = self.tick()
        row = {
            "id": next(self._ids),
            "name": name,
            "category": category,
            "production_date": production_date,
            "farmer_id": farmer_id,
            "created_at": stamp,
            "updated_at": stamp,
        }
        self.tables["products"].append(row)
        return row

    def find(self, table, row_id):
        return next((r for r in self.tables[table] if str(r["id"]) == str(row_id)), None)


class FakeQuery:
    def __init__(self, store, table):
        self.store = store
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.ordering = None
        self.row_limit = None

    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, size):
        self.row_limit = size
        return self

    def _matches(self, row):
        return all(str(row.get(column)) == str(value) for column, value in self.filters)

    def execute(self):
        error = self.store.take_error(self.table)
        if error is not None:
            raise error

        rows = self.store.tables[self.table]

        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for payload in payloads:
                stamp = self.store.tick()
                row = {"id": next(self.store._ids), "created_at": stamp, "updated_at": stamp, **payload}
                rows.append(row)
                created.append(dict(row))
            return SimpleNamespace(data=created)

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.op == "delete":
            self.store.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=[dict(r) for r in matched])

        result = [dict(r) for r in matched]
        if "profiles(full_name)" in self.columns:
            for row in result:
                owner = self.store.find("profiles", row["farmer_id"])
                row["profiles"] = {"full_name": owner["full_name"]} if owner else None
        if self.ordering:
            column, desc = self.ordering
            result.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            result = result[:self.row_limit]
        return SimpleNamespace(data=result)


class FakeAdmin:
    def __init__(self, store):
        self.store = store

    def create_user(self, attributes):
        self.store.admin_calls.append(attributes)
        if attributes["email"] in self.store.users:
            raise FakeAuthError("A user with this email address has already been registered")
        metadata = attributes.get("user_metadata", {})
        user = self.store.add_user(
            attributes["email"], attributes["password"],
            role=metadata.get("role", "farmer"), full_name=metadata.get("full_name", ""),
        )
        return SimpleNamespace(user=SimpleNamespace(id=user["id"], email=user["email"]))


class FakeAuth:
    def __init__(self, store):
        self.store = store
        self.admin = FakeAdmin(store)

    def _session(self, user):
        return SimpleNamespace(access_token=f"token-{user['id']}", expires_at=self.store.expires_at)

    def sign_in_with_password(self, credentials):
        user = self.store.users.get(credentials["email"])
        if user is None or user["password"] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        return SimpleNamespace(
            user=SimpleNamespace(id=user["id"], email=user["email"]),
            session=self._session(user),
        )

    def sign_up(self, credentials):
        if credentials["email"] in self.store.users:
            raise FakeAuthError("User already registered")
        data = credentials.get("options", {}).get("data", {})
        user = self.store.add_user(
            credentials["email"], credentials["password"],
            role=data.get("role", "farmer"), full_name=data.get("full_name", ""),
        )
        return SimpleNamespace(
            user=SimpleNamespace(id=user["id"], email=user["email"]),
            session=None if self.store.confirm_email else self._session(user),
        )


class FakeClient:
    def __init__(self, store):
        self.store = store
        self.auth = FakeAuth(store)

    def table(self, name):
        return FakeQuery(self.store, name)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def app(store):
    app = create_app(
        {
            "TESTING": True,
            "WTF_CSRF_ENABLED": False,      # csrf has its own tests in test_csrf.py
            "SECRET_KEY": "test-secret",
            "SUPABASE_URL": "http://supabase.test",
        },
        service_client=FakeClient(store),
        auth_client_factory=lambda: FakeClient(store),
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def farmer(store):
    return store.add_user("fiona@farm.test", "fiona-pass", role="farmer", full_name="Fiona Farmer")


@pytest.fixture
def other_farmer(store):
    return store.add_user("oscar@farm.test", "oscar-pass", role="farmer", full_name="Oscar Orchard")


@pytest.fixture
def employee(store):
    return store.add_user("erin@office.test", "erin-pass", role="employee", full_name="Erin Employee")


def login(client, user, follow_redirects=False):
    return client.post(
        "/login",
        data={"email": user["email"], "password": user["password"]},
        follow_redirects=follow_redirects,
    )


def location(response):
    return urlparse(response.headers["Location"]).path
