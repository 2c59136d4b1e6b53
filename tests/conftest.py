"""
In-memory stand-in for the Supabase client: chainable table queries and auth
with subscribe/unsubscribe, plus error injection.
"""

from __future__ import annotations

import copy
import itertools
import re
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError
from supabase import AuthError

_BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class FakeAuthError(AuthError):
    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message


def ilike(pattern: str, value: str | None) -> bool:
    """Postgres ILIKE: % any run, _ one char, backslash escapes the next char."""
    regex = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            regex.append(re.escape(next(chars, "")))
        elif ch == "%":
            regex.append(".*")
        elif ch == "_":
            regex.append(".")
        else:
            regex.append(re.escape(ch))
    return re.fullmatch("".join(regex), value or "", re.IGNORECASE | re.DOTALL) is not None


class FakeQuery:
    def __init__(self, client: "FakeClient", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.payload = None
        self.count = None
        self.filters: list[tuple] = []
        self.or_filter: str | None = None
        self.order_by: tuple | None = None
        self.row_range: tuple | None = None
        self.row_limit: int | None = None

    def select(self, *columns, count=None):
        self.op = "select"
        self.count = count
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def or_(self, expr):
        self.or_filter = expr
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.row_range = (start, end)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row: dict) -> bool:
        if any(row.get(col) != value for col, value in self.filters):
            return False
        if not self.or_filter:
            return True
        for clause in self.or_filter.split(","):
            column, pattern = clause.split(".ilike.", 1)
            if ilike(pattern, row.get(column)):
                return True
        return False

    def execute(self):
        self.client.calls.append(self)
        if self.client.fail_with is not None:
            raise self.client.fail_with

        rows = self.client.tables.setdefault(self.table, [])
        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.client.add_row(self.table, item) for item in items]
            return SimpleNamespace(data=copy.deepcopy(created), count=None)

        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)
        if self.op == "delete":
            self.client.tables[self.table] = [r for r in rows if r not in matched]
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)

        if self.order_by:
            column, desc = self.order_by
            matched.sort(key=lambda r: r.get(column) or "", reverse=desc)
        total = len(matched)
        if self.row_range:
            start, end = self.row_range
            if self.client.strict_range and start > 0 and start >= total:
                # what PostgREST answers (416) for an offset past the last row
                raise APIError({
                    "message": "Requested range not satisfiable",
                    "code": "PGRST103",
                    "details": f"An offset of {start} was requested, but there are only {total} rows.",
                    "hint": None,
                })
            matched = matched[start:end + 1]
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        return SimpleNamespace(
            data=copy.deepcopy(matched),
            count=total if self.count == "exact" else None,
        )


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback):
        self.auth = auth
        self.callback = callback

    def unsubscribe(self):
        if self in self.auth.listeners:
            self.auth.listeners.remove(self)


class FakeAuth:
    def __init__(self):
        self.session = None
        self.listeners: list[FakeSubscription] = []
        self.users = {"irmao@example.com": "segredo123"}
        self.confirm_email = False
        self.fail_get_session = False

    def _emit(self, event: str):
        for sub in list(self.listeners):
            sub.callback(event, self.session)

    def _make_session(self, email: str):
        user = SimpleNamespace(id=f"user-{email}", email=email)
        return SimpleNamespace(user=user, access_token="token")

    def get_session(self):
        if self.fail_get_session:
            raise FakeAuthError("Invalid Refresh Token")
        return self.session

    def on_auth_state_change(self, callback):
        sub = FakeSubscription(self, callback)
        self.listeners.append(sub)
        return sub

    def sign_in_with_password(self, credentials: dict):
        email, password = credentials["email"], credentials["password"]
        if self.users.get(email) != password:
            raise FakeAuthError("Invalid login credentials")
        self.session = self._make_session(email)
        self._emit("SIGNED_IN")
        return SimpleNamespace(session=self.session, user=self.session.user)

    def sign_up(self, credentials: dict):
        email, password = credentials["email"], credentials["password"]
        if email in self.users:
            raise FakeAuthError("User already registered")
        self.users[email] = password
        if self.confirm_email:
            return SimpleNamespace(session=None, user=SimpleNamespace(id=f"user-{email}", email=email))
        self.session = self._make_session(email)
        self._emit("SIGNED_IN")
        return SimpleNamespace(session=self.session, user=self.session.user)

    def sign_out(self):
        self.session = None
        self._emit("SIGNED_OUT")


class FakeClient:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {"persons": [], "purchases": []}
        self.calls: list[FakeQuery] = []
        self.fail_with: Exception | None = None
        self.strict_range = True
        self.auth = FakeAuth()
        self._ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add_row(self, table: str, values: dict) -> dict:
        n = next(self._ids)
        row = {
            "id": f"{table}-{n}",
            "created_at": (_BASE_TIME + timedelta(minutes=n)).isoformat(),
            **values,
        }
        self.tables.setdefault(table, []).append(row)
        return row


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()
