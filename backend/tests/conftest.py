"""Shared fixtures: an in-memory UserStore and limiter reset."""
import uuid
from datetime import datetime, timezone
from typing import Any

import pytest

from userdir.core.limiter import limiter
from userdir.services.user_store import DuplicateEmailError


class FakeUser:
    """Minimal user object with the ORM attribute names."""

    def __init__(self, **values: Any):
        now = datetime.now(timezone.utc)
        self.id = values.pop("id", None) or uuid.uuid4()
        self.name = values.pop("name", "Test User")
        self.email = values.pop("email", "test@example.com")
        self.ip_address = values.pop("ip_address", None)
        self.location = values.pop("location", None)
        self.active = values.pop("active", True)
        self.blocked = values.pop("blocked", False)
        self.last_login = values.pop("last_login", None)
        self.created_at = values.pop("created_at", now)
        self.updated_at = values.pop("updated_at", now)
        assert not values, f"unknown user fields: {sorted(values)}"

    def snapshot(self) -> dict[str, Any]:
        return {
            k: getattr(self, k)
            for k in ("name", "email", "ip_address", "location", "active", "blocked", "last_login")
        }


class InMemoryUserStore:
    """UserStore backed by a dict; records every call for assertions."""

    def __init__(self):
        self.users: dict[uuid.UUID, FakeUser] = {}
        self.calls: list[str] = []

    def add(self, **values: Any) -> FakeUser:
        user = FakeUser(**values)
        self.users[user.id] = user
        return user

    def by_email(self, email: str) -> FakeUser | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_email(self, email: str) -> FakeUser | None:
        self.calls.append("find_by_email")
        return self.by_email(email.strip().lower())

    async def get(self, user_id: uuid.UUID) -> FakeUser | None:
        self.calls.append("get")
        return self.users.get(user_id)

    async def insert(self, values: dict[str, Any]) -> uuid.UUID:
        self.calls.append("insert")
        if self.by_email(values["email"]) is not None:
            raise DuplicateEmailError(values["email"])
        return self.add(**values).id

    async def update_by_id(self, user_id: uuid.UUID, patch: dict[str, Any]) -> int:
        self.calls.append("update_by_id")
        user = self.users.get(user_id)
        if user is None:
            return 0
        other = self.by_email(patch.get("email", user.email))
        if other is not None and other.id != user_id:
            raise DuplicateEmailError(patch["email"])
        for field, value in patch.items():
            setattr(user, field, value)
        return 1


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield
