"""Pytest configuration and fixtures for circulation engine tests."""
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from manalib import LibrarySystem, MemoryStore, Settings
from manalib.store import STORAGE_KEYS

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for the wall clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def free_copy(copy_id: Any) -> dict[str, Any]:
    return {"id": copy_id, "borrowedBy": None, "borrowDate": None, "dueDate": None}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_data() -> dict[str, Any]:
    """Two libraries, a handful of users and two books, all copies free."""
    return {
        STORAGE_KEYS["libraries"]: [
            {"id": "lib1", "name": "Community Library", "owner": "p1"},
            {"id": "lib2", "name": "Science Fiction Collection", "owner": "p2"},
        ],
        STORAGE_KEYS["users"]: [
            {"id": "u1", "name": "Ann", "email": "ann@example.com", "role": "user"},
            {"id": "u2", "name": "Ben", "email": "ben@example.com", "role": "user"},
            {"id": "u3", "name": "Cat", "email": "cat@example.com", "role": "user"},
            {"id": "p1", "name": "Pat", "email": "pat@example.com", "role": "partner"},
        ],
        STORAGE_KEYS["books"]: [
            {
                "id": "b1",
                "libraryId": "lib1",
                "title": "Atomic Habits",
                "author": "James Clear",
                "isbn": "9781847941831",
                "copies": [free_copy("c1"), free_copy("c2")],
                "reservedBy": [],
            },
            {
                "id": "b2",
                "libraryId": "lib2",
                "title": "Dune",
                "author": "Frank Herbert",
                "isbn": "9780441172719",
                "copies": [free_copy(1)],
                "reservedBy": [],
            },
        ],
        STORAGE_KEYS["transactions"]: [],
    }


@pytest.fixture
def store(store_data: dict[str, Any]) -> MemoryStore:
    return MemoryStore(store_data)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        data_dir=str(tmp_path / "data"),
        seed_on_start=False,
        loan_period_days=14,
        extension_days=14,
        reservation_fee=1.0,
        fine_policy_name=None,
        fine_rate_per_day=0.5,
        max_fine=None,
        log_level="DEBUG",
    )


@pytest.fixture
def system(store: MemoryStore, test_settings: Settings, clock: FakeClock) -> LibrarySystem:
    return LibrarySystem(store=store, settings=test_settings, clock=clock)


@pytest.fixture
def circulation(system: LibrarySystem):
    return system.circulation
