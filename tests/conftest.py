from __future__ import annotations

import asyncio
from typing import Any

import pytest

from habit_flywheel.db import Database
from habit_flywheel.db_models import BulkLoad
from habit_flywheel.errors import StoreError, TransientStoreError
from habit_flywheel.sqlite_store import SqliteStore


class FakeStore:
    """Serves a fixed ``BulkLoad`` and counts reads."""

    def __init__(self, load: BulkLoad | None = None) -> None:
        self.load = load or BulkLoad()
        self.loads = 0
        self.load_times: list[float] = []
        self.fail: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def bulk_load(self) -> BulkLoad:
        self.loads += 1
        self.load_times.append(asyncio.get_running_loop().time())
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail is not None:
            raise self.fail
        return self.load

    async def aclose(self) -> None:
        return None


class RecordingStore:
    """Wraps a real store and records every adapter call by name."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.calls: list[str] = []
        self.load_times: list[float] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.fail: StoreError | None = None

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)

        async def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            if name == "bulk_load":
                self.load_times.append(asyncio.get_running_loop().time())
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            if self.fail is not None and name != "aclose":
                raise self.fail
            return await target(*args, **kwargs)

        return call


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def db(tmp_path) -> Database:
    return Database(tmp_path / "habits.db")


@pytest.fixture
def recording_store(db: Database) -> RecordingStore:
    return RecordingStore(SqliteStore(db, "u1"))


@pytest.fixture
def transient_error() -> TransientStoreError:
    return TransientStoreError("network down")
