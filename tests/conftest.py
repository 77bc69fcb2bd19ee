"""Shared fixtures: an in-memory key-value store and a fixed clock."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from chillcast.services.timers import TimerService


class InMemoryStore:
    """Dict-backed stand-in for ``PostgresKeyValueStore``."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> dict[str, Any] | None:
        value = self.data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        self.data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    def keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance_minutes(self, minutes: float) -> None:
        self.now_ms += int(minutes * 60_000)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer_service(store: InMemoryStore, clock: FakeClock) -> TimerService:
    return TimerService(store, clock=clock)
