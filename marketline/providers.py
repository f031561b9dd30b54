from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4


class Clock(Protocol):
    def now(self) -> datetime: ...


class IdProvider(Protocol):
    def new_id(self) -> str: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UUIDProvider:
    def new_id(self) -> str:
        return uuid4().hex


class SequentialIdProvider:
    """Predictable ids (``<prefix>-1``, ``<prefix>-2``...), handy for fixtures."""

    def __init__(self, prefix: str = "id") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"
