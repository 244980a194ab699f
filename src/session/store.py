"""Per-sender session state: today's food log and recent conversation turns.

Everything here lives in process memory and is lost on restart. Concurrent
messages from one sender may race on the same DailyLog; the last writer wins.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import Protocol

from src.models import DailyLog, FoodEntry


class SessionStore(Protocol):
    """Key-value store of DailyLog objects keyed by sender id."""

    def get(self, sender_id: str) -> DailyLog | None: ...

    def put(self, sender_id: str, log: DailyLog) -> None: ...


class InMemorySessionStore:
    """Dict-backed SessionStore."""

    def __init__(self) -> None:
        self._logs: dict[str, DailyLog] = {}

    def get(self, sender_id: str) -> DailyLog | None:
        return self._logs.get(sender_id)

    def put(self, sender_id: str, log: DailyLog) -> None:
        self._logs[sender_id] = log

    def __len__(self) -> int:
        return len(self._logs)


class MealJournal:
    """Accumulates FoodEntry items per sender for the current calendar day."""

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._clock = clock

    def today_log(self, sender_id: str) -> DailyLog:
        """Return today's log, starting a fresh one on first use or date change."""
        today = self._clock().isoformat()
        log = self._store.get(sender_id)
        if log is None or log.date != today:
            log = DailyLog(date=today)
            self._store.put(sender_id, log)
        return log

    def record(self, sender_id: str, entries: Iterable[FoodEntry]) -> DailyLog:
        log = self.today_log(sender_id)
        updated = DailyLog(date=log.date, entries=[*log.entries, *entries])
        self._store.put(sender_id, updated)
        return updated

    def reset(self, sender_id: str) -> DailyLog:
        log = DailyLog(date=self._clock().isoformat())
        self._store.put(sender_id, log)
        return log


class ConversationHistory:
    """Bounded window of recent chat turns per sender, oldest dropped first."""

    def __init__(self, max_turns: int = 6) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._max_turns = max_turns
        self._turns: dict[str, list[dict[str, str]]] = {}

    @property
    def max_turns(self) -> int:
        return self._max_turns

    def get(self, sender_id: str) -> list[dict[str, str]]:
        return [dict(turn) for turn in self._turns.get(sender_id, [])]

    def append(self, sender_id: str, role: str, content: str) -> None:
        turns = self._turns.setdefault(sender_id, [])
        turns.append({"role": role, "content": content})
        del turns[:-self._max_turns]

    def clear(self, sender_id: str) -> None:
        self._turns.pop(sender_id, None)
