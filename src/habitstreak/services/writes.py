"""In-memory record of store writes that failed and can be retried."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

__all__ = ["WriteFailure", "WriteFailureLog"]


@dataclass
class WriteFailure:
    """A persist or delete call the store rejected."""

    habit_id: str
    operation: str
    error: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "operation": self.operation,
            "error": self.error,
            "occurred_at": self.occurred_at.isoformat(),
            "attempts": self.attempts,
        }


class WriteFailureLog:
    """Latest failure per habit id, bounded to ``max_entries`` ids."""

    def __init__(self, max_entries: int = 100) -> None:
        self._failures: Dict[str, WriteFailure] = {}
        self._lock = Lock()
        self._max_entries = max_entries

    def record(self, habit_id: str, operation: str, exc: BaseException) -> WriteFailure:
        with self._lock:
            previous = self._failures.get(habit_id)
            failure = WriteFailure(
                habit_id=habit_id,
                operation=operation,
                error=str(exc) or type(exc).__name__,
                attempts=previous.attempts + 1 if previous else 1,
            )
            self._failures[habit_id] = failure
            if len(self._failures) > self._max_entries:
                # Prune oldest failures to keep memory bounded.
                for key in sorted(self._failures, key=lambda k: self._failures[k].occurred_at)[
                    : len(self._failures) - self._max_entries
                ]:
                    self._failures.pop(key, None)
            return failure

    def get(self, habit_id: str) -> Optional[WriteFailure]:
        with self._lock:
            return self._failures.get(habit_id)

    def resolve(self, habit_id: str) -> Optional[WriteFailure]:
        with self._lock:
            return self._failures.pop(habit_id, None)

    def pending(self) -> list[WriteFailure]:
        """Return outstanding failures, oldest first."""

        with self._lock:
            return sorted(self._failures.values(), key=lambda f: f.occurred_at)

    def __contains__(self, habit_id: object) -> bool:
        with self._lock:
            return habit_id in self._failures

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)
