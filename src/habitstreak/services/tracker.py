"""Habit tracker service: load/refresh pass, single-writer mutations, snapshot stream."""

from __future__ import annotations

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, tzinfo
from threading import Lock
from typing import Callable, Iterator, Optional
from weakref import WeakValueDictionary

from ..domain.repositories.habit import HabitRepository
from ..models.habit import Habit
from . import streaks
from .writes import WriteFailureLog

logger = logging.getLogger("habitstreak.tracker")

__all__ = ["HabitNotFoundError", "HabitSubscription", "HabitTracker"]

_CLOSED = object()


class HabitNotFoundError(LookupError):
    """Raised when a habit id is not present in the store."""

    def __init__(self, habit_id: str) -> None:
        super().__init__(f"Habit {habit_id!r} not found")
        self.habit_id = habit_id


class HabitSubscription:
    """Lazy, unbounded iterator of full habit-list snapshots.

    The first item is the snapshot at subscription time; each later item is
    the list after a change. Iteration ends once ``close()`` is called.
    """

    def __init__(self, tracker: "HabitTracker") -> None:
        self._tracker = tracker
        self._queue: "queue.Queue[object]" = queue.Queue()
        self.closed = False

    def _push(self, snapshot: list[Habit]) -> None:
        if not self.closed:
            self._queue.put(list(snapshot))

    def get(self, timeout: Optional[float] = None) -> list[Habit]:
        """Block for the next snapshot; raises ``queue.Empty`` on timeout."""

        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            raise StopIteration
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[list[Habit]]:
        return self

    def __next__(self) -> list[Habit]:
        return self.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._tracker._unsubscribe(self)
        self._queue.put(_CLOSED)

    def __enter__(self) -> "HabitSubscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class HabitTracker:
    """Coordinates the streak engine with a habit repository.

    All mutations of one habit id are serialized on a per-id lock. Reads for
    different ids fan out on a bounded thread pool.
    """

    def __init__(
        self,
        repo: HabitRepository,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_workers: int = 8,
        failures: Optional[WriteFailureLog] = None,
    ) -> None:
        self.repo = repo
        self.tz = tz
        self.failures = failures or WriteFailureLog()
        self._clock = clock or self._system_clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="habitstreak")

        # Entries vanish once no thread holds or waits on the lock.
        self._locks: "WeakValueDictionary[str, Lock]" = WeakValueDictionary()
        self._locks_guard = Lock()
        # Last in-memory value per id. Replaced by every mutation, so a
        # background correction only lands while its value is still current.
        self._latest: dict[str, Habit] = {}

        self._pending: set[Future] = set()
        self._pending_guard = Lock()

        self._subscribers: list[HabitSubscription] = []
        self._subscribers_guard = Lock()
        self._publish_lock = Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _system_clock(self) -> datetime:
        if self.tz is not None:
            return datetime.now(self.tz)
        return datetime.now().astimezone()

    def now(self) -> datetime:
        """Current time from the configured clock."""

        return self._clock()

    def _lock_for(self, habit_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(habit_id)
            if lock is None:
                lock = self._locks[habit_id] = Lock()
            return lock

    def _persist(self, habit: Habit, operation: str) -> bool:
        try:
            self.repo.persist(habit)
        except Exception as exc:
            failure = self.failures.record(habit.id, operation, exc)
            logger.error(
                "Failed to persist habit %s during %s",
                habit.id,
                operation,
                exc_info=True,
                extra=failure.to_dict(),
            )
            return False
        self.failures.resolve(habit.id)
        return True

    def _remove(self, habit_id: str) -> bool:
        self._latest.pop(habit_id, None)
        try:
            self.repo.delete(habit_id)
        except Exception as exc:
            failure = self.failures.record(habit_id, "delete", exc)
            logger.error(
                "Failed to delete habit %s",
                habit_id,
                exc_info=True,
                extra=failure.to_dict(),
            )
            return False
        self.failures.resolve(habit_id)
        return True

    def _delete_pending(self, habit_id: str) -> bool:
        failure = self.failures.get(habit_id)
        return failure is not None and failure.operation == "delete"

    def _current(self, habit_id: str) -> Optional[Habit]:
        # A habit whose delete is still pending is gone as far as callers
        # are concerned; an unsaved in-memory value wins over the stored one.
        if self._delete_pending(habit_id):
            return None
        if habit_id in self.failures and habit_id in self._latest:
            return self._latest[habit_id]
        return self.repo.get_by_id(habit_id)

    def _read(self, habit_id: str, now: datetime) -> Habit:
        """Return the refreshed current value of a habit. Caller holds its lock."""

        stored = self._current(habit_id)
        if stored is None:
            raise HabitNotFoundError(habit_id)
        habit, _ = streaks.refresh_habit(stored, now, self.tz)
        return habit

    # ------------------------------------------------------------------
    # Load / refresh pass
    # ------------------------------------------------------------------
    def load_habits(self, now: Optional[datetime] = None) -> list[Habit]:
        """Load every habit, correct stale derived fields, and return the list.

        Corrections are written in the background; the corrected values are
        returned without waiting. Records that fail to load are skipped.
        """

        now = now or self.now()
        try:
            ids = self.repo.list_ids()
        except Exception:
            logger.error("Could not list habits; treating the store as empty", exc_info=True)
            return []

        futures = [self._executor.submit(self._load_one, habit_id, now) for habit_id in ids]
        habits = [habit for habit in (f.result() for f in futures) if habit is not None]
        logger.debug("Loaded %d of %d habits", len(habits), len(ids))
        return habits

    def _load_one(self, habit_id: str, now: datetime) -> Optional[Habit]:
        with self._lock_for(habit_id):
            try:
                stored = self._current(habit_id)
            except Exception:
                logger.error("Failed to read habit %s; skipping", habit_id, exc_info=True)
                return None
            if stored is None:
                return None

            habit, changed = streaks.refresh_habit(stored, now, self.tz)
            self._latest[habit_id] = habit
            if changed:
                logger.info(
                    "Correcting habit %s (streak %d -> %d, completed today %s -> %s)",
                    habit_id,
                    stored.streak,
                    habit.streak,
                    stored.is_completed_today,
                    habit.is_completed_today,
                )
                self._submit_correction(habit)
            return habit

    def _submit_correction(self, habit: Habit) -> None:
        future = self._executor.submit(self._write_correction, habit)
        with self._pending_guard:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future: Future) -> None:
        with self._pending_guard:
            self._pending.discard(future)

    def _write_correction(self, habit: Habit) -> None:
        with self._lock_for(habit.id):
            if self._latest.get(habit.id) is not habit:
                logger.debug("Dropping superseded correction for habit %s", habit.id)
                return
            self._persist(habit, "correct")

    def refresh(self, now: Optional[datetime] = None) -> list[Habit]:
        """Run a load pass and publish the result to every subscriber."""

        with self._publish_lock:
            snapshot = self.load_habits(now)
            with self._subscribers_guard:
                subscribers = list(self._subscribers)
            for subscription in subscribers:
                subscription._push(snapshot)
        return snapshot

    def _publish(self, now: datetime) -> None:
        with self._subscribers_guard:
            if not self._subscribers:
                return
        self.refresh(now)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def get_habit(self, habit_id: str, now: Optional[datetime] = None) -> Habit:
        now = now or self.now()
        with self._lock_for(habit_id):
            return self._read(habit_id, now)

    def create_habit(
        self, name: str, *, is_completed_today: bool = False, now: Optional[datetime] = None
    ) -> Habit:
        """Create and store a new habit."""

        now = now or self.now()
        habit = streaks.new_habit(name, now=now, is_completed_today=is_completed_today, tz=self.tz)
        with self._lock_for(habit.id):
            self._latest[habit.id] = habit
            self._persist(habit, "create")
        logger.info("Created habit %s", habit.id, extra={"habit_id": habit.id})
        self._publish(now)
        return habit

    def restore_habit(self, habit: Habit) -> Habit:
        """Store a habit record as given, e.g. one decoded from an export.

        A pending delete of the same id is superseded.
        """

        with self._lock_for(habit.id):
            self._latest[habit.id] = habit
            self._persist(habit, "restore")
        return habit

    def toggle_completion(self, habit_id: str, now: Optional[datetime] = None) -> Habit:
        """Mark a habit done today, or undo today's completion."""

        now = now or self.now()
        with self._lock_for(habit_id):
            current = self._read(habit_id, now)
            toggled = streaks.toggle_completion(current, now, self.tz)
            self._latest[habit_id] = toggled
            self._persist(toggled, "toggle")
        logger.info(
            "Toggled habit %s (completed today: %s, streak %d)",
            habit_id,
            toggled.is_completed_today,
            toggled.streak,
        )
        self._publish(now)
        return toggled

    def rename_habit(self, habit_id: str, name: str, now: Optional[datetime] = None) -> Habit:
        name = (name or "").strip()
        if not name:
            raise ValueError("Habit name must not be blank")

        now = now or self.now()
        with self._lock_for(habit_id):
            renamed = replace(self._read(habit_id, now), name=name)
            self._latest[habit_id] = renamed
            self._persist(renamed, "rename")
        self._publish(now)
        return renamed

    def delete_habit(self, habit_id: str, now: Optional[datetime] = None) -> bool:
        """Delete a habit. Returns False when the store rejected the delete."""

        now = now or self.now()
        with self._lock_for(habit_id):
            if not self._delete_pending(habit_id) and self._current(habit_id) is None:
                raise HabitNotFoundError(habit_id)
            deleted = self._remove(habit_id)
        if deleted:
            logger.info("Deleted habit %s", habit_id, extra={"habit_id": habit_id})
        self._publish(now)
        return deleted

    def retry_failed_writes(self) -> int:
        """Retry every recorded failed write; return how many now succeeded."""

        succeeded = 0
        for failure in self.failures.pending():
            with self._lock_for(failure.habit_id):
                if failure.operation == "delete":
                    ok = self._remove(failure.habit_id)
                else:
                    habit = self._latest.get(failure.habit_id)
                    if habit is None:
                        self.failures.resolve(failure.habit_id)
                        continue
                    ok = self._persist(habit, failure.operation)
            if ok:
                succeeded += 1
        if succeeded:
            logger.info("Retried %d failed writes", succeeded)
        return succeeded

    # ------------------------------------------------------------------
    # Subscriptions and lifecycle
    # ------------------------------------------------------------------
    def subscribe(self, now: Optional[datetime] = None) -> HabitSubscription:
        """Return a snapshot stream primed with the current habit list."""

        subscription = HabitSubscription(self)
        with self._publish_lock:
            snapshot = self.load_habits(now)
            with self._subscribers_guard:
                self._subscribers.append(subscription)
            subscription._push(snapshot)
        return subscription

    def _unsubscribe(self, subscription: HabitSubscription) -> None:
        with self._subscribers_guard:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for background corrections to finish."""

        while True:
            with self._pending_guard:
                pending = list(self._pending)
            if not pending:
                return
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.flush()
        with self._subscribers_guard:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.close()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "HabitTracker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
