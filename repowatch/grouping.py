"""Time-windowed batching of new commits, one batch per repository."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from repowatch.models import CommitEntry, RepoInfo
from repowatch.registry import Watch
from repowatch.watchers.base import Notifier

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    """Schedules one-shot callbacks. Injected so tests can use virtual time."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class _JobHandle:
    def __init__(self, job: Any) -> None:
        self._job = job

    def cancel(self) -> None:
        try:
            self._job.remove()
        except JobLookupError:
            # Already ran or was removed
            pass


class SchedulerTimers:
    """Timers backed by one-shot APScheduler date jobs."""

    def __init__(self, scheduler: BaseScheduler) -> None:
        self.scheduler = scheduler

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        job = self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            misfire_grace_time=None,
        )
        return _JobHandle(job)


@dataclass
class PendingBatch:
    """Commits collected for one repository during the current window."""

    watch: Watch
    repo: RepoInfo
    entries: list[CommitEntry] = field(default_factory=list)
    timer: TimerHandle | None = None


class CommitGrouper:
    """Collects new commits per repository and announces them as one batch.

    The first commit queued for an idle repository arms a timer for
    ``window_seconds``. Later commits join the same batch without moving the
    deadline. When the timer fires the batch is taken out of the grouper and
    only then handed to the notifier, so commits that arrive while the batch
    is being sent open a new window instead of joining a batch that is
    already on its way.

    After ``close()`` no timers are armed: a commit queued by a tick that was
    still running at shutdown is sent straight away.
    """

    def __init__(self, notifier: Notifier, timers: Timers, window_seconds: float = 10.0) -> None:
        self.notifier = notifier
        self.timers = timers
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        self._pending: dict[str, PendingBatch] = {}
        self._closed = False

    def enqueue(self, watch: Watch, repo: RepoInfo, entry: CommitEntry) -> None:
        """Add a commit to its repository's batch, opening a window if idle."""
        key = repo.full_name
        with self._lock:
            if not self._closed:
                batch = self._pending.get(key)
                if batch is None:
                    batch = PendingBatch(watch=watch, repo=repo)
                    self._pending[key] = batch
                    batch.timer = self.timers.call_later(
                        self.window_seconds, lambda: self._on_timer(key, batch)
                    )
                    logger.debug("Opened %.1fs commit window for %s", self.window_seconds, key)
                batch.entries.append(entry)
                return
        logger.debug("Grouper closed, sending %s for %s now", entry.short_sha, key)
        self._dispatch(PendingBatch(watch=watch, repo=repo, entries=[entry]))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop arming timers. Batches already pending stay until flushed."""
        with self._lock:
            self._closed = True

    def pending(self, repo_full_name: str) -> list[CommitEntry]:
        """Commits currently waiting for ``repo_full_name``."""
        with self._lock:
            batch = self._pending.get(repo_full_name)
            return list(batch.entries) if batch else []

    def pending_repos(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def _take(self, key: str, expected: PendingBatch | None = None) -> PendingBatch | None:
        """Remove and return the batch for ``key``.

        With ``expected`` set, only that exact batch is taken; a timer left
        over from an earlier window must not flush the current one.
        """
        with self._lock:
            batch = self._pending.get(key)
            if batch is None or (expected is not None and batch is not expected):
                return None
            del self._pending[key]
        if batch.timer is not None:
            batch.timer.cancel()
        return batch

    def _on_timer(self, key: str, batch: PendingBatch) -> None:
        taken = self._take(key, expected=batch)
        if taken is not None:
            self._dispatch(taken)

    def flush(self, repo_full_name: str) -> bool:
        """Send the batch for one repository now. Returns False if none was pending."""
        batch = self._take(repo_full_name)
        if batch is None:
            return False
        self._dispatch(batch)
        return True

    def flush_all(self) -> int:
        """Send every pending batch now, e.g. at shutdown."""
        flushed = 0
        for key in self.pending_repos():
            if self.flush(key):
                flushed += 1
        return flushed

    def _dispatch(self, batch: PendingBatch) -> None:
        if not batch.entries:
            return
        logger.info(
            "Flushing %d grouped commit(s) for %s", len(batch.entries), batch.repo.full_name
        )
        try:
            self.notifier.announce_commit_batch(batch.watch, batch.repo, list(batch.entries))
        except Exception as e:
            logger.error(
                "Error flushing grouped commits for %s: %s",
                batch.repo.full_name,
                e,
                exc_info=True,
            )
