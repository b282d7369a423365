"""Main scheduler: polls every watch and wires checkers, grouper and notifier."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from repowatch.config import RepoWatchConfig
from repowatch.database import Database
from repowatch.github_client import GitHubClient
from repowatch.grouping import CommitGrouper, SchedulerTimers, Timers
from repowatch.notifications.discord_notifier import DiscordNotifier
from repowatch.registry import Watch, WatchRegistry
from repowatch.seen import SeenStore
from repowatch.watchers.base import BaseChecker, Notifier
from repowatch.watchers.commit_watcher import CommitChecker
from repowatch.watchers.release_watcher import ReleaseChecker
from repowatch.watchers.repo_watcher import NewRepositoryChecker

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll"


class RepoWatchScheduler:
    """Runs a poll tick every ``interval_seconds``.

    A tick reads the watch list, runs every matching checker for each watch
    and saves the seen sets once at the end. Ticks never overlap: the poll
    job allows a single running instance, so a tick that is due while the
    previous one is still working is skipped.
    """

    def __init__(
        self,
        config: RepoWatchConfig,
        db: Database | None = None,
        github: GitHubClient | None = None,
        notifier: Notifier | None = None,
        scheduler: BaseScheduler | None = None,
        timers: Timers | None = None,
    ) -> None:
        self.config = config
        self.db = db or Database(config.database_path)
        self.registry = WatchRegistry(self.db)
        self.seen = SeenStore(self.db)
        self.github = github or GitHubClient(config.github)
        self.notifier = notifier or DiscordNotifier(config.discord)
        self.scheduler = scheduler or BlockingScheduler(timezone=timezone.utc)
        self.grouper = CommitGrouper(
            self.notifier,
            timers or SchedulerTimers(self.scheduler),
            window_seconds=config.polling.grouping_window_seconds,
        )
        # Order matters for repo watches: releases, then commits
        self.checkers: list[BaseChecker] = [
            NewRepositoryChecker(self.github, self.seen, self.notifier),
            ReleaseChecker(self.github, self.seen, self.notifier),
            CommitChecker(self.github, self.seen, self.grouper),
        ]

    def checkers_for(self, watch: Watch) -> list[BaseChecker]:
        return [c for c in self.checkers if c.applies_to(watch)]

    def _run_watch(self, watch: Watch) -> int:
        """Run every checker for one watch with full error isolation."""
        checkers = self.checkers_for(watch)
        if not checkers:
            logger.warning("No checker for watch %s (type %r)", watch.id, watch.type)
            return 0

        found = 0
        try:
            for checker in checkers:
                found += checker.run(watch)
        except Exception as e:
            logger.error("Checker error for watch %s: %s", watch.id, e, exc_info=True)
        return found

    def run_tick(self) -> int:
        """Poll every watch once and persist the seen sets."""
        try:
            self.seen.load()
            watches = self.registry.list()
        except Exception as e:
            logger.error("Could not read state, skipping tick: %s", e, exc_info=True)
            return 0

        logger.info("Polling %d watch(es)...", len(watches))
        found = 0
        for watch in watches:
            found += self._run_watch(watch)

        self._save_seen()

        remaining = self.github.rate_limit_remaining()
        if remaining is not None:
            logger.info("GitHub API rate limit remaining: %d", remaining)
        logger.info("Tick complete: %d new item(s)", found)
        return found

    def _save_seen(self) -> None:
        try:
            self.seen.save()
        except Exception as e:
            logger.error("Failed to persist seen items: %s", e, exc_info=True)

    def start(self) -> None:
        """Register the poll job and start the blocking scheduler."""
        interval = self.config.polling.interval_seconds
        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=interval),
            id=POLL_JOB_ID,
            name="Poll GitHub watches",
            next_run_time=datetime.now(timezone.utc),
            misfire_grace_time=interval,
            coalesce=True,
            max_instances=1,
        )
        logger.info(
            "GitHub watcher started — polling every %ds, grouping commits for %dms. "
            "Press Ctrl+C to stop.",
            interval,
            self.config.polling.grouping_window_ms,
        )
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop the scheduler, then flush pending commit batches.

        The grouper is closed first so a tick still running sends its commits
        directly instead of arming timers that would never fire. The scheduler
        then waits for that tick before the remaining batches are flushed and
        the seen sets saved.
        """
        logger.info("Shutting down repowatch...")
        self.grouper.close()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        flushed = self.grouper.flush_all()
        if flushed:
            logger.info("Flushed %d pending commit batch(es)", flushed)
        self._save_seen()
