"""Tests for CommitGrouper window semantics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from apscheduler.jobstores.base import JobLookupError

from repowatch.grouping import CommitGrouper, SchedulerTimers
from repowatch.registry import Watch
from tests.conftest import make_commit, make_repo

WATCH = Watch.create("repo", "acme/widget")
REPO = make_repo("acme/widget")


def _grouper(notifier, timers, window=10.0) -> CommitGrouper:
    return CommitGrouper(notifier, timers, window_seconds=window)


class TestWindow:
    def test_commits_within_window_produce_one_batch_in_order(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        for sha in ("c1", "c2", "c3"):
            grouper.enqueue(WATCH, REPO, make_commit(sha, REPO))
            timers.advance(2)

        assert notifier.calls == []
        timers.advance(4)  # t=10
        assert notifier.of_kind("commits") == [["c1", "c2", "c3"]]
        assert grouper.pending("acme/widget") == []

    def test_window_is_not_extended_by_later_arrivals(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        timers.advance(9.5)
        grouper.enqueue(WATCH, REPO, make_commit("c2", REPO))
        timers.advance(0.5)

        assert notifier.of_kind("commits") == [["c1", "c2"]]
        assert len(timers.scheduled) == 0

    def test_commit_after_window_starts_new_batch(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        grouper.enqueue(WATCH, REPO, make_commit("c2", REPO))
        timers.advance(10)
        grouper.enqueue(WATCH, REPO, make_commit("c3", REPO))

        assert grouper.pending("acme/widget")[0].sha == "c3"
        timers.advance(10)
        assert notifier.of_kind("commits") == [["c1", "c2"], ["c3"]]

    def test_one_timer_per_repository(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        other = make_repo("acme/gadget")
        grouper.enqueue(WATCH, REPO, make_commit("a1", REPO))
        grouper.enqueue(WATCH, REPO, make_commit("a2", REPO))
        grouper.enqueue(Watch.create("repo", "acme/gadget"), other, make_commit("b1", other))

        assert len(timers.active()) == 2
        assert sorted(grouper.pending_repos()) == ["acme/gadget", "acme/widget"]
        timers.advance(10)
        assert sorted(map(tuple, notifier.of_kind("commits"))) == [("a1", "a2"), ("b1",)]


class TestFlush:
    def test_batch_is_cleared_before_dispatch(self, timers):
        grouper_ref: dict[str, CommitGrouper] = {}
        seen_during_dispatch: list[list[str]] = []

        class ReentrantNotifier:
            def announce_commit_batch(self, watch, repo, entries):
                grouper = grouper_ref["g"]
                seen_during_dispatch.append([e.sha for e in grouper.pending(repo.full_name)])
                # A commit arriving mid-send opens a fresh window
                grouper.enqueue(watch, repo, make_commit("late", repo))
                return True

        grouper = CommitGrouper(ReentrantNotifier(), timers, window_seconds=10)
        grouper_ref["g"] = grouper
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        timers.advance(10)

        assert seen_during_dispatch == [[]]
        assert [e.sha for e in grouper.pending("acme/widget")] == ["late"]
        assert len(timers.active()) == 1

    def test_notifier_error_drops_batch(self, timers, notifier):
        notifier.fail_commit_batches = True
        grouper = _grouper(notifier, timers)
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        timers.advance(10)

        assert grouper.pending_repos() == []
        notifier.fail_commit_batches = False
        timers.advance(60)
        assert notifier.calls == []

    def test_flush_all_drains_and_cancels_timers(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        other = make_repo("acme/gadget")
        grouper.enqueue(WATCH, REPO, make_commit("a1", REPO))
        grouper.enqueue(WATCH, other, make_commit("b1", other))

        assert grouper.flush_all() == 2
        assert grouper.pending_repos() == []
        assert timers.active() == []
        assert len(notifier.of_kind("commits")) == 2

    def test_stale_timer_does_not_flush_newer_batch(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        stale = timers.scheduled[0]
        grouper.flush("acme/widget")
        timers.advance(5)
        grouper.enqueue(WATCH, REPO, make_commit("c2", REPO))

        stale.callback()
        assert [e.sha for e in grouper.pending("acme/widget")] == ["c2"]
        assert notifier.of_kind("commits") == [["c1"]]

    def test_flush_unknown_repo_returns_false(self, notifier, timers):
        assert _grouper(notifier, timers).flush("nobody/nothing") is False

    def test_closed_grouper_sends_without_arming_timers(self, notifier, timers):
        grouper = _grouper(notifier, timers)
        grouper.enqueue(WATCH, REPO, make_commit("c1", REPO))
        grouper.close()

        grouper.enqueue(WATCH, REPO, make_commit("c2", REPO))

        assert grouper.closed
        assert notifier.of_kind("commits") == [["c2"]]
        assert len(timers.scheduled) == 1
        # The batch opened before closing waits for flush_all
        assert grouper.flush_all() == 1
        assert notifier.of_kind("commits") == [["c2"], ["c1"]]


class TestSchedulerTimers:
    def test_call_later_adds_date_job(self):
        scheduler = MagicMock()
        before = datetime.now(timezone.utc)
        callback = MagicMock()

        SchedulerTimers(scheduler).call_later(10, callback)

        args, kwargs = scheduler.add_job.call_args
        assert args[0] is callback
        run_date = kwargs["trigger"].run_date
        assert before + timedelta(seconds=9) < run_date < before + timedelta(seconds=12)

    def test_cancel_ignores_jobs_that_already_ran(self):
        scheduler = MagicMock()
        scheduler.add_job.return_value.remove.side_effect = JobLookupError("gone")

        handle = SchedulerTimers(scheduler).call_later(1, MagicMock())
        handle.cancel()

        scheduler.add_job.return_value.remove.assert_called_once()
