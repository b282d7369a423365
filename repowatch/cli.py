"""Command line interface: run the watcher or manage watches."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Sequence

from repowatch.config import RepoWatchConfig, load_config
from repowatch.database import Database
from repowatch.exceptions import ConfigError, RepoWatchError, WatchError
from repowatch.registry import WatchRegistry
from repowatch.scheduler import RepoWatchScheduler
from repowatch.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repowatch",
        description="Announce new GitHub repositories, releases and commits.",
    )
    parser.add_argument("--config", help="Path to config.toml")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Start polling (default)")
    run.add_argument("--once", action="store_true", help="Run a single tick and exit")

    watch = sub.add_parser("watch", help="Manage GitHub watches")
    watch_sub = watch.add_subparsers(dest="watch_command", required=True)

    add_user = watch_sub.add_parser("add-user", help="Watch a GitHub user/org for new repositories")
    add_user.add_argument("username", help="GitHub username")
    add_user.add_argument("--channel", help="Channel ID")

    add_repo = watch_sub.add_parser("add-repo", help="Watch a GitHub repo for releases and commits")
    add_repo.add_argument("repo", help="owner/repo")
    add_repo.add_argument("--channel", help="Channel ID")

    remove = watch_sub.add_parser("remove", help="Remove a watch by ID")
    remove.add_argument("id", help="watch id, e.g. repo:acme/widget")

    watch_sub.add_parser("list", help="List all watches")
    return parser


def run_watcher(config: RepoWatchConfig, once: bool = False) -> int:
    try:
        config.require_discord_token()
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    scheduler = RepoWatchScheduler(config)

    if once:
        scheduler.run_tick()
        scheduler.grouper.flush_all()
        return 0

    def shutdown(signum: int, frame: object) -> None:
        scheduler.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    scheduler.start()
    return 0


def manage_watches(config: RepoWatchConfig, args: argparse.Namespace) -> int:
    registry = WatchRegistry(Database(config.database_path))
    command = args.watch_command

    try:
        if command == "add-user":
            watch = registry.add_user(args.username, args.channel)
            print(f"Watching GitHub user {watch.target} ({watch.id})")
        elif command == "add-repo":
            watch = registry.add_repo(args.repo, args.channel)
            print(f"Watching repo {watch.target} ({watch.id})")
        elif command == "remove":
            watch = registry.remove(args.id)
            print(f"Removed {watch.id}")
        elif command == "list":
            watches = registry.list()
            if not watches:
                print("No watches configured.")
            for w in watches:
                print(f"• {w.id} → {w.target} (type: {w.type}, channel: {w.channel or 'default'})")
    except WatchError as e:
        print(str(e), file=sys.stderr)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)

    try:
        if args.command == "watch":
            return manage_watches(config, args)
        return run_watcher(config, once=getattr(args, "once", False))
    except RepoWatchError as e:
        logger.error("%s", e)
        return 1
