#!/usr/bin/env python3
"""
Reminder CLI - run the due-reminder check from cron or by hand

Usage:
    python -m src.notifications process [--dry-run] [--now ISO_DATETIME] [--format json|text]
    python -m src.notifications due [--now ISO_DATETIME] [--format json|text]
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from src.storage import from_db, utc_now
from src.taskflow.config import Config
from src.taskflow.logger import setup_logger
from src.taskflow.mailer import create_mailer

from .channels import build_channels
from .repository import NotificationRepository, ReminderCandidate
from .reminders import reminder_time
from .service import DispatchResult, NotificationService


def build_service(db_path: Optional[str], config: Config) -> NotificationService:
    repository = NotificationRepository(db_path=db_path if db_path else None)
    channels = build_channels(create_mailer(config.mail), config.notifications)
    return NotificationService(repository, channels, config.notifications)


def parse_now(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    return from_db(value)


def format_candidate_json(candidate: ReminderCandidate) -> Dict[str, Any]:
    fire_at = reminder_time(candidate.rule, candidate.due_date)
    return {
        "rule_id": candidate.rule.id,
        "task_id": candidate.rule.task_id,
        "user_id": candidate.rule.user_id,
        "channel": candidate.rule.channel.value,
        "task_title": candidate.task_title,
        "due_date": candidate.due_date.isoformat(),
        "reminder_time": fire_at.isoformat() if fire_at else None,
    }


def format_result_text(result: DispatchResult) -> str:
    if result.dry_run:
        return f"{result.due} reminder(s) due (dry run, nothing sent)"
    return (
        f"Dispatched {result.dispatched} reminder(s): "
        f"{result.sent} sent, {result.failed} failed, {result.skipped} skipped"
    )


def cmd_process(service: NotificationService, now: datetime, dry_run: bool, output_format: str) -> int:
    """Send due reminders"""
    try:
        result = service.process(now, dry_run=dry_run)
    except Exception as exc:
        print(f"Error: reminder run failed: {exc}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps(result.to_dict(), ensure_ascii=False))
    else:
        print(format_result_text(result))
    return 0


def cmd_due(service: NotificationService, now: datetime, output_format: str) -> int:
    """List due reminders without sending"""
    try:
        candidates = service.due_candidates(now)
    except Exception as exc:
        print(f"Error: could not load reminders: {exc}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps([format_candidate_json(c) for c in candidates], ensure_ascii=False))
    elif not candidates:
        print("No reminders are due.")
    else:
        for candidate in candidates:
            item = format_candidate_json(candidate)
            print(
                f"[rule {item['rule_id']}] {item['channel']} | task {item['task_id']} "
                f"{item['task_title']} | due {item['due_date']}"
            )
    return 0


def main(argv: Optional[list] = None) -> int:
    """CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Taskflow reminder CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="SQLite database path (default: TASKFLOW_DB_PATH or data/taskflow.db)",
    )
    parser.add_argument("--config", type=str, help="YAML config path")

    subparsers = parser.add_subparsers(dest="command", help="command to run", required=True)

    parser_process = subparsers.add_parser("process", help="send due reminders")
    parser_process.add_argument("--dry-run", action="store_true", help="count due reminders only")
    parser_process.add_argument("--now", help="reference time (ISO 8601, default: now)")
    parser_process.add_argument(
        "--format",
        choices=["json", "text"],
        default="text",
        help="output format (default: text)",
    )

    parser_due = subparsers.add_parser("due", help="list due reminders")
    parser_due.add_argument("--now", help="reference time (ISO 8601, default: now)")
    parser_due.add_argument(
        "--format",
        choices=["json", "text"],
        default="text",
        help="output format (default: text)",
    )

    args = parser.parse_args(argv)

    config = Config.from_yaml(args.config)
    setup_logger(log_level=config.log_level, log_file=config.log_file)

    try:
        now = parse_now(args.now)
    except ValueError:
        print(f"Error: invalid --now value: {args.now}", file=sys.stderr)
        return 1

    service = build_service(args.db_path, config)

    if args.command == "process":
        return cmd_process(service, now, args.dry_run, args.format)
    elif args.command == "due":
        return cmd_due(service, now, args.format)
    else:
        print(f"Error: unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
