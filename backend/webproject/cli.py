from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from webproject import deps
from webproject.config import settings
from webproject.db.bootstrap import init_schema
from webproject.services.consistency_check import (
    ConsistencyCheckError,
    failure_response,
    run_consistency_check,
)
from webproject.services.notification_forwarder import NotificationForwarder
from webproject.telemetry.logging import init_logging

logger = logging.getLogger(__name__)

EXIT_INFRA_ERROR = 1
EXIT_INCONSISTENT = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="webproject")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the image_uploads table if missing")

    check = sub.add_parser("check-consistency", help="Compare database records with bucket contents")
    check.add_argument("--source", default="scheduled", help="Invocation label for logs (default: scheduled)")
    check.add_argument("--output-json", default=None, help="Optional path to write the result as JSON")
    check.add_argument(
        "--fail-on-inconsistent",
        action="store_true",
        default=False,
        help="Exit with code 2 when the check finds discrepancies",
    )

    fwd = sub.add_parser("forward-notifications", help="Relay queued upload events to the topic")
    fwd.add_argument("--once", action="store_true", default=False, help="Process a single batch and exit")
    return parser.parse_args(argv)


def _emit(result: dict[str, Any], output_json: Optional[str]) -> None:
    if output_json:
        with open(output_json, "w", encoding="utf-8") as handle:
            json.dump(result, handle, indent=2, sort_keys=True)
    else:
        print(json.dumps(result, indent=2, sort_keys=True))


def cmd_init_db() -> int:
    try:
        result = init_schema(deps.get_engine())
    except SQLAlchemyError as e:
        logger.error("Database initialization failed: %s", e)
        print(json.dumps({"statusCode": 500, "error": str(e)}))
        return EXIT_INFRA_ERROR
    print(json.dumps({"statusCode": 200, **result}))
    return 0


def cmd_check_consistency(args: argparse.Namespace) -> int:
    db_gen = deps.get_db()
    db = next(db_gen)
    try:
        result = run_consistency_check(db, deps.get_object_store(), source=args.source)
    except ConsistencyCheckError as e:
        _emit(failure_response(args.source, e), args.output_json)
        return EXIT_INFRA_ERROR
    finally:
        db_gen.close()
    _emit(result, args.output_json)
    if args.fail_on_inconsistent and not result["consistency"]["isConsistent"]:
        return EXIT_INCONSISTENT
    return 0


def cmd_forward_notifications(args: argparse.Namespace) -> int:
    forwarder = NotificationForwarder(deps.get_upload_queue(), deps.get_notification_topic())
    if args.once:
        report = forwarder.run_once(
            max_messages=settings.forwarder_batch_size,
            wait_seconds=settings.forwarder_wait_seconds,
        )
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.failure_count == 0 else EXIT_INFRA_ERROR

    def _stop(_signum: int, _frame: Any) -> None:
        forwarder.stop()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)
    forwarder.run_forever(
        max_messages=settings.forwarder_batch_size,
        wait_seconds=settings.forwarder_wait_seconds,
    )
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    init_logging()
    try:
        if args.command == "init-db":
            return cmd_init_db()
        if args.command == "check-consistency":
            return cmd_check_consistency(args)
        return cmd_forward_notifications(args)
    finally:
        deps.close_clients()


def main() -> None:
    sys.exit(run_cli())


__all__ = ["parse_args", "run_cli", "main"]
