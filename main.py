#!/usr/bin/env python3
"""
Main entry point for the ComplianceGuard screening engine.

    compliance-guard screen --client "Acme Trading" --location Switzerland
    compliance-guard sync
    compliance-guard status
    compliance-guard matches "Vladimir Putin"
"""

import argparse
import sys
from typing import List, Optional

from compliance_guard import __version__
from compliance_guard.config import Config
from compliance_guard.engine import ScreeningEngine
from compliance_guard.models import ScreeningRequest, ScreeningVerdict
from compliance_guard.utils.error_handler import ComplianceGuardError, ValidationError
from compliance_guard.utils.logger import cleanup_logging, get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_REQUEST = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compliance-guard",
        description="Screen entities against sanctions lists"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    parser.add_argument("--sample", action="store_true",
                        help="Use the built-in demonstration records instead of the configured source")

    subparsers = parser.add_subparsers(dest="command", required=True)

    screen = subparsers.add_parser("screen", help="Screen a client, end user and location")
    screen.add_argument("--client", required=True, help="Client name")
    screen.add_argument("--location", required=True, help="Project location (country)")
    screen.add_argument("--end-user", help="End user, if different from the client")
    screen.add_argument("--project-name", default="", help="Project label")
    screen.add_argument("--check-type", default="inquiry", help="inquiry or pre-delivery")

    subparsers.add_parser("sync", help="Synchronize every sanctions list now")
    subparsers.add_parser("status", help="Show the sync status of each list")

    matches = subparsers.add_parser("matches", help="List fuzzy match candidates for a name")
    matches.add_argument("query", help="Name to look up")
    matches.add_argument("--limit", type=int, default=20, help="Maximum candidates to show")

    return parser


def load_config(args: argparse.Namespace) -> Config:
    config = Config(args.config) if args.config else Config()
    if args.sample:
        config.set('data_source.type', 'sample')
    return config


def print_verdict(verdict: ScreeningVerdict) -> None:
    print(f"Overall status: {verdict.overall_status.value.upper()}")
    print(verdict.summary)
    print()
    print("Checks:")
    for check in verdict.checks:
        print(f"  [{check.status.value}] {check.list_name} / {check.query} "
              f"({check.query_category.value}, risk {check.risk_level.value})")
        print(f"      {check.details}")
    print()
    print("Recommendations:")
    for recommendation in verdict.recommendations:
        print(f"  - {recommendation}")


def run_screen(engine: ScreeningEngine, request: ScreeningRequest) -> int:
    engine.start(periodic=False)
    print_verdict(engine.screen(request))
    return EXIT_OK


def run_sync(engine: ScreeningEngine) -> int:
    engine.sync_manager.load()
    outcomes = engine.force_sync()
    for outcome in outcomes:
        line = f"{outcome.list_name}: {outcome.status.value} ({outcome.entity_count} entities)"
        if outcome.error_message:
            line += f" - {outcome.error_message}"
        print(line)
    return EXIT_OK if all(outcome.succeeded for outcome in outcomes) else EXIT_ERROR


def run_status(engine: ScreeningEngine) -> int:
    engine.sync_manager.load()
    last_sync = engine.sync_manager.last_sync
    print(f"Last sync: {last_sync.isoformat(timespec='seconds') if last_sync else 'never'}")
    health = engine.get_store_health()
    if health['url'] is None:
        print("Store: in memory")
    elif health['reachable']:
        print(f"Store: {health['url']} ({health['entries']} keys)")
    else:
        print(f"Store: {health['url']} unavailable - {health['error']}")
    for outcome in engine.get_sync_status():
        updated = outcome.timestamp.isoformat(timespec='seconds') if outcome.timestamp else "-"
        line = f"{outcome.list_name}: {outcome.status.value}, {outcome.entity_count} entities, updated {updated}"
        if outcome.error_message:
            line += f" - {outcome.error_message}"
        print(line)
    return EXIT_OK


def run_matches(engine: ScreeningEngine, query: str, limit: int) -> int:
    engine.start(periodic=False)
    candidates = engine.get_fuzzy_matches(query)
    if not candidates:
        print(f"No candidates for '{query}'")
        return EXIT_OK
    for candidate in candidates[:max(limit, 0)]:
        print(f"{candidate.confidence_percent:>4}%  {candidate.entity.name}  "
              f"[{candidate.entity.source}, {candidate.matched_field.value}: {candidate.matched_value}]")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ComplianceGuardError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    log_dir = config.get('logging.directory') or config.get_data_dir() / "logs"
    setup_logging(args.log_level or config.get('logging.level', 'INFO'), log_dir)

    request = None
    if args.command == "screen":
        request = ScreeningRequest(
            client=args.client,
            location=args.location,
            end_user=args.end_user,
            project_name=args.project_name,
            check_type=args.check_type
        )
        try:
            request.validate()
        except ValidationError as e:
            print(f"Invalid request: {e.message}", file=sys.stderr)
            return EXIT_INVALID_REQUEST

    try:
        with ScreeningEngine(config) as engine:
            if args.command == "screen":
                return run_screen(engine, request)
            if args.command == "sync":
                return run_sync(engine)
            if args.command == "status":
                return run_status(engine)
            return run_matches(engine, args.query, args.limit)
    except ComplianceGuardError as e:
        logger.error(f"{args.command} failed [{e.error_id}]: {e.message}")
        print(f"Error: {e.user_message}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        cleanup_logging()


if __name__ == "__main__":
    sys.exit(main())
