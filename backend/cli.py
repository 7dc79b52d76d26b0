"""
Pulse Pipeline CLI

Usage:
    python -m backend.cli scrape --sources marketing,socialmedia --limit 5
    python -m backend.cli analyze
    python -m backend.cli stats
    python -m backend.cli reset
"""

import argparse
import json
import sys
from typing import List, Optional

from .config import PipelineConfig
from .engine import PipelineOrchestrator, build_orchestrator
from .observability import configure_logging


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_scrape(orchestrator: PipelineOrchestrator, args) -> int:
    sources = args.sources.split(",") if args.sources else None
    result = orchestrator.run_scrape_and_analyze(sources=sources, per_source_limit=args.limit)
    _print_json(result.to_dict())
    return 0 if result.success else 1


def cmd_analyze(orchestrator: PipelineOrchestrator, args) -> int:
    result = orchestrator.run_analyze_only()
    _print_json(result.to_dict())
    return 0 if result.success else 1


def cmd_stats(orchestrator: PipelineOrchestrator, args) -> int:
    _print_json({
        "database": orchestrator.stats().to_dict(),
        **orchestrator.status(),
    })
    return 0


def cmd_reset(orchestrator: PipelineOrchestrator, args) -> int:
    # Engine state is per process.
    orchestrator.reset_degradation()
    _print_json(orchestrator.engine.status())
    return 0


COMMANDS = {
    "scrape": cmd_scrape,
    "analyze": cmd_analyze,
    "stats": cmd_stats,
    "reset": cmd_reset,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pulse Pipeline")
    parser.add_argument("--db", default=None, help="Path to SQLite database (overrides PULSE_DB_PATH)")
    parser.add_argument("--log-level", default=None, help="Log level (overrides PULSE_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command")

    scrape_parser = subparsers.add_parser("scrape", help="Fetch, store and analyze")
    scrape_parser.add_argument("--sources", "-s", default=None,
                               help="Comma-separated source names")
    scrape_parser.add_argument("--limit", "-l", type=_positive_int, default=None,
                               help="Maximum items per source")

    subparsers.add_parser("analyze", help="Analyze pending documents")
    subparsers.add_parser("stats", help="Show store statistics and engine status")
    subparsers.add_parser("reset", help="Reset analysis engine degradation")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    config = PipelineConfig.from_env()
    if args.db:
        config = config.with_db_path(args.db)
    configure_logging(args.log_level or config.logging.level, config.logging.json_output)

    orchestrator = build_orchestrator(config)
    try:
        return handler(orchestrator, args)
    finally:
        orchestrator.close()


if __name__ == "__main__":
    sys.exit(main())
