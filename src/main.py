# src/main.py — v1
"""CLI entry point: run, status, phrases commands.

Usage:
    intentphrase run <input.json> [options]
    intentphrase status <domain_id>
    intentphrase phrases <domain_id> [--keyword ID] [--json]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from intentphrase.config.settings import ConfigurationError, Settings
from intentphrase.core.errors import ConcurrentRunConflict, PipelineError
from intentphrase.version import __version__

if TYPE_CHECKING:
    from intentphrase.pipeline.progress import ProgressEvent

logger = logging.getLogger(__name__)

_EXIT_CODES = {"success": 0, "partial_success": 2, "failed": 1}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = Settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ConcurrentRunConflict as exc:
        logger.error("%s", exc)
        return 3
    except PipelineError as exc:
        logger.error("%s: %s", exc.kind, exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="intentphrase",
        description=f"intentphrase v{__version__}: intent phrase generation pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser(
        "run", help="Run the pipeline for one domain",
    )
    p_run.add_argument(
        "input", type=Path,
        help="JSON file with 'domain', 'keywords' and optional 'config_overrides'",
    )
    p_run.add_argument(
        "--format", dest="event_format", choices=("text", "sse", "jsonl"), default="text",
        help="Event output format (default: text)",
    )
    p_run.add_argument(
        "--concurrency", type=int, default=None,
        help="Keywords processed in parallel (overrides KEYWORD_CONCURRENCY)",
    )
    p_run.add_argument(
        "--calls-log", type=Path, default=None, metavar="PATH",
        help="Write one JSON line per external call of the run to PATH",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show checkpoint rows of a domain",
    )
    p_status.add_argument("domain_id", help="Domain identifier")
    p_status.set_defaults(func=_cmd_status)

    # --- phrases ---
    p_phrases = subparsers.add_parser(
        "phrases", help="List generated phrases of a domain",
    )
    p_phrases.add_argument("domain_id", help="Domain identifier")
    p_phrases.add_argument("--keyword", default=None, help="Only this keyword id")
    p_phrases.add_argument("--json", action="store_true", help="Print JSON lines")
    p_phrases.set_defaults(func=_cmd_phrases)

    return parser


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Run the pipeline and stream its events to stdout."""
    from intentphrase.api.facade import run_pipeline
    from intentphrase.api.models import ConfigOverrides, RunRequest
    from intentphrase.pipeline.progress import format_sse
    from intentphrase.tracking.call_logger import CallLogger

    input_path: Path = args.input
    if not input_path.exists():
        logger.error("File not found: %s", input_path)
        return 1
    try:
        request = RunRequest.model_validate_json(input_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        logger.error("Invalid run input %s: %s", input_path, exc)
        return 1

    if args.concurrency is not None:
        overrides = request.config_overrides or ConfigOverrides()
        request.config_overrides = overrides.model_copy(
            update={"keyword_concurrency": args.concurrency}
        )

    def _print_event(event: ProgressEvent) -> None:
        if args.event_format == "sse":
            sys.stdout.write(format_sse(event))
        elif args.event_format == "jsonl":
            sys.stdout.write(event.model_dump_json() + "\n")
        else:
            sys.stdout.write(_format_event_text(event) + "\n")
        sys.stdout.flush()

    call_logger = CallLogger() if args.calls_log else None
    summary = await run_pipeline(
        request, settings=settings, on_event=_print_event, call_logger=call_logger,
    )
    if call_logger is not None:
        call_logger.save(args.calls_log)
        logger.info("Wrote %d call records to %s", call_logger.total_calls, args.calls_log)
    if args.event_format == "text":
        print(f"\nRun {summary.run_id}: {summary.status}")
        print(f"  Keywords:  {summary.keywords_succeeded}/{summary.keywords_total}")
        print(f"  Phrases:   {summary.total_phrases}")
        print(f"  Executed:  {summary.phases_executed} phases ({summary.phases_reused} reused)")
        print(f"  Cost:      ${summary.cost.estimated_cost_usd:.4f}")
        for failure in summary.failed_keywords:
            print(f"  FAILED {failure.term} [{failure.phase}] {failure.kind}: {failure.message}")
        if summary.error_kind:
            print(f"  Error:     {summary.error_kind}: {summary.error_message}")
    return _EXIT_CODES[summary.status]


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Print every checkpoint row owned by a domain."""
    from intentphrase.checkpoint.checkpoint_factory import create_checkpoint_store

    store = create_checkpoint_store(settings)
    try:
        rows = await store.list_for_domain(args.domain_id)
    finally:
        await store.close()

    if not rows:
        print(f"No checkpoints for domain {args.domain_id}")
        return 1
    print(f"\nCheckpoints for domain {args.domain_id}:")
    for row in rows:
        flag = " (degraded)" if row.degraded else ""
        error = f"  {row.error}" if row.error else ""
        print(
            f"  {row.scope_kind:8s} {row.scope_id:20s} {row.phase:22s} "
            f"{row.status:10s} {row.progress:3d}%{flag}{error}"
        )
    return 0


async def _cmd_phrases(args: argparse.Namespace, settings: Settings) -> int:
    """Print generated phrases of a domain."""
    from intentphrase.checkpoint.checkpoint_factory import create_checkpoint_store

    store = create_checkpoint_store(settings)
    try:
        phrases = await store.list_phrases(domain_id=args.domain_id, keyword_id=args.keyword)
    finally:
        await store.close()

    for phrase in phrases:
        if args.json:
            print(phrase.model_dump_json())
        else:
            print(
                f"[{phrase.keyword_id}] {phrase.text} "
                f"({phrase.intent_label} {phrase.intent_confidence}%, "
                f"relevance {phrase.relevance_score})"
            )
    if not args.json:
        print(f"\n{len(phrases)} phrases")
    return 0


def _format_event_text(event: ProgressEvent) -> str:
    """One human-readable line per event."""
    parts = [f"{event.seq:4d}", f"{event.event:16s}"]
    if event.scope_kind == "keyword":
        parts.append(f"kw={event.scope_id}")
    if event.step is not None:
        parts.append(f"[{event.step}/7 {event.phase}]")
    if event.progress is not None:
        parts.append(f"{event.progress:3d}%")
    payload = event.payload
    if event.event == "steps":
        parts.append(", ".join(s["name"] for s in payload.get("steps", [])))
    elif event.event == "phrase-generated":
        parts.append(payload["phrase"]["text"])
    elif "message" in payload:
        parts.append(str(payload["message"]))
    elif "status" in payload:
        parts.append(str(payload["status"]))
    return " ".join(parts)


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from intentphrase.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text" if verbose else settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
