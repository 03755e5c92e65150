from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Optional

import requests

from .cache import HtmlCache
from .config import (
    DEFAULT_LOAD_MORE_CLICKS,
    DEFAULT_POLITE_DELAY_S,
    ScrapeSettings,
    default_competitions_file,
    default_html_cache_dir,
    default_log_dir,
    default_output_dir,
)
from .errors import ScrapeError
from .models import CATEGORY_NATIONALS, Competition, CompetitionResult
from .oplog import LogEntry, append_log
from .output import FORMATS, load_results_json, write_results, write_results_per_competition
from .scraper import ProgressCallback, discover_competitions, load_competitions, save_competitions, scrape_competitions
from .validate import validate_competition_result


LIST_TABLE_LIMIT = 30


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m svnl", description="SVNL powerlifting results scraper")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    parser.add_argument(
        "--competitions-file",
        type=Path,
        default=default_competitions_file(),
        help="JSON file with discovered competitions",
    )
    parser.add_argument("--log-dir", type=Path, default=default_log_dir(), help="Directory for svnl-log.jsonl")
    sub = parser.add_subparsers(dest="cmd", required=True)

    discover = sub.add_parser("discover", help="Discover competitions from the SVNL result archive")
    discover.add_argument("-c", "--clicks", type=int, default=DEFAULT_LOAD_MORE_CLICKS, help="'Load more' clicks on the archive page")
    discover.add_argument("--json", action="store_true", help="Print progress as JSON events, one per line")

    lst = sub.add_parser("list", help="List discovered competitions")
    lst.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    scrape = sub.add_parser("scrape", help="Scrape specific competitions by id")
    scrape.add_argument("ids", nargs="+", help="Competition ids, e.g. svnl-sm-2024")
    _add_scrape_options(scrape)

    scrape_all = sub.add_parser("scrape-all", help="Scrape all discovered competitions")
    _add_scrape_options(scrape_all)

    val = sub.add_parser("validate", help="Re-run validation over an exported JSON file")
    val.add_argument("file", type=Path, help="Results file written with --format json")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.cmd == "discover":
        return _cmd_discover(args)
    if args.cmd == "list":
        return _cmd_list(args)
    if args.cmd in ("scrape", "scrape-all"):
        return _cmd_scrape(args)
    if args.cmd == "validate":
        return _cmd_validate(args)

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


def _add_scrape_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("-o", "--output", type=Path, default=default_output_dir(), help="Output directory")
    p.add_argument("-f", "--format", choices=list(FORMATS), default="csv", help="Output format")
    p.add_argument("--combined", action="store_true", help="Write all competitions into one file")
    p.add_argument("--force", action="store_true", help="Re-parse even when the result tables are unchanged")
    p.add_argument("--no-cache", action="store_true", help="Do not read or write the HTML cache")
    p.add_argument("--delay", type=float, default=DEFAULT_POLITE_DELAY_S, help="Pause between competitions (seconds)")
    p.add_argument("--cache-dir", type=Path, default=default_html_cache_dir(), help="Cache for result table HTML")
    p.add_argument("--json", action="store_true", help="Print progress as JSON events, one per line")


def settings_from_args(args: argparse.Namespace) -> ScrapeSettings:
    return ScrapeSettings(
        cache_dir=getattr(args, "cache_dir", None) or default_html_cache_dir(),
        delay_s=float(getattr(args, "delay", DEFAULT_POLITE_DELAY_S)),
        force=bool(getattr(args, "force", False)),
        use_cache=not bool(getattr(args, "no_cache", False)),
        load_more_clicks=int(getattr(args, "clicks", DEFAULT_LOAD_MORE_CLICKS)),
    )


def _json_event(event: dict[str, Any]) -> None:
    print(json.dumps(event, ensure_ascii=False), flush=True)


def _progress_printer(as_json: bool) -> ProgressCallback:
    if as_json:
        return lambda msg: _json_event({"type": "progress", "message": msg})
    return lambda msg: print(msg, flush=True)


def _report_error(message: str, *, as_json: bool) -> int:
    if as_json:
        _json_event({"type": "error", "message": message})
    else:
        print(f"Error: {message}", file=sys.stderr)
    return 1


def _cmd_discover(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    started = time.monotonic()
    try:
        competitions = discover_competitions(
            session=requests.Session(),
            load_more_clicks=settings.load_more_clicks,
            on_progress=_progress_printer(args.json),
        )
    except (ScrapeError, ValueError) as exc:
        return _report_error(str(exc), as_json=args.json)

    save_competitions(args.competitions_file, competitions)
    _record(
        args.log_dir,
        "discover",
        started,
        {"competitions": len(competitions), "clicks": settings.load_more_clicks},
    )

    if args.json:
        _json_event({"type": "complete", "data": [c.to_dict() for c in competitions]})
    else:
        print(f"\n✓ Found {len(competitions)} competitions")
        print(f"  Saved to {args.competitions_file}")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    try:
        competitions = load_competitions(args.competitions_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if args.format == "json":
        print(json.dumps([c.to_dict() for c in competitions], ensure_ascii=False, indent=2))
        return 0

    print(f"\n{len(competitions)} competitions:\n")
    for comp in competitions[:LIST_TABLE_LIMIT]:
        marker = "[SM]" if comp.category == CATEGORY_NATIONALS else "[  ]"
        print(f"  {marker} {comp.id:<40} {comp.date or ''}")
        print(f"       {comp.name or '(no name)'}")
    if len(competitions) > LIST_TABLE_LIMIT:
        print(f"\n  ... and {len(competitions) - LIST_TABLE_LIMIT} more")
    return 0


def _cmd_scrape(args: argparse.Namespace) -> int:
    try:
        all_competitions = load_competitions(args.competitions_file)
    except FileNotFoundError as exc:
        return _report_error(str(exc), as_json=args.json)

    competitions = _select_competitions(all_competitions, getattr(args, "ids", None))
    if not competitions:
        if args.cmd == "scrape":
            return _report_error(f"No competitions found matching: {', '.join(args.ids)}", as_json=args.json)
        return _report_error("No discovered competitions to scrape", as_json=args.json)

    settings = settings_from_args(args)
    cache = HtmlCache(settings.cache_dir) if settings.use_cache else None
    if args.cmd == "scrape-all" and not args.json:
        print(f"Scraping {len(competitions)} competitions...\n")

    started = time.monotonic()
    results = scrape_competitions(
        competitions,
        cache=cache,
        session=requests.Session(),
        force=settings.force,
        use_cache=settings.use_cache,
        delay_s=settings.delay_s,
        on_progress=_progress_printer(args.json),
    )

    try:
        output_path, output_paths = _write_output(results, args.output, args.format, combined=args.combined)
    except OSError as exc:
        return _report_error(f"Could not write output: {exc}", as_json=args.json)

    total_lifters = sum(len(r.lifters) for r in results)
    _record(
        args.log_dir,
        args.cmd,
        started,
        {
            "requested": len(competitions),
            "competitions": len(results),
            "lifters": total_lifters,
            "skipped": sum(1 for r in results if r.metadata is not None and r.metadata.skipped),
            "force": settings.force,
            "output": str(output_path),
        },
    )

    if args.json:
        data: dict[str, Any] = {"outputPath": str(output_path), "competitions": len(results), "lifters": total_lifters}
        if output_paths is not None:
            data["outputPaths"] = [str(p) for p in output_paths]
        _json_event({"type": "complete", "data": data})
    else:
        print(f"\n✓ Scraped {len(results)} competitions ({total_lifters} lifters)")
        if output_paths is not None:
            print(f"  Output: {args.output} ({len(output_paths)} files)")
        else:
            print(f"  Output: {output_path}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        results = load_results_json(args.file)
    except FileNotFoundError:
        print(f"Error: No such file: {args.file}", file=sys.stderr)
        return 1
    except (ValueError, KeyError) as exc:
        print(f"Error: Not a results file: {args.file} ({exc})", file=sys.stderr)
        return 1

    total_warnings = 0
    for result in results:
        summary = validate_competition_result(result)
        total_warnings += len(summary.all_warnings)
        print(f"{result.competition.name or result.competition.id}")
        print(f"  Lifters: {summary.total_lifters}, with warnings: {summary.lifters_with_warnings}")
        for rule, count in sorted(summary.warnings_by_rule.items()):
            print(f"  {rule}: {count}")
        for warning in summary.all_warnings:
            print(f"    - {warning.lifter_name or '?'}: {warning.message}")

    print(f"\n{len(results)} competitions, {total_warnings} warnings")
    return 0


def _select_competitions(competitions: list[Competition], ids: Optional[list[str]]) -> list[Competition]:
    if ids is None:
        return list(competitions)
    wanted = set(ids)
    return [c for c in competitions if c.id in wanted]


def _write_output(
    results: list[CompetitionResult], out_dir: Path, fmt: str, *, combined: bool
) -> tuple[Path, Optional[list[Path]]]:
    combined_path = out_dir / f"results_{int(time.time() * 1000)}.{fmt}"
    if combined:
        return write_results(results, combined_path, fmt), None
    paths = write_results_per_competition(results, out_dir, fmt)
    return (paths[0] if paths else combined_path), paths


def _record(log_dir: Path, operation: str, started: float, details: dict[str, Any]) -> None:
    duration_ms = int((time.monotonic() - started) * 1000)
    try:
        append_log(LogEntry(operation=operation, duration_ms=duration_ms, details=details), log_dir)
    except OSError as exc:
        logging.getLogger(__name__).warning("Could not write operation log: %s", exc)
