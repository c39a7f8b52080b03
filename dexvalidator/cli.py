"""Command line interface for dexvalidator."""

from __future__ import annotations

from typing import List, Optional
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
import uuid

from .config import Settings, build_settings, load_config
from .entities import EntityStore
from .exceptions import DexValidatorError
from .fields import require_field
from .models import Progress
from .orchestrator import Validator
from .overrides import OverrideStore, issue_signature
from .reporting import (
    export_results_json,
    export_statistics_csv,
    format_accepted,
    format_field_status,
    format_in_game,
    format_source_quality,
    format_stats,
    report_metrics,
    summarize_results,
)
from .sources import WikiFetcher
from .statistics import StatisticsStore

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _log_run(path: Path, entry: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry) + "\n")


def make_fetcher(settings: Settings, dex_ids: Optional[dict] = None) -> WikiFetcher:
    return WikiFetcher(timeout=settings.timeout, retries=settings.retries, dex_ids=dex_ids)


def _overrides(settings: Settings) -> OverrideStore:
    return OverrideStore(settings.accepted_issues_path, settings.in_game_path).load()


def _print_progress(progress: Progress) -> None:
    percent = round(100 * progress.current / progress.total) if progress.total else 100
    sys.stdout.write(
        f"\r⏳ Progress: {percent}% ({progress.current}/{progress.total}) - "
        f"{progress.phase.value} {progress.entity_name}...".ljust(80)
    )
    sys.stdout.flush()


def _validator(settings: Settings, entities: EntityStore, overrides: OverrideStore, **kwargs) -> Validator:
    return Validator(
        entities,
        make_fetcher(settings, entities.dex_ids()),
        overrides,
        StatisticsStore(settings.statistics_path),
        fields=settings.required_fields,
        delay=settings.delay,
        persist_each_entity=settings.persist_each_entity,
        **kwargs,
    )


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    run_id = uuid.uuid4().hex
    _log_run(settings.run_log_path, {"run_id": run_id, "status": "started", "start_time": _now()})
    try:
        entities = EntityStore.from_file(settings.pokemon_path)
        overrides = _overrides(settings)
        validator = _validator(settings, entities, overrides, progress_callback=_print_progress)
        selected = validator.select_entities(pokemon=args.pokemon, limit=args.limit, test=args.test)
        if not selected:
            print(f'No Pokemon found matching "{args.pokemon}"' if args.pokemon else "No Pokemon need validation")
            _log_run(settings.run_log_path, {"run_id": run_id, "status": "success", "rows": 0, "end_time": _now()})
            return 0
        print(f"🎯 Validating {len(selected)} Pokemon...")
        results = validator.validate_many(selected)
        print("\n✅ Validation complete!\n")
        print(summarize_results(results))
        fetcher = validator.fetcher
        if isinstance(fetcher, WikiFetcher):
            print(format_source_quality(fetcher.reports()))
            report_metrics(fetcher.metrics)
        _log_run(
            settings.run_log_path,
            {
                "run_id": run_id,
                "status": "success",
                "rows": len(results),
                "errors": sum(1 for r in results if r.error),
                "end_time": _now(),
            },
        )
        return 0
    except Exception as e:
        logger.error("Validation run %s failed: %s", run_id, e)
        _log_run(settings.run_log_path, {"run_id": run_id, "status": "error", "error": str(e), "end_time": _now()})
        raise


def _load_statistics(settings: Settings) -> Optional[StatisticsStore]:
    store = StatisticsStore(settings.statistics_path)
    if not store.load() or not len(store):
        print("No validation statistics available. Run a validation first.")
        return None
    return store


def _names(settings: Settings) -> dict:
    try:
        return EntityStore.from_file(settings.pokemon_path).names()
    except FileNotFoundError:
        return {}


def cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    store = _load_statistics(settings)
    if store is None:
        return 0
    print(format_stats(store, _names(settings), args.pokemon_id))
    return 0 if not args.pokemon_id or store.get(args.pokemon_id) else 1


def cmd_field_status(args: argparse.Namespace, settings: Settings) -> int:
    store = _load_statistics(settings)
    if store is None:
        return 0
    print(format_field_status(store, _names(settings), args.pokemon_id))
    return 0 if not args.pokemon_id or store.get(args.pokemon_id) else 1


def cmd_accept_issue(args: argparse.Namespace, settings: Settings) -> int:
    require_field(args.field, settings.required_fields)
    entities = EntityStore.from_file(settings.pokemon_path)
    entities.get(args.pokemon_id)
    overrides = _overrides(settings)
    issue = _validator(settings, entities, overrides).find_open_issue(args.pokemon_id, args.field)
    overrides.accept_issue(args.pokemon_id, issue_signature(issue))
    overrides.save_accepted(entities.names())
    print(f"✅ Issue accepted for {entities.name_of(args.pokemon_id)}, field: {args.field} ({issue.severity.value})")
    return 0


def cmd_remove_accepted(args: argparse.Namespace, settings: Settings) -> int:
    require_field(args.field, settings.required_fields)
    entities = EntityStore.from_file(settings.pokemon_path)
    entities.get(args.pokemon_id)
    overrides = _overrides(settings)
    removed = overrides.remove_accepted_for_field(args.pokemon_id, args.field)
    if removed:
        overrides.save_accepted(entities.names())
    print(f"✅ Removed {removed} accepted issue(s) for {entities.name_of(args.pokemon_id)}, field: {args.field}")
    return 0


def cmd_list_accepted(args: argparse.Namespace, settings: Settings) -> int:
    print(format_accepted(_overrides(settings), _names(settings)))
    return 0


def cmd_set_in_game(args: argparse.Namespace, settings: Settings) -> int:
    require_field(args.field, settings.required_fields)
    entities = EntityStore.from_file(settings.pokemon_path)
    entities.get(args.pokemon_id)
    overrides = _overrides(settings)
    overrides.set_in_game_validated(args.pokemon_id, args.field)
    overrides.save_in_game(entities.names())
    print(f'✅ {entities.name_of(args.pokemon_id)} field "{args.field}" marked as in-game validated')
    return 0


def cmd_remove_in_game(args: argparse.Namespace, settings: Settings) -> int:
    require_field(args.field, settings.required_fields)
    entities = EntityStore.from_file(settings.pokemon_path)
    entities.get(args.pokemon_id)
    overrides = _overrides(settings)
    if overrides.remove_in_game_validated(args.pokemon_id, args.field):
        overrides.save_in_game(entities.names())
    print(f'✅ In-game validation removed for {entities.name_of(args.pokemon_id)} field "{args.field}"')
    return 0


def cmd_list_in_game(args: argparse.Namespace, settings: Settings) -> int:
    print(format_in_game(_overrides(settings), _names(settings)))
    return 0


def cmd_generate_report(args: argparse.Namespace, settings: Settings) -> int:
    store = _load_statistics(settings)
    if store is None:
        return 1
    if args.output:
        output = Path(args.output)
    else:
        stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        output = settings.reports_dir / f"validation-report-{stamp}.{args.format}"
    if args.format == "json":
        export_results_json(store, output)
    else:
        export_statistics_csv(store, output, settings.required_fields)
    print(f"📋 Report saved to: {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dexvalidator",
        description="Validate pokemon-base.json against Bulbapedia and Serebii",
    )
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the data files")
    parser.add_argument("--config", type=Path, default=None, help="JSON configuration file")
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between Pokemon")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Run validation against external sources")
    validate.add_argument("-p", "--pokemon", default=None, help="Validate a specific Pokemon (name or id)")
    validate.add_argument("-l", "--limit", type=int, default=None, help="Limit number of Pokemon to validate")
    validate.add_argument("-t", "--test", action="store_true", help="Validate only the first 3 Pokemon")
    validate.set_defaults(handler=cmd_validate)

    for name, handler, help_text in (
        ("stats", cmd_stats, "Show validation statistics"),
        ("field-status", cmd_field_status, "Show field validation status"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("pokemon_id", nargs="?", default=None)
        cmd.set_defaults(handler=handler)

    for name, handler, help_text in (
        ("accept-issue", cmd_accept_issue, "Accept the current issue of a field"),
        ("remove-accepted", cmd_remove_accepted, "Remove accepted issues of a field"),
        ("set-in-game-validated", cmd_set_in_game, "Mark a field as validated in-game"),
        ("remove-in-game-validated", cmd_remove_in_game, "Remove in-game validation of a field"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("pokemon_id")
        cmd.add_argument("field")
        cmd.set_defaults(handler=handler)

    for name, handler, help_text in (
        ("list-accepted", cmd_list_accepted, "List accepted issues"),
        ("list-in-game-validated", cmd_list_in_game, "List in-game validated fields"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.set_defaults(handler=handler)

    report = sub.add_parser("generate-report", help="Export persisted statistics")
    report.add_argument("-o", "--output", default=None, help="Output file path")
    report.add_argument("-f", "--format", choices=["csv", "json"], default="csv", help="Report format")
    report.set_defaults(handler=cmd_generate_report)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        settings = build_settings(
            load_config(args.config),
            data_dir=args.data_dir,
            delay=args.delay,
            timeout=args.timeout,
        )
        return args.handler(args, settings)
    except DexValidatorError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"❌ Missing file: {e.filename}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
