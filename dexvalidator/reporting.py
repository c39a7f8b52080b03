import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .fields import REQUIRED_FIELDS
from .models import (
    DataSourceReport,
    FieldStatus,
    ValidationPhase,
    ValidationResult,
    ValidationStatistics,
)
from .overrides import OverrideStore, signature_field
from .statistics import StatisticsStore

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    FieldStatus.accurate: "Accurate",
    FieldStatus.accepted_override: "Accepted Override",
    FieldStatus.in_game_validated: "In-Game Validated",
    FieldStatus.missing_attribute: "Missing Attribute",
    FieldStatus.inaccurate: "Inaccurate",
    FieldStatus.no_reference: "No Reference Data",
    FieldStatus.partial_match: "Partial Match",
    FieldStatus.source_conflict: "Source Conflict",
}

STATUS_MESSAGES = {
    FieldStatus.missing_attribute: "{field} is completely missing from our data",
    FieldStatus.inaccurate: "{field} does not match external sources",
    FieldStatus.no_reference: "{field} has no external reference data",
    FieldStatus.partial_match: "{field} matches one source but conflicts with another",
    FieldStatus.source_conflict: "{field} conflicts - external sources disagree",
}


def _pct(part: int, total: int) -> int:
    return round(100 * part / total) if total else 0


def report_metrics(metrics: Dict[str, Any]) -> None:
    total = metrics.get("requests", 0)
    errors = metrics.get("errors", 0)
    avg_latency = sum(metrics.get("latencies", [])) / total if total else 0
    success_rate = 100.0 * (1 - errors / total) if total else 0
    logger.info(
        "Request metrics: total=%d errors=%d success_rate=%.1f%% avg_latency=%.2fs",
        total,
        errors,
        success_rate,
        avg_latency,
    )


def format_source_quality(reports: Sequence[DataSourceReport]) -> str:
    lines = ["=" * 60, "DATA SOURCE QUALITY", "=" * 60]
    for report in reports:
        status = "✓ SUCCESS" if report.success else "✗ FAILED"
        lines.append(f"{report.source_name}: {status}")
        lines.append(f"  - Pokemon fetched: {report.pokemon_count}")
        if report.error_message:
            lines.append(f"  - Last error: {report.error_message}")
    return "\n".join(lines)


def summarize_results(results: Sequence[ValidationResult]) -> str:
    """Text summary printed after a validation run."""
    total = len(results)
    severities: Counter = Counter(
        issue.severity.value for r in results for issue in r.issues if not issue.accepted
    )
    errors = sum(1 for r in results if r.status == ValidationPhase.error)
    lines = [
        "VALIDATION SUMMARY",
        f"  Pokemon validated: {total}",
        f"  Fully validated (100%): {sum(1 for r in results if r.completeness >= 100)}",
        f"  Highly validated (>=75%): {sum(1 for r in results if r.completeness >= 75)}",
        f"  Below 75%: {sum(1 for r in results if r.completeness < 75)}",
        f"  Open issues: {sum(r.total_issues for r in results)}",
        f"  Accepted issues: {sum(r.accepted_issues for r in results)}",
    ]
    if errors:
        lines.append(f"  Fetch errors: {errors}")
    for severity, count in sorted(severities.items()):
        lines.append(f"    {severity}: {count}")
    for r in results:
        lines.append(f"{r.id} {r.name}: {r.completeness}% ({r.status.value})")
    return "\n".join(lines)


def format_stats(
    store: StatisticsStore,
    names: Mapping[str, str],
    pokemon_id: Optional[str] = None,
) -> str:
    if pokemon_id:
        stats = store.get(pokemon_id)
        if stats is None:
            return f"No validation statistics found for Pokemon #{pokemon_id}"
        name = names.get(pokemon_id) or stats.name
        lines = [
            f"{name} (#{pokemon_id})",
            f"   Overall Completeness: {stats.completeness}%",
            f"   External Accuracy: {stats.external_accuracy:.1f}% (75% max)",
            f"   In-Game Validation: {stats.in_game_validation:.1f}% (25% max)",
            f"   Total Issues: {stats.total_issues}",
            f"   Accepted Issues: {stats.accepted_issues}",
            f"   Last Validated: {stats.last_validated}",
        ]
        if stats.error:
            lines.append(f"   Error: {stats.error}")
        return "\n".join(lines)

    entries = store.ranked()
    lines = [
        f"Summary for {len(entries)} Pokemon:",
        f"   Average Completeness: {round(store.average_completeness())}%",
        f"   Total Issues: {sum(s.total_issues for s in entries)}",
        f"   Accepted Issues: {sum(s.accepted_issues for s in entries)}",
        "",
        "Individual Pokemon:",
    ]
    for stats in entries:
        name = names.get(stats.id) or stats.name
        lines.append(f"   {name} (#{stats.id}): {stats.completeness}% complete")
    return "\n".join(lines)


def format_field_status(
    store: StatisticsStore,
    names: Mapping[str, str],
    pokemon_id: Optional[str] = None,
) -> str:
    if pokemon_id:
        stats = store.get(pokemon_id)
        if stats is None:
            return f"No validation statistics found for Pokemon #{pokemon_id}"
        name = names.get(pokemon_id) or stats.name
        lines = [f"{name} (#{pokemon_id}) - Field Status:", f"Overall: {stats.completeness}% complete", ""]
        for field, info in stats.field_validation.items():
            lines.append(f"{field}: {STATUS_LABELS[info.status]}")
            if info.in_game_validated:
                lines.append("     In-game validated")
            if info.has_accepted_issue:
                lines.append("     Has accepted override")
        return "\n".join(lines)

    counts = store.field_status_counts()
    total = counts["total"]
    lines = [f"Field Status Summary ({total} total fields):"]
    for status, label in STATUS_LABELS.items():
        count = counts.get(status.value, 0)
        lines.append(f"   {label}: {count} ({_pct(count, total)}%)")
    return "\n".join(lines)


def format_accepted(overrides: OverrideStore, names: Mapping[str, str]) -> str:
    if not overrides.accepted:
        return "No accepted issues found."
    lines = []
    for pokemon_id, records in overrides.accepted.items():
        lines.append(f"{names.get(pokemon_id) or f'Pokemon #{pokemon_id}'} (#{pokemon_id}):")
        for signature, accepted_at in records.items():
            lines.append(f"   {signature_field(signature)} (accepted {accepted_at})")
    lines.append(
        f"Total: {overrides.accepted_count()} accepted issues across "
        f"{len(overrides.accepted)} Pokemon"
    )
    return "\n".join(lines)


def format_in_game(overrides: OverrideStore, names: Mapping[str, str]) -> str:
    if not overrides.in_game:
        return (
            "No Pokemon fields have been marked as in-game validated.\n"
            'Use "set-in-game-validated <pokemon-id> <field-name>" to mark a field.'
        )
    lines = []
    order = {field: i for i, field in enumerate(REQUIRED_FIELDS)}
    for pokemon_id, fields in overrides.in_game.items():
        lines.append(f"{names.get(pokemon_id) or f'Pokemon #{pokemon_id}'} (#{pokemon_id}):")
        for field in sorted(fields, key=lambda f: (order.get(f, len(order)), f)):
            lines.append(f"   {field}")
    lines.append(
        f"Total: {overrides.in_game_count()} fields validated across "
        f"{len(overrides.in_game)} Pokemon"
    )
    return "\n".join(lines)


def results_from_statistics(store: StatisticsStore) -> List[Dict[str, Any]]:
    """Rebuild report rows from the persisted snapshot without re-fetching."""
    rows = []
    for stats in sorted(store, key=lambda s: s.id):
        issues = [
            {
                "field": field,
                "severity": info.status.value,
                "message": STATUS_MESSAGES.get(info.status, "{field} has validation issues").format(field=field),
                "accepted": info.has_accepted_issue,
                "inGameValidated": info.in_game_validated,
            }
            for field, info in stats.field_validation.items()
            if info.status != FieldStatus.accurate
        ]
        rows.append(
            {
                "id": stats.id,
                "name": stats.name,
                "completeness": stats.completeness,
                "status": stats.status,
                "timestamp": stats.last_validated,
                "issues": issues,
            }
        )
    return rows


def statistics_frame(entries: Sequence[ValidationStatistics], fields: Sequence[str] = REQUIRED_FIELDS) -> pd.DataFrame:
    rows = []
    for stats in sorted(entries, key=lambda s: s.id):
        row = {
            "Id": stats.id,
            "Name": stats.name,
            "Status": stats.status,
            "Completeness": stats.completeness,
            "External_Accuracy": round(stats.external_accuracy, 2),
            "In_Game_Validation": round(stats.in_game_validation, 2),
            "Total_Issues": stats.total_issues,
            "Accepted_Issues": stats.accepted_issues,
            "Last_Validated": stats.last_validated,
        }
        for field in fields:
            info = stats.field_validation.get(field)
            row[f"{field}_Status"] = info.status.value if info else None
        rows.append(row)
    return pd.DataFrame(rows)


def export_statistics_csv(
    store: StatisticsStore,
    output: Path,
    fields: Sequence[str] = REQUIRED_FIELDS,
) -> Path:
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Exporting validation statistics to %s...", output)
    df = statistics_frame(list(store), fields)
    df.to_csv(
        output,
        index=False,
        sep=";",
        float_format="%.2f",
        decimal=",",
        encoding="utf-8",
    )
    logger.info("Successfully exported %d Pokemon to %s", len(df), output)
    return output


def export_results_json(store: StatisticsStore, output: Path) -> Path:
    """Write report rows rebuilt from the snapshot for an external renderer."""
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    rows = results_from_statistics(store)
    output.write_text(json.dumps({"results": rows}, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Exported report data for %d Pokemon to %s", len(rows), output)
    return output
