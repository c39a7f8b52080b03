"""Completeness scoring: 75% external accuracy + 25% in-game validation."""

import logging
from typing import Dict, List, Optional, Sequence

from .fields import REQUIRED_FIELDS
from .models import FieldStatus, FieldValidation, Issue, ScoreCard, Severity
from .overrides import OverrideStore, issue_signature

logger = logging.getLogger(__name__)

# Maximum share of the score reachable through each channel, in percent.
EXTERNAL_WEIGHT = 75
IN_GAME_WEIGHT = 25


def apply_accepted_issues(pokemon_id: str, issues: List[Issue], overrides: OverrideStore) -> int:
    """Flag issues whose signature was accepted; return how many were."""
    accepted = 0
    records = overrides.accepted.get(pokemon_id, {})
    for issue in issues:
        accepted_at = records.get(issue_signature(issue))
        if accepted_at is None:
            issue.accepted = False
            issue.accepted_at = None
            continue
        issue.accepted = True
        issue.accepted_at = accepted_at
        accepted += 1
    return accepted


def determine_field_status(
    issue: Optional[Issue], accepted: bool, in_game_validated: bool
) -> FieldStatus:
    if issue is None:
        return FieldStatus.accurate
    if accepted:
        return FieldStatus.accepted_override
    if issue.severity == Severity.no_reference and in_game_validated:
        return FieldStatus.in_game_validated
    return FieldStatus(issue.severity.value)


def round_half_up(numerator: int, denominator: int) -> int:
    """Round ``numerator / denominator`` to the nearest int, halves upward."""
    return (2 * numerator + denominator) // (2 * denominator)


def score_entity(
    pokemon_id: str,
    issues: Sequence[Issue],
    overrides: OverrideStore,
    fields: Sequence[str] = REQUIRED_FIELDS,
) -> ScoreCard:
    """Score one Pokemon from its comparator issues and the override store.

    Accepted issues count as accurate toward the external share.  In-game
    validation adds its own share independently of external accuracy, so a
    field may contribute to both.
    """

    fields = list(fields)
    total = len(fields)
    by_field: Dict[str, Issue] = {}
    for issue in issues:
        by_field.setdefault(issue.field, issue)

    detail: Dict[str, FieldValidation] = {}
    accurate = 0
    in_game = 0
    for field in fields:
        issue = by_field.get(field)
        accepted = issue is not None and overrides.is_accepted(pokemon_id, issue)
        validated = overrides.is_in_game_validated(pokemon_id, field)
        if issue is None or accepted:
            accurate += 1
        if validated:
            in_game += 1
        detail[field] = FieldValidation(
            accurate=issue is None,
            in_game_validated=validated,
            has_accepted_issue=accepted,
            status=determine_field_status(issue, accepted, validated),
        )

    if total == 0:
        logger.warning("No fields configured for scoring #%s", pokemon_id)
        return ScoreCard(
            external_accuracy=0.0,
            in_game_validation=0.0,
            completeness=0,
            accurate_fields=0,
            in_game_fields=0,
            total_fields=0,
            field_detail=detail,
        )

    return ScoreCard(
        external_accuracy=accurate * EXTERNAL_WEIGHT / total,
        in_game_validation=in_game * IN_GAME_WEIGHT / total,
        completeness=round_half_up(accurate * EXTERNAL_WEIGHT + in_game * IN_GAME_WEIGHT, total),
        accurate_fields=accurate,
        in_game_fields=in_game,
        total_fields=total,
        field_detail=detail,
    )
