import pytest

from dexvalidator.fields import REQUIRED_FIELDS
from dexvalidator.models import FieldStatus, Issue, Severity
from dexvalidator.overrides import issue_signature
from dexvalidator.scorer import (
    apply_accepted_issues,
    determine_field_status,
    round_half_up,
    score_entity,
)


def issue(field, severity, current=None):
    return Issue(field=field, severity=severity, message="test", current=current)


def test_all_accurate_scores_external_share_only(overrides):
    card = score_entity("001", [], overrides)
    assert card.external_accuracy == 75
    assert card.in_game_validation == 0
    assert card.completeness == 75
    assert all(d.status == FieldStatus.accurate for d in card.field_detail.values())


def test_in_game_validation_adds_its_own_share(overrides):
    issues = [issue("baseStats", Severity.no_reference)]
    before = score_entity("001", issues, overrides)
    overrides.set_in_game_validated("001", "baseStats")
    after = score_entity("001", issues, overrides)

    assert after.external_accuracy == before.external_accuracy
    assert after.in_game_validation == pytest.approx(25 / 14)
    assert after.completeness == round_half_up(13 * 75 + 25, 14)
    assert after.field_detail["baseStats"].status == FieldStatus.in_game_validated


def test_accepted_issue_counts_as_accurate(overrides):
    issues = [issue("evolutionChain", Severity.partial_match, [{"level": 16}])]
    assert score_entity("001", issues, overrides).completeness == round_half_up(13 * 75, 14)

    overrides.accept_issue("001", issue_signature(issues[0]))
    card = score_entity("001", issues, overrides)
    assert card.completeness == 75
    detail = card.field_detail["evolutionChain"]
    assert detail.status == FieldStatus.accepted_override
    assert detail.has_accepted_issue
    assert not detail.accurate


def test_accepted_takes_precedence_over_in_game(overrides):
    issues = [issue("types", Severity.no_reference, ["Grass"])]
    overrides.accept_issue("001", issue_signature(issues[0]))
    overrides.set_in_game_validated("001", "types")
    card = score_entity("001", issues, overrides)
    assert card.field_detail["types"].status == FieldStatus.accepted_override
    assert card.completeness == round_half_up(14 * 75 + 25, 14)


def test_in_game_does_not_mask_real_inaccuracy(overrides):
    issues = [issue("catchRate", Severity.inaccurate, 40)]
    overrides.set_in_game_validated("001", "catchRate")
    card = score_entity("001", issues, overrides)
    assert card.field_detail["catchRate"].status == FieldStatus.inaccurate
    assert card.field_detail["catchRate"].in_game_validated


def test_in_game_outside_configured_fields_is_ignored(overrides):
    overrides.set_in_game_validated("001", "learnset")
    card = score_entity("001", [], overrides, ["name", "types"])
    assert card.in_game_fields == 0
    assert card.total_fields == 2


def test_fully_validated_is_one_hundred(overrides):
    for field in REQUIRED_FIELDS:
        overrides.set_in_game_validated("001", field)
    card = score_entity("001", [], overrides)
    assert card.completeness == 100


def test_scores_stay_in_bounds(overrides):
    issues = [issue(field, Severity.source_conflict, 1) for field in REQUIRED_FIELDS]
    card = score_entity("001", issues, overrides)
    assert card.completeness == 0
    assert 0 <= card.external_accuracy <= 75
    assert 0 <= card.in_game_validation <= 25


def test_no_fields_scores_zero(overrides):
    assert score_entity("001", [], overrides, []).completeness == 0


@pytest.mark.parametrize(
    "numerator, denominator, expected",
    [(1, 2, 1), (3, 2, 2), (5, 2, 3), (675, 14, 48), (1075, 14, 77), (0, 14, 0)],
)
def test_round_half_up(numerator, denominator, expected):
    assert round_half_up(numerator, denominator) == expected


def test_determine_field_status():
    assert determine_field_status(None, False, True) == FieldStatus.accurate
    no_ref = issue("types", Severity.no_reference)
    assert determine_field_status(no_ref, False, False) == FieldStatus.no_reference
    assert determine_field_status(no_ref, False, True) == FieldStatus.in_game_validated
    assert determine_field_status(no_ref, True, True) == FieldStatus.accepted_override


def test_apply_accepted_issues_flags_matches(overrides):
    accepted = issue("types", Severity.inaccurate, ["Fire"])
    other = issue("name", Severity.inaccurate, "Bulba")
    overrides.accept_issue("001", issue_signature(accepted))
    assert apply_accepted_issues("001", [accepted, other], overrides) == 1
    assert accepted.accepted and accepted.accepted_at
    assert not other.accepted
