import json

import pytest

from dexvalidator.exceptions import PersistedStateError
from dexvalidator.fields import REQUIRED_FIELDS
from dexvalidator.models import Issue, Severity
from dexvalidator.overrides import (
    IN_GAME_SCHEMA_VERSION,
    OverrideStore,
    issue_signature,
    migrate_in_game_payload,
    signature_field,
)


def make_issue(current, severity=Severity.partial_match, field="evolutionChain"):
    return Issue(field=field, severity=severity, message="test", current=current)


def test_signature_ignores_mapping_key_order():
    a = make_issue({"hp": 1, "attack": 2}, field="effortValues")
    b = make_issue({"attack": 2, "hp": 1}, field="effortValues")
    assert issue_signature(a) == issue_signature(b)


def test_signature_depends_on_value_and_severity():
    base = make_issue([{"level": 16}])
    assert issue_signature(base) != issue_signature(make_issue([{"level": 32}]))
    assert issue_signature(base) != issue_signature(
        make_issue([{"level": 16}], severity=Severity.inaccurate)
    )
    assert signature_field(issue_signature(base)) == "evolutionChain"


def test_accepted_issue_stops_applying_when_value_changes(overrides):
    issue = make_issue([{"level": 16}])
    overrides.accept_issue("001", issue_signature(issue))
    assert overrides.is_accepted("001", issue)
    assert not overrides.is_accepted("001", make_issue([{"level": 18}]))
    assert not overrides.is_accepted("002", issue)


def test_accept_is_idempotent(overrides):
    signature = issue_signature(make_issue(1))
    overrides.accept_issue("001", signature)
    first = overrides.accepted["001"][signature]
    overrides.accept_issue("001", signature)
    assert overrides.accepted_count() == 1
    assert overrides.accepted["001"][signature] == first


def test_remove_accepted(overrides):
    signature = issue_signature(make_issue(1))
    overrides.accept_issue("001", signature)
    assert overrides.remove_accepted_issue("001", signature)
    assert not overrides.remove_accepted_issue("001", signature)
    assert "001" not in overrides.accepted


def test_remove_accepted_for_field(overrides):
    overrides.accept_issue("001", issue_signature(make_issue(1)))
    overrides.accept_issue("001", issue_signature(make_issue(2)))
    overrides.accept_issue("001", issue_signature(make_issue(3, field="types")))
    assert overrides.remove_accepted_for_field("001", "evolutionChain") == 2
    assert [signature_field(s) for s in overrides.accepted_signatures("001")] == ["types"]
    assert overrides.remove_accepted_for_field("001", "evolutionChain") == 0


def test_in_game_validation_round_trip(overrides):
    overrides.set_in_game_validated("001", "baseStats")
    overrides.set_in_game_validated("001", "baseStats")
    overrides.set_in_game_validated("001", "types")
    overrides.save({"001": "Bulbasaur"})

    data = json.loads(overrides.in_game_path.read_text(encoding="utf-8"))
    assert data["metadata"]["schemaVersion"] == IN_GAME_SCHEMA_VERSION
    assert data["validated"][0]["fields"] == ["types", "baseStats"]
    assert data["validated"][0]["name"] == "Bulbasaur"

    reloaded = OverrideStore(overrides.accepted_path, overrides.in_game_path).load()
    assert reloaded.in_game_fields("001") == {"types", "baseStats"}
    assert reloaded.remove_in_game_validated("001", "types")
    assert not reloaded.remove_in_game_validated("001", "types")
    assert reloaded.is_in_game_validated("001", "baseStats")


def test_accepted_at_survives_reload(overrides):
    signature = issue_signature(make_issue(1))
    overrides.accept_issue("001", signature)
    accepted_at = overrides.accepted["001"][signature]
    overrides.save_accepted({"001": "Bulbasaur"})

    data = json.loads(overrides.accepted_path.read_text(encoding="utf-8"))
    assert data["001"]["name"] == "Bulbasaur"
    assert data["001"]["acceptedIssues"] == [{"signature": signature, "acceptedAt": accepted_at}]

    reloaded = OverrideStore(overrides.accepted_path, overrides.in_game_path)
    assert reloaded.load_accepted()
    assert reloaded.accepted == {"001": {signature: accepted_at}}


def test_missing_files_are_empty(overrides):
    assert not overrides.load_accepted()
    assert not overrides.load_in_game()
    assert overrides.accepted == {}
    assert overrides.in_game == {}


def test_malformed_file_raises(overrides):
    overrides.accepted_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistedStateError):
        overrides.load_accepted()


def test_unexpected_layout_raises(overrides):
    overrides.in_game_path.write_text(json.dumps({"validated": [{"name": "x"}]}), encoding="utf-8")
    with pytest.raises(PersistedStateError):
        overrides.load_in_game()


def test_legacy_entry_without_fields_means_all_fields():
    payload = {"validated": [{"id": "001", "name": "Bulbasaur"}, {"id": "002", "fields": ["types"]}]}
    migrated = migrate_in_game_payload(payload)
    assert migrated["metadata"]["schemaVersion"] == IN_GAME_SCHEMA_VERSION
    assert migrated["validated"][0]["fields"] == REQUIRED_FIELDS
    assert migrated["validated"][1]["fields"] == ["types"]


def test_legacy_file_is_upgraded_on_load(overrides):
    overrides.in_game_path.write_text(
        json.dumps({"metadata": {"lastUpdated": "2024-01-01"}, "validated": [{"id": "001"}]}),
        encoding="utf-8",
    )
    overrides.load_in_game()
    assert overrides.in_game_fields("001") == set(REQUIRED_FIELDS)


def test_upgraded_legacy_file_is_saved_with_every_field(overrides):
    overrides.in_game_path.write_text(json.dumps({"validated": [{"id": "001"}]}), encoding="utf-8")
    overrides.load_in_game()
    overrides.set_in_game_validated("002", "types")
    overrides.save_in_game({"001": "Bulbasaur"})
    saved = json.loads(overrides.in_game_path.read_text(encoding="utf-8"))
    assert saved["metadata"]["schemaVersion"] == IN_GAME_SCHEMA_VERSION
    assert saved["validated"][0]["fields"] == REQUIRED_FIELDS
    assert saved["validated"][1] == {
        "id": "002",
        "name": "Pokemon #002",
        "fields": ["types"],
        "lastUpdated": saved["metadata"]["lastUpdated"],
    }
