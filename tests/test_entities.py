import json

import pytest

from dexvalidator.entities import EntityStore
from dexvalidator.exceptions import EntityNotFoundError, PersistedStateError


def test_from_file(data_dir):
    store = EntityStore.from_file(data_dir / "shared" / "pokemon-base.json")
    assert len(store) == 5
    assert "001" in store
    assert store.get("001")["name"] == "Bulbasaur"
    assert store.name_of("005") == "Pokemon #005"
    assert store.needing_validation() == ["001", "002", "003", "004"]


def test_blank_names_fall_back_to_dex_number(tmp_path):
    store = EntityStore(
        tmp_path / "pokemon-base.json",
        {"001": {"name": " Bulbasaur "}, "005": {"name": "  "}, "006": {"name": None}},
    )
    assert store.name_of("001") == "Bulbasaur"
    assert store.name_of("005") == "Pokemon #005"
    assert store.name_of("006") == "Pokemon #006"
    assert store.names()["005"] == "Pokemon #005"


def test_dex_ids_skip_blank_names(data_dir):
    store = EntityStore.from_file(data_dir / "shared" / "pokemon-base.json")
    ids = store.dex_ids()
    assert ids["bulbasaur"] == "001"
    assert "005" not in ids.values()


def test_unknown_entity(data_dir):
    store = EntityStore.from_file(data_dir / "shared" / "pokemon-base.json")
    with pytest.raises(EntityNotFoundError, match="Pokemon #999 not found"):
        store.get("999")


@pytest.mark.parametrize("content", ["{", json.dumps({"pokemon": []}), json.dumps([1])])
def test_malformed_file(tmp_path, content):
    path = tmp_path / "pokemon-base.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(PersistedStateError):
        EntityStore.from_file(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        EntityStore.from_file(tmp_path / "missing.json")
