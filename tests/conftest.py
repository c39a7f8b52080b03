import json
from typing import Dict, List, Union

import pytest

from dexvalidator.models import ExternalData, SourceData
from dexvalidator.overrides import OverrideStore


BULBASAUR = {
    "name": "Bulbasaur",
    "species": "Seed Pokémon",
    "types": ["Grass", "Poison"],
    "baseStats": {
        "hp": 45,
        "attack": 49,
        "defense": 49,
        "special": 65,
        "speed": 45,
    },
    "height": {"meters": 0.7, "feet": "2'04\""},
    "weight": {"kg": 6.9, "pounds": 15.2},
    "growthRate": "Medium Slow",
    "baseExp": 64,
    "catchRate": 45,
}

# Fields Bulbasaur has no reference data for in the external sources below.
UNREFERENCED = ["effortValues", "evolutionChain", "learnset", "tmCompatibility", "pokedexEntry"]


def bulbasaur_sources() -> List[SourceData]:
    bulbapedia = {
        "name": "Bulbasaur",
        "species": "Seed Pokémon",
        "types": ["Grass", "Poison"],
        "baseStats": dict(BULBASAUR["baseStats"]),
        "height": 0.7,
        "weight": 6.9,
        "growthRate": "Medium Slow",
        "baseExp": 64,
        "catchRate": 45,
    }
    serebii = {k: v for k, v in bulbapedia.items() if k not in ("name", "baseExp")}
    return [
        SourceData(source="bulbapedia", data=bulbapedia),
        SourceData(source="serebii", data=serebii),
    ]


class FakeFetcher:
    """Fetcher returning canned external data, or raising a canned error."""

    def __init__(self, responses: Dict[str, Union[List[SourceData], Exception]] = None):
        self.responses = responses or {}
        self.calls = []

    def fetch(self, pokemon_id, pokemon_name):
        self.calls.append(pokemon_id)
        response = self.responses.get(pokemon_id, bulbasaur_sources())
        if isinstance(response, Exception):
            raise response
        sources = [s.model_copy(deep=True) for s in response]
        return ExternalData(entity_id=pokemon_id, entity_name=pokemon_name, sources=sources)


def pokedex() -> Dict[str, dict]:
    return {
        "001": dict(BULBASAUR),
        "002": {**BULBASAUR, "name": "Ivysaur"},
        "003": {**BULBASAUR, "name": "Venusaur"},
        "004": {**BULBASAUR, "name": "Charmander"},
        "005": {"name": "  "},
    }


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    shared = path / "shared"
    shared.mkdir(parents=True)
    (shared / "pokemon-base.json").write_text(
        json.dumps({"pokemon": pokedex()}), encoding="utf-8"
    )
    return path


@pytest.fixture
def overrides(tmp_path):
    return OverrideStore(tmp_path / "accepted-issues.json", tmp_path / "in-game-validated.json")
