import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import EntityNotFoundError, PersistedStateError

logger = logging.getLogger(__name__)


class EntityStore:
    """Pokemon records loaded wholesale from ``pokemon-base.json``."""

    def __init__(self, path: Path, pokemon: Optional[Mapping[str, Dict[str, Any]]] = None):
        self.path = Path(path)
        self.pokemon: Dict[str, Dict[str, Any]] = dict(pokemon or {})

    @classmethod
    def from_file(cls, path: Path) -> "EntityStore":
        store = cls(path)
        store.load()
        return store

    def load(self) -> None:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse Pokemon data %s: %s", self.path, exc)
            raise PersistedStateError(self.path, str(exc)) from exc
        pokemon = data.get("pokemon") if isinstance(data, dict) else None
        if not isinstance(pokemon, dict):
            raise PersistedStateError(self.path, 'missing "pokemon" object')
        self.pokemon = {str(k): v for k, v in pokemon.items()}
        logger.info("Loaded %d Pokemon from %s", len(self.pokemon), self.path)

    def __contains__(self, pokemon_id: str) -> bool:
        return pokemon_id in self.pokemon

    def __len__(self) -> int:
        return len(self.pokemon)

    def get(self, pokemon_id: str) -> Dict[str, Any]:
        try:
            return self.pokemon[pokemon_id]
        except KeyError:
            raise EntityNotFoundError(pokemon_id) from None

    def name_of(self, pokemon_id: str) -> str:
        pokemon = self.pokemon.get(pokemon_id) or {}
        name = pokemon.get("name")
        name = name.strip() if isinstance(name, str) else ""
        return name or f"Pokemon #{pokemon_id}"

    def names(self) -> Dict[str, str]:
        return {pid: self.name_of(pid) for pid in self.pokemon}

    def dex_ids(self) -> Dict[str, str]:
        """Lower-cased Pokemon name -> id, for resolving evolution targets."""
        return {self.pokemon[pid]["name"].strip().lower(): pid for pid in self.needing_validation()}

    def needing_validation(self) -> List[str]:
        """IDs of Pokemon with a non-blank name, in file order."""
        return [
            pid
            for pid, pokemon in self.pokemon.items()
            if isinstance(pokemon.get("name"), str) and pokemon["name"].strip()
        ]
