"""Accessor table for the Pokemon fields checked by the validator.

Every field that can be validated is enumerated once in :data:`FIELD_ACCESSORS`
together with the getter used to read it from a ``pokemon-base.json`` record.
Looking up a field that is not in the table raises
:class:`~dexvalidator.exceptions.UnknownFieldError` instead of quietly
returning ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .exceptions import UnknownFieldError

Getter = Callable[[Mapping[str, Any]], Any]


def _key(name: str) -> Getter:
    return lambda pokemon: pokemon.get(name)


def _nested(name: str, unit: str) -> Getter:
    def getter(pokemon: Mapping[str, Any]) -> Any:
        value = pokemon.get(name)
        if isinstance(value, Mapping):
            return value.get(unit)
        return None

    return getter


@dataclass(frozen=True)
class FieldAccessor:
    name: str
    getter: Getter
    description: str = ""

    def read(self, pokemon: Mapping[str, Any]) -> Any:
        return self.getter(pokemon)


FIELD_ACCESSORS: Dict[str, FieldAccessor] = {
    accessor.name: accessor
    for accessor in (
        FieldAccessor("name", _key("name"), "Display name"),
        FieldAccessor("species", _key("species"), "Species category"),
        FieldAccessor("types", _key("types"), "Ordered list of types"),
        FieldAccessor("baseStats", _key("baseStats"), "Base stat mapping"),
        FieldAccessor("height", _nested("height", "meters"), "Height in meters"),
        FieldAccessor("weight", _nested("weight", "kg"), "Weight in kilograms"),
        FieldAccessor("growthRate", _key("growthRate"), "Experience growth rate"),
        FieldAccessor("baseExp", _key("baseExp"), "Base experience yield"),
        FieldAccessor("catchRate", _key("catchRate"), "Catch rate"),
        FieldAccessor("effortValues", _key("effortValues"), "EV yield"),
        FieldAccessor("evolutionChain", _key("evolutionChain"), "Evolution steps"),
        FieldAccessor("learnset", _key("learnset"), "Level-up moves"),
        FieldAccessor("tmCompatibility", _key("tmCompatibility"), "TM/HM list"),
        FieldAccessor("pokedexEntry", _key("pokedexEntry"), "Pokedex text"),
    )
}

# Fields every Pokemon is scored on unless configuration says otherwise.
REQUIRED_FIELDS: List[str] = list(FIELD_ACCESSORS)


def get_accessor(field: str) -> FieldAccessor:
    try:
        return FIELD_ACCESSORS[field]
    except KeyError:
        raise UnknownFieldError(field, FIELD_ACCESSORS) from None


def get_field_value(pokemon: Mapping[str, Any], field: str) -> Any:
    """Return the value of *field* from a Pokemon record."""
    return get_accessor(field).read(pokemon)


def require_field(field: str, fields: Optional[Sequence[str]] = None) -> str:
    """Return *field* unchanged or raise ``UnknownFieldError``."""
    valid = list(fields) if fields is not None else REQUIRED_FIELDS
    if field not in valid:
        raise UnknownFieldError(field, valid)
    return field


def validate_field_list(fields: Iterable[str]) -> List[str]:
    """Check a configured field list against the accessor table."""
    result: List[str] = []
    for field in fields:
        get_accessor(field)
        if field not in result:
            result.append(field)
    return result
