"""Field-by-field reconciliation against external sources."""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .fields import FIELD_ACCESSORS, REQUIRED_FIELDS
from .models import ExternalData, Issue, Severity, Suggestion

logger = logging.getLogger(__name__)

SourceValue = Tuple[str, Any]


def values_equal(current: Any, reference: Any) -> bool:
    """Exact deep equality.

    Lists are compared element by element in order.  Mappings must have the
    same keys with equal values; key order is irrelevant.  Booleans only
    equal booleans so ``True`` never matches ``1``.
    """

    if isinstance(current, bool) or isinstance(reference, bool):
        return type(current) is type(reference) and current == reference
    if isinstance(current, Mapping) or isinstance(reference, Mapping):
        if not (isinstance(current, Mapping) and isinstance(reference, Mapping)):
            return False
        if set(current) != set(reference):
            return False
        return all(values_equal(current[k], reference[k]) for k in current)
    if isinstance(current, (list, tuple)) or isinstance(reference, (list, tuple)):
        if not (isinstance(current, (list, tuple)) and isinstance(reference, (list, tuple))):
            return False
        if len(current) != len(reference):
            return False
        return all(values_equal(a, b) for a, b in zip(current, reference))
    return current == reference


def _wrong_value_issue(field: str, current: Any, expected: Any, source: str) -> Issue:
    if current is None:
        return Issue(
            field=field,
            severity=Severity.missing_attribute,
            message=f"{field} is missing but {source} has a value",
            current=current,
            expected=expected,
            source=source,
        )
    return Issue(
        field=field,
        severity=Severity.inaccurate,
        message=f"{field} does not match {source}",
        current=current,
        expected=expected,
        source=source,
    )


def compare_field(field: str, current: Any, sources: Sequence[SourceValue]) -> Optional[Issue]:
    """Classify *field* against up to two ``(source, value)`` pairs.

    More than two pairs raise :class:`ValueError`.

    Returns ``None`` when the current value is accurate, otherwise an
    :class:`~dexvalidator.models.Issue` describing the discrepancy.
    """

    sources = list(sources)
    if len(sources) > 2:
        raise ValueError(
            f"{field}: expected at most two sources, got {len(sources)} "
            f"({', '.join(name for name, _ in sources)})"
        )
    if not sources:
        return Issue(
            field=field,
            severity=Severity.no_reference,
            message=f"{field} has no external reference data",
            current=current,
        )

    if len(sources) == 1:
        name, value = sources[0]
        if values_equal(current, value):
            return None
        return _wrong_value_issue(field, current, value, name)

    (first_name, first_value), (second_name, second_value) = sources
    matches_first = values_equal(current, first_value)
    matches_second = values_equal(current, second_value)

    if matches_first and matches_second:
        return None

    if matches_first or matches_second:
        matching, conflicting, conflicting_value = (
            (first_name, second_name, second_value)
            if matches_first
            else (second_name, first_name, first_value)
        )
        return Issue(
            field=field,
            severity=Severity.partial_match,
            message=f"{field} matches {matching} but conflicts with {conflicting}",
            current=current,
            matching_source=matching,
            matching_value=current,
            conflicting_source=conflicting,
            conflicting_value=conflicting_value,
        )

    if values_equal(first_value, second_value):
        return _wrong_value_issue(
            field, current, first_value, f"{first_name} & {second_name}"
        )

    return Issue(
        field=field,
        severity=Severity.source_conflict,
        message=f"{field} conflicts - external sources disagree and current value matches neither",
        current=current,
        source_values={first_name: first_value, second_name: second_value},
    )


def suggestion_for(issue: Issue) -> Optional[Suggestion]:
    """Correction hint for issues where the sources agree on a value."""
    if issue.severity not in (Severity.inaccurate, Severity.missing_attribute):
        return None
    source = issue.source or ""
    return Suggestion(
        field=issue.field,
        value=issue.expected,
        source="Both sources" if " & " in source else source,
    )


def compare_entity(
    pokemon: Mapping[str, Any],
    external: ExternalData,
    fields: Optional[Sequence[str]] = None,
) -> Tuple[List[Issue], List[Suggestion]]:
    """Compare every field of *pokemon* with the external data."""
    issues: List[Issue] = []
    suggestions: List[Suggestion] = []
    for field in fields if fields is not None else REQUIRED_FIELDS:
        accessor = FIELD_ACCESSORS.get(field)
        current = accessor.read(pokemon) if accessor else pokemon.get(field)
        issue = compare_field(field, current, external.source_values(field))
        if issue is None:
            continue
        logger.debug("%s: %s (%s)", external.entity_name, issue.severity.value, field)
        issues.append(issue)
        suggestion = suggestion_for(issue)
        if suggestion is not None:
            suggestions.append(suggestion)
    return issues, suggestions
