import pytest
from pydantic import ValidationError

from dexvalidator.models import (
    DataSourceReport,
    ExternalData,
    FieldStatus,
    Issue,
    Severity,
    SourceData,
    ValidationPhase,
    ValidationResult,
    ValidationStatistics,
)


def test_issue_accepts_camel_case_aliases():
    issue = Issue.model_validate(
        {
            "field": "types",
            "severity": "partial_match",
            "message": "x",
            "matchingSource": "bulbapedia",
            "conflictingValue": ["Fire"],
        }
    )
    assert issue.severity == Severity.partial_match
    assert issue.matching_source == "bulbapedia"
    assert issue.model_dump(by_alias=True)["conflictingValue"] == ["Fire"]

    with pytest.raises(ValidationError):
        Issue(field="types", severity="wrong", message="x")


def test_source_data_distinguishes_absent_and_null():
    source = SourceData(source="serebii", data={"baseExp": None})
    assert source.has_value("baseExp")
    assert not source.has_value("catchRate")
    assert not SourceData(source="serebii", data=None).has_value("baseExp")


def test_external_data_source_values_keep_order():
    external = ExternalData(
        pokemonId="001",
        pokemonName="Bulbasaur",
        sources=[
            SourceData(source="bulbapedia", data={"catchRate": 45}),
            SourceData(source="serebii", data={"catchRate": 45, "height": 0.7}),
        ],
    )
    assert external.entity_id == "001"
    assert external.source_values("catchRate") == [("bulbapedia", 45), ("serebii", 45)]
    assert external.source_values("height") == [("serebii", 0.7)]


def test_statistics_from_result():
    result = ValidationResult(id="001", name="Bulbasaur", status=ValidationPhase.completed, completeness=80)
    stats = ValidationStatistics.from_result(result)
    assert stats.status == "completed"
    assert stats.last_validated == result.timestamp
    assert stats.model_dump(by_alias=True)["externalAccuracy"] == 0.0


def test_field_status_covers_severities():
    for severity in Severity:
        if severity != Severity.error:
            assert FieldStatus(severity.value)


def test_datasource_report_validation():
    with pytest.raises(ValidationError):
        DataSourceReport(source_name="serebii", pokemon_count="ten", success=True)
