"""
Tests for semantic analysis: domain, knowledge links, suggestions and quality scores.
"""
import pytest

from insight_engine.core.table import Table
from insight_engine.services.parser import parse_table
from insight_engine.services.schema_inference import infer_schema
from insight_engine.services.semantics import (
    analyze_semantics,
    classify_domain,
    detect_date_format,
    find_knowledge_links,
)


def _analyze(records, settings):
    table = Table.from_records(records)
    return analyze_semantics(infer_schema(table, settings), table, settings)


@pytest.mark.unit
def test_all_null_dataset_scores_zero(settings):
    """A dataset with no values has zero quality and completeness."""
    analysis = _analyze([{"a": None, "b": ""}, {"a": "null", "b": None}], settings)

    assert analysis.data_quality_score == 0
    assert analysis.completeness_score == 0


@pytest.mark.unit
def test_completeness_is_mean_non_null_share(settings):
    records = [{"a": 1, "b": 1}, {"a": 2, "b": None}, {"a": 3, "b": 3}, {"a": 4, "b": None}]

    assert _analyze(records, settings).completeness_score == 75.0


@pytest.mark.unit
def test_missing_values_lower_quality(settings):
    full = _analyze([{"price": i, "region": "North"} for i in range(20)], settings)
    sparse = _analyze(
        [{"price": i if i % 2 else None, "region": None if i % 3 else "North"} for i in range(20)],
        settings,
    )

    assert 0 <= sparse.data_quality_score < full.data_quality_score <= 100


@pytest.mark.unit
@pytest.mark.parametrize("columns,expected", [
    (["price", "revenue", "profit"], "finance"),
    (["patient_id", "diagnosis", "treatment"], "healthcare"),
    (["student", "grade", "school"], "education"),
    (["temperature", "emissions"], "environment"),
    (["foo", "bar"], "general"),
])
def test_classify_domain(columns, expected):
    table = Table.from_records([{c: "x" for c in columns}])

    assert classify_domain(infer_schema(table)) == expected


@pytest.mark.unit
def test_knowledge_links():
    """Country, city, economic and industry fields are linked to reference datasets."""
    table = Table.from_records([
        {"country": "France", "city": "Paris", "gdp_growth": 1.2, "industry": "Tech"},
        {"country": "Spain", "city": "Madrid", "gdp_growth": 2.1, "industry": "Retail"},
        {"country": "Italy", "city": "Rome", "gdp_growth": 0.7, "industry": "Energy"},
    ])
    links = {link.field: link for link in find_knowledge_links(infer_schema(table))}

    assert links["country"].external_source == "ISO 3166 Country Codes"
    assert links["country"].link_type == "exact_match"
    assert links["city"].external_source == "GeoNames Database"
    assert links["gdp_growth"].external_source == "World Bank Open Data"
    assert links["industry"].link_type == "suggested"


@pytest.mark.unit
def test_suggested_analyses_capped_and_ordered(sales_csv, settings):
    parsed = parse_table(sales_csv, "csv")
    analysis = analyze_semantics(infer_schema(parsed, settings), parsed, settings)

    assert len(analysis.suggested_analyses) == settings.max_suggested_analyses
    assert analysis.suggested_analyses[0] == "Time series analysis to identify trends and seasonality"
    assert "Cross-tabulation of date by region" in analysis.suggested_analyses
    assert "Correlation analysis between key metrics" in analysis.suggested_analyses


@pytest.mark.unit
@pytest.mark.parametrize("values,expected", [
    (["paris", "london", "rome"], 100.0),
    (["PARIS", "LONDON"], 100.0),
    (["Paris", "London"], 100.0),
    (["paris", "LONDON", "Rome"], 0.0),
])
def test_consistency_of_categorical_casing(values, expected, settings):
    assert _analyze([{"city": v} for v in values], settings).consistency_score == expected


@pytest.mark.unit
def test_consistency_of_date_formats(settings):
    mixed = _analyze([{"day": "2024-01-01"}, {"day": "02/01/2024"}], settings)
    uniform = _analyze([{"day": "2024-01-01"}, {"day": "2024-01-02"}], settings)

    assert mixed.consistency_score == 0.0
    assert uniform.consistency_score == 100.0


@pytest.mark.unit
def test_consistency_defaults_to_full_score(settings):
    """Tables without categorical or temporal fields are fully consistent."""
    assert _analyze([{"n": 1}, {"n": 2}], settings).consistency_score == 100.0


@pytest.mark.unit
@pytest.mark.parametrize("text,expected", [
    ("2024-01-31", "ISO"),
    ("01/31/2024", "US"),
    ("31-01-2024", "EU"),
    ("Jan 2024", "unknown"),
])
def test_detect_date_format(text, expected):
    assert detect_date_format(text) == expected


@pytest.mark.unit
def test_semantics_emits_telemetry(telemetry, settings):
    table = Table.from_records([{"price": 1}, {"price": 2}])
    analyze_semantics(infer_schema(table, settings), table, settings, telemetry=telemetry)

    assert "analyze_semantics.completed" in telemetry.names()
