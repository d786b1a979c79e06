"""
Tests for guidance returned when no dataset answers a question.
"""
import logging

import pytest

from insight_engine.core.schemas import Dataset
from insight_engine.services.guidance import (
    EMPTY_CATALOG_REFINEMENTS,
    GENERAL_REFINEMENTS,
    KNOWN_CATEGORIES,
    MAX_SUGGESTED_QUERIES,
    UNAVAILABLE_REFINEMENTS,
    generate_query_refinements,
    get_dataset_guidance,
    group_by_category,
)

DATASETS = [
    Dataset(id="gdp", title="GDP by county", category="Economics"),
    Dataset(id="clinics", title="Clinic visits", category="Health"),
    Dataset(id="beds", title="Hospital beds", category="Health"),
]


class FailingCatalog:
    async def list_datasets(self, filters=None):
        raise RuntimeError("catalog offline")


@pytest.mark.unit
def test_group_by_category():
    """Largest category first, with example titles in catalog order."""
    categories = group_by_category(DATASETS + [Dataset(id="x", title="Untitled")])

    assert [(c.category, c.count) for c in categories] == [("Health", 2), ("Economics", 1), ("Other", 1)]
    assert categories[0].examples == ["Clinic visits", "Hospital beds"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_guidance_for_empty_catalog(make_catalog):
    guidance = await get_dataset_guidance(make_catalog([]), "education spending")

    assert guidance.has_datasets is False
    assert guidance.total_datasets == 0
    assert guidance.suggested_queries == []
    assert guidance.missing_categories == KNOWN_CATEGORIES
    assert guidance.query_refinements == EMPTY_CATALOG_REFINEMENTS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_guidance_for_populated_catalog(make_catalog):
    guidance = await get_dataset_guidance(make_catalog(DATASETS), "education spending")

    assert guidance.has_datasets is True
    assert guidance.total_datasets == 3
    assert [c.category for c in guidance.categories] == ["Health", "Economics"]
    assert len(guidance.suggested_queries) == MAX_SUGGESTED_QUERIES
    assert guidance.suggested_queries[0] == "Show healthcare access patterns"
    assert "What are the economic trends in GDP by county?" in guidance.suggested_queries
    assert "How does health relate to economics?" in guidance.suggested_queries
    assert guidance.missing_categories == [
        "Transport", "Agriculture", "Education", "Environment", "Demographics", "Government",
    ]
    assert guidance.query_refinements[0] == (
        "No education datasets available. Try uploading one or explore available categories: Health, Economics"
    )
    assert len(guidance.query_refinements) == 4


@pytest.mark.unit
def test_query_refinements():
    categories = group_by_category(DATASETS)

    assert generate_query_refinements(None, categories) == GENERAL_REFINEMENTS
    refinements = generate_query_refinements("rainfall totals for every county", categories)
    assert refinements[0] == "Available data categories: Health, Economics"
    assert not any(r.startswith("Try being more specific") for r in refinements)
    assert generate_query_refinements("rainfall", categories)[0].startswith("Try being more specific")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unreadable_catalog_gives_retry_guidance(caplog):
    with caplog.at_level(logging.WARNING, logger="insight_engine.services.guidance"):
        guidance = await get_dataset_guidance(FailingCatalog(), "health")

    assert guidance.has_datasets is False
    assert guidance.query_refinements == UNAVAILABLE_REFINEMENTS
    assert "catalog offline" in caplog.text
