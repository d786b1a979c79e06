"""
Guidance for questions the catalog cannot answer: what data exists, what to
ask instead and how to rephrase.
"""
import logging
from typing import Dict, List, Optional

from insight_engine.core.collaborators import DatasetCatalog
from insight_engine.core.schemas import CategoryInfo, Dataset, DatasetGuidance
from insight_engine.services.keywords import contains_word

logger = logging.getLogger(__name__)

KNOWN_CATEGORIES = [
    'Economics', 'Health', 'Transport', 'Agriculture', 'Education', 'Environment', 'Demographics', 'Government',
]

MAX_SUGGESTED_QUERIES = 6
MAX_REFINEMENTS = 4

# Category substring -> suggested questions
CATEGORY_QUERIES = [
    ('econom', lambda example: [
        f"What are the economic trends in {example}?",
        "Compare economic indicators across regions",
    ]),
    ('health', lambda example: [
        "Show healthcare access patterns",
        "What are the health outcome trends?",
    ]),
    ('education', lambda example: [
        "Analyze education enrollment trends",
        "Compare education metrics by region",
    ]),
    ('transport', lambda example: [
        "What are the transportation trends?",
        "Analyze transport infrastructure development",
    ]),
    ('environment', lambda example: [
        "Show environmental sustainability indicators",
        "What are the climate change impacts?",
    ]),
    ('agricult', lambda example: [
        "Analyze agricultural production trends",
        "Compare farming practices across regions",
    ]),
    ('demograph', lambda example: [
        "What are the population trends?",
        "Show demographic changes over time",
    ]),
    ('government', lambda example: [
        "Analyze government spending patterns",
        "Show governance indicators",
    ]),
]

EMPTY_CATALOG_REFINEMENTS = [
    "Upload the first dataset to get started",
    "Consider uploading datasets in common categories like Economics, Health, or Education",
    "Make sure your dataset includes proper metadata and descriptions",
]

GENERAL_REFINEMENTS = [
    "Try asking about specific metrics or indicators",
    "Use category names in your query for better results",
    "Ask comparative questions across regions or time periods",
]

UNAVAILABLE_REFINEMENTS = ["Unable to load dataset information. Please try again."]


def group_by_category(datasets: List[Dataset]) -> List[CategoryInfo]:
    """Categories with their dataset count and up to three example titles, largest first."""
    groups: Dict[str, List[Dataset]] = {}
    for dataset in datasets:
        groups.setdefault(dataset.category or 'Other', []).append(dataset)
    categories = [
        CategoryInfo(category=category, count=len(members), examples=[d.title for d in members[:3]])
        for category, members in groups.items()
    ]
    return sorted(categories, key=lambda c: c.count, reverse=True)


def generate_suggested_queries(categories: List[CategoryInfo]) -> List[str]:
    queries: List[str] = []
    for info in categories[:3]:
        lowered = info.category.lower()
        example = info.examples[0] if info.examples else 'the catalog'
        rule = next((make for key, make in CATEGORY_QUERIES if key in lowered), None)
        if rule is None:
            queries.append(f"Show trends in {lowered}")
        else:
            queries.extend(rule(example))

    if len(categories) >= 2:
        queries.append(
            f"How does {categories[0].category.lower()} relate to {categories[1].category.lower()}?"
        )
    queries.append("Show the most recent dataset insights")
    queries.append("What are the key trends in available data?")
    return list(dict.fromkeys(queries))[:MAX_SUGGESTED_QUERIES]


def generate_query_refinements(failed_query: Optional[str], categories: List[CategoryInfo]) -> List[str]:
    if not failed_query:
        return list(GENERAL_REFINEMENTS)

    refinements = []
    missing = next(
        (
            name for name in (c.lower() for c in KNOWN_CATEGORIES)
            if contains_word(failed_query, name) and not any(name in c.category.lower() for c in categories)
        ),
        None,
    )
    if missing:
        available = ', '.join(c.category for c in categories[:3])
        refinements.append(
            f"No {missing} datasets available. Try uploading one or explore available categories: {available}"
        )

    if len(failed_query.split()) <= 3:
        refinements.append(
            'Try being more specific in your query. For example: '
            '"What are the population trends by region from 2020 to 2023?"'
        )

    if categories:
        refinements.append(f"Available data categories: {', '.join(c.category for c in categories)}")

    refinements.append('Try queries like: "Compare X across Y" or "Show trends in Z over time"')
    refinements.append('Ask about "recent trends" or "latest data" to see the most current information')
    return refinements[:MAX_REFINEMENTS]


async def get_dataset_guidance(catalog: DatasetCatalog, failed_query: Optional[str] = None) -> DatasetGuidance:
    """
    Describe what the catalog holds and how to ask about it.

    A catalog that cannot be read yields guidance with no datasets and a
    retry hint; the error is logged.
    """
    try:
        listed = await catalog.list_datasets() or []
    except Exception as e:
        logger.warning(f"Unable to list datasets for guidance: {e}", exc_info=True)
        return DatasetGuidance(has_datasets=False, query_refinements=list(UNAVAILABLE_REFINEMENTS))

    datasets = [d if isinstance(d, Dataset) else Dataset.model_validate(d) for d in listed]
    if not datasets:
        return DatasetGuidance(
            has_datasets=False,
            missing_categories=list(KNOWN_CATEGORIES),
            query_refinements=list(EMPTY_CATALOG_REFINEMENTS),
        )

    categories = group_by_category(datasets)
    available = {c.category.lower() for c in categories}
    return DatasetGuidance(
        has_datasets=True,
        total_datasets=len(datasets),
        categories=categories,
        suggested_queries=generate_suggested_queries(categories),
        missing_categories=[c for c in KNOWN_CATEGORIES if c.lower() not in available],
        query_refinements=generate_query_refinements(failed_query, categories),
    )
