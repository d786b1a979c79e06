"""
Query relevance and answer composition.

Scores catalogued datasets against a free-text question, runs the analysis
pipeline over the ones that match and assembles a templated answer. All
text is produced from fixed templates, so the same inputs always yield the
same answer.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from insight_engine.core.collaborators import BlobStore, DatasetCatalog
from insight_engine.core.config import Settings, get_settings
from insight_engine.core.errors import ErrorCodes, NoRelevantDataError
from insight_engine.core.performance import track_performance
from insight_engine.core.sanitization import sanitize_for_logging, sanitize_query
from insight_engine.core.schemas import ComparisonResult, DataInsightResult, Dataset, IntelligentVisualization
from insight_engine.core.telemetry import Telemetry, resolve
from insight_engine.services.followups import generate_follow_up_questions
from insight_engine.services.guidance import get_dataset_guidance
from insight_engine.services.keywords import contains_word, tokenize
from insight_engine.services.narrator import FALLBACK_INSIGHT, generate_insights
from insight_engine.services.parser import parse_table
from insight_engine.services.patterns import analyze_patterns
from insight_engine.services.query_intent import parse_query_intent, semantic_similarity
from insight_engine.services.schema_inference import infer_schema
from insight_engine.services.semantics import analyze_semantics
from insight_engine.services.summaries import generate_data_recommendations, generate_visualization_summary

logger = logging.getLogger(__name__)

# A category is added to the keywords when any related word appears in the query
CATEGORY_SYNONYMS: Dict[str, List[str]] = {
    'economic': ['economics', 'economy', 'gdp', 'inflation', 'trade'],
    'health': ['healthcare', 'medical', 'hospital', 'disease', 'patient'],
    'education': ['school', 'university', 'student', 'learning', 'academic'],
    'transport': ['transportation', 'vehicle', 'traffic', 'road', 'travel'],
    'environment': ['environmental', 'climate', 'pollution', 'energy', 'sustainability'],
}

# Checked in this order; the first intent with a matching keyword wins
INTENT_KEYWORDS: List[Tuple[str, List[str]]] = [
    ('geographic', ['map', 'location', 'where', 'place', 'region', 'country', 'city', 'area',
                    'geographic', 'spatial', 'territory', 'world']),
    ('comparison', ['comparison', 'compare', 'versus', 'vs']),
    ('trend', ['trend', 'time', 'over time', 'historical', 'projection', 'forecast', 'predict',
               'future', 'timeline', 'evolution', 'progress', 'growth', 'decline', 'change',
               'development']),
    ('distribution', ['distribution', 'percentage', 'proportion']),
]

INTENT_VISUALIZATIONS = {
    'geographic': 'map',
    'comparison': 'bar',
    'trend': 'line',
    'distribution': 'pie',
}

GEOGRAPHIC_CATEGORY_HINTS = ('geo', 'map', 'regional', 'country', 'territory')

CATEGORY_ALIASES = {
    'economic': 'economics',
    'economy': 'economics',
    'healthcare': 'health',
    'transportation': 'transport',
    'environmental': 'environment',
}

# Fallback chart per category when the question carries no intent
CATEGORY_VISUALIZATIONS: Dict[str, Callable[[str], str]] = {
    'economics': lambda q: 'line' if contains_word(q, 'time') or contains_word(q, 'trend') else 'bar',
    'health': lambda q: 'pie' if contains_word(q, 'distribution') else 'bar',
    'transport': lambda q: 'map' if contains_word(q, 'network') or contains_word(q, 'route') else 'bar',
    'education': lambda q: 'bar',
    'environment': lambda q: 'map' if contains_word(q, 'areas') or contains_word(q, 'region') else 'line',
}

CLOSING = "For a more detailed understanding, explore the visualizations below and "

# (category, intent) -> closing sentence; '*' matches anything
ANSWER_CLOSINGS: Dict[Tuple[str, str], Callable[[str], str]] = {
    ('economics', 'trend'): lambda topic: (
        CLOSING + f"consider how these movements in {topic} relate to the wider economic cycle."
    ),
    ('health', '*'): lambda topic: (
        CLOSING + f"consider how these insights might inform health policy decisions related to {topic}."
    ),
    ('*', 'trend'): lambda topic: (
        CLOSING + f"consider how the trajectory of {topic} might inform future decisions."
    ),
    ('*', 'comparison'): lambda topic: (
        CLOSING + f"compare how {topic} differs across the datasets."
    ),
    ('*', 'geographic'): lambda topic: (
        CLOSING + f"look at where {topic} is most concentrated."
    ),
    ('*', '*'): lambda topic: (
        CLOSING + f"consider how these insights might inform decisions related to {topic}."
    ),
}

GENERIC_INSIGHTS = [
    FALLBACK_INSIGHT,
    "Consider exploring additional datasets for more comprehensive insights.",
]


def extract_keywords(query: str) -> List[str]:
    """
    Content words of a question plus the categories they imply.

    Stop words and tokens of two characters or fewer are dropped; order is
    preserved and duplicates removed.
    """
    words = tokenize(sanitize_query(query))
    expanded = list(words)
    for category, related in CATEGORY_SYNONYMS.items():
        if any(w in words for w in related):
            expanded.append(category)
    return list(dict.fromkeys(expanded))


def score_dataset(dataset: Dataset, keywords: Sequence[str]) -> int:
    title = dataset.title.lower()
    description = dataset.description.lower()
    category = dataset.category.lower()
    return sum(
        3 * (k in title) + 2 * (k in description) + 4 * (k in category)
        for k in keywords
    )


def _most_recent(datasets: List[Dataset]) -> List[Dataset]:
    return sorted(datasets, key=lambda d: (d.date is not None, d.date or ''), reverse=True)


@track_performance("find_relevant_datasets")
async def find_relevant_datasets(
    query: str,
    catalog: DatasetCatalog,
    settings: Optional[Settings] = None,
) -> List[Dataset]:
    """
    Rank catalogued datasets against a question.

    Returns the top scoring datasets (score > 0); equal scores are ordered by
    semantic similarity to the parsed question, then catalog order. When
    nothing scores, falls back to featured datasets, then to the most recent
    ones. Returns an empty list only for an empty catalog.
    """
    settings = settings or get_settings()
    limit = settings.max_relevant_datasets

    datasets = [
        d if isinstance(d, Dataset) else Dataset.model_validate(d)
        for d in (await catalog.list_datasets() or [])
    ]
    if not datasets:
        return []

    keywords = extract_keywords(query)
    intent = parse_query_intent(query)
    scored = [
        (score_dataset(d, keywords), semantic_similarity(intent, d), d)
        for d in datasets
    ]
    relevant = [d for score, _, d in sorted(
        (item for item in scored if item[0] > 0),
        key=lambda item: (item[0], item[1]),
        reverse=True,
    )]
    if relevant:
        return relevant[:limit]

    featured = [d for d in datasets if d.featured]
    if featured:
        logger.info(f"No dataset matched '{sanitize_for_logging(query, 100)}', using featured datasets")
        return featured[:limit]

    logger.info(f"No dataset matched '{sanitize_for_logging(query, 100)}', using most recent datasets")
    return _most_recent(datasets)[:limit]


def detect_intent(query: str) -> str:
    for intent, keywords in INTENT_KEYWORDS:
        if any(contains_word(query, k) for k in keywords):
            return intent
    return 'general'


def _normalize_category(category: str) -> str:
    lowered = (category or '').lower().strip()
    return CATEGORY_ALIASES.get(lowered, lowered)


def determine_visualization_type(query: str, category: str) -> str:
    """
    Chart type for a question: map, then bar for comparisons, line for
    trends, pie for distributions, then the category's default.
    """
    intent = detect_intent(query)
    if intent in INTENT_VISUALIZATIONS:
        return INTENT_VISUALIZATIONS[intent]

    lowered = (category or '').lower()
    if any(hint in lowered for hint in GEOGRAPHIC_CATEGORY_HINTS):
        return 'map'

    rule = CATEGORY_VISUALIZATIONS.get(_normalize_category(category))
    return rule(query) if rule else 'bar'


def _closing(category: str, intent: str, topic: str) -> str:
    category = _normalize_category(category)
    for key in ((category, intent), (category, '*'), ('*', intent)):
        if key in ANSWER_CLOSINGS:
            return ANSWER_CLOSINGS[key](topic)
    return ANSWER_CLOSINGS[('*', '*')](topic)


def _as_clause(sentence: str) -> str:
    sentence = re.sub(r'[.!?]+$', '', sentence.strip())
    return sentence[:1].lower() + sentence[1:]


def generate_answer_from_data(
    query: str,
    datasets: Sequence[Dataset],
    visualizations: Sequence[IntelligentVisualization],
    insights: Sequence[str],
    category: str = "",
) -> str:
    """Assemble a deterministic, never-empty answer from the analysis results."""
    keywords = extract_keywords(query)
    topic = keywords[0] if keywords else ''
    count = len(datasets)

    if count == 0:
        answer = f"No catalogued datasets could be analysed for {topic or 'your query'}. "
    else:
        answer = f"Based on analysis of {count} {'dataset' if count == 1 else 'datasets'} related to {topic or 'your query'}, "
        if count == 1:
            answer += f"the \"{datasets[0].title}\" data shows that "
        elif count == 2:
            answer += f"the {datasets[0].title} and {datasets[1].title} datasets indicate that "
        else:
            answer += f"multiple datasets including {datasets[0].title} suggest that "
        answer += _as_clause(insights[0] if insights else FALLBACK_INSIGHT) + '. '

    types = list(dict.fromkeys(v.type for v in visualizations))
    if types:
        noun, verb = ('chart', 'illustrates') if len(types) == 1 else ('charts', 'illustrate')
        answer += f"The {' and '.join(types)} {noun} {verb} key patterns in the data. "

    answer += _closing(category, detect_intent(query), topic or 'this topic')
    return answer


def _short_label(title: str) -> str:
    return ' '.join(title.split()[:2])


def generate_comparison(
    datasets: Sequence[Dataset],
    visualizations: Sequence[IntelligentVisualization],
) -> ComparisonResult:
    """Side-by-side view using the top two points of each dataset's first visualization."""
    title = "Comparison: " + ' vs '.join(_short_label(d.title) for d in datasets)
    description = f"Comparative analysis of {' and '.join(d.category or d.title for d in datasets)} datasets"

    data: List[Dict[str, Any]] = []
    for dataset in datasets:
        viz = next((v for v in visualizations if v.dataset_id == dataset.id and v.data), None)
        if viz is None:
            continue
        data.extend({**point, 'dataset': _short_label(dataset.title)} for point in viz.data[:2])

    return ComparisonResult(title=title, description=description, data=data)


async def _load_content(dataset: Dataset, blob_store: BlobStore):
    response = await blob_store.fetch(dataset.file)
    if dataset.format.lower() == 'xlsx' and hasattr(response, 'content'):
        return await response.content()
    return await response.text()


async def _analyze_dataset(
    dataset: Dataset,
    query: str,
    blob_store: Optional[BlobStore],
    settings: Settings,
    telemetry: Telemetry,
) -> Tuple[List[IntelligentVisualization], List[str]]:
    if blob_store is None or not dataset.file:
        telemetry.emit("process_data_query.no_file", dataset_id=dataset.id)
        return [], []

    raw = await _load_content(dataset, blob_store)
    parsed = parse_table(raw, dataset.format, settings=settings, telemetry=telemetry)
    schema = infer_schema(parsed.table, settings=settings, telemetry=telemetry)
    try:
        semantics = analyze_semantics(schema, parsed.table, settings=settings, telemetry=telemetry)
    except Exception as e:
        logger.warning(f"Semantic analysis failed for dataset {dataset.id}: {e}", exc_info=True)
        telemetry.emit(
            "process_data_query.semantics_failed",
            dataset_id=dataset.id,
            code=ErrorCodes.ANALYSIS_ERROR,
            error=str(e),
        )
        semantics = None
    visualizations = analyze_patterns(schema, parsed.table, settings=settings, telemetry=telemetry)

    preferred = determine_visualization_type(query, dataset.category)
    visualizations = sorted(visualizations, key=lambda v: v.type != preferred)
    visualizations = [
        v.model_copy(update={
            'dataset_id': dataset.id,
            'summary': generate_visualization_summary(v.data, dataset.category, v.type),
        })
        for v in visualizations
    ]

    insights = generate_insights(
        visualizations, semantics, dataset.category, dataset.title,
        parsed=parsed, query=query, settings=settings,
    )
    return visualizations, insights


@track_performance("process_data_query")
async def process_data_query(
    query: str,
    catalog: DatasetCatalog,
    blob_store: Optional[BlobStore] = None,
    settings: Optional[Settings] = None,
    telemetry: Optional[Telemetry] = None,
) -> DataInsightResult:
    """
    Answer a free-text question from the catalogued datasets.

    Raises:
        NoRelevantDataError: The catalog yields no dataset for the query
    """
    settings = settings or get_settings()
    telemetry = resolve(telemetry)
    query = sanitize_query(query)

    datasets = await find_relevant_datasets(query, catalog, settings)
    if not datasets:
        telemetry.emit("process_data_query.no_datasets")
        guidance = await get_dataset_guidance(catalog, query)
        raise NoRelevantDataError(f"No datasets found for '{query}'", guidance=guidance)

    per_dataset = max(1, settings.max_visualizations // len(datasets))
    visualizations: List[IntelligentVisualization] = []
    insights: List[str] = []

    for dataset in datasets:
        try:
            found, sentences = await _analyze_dataset(dataset, query, blob_store, settings, telemetry)
        except Exception as e:
            logger.warning(f"Skipping dataset {dataset.id} ({dataset.title}): {e}")
            telemetry.emit("process_data_query.dataset_skipped", dataset_id=dataset.id, error=str(e))
            continue
        visualizations.extend(found[:per_dataset])
        insights.extend(sentences[:2])

    if len(insights) < 3:
        insights.extend(GENERIC_INSIGHTS)
    insights = list(dict.fromkeys(insights))[:settings.max_insights]

    comparison = None
    if len(datasets) > 1 and visualizations:
        comparison = generate_comparison(datasets, visualizations)

    result = DataInsightResult(
        question=query,
        answer=generate_answer_from_data(query, datasets, visualizations, insights, datasets[0].category),
        datasets=datasets,
        visualizations=visualizations,
        insights=insights,
        comparison_result=comparison,
        recommendations=generate_data_recommendations(
            visualizations[0].data if visualizations else [], datasets[0].category,
        ),
        query_intent=parse_query_intent(query),
    )
    result = result.model_copy(update={'follow_up_questions': generate_follow_up_questions(query, result)})

    logger.info(
        f"Answered query with {len(datasets)} datasets, {len(visualizations)} visualizations, "
        f"{len(insights)} insights"
    )
    telemetry.emit(
        "process_data_query.completed",
        datasets=len(datasets),
        visualizations=len(visualizations),
        insights=len(insights),
    )
    return result
