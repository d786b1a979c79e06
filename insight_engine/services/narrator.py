"""
Insight narration: turns detector output and dataset statistics into short
ranked sentences for display next to a dataset or an answer.
"""
import logging
import math
from functools import partial
from typing import Dict, List, Optional

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.performance import track_performance
from insight_engine.core.schemas import DataInsight, IntelligentVisualization, ParsedTable, SemanticAnalysis
from insight_engine.services import statistics
from insight_engine.services.keywords import contains_word, tokenize
from insight_engine.services.schema_inference import matches_identifier_name

logger = logging.getLogger(__name__)

FALLBACK_INSIGHT = "Based on the available data, further analysis may be needed for a complete answer."

MONTH_ABBREVIATIONS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

IMPACT_RANK = {'high': 0, 'medium': 1, 'low': 2}


def describe(insight: DataInsight) -> str:
    return f"{insight.title}: {insight.description}"


def rank_insights(visualizations: List[IntelligentVisualization]) -> List[DataInsight]:
    """All attached insights, highest impact first, then by confidence."""
    collected = [insight for viz in visualizations for insight in viz.insights]
    return sorted(collected, key=lambda i: (IMPACT_RANK[i.impact], -i.confidence))


def _query_sentence(query: str, ranked: List[DataInsight], parsed: Optional[ParsedTable]) -> Optional[str]:
    words = tokenize(query)
    for insight in ranked:
        text = f"{insight.title} {insight.description}"
        if any(contains_word(text, w) for w in words):
            return describe(insight)

    if parsed is None:
        return None

    lowered = query.lower()
    if 'trend' in lowered:
        if parsed.date_columns:
            return "Temporal data available for comprehensive trend analysis"
        return "Limited temporal information available for trend analysis"
    if 'compare' in lowered and parsed.categorical_columns:
        return f"Comparison possible across {len(parsed.categorical_columns)} categorical dimensions"
    if ('correlation' in lowered or 'relationship' in lowered) and len(parsed.numeric_columns) >= 2:
        return f"{len(parsed.numeric_columns)} numeric variables available for correlation analysis"
    return None


def _measures(parsed: ParsedTable) -> List[str]:
    return [c for c in parsed.numeric_columns if not matches_identifier_name(c)]


def _category_effect(parsed: ParsedTable, settings: Settings) -> List[str]:
    measures = _measures(parsed)
    if not parsed.categorical_columns or not measures:
        return []

    category, metric = parsed.categorical_columns[0], measures[0]
    groups: Dict[str, List[float]] = {}
    for row in parsed.table.head(settings.max_analysis_rows):
        name, value = row.text(category), row.number(metric)
        if name is not None and value is not None:
            groups.setdefault(name, []).append(value)

    averages = sorted(
        ((name, sum(v) / len(v)) for name, v in groups.items() if len(v) >= 3),
        key=lambda item: item[1],
        reverse=True,
    )
    if len(averages) < 3 or averages[-1][1] <= 0:
        return []

    (top, top_avg), (bottom, bottom_avg) = averages[0], averages[-1]
    ratio = top_avg / bottom_avg
    if ratio <= settings.category_gap_ratio:
        return []
    return [f"Strong category effect: {top} averages {ratio:.1f}x higher {metric} than {bottom}"]


def _seasonal_framing(parsed: ParsedTable, settings: Settings) -> List[str]:
    measures = _measures(parsed)
    if not parsed.date_columns or not measures:
        return []

    date_column, metric = parsed.date_columns[0], measures[0]
    by_month: Dict[int, List[float]] = {}
    for row in parsed.table.head(settings.max_analysis_rows):
        ts, value = row.date(date_column), row.number(metric)
        if ts is not None and value is not None:
            by_month.setdefault(ts.month, []).append(value)

    if len(by_month) < settings.seasonal_min_months:
        return []
    averages = {month: sum(v) / len(v) for month, v in by_month.items()}
    low = min(averages.values())
    if low <= 0:
        return []
    peak_month = max(averages, key=averages.get)
    if (averages[peak_month] - low) / low <= settings.seasonal_swing_threshold:
        return []
    return [f"Seasonal pattern detected with peak values in {MONTH_ABBREVIATIONS[peak_month - 1]}"]


def _statistical_framing(parsed: ParsedTable, settings: Settings) -> List[str]:
    sentences = []
    table = parsed.table.head(settings.max_analysis_rows)
    for column in _measures(parsed):
        values = table.numbers(column)
        if not values:
            continue

        low, high = min(values), max(values)
        spread = high - low
        if spread > 0 and spread > abs(statistics.mean(values)) * 10:
            sentences.append(f"{column} shows extreme variation with outliers significantly affecting the range")

        if low < 0 < high:
            sentences.append(f"{column} contains both positive and negative values, suggesting diverse data points")

        positives = [v for v in values if v > 0]
        if len(positives) > 10:
            log_std = statistics.std([math.log(v) for v in positives])
            if log_std < settings.lognormal_std_threshold:
                sentences.append(f"{column} may follow a log-normal distribution, suggesting multiplicative processes")
    return sentences


def _anomaly_framing(parsed: ParsedTable, settings: Settings) -> List[str]:
    sentences = []
    table = parsed.table.head(settings.max_analysis_rows)
    for column in _measures(parsed):
        values = table.numbers(column)
        if len(values) < settings.min_distribution_values:
            continue
        average, spread = statistics.mean(values), statistics.std(values)
        outliers = [v for v in values if abs(v - average) > settings.anomaly_sigma * spread]
        share = len(outliers) / len(values) * 100
        if share > 5:
            sentences.append(f"{column} contains {share:.1f}% outliers, suggesting data anomalies or special cases")
        elif outliers:
            sentences.append(f"{column} shows {len(outliers)} potential outliers worth investigating")
    return sentences


def _column_average(parsed: ParsedTable, keywords: tuple, settings: Settings) -> Optional[float]:
    column = next((c for c in parsed.numeric_columns if any(k in c.lower() for k in keywords)), None)
    if column is None:
        return None
    return statistics.mean(parsed.table.head(settings.max_analysis_rows).numbers(column))


def _domain_framing(category: str, parsed: ParsedTable, settings: Settings) -> List[str]:
    lowered = (category or '').lower()
    sentences = []

    if 'economic' in lowered:
        growth = _column_average(parsed, ('growth', 'gdp', 'rate'), settings)
        if growth is not None and growth > 5:
            sentences.append("Strong economic performance indicated by above-average growth metrics")
        elif growth is not None and growth < 0:
            sentences.append("Economic contraction patterns detected in the data")

    if 'health' in lowered:
        if any(k in c.lower() for c in parsed.columns for k in ('rate', 'mortality', 'incidence')):
            sentences.append("Health metrics suggest need for targeted intervention strategies")

    if 'education' in lowered:
        performance = _column_average(parsed, ('score', 'rate', 'percent'), settings)
        if performance is not None and performance > 80:
            sentences.append("Education metrics indicate strong performance across measured indicators")

    return sentences


def _quality_framing(semantics: Optional[SemanticAnalysis], parsed: Optional[ParsedTable]) -> List[str]:
    if semantics is not None:
        missing = 100 - semantics.completeness_score
    elif parsed is not None and parsed.total_rows and parsed.columns:
        nulls = sum(p.null_count for p in parsed.summary.values())
        missing = nulls / (parsed.total_rows * len(parsed.columns)) * 100
    else:
        return []

    if missing < 5:
        sentences = ["Excellent data quality with minimal missing values"]
    elif missing < 15:
        sentences = ["Good data quality with some missing values to consider"]
    else:
        sentences = [f"Data quality concerns: {missing:.1f}% missing values detected"]

    if parsed is not None and parsed.total_rows:
        diverse = [
            c for c in parsed.categorical_columns
            if parsed.summary[c].unique_count > parsed.total_rows * 0.5
        ]
        if diverse:
            sentences.append(f"High diversity in {', '.join(diverse)} suggests rich categorical data")
    return sentences


def _link_framing(semantics: Optional[SemanticAnalysis], title: str) -> List[str]:
    if semantics is None or not semantics.knowledge_links:
        return []
    link = max(semantics.knowledge_links, key=lambda l: l.confidence)
    subject = title or 'This dataset'
    return [f"{subject} can be linked to {link.external_source} through {link.field}"]


@track_performance("generate_insights")
def generate_insights(
    visualizations: List[IntelligentVisualization],
    semantics: Optional[SemanticAnalysis],
    category: str,
    title: str,
    parsed: Optional[ParsedTable] = None,
    query: str = "",
    settings: Optional[Settings] = None,
) -> List[str]:
    """
    Render ranked, deduplicated insight sentences.

    A sentence matching the query comes first when a query is given. The
    list is capped at `max_insights` and is never empty.
    """
    settings = settings or get_settings()
    ranked = rank_insights(visualizations)

    sentences: List[str] = []
    if query:
        matched = _query_sentence(query, ranked, parsed)
        if matched:
            sentences.append(matched)

    sentences.extend(describe(i) for i in ranked)
    if not ranked:
        sentences.append(FALLBACK_INSIGHT)

    if parsed is not None:
        renderers = [
            partial(_category_effect, parsed, settings),
            partial(_seasonal_framing, parsed, settings),
            partial(_statistical_framing, parsed, settings),
            partial(_anomaly_framing, parsed, settings),
            partial(_domain_framing, category, parsed, settings),
        ]
        for render in renderers:
            try:
                sentences.extend(render())
            except Exception as e:
                logger.warning(f"Skipping {render.func.__name__} for '{title}': {e}")

    sentences.extend(_link_framing(semantics, title))
    sentences.extend(_quality_framing(semantics, parsed))

    unique = list(dict.fromkeys(sentences))
    return unique[:settings.max_insights]
