import logging
import re
from typing import Dict, List, Optional, Union

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.performance import track_performance
from insight_engine.core.schemas import (
    FieldSchema,
    InferredSchema,
    KnowledgeLink,
    ParsedTable,
    SemanticAnalysis,
)
from insight_engine.core.table import Table
from insight_engine.core.telemetry import Telemetry, resolve
from insight_engine.services import statistics
from insight_engine.services.schema_inference import matches_identifier_name

logger = logging.getLogger(__name__)

DOMAIN_KEYWORDS: Dict[str, List[str]] = {
    'finance': ['price', 'cost', 'revenue', 'profit', 'amount', 'payment', 'balance', 'investment'],
    'healthcare': ['patient', 'diagnosis', 'treatment', 'medical', 'hospital', 'doctor', 'symptom'],
    'retail': ['product', 'customer', 'order', 'purchase', 'inventory', 'sales', 'item'],
    'education': ['student', 'course', 'grade', 'school', 'teacher', 'enrollment', 'academic'],
    'transportation': ['vehicle', 'route', 'traffic', 'distance', 'speed', 'transport', 'logistics'],
    'government': ['population', 'census', 'policy', 'public', 'citizen', 'municipal', 'federal'],
    'environment': ['temperature', 'pollution', 'emissions', 'energy', 'climate', 'environmental'],
}

DOMAIN_ANALYSES: Dict[str, List[str]] = {
    'finance': ['Financial ratio analysis', 'Risk assessment based on financial indicators'],
    'retail': ['Customer segmentation analysis', 'Product performance analysis'],
    'healthcare': ['Patient outcome analysis', 'Treatment effectiveness comparison'],
    'education': ['Academic performance trend analysis', 'Student success factor analysis'],
}

DATE_FORMATS = [
    ('ISO', re.compile(r'^\d{4}-\d{2}-\d{2}')),
    ('US', re.compile(r'^\d{2}/\d{2}/\d{4}')),
    ('EU', re.compile(r'^\d{2}-\d{2}-\d{4}')),
]


def classify_domain(schema: InferredSchema) -> str:
    """Domain with the most keyword hits over field names and semantic types."""
    names = ' '.join(f.name.lower() for f in schema.fields)
    semantic_types = ' '.join(f.semantic_type for f in schema.fields)
    text = f"{names} {semantic_types}"

    best_domain, best_score = 'general', 0
    for domain, keywords in DOMAIN_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_domain, best_score = domain, score
    return best_domain


def find_knowledge_links(schema: InferredSchema) -> List[KnowledgeLink]:
    links = []
    geographic = set(schema.geographic_fields)

    for field in schema.fields:
        name = field.name.lower()

        if field.name in geographic:
            if 'country' in name:
                links.append(KnowledgeLink(
                    field=field.name,
                    external_source='ISO 3166 Country Codes',
                    link_type='exact_match',
                    confidence=0.9,
                    description='Standard country codes and names',
                ))
            if 'city' in name:
                links.append(KnowledgeLink(
                    field=field.name,
                    external_source='GeoNames Database',
                    link_type='semantic_match',
                    confidence=0.8,
                    description='Global city and place names',
                ))

        if (field.semantic_type == 'metric' or field.data_type == 'numeric') and (
            'gdp' in name or 'inflation' in name
        ):
            links.append(KnowledgeLink(
                field=field.name,
                external_source='World Bank Open Data',
                link_type='semantic_match',
                confidence=0.85,
                description='Economic indicators and statistics',
            ))

        if 'industry' in name or 'sector' in name:
            links.append(KnowledgeLink(
                field=field.name,
                external_source='NAICS Industry Codes',
                link_type='suggested',
                confidence=0.7,
                description='Standard industry classification codes',
            ))

    return links


def _measures(schema: InferredSchema) -> List[FieldSchema]:
    """Numeric fields worth aggregating: declared metrics plus numeric non-identifiers."""
    return [
        f for f in schema.fields
        if f.role == 'metric' or (f.data_type == 'numeric' and not matches_identifier_name(f.name))
    ]


def suggest_analyses(schema: InferredSchema, domain: str, limit: int = 8) -> List[str]:
    suggestions = []
    measures = _measures(schema)

    if schema.temporal_fields and measures:
        suggestions.append('Time series analysis to identify trends and seasonality')
        suggestions.append('Year-over-year growth analysis')

    if schema.geographic_fields:
        suggestions.append('Geographic distribution analysis and mapping')
        suggestions.append('Regional comparison analysis')

    if len(schema.dimension_fields) >= 2 and measures:
        suggestions.append(
            f"Cross-tabulation of {schema.dimension_fields[0]} by {schema.dimension_fields[1]}"
        )

    if len(measures) >= 2:
        suggestions.append('Correlation analysis between key metrics')
        suggestions.append('Multi-variate regression analysis')

    suggestions.extend(DOMAIN_ANALYSES.get(domain, []))

    if schema.relationships:
        suggestions.append('Field relationship analysis')
        suggestions.append('Dependency mapping between variables')

    return suggestions[:limit]


def data_quality_score(schema: InferredSchema, table: Table, settings: Settings) -> float:
    """
    Weighted per-field quality, normalised to 0-100.

    Each field earns up to 20 points for non-null share. Fields that hold
    data can earn 15 more for a confident type and, when numeric, 10 for
    a low IQR outlier share.
    """
    if not schema.fields or table.is_empty:
        return 0.0

    earned = 0.0
    possible = 0.0
    for field in schema.fields:
        present = len(table.non_null(field.name))
        earned += (present / len(table)) * 20
        possible += 20
        if not present:
            continue

        possible += 15
        if field.confidence > settings.quality_confidence_threshold:
            earned += 15

        if field.data_type == 'numeric' and field.metadata.distribution:
            numbers = table.numbers(field.name)
            if numbers:
                outliers = statistics.iqr_outliers(numbers, settings.iqr_multiplier)
                earned += (1 - len(outliers) / len(numbers)) * 10
                possible += 10

    return round(earned / possible * 100, 2) if possible else 0.0


def completeness_score(schema: InferredSchema, table: Table) -> float:
    if not schema.fields or table.is_empty:
        return 0.0
    ratios = [len(table.non_null(f.name)) / len(table) for f in schema.fields]
    return round(sum(ratios) / len(ratios) * 100, 2)


def detect_date_format(text: str) -> str:
    for label, pattern in DATE_FORMATS:
        if pattern.match(text):
            return label
    return 'unknown'


def _uniform_casing(texts: List[str]) -> bool:
    return (
        all(t == t.lower() for t in texts)
        or all(t == t.upper() for t in texts)
        or all(t == t.title() for t in texts)
    )


def consistency_score(schema: InferredSchema, table: Table) -> float:
    """Share of categorical and temporal fields with uniform formatting; 100 when none apply."""
    passed = 0
    checked = 0
    for field in schema.fields:
        texts = [v.as_text() for v in table.non_null(field.name)]
        if field.data_type == 'categorical':
            checked += 1
            passed += _uniform_casing(texts)
        elif field.data_type == 'temporal':
            checked += 1
            passed += len({detect_date_format(t) for t in texts}) == 1
    return round(passed / checked * 100, 2) if checked else 100.0


@track_performance("analyze_semantics")
def analyze_semantics(
    schema: InferredSchema,
    table: Union[Table, ParsedTable],
    settings: Optional[Settings] = None,
    telemetry: Optional[Telemetry] = None,
) -> SemanticAnalysis:
    """
    Classify the dataset's domain, link fields to reference datasets,
    suggest analyses and score data quality.
    """
    settings = settings or get_settings()
    telemetry = resolve(telemetry)
    if isinstance(table, ParsedTable):
        table = table.table
    table = table.head(settings.max_analysis_rows)

    domain = classify_domain(schema)
    analysis = SemanticAnalysis(
        domain_classification=domain,
        knowledge_links=find_knowledge_links(schema),
        suggested_analyses=suggest_analyses(schema, domain, settings.max_suggested_analyses),
        data_quality_score=data_quality_score(schema, table, settings),
        completeness_score=completeness_score(schema, table),
        consistency_score=consistency_score(schema, table),
    )

    logger.debug(
        f"Semantic analysis: domain '{domain}', quality {analysis.data_quality_score}, "
        f"completeness {analysis.completeness_score}"
    )
    telemetry.emit(
        "analyze_semantics.completed",
        domain=domain,
        links=len(analysis.knowledge_links),
        quality=analysis.data_quality_score,
    )
    return analysis
