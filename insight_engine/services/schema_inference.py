"""
Schema inference: storage type, semantic type and structural role per column,
plus the dataset-level entity type and pairwise field relationships.
"""
import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Union

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.performance import track_performance
from insight_engine.core.schemas import (
    FieldMetadata,
    FieldRelationship,
    FieldSchema,
    InferredSchema,
    ParsedTable,
)
from insight_engine.core.table import Table, Value
from insight_engine.core.telemetry import Telemetry, resolve
from insight_engine.services import statistics

logger = logging.getLogger(__name__)

# Column-name families, checked in order; the first match wins
SEMANTIC_PATTERNS: Dict[str, List[re.Pattern]] = {
    'temporal': [re.compile(p, re.IGNORECASE) for p in (
        r'date', r'time', r'year', r'month', r'day', r'created', r'updated', r'timestamp',
    )],
    'geographic': [re.compile(p, re.IGNORECASE) for p in (
        r'country', r'city', r'state', r'region', r'location', r'address',
        r'lat', r'lng', r'longitude', r'latitude',
    )],
    'identifier': [re.compile(p, re.IGNORECASE) for p in (
        r'id$', r'^id', r'key$', r'code$', r'number$',
    )],
    'metric': [re.compile(p, re.IGNORECASE) for p in (
        r'count', r'total', r'amount', r'value', r'price', r'cost', r'revenue',
        r'profit', r'rate', r'score', r'percentage',
    )],
    'demographic': [re.compile(p, re.IGNORECASE) for p in (
        r'age', r'gender', r'income', r'education', r'population',
    )],
}

# Checked in priority order against lowercased field names
ENTITY_KEYWORDS = [
    ('customer', ('customer', 'user')),
    ('product', ('product', 'item')),
    ('transaction', ('transaction', 'order')),
    ('employee', ('employee', 'staff')),
    ('location', ('location', 'place')),
]

GEOGRAPHIC_VALUE_PATTERNS = [
    re.compile(r'^[A-Z]{2}$'),
    re.compile(r'^-?\d+(\.\d+)?,\s*-?\d+(\.\d+)?$'),
    re.compile(r'\b(street|st\.|road|rd\.|avenue|ave\.|boulevard|blvd|lane|drive)\b', re.IGNORECASE),
]

_DIGITS = re.compile(r'^\d+$')
_INTEGER = re.compile(r'^-?\d+$')
_DECIMAL = re.compile(r'^-?\d+\.\d+$')
_CODE = re.compile(r'^[A-Z]{2,3}$')
_URL = re.compile(r'^https?://', re.IGNORECASE)
_IDENTIFIER_SUFFIX = re.compile(r'(id|key|code)$', re.IGNORECASE)


def matches_identifier_name(name: str) -> bool:
    """True when a column name reads as an identifier (id, key, code, number)."""
    return any(p.search(name) for p in SEMANTIC_PATTERNS['identifier'])


def is_geographic_value(text: str) -> bool:
    return any(p.search(text) for p in GEOGRAPHIC_VALUE_PATTERNS)


def infer_data_type(values: Sequence[Value], settings: Settings) -> str:
    """
    Storage type of a column from its non-null values.

    Order: boolean, numeric, temporal, geographic, free text, categorical.
    """
    if not values:
        return 'text'

    total = len(values)
    sample = values[:settings.schema_sample_size]

    booleans = sum(1 for v in sample if v.as_bool() is not None)
    if booleans >= len(sample) * settings.boolean_majority:
        return 'boolean'

    numbers = sum(1 for v in values if v.as_number() is not None)
    if numbers >= total * settings.numeric_majority:
        return 'numeric'

    dates = sum(1 for v in values if v.as_date() is not None)
    if dates >= total * settings.date_majority:
        return 'temporal'

    texts = [v.as_text() for v in sample]
    geographic = sum(1 for t in texts if is_geographic_value(t))
    if geographic > len(sample) * settings.geographic_majority:
        return 'geographic'

    average_length = sum(len(t) for t in texts) / len(texts)
    if average_length > settings.free_text_min_length:
        return 'text'

    return 'categorical'


def infer_semantic_type(name: str, sample: Sequence[str]) -> str:
    for semantic_type, patterns in SEMANTIC_PATTERNS.items():
        if any(p.search(name) for p in patterns):
            return semantic_type

    if sample:
        if all(_DIGITS.match(v) for v in sample):
            return 'identifier'
        if any('@' in v for v in sample):
            return 'email'
        if any(_URL.match(v) for v in sample):
            return 'url'

    return 'general'


def infer_role(name: str, data_type: str, semantic_type: str) -> str:
    if semantic_type == 'identifier' or 'id' in name.lower():
        return 'identifier'
    if data_type == 'numeric' and semantic_type == 'metric':
        return 'metric'
    if data_type in ('categorical', 'geographic', 'temporal'):
        return 'dimension'
    return 'descriptor'


def detect_patterns(name: str, sample: Sequence[str]) -> List[str]:
    if not sample:
        return []

    patterns = []
    if all(_INTEGER.match(v) for v in sample):
        patterns.append('integer')
    if all(_DECIMAL.match(v) for v in sample):
        patterns.append('decimal')
    if all(_CODE.match(v) for v in sample):
        patterns.append('code')
    if any('@' in v for v in sample):
        patterns.append('email')
    if any(_URL.match(v) for v in sample):
        patterns.append('url')
    if all(_DIGITS.match(v) for v in sample) or _IDENTIFIER_SUFFIX.search(name):
        patterns.append('identifier')
    return patterns


def field_confidence(name: str, semantic_type: str, non_null: int) -> float:
    confidence = 0.5
    if semantic_type != 'general':
        confidence += 0.2
    if semantic_type in name.lower():
        confidence += 0.2
    if non_null > 100:
        confidence += 0.1
    return min(round(confidence, 4), 1.0)


def infer_entity_type(names: Sequence[str]) -> str:
    lowered = [n.lower() for n in names]
    for entity, keywords in ENTITY_KEYWORDS:
        if any(k in n for n in lowered for k in keywords):
            return entity
    return 'entity'


def _infer_field(table: Table, name: str, settings: Settings) -> FieldSchema:
    values = table.non_null(name)
    sample = [v.as_text() for v in values[:settings.schema_sample_size]]

    data_type = infer_data_type(values, settings)
    semantic_type = infer_semantic_type(name, sample)
    distinct = {v.as_text() for v in values}

    distribution = None
    if data_type == 'numeric':
        distribution = statistics.five_number_summary(
            [n for n in (v.as_number() for v in values) if n is not None]
        )

    return FieldSchema(
        name=name,
        data_type=data_type,
        semantic_type=semantic_type,
        role=infer_role(name, data_type, semantic_type),
        patterns=detect_patterns(name, sample),
        examples=[v.to_python() for v in values[:5]],
        confidence=field_confidence(name, semantic_type, len(values)),
        metadata=FieldMetadata(
            is_unique=bool(values) and len(distinct) == len(values),
            has_nulls=len(values) < len(table),
            cardinality=len(distinct),
            distribution=distribution,
        ),
    )


def _correlation_relationships(table: Table, fields: List[FieldSchema], settings: Settings) -> List[FieldRelationship]:
    numeric = [f.name for f in fields if f.data_type == 'numeric']
    relationships = []
    for i, source in enumerate(numeric):
        for target in numeric[i + 1:]:
            pairs = [
                (row.number(source), row.number(target)) for row in table
            ]
            pairs = [(a, b) for a, b in pairs if a is not None and b is not None]
            if len(pairs) < settings.relationship_min_pairs:
                continue
            r = statistics.pearson([a for a, _ in pairs], [b for _, b in pairs])
            if r is not None and abs(r) > settings.relationship_threshold:
                relationships.append(FieldRelationship(
                    source_field=source,
                    target_field=target,
                    relationship_type='correlation',
                    strength=round(abs(r), 4),
                ))
    return relationships


def _hierarchy_relationships(table: Table, fields: List[FieldSchema], settings: Settings) -> List[FieldRelationship]:
    """
    Parent/child links between dimension-like fields, e.g. country -> city.

    A child field is nested in a parent when (almost) every child value
    appears with a single parent value and the child is strictly finer.
    """
    candidates = [f for f in fields if f.data_type in ('categorical', 'geographic') and f.metadata.cardinality > 1]
    relationships = []
    for child in candidates:
        if child.metadata.is_unique:
            continue
        for parent in candidates:
            if parent.name == child.name or parent.metadata.cardinality >= child.metadata.cardinality:
                continue
            parents_of: Dict[str, set] = defaultdict(set)
            for row in table:
                c, p = row.text(child.name), row.text(parent.name)
                if c is not None and p is not None:
                    parents_of[c].add(p)
            if not parents_of:
                continue
            strength = sum(1 for ps in parents_of.values() if len(ps) == 1) / len(parents_of)
            if strength >= settings.hierarchy_min_strength:
                relationships.append(FieldRelationship(
                    source_field=parent.name,
                    target_field=child.name,
                    relationship_type='hierarchy',
                    strength=round(strength, 4),
                ))
    return relationships


@track_performance("infer_schema")
def infer_schema(
    table: Union[Table, ParsedTable],
    settings: Optional[Settings] = None,
    telemetry: Optional[Telemetry] = None,
) -> InferredSchema:
    """
    Infer the schema of a table.

    An empty table yields an empty schema with entity type 'unknown' and
    confidence 0. At most `max_analysis_rows` rows are examined.
    """
    settings = settings or get_settings()
    telemetry = resolve(telemetry)
    if isinstance(table, ParsedTable):
        table = table.table

    if table.is_empty or not table.columns:
        telemetry.emit("infer_schema.empty")
        return InferredSchema()

    table = table.head(settings.max_analysis_rows)
    fields = [_infer_field(table, name, settings) for name in table.columns]

    relationships = _correlation_relationships(table, fields, settings)
    relationships += _hierarchy_relationships(table, fields, settings)

    schema = InferredSchema(
        fields=fields,
        entity_type=infer_entity_type([f.name for f in fields]),
        temporal_fields=[f.name for f in fields if f.data_type == 'temporal'],
        geographic_fields=[
            f.name for f in fields if f.data_type == 'geographic' or f.semantic_type == 'geographic'
        ],
        dimension_fields=[f.name for f in fields if f.role == 'dimension'],
        metric_fields=[f.name for f in fields if f.role == 'metric'],
        relationships=relationships,
        confidence=sum(f.confidence for f in fields) / len(fields),
    )

    logger.debug(
        f"Inferred schema: {len(fields)} fields, entity '{schema.entity_type}', "
        f"{len(relationships)} relationships"
    )
    telemetry.emit(
        "infer_schema.completed",
        fields=len(fields),
        entity_type=schema.entity_type,
        relationships=len(relationships),
    )
    return schema
