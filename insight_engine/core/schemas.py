from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Any, Dict, Literal

from insight_engine.core.table import Table

InferredType = Literal['numeric', 'date', 'categorical', 'text']
DataType = Literal['numeric', 'categorical', 'temporal', 'geographic', 'text', 'boolean']
FieldRole = Literal['dimension', 'metric', 'identifier', 'descriptor']
RelationshipType = Literal['correlation', 'hierarchy', 'dependency', 'composition']
InsightType = Literal['trend', 'correlation', 'anomaly', 'distribution', 'seasonal', 'threshold']
Impact = Literal['high', 'medium', 'low']
VisualizationType = Literal['line', 'bar', 'pie', 'area', 'scatter', 'map', 'heatmap', 'distribution']
LinkType = Literal['exact_match', 'semantic_match', 'suggested']
IntentType = Literal['explore', 'compare', 'trend', 'correlate', 'distribute', 'analyze']
Timeframe = Literal['temporal', 'recent', 'historical', 'annual', 'periodic']


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# Parser output

class ColumnProfile(_Frozen):
    name: str
    inferred_type: InferredType
    null_count: int
    unique_count: int
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    mode: Optional[str] = None

class ParsedTable(_Frozen):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    table: Table
    columns: List[str]
    numeric_columns: List[str] = []
    date_columns: List[str] = []
    categorical_columns: List[str] = []
    total_rows: int
    summary: Dict[str, ColumnProfile] = {}


# Schema inference

class FieldMetadata(_Frozen):
    is_unique: bool
    has_nulls: bool
    cardinality: int
    distribution: Optional[Dict[str, float]] = None  # q1, median, q3, min, max for numeric fields

class FieldSchema(_Frozen):
    name: str
    data_type: DataType
    semantic_type: str
    role: FieldRole
    patterns: List[str] = []
    examples: List[Any] = []
    confidence: float = Field(ge=0, le=1)
    metadata: FieldMetadata

class FieldRelationship(_Frozen):
    source_field: str
    target_field: str
    relationship_type: RelationshipType
    strength: float = Field(ge=0, le=1)

class InferredSchema(_Frozen):
    fields: List[FieldSchema] = []
    entity_type: str = 'unknown'
    temporal_fields: List[str] = []
    geographic_fields: List[str] = []
    dimension_fields: List[str] = []
    metric_fields: List[str] = []
    relationships: List[FieldRelationship] = []
    confidence: float = 0.0

    def field(self, name: str) -> Optional[FieldSchema]:
        return next((f for f in self.fields if f.name == name), None)


# Semantic analysis

class KnowledgeLink(_Frozen):
    field: str
    external_source: str
    link_type: LinkType
    confidence: float
    description: str

class SemanticAnalysis(_Frozen):
    domain_classification: str
    knowledge_links: List[KnowledgeLink] = []
    suggested_analyses: List[str] = []
    data_quality_score: float = Field(ge=0, le=100)
    completeness_score: float = Field(ge=0, le=100)
    consistency_score: float = Field(ge=0, le=100)


# Pattern analysis

class DataInsight(_Frozen):
    type: InsightType
    title: str
    description: str
    confidence: float = Field(ge=0, le=1)
    impact: Impact
    data: Optional[List[Dict[str, Any]]] = None
    recommendations: Optional[List[str]] = None

class IntelligentVisualization(_Frozen):
    id: str
    title: str
    type: VisualizationType
    data: List[Dict[str, Any]]
    insights: List[DataInsight] = []
    x_axis: str
    y_axis: str
    description: str
    purpose: str
    dataset_id: Optional[str] = None  # set by the composer when answering a query
    summary: Optional[str] = None


# Catalog boundary and query answers

class Dataset(_Frozen):
    id: str
    title: str
    description: str = ""
    category: str = ""
    format: str = "csv"
    file: Optional[str] = None
    featured: bool = False
    date: Optional[str] = None  # ISO date used for recency ordering
    tags: List[str] = []

class QueryIntent(_Frozen):
    type: IntentType
    confidence: float = Field(ge=0, le=1)
    keywords: List[str] = []
    synonyms: List[str] = []
    domain: str = 'general'
    timeframe: Optional[Timeframe] = None
    geographic: Optional[str] = None

class CategoryInfo(_Frozen):
    category: str
    count: int
    examples: List[str] = []

class DatasetGuidance(_Frozen):
    has_datasets: bool
    total_datasets: int = 0
    categories: List[CategoryInfo] = []
    suggested_queries: List[str] = []
    missing_categories: List[str] = []
    query_refinements: List[str] = []

class ComparisonResult(_Frozen):
    title: str
    description: str
    data: List[Dict[str, Any]]

class FollowUpCategory(_Frozen):
    type: Literal['analysis', 'comparison', 'trends', 'geographic', 'policy']
    label: str
    questions: List[str]

class DataInsightResult(_Frozen):
    question: str
    answer: str = Field(min_length=1)
    datasets: List[Dataset]
    visualizations: List[IntelligentVisualization] = []
    insights: List[str] = []
    comparison_result: Optional[ComparisonResult] = None
    follow_up_questions: List[FollowUpCategory] = []
    recommendations: List[str] = []
    query_intent: Optional[QueryIntent] = None
