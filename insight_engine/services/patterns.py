"""
Pattern detection over an inferred schema.

Each detector looks at one kind of structure (time series, correlation,
distribution, categorical performance, geography, spatial clusters) and
returns zero or more visualizations with attached insights. Detectors are
independent: one that fails or lacks data never prevents the others from
running.
"""
import logging
import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.performance import track_performance
from insight_engine.core.schemas import DataInsight, InferredSchema, IntelligentVisualization, ParsedTable
from insight_engine.core.table import Table
from insight_engine.core.telemetry import Telemetry, resolve
from insight_engine.services import statistics
from insight_engine.services.schema_inference import matches_identifier_name

logger = logging.getLogger(__name__)

GEO_TOKENS = {'lat', 'latitude', 'lng', 'lon', 'long', 'longitude', 'country', 'region', 'state', 'city'}
COORDINATE_TOKENS = {'lat', 'latitude', 'lng', 'lon', 'long', 'longitude'}
PREFERRED_LOCATION_TOKENS = ('country', 'region', 'state', 'city')

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]


def name_tokens(name: str) -> List[str]:
    """Split a column name on separators and camelCase boundaries."""
    spaced = re.sub(r'([a-z0-9])([A-Z])', r'\1 \2', name)
    return [t for t in re.split(r'[^A-Za-z0-9]+', spaced.lower()) if t]


def is_geographic_name(name: str) -> bool:
    return any(t in GEO_TOKENS for t in name_tokens(name))


@dataclass
class AnalysisContext:
    schema: InferredSchema
    table: Table
    settings: Settings
    numeric: List[str] = field(default_factory=list)
    temporal: List[str] = field(default_factory=list)
    categorical: List[str] = field(default_factory=list)

    @classmethod
    def build(cls, schema: InferredSchema, table: Table, settings: Settings) -> "AnalysisContext":
        return cls(
            schema=schema,
            table=table,
            settings=settings,
            numeric=[
                f.name for f in schema.fields
                if f.data_type == 'numeric' and not matches_identifier_name(f.name)
            ],
            temporal=list(schema.temporal_fields),
            categorical=[f.name for f in schema.fields if f.data_type == 'categorical'],
        )


def _paired_numbers(table: Table, x: str, y: str) -> Tuple[List[float], List[float]]:
    xs, ys = [], []
    for row in table:
        a, b = row.number(x), row.number(y)
        if a is not None and b is not None:
            xs.append(a)
            ys.append(b)
    return xs, ys


def correlation_matrix(table: Table, columns: Sequence[str]) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Pearson correlation for every pair of columns on pairwise-complete rows.

    The diagonal is 1.0 for columns with variance. Pairs without enough data
    or variance are None.
    """
    matrix: Dict[str, Dict[str, Optional[float]]] = {c: {} for c in columns}
    for i, a in enumerate(columns):
        for b in columns[i:]:
            r = statistics.pearson(*_paired_numbers(table, a, b))
            matrix[a][b] = r
            matrix[b][a] = r
    return matrix


# Time series

def _month_buckets(pairs: List[Tuple[object, float]]) -> List[Dict[str, float]]:
    buckets: Dict[str, List[float]] = {}
    for ts, value in pairs:
        buckets.setdefault(f"{ts.year}-{ts.month:02d}", []).append(value)
    return [
        {
            'name': period,
            'value': round(sum(values) / len(values), 4),
            'raw_value': round(sum(values), 4),
            'count': len(values),
        }
        for period, values in buckets.items()
    ]


def _trend_insight(values: List[float], metric: str, settings: Settings) -> DataInsight:
    slope = statistics.ols_slope(values) or 0.0
    average = statistics.mean(values) or 0.0
    percentage = slope / average * 100 if average else 0.0
    threshold = settings.trend_slope_ratio * abs(average)

    if slope > threshold:
        direction = 'Upward'
    elif slope < -threshold:
        direction = 'Downward'
    else:
        direction = 'Stable'

    magnitude = abs(percentage)
    if magnitude > settings.strong_trend_pct:
        strength = 'Strong'
    elif magnitude > settings.moderate_trend_pct:
        strength = 'Moderate'
    else:
        strength = 'Weak'

    if direction == 'Upward':
        recommendations = [f"Maintain current strategies driving {metric} growth"]
    elif direction == 'Downward':
        recommendations = [f"Investigate factors causing {metric} decline"]
    else:
        recommendations = [f"Monitor {metric} for shifts away from its current level"]

    return DataInsight(
        type='trend',
        title=f"{direction} Trend Detected",
        description=f"{metric} shows {strength.lower()} {direction.lower()} trend with {percentage:.2f}% average change",
        confidence=round(min(0.9, magnitude / 10), 4),
        impact='high' if strength == 'Strong' else 'medium',
        data=[{'slope': slope, 'percentage_slope': percentage, 'direction': direction, 'strength': strength}],
        recommendations=recommendations,
    )


def _seasonal_insight(pairs: List[Tuple[object, float]], metric: str, settings: Settings) -> Optional[DataInsight]:
    by_month: Dict[int, List[float]] = defaultdict(list)
    for ts, value in pairs:
        by_month[ts.month].append(value)
    if len(by_month) < settings.seasonal_min_months:
        return None

    averages = {month: sum(v) / len(v) for month, v in by_month.items()}
    peak = max(averages, key=averages.get)
    low = min(averages, key=averages.get)
    if averages[low] <= 0:
        return None

    swing = (averages[peak] - averages[low]) / averages[low]
    if swing <= settings.seasonal_swing_threshold:
        return None

    return DataInsight(
        type='seasonal',
        title='Seasonal Pattern',
        description=(
            f"{metric} peaks in {MONTH_NAMES[peak - 1]} and is lowest in {MONTH_NAMES[low - 1]} "
            f"({swing * 100:.0f}% swing between monthly averages)"
        ),
        confidence=0.7,
        impact='medium',
        data=[{'month': MONTH_NAMES[m - 1], 'average': round(a, 4)} for m, a in sorted(averages.items())],
        recommendations=[f"Plan around the {MONTH_NAMES[peak - 1]} peak in {metric}"],
    )


def time_series_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    if not ctx.temporal or not ctx.numeric:
        return []

    settings = ctx.settings
    date_column = ctx.temporal[0]
    visualizations = []

    for metric in ctx.numeric[:settings.max_time_series_metrics]:
        pairs = []
        for row in ctx.table:
            ts, value = row.date(date_column), row.number(metric)
            if ts is not None and value is not None:
                pairs.append((ts, value))
        pairs.sort(key=lambda p: p[0])

        buckets = _month_buckets(pairs)
        if len(buckets) < settings.min_time_buckets:
            continue

        values = [b['value'] for b in buckets]
        insights = [_trend_insight(values, metric, settings)]

        volatility = statistics.coefficient_of_variation(values)
        if volatility is not None and volatility > settings.volatility_threshold:
            insights.append(DataInsight(
                type='anomaly',
                title='High Volatility',
                description=f"{metric} shows high volatility ({volatility * 100:.1f}% coefficient of variation)",
                confidence=0.8,
                impact='medium',
                recommendations=['Consider implementing stabilization measures'],
            ))

        seasonal = _seasonal_insight(pairs, metric, settings)
        if seasonal is not None:
            insights.append(seasonal)

        visualizations.append(IntelligentVisualization(
            id=f"timeseries-{metric}",
            title=f"{metric} Trends Over Time",
            type='line',
            data=buckets,
            insights=insights,
            x_axis='Time Period',
            y_axis=metric,
            description=f"Temporal analysis showing how {metric} changes over time",
            purpose='Identify trends, seasonality, and growth patterns',
        ))

    return visualizations


# Correlation

def _strong_pairs(matrix: Dict[str, Dict[str, Optional[float]]], columns: Sequence[str], threshold: float):
    pairs = []
    for i, a in enumerate(columns):
        for b in columns[i + 1:]:
            r = matrix[a][b]
            if r is not None and abs(r) > threshold:
                pairs.append((a, b, r))
    return sorted(pairs, key=lambda p: abs(p[2]), reverse=True)


def correlation_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    if len(ctx.numeric) < 2:
        return []

    settings = ctx.settings
    matrix = correlation_matrix(ctx.table, ctx.numeric)
    pairs = _strong_pairs(matrix, ctx.numeric, settings.correlation_threshold)
    if not pairs:
        return []

    x, y, r = pairs[0]
    strength = 'Strong' if abs(r) > settings.strong_correlation else 'Moderate'
    sign = 'Positive' if r > 0 else 'Negative'

    xs, ys = _paired_numbers(ctx.table, x, y)
    paired = list(zip(xs, ys))
    # Even stride over every row so the sample spans the whole table
    step = max(1, math.ceil(len(paired) / settings.max_scatter_points))
    points = [
        {'x': a, 'y': b, 'name': f"({a:.2f}, {b:.2f})"}
        for a, b in paired[::step]
    ]

    insight = DataInsight(
        type='correlation',
        title=f"{strength} {sign} Correlation",
        description=f"{x} and {y} show {strength.lower()} {sign.lower()} correlation (r = {r:.3f})",
        confidence=round(abs(r), 4),
        impact='high' if strength == 'Strong' else 'medium',
        data=[{'x': a, 'y': b, 'r': round(c, 4)} for a, b, c in pairs],
        recommendations=[
            f"Monitor {x} as a leading indicator for {y}",
            'Consider the relationship when making decisions affecting either metric',
        ],
    )

    return [IntelligentVisualization(
        id='correlation-analysis',
        title=f"{x} vs {y} Relationship",
        type='scatter',
        data=points,
        insights=[insight],
        x_axis=x,
        y_axis=y,
        description='Correlation analysis revealing the relationship between key variables',
        purpose='Understand how different metrics influence each other',
    )]


def correlation_heatmap(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    if len(ctx.numeric) < 3:
        return []

    matrix = correlation_matrix(ctx.table, ctx.numeric)
    cells = [
        {'x': a, 'y': b, 'value': round(matrix[a][b], 4)}
        for a in ctx.numeric
        for b in ctx.numeric
        if matrix[a][b] is not None
    ]
    if not cells:
        return []

    return [IntelligentVisualization(
        id='correlation-matrix',
        title='Correlation Matrix',
        type='heatmap',
        data=cells,
        insights=[],
        x_axis='Metric',
        y_axis='Metric',
        description=f"Pairwise correlation between {len(ctx.numeric)} numeric fields",
        purpose='Spot clusters of related metrics at a glance',
    )]


# Distribution

def _distribution_type(values: List[float], threshold: float) -> str:
    skew = statistics.skewness(values)
    if skew > threshold:
        return 'right-skewed'
    if skew < -threshold:
        return 'left-skewed'
    return 'normal'


def distribution_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    if not ctx.numeric:
        return []

    settings = ctx.settings
    column = ctx.numeric[0]
    values = ctx.table.numbers(column)
    if len(values) < settings.min_distribution_values:
        return []

    buckets = statistics.histogram(values, settings.max_histogram_buckets)
    data = [
        {
            'name': f"{b['start']:.1f}-{b['end']:.1f}",
            'value': b['count'],
            'percentage': round(b['count'] / len(values) * 100, 1),
            'start': b['start'],
            'end': b['end'],
        }
        for b in buckets
    ]

    average = statistics.mean(values)
    middle = statistics.median(values)
    spread = statistics.std(values)
    details = [f"Mean: {average:.2f}, Median: {middle:.2f}"]
    if average:
        details.append(
            f"Standard deviation: {spread:.2f} ({spread / abs(average) * 100:.1f}% coefficient of variation)"
        )
    else:
        details.append(f"Standard deviation: {spread:.2f}")

    insights = [DataInsight(
        type='distribution',
        title='Data Distribution Pattern',
        description=f"{column} shows {_distribution_type(values, settings.skew_threshold)} distribution",
        confidence=0.8,
        impact='medium',
        data=[{'mean': average, 'median': middle, 'std': spread}],
        recommendations=details,
    )]

    outliers = statistics.iqr_outliers(values, settings.iqr_multiplier)
    if outliers:
        insights.append(DataInsight(
            type='anomaly',
            title='Outliers Detected',
            description=f"{len(outliers)} outlier(s) found that deviate significantly from the norm",
            confidence=0.9,
            impact='high',
            data=[{'value': v} for v in outliers[:10]],
            recommendations=[f"Investigate outlier values: {', '.join(f'{v:.2f}' for v in outliers[:3])}"],
        ))

    return [IntelligentVisualization(
        id='distribution-analysis',
        title=f"{column} Distribution Analysis",
        type='bar',
        data=data,
        insights=insights,
        x_axis='Value Range',
        y_axis='Frequency',
        description=f"Statistical distribution showing the spread and frequency of {column} values",
        purpose='Identify patterns, outliers, and data quality issues',
    )]


# Categorical

def categorical_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    if not ctx.categorical or not ctx.numeric:
        return []

    settings = ctx.settings
    category, metric = ctx.categorical[0], ctx.numeric[0]

    groups: Dict[str, List[float]] = {}
    for row in ctx.table:
        name, value = row.text(category), row.number(metric)
        if name is not None and value is not None:
            groups.setdefault(name, []).append(value)
    if not groups:
        return []

    ranked = sorted(
        (
            {
                'name': name,
                'value': round(sum(values) / len(values), 4),
                'total': round(sum(values), 4),
                'count': len(values),
                'variance': round(statistics.std(values) ** 2, 4),
            }
            for name, values in groups.items()
        ),
        key=lambda item: item['value'],
        reverse=True,
    )[:settings.max_categories]

    top, bottom = ranked[0], ranked[-1]
    insights = [DataInsight(
        type='threshold',
        title='Performance Leaders',
        description=f"{top['name']} leads with {top['value']:.2f} average {metric}",
        confidence=0.9,
        impact='high',
        recommendations=[f"Study {top['name']}'s practices for replication"],
    )]

    if len(ranked) >= 2 and bottom['value'] > 0:
        ratio = top['value'] / bottom['value']
        if ratio > settings.category_gap_ratio:
            insights.append(DataInsight(
                type='anomaly',
                title='Significant Performance Gap',
                description=f"{ratio:.1f}x difference between top and bottom performers",
                confidence=0.85,
                impact='high',
                data=[{'top': top['name'], 'bottom': bottom['name'], 'ratio': round(ratio, 4)}],
                recommendations=['Focus improvement efforts on underperforming categories'],
            ))

    return [IntelligentVisualization(
        id='categorical-analysis',
        title=f"{metric} Performance by {category}",
        type='bar',
        data=ranked,
        insights=insights,
        x_axis=category,
        y_axis=f"Average {metric}",
        description=f"Comparative analysis showing how {metric} varies across different {category} categories",
        purpose='Identify high-performing categories and opportunities for improvement',
    )]


# Geography

def _location_column(columns: Sequence[str]) -> Optional[str]:
    named = [c for c in columns if is_geographic_name(c) and not set(name_tokens(c)) & COORDINATE_TOKENS]
    for token in PREFERRED_LOCATION_TOKENS:
        for column in named:
            if token in name_tokens(column):
                return column
    return named[0] if named else None


def _coordinate_columns(columns: Sequence[str]) -> Optional[Tuple[str, str]]:
    lat = next((c for c in columns if set(name_tokens(c)) & {'lat', 'latitude'}), None)
    lng = next((c for c in columns if set(name_tokens(c)) & {'lng', 'lon', 'long', 'longitude'}), None)
    return (lat, lng) if lat and lng else None


def geographic_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    columns = list(ctx.table.columns)
    if not any(is_geographic_name(c) for c in columns):
        return []

    settings = ctx.settings
    location = _location_column(columns)
    coordinates = _coordinate_columns(columns) if location is None else None
    if location is None and coordinates is None:
        return []

    excluded = {location} | set(coordinates or ())
    measure = next((c for c in ctx.numeric if c not in excluded), None)

    totals: Dict[str, Dict[str, object]] = {}
    for row in ctx.table:
        if location is not None:
            key = row.text(location)
            extra = {}
        else:
            lat, lng = row.number(coordinates[0]), row.number(coordinates[1])
            if lat is None or lng is None:
                continue
            key = f"{lat:.4f}, {lng:.4f}"
            extra = {'lat': lat, 'lng': lng}
        if key is None:
            continue

        entry = totals.setdefault(key, {'name': key, 'value': 0.0, 'count': 0, **extra})
        entry['count'] += 1
        if measure is None:
            entry['value'] += 1
        else:
            entry['value'] += row.number(measure) or 0.0

    if not totals:
        return []

    data = sorted(totals.values(), key=lambda e: e['value'], reverse=True)[:settings.max_map_entries]
    label = location or 'coordinates'
    measure_label = measure or 'records'

    insights = []
    grand_total = sum(e['value'] for e in totals.values())
    if grand_total > 0:
        share = data[0]['value'] / grand_total * 100
        insights.append(DataInsight(
            type='distribution',
            title='Geographic Concentration',
            description=(
                f"{data[0]['name']} accounts for {share:.1f}% of total {measure_label} "
                f"across {len(totals)} locations"
            ),
            confidence=0.7,
            impact='high' if share > 50 else 'medium',
            recommendations=[f"Compare {data[0]['name']} with other {label} values to explain the gap"],
        ))

    return [IntelligentVisualization(
        id='geographic-analysis',
        title=f"Geographic Distribution by {label}",
        type='map',
        data=data,
        insights=insights,
        x_axis=label,
        y_axis=measure_label,
        description=f"Geographic visualization showing distribution of data across different {label} values",
        purpose='Reveal regional concentration and coverage',
    )]


# Spatial

def proximity_clusters(points: Sequence[Tuple[float, float]], radius_km: float) -> List[int]:
    """
    Greedy clustering of (lat, lng) points.

    Each unassigned point seeds a new cluster and claims every unassigned
    point within `radius_km` of it. Returns the cluster index of each point.
    """
    labels = [-1] * len(points)
    cluster = 0
    for i, seed in enumerate(points):
        if labels[i] != -1:
            continue
        labels[i] = cluster
        for j, other in enumerate(points):
            if labels[j] == -1 and statistics.haversine_km(seed, other) <= radius_km:
                labels[j] = cluster
        cluster += 1
    return labels


def spatial_analysis(ctx: AnalysisContext) -> List[IntelligentVisualization]:
    coordinates = _coordinate_columns(ctx.table.columns)
    if coordinates is None:
        return []

    settings = ctx.settings
    measure = next((c for c in ctx.numeric if c not in coordinates), None)
    if measure is None:
        return []

    located = []
    for row in ctx.table:
        lat, lng, value = row.number(coordinates[0]), row.number(coordinates[1]), row.number(measure)
        if lat is not None and lng is not None and value is not None:
            located.append((lat, lng, value))
    if len(located) < settings.min_spatial_points:
        return []

    labels = proximity_clusters([(lat, lng) for lat, lng, _ in located], settings.cluster_radius_km)
    scores = statistics.z_scores([value for _, _, value in located])

    clusters: Dict[int, List[Tuple[float, float, float]]] = defaultdict(list)
    for label, point in zip(labels, located):
        clusters[label].append(point)
    summaries = sorted(
        (
            {
                'name': f"Cluster {label + 1}",
                'lat': round(sum(p[0] for p in members) / len(members), 4),
                'lng': round(sum(p[1] for p in members) / len(members), 4),
                'value': round(sum(p[2] for p in members), 4),
                'count': len(members),
            }
            for label, members in clusters.items()
        ),
        key=lambda c: c['value'],
        reverse=True,
    )[:settings.max_map_entries]

    insights = []
    if len(clusters) < len(located):
        largest = max(summaries, key=lambda c: c['count'])
        insights.append(DataInsight(
            type='distribution',
            title='Geographic Clusters',
            description=(
                f"{len(located)} locations form {len(clusters)} cluster(s) within "
                f"{settings.cluster_radius_km:g} km; the largest holds {largest['count']} locations"
            ),
            confidence=0.7,
            impact='medium',
            data=summaries,
            recommendations=[f"Compare {measure} within and across clusters"],
        ))

    outliers = [
        {'lat': lat, 'lng': lng, 'value': value, 'score': round(z, 4)}
        for (lat, lng, value), z in zip(located, scores)
        if abs(z) > settings.spatial_outlier_z
    ]
    if outliers:
        outliers.sort(key=lambda o: abs(o['score']), reverse=True)
        first = outliers[0]
        insights.append(DataInsight(
            type='anomaly',
            title='Spatial Outliers',
            description=(
                f"{len(outliers)} location(s) have {measure} more than "
                f"{settings.spatial_outlier_z:g} standard deviations from the mean"
            ),
            confidence=0.75,
            impact='high',
            data=outliers[:10],
            recommendations=[f"Investigate {measure} at {first['lat']:.4f}, {first['lng']:.4f}"],
        ))

    if not insights:
        return []

    return [IntelligentVisualization(
        id='spatial-analysis',
        title=f"Spatial Clusters of {measure}",
        type='map',
        data=summaries,
        insights=insights,
        x_axis='coordinates',
        y_axis=measure,
        description=f"Proximity clusters of located {measure} values and the locations that stand out",
        purpose='Find where values concentrate and which places break the pattern',
    )]


# Rank order for merging; ties keep discovery order
DETECTORS: List[Tuple[str, Callable[[AnalysisContext], List[IntelligentVisualization]]]] = [
    ('time_series', time_series_analysis),
    ('correlation', correlation_analysis),
    ('distribution', distribution_analysis),
    ('categorical', categorical_analysis),
    ('geographic', geographic_analysis),
    ('spatial', spatial_analysis),
    ('correlation_matrix', correlation_heatmap),
]


@track_performance("analyze_patterns")
def analyze_patterns(
    schema: InferredSchema,
    table: Union[Table, ParsedTable],
    settings: Optional[Settings] = None,
    telemetry: Optional[Telemetry] = None,
) -> List[IntelligentVisualization]:
    """
    Run every detector and merge their visualizations in rank order.

    Never raises for a parseable table: a failing detector is logged,
    reported through telemetry and contributes nothing.
    """
    settings = settings or get_settings()
    telemetry = resolve(telemetry)
    if isinstance(table, ParsedTable):
        table = table.table

    if table.is_empty or not schema.fields:
        telemetry.emit("analyze_patterns.empty")
        return []

    ctx = AnalysisContext.build(schema, table.head(settings.max_analysis_rows), settings)

    visualizations: List[IntelligentVisualization] = []
    for name, detector in DETECTORS:
        try:
            found = detector(ctx)
        except Exception as e:
            logger.warning(f"Detector '{name}' failed: {e}", exc_info=True)
            telemetry.emit("analyze_patterns.detector_failed", detector=name, error=str(e))
            continue
        telemetry.emit("analyze_patterns.detector", detector=name, visualizations=len(found))
        visualizations.extend(found)

    logger.debug(f"Pattern analysis produced {len(visualizations)} visualizations")
    return visualizations[:settings.max_visualizations]
