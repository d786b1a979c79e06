"""
Tests for pattern detection.
"""
import pytest

from insight_engine.core.config import Settings
from insight_engine.core.table import Table
from insight_engine.services import patterns
from insight_engine.services.parser import parse_table
from insight_engine.services.patterns import (
    analyze_patterns,
    correlation_matrix,
    is_geographic_name,
    name_tokens,
)
from insight_engine.services.schema_inference import infer_schema


def _run(table, settings=None, telemetry=None):
    if isinstance(table, str):
        table = parse_table(table, "csv").table
    settings = settings or Settings()
    return analyze_patterns(infer_schema(table, settings), table, settings, telemetry)


def _by_id(visualizations):
    return {v.id: v for v in visualizations}


@pytest.mark.unit
def test_month_names_give_bar_not_line():
    """Literal month names are a category, not a time axis."""
    visualizations = _run("month,sales\nJan,100\nFeb,150\nMar,90")

    assert [v.type for v in visualizations] == ["bar"]
    bar = visualizations[0]
    assert bar.x_axis == "month"
    assert [d["name"] for d in bar.data] == ["Feb", "Jan", "Mar"]
    assert bar.insights[0].title == "Performance Leaders"
    assert "Feb leads" in bar.insights[0].description


@pytest.mark.unit
def test_perfect_correlation_gives_scatter():
    visualizations = _run("x,y\n1,2\n2,4\n3,6\n4,8\n5,10")
    scatter = _by_id(visualizations)["correlation-analysis"]

    assert scatter.type == "scatter"
    insight = scatter.insights[0]
    assert insight.title == "Strong Positive Correlation"
    assert "r = 1.000" in insight.description
    assert insight.data[0]["r"] == pytest.approx(1.0)
    assert len(scatter.data) == 5


@pytest.mark.unit
def test_all_null_table_has_no_patterns():
    table = Table.from_records([{"a": None, "b": ""}, {"a": "", "b": None}])

    assert _run(table) == []


@pytest.mark.unit
def test_empty_table_has_no_patterns(telemetry):
    table = Table(["a"], [])

    assert analyze_patterns(infer_schema(table), table, Settings(), telemetry) == []
    assert telemetry.names() == ["analyze_patterns.empty"]


@pytest.mark.unit
def test_upward_trend_with_seasonality():
    """Rising monthly values give an upward trend, volatility and a seasonal peak."""
    table = Table.from_records([
        {"date": f"2024-{m:02d}-15", "revenue": m * 100} for m in range(1, 7)
    ])
    line = _by_id(_run(table))["timeseries-revenue"]

    assert line.type == "line"
    assert [d["name"] for d in line.data] == [f"2024-{m:02d}" for m in range(1, 7)]
    titles = [i.title for i in line.insights]
    assert titles == ["Upward Trend Detected", "High Volatility", "Seasonal Pattern"]
    trend = line.insights[0]
    assert trend.description.startswith("revenue shows strong upward trend")
    assert trend.confidence == 0.9
    assert "June" in line.insights[2].description


@pytest.mark.unit
def test_monthly_buckets_average_values():
    table = Table.from_records([
        {"date": "2024-01-01", "v": 10}, {"date": "2024-01-20", "v": 30},
        {"date": "2024-02-01", "v": 40}, {"date": "2024-03-01", "v": 50},
    ])
    line = _by_id(_run(table))["timeseries-v"]

    assert line.data[0] == {"name": "2024-01", "value": 20.0, "raw_value": 40.0, "count": 2}


@pytest.mark.unit
def test_sales_dataset_ranked_and_capped(sales_csv):
    """Detectors merge in rank order and the default cap is six."""
    visualizations = _run(sales_csv)

    assert [v.id for v in visualizations] == [
        "timeseries-sales",
        "timeseries-units",
        "correlation-analysis",
        "distribution-analysis",
        "categorical-analysis",
        "geographic-analysis",
    ]
    assert visualizations[0].insights[0].title == "Stable Trend Detected"


@pytest.mark.unit
def test_visualization_cap(sales_csv):
    visualizations = _run(sales_csv, Settings(max_visualizations=2))

    assert [v.type for v in visualizations] == ["line", "line"]


@pytest.mark.unit
def test_distribution_histogram_and_outliers():
    table = Table.from_records([{"reading": v} for v in list(range(10, 29)) + [500]])
    histogram = _by_id(_run(table))["distribution-analysis"]

    assert sum(d["value"] for d in histogram.data) == 20
    assert len(histogram.data) == 5
    titles = [i.title for i in histogram.insights]
    assert titles == ["Data Distribution Pattern", "Outliers Detected"]
    assert histogram.insights[1].data == [{"value": 500.0}]


@pytest.mark.unit
def test_categorical_gap_skips_null_categories():
    table = Table.from_records([
        {"team": "A", "score": 100}, {"team": "A", "score": 110},
        {"team": "B", "score": 10}, {"team": "B", "score": 12},
        {"team": None, "score": 1000},
    ])
    bar = _by_id(_run(table))["categorical-analysis"]

    assert [d["name"] for d in bar.data] == ["A", "B"]
    assert bar.data[0]["total"] == 210
    assert [i.title for i in bar.insights] == ["Performance Leaders", "Significant Performance Gap"]


@pytest.mark.unit
def test_geographic_map_by_named_location():
    table = Table.from_records([
        {"country": "France", "population": 10},
        {"country": "France", "population": 20},
        {"country": "Spain", "population": 5},
        {"country": None, "population": 100},
        {"country": "Italy", "population": 1},
    ])
    geo = _by_id(_run(table, Settings(max_map_entries=2)))["geographic-analysis"]

    assert geo.type == "map"
    assert geo.x_axis == "country"
    assert geo.y_axis == "population"
    assert [d["name"] for d in geo.data] == ["France", "Spain"]
    assert geo.data[0]["value"] == 30
    assert "across 3 locations" in geo.insights[0].description
    assert geo.insights[0].impact == "high"


@pytest.mark.unit
def test_geographic_map_by_coordinates():
    table = Table.from_records([
        {"lat": 59.9, "lng": 10.7, "visits": 5},
        {"lat": 59.9, "lng": 10.7, "visits": 5},
        {"lat": 48.8, "lng": 2.3, "visits": 3},
    ])
    geo = _by_id(_run(table))["geographic-analysis"]

    assert geo.data[0]["name"] == "59.9000, 10.7000"
    assert geo.data[0]["value"] == 10
    assert geo.data[0]["lat"] == 59.9
    assert geo.y_axis == "visits"


@pytest.mark.unit
@pytest.mark.parametrize("name,expected", [
    ("country", True),
    ("stateName", True),
    ("home_city", True),
    ("population", False),
    ("translation", False),
    ("longevity", False),
])
def test_geographic_names_match_whole_tokens(name, expected):
    assert is_geographic_name(name) is expected


@pytest.mark.unit
def test_name_tokens():
    assert name_tokens("stateName") == ["state", "name"]
    assert name_tokens("GDP-per_capita 2020") == ["gdp", "per", "capita", "2020"]


@pytest.mark.unit
def test_identifier_columns_are_not_measures():
    table = Table.from_records([{"customer_id": i, "amount": i * 3.5} for i in range(12)])
    visualizations = _run(table)

    assert "correlation-analysis" not in _by_id(visualizations)
    assert _by_id(visualizations)["distribution-analysis"].title == "amount Distribution Analysis"


@pytest.mark.unit
def test_correlation_matrix_is_symmetric():
    table = Table.from_records([
        {"a": i, "b": i * i, "c": (i % 3) - 1} for i in range(12)
    ])
    matrix = correlation_matrix(table, ["a", "b", "c"])

    for x in "abc":
        assert matrix[x][x] == pytest.approx(1.0)
        for y in "abc":
            assert matrix[x][y] == pytest.approx(matrix[y][x])


@pytest.mark.unit
def test_heatmap_ranks_last():
    table = Table.from_records([
        {"a": i, "b": i * i, "c": (i % 3) - 1} for i in range(12)
    ])
    visualizations = _run(table)

    assert visualizations[-1].id == "correlation-matrix"
    assert visualizations[-1].type == "heatmap"
    assert len(visualizations[-1].data) == 9


@pytest.mark.unit
def test_failing_detector_is_isolated(monkeypatch, telemetry):
    """A detector that raises contributes nothing and the rest still run."""
    def broken(ctx):
        raise RuntimeError("boom")

    monkeypatch.setattr(patterns, "DETECTORS", [("broken", broken)] + patterns.DETECTORS)
    visualizations = _run("month,sales\nJan,100\nFeb,150\nMar,90", telemetry=telemetry)

    assert [v.id for v in visualizations] == ["categorical-analysis"]
    failures = [fields for name, fields in telemetry.events if name == "analyze_patterns.detector_failed"]
    assert failures == [{"detector": "broken", "error": "boom"}]


@pytest.mark.unit
@pytest.mark.parametrize("values,expected", [
    ([1, 2, 3, 100], "right-skewed"),
    ([-1, -2, -3, -100], "left-skewed"),
    ([1, 2, 3, 4, 5], "normal"),
])
def test_distribution_shape(values, expected):
    assert patterns._distribution_type(values, 0.5) == expected


@pytest.mark.unit
@pytest.mark.parametrize("values,overrides,direction,strength,impact", [
    ([10, 8, 6, 4, 2], {}, "Downward", "Strong", "high"),
    ([100, 103, 106], {}, "Stable", "Moderate", "medium"),
    ([100, 100.5, 101], {}, "Stable", "Weak", "medium"),
    ([106, 103, 100], {"trend_slope_ratio": 0.01}, "Downward", "Moderate", "medium"),
    ([100, 100.5, 101], {"trend_slope_ratio": 0.001}, "Upward", "Weak", "medium"),
])
def test_trend_direction_and_strength(values, overrides, direction, strength, impact):
    insight = patterns._trend_insight(values, "m", Settings(**overrides))

    assert insight.title == f"{direction} Trend Detected"
    assert insight.data[0]["direction"] == direction
    assert insight.data[0]["strength"] == strength
    assert insight.description.startswith(f"m shows {strength.lower()} {direction.lower()} trend")
    assert insight.impact == impact


@pytest.mark.unit
def test_downward_trend_recommendation():
    insight = patterns._trend_insight([10, 8, 6, 4, 2], "m", Settings())

    assert "-33.33% average change" in insight.description
    assert insight.recommendations == ["Investigate factors causing m decline"]


@pytest.mark.unit
@pytest.mark.parametrize("ys,title", [
    ([2, 4, 6, 8, 10], "Strong Positive Correlation"),
    ([-2, -4, -6, -8, -10], "Strong Negative Correlation"),
    ([1, 3, 2, 5, 2], "Moderate Positive Correlation"),
    ([5, 3, 4, 1, 4], "Moderate Negative Correlation"),
])
def test_correlation_titles(ys, title):
    table = Table.from_records([{"x": x, "y": y} for x, y in zip([1, 2, 3, 4, 5], ys)])
    scatter = _by_id(_run(table))["correlation-analysis"]

    assert scatter.insights[0].title == title
    assert scatter.insights[0].impact == ("high" if title.startswith("Strong") else "medium")


@pytest.mark.unit
def test_scatter_sample_spans_every_row():
    """Scatter points are taken at an even stride, not from the head of the table."""
    table = Table.from_records([{"x": i, "y": 2 * i + 1} for i in range(250)])
    scatter = _by_id(_run(table))["correlation-analysis"]

    xs = [p["x"] for p in scatter.data]
    assert len(xs) <= 100
    assert xs[0] == 0
    assert xs[1] == 3
    assert xs[-1] == 249


def _located(points):
    return Table.from_records([{"lat": lat, "lng": lng, "visits": v} for lat, lng, v in points])


OSLO = [(59.91, 10.75), (59.92, 10.76), (59.90, 10.74), (59.91, 10.77), (59.93, 10.75)]


@pytest.mark.unit
def test_spatial_clusters_and_outliers():
    table = _located([(lat, lng, 10) for lat, lng in OSLO] + [(48.85, 2.35, 100)])
    spatial = _by_id(_run(table))["spatial-analysis"]

    assert spatial.type == "map"
    assert spatial.y_axis == "visits"
    assert [(c["name"], c["count"], c["value"]) for c in spatial.data] == [
        ("Cluster 2", 1, 100),
        ("Cluster 1", 5, 50),
    ]
    clusters, outliers = spatial.insights
    assert clusters.title == "Geographic Clusters"
    assert clusters.description.startswith("6 locations form 2 cluster(s) within 50 km")
    assert outliers.title == "Spatial Outliers"
    assert outliers.impact == "high"
    assert [(o["lat"], o["lng"]) for o in outliers.data] == [(48.85, 2.35)]
    assert outliers.data[0]["score"] == pytest.approx(2.2361, abs=1e-4)


@pytest.mark.unit
def test_spatial_clusters_without_outliers():
    table = _located([(lat, lng, 10) for lat, lng in OSLO])
    spatial = _by_id(_run(table))["spatial-analysis"]

    assert [i.title for i in spatial.insights] == ["Geographic Clusters"]
    assert spatial.data[0]["count"] == 5


@pytest.mark.unit
def test_spatial_needs_enough_located_points():
    table = _located([(lat, lng, 10) for lat, lng in OSLO[:4]])

    assert "spatial-analysis" not in _by_id(_run(table))


@pytest.mark.unit
def test_scattered_points_without_outliers_give_no_spatial_view():
    """Every point in its own cluster and no outlier leaves nothing to show."""
    table = _located([(0, i * 10, 10 + i % 2) for i in range(6)])

    assert "spatial-analysis" not in _by_id(_run(table))


@pytest.mark.unit
def test_proximity_clusters():
    labels = patterns.proximity_clusters(OSLO + [(48.85, 2.35), (59.91, 10.75)], 50)

    assert labels == [0, 0, 0, 0, 0, 1, 0]
