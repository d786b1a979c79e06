"""
Tests for visualization summaries and data recommendations.
"""
import pytest

from insight_engine.services.summaries import (
    GENERIC_RECOMMENDATIONS,
    NO_DATA_RECOMMENDATIONS,
    NO_DATA_SUMMARY,
    VISUALIZATION_RECOMMENDATION,
    generate_data_recommendations,
    generate_visualization_summary,
)


def _series(*values, names=None):
    names = names or [str(2020 + i) for i in range(len(values))]
    return [{"name": n, "value": v} for n, v in zip(names, values)]


@pytest.mark.unit
@pytest.mark.parametrize("values,category,expected", [
    ((100, 150), "Economics", "Economic indicators have increased by 50% over the period."),
    ((200, 150), "Health", "Health metrics have decreased by 25% from 2020 to 2021."),
    ((100, 112.5), "Education", "Education statistics show an increase of 12.5% throughout the timeline."),
    ((80, 60), "Transport", "The data shows a decrease of 25% from 2020 to 2021."),
    ((0, 5), "Transport", "The data increased from 0 to 5 between 2020 and 2021."),
    ((7, 7), "Transport", "The data is unchanged from 2020 to 2021."),
    ((7,), "Transport", "Insufficient data for trend analysis."),
])
def test_trend_summary(values, category, expected):
    assert generate_visualization_summary(_series(*values), category, "line") == expected


@pytest.mark.unit
def test_trend_summary_mentions_projections():
    data = _series(10, 12) + [{"name": "2022", "value": 14, "projected": True}]

    summary = generate_visualization_summary(data, "Health", "line")

    assert summary.startswith("Health metrics have increased by 40%")
    assert summary.endswith("Projections indicate this trend will continue into future periods.")


@pytest.mark.unit
def test_distribution_summary():
    data = _series(20, 50, 30, names=["C", "A", "B"])

    assert generate_visualization_summary(data, "Other", "pie") == (
        "A leads with 50.0% share, with the top 3 categories comprising 100.0% of the total."
    )
    assert generate_visualization_summary(data[1:], "Other", "pie") == "A represents 62.5% of the total distribution."
    assert generate_visualization_summary(data, "Economics", "pie") == (
        "A represents the largest segment at 50.0% of the economic distribution. "
        "The top 3 categories account for 100.0% of the total."
    )


@pytest.mark.unit
def test_distribution_without_a_positive_total_falls_back_to_counts():
    data = _series(0, 0, names=["A", "B"])

    assert generate_visualization_summary(data, "Transport", "pie") == (
        "Analysis of 2 data points with an average value of 0.0 across transport categories."
    )


@pytest.mark.unit
def test_comparison_summary():
    assert generate_visualization_summary(_series(100, 120, names=["B", "A"]), "Health", "bar") == (
        "A leads significantly at 120, which is 20.0% higher than B. "
        "These health metrics indicate areas of priority and performance."
    )
    assert generate_visualization_summary(_series(105, 100, names=["A", "B"]), "", "bar") == (
        "A (105) and B (100) are the top performers with a relatively small gap of 5.0%."
    )
    assert generate_visualization_summary(_series(10, 0, names=["A", "B"]), "", "bar") == (
        "A leads significantly at 10, ahead of B at 0."
    )
    assert generate_visualization_summary(_series(10), "", "bar") == "Insufficient data for comparison."


@pytest.mark.unit
def test_other_chart_types_get_a_generic_summary():
    assert generate_visualization_summary(_series(1, 2, 3), "", "map") == (
        "Analysis of 3 data points with an average value of 2.0 across all categories."
    )


@pytest.mark.unit
def test_points_without_numeric_values_give_no_summary():
    scatter = [{"x": 1.0, "y": 2.0, "name": "(1.00, 2.00)"}]

    assert generate_visualization_summary(scatter, "Health", "scatter") == NO_DATA_SUMMARY
    assert generate_visualization_summary([{"name": "flag", "value": True}], "", "bar") == NO_DATA_SUMMARY
    assert generate_visualization_summary([], "", "line") == NO_DATA_SUMMARY


@pytest.mark.unit
def test_data_recommendations():
    economic = generate_data_recommendations(_series(1, 2), "Economics")
    generic = generate_data_recommendations(_series(1, 2), "Weather")

    assert len(economic) == 3
    assert economic[0].startswith("Consider analyzing factors driving economic performance")
    assert economic[-1] == VISUALIZATION_RECOMMENDATION
    assert generic == GENERIC_RECOMMENDATIONS + [VISUALIZATION_RECOMMENDATION]
    assert generate_data_recommendations([], "Economics") == NO_DATA_RECOMMENDATIONS
