"""
One-paragraph summaries of a visualization's data and category-specific
recommendations for what to look at next.
"""
from typing import Any, Dict, List, Sequence

NO_DATA_SUMMARY = "No data available for summary."
NO_DATA_RECOMMENDATIONS = ["Insufficient data to provide recommendations."]

CATEGORY_RECOMMENDATIONS = [
    ('economic', [
        "Consider analyzing factors driving economic performance differences.",
        "Explore correlation between economic indicators and other development metrics.",
    ]),
    ('health', [
        "Investigate healthcare resource allocation based on outcome disparities.",
        "Consider demographic analysis to understand health metric variations.",
    ]),
    ('education', [
        "Examine educational policy impacts on performance metrics.",
        "Consider regional analysis of education outcomes to identify successful programs.",
    ]),
]
GENERIC_RECOMMENDATIONS = [
    "Explore additional data dimensions to understand causal factors.",
    "Consider time-series analysis to identify emerging trends.",
]
VISUALIZATION_RECOMMENDATION = "Try alternative visualization types to highlight different patterns in the data."

COMPARISON_CONTEXT = [
    ('economic', "This comparison highlights relative economic strength across categories."),
    ('health', "These health metrics indicate areas of priority and performance."),
    ('education', "This educational data comparison reveals performance differentials."),
]


def _points(data: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Points carrying a numeric `value`."""
    return [
        p for p in data
        if isinstance(p.get('value'), (int, float)) and not isinstance(p.get('value'), bool)
    ]


def _pct(value: float) -> str:
    return f"{abs(round(value, 1)):g}"


def _trend_summary(points: List[Dict[str, Any]], category: str) -> str:
    if len(points) < 2:
        return "Insufficient data for trend analysis."

    first, last = points[0], points[-1]
    change = last['value'] - first['value']
    if change == 0:
        return f"The data is unchanged from {first.get('name')} to {last.get('name')}."
    direction = 'increased' if change > 0 else 'decreased'
    noun = 'an increase' if change > 0 else 'a decrease'

    if first['value'] == 0:
        summary = (
            f"The data {direction} from {first['value']:g} to {last['value']:g} "
            f"between {first.get('name')} and {last.get('name')}."
        )
    else:
        pct = _pct(change / abs(first['value']) * 100)
        if 'economic' in category:
            summary = f"Economic indicators have {direction} by {pct}% over the period."
        elif 'health' in category:
            summary = f"Health metrics have {direction} by {pct}% from {first.get('name')} to {last.get('name')}."
        elif 'education' in category:
            summary = f"Education statistics show {noun} of {pct}% throughout the timeline."
        else:
            summary = f"The data shows {noun} of {pct}% from {first.get('name')} to {last.get('name')}."

    if any(p.get('projected') for p in points):
        summary += " Projections indicate this trend will continue into future periods."
    return summary


def _distribution_summary(points: List[Dict[str, Any]], category: str) -> str:
    ranked = sorted(points, key=lambda p: p['value'], reverse=True)
    total = sum(p['value'] for p in ranked)
    if total <= 0:
        return _generic_summary(points, category)

    top = ranked[0]
    top_pct = f"{top['value'] / total * 100:.1f}"
    top3_pct = f"{sum(p['value'] for p in ranked[:3]) / total * 100:.1f}"

    if 'economic' in category:
        summary = f"{top.get('name')} represents the largest segment at {top_pct}% of the economic distribution."
        if len(ranked) >= 3:
            summary += f" The top 3 categories account for {top3_pct}% of the total."
        return summary
    if len(ranked) >= 3:
        return (
            f"{top.get('name')} leads with {top_pct}% share, with the top 3 categories "
            f"comprising {top3_pct}% of the total."
        )
    return f"{top.get('name')} represents {top_pct}% of the total distribution."


def _comparison_summary(points: List[Dict[str, Any]], category: str) -> str:
    if len(points) < 2:
        return "Insufficient data for comparison."

    highest, second = sorted(points, key=lambda p: p['value'], reverse=True)[:2]
    diff = (highest['value'] - second['value']) / second['value'] * 100 if second['value'] > 0 else None

    if diff is None:
        summary = (
            f"{highest.get('name')} leads significantly at {highest['value']:g}, "
            f"ahead of {second.get('name')} at {second['value']:g}."
        )
    elif diff > 10:
        summary = (
            f"{highest.get('name')} leads significantly at {highest['value']:g}, "
            f"which is {diff:.1f}% higher than {second.get('name')}."
        )
    else:
        summary = (
            f"{highest.get('name')} ({highest['value']:g}) and {second.get('name')} ({second['value']:g}) "
            f"are the top performers with a relatively small gap of {diff:.1f}%."
        )

    context = next((text for key, text in COMPARISON_CONTEXT if key in category), None)
    if context:
        summary += f" {context}"
    return summary


def _generic_summary(points: List[Dict[str, Any]], category: str) -> str:
    average = sum(p['value'] for p in points) / len(points)
    return (
        f"Analysis of {len(points)} data points with an average value of {average:.1f} "
        f"across {category or 'all'} categories."
    )


def generate_visualization_summary(data: Sequence[Dict[str, Any]], category: str, viz_type: str) -> str:
    """
    Summarize a visualization's data points.

    Line charts are read as a trend from the first to the last point, pie
    charts as shares of the total, bar charts as a comparison of the top two
    and anything else as a count and average. Points without a numeric
    `value` are ignored.
    """
    points = _points(data or [])
    if not points:
        return NO_DATA_SUMMARY

    category = (category or '').lower()
    if viz_type == 'line':
        return _trend_summary(points, category)
    if viz_type == 'pie':
        return _distribution_summary(points, category)
    if viz_type == 'bar':
        return _comparison_summary(points, category)
    return _generic_summary(points, category)


def generate_data_recommendations(data: Sequence[Dict[str, Any]], category: str) -> List[str]:
    if not data:
        return list(NO_DATA_RECOMMENDATIONS)

    lowered = (category or '').lower()
    recommendations = next(
        (list(items) for key, items in CATEGORY_RECOMMENDATIONS if key in lowered),
        list(GENERIC_RECOMMENDATIONS),
    )
    recommendations.append(VISUALIZATION_RECOMMENDATION)
    return recommendations
