"""
Tests for follow-up question generation.
"""
import pytest

from insight_engine.core.schemas import DataInsightResult, IntelligentVisualization
from insight_engine.services.followups import extract_topics, generate_follow_up_questions


def _result(datasets, viz_types=(), insights=("x",)):
    visualizations = [
        IntelligentVisualization(
            id=f"{t}-{i}", title="t", type=t, data=[], insights=[],
            x_axis="x", y_axis="y", description="d", purpose="p",
        )
        for i, t in enumerate(viz_types)
    ]
    return DataInsightResult(
        question="q", answer="a", datasets=list(datasets), visualizations=visualizations, insights=list(insights),
    )


@pytest.mark.unit
def test_extract_topics():
    assert extract_topics("What is the hospital capacity across regions?") == ["hospital", "capacity", "across"]
    assert extract_topics("is it ok") == []


@pytest.mark.unit
def test_categories_capped_at_four(health_dataset, economic_dataset):
    result = _result([health_dataset, economic_dataset], viz_types=("map",))

    categories = generate_follow_up_questions("hospital admissions by region", result)

    assert len(categories) == 4
    assert [c.type for c in categories] == ["analysis", "comparison", "trends", "geographic"]
    assert all(1 <= len(c.questions) <= 2 for c in categories)


@pytest.mark.unit
def test_topic_questions(economic_dataset):
    categories = generate_follow_up_questions("inflation forecast", _result([economic_dataset]))
    by_type = {c.type: c for c in categories}

    assert by_type["analysis"].questions[0] == "What factors are driving inflation patterns?"
    assert by_type["trends"].questions == [
        "How has inflation changed over time?",
        "What are the projected trends for inflation?",
    ]
    assert "comparison" not in by_type
    assert by_type["policy"].questions[0] == "What economic policies would drive growth?"


@pytest.mark.unit
def test_health_policy_question(health_dataset):
    categories = generate_follow_up_questions("admissions", _result([health_dataset]))

    policy = next(c for c in categories if c.type == "policy")
    assert policy.questions[0] == "What policy interventions could improve outcomes?"


@pytest.mark.unit
def test_generic_policy_without_topics():
    categories = generate_follow_up_questions("", _result([], insights=()))

    assert [c.type for c in categories] == ["policy"]
    assert categories[0].questions == ["What policy recommendations emerge from this data?"]
