"""
Categorized follow-up questions offered after a query has been answered.
"""
from typing import List

from insight_engine.core.schemas import DataInsightResult, FollowUpCategory
from insight_engine.services.keywords import tokenize

TOPIC_STOP_WORDS = frozenset({
    'what', 'where', 'when', 'which', 'show', 'tell', 'find', 'about',
    'would', 'could', 'should', 'from', 'with', 'have', 'this', 'that',
    'they', 'them', 'these', 'those', 'are', 'is', 'was', 'were', 'be',
})

POLICY_QUESTIONS = [
    ('health', "What policy interventions could improve outcomes?"),
    ('economics', "What economic policies would drive growth?"),
    ('economy', "What economic policies would drive growth?"),
    ('education', "How can education access be improved?"),
]

MAX_CATEGORIES = 4


def extract_topics(query: str, limit: int = 3) -> List[str]:
    """Meaningful words of four or more letters, in query order."""
    return [w for w in tokenize(query, min_length=4) if w not in TOPIC_STOP_WORDS][:limit]


def generate_follow_up_questions(query: str, result: DataInsightResult) -> List[FollowUpCategory]:
    topics = extract_topics(query)
    has_geo = any(v.type == 'map' for v in result.visualizations)
    multiple = len(result.datasets) > 1
    dataset_categories = {d.category.lower() for d in result.datasets}

    categories: List[FollowUpCategory] = []

    analysis = []
    if topics:
        analysis.append(f"What factors are driving {topics[0]} patterns?")
        analysis.append(f"What are the key indicators for {topics[0]}?")
    if result.insights:
        analysis.append("What deeper patterns exist in this data?")
    if analysis:
        categories.append(FollowUpCategory(type='analysis', label='Deep Analysis', questions=analysis[:2]))

    comparison = []
    if has_geo:
        comparison.append("How do different regions compare?")
        comparison.append("Which areas show the strongest performance?")
    if multiple and len(topics) > 1:
        comparison.append(f"How does {topics[0]} relate to {topics[1]}?")
    if comparison:
        categories.append(FollowUpCategory(type='comparison', label='Comparisons', questions=comparison[:2]))

    if topics:
        categories.append(FollowUpCategory(
            type='trends',
            label='Trends & Forecasts',
            questions=[
                f"How has {topics[0]} changed over time?",
                f"What are the projected trends for {topics[0]}?",
            ],
        ))

    if has_geo:
        categories.append(FollowUpCategory(
            type='geographic',
            label='Geographic Insights',
            questions=[
                "What geographic patterns are most significant?",
                "Which locations need priority attention?",
            ],
        ))

    policy = [
        next(
            (q for category, q in POLICY_QUESTIONS if category in dataset_categories),
            "What policy recommendations emerge from this data?",
        )
    ]
    if topics:
        policy.append(f"What interventions could improve {topics[0]}?")
    categories.append(FollowUpCategory(type='policy', label='Policy Insights', questions=policy[:2]))

    return categories[:MAX_CATEGORIES]
