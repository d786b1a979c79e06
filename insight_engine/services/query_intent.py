"""
Query intent parsing.

Reads a free-text question for what the asker wants to do (compare, see a
trend, ...), which domain it is about, and any timeframe or place it
mentions. The composer uses the result to break ties between datasets that
score equally on keywords, and returns it alongside the answer.
"""
import re
from typing import Dict, List, Optional, Sequence, Tuple

from insight_engine.core.schemas import Dataset, QueryIntent
from insight_engine.services.keywords import contains_word, tokenize

SEMANTIC_MAPPINGS: Dict[str, List[str]] = {
    'economic': ['economy', 'gdp', 'growth', 'finance', 'financial', 'trade', 'commerce', 'business',
                 'income', 'revenue', 'earnings'],
    'poverty': ['poor', 'low-income', 'disadvantaged', 'underprivileged', 'impoverished', 'deprived'],
    'development': ['progress', 'advancement', 'improvement', 'growth', 'expansion', 'modernization'],
    'health': ['healthcare', 'medical', 'wellness', 'medicine', 'hospital', 'clinic', 'treatment'],
    'disease': ['illness', 'sickness', 'condition', 'infection', 'epidemic', 'outbreak', 'pandemic'],
    'mortality': ['death', 'deaths', 'fatality', 'fatalities', 'survival', 'life expectancy'],
    'education': ['school', 'learning', 'academic', 'university', 'college', 'training', 'knowledge'],
    'literacy': ['reading', 'writing', 'numeracy', 'skills', 'competency', 'ability'],
    'enrollment': ['admission', 'registration', 'attendance', 'participation'],
    'transport': ['transportation', 'mobility', 'travel', 'movement', 'logistics', 'transit'],
    'infrastructure': ['roads', 'bridges', 'utilities', 'facilities', 'services', 'amenities'],
    'environment': ['environmental', 'climate', 'weather', 'ecology', 'nature', 'sustainability'],
    'pollution': ['contamination', 'emissions', 'waste', 'toxic', 'environmental damage'],
    'region': ['area', 'zone', 'territory', 'location', 'place', 'county', 'province'],
    'population': ['people', 'demographic', 'citizens', 'residents', 'inhabitants'],
    'urban': ['city', 'metropolitan', 'municipal', 'town'],
    'rural': ['countryside', 'village', 'remote', 'agricultural'],
}

# Checked in this order; the first intent with a matching phrase wins
INTENT_PATTERNS: List[Tuple[str, List[str], float]] = [
    ('compare', ['compare', 'versus', 'vs', 'difference', 'between', 'against'], 0.9),
    ('trend', ['trend', 'change', 'over time', 'evolution', 'growth', 'decline', 'increase', 'decrease'], 0.85),
    ('correlate', ['relationship', 'correlation', 'connection', 'related', 'linked', 'associated'], 0.8),
    ('distribute', ['distribution', 'breakdown', 'share', 'proportion', 'percentage', 'split'], 0.8),
    ('analyze', ['analyze', 'analysis', 'study', 'examine', 'investigate', 'research'], 0.75),
    ('explore', ['explore', 'show', 'display', 'view', 'see', 'find'], 0.7),
]
DEFAULT_INTENT = ('explore', 0.6)

TIMEFRAME_PATTERNS = [
    (re.compile(r'\b(trend|change|over time|evolution)\b'), 'temporal'),
    (re.compile(r'\b(recent|latest|current|new|modern)\b'), 'recent'),
    (re.compile(r'\b(historical|past|previous|former|old|traditional)\b'), 'historical'),
    (re.compile(r'\b(20[0-9]{2}|19[0-9]{2}|year|yearly|annual)\b'), 'annual'),
    (re.compile(r'\b(month|monthly|quarter|quarterly)\b'), 'periodic'),
]

# Cities first, then regions, then counties
KNOWN_PLACES: List[str] = [
    'nairobi', 'mombasa', 'kisumu', 'nakuru', 'eldoret', 'thika', 'malindi', 'kitale', 'garissa', 'kakamega',
    'coastal region', 'central region', 'eastern region', 'north eastern region', 'nyanza region',
    'rift valley region', 'western region',
    'kwale', 'kilifi', 'tana river', 'lamu', 'taita taveta', 'wajir', 'mandera', 'marsabit', 'isiolo',
    'meru', 'tharaka nithi', 'embu', 'kitui', 'machakos', 'makueni', 'nyandarua', 'nyeri', 'kirinyaga',
    'muranga', 'kiambu', 'turkana', 'west pokot', 'samburu', 'trans nzoia', 'uasin gishu',
    'elgeyo marakwet', 'nandi', 'baringo', 'laikipia', 'narok', 'kajiado', 'kericho', 'bomet', 'vihiga',
    'bungoma', 'busia', 'siaya', 'homa bay', 'migori', 'kisii', 'nyamira',
]

MAX_SIMILARITY = 20

# Dataset text that makes a dataset a better fit for an intent
INTENT_HINTS = {
    'trend': ('time', 'year', 'trend'),
    'compare': ('comparison', 'versus'),
    'distribute': ('distribution', 'breakdown'),
}


def detect_query_intent(query: str) -> Tuple[str, float]:
    for intent, phrases, confidence in INTENT_PATTERNS:
        if any(contains_word(query, p) for p in phrases):
            return intent, confidence
    return DEFAULT_INTENT


def expand_with_synonyms(keywords: Sequence[str]) -> List[str]:
    """Keywords plus every term of each mapping they belong to, order preserved."""
    expanded = list(keywords)
    for keyword in keywords:
        for key, terms in SEMANTIC_MAPPINGS.items():
            if keyword == key or keyword in terms:
                expanded.extend(terms)
                expanded.append(key)
    return list(dict.fromkeys(expanded))


def detect_domain(query: str, keywords: Sequence[str]) -> str:
    """Highest scoring mapping key; ties go to the first key. `general` when nothing scores."""
    scores: Dict[str, int] = {}
    for domain, terms in SEMANTIC_MAPPINGS.items():
        score = 3 * sum(1 for k in keywords if k == domain or k in terms)
        score += 2 * sum(1 for t in terms if contains_word(query, t))
        if score > 0:
            scores[domain] = score
    if not scores:
        return 'general'
    return max(scores, key=scores.get)


def extract_timeframe(query: str) -> Optional[str]:
    lowered = query.lower()
    for pattern, timeframe in TIMEFRAME_PATTERNS:
        if pattern.search(lowered):
            return timeframe
    return None


def extract_geographic(query: str, places: Sequence[str] = KNOWN_PLACES) -> Optional[str]:
    """First known place named in the query, matched as a whole word or phrase."""
    return next((place for place in places if contains_word(query, place)), None)


def parse_query_intent(query: str) -> QueryIntent:
    keywords = tokenize(query)
    intent, confidence = detect_query_intent(query)
    return QueryIntent(
        type=intent,
        confidence=confidence,
        keywords=keywords,
        synonyms=expand_with_synonyms(keywords),
        domain=detect_domain(query, keywords),
        timeframe=extract_timeframe(query),
        geographic=extract_geographic(query),
    )


def semantic_similarity(intent: QueryIntent, dataset: Dataset) -> int:
    """
    Score how well a dataset fits a parsed question, capped at 20.

    Keyword hits count 5, synonym hits 3, a matching category (or a general
    question) 4, the named place 3, and dataset text suited to the intent 2.
    """
    text = f"{dataset.title} {dataset.description} {dataset.category}".lower()

    score = 5 * sum(1 for k in intent.keywords if k in text)
    score += 3 * sum(1 for s in intent.synonyms if s in text)
    if intent.domain == 'general' or intent.domain in dataset.category.lower():
        score += 4
    if intent.geographic and intent.geographic in text:
        score += 3
    if any(hint in text for hint in INTENT_HINTS.get(intent.type, ())):
        score += 2
    return min(score, MAX_SIMILARITY)
