"""
Query tokenization shared by the narrator, the composer and follow-up questions.
"""
import re
from typing import List

STOP_WORDS = frozenset({
    'a', 'an', 'the', 'and', 'or', 'but', 'is', 'are', 'in', 'on', 'at', 'for', 'with',
    'about', 'between', 'into', 'to', 'from', 'by', 'as', 'of', 'show', 'me', 'give',
    'what', 'when', 'where', 'which', 'who', 'whom', 'whose', 'how', 'why',
    'i', 'you', 'he', 'she', 'it', 'we', 'they',
})

_PUNCTUATION = re.compile(r'[^\w\s]')


def tokenize(text: str, min_length: int = 3) -> List[str]:
    """Lowercased words with punctuation, stop words and short tokens removed."""
    if not text:
        return []
    words = _PUNCTUATION.sub(' ', text.lower()).split()
    return [w for w in words if len(w) >= min_length and w not in STOP_WORDS]


def contains_word(text: str, word: str) -> bool:
    """Whole-word (or whole-phrase) match, case-insensitive."""
    return re.search(rf'\b{re.escape(word)}\b', text, re.IGNORECASE) is not None
