"""
Feature extraction for cross-market dependency detection.

Markets that ask the same question with a different deadline or threshold
are logically linked:

    "Will BTC reach $150k by June?"  ->  "Will BTC reach $100k by June?"
    "Will X happen by March 2025?"   ->  "Will X happen by December 2025?"

Each question is reduced to a subject (what is being asked about), an
optional deadline and an optional threshold.  The graph pairs markets whose
subjects overlap and whose features differ.
"""

import re
from datetime import date
from typing import Optional, Union

from arbscan.models import (
    Deadline,
    MarketNode,
    MarketSnapshot,
    Threshold,
    ThresholdDirection,
)

MONTH_MAP: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

# End-of-quarter month
QUARTER_MAP: dict[str, int] = {"q1": 3, "q2": 6, "q3": 9, "q4": 12}

DEFAULT_DAY = 28

STOPWORDS = frozenset(
    {
        "the", "and", "for", "will", "with", "from", "that", "this", "are",
        "was", "were", "been", "have", "has", "its", "any", "into", "than",
        "then", "there", "their", "they", "does", "not", "happen",
    }
)

_LEADING_PREFIX = re.compile(r"^(will|when will|if|whether)\s+", re.IGNORECASE)
_TRAILING_DEADLINE = (
    re.compile(r"\s+by\s+.+$", re.IGNORECASE),
    re.compile(r"\s+before\s+.+$", re.IGNORECASE),
    re.compile(r"\s+in\s+\d{4}$", re.IGNORECASE),
)
_THRESHOLD_PHRASE = re.compile(
    r"\s+(reach|hit|exceed|above|over|below|under|less than)\s+\$?[\d,]+k?", re.IGNORECASE
)
_PUNCTUATION = re.compile(r"[?!.,]")

_FULL_DATE = re.compile(r"by\s+(\w+)\s+(\d{1,2})?,?\s*(\d{4})", re.IGNORECASE)
_QUARTER = re.compile(r"by\s+(q[1-4])\s*(\d{4})?", re.IGNORECASE)
_END_OF_YEAR = re.compile(r"by\s+end\s+of\s+(\d{4})", re.IGNORECASE)
_MONTH_ONLY = re.compile(r"by\s+(\w+)(?:\s+(\d{1,2}))?", re.IGNORECASE)

_ABOVE = re.compile(r"(reach|hit|exceed|above|over)\s+\$?([\d,]+)(k?)", re.IGNORECASE)
_BELOW = re.compile(r"(below|under|less than)\s+\$?([\d,]+)(k?)", re.IGNORECASE)


def extract_subject(question: str) -> str:
    """'Will BTC reach $100k by March?' -> 'btc'"""
    text = (question or "").lower().strip()
    text = _LEADING_PREFIX.sub("", text)
    for pattern in _TRAILING_DEADLINE:
        text = pattern.sub("", text)
    text = _THRESHOLD_PHRASE.sub("", text)
    text = _PUNCTUATION.sub("", text)
    return " ".join(text.split())


def _deadline(year: int, month: int, day: int, raw: str) -> Optional[Deadline]:
    if not 1 <= day <= 31:
        return None
    return Deadline(year=year, month=month, day=day, raw=raw)


def extract_deadline(question: str, today: Optional[date] = None) -> Optional[Deadline]:
    """
    Parse a 'by <date>' deadline.

    A bare month ('by March') resolves to its next occurrence relative to
    ``today``: this year if the month has not passed, else next year.
    """
    text = (question or "").lower()
    today = today or date.today()

    match = _FULL_DATE.search(text)
    if match:
        month = MONTH_MAP.get(match.group(1))
        if month:
            day = int(match.group(2)) if match.group(2) else DEFAULT_DAY
            return _deadline(int(match.group(3)), month, day, match.group(0))

    match = _QUARTER.search(text)
    if match:
        month = QUARTER_MAP[match.group(1)]
        year = int(match.group(2)) if match.group(2) else today.year
        return Deadline(year=year, month=month, day=DEFAULT_DAY, raw=match.group(0))

    match = _END_OF_YEAR.search(text)
    if match:
        return Deadline(year=int(match.group(1)), month=12, day=31, raw=match.group(0))

    match = _MONTH_ONLY.search(text)
    if match:
        month = MONTH_MAP.get(match.group(1))
        if month:
            day = int(match.group(2)) if match.group(2) else DEFAULT_DAY
            year = today.year if month >= today.month else today.year + 1
            return _deadline(year, month, day, match.group(0))

    return None


def _threshold_value(number: str, suffix: str) -> Optional[float]:
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return None
    if suffix:
        value *= 1000
    return value


def extract_threshold(question: str) -> Optional[Threshold]:
    """'Will BTC reach $100k?' -> Threshold(100000, above)"""
    text = (question or "").lower()
    for pattern, direction in (
        (_ABOVE, ThresholdDirection.ABOVE),
        (_BELOW, ThresholdDirection.BELOW),
    ):
        match = pattern.search(text)
        if not match:
            continue
        value = _threshold_value(match.group(2), match.group(3))
        if value is not None:
            return Threshold(value=value, direction=direction, raw=match.group(0))
    return None


def _significant_words(subject: str) -> set[str]:
    return {
        word for word in subject.lower().split()
        if len(word) > 2 and word not in STOPWORDS
    }


def subject_similarity(subject_a: str, subject_b: str) -> float:
    """Jaccard index over significant words; 0 when either side has none."""
    words_a = _significant_words(subject_a)
    words_b = _significant_words(subject_b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def build_market_node(
    market: Union[MarketSnapshot, dict],
    today: Optional[date] = None,
) -> MarketNode:
    """Parse a market into a graph node with its extracted features."""
    if isinstance(market, dict):
        market = MarketSnapshot.from_gamma_response(market)

    question = market.question or market.group_item_title
    # Unpriced markets sit at the uninformative midpoint
    price = market.price if market.price is not None else 0.5

    return MarketNode(
        id=market.id,
        question=question,
        price=price,
        liquidity=market.liquidity,
        slug=market.slug,
        subject=extract_subject(question),
        deadline=extract_deadline(question, today),
        threshold=extract_threshold(question),
    )
