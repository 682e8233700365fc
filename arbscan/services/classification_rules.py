"""
Versioned taxonomy data for the market classifier.

Everything here is data: regular expressions and keyword lists that decide
whether an event's outcomes are genuinely mutually exclusive.  Bump
``TAXONOMY_VERSION`` whenever a pattern or keyword list changes so that a
verdict can be traced back to the taxonomy that produced it.

Look-alike outcome sets the classifier must reject:
- Temporal deadlines: "by March" / "by June" / "by December" all resolve
  YES once the event happens, so their prices need not sum to 1.
- Independent events: "What will happen before 2026?" bundles unrelated
  questions that can all be true.
- Cumulative thresholds: ">$1B" / ">$2B" / ">$5B" are nested, not disjoint.
"""

import re

TAXONOMY_VERSION = "2024.11.1"

MONTH_NAMES = (
    "(january|february|march|april|may|june|july|august|september|october|"
    "november|december)"
)

# Outcome labels that name a deadline or a calendar date
DATE_PATTERNS = [
    re.compile(rf"by\s+{MONTH_NAMES}", re.IGNORECASE),
    re.compile(r"by\s+(q[1-4])", re.IGNORECASE),
    re.compile(r"by\s+end\s+of\s+\d{4}", re.IGNORECASE),
    re.compile(r"by\s+\d{4}", re.IGNORECASE),
    re.compile(rf"{MONTH_NAMES}\s+\d{{1,2}},?\s*\d{{4}}", re.IGNORECASE),
    re.compile(rf"^{MONTH_NAMES}\s+\d{{1,2}}$", re.IGNORECASE),
    re.compile(rf"{MONTH_NAMES}\s+\d{{1,2}}(?:\s|$|,)", re.IGNORECASE),
]

TEMPORAL_TITLE_PATTERNS = [
    re.compile(r"\bby\s*\.{2,}\??$", re.IGNORECASE),  # "by...?"
    re.compile(r"\bby\s+when", re.IGNORECASE),
    re.compile(rf"by\s+{MONTH_NAMES}", re.IGNORECASE),
    re.compile(r"by\s+(q[1-4])", re.IGNORECASE),
    re.compile(r"by\s+\d{4}", re.IGNORECASE),
]

INDEPENDENT_EVENT_PATTERNS = [
    re.compile(r"what will happen", re.IGNORECASE),
    re.compile(r"what happens", re.IGNORECASE),
    re.compile(r"which.*will happen", re.IGNORECASE),
    re.compile(r"things that will", re.IGNORECASE),
    re.compile(r"events.*before", re.IGNORECASE),
    re.compile(r"predictions for", re.IGNORECASE),
    re.compile(r"will any of", re.IGNORECASE),
    re.compile(r"how many.*will", re.IGNORECASE),
    re.compile(r"which.*qualify", re.IGNORECASE),
    re.compile(r"which.*will make", re.IGNORECASE),
    re.compile(r"how many.*qualify", re.IGNORECASE),
]

# Ordered: a label counts toward the first category with a matching keyword
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "music": ["album", "song", "release", "drake", "rihanna", "carti", "music", "artist", "tour", "concert"],
    "politics": ["president", "election", "trump", "biden", "congress", "vote", "political", "governor", "senate"],
    "war": ["war", "invasion", "military", "ceasefire", "russia", "ukraine", "china", "taiwan", "capture", "troops"],
    "tech": ["gpt", "ai", "released", "launch", "apple", "google", "tesla", "openai", "microsoft"],
    "crypto": ["bitcoin", "btc", "eth", "crypto", "ethereum", "solana"],
    "religion": ["jesus", "christ", "god", "religious", "pope"],
    "sports": ["championship", "world cup", "super bowl", "nba", "nfl", "playoffs", "finals"],
    "entertainment": ["movie", "film", "oscar", "grammy", "emmy", "series", "show"],
}

# Keywords match at the start of a word so "ai" does not fire on "said"
CATEGORY_PATTERNS: dict[str, re.Pattern] = {
    category: re.compile(
        r"\b(?:" + "|".join(re.escape(kw) for kw in keywords) + r")", re.IGNORECASE
    )
    for category, keywords in CATEGORY_KEYWORDS.items()
}

INDEPENDENT_CATEGORY_THRESHOLD = 3

VALID_WINNER_PATTERNS = [
    re.compile(r"who will win", re.IGNORECASE),
    re.compile(r"which.*will win", re.IGNORECASE),
    re.compile(r"winner of", re.IGNORECASE),
    re.compile(r"next.*president", re.IGNORECASE),
    re.compile(r"next.*prime minister", re.IGNORECASE),
    re.compile(r"next.*actor", re.IGNORECASE),
    re.compile(r"next.*host", re.IGNORECASE),
    re.compile(r"next.*ceo", re.IGNORECASE),
    re.compile(r"next.*champion", re.IGNORECASE),
    re.compile(r"what place will", re.IGNORECASE),
    re.compile(r"what will.*finish", re.IGNORECASE),
    re.compile(r"where will.*finish", re.IGNORECASE),
    re.compile(r"who will be", re.IGNORECASE),
    re.compile(r"which.*nominated", re.IGNORECASE),
    re.compile(r"of the year", re.IGNORECASE),
    re.compile(r"player of", re.IGNORECASE),
    re.compile(r"mvp", re.IGNORECASE),
    re.compile(r"best\s+(picture|actor|actress|director|film)", re.IGNORECASE),
    re.compile(r"golden globe", re.IGNORECASE),
    re.compile(r"grammy", re.IGNORECASE),
    re.compile(r"ballon d'or", re.IGNORECASE),
    re.compile(r"heisman", re.IGNORECASE),
    re.compile(r"rookie of", re.IGNORECASE),
    re.compile(r"champion\??$", re.IGNORECASE),
    re.compile(r"\d+(st|nd|rd|th)\s+pick", re.IGNORECASE),  # draft picks
]

THRESHOLD_TITLE_PATTERNS = [
    re.compile(r"reach\s*\$?\d", re.IGNORECASE),
    re.compile(r"hit\s*\$?\d", re.IGNORECASE),
    re.compile(r"exceed\s*\$?\d", re.IGNORECASE),
    re.compile(r"above\s*\$?\d", re.IGNORECASE),
    re.compile(r"over\s*\$?\d", re.IGNORECASE),
    re.compile(r"\$\d+k?\+", re.IGNORECASE),
]

MORE_THAN_PATTERNS = [
    re.compile(r"more than \d", re.IGNORECASE),
    re.compile(r"at least \d", re.IGNORECASE),
    re.compile(r"\d\+ ", re.IGNORECASE),
    re.compile(r"\d or more", re.IGNORECASE),
]

# ">$1.5B", "> 500k" at the start of a label
GREATER_THAN_PREFIX = re.compile(
    r"^>\s*\$?([\d.,]+)\s*(billion|million|thousand|b|m|k)?", re.IGNORECASE
)

# Any number in a label, with an optional magnitude suffix
NUMERIC_VALUE = re.compile(
    r"\$?(\d[\d,]*(?:\.\d+)?)\s*(billion|million|thousand|b|m|k)?\b", re.IGNORECASE
)

MAGNITUDE_SUFFIXES: dict[str, float] = {
    "k": 1e3,
    "thousand": 1e3,
    "m": 1e6,
    "million": 1e6,
    "b": 1e9,
    "billion": 1e9,
}

# validate_price_sum bounds
MAX_PRICE_SUM = 2.0
MAX_PRICE_SUM_FEW_OUTCOMES = 1.5
FEW_OUTCOMES = 3
MIN_PRICE_SUM = 0.3
