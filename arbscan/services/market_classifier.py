"""
Market classifier: is an event's outcome set mutually exclusive and exhaustive?

The sum-of-prices arbitrage argument only holds when exactly one outcome
resolves YES.  Exchanges group many look-alike sets under one event
(deadline ladders, threshold ladders, bundles of unrelated questions), so
every event passes through an ordered rule table before its prices are
looked at:

    INSUFFICIENT_OUTCOMES -> TEMPORAL -> INDEPENDENT -> CUMULATIVE -> WINNER -> UNKNOWN

The first rule whose check returns a reason decides the verdict.  Anything
not rejected passes, deliberately permissive: false positives are caught
later by ``validate_price_sum`` once live prices are known.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from arbscan.models import (
    Classification,
    Confidence,
    MarketCategory,
    MarketSnapshot,
    Outcome,
)
from arbscan.services import classification_rules as rules
from arbscan.utils.logger import get_logger

logger = get_logger(__name__)

OutcomeLike = Union[str, Outcome, MarketSnapshot]

# check(title_lower, labels_lower) -> reason when the rule fires, else None
RuleCheck = Callable[[str, list[str]], Optional[str]]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    category: MarketCategory
    is_valid: bool
    confidence: Confidence
    check: RuleCheck
    reason_prefix: str = ""


@dataclass(frozen=True)
class PriceSumCheck:
    is_valid: bool
    reason: str = ""


def _label_of(outcome: OutcomeLike) -> str:
    if isinstance(outcome, str):
        return outcome.strip()
    if isinstance(outcome, MarketSnapshot):
        return outcome.label
    return outcome.label.strip()


def _scale(number: str, suffix: Optional[str]) -> Optional[float]:
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return None
    if suffix:
        value *= rules.MAGNITUDE_SUFFIXES[suffix.lower()]
    return value


# ---------------------------------------------------------------------------
# Rule checks
# ---------------------------------------------------------------------------


def check_insufficient_outcomes(title: str, labels: list[str]) -> Optional[str]:
    if len(labels) < 2:
        return "Less than 2 outcomes"
    return None


def check_temporal(title: str, labels: list[str]) -> Optional[str]:
    if any(p.search(title) for p in rules.TEMPORAL_TITLE_PATTERNS):
        return "Event title indicates temporal deadline"

    temporal_count = sum(
        1 for label in labels if any(p.search(label) for p in rules.DATE_PATTERNS)
    )
    if labels and temporal_count >= len(labels) * 0.5:
        return f"{temporal_count}/{len(labels)} outcomes have date patterns"
    return None


def check_independent(title: str, labels: list[str]) -> Optional[str]:
    if any(p.search(title) for p in rules.INDEPENDENT_EVENT_PATTERNS):
        return "Event title indicates independent events"

    categories: list[str] = []
    for label in labels:
        for category, pattern in rules.CATEGORY_PATTERNS.items():
            if pattern.search(label):
                if category not in categories:
                    categories.append(category)
                break

    if len(categories) >= rules.INDEPENDENT_CATEGORY_THRESHOLD:
        return (
            f"Outcomes span {len(categories)} unrelated categories: "
            f"{', '.join(categories)}"
        )
    return None


def check_cumulative(title: str, labels: list[str]) -> Optional[str]:
    gt_count = sum(1 for label in labels if rules.GREATER_THAN_PREFIX.match(label))
    if gt_count >= 2 and gt_count >= len(labels) * 0.5:
        return (
            f'{gt_count}/{len(labels)} outcomes are ">" thresholds '
            "(cumulative, not mutually exclusive)"
        )

    if any(p.search(title) for p in rules.THRESHOLD_TITLE_PATTERNS):
        values: set[float] = set()
        for label in labels:
            for number, suffix in rules.NUMERIC_VALUE.findall(label):
                value = _scale(number, suffix)
                if value is not None and value > 0:
                    values.add(value)
        if len(values) >= 2:
            shown = ", ".join(f"{v:g}" for v in sorted(values))
            return f"Multiple threshold values detected: {shown}"

    more_count = sum(
        1 for label in labels if any(p.search(label) for p in rules.MORE_THAN_PATTERNS)
    )
    if more_count >= 2:
        return f'{more_count} outcomes use "more than" / "at least" patterns'
    return None


def check_winner(title: str, labels: list[str]) -> Optional[str]:
    for pattern in rules.VALID_WINNER_PATTERNS:
        if pattern.search(title):
            return f"Title matches winner pattern '{pattern.pattern}'"
    return None


def check_default(title: str, labels: list[str]) -> Optional[str]:
    return "Passed all exclusion checks (no clear pattern)"


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "insufficient_outcomes",
        MarketCategory.INSUFFICIENT_OUTCOMES,
        False,
        Confidence.CERTAIN,
        check_insufficient_outcomes,
    ),
    ClassificationRule(
        "temporal_deadline",
        MarketCategory.TEMPORAL,
        False,
        Confidence.HIGH,
        check_temporal,
        "Temporal deadline market",
    ),
    ClassificationRule(
        "independent_events",
        MarketCategory.INDEPENDENT,
        False,
        Confidence.HIGH,
        check_independent,
        "Independent events",
    ),
    ClassificationRule(
        "cumulative_threshold",
        MarketCategory.CUMULATIVE,
        False,
        Confidence.HIGH,
        check_cumulative,
        "Cumulative threshold",
    ),
    ClassificationRule(
        "winner",
        MarketCategory.WINNER,
        True,
        Confidence.HIGH,
        check_winner,
        "Valid winner market",
    ),
    ClassificationRule(
        "default",
        MarketCategory.UNKNOWN,
        True,
        Confidence.MEDIUM,
        check_default,
    ),
)


class MarketClassifier:
    """Ordered rule table over the versioned taxonomy.

    Pure: the same (title, outcomes) always yields the same verdict.
    """

    def __init__(
        self,
        rule_table: Sequence[ClassificationRule] = DEFAULT_RULES,
        taxonomy_version: str = rules.TAXONOMY_VERSION,
    ):
        self.rules = tuple(rule_table)
        self.taxonomy_version = taxonomy_version

    def classify(self, title: str, outcomes: Sequence[OutcomeLike]) -> Classification:
        title_lower = (title or "").strip().lower()
        labels = [_label_of(o).lower() for o in outcomes]

        for rule in self.rules:
            reason = rule.check(title_lower, labels)
            if reason is None:
                continue
            if rule.reason_prefix:
                reason = f"{rule.reason_prefix}: {reason}"
            return Classification(
                is_valid=rule.is_valid,
                confidence=rule.confidence,
                reason=reason,
                category=rule.category,
                rule=rule.name,
                taxonomy_version=self.taxonomy_version,
            )

        # Only reachable with a custom table lacking a catch-all rule
        return Classification(
            is_valid=True,
            confidence=Confidence.MEDIUM,
            reason="No rule matched",
            category=MarketCategory.UNKNOWN,
            rule="",
            taxonomy_version=self.taxonomy_version,
        )

    def validate_price_sum(self, total_price: float, num_outcomes: int) -> PriceSumCheck:
        """Post-price sanity check for outcome sets that passed classification."""
        if total_price > rules.MAX_PRICE_SUM:
            return PriceSumCheck(
                False,
                f"Sum {total_price:.2f} >> 1 indicates non-mutually-exclusive outcomes",
            )
        if total_price > rules.MAX_PRICE_SUM_FEW_OUTCOMES and num_outcomes <= rules.FEW_OUTCOMES:
            return PriceSumCheck(
                False,
                f"Sum {total_price:.2f} too high for {num_outcomes}-outcome market",
            )
        if total_price < rules.MIN_PRICE_SUM and num_outcomes >= rules.FEW_OUTCOMES:
            return PriceSumCheck(
                False, f"Sum {total_price:.2f} too low - outcomes may be missing"
            )
        return PriceSumCheck(True)


market_classifier = MarketClassifier()


def classify(title: str, outcomes: Sequence[OutcomeLike]) -> Classification:
    return market_classifier.classify(title, outcomes)


def validate_price_sum(total_price: float, num_outcomes: int) -> PriceSumCheck:
    return market_classifier.validate_price_sum(total_price, num_outcomes)
