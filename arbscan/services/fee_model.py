"""Fee schedule shared by all three detectors.

The exchange charges a flat fee rate against the $1 settlement of a
position.  How many times that fee applies depends on the trade shape:

- Type 1 (buy all / sell all outcomes): one settlement leg, so one fee
  regardless of how many outcomes are traded.
- Type 2 (sell the weaker market, buy the stronger): two markets, each
  entered and exited, so four fee applications.
- Type 3 (single directional position held to settlement): one leg.
"""

from dataclasses import dataclass


@dataclass
class FeeBreakdown:
    fee_rate: float
    legs: int
    fills_per_leg: int
    total_fees: float


class FeeModel:
    CROSS_MARKET_LEGS = 2
    CROSS_MARKET_FILLS_PER_LEG = 2  # buy + sell

    def __init__(self, fee_rate: float = 0.02):
        self.fee_rate = fee_rate

    def breakdown(self, legs: int, fills_per_leg: int = 1) -> FeeBreakdown:
        return FeeBreakdown(
            fee_rate=self.fee_rate,
            legs=legs,
            fills_per_leg=fills_per_leg,
            total_fees=self.fee_rate * legs * fills_per_leg,
        )

    def settlement_leg_fee(self) -> float:
        """Fee for a trade that settles as a single $1 leg (Type 1, Type 3)."""
        return self.breakdown(legs=1).total_fees

    def cross_market_fee(self) -> float:
        """Fee for a two-market dependency trade: 4 x fee_rate."""
        return self.breakdown(
            legs=self.CROSS_MARKET_LEGS,
            fills_per_leg=self.CROSS_MARKET_FILLS_PER_LEG,
        ).total_fees
