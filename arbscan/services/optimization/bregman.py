"""
Bregman projection of a mispriced outcome vector onto the probability simplex.

For LMSR (Logarithmic Market Scoring Rule) pricing the Bregman divergence is
the KL divergence, and the maximum profit any trade can guarantee against
prices θ equals D(μ*||θ), where μ* is the Bregman projection of θ onto the
arbitrage-free set.

When the arbitrage-free set is the simplex (one event whose outcomes are
mutually exclusive and exhaustive) the projection has a closed form:

    μ* = θ / Σθ

so no iterative solve is needed and the Frank-Wolfe gap at μ* is exactly 0.
"""

from dataclasses import dataclass

import numpy as np
from scipy.special import rel_entr


@dataclass
class ProjectionResult:
    """Result of projecting θ onto the simplex."""

    projected_prices: np.ndarray
    divergence: float  # D(μ*||θ)
    frank_wolfe_gap: float
    total_price: float
    mispricing: float  # Σθ - 1


class BregmanProjector:
    """
    KL-divergence (negative entropy) Bregman geometry.

    R(μ) = Σ μ_i ln μ_i
    D(μ||θ) = Σ μ_i ln(μ_i / θ_i)
    """

    def kl_divergence(self, mu: np.ndarray, theta: np.ndarray) -> float:
        """
        D(μ||θ) summed only over indices where both μ_i > 0 and θ_i > 0.

        Zero-priced outcomes carry no information about the distribution and
        would otherwise make the divergence infinite.
        """
        mu = np.asarray(mu, dtype=float)
        theta = np.asarray(theta, dtype=float)
        mask = (mu > 0) & (theta > 0)
        if not np.any(mask):
            return 0.0
        return float(np.sum(rel_entr(mu[mask], theta[mask])))

    def kl_gradient(self, mu: np.ndarray) -> np.ndarray:
        """∇R(μ) = ln μ + 1, with log(0) mapped to a large finite value."""
        mu = np.asarray(mu, dtype=float)
        grad = np.full_like(mu, 1000.0)
        positive = mu > 0
        grad[positive] = np.log(mu[positive]) + 1
        return grad

    def project_to_simplex(self, prices: np.ndarray) -> np.ndarray:
        """Closed-form KL projection onto {μ ≥ 0, Σμ = 1}: normalization."""
        prices = np.clip(np.asarray(prices, dtype=float), 0.0, None)
        total = float(np.sum(prices))
        if total <= 0:
            return np.full(len(prices), 1.0 / len(prices))
        return prices / total

    def project_multi_outcome(self, prices: list[float]) -> ProjectionResult:
        """
        Project a multi-outcome price vector and measure the extractable profit.

        Args:
            prices: One price per mutually exclusive outcome (n >= 2)

        Returns:
            ProjectionResult with μ*, D(μ*||θ) and a zero duality gap
        """
        theta = np.asarray(prices, dtype=float)
        if theta.ndim != 1 or len(theta) < 2:
            raise ValueError("Projection needs at least 2 outcome prices")

        mu_star = self.project_to_simplex(theta)
        total = float(np.sum(theta))

        # Σμ* ln(μ*/θ) collapses to -ln Σθ, negative when the outcomes are
        # overpriced.  The seller's bound is its mirror, so report magnitude.
        divergence = abs(self.kl_divergence(mu_star, theta))

        return ProjectionResult(
            projected_prices=mu_star,
            divergence=divergence,
            frank_wolfe_gap=0.0,
            total_price=total,
            mispricing=total - 1.0,
        )


bregman_projector = BregmanProjector()
