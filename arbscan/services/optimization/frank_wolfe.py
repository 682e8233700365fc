"""
Barrier Frank-Wolfe for Bregman projection onto general outcome polytopes.

The live Type 1 scanner only ever projects onto the simplex, where the
projection is closed-form (see ``bregman.py``).  This solver is the
extension point for polytopes without a closed form, e.g. outcome spaces
with logical constraints between securities.  It is exercised by unit
tests only.

Algorithm (Kroer et al., barrier variant):
- Start from μ₀ (uniform unless given), interior point u = uniform.
- Each iteration measures D(μ||θ) and the Frank-Wolfe gap
  g(μ) = max_i ∇f(μ)·(μ - e_i) with ∇f(μ)_j = ln μ_j + 1.
- The descent vertex argmin_i ∇f(μ)_i is contracted toward u by ε so the
  iterate never touches the boundary where the gradient explodes.
- ε shrinks adaptively when g(μ) / (-4 g(u)) < ε, floored at min_epsilon.
- Step γ = 2 / (t + 2).

Stopping conditions:
1. α-extraction: g ≤ (1 - α) D, at least α of the profit is captured
2. Near-arbitrage-free: D < ε_D, not worth trading
3. Converged: g < tolerance
4. Contraction at its floor
5. Iteration budget exhausted

The best iterate (max D - g) seen so far is always what gets returned, so a
forced stop still yields the strongest profit guarantee found.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .bregman import BregmanProjector, bregman_projector

STOP_ALPHA_EXTRACTION = "alpha_extraction"
STOP_NEAR_ARBITRAGE_FREE = "near_arbitrage_free"
STOP_CONVERGED = "converged"
STOP_EPSILON_FLOOR = "epsilon_floor"
STOP_MAX_ITERATIONS = "max_iterations"


@dataclass
class FrankWolfeResult:
    """Result of a barrier Frank-Wolfe run (best iterate)."""

    optimal_prices: np.ndarray
    divergence: float  # D(μ̂||θ)
    gap: float  # g(μ̂)
    guaranteed_profit: float  # D(μ̂||θ) - g(μ̂)
    iterations: int
    converged: bool
    stop_reason: str
    alpha_extraction_met: bool
    best_iterate_idx: int
    final_epsilon: float
    solve_time_ms: float
    gap_history: List[float] = field(default_factory=list)
    profit_history: List[float] = field(default_factory=list)
    epsilon_history: List[float] = field(default_factory=list)


class FrankWolfeSolver:
    """
    Barrier Frank-Wolfe with adaptive contraction and profit-guarantee stops.
    """

    def __init__(
        self,
        max_iterations: int = 150,
        alpha_extraction: float = 0.9,
        epsilon_d: float = 0.05,
        initial_epsilon: float = 0.1,
        min_epsilon: float = 1e-4,
        convergence_tol: float = 1e-8,
        projector: Optional[BregmanProjector] = None,
    ):
        """
        Args:
            max_iterations: Iteration budget before a forced stop
            alpha_extraction: Fraction of profit to capture before stopping (0.9 = 90%)
            epsilon_d: Minimum D(μ||θ) worth trading
            initial_epsilon: Initial contraction toward the interior point
            min_epsilon: Contraction floor
            convergence_tol: Stop when the gap falls below this
        """
        self.max_iterations = max_iterations
        self.alpha = alpha_extraction
        self.epsilon_d = epsilon_d
        self.initial_epsilon = initial_epsilon
        self.min_epsilon = min_epsilon
        self.convergence_tol = convergence_tol
        self.projector = projector or bregman_projector

    def _raw_gap(self, mu: np.ndarray) -> float:
        grad = self.projector.kl_gradient(mu)
        # max_i ∇f·(μ - e_i) = ∇f·μ - min_i ∇f_i
        return float(np.dot(grad, mu) - np.min(grad))

    def frank_wolfe_gap(self, mu: np.ndarray) -> float:
        """Frank-Wolfe duality gap over simplex vertices, clamped at 0."""
        return max(0.0, self._raw_gap(np.asarray(mu, dtype=float)))

    def descent_vertex(self, mu: np.ndarray) -> np.ndarray:
        """Simplex vertex e_i minimizing the linearized objective."""
        grad = self.projector.kl_gradient(mu)
        vertex = np.zeros(len(mu))
        vertex[int(np.argmin(grad))] = 1.0
        return vertex

    @staticmethod
    def contract(vertex: np.ndarray, interior: np.ndarray, epsilon: float) -> np.ndarray:
        """M' = (1 - ε)v + εu"""
        return (1 - epsilon) * vertex + epsilon * interior

    def _stop_reason(self, divergence: float, gap: float, epsilon: float) -> Optional[str]:
        if divergence > 0 and gap <= (1 - self.alpha) * divergence:
            return STOP_ALPHA_EXTRACTION
        if divergence < self.epsilon_d:
            return STOP_NEAR_ARBITRAGE_FREE
        if gap < self.convergence_tol:
            return STOP_CONVERGED
        if epsilon <= self.min_epsilon:
            return STOP_EPSILON_FLOOR
        return None

    def solve(
        self,
        prices: np.ndarray,
        initial_mu: Optional[np.ndarray] = None,
    ) -> FrankWolfeResult:
        """
        Run barrier Frank-Wolfe from ``initial_mu`` against prices θ.

        Args:
            prices: Current market prices θ (n >= 2)
            initial_mu: Starting iterate on the simplex, uniform if omitted

        Returns:
            FrankWolfeResult describing the best iterate
        """
        start_time = time.perf_counter()
        theta = np.asarray(prices, dtype=float)
        n = len(theta)
        if n < 2:
            raise ValueError("Frank-Wolfe needs at least 2 outcome prices")

        interior = np.full(n, 1.0 / n)
        if initial_mu is None:
            mu = interior.copy()
        else:
            mu = self.projector.project_to_simplex(np.asarray(initial_mu, dtype=float))
        epsilon = self.initial_epsilon

        gap_history: List[float] = []
        profit_history: List[float] = []
        epsilon_history: List[float] = []

        best_mu = mu.copy()
        best_divergence = 0.0
        best_gap = 0.0
        best_profit = -float("inf")
        best_idx = 0
        stop_reason = STOP_MAX_ITERATIONS
        iterations = 0

        for t in range(1, self.max_iterations + 1):
            iterations = t
            divergence = self.projector.kl_divergence(mu, theta)
            gap = self.frank_wolfe_gap(mu)
            guaranteed = divergence - gap

            gap_history.append(gap)
            profit_history.append(guaranteed)
            epsilon_history.append(epsilon)

            if guaranteed > best_profit:
                best_profit = guaranteed
                best_mu = mu.copy()
                best_divergence = divergence
                best_gap = gap
                best_idx = t - 1

            reason = self._stop_reason(divergence, gap, epsilon)
            if reason is not None:
                stop_reason = reason
                break

            # Adaptive contraction: shrink ε once the iterate is close enough
            # that the barrier no longer needs to push it inward.
            gap_u = self._raw_gap(interior)
            if gap_u < 0:
                ratio = gap / (-4 * gap_u)
                if ratio < epsilon:
                    epsilon = max(min(ratio, epsilon / 2), self.min_epsilon)

            vertex = self.contract(self.descent_vertex(mu), interior, epsilon)
            gamma = 2.0 / (t + 2)
            mu = (1 - gamma) * mu + gamma * vertex

        return FrankWolfeResult(
            optimal_prices=best_mu,
            divergence=best_divergence,
            gap=best_gap,
            guaranteed_profit=best_profit,
            iterations=iterations,
            converged=stop_reason != STOP_MAX_ITERATIONS,
            stop_reason=stop_reason,
            alpha_extraction_met=stop_reason == STOP_ALPHA_EXTRACTION,
            best_iterate_idx=best_idx,
            final_epsilon=epsilon,
            solve_time_ms=(time.perf_counter() - start_time) * 1000,
            gap_history=gap_history,
            profit_history=profit_history,
            epsilon_history=epsilon_history,
        )


frank_wolfe_solver = FrankWolfeSolver()
