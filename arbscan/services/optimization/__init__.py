"""
Optimization layer for multi-outcome arbitrage.

Components:
- bregman: closed-form KL projection onto the probability simplex
- frank_wolfe: barrier Frank-Wolfe for polytopes without a closed form
- arbitrage_engine: Type 1 mispricing metrics, qualification and grading

Key identities:
1. Arbitrage-free prices lie in the marginal polytope M = conv(Z)
2. The maximum guaranteed profit equals D(μ*||θ) under KL geometry
3. On the simplex μ* = θ / Σθ and the Frank-Wolfe gap is 0
"""

from .bregman import BregmanProjector, ProjectionResult, bregman_projector
from .frank_wolfe import FrankWolfeResult, FrankWolfeSolver, frank_wolfe_solver
from .arbitrage_engine import (
    ArbitrageAnalysis,
    MultiOutcomeArbitrageEngine,
    assess_quality,
)

__all__ = [
    # Bregman
    "BregmanProjector",
    "ProjectionResult",
    "bregman_projector",
    # Frank-Wolfe
    "FrankWolfeSolver",
    "FrankWolfeResult",
    "frank_wolfe_solver",
    # Engine
    "ArbitrageAnalysis",
    "MultiOutcomeArbitrageEngine",
    "assess_quality",
]
