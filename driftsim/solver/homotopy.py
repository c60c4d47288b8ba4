"""
driftsim/solver/homotopy.py

Embedding-parameter continuation for the equilibrium problem.

The nonlinear Poisson charge term is scaled by λ1. At λ1 = 0 the problem is
linear; λ1 is then ramped geometrically to 1 with one external Newton solve
per value, each seeded with the previous solution:

    schedule(S) = [0, 10^-S, 10^-(S-1), ..., 10^0]      (S + 2 entries)

Typical loop:
    driver = EquilibriumContinuationSolver(system, store, steps=5)
    psi_eq = driver.run()            # raises ConvergenceFailure on a failed step

States: INIT → STEPPING → CONVERGED | FAILED. A failed step leaves the last
accepted solution untouched (driver.solution) and ends the run; no retry with
different parameters is attempted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .nonlinear import SolverControl, SolverConvergenceError
from ..utils import diagnostics as diag
from ..utils import logger
from ..utils.errors import ConfigurationError, ConvergenceFailure

__all__ = ["ContinuationState", "embedding_schedule", "EquilibriumContinuationSolver"]


class ContinuationState(Enum):
    INIT = "init"
    STEPPING = "stepping"
    CONVERGED = "converged"
    FAILED = "failed"


def embedding_schedule(steps: int) -> np.ndarray:
    """[0, 10^-steps, ..., 10^0], strictly increasing."""
    if steps < 0:
        raise ConfigurationError(f"continuation steps must be >= 0 (got {steps}).")
    return np.concatenate(([0.0], np.logspace(-steps, 0, steps + 1)))


@dataclass
class EquilibriumContinuationSolver:
    system: object
    store: object
    steps: int = 5
    control: SolverControl = field(default_factory=SolverControl)
    debug: bool = False

    # internal
    state: ContinuationState = ContinuationState.INIT
    solution: Optional[np.ndarray] = None
    history: List[Tuple[float, np.ndarray]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.schedule = embedding_schedule(self.steps)

    def run(self, initial_guess: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Walk the schedule; return the solution at λ1 = 1.

        initial_guess : start of the first solve (zeros from the system by default).
        """
        if self.state is not ContinuationState.INIT:
            raise RuntimeError(f"continuation already ran (state={self.state.value}).")

        emb = self.store.embedding
        guess = self.system.new_unknowns() if initial_guess is None else np.array(initial_guess, dtype=np.float64)
        self.state = ContinuationState.STEPPING
        n = len(self.schedule)

        for step, lam in enumerate(self.schedule):
            emb.lambda1 = float(lam)
            try:
                sol = self.system.solve(guess, self.control)
            except SolverConvergenceError as exc:
                self.state = ContinuationState.FAILED
                diag.log_continuation_failure(step=step, lambda1=lam, reason=str(exc))
                raise ConvergenceFailure(
                    step, lam, last_solution=self.solution, reason=str(exc)
                ) from exc

            sol = np.asarray(sol, dtype=np.float64)
            if self.debug:
                upd = float(np.max(np.abs(sol - guess))) if sol.size else 0.0
                diag.log_continuation_step(step=step, n_steps=n, lambda1=lam, accepted=True, update_inf=upd)
            self.solution = sol
            self.history.append((float(lam), sol))
            guess = sol.copy()

        self.state = ContinuationState.CONVERGED
        if self.debug:
            logger.info(f"continuation converged after {n} solves (λ1=1)")
            diag.log_state_summary(solution=self.solution, prefix="[hom]")
        return self.solution
