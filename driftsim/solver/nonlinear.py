# driftsim/solver/nonlinear.py
"""
Interface to the external finite-volume Newton solver.

The assembly core never solves anything itself: it hands callbacks and a
species layout to a system object that owns the mesh, the global Newton
iteration and the linear algebra. This module fixes what that object must
provide and the control block passed to each solve.

Boundary data convention (indexed [species, bregion]):
    boundary_factors = DIRICHLET   → Dirichlet value boundary_values
    boundary_factors = finite      → Robin term factor * (u - value)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

__all__ = ["DIRICHLET", "SolverControl", "SolverConvergenceError", "NonlinearSystem"]

# penalty factor marking a Dirichlet boundary value
DIRICHLET = 1.0e30


class SolverConvergenceError(RuntimeError):
    """Raised by an external system whose Newton iteration did not converge."""


@dataclass
class SolverControl:
    atol: float = 1e-10
    rtol: float = 1e-10
    max_iter: int = 100
    damp_initial: float = 1.0
    damp_growth: float = 1.0
    verbose: bool = False


@runtime_checkable
class NonlinearSystem(Protocol):
    boundary_values: np.ndarray
    boundary_factors: np.ndarray

    def enable_species(self, index: int, regions: Sequence[int]) -> None:
        ...

    def new_unknowns(self) -> np.ndarray:
        """Zero-filled (n_species, n_nodes) array."""
        ...

    def solve(self, initial_guess: np.ndarray, control: SolverControl) -> np.ndarray:
        """Return the converged solution or raise SolverConvergenceError."""
        ...
