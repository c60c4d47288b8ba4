# driftsim/utils/errors.py
"""
Error taxonomy of the assembly core.

- ConfigurationError      : bad carrier / region / interface-model setup; raised
                            while building, never retried.
- SingularDerivativeError : the implicit flux scheme lost a usable derivative;
                            the surrounding Newton solve must abort.
- ConvergenceFailure      : a continuation step failed; carries the step, the
                            embedding value and the last good solution.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

__all__ = ["ConfigurationError", "SingularDerivativeError", "ConvergenceFailure"]


class ConfigurationError(ValueError):
    """Unsupported or inconsistent build-time configuration."""


class SingularDerivativeError(FloatingPointError):
    """Inner Newton iteration of an implicit flux hit a NaN / vanishing derivative."""

    def __init__(self, j: float, residual: float, derivative: float) -> None:
        self.j = float(j)
        self.residual = float(residual)
        self.derivative = float(derivative)
        super().__init__(
            f"singular derivative in implicit flux iteration "
            f"(j={self.j:.6e}, G(j)={self.residual:.6e}, G'(j)={self.derivative:.6e})"
        )


class ConvergenceFailure(RuntimeError):
    """Terminal report of a failed embedding-parameter continuation step."""

    def __init__(
        self,
        step: int,
        lambda1: float,
        *,
        last_solution: Optional[np.ndarray] = None,
        reason: str = "",
    ) -> None:
        self.step = int(step)
        self.lambda1 = float(lambda1)
        self.last_solution = last_solution
        self.reason = reason
        msg = (
            f"continuation failed at step {self.step} (lambda1={self.lambda1:.3e}); "
            "increase the number of continuation steps or relax the Newton tolerances"
        )
        if reason:
            msg += f" [{reason}]"
        super().__init__(msg)
