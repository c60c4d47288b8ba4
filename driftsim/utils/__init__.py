# driftsim/utils/__init__.py
from __future__ import annotations
from .constants import Q, K_B, EPS0, T_REF, PhysicalConstants, DEFAULT_CONSTANTS
from .errors import ConfigurationError, SingularDerivativeError, ConvergenceFailure

__all__ = [
    "Q", "K_B", "EPS0", "T_REF", "PhysicalConstants", "DEFAULT_CONSTANTS",
    "ConfigurationError", "SingularDerivativeError", "ConvergenceFailure",
]
