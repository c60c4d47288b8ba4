# driftsim/physics/carriers/statistics.py
"""
Distribution functions: reduced chemical potential η → occupation F(η).

- Dimensionless; vectorized over numpy arrays, scalars in → float out.
- Every function is monotone increasing and finite for finite η.
- log_occupation() evaluates log F(η) without forming F first, so the
  exponential-fitting schemes stay finite deep in the Boltzmann tail.

Available statistics (closed set, see Distribution):
    * Boltzmann                    F(η) = e^η
    * Blakemore (γ = 0.27)         F(η) = 1 / (e^{-η} + γ)
    * Fermi–Dirac of order -1      F(η) = 1 / (e^{-η} + 1)
    * Fermi–Dirac of order 1/2     Bednarczyk–Bednarczyk approximation
                                   F(η) = 1 / (e^{-η} + ξ(η)),
                                   ξ(η) = 3√π/4 · a(η)^{-3/8},
                                   a(η) = η^4 + 50 + 33.6 η (1 - 0.68 e^{-0.17 (η+1)^2})

Public API (stable):
    Distribution
    boltzmann(eta), blakemore(eta, gamma=BLAKEMORE_GAMMA),
    fermi_dirac_minus_one(eta), fermi_dirac_one_half(eta)
    occupation(dist, eta), log_occupation(dist, eta)
    degeneracy_factor(dist, eta)   # e^η / F(η)
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Dict

import numpy as np

from ...utils.errors import ConfigurationError

SQRT_PI = np.sqrt(np.pi)
BLAKEMORE_GAMMA = 0.27

__all__ = [
    "BLAKEMORE_GAMMA",
    "Distribution",
    "boltzmann",
    "blakemore",
    "fermi_dirac_minus_one",
    "fermi_dirac_one_half",
    "occupation",
    "log_occupation",
    "degeneracy_factor",
]


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _c64(x):
    """Contiguous float64 array; 0-d input stays 0-d."""
    a = np.asarray(x, dtype=np.float64)
    return np.ascontiguousarray(a) if a.ndim else a


def _out(x_in, arr: np.ndarray):
    """Return a float for scalar input, the array otherwise."""
    return arr if np.ndim(x_in) else float(arr.reshape(()))


def _bednarczyk_xi(eta: np.ndarray) -> np.ndarray:
    a = eta**4 + 50.0 + 33.6 * eta * (1.0 - 0.68 * np.exp(-0.17 * (eta + 1.0) ** 2))
    return 0.75 * SQRT_PI * a ** (-0.375)


# ---------------------------------------------------------------------
# Distribution functions
# ---------------------------------------------------------------------
def boltzmann(eta):
    """F(η) = e^η."""
    return _out(eta, np.exp(_c64(eta)))


def blakemore(eta, gamma: float = BLAKEMORE_GAMMA):
    """F(η) = 1 / (e^{-η} + γ); saturates at 1/γ for η → ∞."""
    e = _c64(eta)
    return _out(eta, np.exp(-np.logaddexp(-e, np.log(gamma))))


def fermi_dirac_minus_one(eta):
    """F_{-1}(η) = 1 / (e^{-η} + 1), the logistic function."""
    e = _c64(eta)
    return _out(eta, np.exp(-np.logaddexp(-e, 0.0)))


def fermi_dirac_one_half(eta):
    """Bednarczyk approximation of the normalized F_{1/2}(η); rel. error < 0.4 %."""
    e = _c64(eta)
    return _out(eta, np.exp(-np.logaddexp(-e, np.log(_bednarczyk_xi(e)))))


# ---------------------------------------------------------------------
# Closed set + dispatch
# ---------------------------------------------------------------------
class Distribution(Enum):
    BOLTZMANN = "boltzmann"
    BLAKEMORE = "blakemore"
    FERMI_DIRAC_MINUS_ONE = "fermi_dirac_minus_one"
    FERMI_DIRAC_ONE_HALF = "fermi_dirac_one_half"

    @classmethod
    def parse(cls, name: "str | Distribution") -> "Distribution":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(d.value for d in cls)
            raise ConfigurationError(f"Unknown distribution '{name}' (expected one of: {valid})") from None


_OCCUPATION: Dict[Distribution, Callable] = {
    Distribution.BOLTZMANN: boltzmann,
    Distribution.BLAKEMORE: blakemore,
    Distribution.FERMI_DIRAC_MINUS_ONE: fermi_dirac_minus_one,
    Distribution.FERMI_DIRAC_ONE_HALF: fermi_dirac_one_half,
}


def _log_boltzmann(e: np.ndarray) -> np.ndarray:
    return e


def _log_blakemore(e: np.ndarray) -> np.ndarray:
    return -np.logaddexp(-e, np.log(BLAKEMORE_GAMMA))


def _log_fd_minus_one(e: np.ndarray) -> np.ndarray:
    return -np.logaddexp(-e, 0.0)


def _log_fd_one_half(e: np.ndarray) -> np.ndarray:
    return -np.logaddexp(-e, np.log(_bednarczyk_xi(e)))


_LOG_OCCUPATION: Dict[Distribution, Callable[[np.ndarray], np.ndarray]] = {
    Distribution.BOLTZMANN: _log_boltzmann,
    Distribution.BLAKEMORE: _log_blakemore,
    Distribution.FERMI_DIRAC_MINUS_ONE: _log_fd_minus_one,
    Distribution.FERMI_DIRAC_ONE_HALF: _log_fd_one_half,
}


def occupation(dist: Distribution, eta):
    """F(η) for the given statistics."""
    return _OCCUPATION[dist](eta)


def log_occupation(dist: Distribution, eta):
    """log F(η), evaluated without overflow/underflow of F itself."""
    return _out(eta, _LOG_OCCUPATION[dist](_c64(eta)))


def degeneracy_factor(dist: Distribution, eta):
    """
    e^η / F(η): equals 1 for Boltzmann and grows with degeneracy.
    Used to regularize the diffusion-enhanced flux when η_k ≈ η_l.
    """
    e = _c64(eta)
    return _out(eta, np.exp(e - _LOG_OCCUPATION[dist](e)))
