# driftsim/discretization/fluxes.py
"""
Two-point edge fluxes for drift–diffusion on Voronoi-type finite volumes.

Every scheme shares one contract: for an edge k → l in region r,

    f[ψ]  = -ε_r ε0 (ψ_l - ψ_k)                       (displacement, all schemes)
    f[c]  = scheme(z, x, η_k, η_l, F, j0)             (every active carrier c)

with
    x   = z (Δψ - ΔE_node/q) / U_T      ΔE_node: nodal band-edge difference l - k
    η   = z/U_T ((φ - ψ) + E/q)         reduced chemical potential per endpoint
    j0  = z q μ U_T N                   flux prefactor

In equilibrium only the displacement term is assembled; carrier entries stay 0.

Schemes (closed set, see FluxScheme):
  A  Scharfetter–Gummel     -z j0 (B(-x) F(η_l) - B(x) F(η_k))
  B  Sedan (generalized)    Bernoulli argument x + (η_l-η_k) - log F(η_l) + log F(η_k)
  C  diffusion enhanced     U_T → g U_T, g = Δη / Δlog F (regularized for η_k≈η_l)
  D  Koprucki–Gärtner       implicit j from B(-(x-γj)) e^{η_l} - B(x-γj) e^{η_k} = j

For Boltzmann statistics B, C and D reduce exactly to A.

Sign convention: a positive Bernoulli argument x drives the carrier from k to l.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from ..geometry.grid import EdgeContext
from ..physics.carriers.statistics import (
    BLAKEMORE_GAMMA,
    Distribution,
    degeneracy_factor,
    log_occupation,
    occupation,
)
from ..utils import diagnostics as diag
from ..utils import logger
from ..utils.errors import ConfigurationError, SingularDerivativeError

__all__ = [
    "FluxScheme",
    "bernoulli",
    "bernoulli_pm",
    "bernoulli_derivative",
    "scharfetter_gummel",
    "sedan",
    "diffusion_enhanced",
    "koprucki_gaertner",
    "flux",
]

# |x| below this uses the Taylor series of B
_SERIES_CUTOFF = 1.0e-4

# diffusion-enhanced scheme: relative gap below which g is regularized
REGULARIZATION_TOL = 1.0e-13

# implicit scheme controls
IMPLICIT_MAX_ITER = 200
IMPLICIT_DAMP_INIT = 0.1
IMPLICIT_DAMP_GROW = 1.2


# ---------------------------------------------------------------------
# Bernoulli function
# ---------------------------------------------------------------------


def bernoulli_pm(x: np.ndarray | float) -> Tuple[np.ndarray | float, np.ndarray | float]:
    """
    Return (B(x), B(-x)), B(x) = x / (exp(x) - 1), without cancellation.

    - |x| small : series B(x) ≈ 1 - x/2 + x^2/12 - x^4/720, B(-x) = B(x) + x
    - x > 0     : B(x) = x e^{-x} / (1 - e^{-x}),  B(-x) = x / (1 - e^{-x})
    - x < 0     : mirror image
    Only exp(-|x|) is formed, so large |x| neither overflows nor loses digits.
    Satisfies B(-x) - B(x) = x to rounding.
    """
    x_arr = np.asarray(x, dtype=np.float64)
    ax = np.abs(x_arr)
    small = ax < _SERIES_CUTOFF

    with np.errstate(divide="ignore", invalid="ignore"):
        em = np.exp(-ax)                     # e^{-|x|} ∈ (0, 1]
        den = -np.expm1(-ax)                 # 1 - e^{-|x|}, accurate for small |x|
        b_small_side = ax * em / den         # B(+|x|)
        b_large_side = ax / den              # B(-|x|)

    bp = np.where(x_arr >= 0.0, b_small_side, b_large_side)
    bm = np.where(x_arr >= 0.0, b_large_side, b_small_side)

    xs = x_arr
    series = 1.0 - xs / 2.0 + xs * xs / 12.0 - (xs ** 4) / 720.0
    bp = np.where(small, series, bp)
    bm = np.where(small, series + xs, bm)

    if isinstance(x, np.ndarray):
        return bp, bm
    return float(bp), float(bm)


def bernoulli(x: np.ndarray | float) -> np.ndarray | float:
    """B(x) = x / (exp(x) - 1), B(0) = 1."""
    return bernoulli_pm(x)[0]


def bernoulli_derivative(x: float) -> float:
    """
    B'(x) = (B(x)/x) (1 - B(-x)); series -1/2 + x/6 - x^3/180 near 0.
    """
    x = float(x)
    if abs(x) < _SERIES_CUTOFF:
        return -0.5 + x / 6.0 - x ** 3 / 180.0
    bp, bm = bernoulli_pm(x)
    return bp / x * (1.0 - bm)


# ---------------------------------------------------------------------
# Scheme kernels (carrier part only)
# ---------------------------------------------------------------------


def scharfetter_gummel(z: int, x: float, eta_k: float, eta_l: float, dist: Distribution, j0: float) -> float:
    """Classical exponential fitting (scheme A)."""
    bp, bm = bernoulli_pm(x)
    return -z * j0 * (bm * occupation(dist, eta_l) - bp * occupation(dist, eta_k))


def _sedan_argument(x: float, eta_k: float, eta_l: float, dist: Distribution) -> float:
    return x + (eta_l - eta_k) - log_occupation(dist, eta_l) + log_occupation(dist, eta_k)


def sedan(z: int, x: float, eta_k: float, eta_l: float, dist: Distribution, j0: float) -> float:
    """
    Generalized exponential fitting (scheme B): the Bernoulli argument is
    corrected by the log-ratio of the occupations, exact in equilibrium for any
    statistics.
    """
    bp, bm = bernoulli_pm(_sedan_argument(x, eta_k, eta_l, dist))
    return -z * j0 * (bm * occupation(dist, eta_l) - bp * occupation(dist, eta_k))


def enhancement_factor(eta_k: float, eta_l: float, dist: Distribution) -> float:
    """
    g = (η_l - η_k) / (log F(η_l) - log F(η_k)), or the average of e^η/F(η)
    at both ends when the gap is below REGULARIZATION_TOL relative to |η_k+η_l|.
    """
    if abs(eta_l - eta_k) > REGULARIZATION_TOL * abs(eta_k + eta_l):
        return (eta_l - eta_k) / (log_occupation(dist, eta_l) - log_occupation(dist, eta_k))
    return 0.5 * (degeneracy_factor(dist, eta_k) + degeneracy_factor(dist, eta_l))


def diffusion_enhanced(z: int, x: float, eta_k: float, eta_l: float, dist: Distribution, j0: float) -> float:
    """Diffusion-enhanced scheme (scheme C): thermal voltage scaled by g."""
    g = enhancement_factor(eta_k, eta_l, dist)
    bp, bm = bernoulli_pm(x / g)
    return -z * j0 * g * (bm * occupation(dist, eta_l) - bp * occupation(dist, eta_k))


def implicit_gamma(dist: Distribution) -> float:
    """γ of the implicit scheme: Blakemore constant, 0 for Boltzmann."""
    if dist is Distribution.BLAKEMORE:
        return BLAKEMORE_GAMMA
    if dist is Distribution.BOLTZMANN:
        return 0.0
    raise ConfigurationError(
        f"implicit (Koprucki-Gaertner) flux requires Blakemore or Boltzmann statistics, got {dist.value}."
    )


def solve_implicit_flux(x: float, eta_k: float, eta_l: float, dist: Distribution) -> float:
    """
    Damped Newton for the normalized flux j of

        G(j) = B(-(x - γ j)) e^{η_l} - B(x - γ j) e^{η_k} - j = 0.

    Seed: closed-form Sedan flux. Damping 0.1, grown by 1.2 per step, capped
    at 1. Stops when |update| < 1e-18 + 1e-14 |j_seed|. Raises
    SingularDerivativeError when G'(j) is NaN or below that tolerance.
    """
    gamma = implicit_gamma(dist)
    ek = float(np.exp(eta_k))
    el = float(np.exp(eta_l))

    bp, bm = bernoulli_pm(_sedan_argument(x, eta_k, eta_l, dist))
    j = bm * occupation(dist, eta_l) - bp * occupation(dist, eta_k)
    tol = 1.0e-18 + 1.0e-14 * abs(j)

    damp = IMPLICIT_DAMP_INIT
    update = np.inf
    for it in range(IMPLICIT_MAX_ITER):
        y = x - gamma * j
        Bp, Bm = bernoulli_pm(y)
        G = Bm * el - Bp * ek - j
        dG = gamma * (bernoulli_derivative(-y) * el + bernoulli_derivative(y) * ek) - 1.0
        if np.isnan(dG) or abs(dG) < tol:
            raise SingularDerivativeError(j, G, dG)
        update = G / dG
        j = j - damp * update
        if abs(update) < tol:
            return j
        damp = min(damp * IMPLICIT_DAMP_GROW, 1.0)

    diag.log_implicit_flux_stall(iters=IMPLICIT_MAX_ITER, j=j, update=float(update), tol=tol)
    logger.warn("implicit flux iteration hit the iteration limit; using last iterate")
    return j


def koprucki_gaertner(z: int, x: float, eta_k: float, eta_l: float, dist: Distribution, j0: float) -> float:
    """Implicit fixed-point scheme (scheme D), tailored to Blakemore statistics."""
    return -z * j0 * solve_implicit_flux(x, eta_k, eta_l, dist)


# ---------------------------------------------------------------------
# Closed set + dispatch
# ---------------------------------------------------------------------


class FluxScheme(Enum):
    SCHARFETTER_GUMMEL = "scharfetter_gummel"
    SEDAN = "sedan"
    DIFFUSION_ENHANCED = "diffusion_enhanced"
    KOPRUCKI_GAERTNER = "koprucki_gaertner"

    @classmethod
    def parse(cls, name: "str | FluxScheme") -> "FluxScheme":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ConfigurationError(f"Unknown flux scheme '{name}' (expected one of: {valid})") from None


Kernel = Callable[[int, float, float, float, Distribution, float], float]

FLUX_KERNELS: Dict[FluxScheme, Kernel] = {
    FluxScheme.SCHARFETTER_GUMMEL: scharfetter_gummel,
    FluxScheme.SEDAN: sedan,
    FluxScheme.DIFFUSION_ENHANCED: diffusion_enhanced,
    FluxScheme.KOPRUCKI_GAERTNER: koprucki_gaertner,
}


def check_scheme(scheme: FluxScheme, store) -> None:
    """Build-time compatibility check between a scheme and the carrier statistics."""
    if scheme is FluxScheme.KOPRUCKI_GAERTNER:
        for c in store.carriers:
            implicit_gamma(c.distribution)


# ---------------------------------------------------------------------
# Edge callback
# ---------------------------------------------------------------------


def flux(
    f: np.ndarray,
    uk: np.ndarray,
    ul: np.ndarray,
    edge: EdgeContext,
    store,
    scheme: FluxScheme = FluxScheme.SCHARFETTER_GUMMEL,
) -> np.ndarray:
    """
    Fill f (length n_species) with the edge flux k → l and return it.

    uk, ul : unknowns at the two endpoints, indexed by species.
    """
    layout = store.layout
    ipsi = layout.potential_index
    ireg = edge.region
    q = store.constants.q
    UT = store.UT

    dpsi = ul[ipsi] - uk[ipsi]
    f[ipsi] = -store.edge_dielectric(ireg, edge.node_k, edge.node_l) * store.constants.eps0 * dpsi

    # zero carrier flux in equilibrium
    if store.embedding.in_equilibrium:
        return f

    kernel = FLUX_KERNELS[scheme]
    Enode = store.band_edge_energy_node
    for icc in layout.carriers_in(ireg):
        i = layout.index(icc, ireg)
        z = store.charge_number(icc)
        dist = store.distribution(icc)

        mob = store.edge_mobility(icc, ireg, edge.node_k, edge.node_l)
        dos = store.edge_density(icc, ireg, edge.node_k, edge.node_l)
        j0 = z * q * mob * UT * dos

        eta_k = store.reduced_potential(icc, ireg, edge.node_k, uk[i], uk[ipsi])
        eta_l = store.reduced_potential(icc, ireg, edge.node_l, ul[i], ul[ipsi])

        dE = Enode[edge.node_l, icc] - Enode[edge.node_k, icc]
        x = z * (dpsi - dE / q) / UT

        f[i] = kernel(z, x, eta_k, eta_l, dist, j0)
    return f
