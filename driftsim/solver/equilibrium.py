# driftsim/solver/equilibrium.py
"""
Initial guesses for the equilibrium electrostatic potential.

- electroneutral_solution            : per node, root of the local charge
                                       density with φ = 0 (any statistics).
- electroneutral_solution_boltzmann  : closed form for two Boltzmann carriers.
- solve_equilibrium_boltzmann        : full equilibrium solve of the Boltzmann
                                       twin of a degenerate-statistics device.

Root finding is an explicit two-attempt procedure: a seeded Newton/secant
iteration from ψ0 = 0.5 V and, only if that fails, a second attempt from
ψ0 = 2.0 V. Each node yields a RootResult; no exception drives the fallback.

Public API (stable):
    charge_density(psi, phi, UT, E, z, C, N, dists) -> float
    RootResult
    find_neutral_potential(fun, seeds=ROOT_SEEDS) -> RootResult
    electroneutral_solution(grid, store) -> np.ndarray (N,)
    electroneutral_solution_boltzmann(grid, store) -> np.ndarray (N,)
    solve_equilibrium_boltzmann(build_system, store, initial_guess, control) -> np.ndarray
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.optimize import newton

from .nonlinear import DIRICHLET, SolverControl
from ..discretization.assemble import attach, build_physics
from ..discretization.fluxes import FluxScheme
from ..geometry.grid import Grid
from ..physics.carriers.statistics import Distribution, occupation
from ..physics.parameters import boltzmann_twin
from ..utils import logger
from ..utils.constants import Q
from ..utils.errors import ConfigurationError

__all__ = [
    "ROOT_SEEDS",
    "charge_density",
    "RootResult",
    "find_neutral_potential",
    "electroneutral_solution",
    "electroneutral_solution_boltzmann",
    "solve_equilibrium_boltzmann",
]

# first attempt, then the fallback seed [V]
ROOT_SEEDS = (0.5, 2.0)

# accepted |f(root)| relative to |f(seed)|
RESIDUAL_DROP = 1.0e-6


def charge_density(
    psi: float,
    phi: float,
    UT: float,
    E: Sequence[float],
    z: Sequence[int],
    C: Sequence[float],
    N: Sequence[float],
    dists: Sequence[Distribution],
    q: float = Q,
) -> float:
    """Σ_c z_c (N_c F_c(η_c) - C_c) with η_c = z_c/U_T ((φ - ψ) + E_c/q)."""
    total = 0.0
    for E_c, z_c, C_c, N_c, d in zip(E, z, C, N, dists):
        eta = z_c / UT * ((phi - psi) + E_c / q)
        total += z_c * (N_c * occupation(d, eta) - C_c)
    return float(total)


@dataclass(frozen=True, slots=True)
class RootResult:
    value: float
    converged: bool
    seed: float
    attempts: int
    iterations: int = 0


def _attempt(fun: Callable[[float], float], seed: float) -> tuple[float, bool, int]:
    with np.errstate(over="ignore", invalid="ignore"):
        root, info = newton(fun, seed, maxiter=200, full_output=True, disp=False)
        f_seed = abs(fun(seed))
        f_root = abs(fun(root)) if np.isfinite(root) else np.inf
    # secant stalls on flat plateaus report convergence; require a real drop
    ok = bool(info.converged) and np.isfinite(root) and f_root <= RESIDUAL_DROP * f_seed
    return float(root), bool(ok), int(info.iterations)


def find_neutral_potential(fun: Callable[[float], float], seeds: Sequence[float] = ROOT_SEEDS) -> RootResult:
    """
    Try each seed in order; return the first converged root, or the last
    attempt marked converged=False.
    """
    root, ok, its = np.nan, False, 0
    for attempt, seed in enumerate(seeds, start=1):
        root, ok, its = _attempt(fun, seed)
        if ok:
            return RootResult(value=root, converged=True, seed=float(seed), attempts=attempt, iterations=its)
    return RootResult(value=root, converged=False, seed=float(seeds[-1]), attempts=len(seeds), iterations=its)


def _averaged(table: np.ndarray, regions: Sequence[int], carrier: int) -> float:
    return float(np.mean([table[r, carrier] for r in regions]))


def electroneutral_solution(grid: Grid, store, *, debug: bool = False) -> np.ndarray:
    """
    ψ per node such that the local charge density vanishes (φ = 0).

    Band edges, doping and densities of states are averaged over all regions
    touching the node, then the nodal corrections are added.
    Raises RuntimeError if both root attempts fail at some node.
    """
    UT = store.UT
    q = store.constants.q
    carriers = range(store.n_carriers)
    z = [store.charge_number(c) for c in carriers]
    dists = [store.distribution(c) for c in carriers]
    psi0 = np.zeros(grid.num_nodes)

    for inode, regions in enumerate(grid.node_regions()):
        if not regions:
            raise ConfigurationError(f"node {inode} belongs to no cell.")
        E = [_averaged(store.band_edge_energy, regions, c) + store.band_edge_energy_node[inode, c] for c in carriers]
        C = [_averaged(store.doping, regions, c) + store.doping_node[inode, c] for c in carriers]
        N = [_averaged(store.density_of_states, regions, c) + store.density_of_states_node[inode, c] for c in carriers]

        res = find_neutral_potential(lambda psi: charge_density(psi, 0.0, UT, E, z, C, N, dists, q))
        if not res.converged:
            raise RuntimeError(
                f"electroneutral potential not found at node {inode} (seeds {ROOT_SEEDS})."
            )
        if debug and res.attempts > 1:
            logger.warn(f"node {inode}: neutral potential needed fallback seed {res.seed}")
        psi0[inode] = res.value
    return psi0


def _boltzmann_closed_form(Ec, Ev, Nc, Nv, C, UT, kT, q) -> float:
    ni = np.sqrt(Nc * Nv * np.exp(-(Ec - Ev) / kT))
    return float((Ec + Ev) / (2.0 * q) - 0.5 * UT * np.log(Nc / Nv) + UT * np.arcsinh(C / (2.0 * ni)))


def electroneutral_solution_boltzmann(grid: Grid, store) -> np.ndarray:
    """
    ψ = (E_c + E_v)/(2q) - ½ U_T ln(N_c/N_v) + U_T asinh(C/(2 n_i)),
    C = -z_n C_n - z_p C_p, for the two primary carriers.

    Boundary-face nodes use the boundary tables, all others the region tables
    averaged over adjacent regions.
    """
    if store.n_carriers != 2:
        raise ConfigurationError(
            f"closed-form electroneutral potential needs exactly two carriers (got {store.n_carriers})."
        )
    ie, ih = store.recombination.primary
    zn, zp = store.charge_number(ie), store.charge_number(ih)
    UT, kT, q = store.UT, store.constants.kT, store.constants.q
    psi0 = np.zeros(grid.num_nodes)

    for inode, regions in enumerate(grid.node_regions()):
        Ec = _averaged(store.band_edge_energy, regions, ie) + store.band_edge_energy_node[inode, ie]
        Ev = _averaged(store.band_edge_energy, regions, ih) + store.band_edge_energy_node[inode, ih]
        Nc = _averaged(store.density_of_states, regions, ie)
        Nv = _averaged(store.density_of_states, regions, ih)
        C = -zn * _averaged(store.doping, regions, ie) - zp * _averaged(store.doping, regions, ih)
        psi0[inode] = _boltzmann_closed_form(Ec, Ev, Nc, Nv, C, UT, kT, q)

    for nodes, breg in zip(grid.bface_nodes, grid.bface_regions):
        Ec = store.b_band_edge_energy[breg, ie]
        Ev = store.b_band_edge_energy[breg, ih]
        Nc = store.b_density_of_states[breg, ie]
        Nv = store.b_density_of_states[breg, ih]
        if Nc <= 0.0 or Nv <= 0.0:
            continue
        C = -zn * store.b_doping[breg, ie] - zp * store.b_doping[breg, ih]
        for inode in nodes:
            psi0[int(inode)] = _boltzmann_closed_form(Ec, Ev, Nc, Nv, C, UT, kT, q)
    return psi0


def solve_equilibrium_boltzmann(
    build_system: Callable,
    store,
    initial_guess: np.ndarray,
    control: Optional[SolverControl] = None,
) -> np.ndarray:
    """
    Equilibrium solve with every carrier switched to Boltzmann statistics and
    all contacts grounded; the result is a starting point for the degenerate
    problem.

    build_system : physics -> external system (with enable_species,
                   boundary_values, boundary_factors, solve).
    Returns initial_guess unchanged (with a warning) if all carriers already
    use Boltzmann statistics.
    """
    if all(c.distribution is Distribution.BOLTZMANN for c in store.carriers):
        logger.warn("all carriers use Boltzmann statistics already; nothing computed")
        return initial_guess

    twin = boltzmann_twin(store)
    physics = build_physics(twin, FluxScheme.SCHARFETTER_GUMMEL)
    system = build_system(physics)
    attach(system, physics)

    for icc in range(twin.n_carriers):
        for i in twin.layout.indices_of(icc):
            for breg in range(twin.n_bregions):
                system.boundary_values[i, breg] = twin.contact_voltage[breg]
                system.boundary_factors[i, breg] = DIRICHLET

    return system.solve(initial_guess, control if control is not None else SolverControl())
