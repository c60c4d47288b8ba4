# driftsim/postprocess/profiles.py
"""
Reconstruct carrier densities and band / quasi-Fermi energies from a solution.

Solution layout: (n_species, n_nodes), species indexed by the store's layout.
Each node is evaluated in its representative region (Grid.node_region); a
carrier that is inactive there yields NaN.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd

from ..geometry.grid import Grid

__all__ = ["compute_densities", "compute_energies", "profiles_frame"]


def _check(solution: np.ndarray, grid: Grid, store) -> np.ndarray:
    sol = np.atleast_2d(np.asarray(solution, dtype=np.float64))
    expected = (store.layout.n_species, grid.num_nodes)
    if sol.shape != expected:
        raise ValueError(f"solution: expected shape {expected}, got {sol.shape}.")
    return sol


def compute_densities(grid: Grid, store, solution: np.ndarray) -> np.ndarray:
    """n_c = N_c F_c(η_c) per carrier and node, shape (n_carriers, n_nodes)."""
    sol = _check(solution, grid, store)
    layout = store.layout
    ipsi = layout.potential_index
    regions = grid.node_region()
    out = np.full((store.n_carriers, grid.num_nodes), np.nan)
    for inode, ireg in enumerate(regions):
        if ireg < 0:
            continue
        for icc in layout.carriers_in(int(ireg)):
            i = layout.index(icc, int(ireg))
            out[icc, inode] = store.carrier_density(icc, int(ireg), inode, sol[i, inode], sol[ipsi, inode])
    return out


def compute_energies(grid: Grid, store, solution: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Band-edge energies E_c - q ψ and quasi-Fermi energies -q φ_c [J],
    each shaped (n_carriers, n_nodes).
    """
    sol = _check(solution, grid, store)
    layout = store.layout
    ipsi = layout.potential_index
    q = store.constants.q
    regions = grid.node_region()
    energies = np.full((store.n_carriers, grid.num_nodes), np.nan)
    fermi = np.full_like(energies, np.nan)
    for inode, ireg in enumerate(regions):
        if ireg < 0:
            continue
        for icc in layout.carriers_in(int(ireg)):
            i = layout.index(icc, int(ireg))
            energies[icc, inode] = store.band_edge(icc, int(ireg), inode) - q * sol[ipsi, inode]
            fermi[icc, inode] = -q * sol[i, inode]
    return energies, fermi


def profiles_frame(grid: Grid, store, solution: np.ndarray, *, energy_unit: str = "eV") -> pd.DataFrame:
    """
    One row per node: x, region, psi, then per carrier the density, band
    edge and quasi-Fermi level (energies in eV unless energy_unit="J").
    """
    sol = _check(solution, grid, store)
    if energy_unit not in ("eV", "J"):
        raise ValueError(f"energy_unit must be 'eV' or 'J' (got {energy_unit!r}).")
    scale = 1.0 / store.constants.q if energy_unit == "eV" else 1.0

    dens = compute_densities(grid, store, sol)
    E, EF = compute_energies(grid, store, sol)

    cols = {
        "x": grid.coord[:, 0],
        "region": grid.node_region(),
        "psi": sol[store.layout.potential_index],
    }
    for icc, carrier in enumerate(store.carriers):
        tag = carrier.name or f"c{icc}"
        cols[f"{tag}_density"] = dens[icc]
        cols[f"{tag}_band_edge"] = E[icc] * scale
        cols[f"{tag}_quasi_fermi"] = EF[icc] * scale
    return pd.DataFrame(cols)
