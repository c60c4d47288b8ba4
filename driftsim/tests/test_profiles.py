# driftsim/tests/test_profiles.py
"""Densities, band diagram and the tabular profile export."""
from __future__ import annotations

import math

import numpy as np
import pytest

from driftsim.geometry.grid import interval_grid
from driftsim.postprocess.profiles import compute_densities, compute_energies, profiles_frame
from driftsim.utils.constants import Q


@pytest.fixture
def device(make_store):
    grid = interval_grid([0.0, 1e-7, 2e-7], [0, 0])
    store = make_store(num_nodes=3)
    sol = np.array([
        [0.0, 0.05, 0.1],    # φ_n
        [0.0, -0.05, -0.1],  # φ_p
        [0.4, 0.5, 0.6],     # ψ
    ])
    return grid, store, sol


def test_densities_follow_boltzmann(device):
    grid, store, sol = device
    dens = compute_densities(grid, store, sol)
    assert dens.shape == (2, 3)
    UT = store.UT
    n1 = 2.8e25 * math.exp(-1.0 / UT * ((0.05 - 0.5) + 1.1))
    assert math.isclose(dens[0, 1], n1, rel_tol=1e-12)
    # higher potential → more electrons, fewer holes
    assert np.all(np.diff(dens[0]) > 0.0)
    assert np.all(np.diff(dens[1]) < 0.0)


def test_energies(device):
    grid, store, sol = device
    E, EF = compute_energies(grid, store, sol)
    np.testing.assert_allclose(E[0], 1.1 * Q - Q * sol[2])
    np.testing.assert_allclose(E[1], -Q * sol[2])
    np.testing.assert_allclose(EF, -Q * sol[:2])


def test_profiles_frame_columns_and_units(device):
    grid, store, sol = device
    df = profiles_frame(grid, store, sol)
    assert list(df.columns) == [
        "x", "region", "psi",
        "n_density", "n_band_edge", "n_quasi_fermi",
        "p_density", "p_band_edge", "p_quasi_fermi",
    ]
    assert len(df) == 3
    np.testing.assert_allclose(df["n_band_edge"], 1.1 - sol[2])
    np.testing.assert_allclose(df["p_quasi_fermi"], -sol[1])
    joules = profiles_frame(grid, store, sol, energy_unit="J")
    np.testing.assert_allclose(joules["n_band_edge"], (1.1 - sol[2]) * Q)


def test_profiles_reject_bad_input(device):
    grid, store, sol = device
    with pytest.raises(ValueError):
        profiles_frame(grid, store, sol[:, :2])
    with pytest.raises(ValueError):
        profiles_frame(grid, store, sol, energy_unit="meV")
