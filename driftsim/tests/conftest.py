# driftsim/tests/conftest.py
"""Shared fixtures: a small bipolar device store and an in-memory solver stand-in."""
from __future__ import annotations

import numpy as np
import pytest

from driftsim.physics.carriers.statistics import Distribution
from driftsim.physics.parameters import Carrier, EmbeddingParameters, build_parameters
from driftsim.solver.nonlinear import SolverConvergenceError
from driftsim.utils.constants import Q

EC = 1.1 * Q   # conduction band edge [J]
EV = 0.0       # valence band edge [J]
NC = 2.8e25    # [1/m^3]
NV = 1.0e25


class FakeSystem:
    """
    Records enable_species calls and boundary data; solve() returns
    guess + offset, or raises at the steps listed in fail_at.
    """

    def __init__(self, n_species: int, n_bregions: int, n_nodes: int = 3, *, fail_at=(), offset=1.0, store=None):
        self.n_species = n_species
        self.n_nodes = n_nodes
        self.boundary_values = np.zeros((n_species, n_bregions))
        self.boundary_factors = np.zeros((n_species, n_bregions))
        self.enabled = {}
        self.fail_at = set(fail_at)
        self.offset = offset
        self.store = store
        self.calls = []

    def enable_species(self, index, regions):
        self.enabled[index] = list(regions)

    def new_unknowns(self):
        return np.zeros((self.n_species, self.n_nodes))

    def solve(self, initial_guess, control):
        step = len(self.calls)
        lam = self.store.embedding.lambda1 if self.store is not None else None
        self.calls.append((lam, np.array(initial_guess)))
        if step in self.fail_at:
            raise SolverConvergenceError(f"newton diverged at call {step}")
        # scribble over the guess to make aliasing visible
        initial_guess[...] = -999.0
        return np.full((self.n_species, self.n_nodes), float(step) + self.offset)


@pytest.fixture
def make_store():
    """
    Builder for a one- or two-region n/p device on 'num_nodes' nodes.
    Keyword overrides go straight to build_parameters.
    """
    def _make(
        *,
        num_nodes=2,
        num_regions=1,
        distributions=(Distribution.BOLTZMANN, Distribution.BOLTZMANN),
        boundary_models=("ohmic_contact", "ohmic_contact"),
        in_equilibrium=False,
        **overrides,
    ):
        carriers = (
            Carrier(charge_number=-1, distribution=distributions[0], name="n"),
            Carrier(charge_number=+1, distribution=distributions[1], name="p"),
        )
        R = num_regions
        B = len(boundary_models)
        tables = dict(
            band_edge_energy=np.tile([EC, EV], (R, 1)),
            density_of_states=np.tile([NC, NV], (R, 1)),
            mobility=np.tile([0.14, 0.045], (R, 1)),
            dielectric_constant=np.full(R, 11.7),
            srh_lifetime=np.tile([1e-6, 1e-6], (R, 1)),
            b_band_edge_energy=np.tile([EC, EV], (B, 1)),
            b_density_of_states=np.tile([NC, NV], (B, 1)),
        )
        tables.update(overrides)
        return build_parameters(
            carriers=carriers,
            num_regions=R,
            boundary_models=boundary_models,
            num_nodes=num_nodes,
            embedding=EmbeddingParameters(in_equilibrium=in_equilibrium),
            **tables,
        )

    return _make


@pytest.fixture
def fake_system():
    return FakeSystem
