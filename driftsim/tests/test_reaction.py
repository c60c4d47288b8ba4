# driftsim/tests/test_reaction.py
"""Node reaction / storage terms and the recombination kernels behind them."""
from __future__ import annotations

import math

import numpy as np
import pytest

from driftsim.geometry.grid import NodeContext
from driftsim.physics.carriers.statistics import Distribution
from driftsim.physics.parameters import Carrier, EmbeddingParameters, build_parameters
from driftsim.physics.reaction import charge_sum, generation, reaction, storage, store_trap_density
from driftsim.physics.recombination import (
    BulkRecombinationConfig,
    RecombinationModel,
    bipolar_rate,
    recombination_prefactor,
    srh_prefactor,
    surface_srh_prefactor,
    trap_density,
)
from driftsim.discretization.species import IonicCarrierConfig
from driftsim.utils.constants import Q

NODE = NodeContext(index=0, region=0, coord=0.0)


def _reaction(store, u, node=NODE):
    f = np.zeros(store.layout.n_species)
    return reaction(f, np.asarray(u, float), node, store)


def test_poisson_term_vanishes_for_equal_occupations():
    # single node, no doping, z = ±1, identical η for both carriers
    store = build_parameters(
        carriers=[Carrier(-1), Carrier(+1)],
        num_regions=1,
        boundary_models=["ohmic_contact"],
        num_nodes=1,
        density_of_states=1e24,
    )
    f = _reaction(store, [0.0, 0.0, 0.0])
    assert f[store.layout.potential_index] == 0.0


def test_poisson_term_counts_doping_and_carriers(make_store):
    store = make_store(doping=[[1e22, 0.0]])
    u = [0.0, 0.0, 0.4]
    n = store.carrier_density(0, 0, 0, 0.0, 0.4)
    p = store.carrier_density(1, 0, 0, 0.0, 0.4)
    expected = -Q * 1.0 * (-(n - 1e22) + p)
    f = _reaction(store, u)
    assert math.isclose(f[2], expected, rel_tol=1e-12)


def test_poisson_term_scales_with_lambda1(make_store):
    store = make_store(doping=[[1e22, 0.0]])
    full = _reaction(store, [0.0, 0.0, 0.4])[2]
    store.embedding.lambda1 = 1e-3
    assert math.isclose(_reaction(store, [0.0, 0.0, 0.4])[2], 1e-3 * full, rel_tol=1e-12)


def test_equilibrium_residual_is_independent_of_recombination(make_store):
    u = [0.12, -0.07, 0.5]
    a = make_store(in_equilibrium=True, srh_lifetime=[[1e-9, 1e-9]], radiative=[1e-16], generation_uniform=[1e27])
    b = make_store(in_equilibrium=True, srh_lifetime=[[1e-3, 1e-3]], auger=[[1e-40, 1e-40]])
    a.embedding.lambda2 = 1.0
    fa, fb = _reaction(a, u), _reaction(b, u)
    assert fa[0] == 0.12 and fa[1] == -0.07
    np.testing.assert_array_equal(fa, fb)


def test_no_net_recombination_when_quasi_fermi_levels_coincide(make_store):
    store = make_store(radiative=[1e-16], auger=[[1e-42, 1e-42]])
    f = _reaction(store, [0.1, 0.1, 0.5])
    assert f[0] == 0.0 and f[1] == 0.0


def test_srh_recombination_residual(make_store):
    store = make_store(srh_trap_density=[[1e15, 1e15]], recombination=BulkRecombinationConfig(model=RecombinationModel.SRH))
    u = [0.2, -0.2, 0.55]
    n = store.carrier_density(0, 0, 0, 0.2, 0.55)
    p = store.carrier_density(1, 0, 0, -0.2, 0.55)
    K = 1.0 / (1e-6 * (n + 1e15) + 1e-6 * (p + 1e15))
    R = K * n * p * (1.0 - math.exp(0.4 / store.UT))
    f = _reaction(store, u)
    assert math.isclose(f[0], Q * -1 * R, rel_tol=1e-10)
    assert math.isclose(f[1], Q * +1 * R, rel_tol=1e-10)


def test_generation_enters_with_lambda2(make_store):
    store = make_store(
        generation_uniform=[1e26],
        generation_prefactor=[1.0],
        generation_emitted_light=[2e26],
        generation_absorption=[1e7],
        recombination=BulkRecombinationConfig(model=RecombinationModel.RADIATIVE),
    )
    node = NodeContext(index=0, region=0, coord=1e-7)
    assert generation(node, store) == 0.0
    store.embedding.lambda2 = 0.5
    G = 0.5 * (1e26 + 2e26 * 1e7 * math.exp(-1.0))
    assert math.isclose(generation(node, store), G, rel_tol=1e-12)
    f = _reaction(store, [0.1, 0.1, 0.5], node)
    assert math.isclose(f[0], Q * G, rel_tol=1e-12)
    assert math.isclose(f[1], -Q * G, rel_tol=1e-12)


def test_ionic_carrier_only_in_poisson_term():
    store = build_parameters(
        carriers=[Carrier(-1), Carrier(+1), Carrier(+1, name="vacancy")],
        num_regions=2,
        boundary_models=["ohmic_contact", "ohmic_contact"],
        num_nodes=2,
        ionic=IonicCarrierConfig.build([2], [1]),
        density_of_states=[[1e24, 1e24, 1e26], [1e24, 1e24, 1e26]],
        doping=[[0.0, 0.0, 1e26], [0.0, 0.0, 1e26]],
        embedding=EmbeddingParameters(in_equilibrium=False),
    )
    u = np.array([0.0, 0.0, 0.0, 0.0])
    f0 = reaction(np.zeros(4), u, NodeContext(0, 0), store)
    f1 = reaction(np.zeros(4), u, NodeContext(1, 1), store)
    # region 0: ionic species untouched and not counted
    assert f0[2] == 0.0 and f0[3] == 0.0
    # region 1: vacancy density N F(0) equals its doping → still neutral
    assert f1[2] == 0.0 and f1[3] == 0.0


def test_storage_term(make_store):
    store = make_store()
    f = storage(np.ones(3), np.array([0.0, 0.0, 0.6]), NODE, store)
    assert math.isclose(f[0], -store.carrier_density(0, 0, 0, 0.0, 0.6))
    assert math.isclose(f[1], store.carrier_density(1, 0, 0, 0.0, 0.6))
    assert f[2] == 0.0


def test_charge_sum_matches_poisson_row(make_store):
    store = make_store(doping=[[0.0, 1e21]])
    u = np.array([0.0, 0.0, 0.3])
    assert math.isclose(_reaction(store, u)[2], -Q * charge_sum(u, NODE, store), rel_tol=1e-14)


# ---------------------------------------------------------------------
# Kernels
# ---------------------------------------------------------------------


def test_srh_prefactor_zero_denominator():
    assert srh_prefactor(0.0, 0.0, 1e-6, 1e-6, 0.0, 0.0) == 0.0


def test_model_filters_terms():
    kw = dict(r_rad=1.0, C_n=10.0, C_p=100.0, tau_n=1.0, tau_p=1.0, n_trap=0.0, p_trap=0.0)
    assert recombination_prefactor(RecombinationModel.RADIATIVE, 1.0, 1.0, **kw) == 1.0
    assert recombination_prefactor(RecombinationModel.AUGER, 1.0, 1.0, **kw) == 110.0
    assert recombination_prefactor(RecombinationModel.SRH, 1.0, 1.0, **kw) == 0.5
    assert recombination_prefactor(RecombinationModel.FULL, 1.0, 1.0, **kw) == 111.5
    assert recombination_prefactor(RecombinationModel.NONE, 1.0, 1.0, **kw) == 0.0


def test_bipolar_rate_sign():
    UT = 0.025
    assert bipolar_rate(1.0, 1.0, 1.0, 0.0, 0.0, UT) == 0.0
    # φ_n < φ_p: injection → positive recombination
    assert bipolar_rate(1.0, 1.0, 1.0, -0.1, 0.1, UT) > 0.0


def test_surface_prefactor_switches_off_without_velocity():
    assert surface_srh_prefactor(1.0, 1.0, 0.0, 1e2, 0.0, 0.0) == 0.0
    assert math.isclose(surface_srh_prefactor(1.0, 1.0, 2.0, 2.0, 0.0, 0.0), 1.0)


def test_trap_density_at_intrinsic_level_is_ni():
    kT = 1.380649e-23 * 300.0
    Ec, Ev, Nc, Nv = 1.1 * Q, 0.0, 2.8e25, 1.0e25
    ni = math.sqrt(Nc * Nv) * math.exp(-(Ec - Ev) / (2 * kT))
    Ei = 0.5 * (Ec + Ev + kT * math.log(Nv / Nc))
    assert math.isclose(trap_density(Ec, Ev, Nc, Nv, Ei, -1, kT), ni, rel_tol=1e-12)
    assert math.isclose(trap_density(Ec, Ev, Nc, Nv, Ei, +1, kT), ni, rel_tol=1e-12)
    # shallower trap below E_c raises the electron density
    assert trap_density(Ec, Ev, Nc, Nv, Ec - 0.1 * Q, -1, kT) > ni


def test_store_trap_density(make_store):
    store = make_store()
    kT = store.constants.kT
    Ei = 0.5 * (1.1 * Q + kT * math.log(1.0e25 / 2.8e25))
    n1 = store_trap_density(store, 0, 0, Ei)
    p1 = store_trap_density(store, 1, 0, Ei)
    assert math.isclose(n1, p1, rel_tol=1e-12)


@pytest.mark.parametrize("dist", list(Distribution))
def test_storage_is_finite_for_every_distribution(make_store, dist):
    store = make_store(distributions=(dist, dist))
    f = storage(np.zeros(3), np.array([0.0, 0.0, 1.2]), NODE, store)
    assert np.all(np.isfinite(f))


def test_equilibrium_pins_primaries_without_recombination_model(make_store):
    store = make_store(in_equilibrium=True, recombination=BulkRecombinationConfig(model=RecombinationModel.NONE))
    f = _reaction(store, [0.12, -0.07, 0.5])
    assert f[0] == 0.12 and f[1] == -0.07
    assert f[2] != 0.0


def test_generation_without_recombination_model(make_store):
    store = make_store(
        generation_uniform=[1e26],
        recombination=BulkRecombinationConfig(model=RecombinationModel.NONE),
    )
    store.embedding.lambda2 = 1.0
    f = _reaction(store, [0.2, -0.2, 0.5])
    assert math.isclose(f[0], Q * 1e26, rel_tol=1e-12)
    assert math.isclose(f[1], -Q * 1e26, rel_tol=1e-12)


def test_single_carrier_gets_no_recombination_row():
    store = build_parameters(
        carriers=[Carrier(-1)],
        num_regions=1,
        boundary_models=["ohmic_contact"],
        num_nodes=1,
        density_of_states=1e24,
        embedding=EmbeddingParameters(in_equilibrium=True),
    )
    f = reaction(np.zeros(2), np.array([0.3, 0.0]), NODE, store)
    assert f[0] == 0.0


def test_recombination_model_parse():
    from driftsim.utils.errors import ConfigurationError

    assert RecombinationModel.parse(" SRH ") is RecombinationModel.SRH
    with pytest.raises(ConfigurationError):
        RecombinationModel.parse("trap-assisted")
