# driftsim/tests/test_config.py
"""YAML run configuration → grid, parameter store and flux scheme."""
from __future__ import annotations

import textwrap

import numpy as np
import pytest

from driftsim.discretization.fluxes import FluxScheme
from driftsim.io.config import (
    build_grid,
    build_store,
    config_from_mapping,
    flux_scheme,
    load_config,
)
from driftsim.physics.carriers.statistics import Distribution
from driftsim.physics.recombination import RecombinationModel
from driftsim.utils.constants import Q
from driftsim.utils.errors import ConfigurationError

PN_YAML = textwrap.dedent(
    """
    temperature_K: 300
    flux_scheme: sedan
    grid:
      coord: [0.0, 1.0e-7, 2.0e-7, 3.0e-7]
      cell_regions: [0, 1, 1]
      bface_regions: [0, 1]
    carriers:
      - { name: n, charge_number: -1, distribution: boltzmann }
      - { name: p, charge_number: 1, distribution: blakemore }
    boundary_models: [ohmic_contact, ohmic_contact]
    recombination: { model: srh, electron: 0, hole: 1 }
    embedding: { lambda1: 1.0e-3, in_equilibrium: false }
    boundary_penalty: 1.0e-8
    parameters:
      band_edge_energy: [[1.1, 0.0], [1.1, 0.0]]
      density_of_states: [[2.8e+25, 1.0e+25], [2.8e+25, 1.0e+25]]
      doping: [[1.0e+22, 0.0], [0.0, 1.0e+22]]
      dielectric_constant: [11.7, 11.7]
    """
)


@pytest.fixture
def pn_config(tmp_path):
    path = tmp_path / "pn.yaml"
    path.write_text(PN_YAML)
    return load_config(path)


def test_load_config_keeps_path(pn_config, tmp_path):
    assert pn_config.path == tmp_path / "pn.yaml"
    assert pn_config.raw["flux_scheme"] == "sedan"


def test_grid_from_config(pn_config):
    grid = build_grid(pn_config)
    assert grid.num_nodes == 4
    assert grid.num_cell_regions == 2
    np.testing.assert_array_equal(grid.node_region(), [0, 0, 1, 1])


def test_store_from_config(pn_config):
    store = build_store(pn_config)
    assert [c.name for c in store.carriers] == ["n", "p"]
    assert store.carriers[1].distribution is Distribution.BLAKEMORE
    assert store.recombination.model is RecombinationModel.SRH
    assert store.embedding.lambda1 == 1e-3 and not store.embedding.in_equilibrium
    assert store.boundary_penalty == 1e-8
    assert store.layout.n_species == 3


def test_energies_are_converted_from_ev(pn_config):
    store = build_store(pn_config)
    assert store.band_edge_energy[0, 0] == pytest.approx(1.1 * Q, rel=1e-15)
    # non-energy tables pass through unchanged
    assert store.doping[1, 1] == 1e22


def test_flux_scheme_from_config(pn_config):
    assert flux_scheme(pn_config) is FluxScheme.SEDAN
    minimal = config_from_mapping({"grid": {"coord": [0, 1]}, "carriers": [{"charge_number": -1}], "boundary_models": ["ohmic_contact"]})
    assert flux_scheme(minimal) is FluxScheme.SCHARFETTER_GUMMEL


def test_unknown_flux_scheme():
    cfg = config_from_mapping({"grid": {}, "carriers": [], "boundary_models": [], "flux_scheme": "upwind"})
    with pytest.raises(ConfigurationError):
        flux_scheme(cfg)


@pytest.mark.parametrize("missing", ["grid", "carriers", "boundary_models"])
def test_missing_top_level_key(missing):
    data = {"grid": {"coord": [0, 1]}, "carriers": [{"charge_number": -1}], "boundary_models": ["ohmic_contact"]}
    del data[missing]
    with pytest.raises(ConfigurationError, match=missing):
        config_from_mapping(data)


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_bad_grid_is_a_configuration_error():
    cfg = config_from_mapping({"grid": {"coord": [0.0, 2.0, 1.0]}, "carriers": [{"charge_number": -1}], "boundary_models": ["ohmic_contact"]})
    with pytest.raises(ConfigurationError, match="grid"):
        build_grid(cfg)


def test_bad_carrier_rows():
    base = {"grid": {"coord": [0.0, 1.0]}, "boundary_models": ["ohmic_contact"]}
    with pytest.raises(ConfigurationError, match="charge_number"):
        build_store(config_from_mapping({**base, "carriers": [{"name": "n"}]}))
    with pytest.raises(ConfigurationError, match="carriers\\[0\\]"):
        build_store(config_from_mapping({**base, "carriers": [{"charge_number": -1, "distribution": "maxwell"}]}))


def test_table_shape_mismatch(pn_config):
    pn_config.raw["parameters"]["doping"] = [[1e22, 0.0]]
    with pytest.raises(ConfigurationError, match="doping"):
        build_store(pn_config)
