# driftsim/io/config.py
# -*- coding: utf-8 -*-
"""
YAML → Grid, ParameterStore and flux-scheme helpers.

Schema (minimal, example; energies in eV, everything else SI):

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
recombination: { model: full, electron: 0, hole: 1 }
ionic: { carriers: [], regions: [] }
embedding: { lambda1: 1.0, lambda2: 0.0, lambda3: 0.0, in_equilibrium: true }
boundary_penalty: 1.0e-10
parameters:
  band_edge_energy: [[1.1, 0.0], [1.1, 0.0]]
  density_of_states: [[2.8e+25, 1.0e+25], [2.8e+25, 1.0e+25]]
  doping: [[1.0e+22, 0.0], [0.0, 1.0e+22]]
  dielectric_constant: [11.7, 11.7]
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np
import yaml

from driftsim.discretization.fluxes import FluxScheme
from driftsim.discretization.species import IonicCarrierConfig
from driftsim.geometry.grid import Grid, interval_grid
from driftsim.physics.carriers.statistics import Distribution
from driftsim.physics.parameters import (
    DEFAULT_BOUNDARY_PENALTY,
    Carrier,
    EmbeddingParameters,
    ParameterStore,
    build_parameters,
)
from driftsim.physics.recombination import BulkRecombinationConfig, RecombinationModel
from driftsim.utils.constants import PhysicalConstants, T_REF
from driftsim.utils.errors import ConfigurationError

# tables given in eV in the file, stored in J
ENERGY_TABLES = frozenset({
    "band_edge_energy", "b_band_edge_energy", "band_edge_energy_node", "schottky_barrier",
})


@dataclass
class RunConfig:
    raw: dict
    path: Optional[Path] = None


def load_config(path: Path) -> RunConfig:
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ConfigurationError("Top-level YAML must be a mapping")
    _validate_minimum(data)
    return RunConfig(raw=data, path=Path(path))


def config_from_mapping(data: Mapping[str, Any]) -> RunConfig:
    if not isinstance(data, Mapping):
        raise ConfigurationError("configuration must be a mapping")
    raw = dict(data)
    _validate_minimum(raw)
    return RunConfig(raw=raw)


def build_grid(cfg: RunConfig) -> Grid:
    g = cfg.raw["grid"]
    coord = g.get("coord")
    if not coord:
        raise ConfigurationError("grid.coord is empty")
    cell_regions = g.get("cell_regions", [0] * (len(coord) - 1))
    bface_regions = g.get("bface_regions", [0, 1])
    try:
        return interval_grid(coord, cell_regions, bface_regions)
    except ValueError as exc:
        raise ConfigurationError(f"grid: {exc}") from None


def build_carriers(cfg: RunConfig) -> tuple[Carrier, ...]:
    rows = cfg.raw["carriers"]
    if not rows:
        raise ConfigurationError("carriers is empty")
    carriers = []
    for i, row in enumerate(rows):
        if "charge_number" not in row:
            raise ConfigurationError(f"carriers[{i}]: missing charge_number")
        try:
            dist = Distribution.parse(row.get("distribution", "boltzmann"))
        except ConfigurationError as exc:
            raise ConfigurationError(f"carriers[{i}]: {exc}") from None
        carriers.append(
            Carrier(
                charge_number=int(row["charge_number"]),
                distribution=dist,
                continuous=bool(row.get("continuous", True)),
                name=str(row.get("name", f"c{i}")),
            )
        )
    return tuple(carriers)


def build_recombination(cfg: RunConfig, n_carriers: int) -> BulkRecombinationConfig:
    r = cfg.raw.get("recombination")
    if r is None:
        model = RecombinationModel.FULL if n_carriers >= 2 else RecombinationModel.NONE
        return BulkRecombinationConfig(model=model)
    try:
        model = RecombinationModel.parse(r.get("model", "full"))
    except ConfigurationError as exc:
        raise ConfigurationError(f"recombination: {exc}") from None
    return BulkRecombinationConfig(model=model, electron=int(r.get("electron", 0)), hole=int(r.get("hole", 1)))


def build_embedding(cfg: RunConfig) -> EmbeddingParameters:
    e = cfg.raw.get("embedding") or {}
    return EmbeddingParameters(
        lambda1=float(e.get("lambda1", 1.0)),
        lambda2=float(e.get("lambda2", 0.0)),
        lambda3=float(e.get("lambda3", 0.0)),
        in_equilibrium=bool(e.get("in_equilibrium", True)),
    )


def _tables(cfg: RunConfig, q: float) -> dict:
    out = {}
    for name, value in (cfg.raw.get("parameters") or {}).items():
        arr = np.asarray(value, dtype=np.float64)
        out[name] = arr * q if name in ENERGY_TABLES else arr
    return out


def build_store(cfg: RunConfig, grid: Optional[Grid] = None) -> ParameterStore:
    """Carriers, layout and every parameter table, validated by build_parameters."""
    grid = grid if grid is not None else build_grid(cfg)
    carriers = build_carriers(cfg)
    constants = PhysicalConstants(temperature=float(cfg.raw.get("temperature_K", T_REF)))
    ionic_raw = cfg.raw.get("ionic") or {}
    ionic = IonicCarrierConfig.build(ionic_raw.get("carriers", ()), ionic_raw.get("regions", ()))

    return build_parameters(
        carriers=carriers,
        num_regions=grid.num_cell_regions,
        boundary_models=cfg.raw["boundary_models"],
        num_nodes=grid.num_nodes,
        recombination=build_recombination(cfg, len(carriers)),
        ionic=ionic,
        constants=constants,
        embedding=build_embedding(cfg),
        boundary_penalty=float(cfg.raw.get("boundary_penalty", DEFAULT_BOUNDARY_PENALTY)),
        **_tables(cfg, constants.q),
    )


def flux_scheme(cfg: RunConfig) -> FluxScheme:
    return FluxScheme.parse(cfg.raw.get("flux_scheme", FluxScheme.SCHARFETTER_GUMMEL.value))


def _validate_minimum(cfg: dict) -> None:
    for key in ("grid", "carriers", "boundary_models"):
        if key not in cfg:
            raise ConfigurationError(f"Missing top-level key: {key}")
