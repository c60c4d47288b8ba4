# driftsim/physics/parameters.py
"""
Parameter store: every physical coefficient an assembly callback may read.

Tables (SI units, float64, read-only arrays)
--------------------------------------------
Region × carrier  (R, C): doping, density_of_states, band_edge_energy [J],
                          mobility, srh_lifetime, srh_trap_density, auger
Region            (R,)  : dielectric_constant (relative), radiative,
                          generation_uniform, generation_prefactor,
                          generation_emitted_light, generation_absorption
Boundary × carrier (B, C): b_band_edge_energy [J], b_density_of_states,
                          b_mobility, b_doping, b_velocity,
                          b_srh_velocity, b_srh_trap_density
Boundary          (B,)  : schottky_barrier [J], contact_voltage [V]
Node overrides          : dielectric_node (N,), doping_node, mobility_node,
                          density_of_states_node, band_edge_energy_node (N, C)
                          : additive corrections on top of the region value.

The store itself is immutable; the only mutable piece it references is the
EmbeddingParameters object (λ1, λ2, λ3, in_equilibrium), which callers change
between whole external solves and never while an assembly pass is running.

Public API (stable):
    Carrier
    EmbeddingParameters
    ParameterStore
    build_parameters(...) -> ParameterStore
    boltzmann_twin(store) -> ParameterStore
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .carriers.statistics import Distribution, occupation
from .recombination import BulkRecombinationConfig, RecombinationModel
from ..discretization.species import (
    BoundaryModel,
    IonicCarrierConfig,
    SpeciesLayout,
    allocate,
    select_interface_model,
)
from ..utils.constants import DEFAULT_CONSTANTS, PhysicalConstants
from ..utils.errors import ConfigurationError

__all__ = [
    "Carrier",
    "EmbeddingParameters",
    "ParameterStore",
    "build_parameters",
    "boltzmann_twin",
    "DEFAULT_BOUNDARY_PENALTY",
]

# tiny penalty value α; the boundary Poisson term is scaled by 1/α
DEFAULT_BOUNDARY_PENALTY = 1.0e-10

_REGION_CARRIER = (
    "doping", "density_of_states", "band_edge_energy", "mobility",
    "srh_lifetime", "srh_trap_density", "auger",
)
_REGION = (
    "dielectric_constant", "radiative", "generation_uniform",
    "generation_prefactor", "generation_emitted_light", "generation_absorption",
)
_BOUNDARY_CARRIER = (
    "b_band_edge_energy", "b_density_of_states", "b_mobility", "b_doping",
    "b_velocity", "b_srh_velocity", "b_srh_trap_density",
)
_BOUNDARY = ("schottky_barrier", "contact_voltage")
_NODE_CARRIER = (
    "doping_node", "mobility_node", "density_of_states_node", "band_edge_energy_node",
)
_NODE = ("dielectric_node",)


# ---------------------------------------------------------------------
# Small value objects
# ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Carrier:
    """
    One logical charge carrier.

    charge_number : signed integer z (−1 electrons, +1 holes, ±k ions).
    continuous    : False → one quantity per region in the discontinuous layout.
    """
    charge_number: int
    distribution: Distribution = Distribution.BOLTZMANN
    continuous: bool = True
    name: str = ""


@dataclass(slots=True)
class EmbeddingParameters:
    """
    Homotopy multipliers + equilibrium switch.

    lambda1 : scales the nonlinear Poisson charge term
    lambda2 : scales the generation term
    lambda3 : scales the interface (surface) reaction term
    """
    lambda1: float = 1.0
    lambda2: float = 0.0
    lambda3: float = 0.0
    in_equilibrium: bool = True


def _freeze(a: np.ndarray) -> np.ndarray:
    a = np.ascontiguousarray(a, dtype=np.float64)
    a.setflags(write=False)
    return a


def _table(name: str, value: Any, shape: Tuple[int, ...]) -> np.ndarray:
    """Validate one table against its expected shape (scalars broadcast)."""
    if value is None:
        return _freeze(np.zeros(shape))
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return _freeze(np.full(shape, float(arr)))
    if arr.shape != shape:
        raise ConfigurationError(f"{name}: expected shape {shape}, got {arr.shape}.")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name}: contains NaN/Inf.")
    return _freeze(arr)


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParameterStore:
    constants: PhysicalConstants
    carriers: Tuple[Carrier, ...]
    layout: SpeciesLayout
    boundary_models: Tuple[BoundaryModel, ...]
    recombination: BulkRecombinationConfig
    ionic: IonicCarrierConfig
    embedding: EmbeddingParameters
    num_nodes: int
    boundary_penalty: float
    tables: Mapping[str, np.ndarray] = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", MappingProxyType(dict(self.tables)))

    # -------------------------- sizes ---------------------------------------

    @property
    def n_carriers(self) -> int:
        return len(self.carriers)

    @property
    def n_regions(self) -> int:
        return self.layout.region_count

    @property
    def n_bregions(self) -> int:
        return len(self.boundary_models)

    @property
    def UT(self) -> float:
        return self.constants.UT

    def __getattr__(self, name: str) -> np.ndarray:
        # slots + frozen: only reached for names that are not fields
        try:
            return object.__getattribute__(self, "tables")[name]
        except KeyError:
            raise AttributeError(name) from None

    # -------------------------- lookups -------------------------------------

    def charge_number(self, carrier: int) -> int:
        return self.carriers[carrier].charge_number

    def distribution(self, carrier: int) -> Distribution:
        return self.carriers[carrier].distribution

    def band_edge(self, carrier: int, region: int, node: int) -> float:
        return float(self.tables["band_edge_energy"][region, carrier]
                     + self.tables["band_edge_energy_node"][node, carrier])

    def density(self, carrier: int, region: int, node: int) -> float:
        """Density of states at a node (region value + nodal correction)."""
        return float(self.tables["density_of_states"][region, carrier]
                     + self.tables["density_of_states_node"][node, carrier])

    def doping_at(self, carrier: int, region: int, node: int) -> float:
        return float(self.tables["doping"][region, carrier] + self.tables["doping_node"][node, carrier])

    def edge_mobility(self, carrier: int, region: int, node_k: int, node_l: int) -> float:
        mn = self.tables["mobility_node"]
        return float(self.tables["mobility"][region, carrier] + 0.5 * (mn[node_k, carrier] + mn[node_l, carrier]))

    def edge_density(self, carrier: int, region: int, node_k: int, node_l: int) -> float:
        dn = self.tables["density_of_states_node"]
        return float(self.tables["density_of_states"][region, carrier] + 0.5 * (dn[node_k, carrier] + dn[node_l, carrier]))

    def edge_dielectric(self, region: int, node_k: int, node_l: int) -> float:
        en = self.tables["dielectric_node"]
        return float(self.tables["dielectric_constant"][region] + 0.5 * (en[node_k] + en[node_l]))

    def reduced_potential(self, carrier: int, region: int, node: int, phi: float, psi: float) -> float:
        """η = z/U_T ((φ − ψ) + E/q) for an interior node."""
        z = self.carriers[carrier].charge_number
        E = self.band_edge(carrier, region, node)
        return z / self.UT * ((phi - psi) + E / self.constants.q)

    def boundary_reduced_potential(self, carrier: int, bregion: int, node: int, psi: float) -> float:
        """η_b = z/U_T ((V_contact − ψ) + E_b/q), quasi-Fermi level pinned to the contact."""
        z = self.carriers[carrier].charge_number
        E = float(self.tables["b_band_edge_energy"][bregion, carrier]
                  + self.tables["band_edge_energy_node"][node, carrier])
        V = float(self.tables["contact_voltage"][bregion])
        return z / self.UT * ((V - psi) + E / self.constants.q)

    def carrier_density(self, carrier: int, region: int, node: int, phi: float, psi: float) -> float:
        """n_c = N_c F_c(η_c)."""
        eta = self.reduced_potential(carrier, region, node, phi, psi)
        return self.density(carrier, region, node) * occupation(self.distribution(carrier), eta)

    # -------------------------- derived stores ------------------------------

    def with_tables(self, **updates: Any) -> "ParameterStore":
        """New store with some tables replaced (validated); embedding object shared."""
        tables = dict(self.tables)
        shapes = _shapes(self.n_carriers, self.n_regions, self.n_bregions, self.num_nodes)
        for name, value in updates.items():
            if name not in shapes:
                raise ConfigurationError(f"unknown parameter table '{name}'.")
            tables[name] = _table(name, value, shapes[name])
        return replace(self, tables=tables)

    def with_contact_voltage(self, bregion: int, voltage: float) -> "ParameterStore":
        cv = np.array(self.tables["contact_voltage"])
        cv[bregion] = float(voltage)
        return self.with_tables(contact_voltage=cv)


def _shapes(C: int, R: int, B: int, N: int) -> Dict[str, Tuple[int, ...]]:
    shapes: Dict[str, Tuple[int, ...]] = {}
    shapes.update({k: (R, C) for k in _REGION_CARRIER})
    shapes.update({k: (R,) for k in _REGION})
    shapes.update({k: (B, C) for k in _BOUNDARY_CARRIER})
    shapes.update({k: (B,) for k in _BOUNDARY})
    shapes.update({k: (N, C) for k in _NODE_CARRIER})
    shapes.update({k: (N,) for k in _NODE})
    return shapes


def build_parameters(
    *,
    carriers: Sequence[Carrier],
    num_regions: int,
    boundary_models: Sequence["BoundaryModel | str"],
    num_nodes: int,
    recombination: Optional[BulkRecombinationConfig] = None,
    ionic: Optional[IonicCarrierConfig] = None,
    constants: PhysicalConstants = DEFAULT_CONSTANTS,
    embedding: Optional[EmbeddingParameters] = None,
    boundary_penalty: float = DEFAULT_BOUNDARY_PENALTY,
    **tables: Any,
) -> ParameterStore:
    """
    Validate all inputs and return a complete, immutable ParameterStore.

    Missing tables default to zeros, except dielectric_constant (1.0).
    Raises ConfigurationError on unknown table names, shape mismatches and
    unsupported carrier / interface combinations.
    """
    carriers = tuple(carriers)
    C = len(carriers)
    R = int(num_regions)
    models = tuple(BoundaryModel.parse(m) for m in boundary_models)
    B = len(models)
    N = int(num_nodes)
    if N < 1:
        raise ConfigurationError(f"num_nodes must be >= 1 (got {N}).")
    if B < 1:
        raise ConfigurationError("at least one boundary region is required.")
    if not boundary_penalty > 0.0:
        raise ConfigurationError(f"boundary_penalty must be > 0 (got {boundary_penalty}).")

    if recombination is None:
        recombination = BulkRecombinationConfig(
            model=RecombinationModel.FULL if C >= 2 else RecombinationModel.NONE
        )
    ionic = ionic if ionic is not None else IonicCarrierConfig()

    layout = allocate(
        C,
        select_interface_model(models),
        ionic=ionic,
        continuity=[c.continuous for c in carriers],
        region_count=R,
        recombination=recombination,
    )

    shapes = _shapes(C, R, B, N)
    unknown = sorted(set(tables) - set(shapes))
    if unknown:
        raise ConfigurationError(f"unknown parameter tables: {unknown}.")
    if "dielectric_constant" not in tables:
        tables["dielectric_constant"] = 1.0
    frozen = {name: _table(name, tables.get(name), shape) for name, shape in shapes.items()}

    return ParameterStore(
        constants=constants,
        carriers=carriers,
        layout=layout,
        boundary_models=models,
        recombination=recombination,
        ionic=ionic,
        embedding=embedding if embedding is not None else EmbeddingParameters(),
        num_nodes=N,
        boundary_penalty=float(boundary_penalty),
        tables=frozen,
    )


def boltzmann_twin(store: ParameterStore) -> ParameterStore:
    """
    Same device with Boltzmann statistics for every carrier and grounded contacts.
    Used to seed equilibrium solves for degenerate statistics.
    """
    carriers = tuple(replace(c, distribution=Distribution.BOLTZMANN) for c in store.carriers)
    twin = replace(store, carriers=carriers)
    return twin.with_tables(contact_voltage=np.zeros(store.n_bregions))
