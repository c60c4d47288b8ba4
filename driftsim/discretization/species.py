# driftsim/discretization/species.py
"""
Carrier → local unknown layout ("species layout").

Decides, from the boundary models declared on the device, whether every
carrier is one global unknown (plain layout) or may be split into region-local
quantities that jump across internal interfaces (discontinuous layout).

Layout conventions
------------------
- Carrier ids and region ids are 0-based.
- The electrostatic potential ψ is always the *last* species index.
- Plain layout:          carrier c → index c, ψ → C.
- Discontinuous layout:  a continuous carrier owns one index over all of its
                         regions; a discontinuous carrier owns one index per
                         region it lives in; ψ is one continuous quantity.
- Ionic carriers are enabled only on their configured region subset.

The indexing itself is a tagged variant:

    IndexingScheme = Direct(indices) | PerRegion(handles)

and every consumer dispatches on the tag (SpeciesLayout.index does it once).

Public API (stable):
    BoundaryModel, InterfaceModel, IonicCarrierConfig
    Direct, PerRegion, QuantityHandle, IndexingScheme
    SpeciesLayout
    select_interface_model(boundary_models) -> InterfaceModel
    allocate(carrier_count, interface_model, ionic, continuity, region_count,
             recombination=None) -> SpeciesLayout
    enable_layout(system, layout)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ..physics.recombination import BulkRecombinationConfig
from ..utils import logger
from ..utils.errors import ConfigurationError

__all__ = [
    "BoundaryModel",
    "InterfaceModel",
    "IonicCarrierConfig",
    "QuantityHandle",
    "Direct",
    "PerRegion",
    "IndexingScheme",
    "SpeciesLayout",
    "select_interface_model",
    "allocate",
    "enable_layout",
]

# number of primary (electron-like / hole-like) carriers the reaction kernels support
N_PRIMARY = 2


# ---------------------------------------------------------------------
# Model tags
# ---------------------------------------------------------------------


class BoundaryModel(Enum):
    """Model declared per boundary region."""
    OHMIC_CONTACT = "ohmic_contact"
    SCHOTTKY_CONTACT = "schottky_contact"
    INTERFACE_NONE = "interface_none"
    INTERFACE_RECOMBINATION = "interface_recombination"
    INTERFACE_DISCONTINUOUS_QF = "interface_discontinuous_qf"
    INTERFACE_IONIC_CHARGE = "interface_ionic_charge"

    @classmethod
    def parse(cls, name: "str | BoundaryModel") -> "BoundaryModel":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown boundary model '{name}' (expected one of: {valid})") from None

    @property
    def is_contact(self) -> bool:
        return self in (BoundaryModel.OHMIC_CONTACT, BoundaryModel.SCHOTTKY_CONTACT)


class InterfaceModel(Enum):
    """Layout-relevant interface model of the whole device."""
    NONE = "none"
    DISCONTINUOUS_QF = "discontinuous_qf"
    IONIC_CHARGE = "ionic_charge"


@dataclass(frozen=True, slots=True)
class IonicCarrierConfig:
    """Carriers that are mobile only inside 'regions' (e.g. ion vacancies in one layer)."""
    carriers: FrozenSet[int] = frozenset()
    regions: FrozenSet[int] = frozenset()

    @classmethod
    def build(cls, carriers: Iterable[int] = (), regions: Iterable[int] = ()) -> "IonicCarrierConfig":
        return cls(carriers=frozenset(int(c) for c in carriers), regions=frozenset(int(r) for r in regions))


# ---------------------------------------------------------------------
# Tagged indexing variant
# ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QuantityHandle:
    """
    One carrier represented as region-local quantities.

    index_by_region : region → species index. A continuous quantity maps all
                      of its regions to the same index.
    """
    carrier: int
    continuous: bool
    index_by_region: Mapping[int, int]

    def __post_init__(self) -> None:
        object.__setattr__(self, "index_by_region", MappingProxyType(dict(self.index_by_region)))

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(sorted(set(self.index_by_region.values())))


@dataclass(frozen=True, slots=True)
class Direct:
    """Plain layout: carrier c uses indices[c] everywhere."""
    indices: Tuple[int, ...]


@dataclass(frozen=True, slots=True)
class PerRegion:
    """Discontinuous layout: one handle per carrier."""
    handles: Tuple[QuantityHandle, ...]


IndexingScheme = Union[Direct, PerRegion]


@dataclass(frozen=True, slots=True)
class SpeciesLayout:
    """
    Immutable result of allocate().

    species_regions[i] : regions where species index i is enabled.
    carrier_regions[c] : regions where carrier c is active.
    """
    scheme: IndexingScheme
    interface_model: InterfaceModel
    potential_index: int
    species_regions: Tuple[FrozenSet[int], ...]
    carrier_regions: Tuple[FrozenSet[int], ...]
    region_count: int
    _owner: Tuple[Optional[int], ...] = field(repr=False, default=())

    @property
    def n_species(self) -> int:
        return self.potential_index + 1

    @property
    def n_carriers(self) -> int:
        return len(self.carrier_regions)

    def is_active(self, carrier: int, region: int) -> bool:
        return region in self.carrier_regions[carrier]

    def carriers_in(self, region: int) -> Tuple[int, ...]:
        """Carriers active in 'region', in carrier order."""
        return tuple(c for c, regs in enumerate(self.carrier_regions) if region in regs)

    def index(self, carrier: int, region: int) -> Optional[int]:
        """Species index of 'carrier' inside 'region'; None where the carrier is inactive."""
        if not self.is_active(carrier, region):
            return None
        scheme = self.scheme
        if isinstance(scheme, Direct):
            return scheme.indices[carrier]
        if isinstance(scheme, PerRegion):
            return scheme.handles[carrier].index_by_region[region]
        raise TypeError(f"Unknown indexing scheme {type(scheme).__name__}")

    def indices_of(self, carrier: int) -> Tuple[int, ...]:
        """All species indices owned by 'carrier'."""
        scheme = self.scheme
        if isinstance(scheme, Direct):
            return (scheme.indices[carrier],)
        if isinstance(scheme, PerRegion):
            return scheme.handles[carrier].indices
        raise TypeError(f"Unknown indexing scheme {type(scheme).__name__}")

    def carrier_of(self, index: int) -> Optional[int]:
        """Owning carrier of a species index (None for ψ)."""
        return self._owner[index]


# ---------------------------------------------------------------------
# Decision + allocation
# ---------------------------------------------------------------------


def select_interface_model(boundary_models: Sequence["BoundaryModel | str"]) -> InterfaceModel:
    """
    Pure function of the boundary-model table.

    Discontinuous quasi-Fermi interfaces win; ionic interface charges are
    accepted but currently mapped to the plain layout without modelling the
    interface charge.
    """
    models = [BoundaryModel.parse(m) for m in boundary_models]
    if BoundaryModel.INTERFACE_DISCONTINUOUS_QF in models:
        return InterfaceModel.DISCONTINUOUS_QF
    if BoundaryModel.INTERFACE_IONIC_CHARGE in models:
        logger.warn(
            "ionic interface charge boundary model is not supported yet; "
            "falling back to the plain species layout"
        )
        return InterfaceModel.IONIC_CHARGE
    return InterfaceModel.NONE


def _validate(
    carrier_count: int,
    ionic: IonicCarrierConfig,
    continuity: Sequence[bool],
    region_count: int,
    recombination: Optional[BulkRecombinationConfig],
) -> None:
    if carrier_count < 1:
        raise ConfigurationError(f"carrier_count must be >= 1 (got {carrier_count}).")
    if region_count < 1:
        raise ConfigurationError(f"region_count must be >= 1 (got {region_count}).")
    if len(continuity) != carrier_count:
        raise ConfigurationError(
            f"continuity flags: expected {carrier_count} entries, got {len(continuity)}."
        )
    bad_c = sorted(c for c in ionic.carriers if not 0 <= c < carrier_count)
    if bad_c:
        raise ConfigurationError(f"ionic carrier ids out of range 0..{carrier_count - 1}: {bad_c}.")
    bad_r = sorted(r for r in ionic.regions if not 0 <= r < region_count)
    if bad_r:
        raise ConfigurationError(f"ionic regions out of range 0..{region_count - 1}: {bad_r}.")
    if ionic.carriers and not ionic.regions:
        raise ConfigurationError("ionic carriers declared without any region to live in.")

    n_mobile = carrier_count - len(ionic.carriers)
    if n_mobile > N_PRIMARY:
        raise ConfigurationError(
            f"{n_mobile} non-ionic carriers requested; the reaction kernels support at most "
            f"{N_PRIMARY} primary carriers plus one ionic carrier group."
        )

    if recombination is not None and recombination.model.is_bipolar:
        if carrier_count < N_PRIMARY:
            raise ConfigurationError(
                f"bipolar recombination '{recombination.model.value}' needs two carriers "
                f"(got {carrier_count})."
            )
        e, h = recombination.primary
        if e == h:
            raise ConfigurationError("electron and hole carriers of the recombination model coincide.")
        for c in (e, h):
            if not 0 <= c < carrier_count:
                raise ConfigurationError(f"recombination carrier {c} out of range 0..{carrier_count - 1}.")
            if c in ionic.carriers:
                raise ConfigurationError(f"recombination carrier {c} is declared ionic.")


def allocate(
    carrier_count: int,
    interface_model: InterfaceModel,
    ionic: Optional[IonicCarrierConfig] = None,
    continuity: Optional[Sequence[bool]] = None,
    region_count: int = 1,
    recombination: Optional[BulkRecombinationConfig] = None,
) -> SpeciesLayout:
    """
    Build the species layout for one device configuration.

    Raises ConfigurationError on unsupported carrier/region combinations.
    """
    ionic = ionic if ionic is not None else IonicCarrierConfig()
    continuity = list(continuity) if continuity is not None else [True] * carrier_count
    _validate(carrier_count, ionic, continuity, region_count, recombination)

    all_regions = frozenset(range(region_count))
    carrier_regions = tuple(
        ionic.regions if c in ionic.carriers else all_regions for c in range(carrier_count)
    )

    species_regions: list[FrozenSet[int]] = []
    owner: list[Optional[int]] = []

    if interface_model is InterfaceModel.DISCONTINUOUS_QF:
        handles = []
        for c in range(carrier_count):
            regions = sorted(carrier_regions[c])
            if continuity[c]:
                idx = len(species_regions)
                species_regions.append(frozenset(regions))
                owner.append(c)
                mapping: Dict[int, int] = {r: idx for r in regions}
            else:
                mapping = {}
                for r in regions:
                    mapping[r] = len(species_regions)
                    species_regions.append(frozenset({r}))
                    owner.append(c)
            handles.append(QuantityHandle(carrier=c, continuous=bool(continuity[c]), index_by_region=mapping))
        scheme: IndexingScheme = PerRegion(handles=tuple(handles))
    else:
        # NONE and the IONIC_CHARGE fallback share the plain layout
        for c in range(carrier_count):
            species_regions.append(carrier_regions[c])
            owner.append(c)
        scheme = Direct(indices=tuple(range(carrier_count)))

    potential_index = len(species_regions)
    species_regions.append(all_regions)
    owner.append(None)

    return SpeciesLayout(
        scheme=scheme,
        interface_model=interface_model,
        potential_index=potential_index,
        species_regions=tuple(species_regions),
        carrier_regions=carrier_regions,
        region_count=region_count,
        _owner=tuple(owner),
    )


def enable_layout(system, layout: SpeciesLayout) -> None:
    """Forward the layout to the external solver (enable_species per index)."""
    for idx, regions in enumerate(layout.species_regions):
        system.enable_species(idx, sorted(regions))
