# driftsim/discretization/assemble.py
# Physics bundle handed to the external finite-volume system: the four local
# callbacks bound to one parameter store and one flux scheme.
#
# Callback signatures (all fill and return f, length n_species):
#   flux(f, uk, ul, edge)      edge k → l
#   reaction(f, u, node)       interior node
#   storage(f, u, node)        interior node (time derivative term)
#   breaction(f, u, bnode)     boundary node

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from .fluxes import FluxScheme, check_scheme, flux
from .species import enable_layout
from ..boundaries.electrical import breaction
from ..physics.reaction import reaction, storage
from ..solver.nonlinear import NonlinearSystem
from ..utils import diagnostics as diag
from ..utils import logger
from ..utils.errors import ConfigurationError

__all__ = ["Physics", "build_physics", "attach"]


@dataclass(frozen=True, slots=True)
class Physics:
    store: object
    scheme: FluxScheme
    flux: Callable[..., np.ndarray]
    reaction: Callable[..., np.ndarray]
    storage: Callable[..., np.ndarray]
    breaction: Callable[..., np.ndarray]

    @property
    def n_species(self) -> int:
        return self.store.layout.n_species

    def new_residual(self) -> np.ndarray:
        return np.zeros(self.n_species, dtype=np.float64)


def _bind(fn, store, **kw):
    def bound(*args):
        return fn(*args, store, **kw)
    bound.__name__ = getattr(fn, "__name__", "callback")
    return bound


def build_physics(store, scheme: "FluxScheme | str" = FluxScheme.SCHARFETTER_GUMMEL, *, debug: bool = False) -> Physics:
    """
    Validate scheme/statistics compatibility and bind the callbacks to 'store'.

    Raises ConfigurationError when the scheme cannot handle one of the carrier
    distributions (implicit scheme with Fermi–Dirac statistics).
    """
    scheme = FluxScheme.parse(scheme)
    check_scheme(scheme, store)
    if debug:
        logger.info(f"physics: scheme={scheme.value}, carriers={store.n_carriers}, regions={store.n_regions}")
        diag.log_layout_summary(store.layout)
    return Physics(
        store=store,
        scheme=scheme,
        flux=_bind(flux, store, scheme=scheme),
        reaction=_bind(reaction, store),
        storage=_bind(storage, store),
        breaction=_bind(breaction, store),
    )


def attach(system, physics: Physics) -> None:
    """Enable the species of 'physics' on an external system."""
    if not isinstance(system, NonlinearSystem):
        raise ConfigurationError(f"{type(system).__name__} does not provide the nonlinear system interface.")
    enable_layout(system, physics.store.layout)
