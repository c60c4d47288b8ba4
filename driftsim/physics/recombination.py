# driftsim/physics/recombination.py
"""
Bulk recombination kernels for the bipolar (electron/hole) reaction term.

The reaction assembler writes, for a primary carrier of charge number z,

    f = q z K(n, p) n p (1 - exp((φ_n - φ_p)/U_T)) - q z G,

with the recombination prefactor K built from the selected model terms:

    radiative : K_rad  = r_rad                                   [m^3/s]
    Auger     : K_aug  = C_n n + C_p p                           [m^6/s · 1/m^3]
    SRH       : K_srh  = 1 / (τ_p (n + n_t) + τ_n (p + p_t))     [m^3/s]

For Boltzmann statistics n p (1 - e^{(φ_n-φ_p)/U_T}) = n p - n_i^2, so the
familiar U = K (n p - n_i^2) forms are recovered.

Public API (stable):
    RecombinationModel
    BulkRecombinationConfig
    radiative_prefactor(r_rad)
    auger_prefactor(n, p, C_n, C_p)
    srh_prefactor(n, p, tau_n, tau_p, n_trap, p_trap)
    recombination_prefactor(model, n, p, *, r_rad, C_n, C_p, tau_n, tau_p, n_trap, p_trap)
    bipolar_rate(prefactor, n, p, phi_n, phi_p, UT)
    surface_srh_prefactor(n, p, s_n, s_p, n_trap, p_trap)
    trap_density(E_c_J, E_v_J, N_c, N_v, E_t_J, charge_number, kT)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet

import numpy as np

from ..utils.errors import ConfigurationError

__all__ = [
    "RecombinationModel",
    "BulkRecombinationConfig",
    "radiative_prefactor",
    "auger_prefactor",
    "srh_prefactor",
    "recombination_prefactor",
    "bipolar_rate",
    "surface_srh_prefactor",
    "trap_density",
]


class RecombinationModel(Enum):
    NONE = "none"
    SRH = "srh"
    RADIATIVE = "radiative"
    AUGER = "auger"
    FULL = "full"

    @classmethod
    def parse(cls, name: "str | RecombinationModel") -> "RecombinationModel":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown recombination model '{name}' (expected one of: {valid})") from None

    @property
    def terms(self) -> FrozenSet[str]:
        return _MODEL_TERMS[self]

    @property
    def is_bipolar(self) -> bool:
        return self is not RecombinationModel.NONE


_MODEL_TERMS = {
    RecombinationModel.NONE: frozenset(),
    RecombinationModel.SRH: frozenset({"srh"}),
    RecombinationModel.RADIATIVE: frozenset({"radiative"}),
    RecombinationModel.AUGER: frozenset({"auger"}),
    RecombinationModel.FULL: frozenset({"radiative", "auger", "srh"}),
}


@dataclass(frozen=True, slots=True)
class BulkRecombinationConfig:
    """
    Which model is active and which two carriers play electron / hole.

    electron, hole : 0-based carrier ids ("electron-like" and "hole-like").
    """
    model: RecombinationModel = RecombinationModel.FULL
    electron: int = 0
    hole: int = 1

    @property
    def primary(self) -> tuple[int, int]:
        return (self.electron, self.hole)


# ---------------------------------------------------------------------
# Prefactors
# ---------------------------------------------------------------------


def radiative_prefactor(r_rad: float) -> float:
    """K_rad = r_rad."""
    return float(r_rad)


def auger_prefactor(n: float, p: float, C_n: float, C_p: float) -> float:
    """K_aug = C_n n + C_p p."""
    return float(C_n * n + C_p * p)


def srh_prefactor(
    n: float,
    p: float,
    tau_n: float,
    tau_p: float,
    n_trap: float,
    p_trap: float,
) -> float:
    """
    K_srh = 1 / (τ_p (n + n_t) + τ_n (p + p_t)).

    A vanishing denominator (no carriers, zero trap densities) gives K = 0,
    i.e. no recombination path.
    """
    D = tau_p * (n + n_trap) + tau_n * (p + p_trap)
    if D == 0.0:
        return 0.0
    return float(1.0 / D)


def recombination_prefactor(
    model: RecombinationModel,
    n: float,
    p: float,
    *,
    r_rad: float,
    C_n: float,
    C_p: float,
    tau_n: float,
    tau_p: float,
    n_trap: float,
    p_trap: float,
) -> float:
    """Sum of the prefactors selected by 'model'."""
    terms = model.terms
    K = 0.0
    if "radiative" in terms:
        K += radiative_prefactor(r_rad)
    if "auger" in terms:
        K += auger_prefactor(n, p, C_n, C_p)
    if "srh" in terms:
        K += srh_prefactor(n, p, tau_n, tau_p, n_trap, p_trap)
    return K


def bipolar_rate(
    prefactor: float,
    n: float,
    p: float,
    phi_n: float,
    phi_p: float,
    UT: float,
) -> float:
    """R = K n p (1 - exp((φ_n - φ_p)/U_T)); zero when the quasi-Fermi levels coincide."""
    return float(prefactor * n * p * (1.0 - np.exp((phi_n - phi_p) / UT)))


def surface_srh_prefactor(
    n: float,
    p: float,
    s_n: float,
    s_p: float,
    n_trap: float,
    p_trap: float,
) -> float:
    """
    Interface SRH prefactor with surface recombination velocities [m/s]:

        K_s = 1 / ( (n + n_t)/s_p + (p + p_t)/s_n ).

    A non-positive velocity switches surface recombination off.
    """
    if s_n <= 0.0 or s_p <= 0.0:
        return 0.0
    D = (n + n_trap) / s_p + (p + p_trap) / s_n
    if D == 0.0:
        return 0.0
    return float(1.0 / D)


def trap_density(
    E_c_J: float,
    E_v_J: float,
    N_c: float,
    N_v: float,
    E_t_J: float,
    charge_number: int,
    kT: float,
) -> float:
    """
    SRH auxiliary density for a trap level E_t (Boltzmann):

        E_i = (E_c + E_v)/2 + (kT/2) ln(N_v/N_c)
        n_i = sqrt(N_c N_v) exp(-(E_c - E_v) / (2 kT))
        n_t = n_i exp(z (E_i - E_t) / kT)

    With z = -1 this is the electron trap density n_1, with z = +1 the hole
    trap density p_1.
    """
    E_i = 0.5 * (E_c_J + E_v_J + kT * np.log(N_v / N_c))
    n_i = np.sqrt(N_c * N_v) * np.exp(-(E_c_J - E_v_J) / (2.0 * kT))
    return float(n_i * np.exp(charge_number * (E_i - E_t_J) / kT))
