# driftsim/utils/constants.py
from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Q", "K_B", "EPS0", "T_REF", "PhysicalConstants", "DEFAULT_CONSTANTS"]

# Fundamental constants (SI)
Q    = 1.602176634e-19       # elementary charge [C]
K_B  = 1.380649e-23          # Boltzmann constant [J/K]
EPS0 = 8.8541878128e-12      # vacuum permittivity [F/m]
T_REF = 300.0                # reference lattice temperature [K]


@dataclass(frozen=True, slots=True)
class PhysicalConstants:
    """
    Constants handed to every assembly component at construction.

    Kept as a value object so a store can be rebuilt at another temperature
    without touching module globals.
    """
    q: float = Q
    k_B: float = K_B
    eps0: float = EPS0
    temperature: float = T_REF

    def __post_init__(self) -> None:
        if not self.temperature > 0.0:
            raise ValueError(f"temperature must be > 0 K (got {self.temperature}).")

    @property
    def UT(self) -> float:
        """Thermal voltage k_B T / q [V]."""
        return self.k_B * self.temperature / self.q

    @property
    def kT(self) -> float:
        return self.k_B * self.temperature


DEFAULT_CONSTANTS = PhysicalConstants()
