# driftsim/boundaries/electrical.py
"""
Boundary-node reactions and contact boundary data.

Contacts (ohmic / Schottky boundary regions)
--------------------------------------------
The electrostatic potential is pinned by a penalty reaction: with the
quasi-Fermi level of every carrier fixed to the contact voltage,

    η_b  = z/U_T ((V_contact - ψ) + E_b/q)
    f[ψ] = -(1/α) q λ1 Σ_c z_c (N_b,c F_c(η_b,c) - C_b,c)

drives ψ to the local space-charge-free value. α (store.boundary_penalty) is a
tiny number, 1e-10 by default. Carrier rows are left at 0; their contact
conditions are written into the external system's boundary tables by
set_ohmic_contact / set_schottky_contact.

Interfaces with surface recombination
-------------------------------------
    f[c] = λ3 q z_c K_s n p (1 - e^{(φ_n-φ_p)/U_T}),
    K_s  = 1 / ((n + n_t)/s_p + (p + p_t)/s_n)

(surface SRH velocities b_srh_velocity, trap densities b_srh_trap_density).
All other boundary models contribute nothing.

Public API (stable):
    breaction(f, u, bnode, store) -> f
    set_ohmic_contact(system, store, bregion)
    set_schottky_contact(system, store, bregion)
"""
from __future__ import annotations

import numpy as np

from ..discretization.species import BoundaryModel
from ..geometry.grid import BNodeContext
from ..physics.carriers.statistics import occupation
from ..physics.recombination import bipolar_rate, surface_srh_prefactor
from ..solver.nonlinear import DIRICHLET
from ..utils.errors import ConfigurationError

__all__ = ["breaction", "set_ohmic_contact", "set_schottky_contact"]


def _contact_charge(u: np.ndarray, bnode: BNodeContext, store) -> float:
    """Σ_c z_c (N_b F(η_b) - C_b) for carriers present next to the contact."""
    layout = store.layout
    ipsi = layout.potential_index
    breg = bnode.region
    total = 0.0
    for icc in layout.carriers_in(bnode.cell_region):
        z = store.charge_number(icc)
        eta = store.boundary_reduced_potential(icc, breg, bnode.index, u[ipsi])
        n = store.b_density_of_states[breg, icc] * occupation(store.distribution(icc), eta)
        total += z * (n - store.b_doping[breg, icc])
    return total


def _surface_recombination(f: np.ndarray, u: np.ndarray, bnode: BNodeContext, store) -> np.ndarray:
    layout = store.layout
    ipsi = layout.potential_index
    ireg = bnode.cell_region
    breg = bnode.region
    ie, ih = store.recombination.primary
    i_n = layout.index(ie, ireg)
    i_p = layout.index(ih, ireg)
    if i_n is None or i_p is None:
        return f

    n = store.carrier_density(ie, ireg, bnode.index, u[i_n], u[ipsi])
    p = store.carrier_density(ih, ireg, bnode.index, u[i_p], u[ipsi])
    K = surface_srh_prefactor(
        n, p,
        s_n=store.b_srh_velocity[breg, ie],
        s_p=store.b_srh_velocity[breg, ih],
        n_trap=store.b_srh_trap_density[breg, ie],
        p_trap=store.b_srh_trap_density[breg, ih],
    )
    R = bipolar_rate(K, n, p, u[i_n], u[i_p], store.UT)
    scale = store.embedding.lambda3 * store.constants.q
    f[i_n] = scale * store.charge_number(ie) * R
    f[i_p] = scale * store.charge_number(ih) * R
    return f


def breaction(f: np.ndarray, u: np.ndarray, bnode: BNodeContext, store) -> np.ndarray:
    model = store.boundary_models[bnode.region]
    layout = store.layout

    if model.is_contact:
        ipsi = layout.potential_index
        for icc in layout.carriers_in(bnode.cell_region):
            f[layout.index(icc, bnode.cell_region)] = 0.0
        alpha = store.boundary_penalty
        f[ipsi] = -1.0 / alpha * store.constants.q * store.embedding.lambda1 * _contact_charge(u, bnode, store)
        return f

    if model is BoundaryModel.INTERFACE_RECOMBINATION and store.recombination.model.is_bipolar:
        # no surface term in equilibrium
        if store.embedding.in_equilibrium:
            return f
        return _surface_recombination(f, u, bnode, store)

    return f


def _check_bregion(store, bregion: int, expected: BoundaryModel) -> None:
    if not 0 <= bregion < store.n_bregions:
        raise ConfigurationError(f"boundary region {bregion} out of range 0..{store.n_bregions - 1}.")
    model = store.boundary_models[bregion]
    if model is not expected:
        raise ConfigurationError(
            f"boundary region {bregion} is declared '{model.value}', not '{expected.value}'."
        )


def set_ohmic_contact(system, store, bregion: int) -> None:
    """Dirichlet: every carrier quasi-Fermi potential equals the contact voltage."""
    _check_bregion(store, bregion, BoundaryModel.OHMIC_CONTACT)
    V = float(store.contact_voltage[bregion])
    for icc in range(store.n_carriers):
        for i in store.layout.indices_of(icc):
            system.boundary_values[i, bregion] = V
            system.boundary_factors[i, bregion] = DIRICHLET


def set_schottky_contact(system, store, bregion: int) -> None:
    """
    Robin: factor q v_c, value V_contact - Φ_B/q, with the surface velocity
    v_c = b_velocity[bregion, c] and the barrier Φ_B = schottky_barrier[bregion].
    """
    _check_bregion(store, bregion, BoundaryModel.SCHOTTKY_CONTACT)
    q = store.constants.q
    value = float(store.contact_voltage[bregion] - store.schottky_barrier[bregion] / q)
    for icc in range(store.n_carriers):
        factor = q * float(store.b_velocity[bregion, icc])
        for i in store.layout.indices_of(icc):
            system.boundary_values[i, bregion] = value
            system.boundary_factors[i, bregion] = factor
