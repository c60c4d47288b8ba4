# driftsim/physics/reaction.py
"""
Node-local right-hand sides: Poisson charge density, bipolar recombination /
generation, and the storage term.

Reaction (node in region r)
---------------------------
    f[ψ] = -q λ1 Σ_c z_c (N_c F_c(η_c) - C_c)          carriers active in r
    equilibrium:      f[c] = u[c] - 0                  primary carriers
    non-equilibrium:  f[c] = q z_c K n p (1 - e^{(φ_n-φ_p)/U_T}) - q z_c G
    G = λ2 (G_uniform + G_0 G_light α e^{-α x})
    model "none": K = 0, the pin and the generation term still apply

Only the two primary (electron-like / hole-like) carriers get a recombination
row; ionic carriers contribute to the Poisson charge only.

Storage
-------
    f[c] = z_c N_c F_c(η_c),   f[ψ] = 0

Public API (stable):
    charge_sum(u, node, store) -> float
    generation(node, store) -> float
    reaction(f, u, node, store) -> f
    storage(f, u, node, store) -> f
    store_trap_density(store, carrier, region, E_t_J) -> float
"""
from __future__ import annotations

import numpy as np

from .carriers.statistics import occupation
from .recombination import bipolar_rate, recombination_prefactor, trap_density
from ..geometry.grid import NodeContext

__all__ = ["charge_sum", "generation", "reaction", "storage", "store_trap_density"]


def charge_sum(u: np.ndarray, node: NodeContext, store) -> float:
    """Σ_c z_c (N_c F_c(η_c) - C_c) over the carriers active in the node's region."""
    layout = store.layout
    ipsi = layout.potential_index
    ireg = node.region
    total = 0.0
    for icc in layout.carriers_in(ireg):
        i = layout.index(icc, ireg)
        z = store.charge_number(icc)
        eta = store.reduced_potential(icc, ireg, node.index, u[i], u[ipsi])
        n = store.density(icc, ireg, node.index) * occupation(store.distribution(icc), eta)
        total += z * (n - store.doping_at(icc, ireg, node.index))
    return total


def generation(node: NodeContext, store) -> float:
    """Uniform + Beer–Lambert generation, scaled by λ2."""
    ireg = node.region
    alpha = store.generation_absorption[ireg]
    G = store.generation_uniform[ireg]
    G += store.generation_prefactor[ireg] * store.generation_emitted_light[ireg] * alpha * np.exp(-alpha * node.coord)
    return float(store.embedding.lambda2 * G)


def reaction(f: np.ndarray, u: np.ndarray, node: NodeContext, store) -> np.ndarray:
    layout = store.layout
    ipsi = layout.potential_index
    ireg = node.region
    q = store.constants.q
    emb = store.embedding

    f[ipsi] = -q * emb.lambda1 * charge_sum(u, node, store)

    rec = store.recombination
    ie, ih = rec.primary
    if max(ie, ih) >= store.n_carriers or ie == ih or {ie, ih} & store.ionic.carriers:
        return f
    i_n = layout.index(ie, ireg)
    i_p = layout.index(ih, ireg)
    if i_n is None or i_p is None:
        return f

    if emb.in_equilibrium:
        f[i_n] = u[i_n] - 0.0
        f[i_p] = u[i_p] - 0.0
        return f

    n = store.carrier_density(ie, ireg, node.index, u[i_n], u[ipsi])
    p = store.carrier_density(ih, ireg, node.index, u[i_p], u[ipsi])

    # model "none" gives K = 0: generation only
    K = recombination_prefactor(
        rec.model, n, p,
        r_rad=store.radiative[ireg],
        C_n=store.auger[ireg, ie],
        C_p=store.auger[ireg, ih],
        tau_n=store.srh_lifetime[ireg, ie],
        tau_p=store.srh_lifetime[ireg, ih],
        n_trap=store.srh_trap_density[ireg, ie],
        p_trap=store.srh_trap_density[ireg, ih],
    )
    R = bipolar_rate(K, n, p, u[i_n], u[i_p], store.UT)
    G = generation(node, store)

    for icc, i in ((ie, i_n), (ih, i_p)):
        z = store.charge_number(icc)
        f[i] = q * z * R - q * z * G
    return f


def storage(f: np.ndarray, u: np.ndarray, node: NodeContext, store) -> np.ndarray:
    layout = store.layout
    ipsi = layout.potential_index
    ireg = node.region
    for icc in layout.carriers_in(ireg):
        i = layout.index(icc, ireg)
        z = store.charge_number(icc)
        f[i] = z * store.carrier_density(icc, ireg, node.index, u[i], u[ipsi])
    f[ipsi] = 0.0
    return f


def store_trap_density(store, carrier: int, region: int, E_t_J: float) -> float:
    """
    SRH trap density of 'carrier' for a trap level E_t in 'region', using the
    primary carriers' band edges and densities of states (Boltzmann only).
    """
    ie, ih = store.recombination.primary
    return trap_density(
        store.band_edge_energy[region, ie],
        store.band_edge_energy[region, ih],
        store.density_of_states[region, ie],
        store.density_of_states[region, ih],
        E_t_J,
        store.charge_number(carrier),
        store.constants.kT,
    )
