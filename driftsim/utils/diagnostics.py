"""
driftsim/utils/diagnostics.py

Targeted, low-noise diagnostics for layout building and continuation runs.
Import and call these from solvers/workflows when debug=True.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


def _fmt_range(x: np.ndarray, name: str) -> str:
    if x.size == 0:
        return f"{name}: (empty)"
    return f"{name}∈[{np.min(x):+.3e},{np.max(x):+.3e}]"


def log_state_summary(
    *,
    solution: np.ndarray,
    names: Optional[Sequence[str]] = None,
    prefix: str = "[diag]",
) -> None:
    """Print compact ranges for every species row of a (n_species, n_nodes) solution."""
    sol = np.atleast_2d(np.asarray(solution, dtype=np.float64))
    labels = list(names) if names is not None else [f"u{i}" for i in range(sol.shape[0])]
    msg = [prefix] + [_fmt_range(row, lab) for row, lab in zip(sol, labels)]
    print(" | ".join(msg))


def log_layout_summary(layout, *, prefix: str = "[diag]") -> None:
    """One line per species: index, carrier (or ψ) and enabled regions."""
    print(
        f"{prefix} layout | scheme={type(layout.scheme).__name__} | "
        f"interface={layout.interface_model.name} | species={layout.n_species}"
    )
    for idx in range(layout.n_species):
        owner = "psi" if idx == layout.potential_index else f"c{layout.carrier_of(idx)}"
        regions = ",".join(str(r) for r in sorted(layout.species_regions[idx]))
        print(f"{prefix}   #{idx:02d} {owner:>4} regions={{{regions}}}")


def log_continuation_step(
    *,
    step: int,
    n_steps: int,
    lambda1: float,
    accepted: bool,
    update_inf: float = float("nan"),
    prefix: str = "[hom]",
) -> None:
    """
    Compact log for each continuation step. Called by solver/homotopy.py.
    """
    upd_txt = f"{update_inf:.3e}" if np.isfinite(update_inf) else "nan"
    print(
        f"{prefix} step {step:02d}/{n_steps - 1:02d} | λ1={lambda1:.3e} | "
        f"accept={accepted} | ||Δu||_inf={upd_txt}"
    )


def log_continuation_failure(
    *,
    step: int,
    lambda1: float,
    reason: str,
    prefix: str = "[hom]",
) -> None:
    print(f"{prefix} step {step:02d} FAILED | λ1={lambda1:.3e} | {reason}")


def log_implicit_flux_stall(
    *,
    iters: int,
    j: float,
    update: float,
    tol: float,
    prefix: str = "[flux]",
) -> None:
    print(
        f"{prefix} implicit flux not converged after {iters} iters | "
        f"j={j:+.6e} | |update|={abs(update):.3e} > tol={tol:.3e}"
    )
