# driftsim/geometry/grid.py
"""
Mesh collaborator (read-only) and the element contexts handed to callbacks.

- No mesh generation here: the external grid provider fills a Grid.
- Node / edge / boundary-node contexts are tiny value objects so the
  assembly callbacks stay pure functions of (unknowns, context, store).

Public API (stable):
    Grid
    NodeContext, BNodeContext, EdgeContext
    interval_grid(coord, cell_regions, bface_regions=(0, 1)) -> Grid
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple
import numpy as np

__all__ = ["Grid", "NodeContext", "BNodeContext", "EdgeContext", "interval_grid"]


# ---------------------------------------------------------------------
# Element contexts
# ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NodeContext:
    """Interior node: global node index, cell region, coordinate (1st component)."""
    index: int
    region: int
    coord: float = 0.0


@dataclass(frozen=True, slots=True)
class BNodeContext:
    """
    Boundary node.

    region      : boundary region id.
    cell_region : bulk region adjacent to the boundary face (used for
                  carriers that are split per region).
    """
    index: int
    region: int
    cell_region: int = 0


@dataclass(frozen=True, slots=True)
class EdgeContext:
    """Edge k → l inside one cell region."""
    node_k: int
    node_l: int
    region: int


# ---------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------


@dataclass(slots=True)
class Grid:
    """
    Topology as exposed by the external grid provider.

    Arrays
    ------
    coord         : (N, dim) node coordinates [m]
    cell_nodes    : (M, k) node indices per cell
    cell_regions  : (M,) region id per cell (0-based)
    bface_nodes   : (B, kb) node indices per boundary face
    bface_regions : (B,) boundary region id per face (0-based)
    """
    coord: np.ndarray
    cell_nodes: np.ndarray
    cell_regions: np.ndarray
    bface_nodes: np.ndarray
    bface_regions: np.ndarray
    num_cell_regions: int
    num_bface_regions: int

    def __post_init__(self) -> None:
        self.coord = np.atleast_2d(np.asarray(self.coord, dtype=np.float64).T).T
        self.cell_nodes = np.atleast_2d(np.asarray(self.cell_nodes, dtype=np.int64))
        self.cell_regions = np.asarray(self.cell_regions, dtype=np.int64)
        self.bface_nodes = np.atleast_2d(np.asarray(self.bface_nodes, dtype=np.int64))
        self.bface_regions = np.asarray(self.bface_regions, dtype=np.int64)
        if self.cell_nodes.shape[0] != self.cell_regions.size:
            raise ValueError("cell_nodes and cell_regions length mismatch.")
        if self.bface_nodes.shape[0] != self.bface_regions.size:
            raise ValueError("bface_nodes and bface_regions length mismatch.")

    @property
    def num_nodes(self) -> int:
        return int(self.coord.shape[0])

    def node_regions(self) -> Tuple[Tuple[int, ...], ...]:
        """Sorted regions of all cells touching each node."""
        acc = [set() for _ in range(self.num_nodes)]
        for nodes, reg in zip(self.cell_nodes, self.cell_regions):
            for i in nodes:
                acc[int(i)].add(int(reg))
        return tuple(tuple(sorted(s)) for s in acc)

    def node_region(self) -> np.ndarray:
        """One representative (lowest) region per node; -1 for orphan nodes."""
        return np.array([r[0] if r else -1 for r in self.node_regions()], dtype=np.int64)


def interval_grid(
    coord: Sequence[float],
    cell_regions: Sequence[int],
    bface_regions: Sequence[int] = (0, 1),
) -> Grid:
    """
    1-D grid wrapper: consecutive nodes form cells, the two end points form the
    boundary faces (left → bface_regions[0], right → bface_regions[1]).
    """
    z = np.asarray(coord, dtype=np.float64)
    N = z.size
    if N < 2:
        raise ValueError("Geometry needs at least 2 nodes.")
    if len(cell_regions) != N - 1:
        raise ValueError("cell_regions must have shape (N-1,).")
    if np.any(np.diff(z) <= 0.0):
        raise ValueError("coord must be strictly increasing.")
    cells = np.column_stack((np.arange(N - 1), np.arange(1, N)))
    regions = np.asarray(cell_regions, dtype=np.int64)
    return Grid(
        coord=z.reshape(-1, 1),
        cell_nodes=cells,
        cell_regions=regions,
        bface_nodes=np.array([[0], [N - 1]], dtype=np.int64),
        bface_regions=np.asarray(bface_regions, dtype=np.int64),
        num_cell_regions=int(regions.max()) + 1,
        num_bface_regions=int(np.max(bface_regions)) + 1,
    )
