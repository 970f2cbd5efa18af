# src/substrates/lattice.py
from __future__ import annotations
import math
from typing import Optional, Tuple

import numpy as np

from .constants import EPS
from .errors import InvalidLattice
from .substrate_types import Hexagonal, Triclinic, LatticeSpec

def validate_lattice(lattice: LatticeSpec) -> None:
    if isinstance(lattice, Hexagonal):
        if not lattice.a > 0.0:
            raise InvalidLattice("Hexagonal spacing must be positive", a=lattice.a)
    elif isinstance(lattice, Triclinic):
        if not (lattice.a > 0.0 and lattice.b > 0.0):
            raise InvalidLattice("Triclinic vector lengths must be positive",
                                 a=lattice.a, b=lattice.b)
        if not 0.0 < lattice.gamma < 180.0:
            raise InvalidLattice("Triclinic gamma must lie in (0, 180) degrees",
                                 gamma=lattice.gamma)
    else:
        raise TypeError(f"Unsupported lattice type: {type(lattice).__name__}")

def primitive_vectors(lattice: LatticeSpec) -> Tuple[np.ndarray, np.ndarray]:
    """
    Two primitive vectors (2D) of the lattice:
      Hexagonal(a):         (a, 0), (a cos60, a sin60)
      Triclinic(a, b, g):   (a, 0), (b cos g, b sin g)
    """
    validate_lattice(lattice)
    if isinstance(lattice, Hexagonal):
        a, b, gamma = lattice.a, lattice.a, 60.0
    else:
        a, b, gamma = lattice.a, lattice.b, lattice.gamma
    g = math.radians(gamma)
    return np.array([a, 0.0]), np.array([b * math.cos(g), b * math.sin(g)])

def row_period(lattice: LatticeSpec) -> float:
    """Spacing between neighbours within one lattice row (along x)."""
    v1, _ = primitive_vectors(lattice)
    return float(v1[0])

def closing_width(lattice: LatticeSpec, circumference: float) -> float:
    """Nearest width >= one period that is a whole number of row periods."""
    dx = row_period(lattice)
    n = max(1, int(round(circumference / dx)))
    return n * dx

def row_repeat(lattice: LatticeSpec, max_rows: int = 64) -> Optional[int]:
    """
    Smallest number of rows after which the row offset is again a whole
    number of in-row periods, or None if no such count exists up to max_rows.
    """
    v1, v2 = primitive_vectors(lattice)
    for p in range(1, max_rows + 1):
        frac = p * v2[0] / v1[0]
        if abs(frac - round(frac)) < EPS:
            return p
    return None

def periodic_extent(lattice: LatticeSpec, size: Tuple[float, float]) -> Tuple[float, float]:
    """
    Snap a requested (width, height) to whole lattice cells so that the
    generated points tile periodically in a rectangular box.

    Width becomes round(W/a)*a. Height becomes a whole number of row
    spacings, rounded to a multiple of `row_repeat` when the lattice has one.
    """
    v1, v2 = primitive_vectors(lattice)
    W, H = (float(size[0]), float(size[1]))
    if not (W > 0.0 and H > 0.0):
        raise InvalidLattice("Lattice extent must be positive", extent=(W, H))
    dx, dy = v1[0], v2[1]
    nx = max(1, int(round(W / dx)))
    p = row_repeat(lattice) or 1
    ny = max(p, int(round(H / (p * dy))) * p)
    return nx * dx, ny * dy

def generate(lattice: LatticeSpec, extent: Tuple[float, float]) -> np.ndarray:
    """
    All lattice points inside [0, W) x [0, H), shape (N, 2).

    Rows j cover the height plus a one-row margin; within each row the index
    range i is chosen from the row's x offset so only cells that can reach
    [0, W] are enumerated. Order is row-major: increasing j, then increasing i.
    """
    v1, v2 = primitive_vectors(lattice)
    W, H = (float(extent[0]), float(extent[1]))
    if not (W > 0.0 and H > 0.0):
        raise InvalidLattice("Lattice extent must be positive", extent=(W, H))

    dy = v2[1]
    nj = int(math.ceil(H / dy)) + 1
    js = np.arange(-1, nj + 1)

    # x = i*a + j*dx_row must reach [0, W] in row j
    shifts = js * v2[0]
    i_lo = np.floor(-shifts / v1[0]).astype(np.int64) - 1
    i_hi = np.ceil((W - shifts) / v1[0]).astype(np.int64) + 1
    counts = i_hi - i_lo + 1
    starts = np.concatenate([[0], np.cumsum(counts)[:-1]])
    jj = np.repeat(js, counts)
    ii = np.repeat(i_lo, counts) + np.arange(counts.sum()) - np.repeat(starts, counts)
    pts = np.outer(ii, v1) + np.outer(jj, v2)

    tol = EPS * max(v1[0], dy)
    x, y = pts[:, 0], pts[:, 1]
    mask = (x > -tol) & (x < W - tol) & (y > -tol) & (y < H - tol)
    pts = pts[mask]
    # snap round-off at the lower edges
    pts[np.abs(pts) < tol] = 0.0
    return pts
