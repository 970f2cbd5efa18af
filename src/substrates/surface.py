# src/substrates/surface.py
"""
Map 2D lattice points onto flat sheets and cylindrical shells.

Every surface is first built in a canonical frame (u, v, w) where w is the
sheet normal or the cylinder axis, then rotated into world coordinates by
`axis_frame`. The frames are cyclic permutations of the identity, so they
are proper rotations and residue templates keep their handedness.
"""
from __future__ import annotations
import math
from typing import List, Optional, Union

import numpy as np

from .constants import AXES, CAPS, EPS, SEAM_TOL, ROUGHNESS_CLIP
from .errors import NonClosingLattice
from .lattice import generate, row_period
from .substrate_types import Placement, LatticeSpec
from .analysis import dedupe_points

RngLike = Union[np.random.Generator, int, None]

# canonical (u, v, w) -> world, with w along the named axis
_FRAMES = {
    "z": np.eye(3),
    "x": np.array([[0.0, 0.0, 1.0],
                   [1.0, 0.0, 0.0],
                   [0.0, 1.0, 0.0]]),
    "y": np.array([[0.0, 1.0, 0.0],
                   [0.0, 0.0, 1.0],
                   [1.0, 0.0, 0.0]]),
}

_FLIP = np.diag([1.0, -1.0, -1.0])   # turn "up" to point along -w

def axis_frame(axis: str) -> np.ndarray:
    """Rotation taking the canonical frame to one whose w-axis is `axis`."""
    try:
        return _FRAMES[str(axis).lower()].copy()
    except KeyError:
        raise ValueError(f"Unknown axis {axis!r}; expected one of {AXES}") from None

def _as_rng(rng: RngLike) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    if rng is None:
        raise ValueError("Roughness (std_z > 0) needs an explicit seed or numpy Generator")
    return np.random.default_rng(int(rng))

def _as_points(points) -> np.ndarray:
    return np.asarray(points, float).reshape(-1, 2)

def roughness(n: int, std_z: Optional[float], rng: RngLike) -> np.ndarray:
    """
    Per-point displacement along the sheet normal.

    Independent normal draws with scale std_z, clipped to
    ±ROUGHNESS_CLIP*std_z. Zeros when std_z is None or 0.
    """
    if not std_z:
        return np.zeros(n)
    if std_z < 0.0:
        raise ValueError(f"std_z must be non-negative, got {std_z}")
    gen = _as_rng(rng)
    bound = ROUGHNESS_CLIP * std_z
    return np.clip(gen.normal(0.0, std_z, size=n), -bound, bound)

# ---------- Sheets ----------

def map_to_sheet(
    points,
    normal: str = "z",
    std_z: Optional[float] = None,
    rng: RngLike = None,
) -> List[Placement]:
    """
    Lay 2D points in the plane perpendicular to `normal`, at 0 along the
    normal (or at a random offset when roughness is enabled). Orientation
    turns the residue's local +z onto `normal`.
    """
    pts = _as_points(points)
    frame = axis_frame(normal)
    dz = roughness(len(pts), std_z, rng)
    canon = np.column_stack([pts, dz])
    world = canon @ frame.T
    return [Placement(position=p, orientation=frame, tag="sheet") for p in world]

# ---------- Cylinders ----------

def seam_mismatch(points, width: float, lattice: LatticeSpec) -> float:
    """
    Largest deviation, over all lattice rows, between the gap across the
    wrapping seam and the in-row period. 0 for a perfectly closing lattice.
    """
    pts = _as_points(points)
    if len(pts) == 0:
        return 0.0
    dx = row_period(lattice)
    rows = np.round(pts[:, 1] / (EPS * dx)).astype(np.int64)
    worst = 0.0
    for key in np.unique(rows):
        xs = pts[rows == key, 0]
        gap = width - (xs.max() - xs.min())
        worst = max(worst, abs(gap - dx))
    return float(worst)

def cap_points(lattice: LatticeSpec, radius: float) -> np.ndarray:
    """Lattice points covering a disk of `radius` centred on the origin."""
    if radius <= 0.0:
        return np.zeros((0, 2))
    side = 2.0 * radius
    pts = generate(lattice, (side, side)) - radius
    keep = np.hypot(pts[:, 0], pts[:, 1]) <= radius + EPS * side
    return pts[keep]

def _cap_placements(lattice, radius, alignment, which: str, height: float) -> List[Placement]:
    pts = dedupe_points(cap_points(lattice, radius), tol=EPS * row_period(lattice))
    frame = axis_frame(alignment)
    axial = frame[:, 2]
    out: List[Placement] = []
    for pl in map_to_sheet(pts, normal=alignment):
        if which == "top":
            out.append(Placement(pl.position + height * axial, pl.orientation, tag="top"))
        else:
            out.append(Placement(pl.position, pl.orientation @ _FLIP, tag="bottom"))
    return out

def map_to_cylinder(
    points,
    radius: float,
    alignment: str = "z",
    cap: str = "none",
    *,
    lattice: LatticeSpec,
    height: Optional[float] = None,
) -> List[Placement]:
    """
    Wrap lattice points (x = circumferential, y = axial) around a cylinder
    of `radius` whose axis is `alignment` and passes through the origin.

    The lattice width must equal the circumference 2*pi*radius so that the
    seam closes; use `lattice.closing_width` to choose it. Orientation maps
    local (x, y, z) to (tangent, axis, outward radial).

    `cap` adds flat tilings of the same lattice over the end disks: "top" at
    axial coordinate `height` facing +axis, "bottom" at 0 facing -axis.
    """
    cap = str(cap).lower()
    if cap not in CAPS:
        raise ValueError(f"Unknown cap {cap!r}; expected one of {CAPS}")
    if radius <= 0.0:
        raise ValueError(f"Cylinder radius must be positive, got {radius}")

    pts = _as_points(points)
    frame = axis_frame(alignment)
    width = 2.0 * math.pi * radius

    mismatch = seam_mismatch(pts, width, lattice)
    dx = row_period(lattice)
    if mismatch > SEAM_TOL * dx:
        raise NonClosingLattice(
            "Lattice does not close around the cylinder",
            circumference=width, period=dx, mismatch=mismatch,
        )

    theta = 2.0 * math.pi * pts[:, 0] / width
    c, s = np.cos(theta), np.sin(theta)
    canon = np.column_stack([radius * c, radius * s, pts[:, 1]])
    world = canon @ frame.T

    out: List[Placement] = []
    for k in range(len(pts)):
        tangent = np.array([-s[k], c[k], 0.0])
        radial = np.array([c[k], s[k], 0.0])
        rot = np.column_stack([tangent, [0.0, 0.0, 1.0], radial])
        out.append(Placement(position=world[k], orientation=frame @ rot, tag="shell"))

    if cap != "none":
        if height is None:
            height = float(pts[:, 1].max()) if len(pts) else 0.0
        if cap in ("bottom", "both"):
            out.extend(_cap_placements(lattice, radius, alignment, "bottom", height))
        if cap in ("top", "both"):
            out.extend(_cap_placements(lattice, radius, alignment, "top", height))
    return out
