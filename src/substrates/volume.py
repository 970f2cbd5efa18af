# src/substrates/volume.py
"""
Fill a target volume with copies of a pre-built block of residues.

The block (e.g. an equilibrated water box) is replicated periodically over
the bounding box of the target shape, then whole residues are dropped if
they stick out of the shape. Residues are never split.

Trimming policies
-----------------
any_atom  (default) keep a residue only if every atom is inside
centroid            keep a residue if its centroid is inside
"""
from __future__ import annotations
import math
from itertools import product
from typing import List, Tuple

import numpy as np

from .constants import EPS, TRIM_POLICIES
from .errors import EmptyVolume, BlockLoadFailure
from .substrate_types import Block, Cuboid, CylinderVolume, ResidueCopy, VolumeType

def _axis_index(axis: str) -> int:
    try:
        return "xyz".index(str(axis).lower())
    except ValueError:
        raise ValueError(f"Unknown axis {axis!r}; expected one of ('x', 'y', 'z')") from None

def _check_dims(volume_type: VolumeType) -> None:
    if isinstance(volume_type, Cuboid):
        dims = tuple(volume_type.size)
    elif isinstance(volume_type, CylinderVolume):
        dims = (volume_type.radius, volume_type.height)
        _axis_index(volume_type.normal)
    else:
        raise TypeError(f"Unsupported volume type: {type(volume_type).__name__}")
    if any(d < 0.0 for d in dims):
        raise ValueError(f"Volume dimensions must be non-negative: {volume_type}")

def bounding_box(volume_type: VolumeType) -> np.ndarray:
    """
    Axis-aligned box [0, bb] enclosing the shape. Cylinders have their axis
    through (r, r) in the perpendicular plane.
    """
    _check_dims(volume_type)
    if isinstance(volume_type, Cuboid):
        return np.array(volume_type.size, float)
    bb = np.full(3, 2.0 * volume_type.radius)
    bb[_axis_index(volume_type.normal)] = volume_type.height
    return bb

def replication_counts(volume_type: VolumeType, extent) -> Tuple[int, int, int]:
    """
    Number of block copies per axis: ceil(bbox / extent), plus one extra
    shell along the axes where the shape is curved.
    """
    extent = np.asarray(extent, float)
    bb = bounding_box(volume_type)
    counts = [int(math.ceil(b / L - EPS)) if b > 0.0 else 0 for b, L in zip(bb, extent)]
    if isinstance(volume_type, CylinderVolume) and all(counts):
        k = _axis_index(volume_type.normal)
        counts = [n + (1 if i != k else 0) for i, n in enumerate(counts)]
    return tuple(counts)

def tile_block(block: Block, counts) -> List[ResidueCopy]:
    """Copies of every block residue for each translation (i*Lx, j*Ly, k*Lz)."""
    L = np.asarray(block.extent, float)
    nx, ny, nz = counts
    out: List[ResidueCopy] = []
    for i, j, k in product(range(nx), range(ny), range(nz)):
        shift = np.array([i, j, k], float) * L
        out.extend(res.translated(shift) for res in block.residues)
    return out

def inside_volume(volume_type: VolumeType, pts: np.ndarray, tol: float = EPS) -> np.ndarray:
    """Boolean mask of points inside the shape (boundary included within tol)."""
    pts = np.asarray(pts, float).reshape(-1, 3)
    if isinstance(volume_type, Cuboid):
        size = np.asarray(volume_type.size, float)
        return ((pts >= -tol) & (pts <= size[None, :] + tol)).all(axis=1)
    if isinstance(volume_type, CylinderVolume):
        r, h = volume_type.radius, volume_type.height
        k = _axis_index(volume_type.normal)
        p, q = [i for i in range(3) if i != k]
        rad = np.hypot(pts[:, p] - r, pts[:, q] - r)
        return (rad <= r + tol) & (pts[:, k] >= -tol) & (pts[:, k] <= h + tol)
    raise TypeError(f"Unsupported volume type: {type(volume_type).__name__}")

def trim(residues: List[ResidueCopy], volume_type: VolumeType, policy: str = "any_atom") -> List[ResidueCopy]:
    """
    Keep whole residues that lie inside the shape; order is preserved.
    Re-trimming the output with the same shape returns it unchanged.
    """
    if policy not in TRIM_POLICIES:
        raise ValueError(f"Unknown trim policy {policy!r}; expected one of {TRIM_POLICIES}")
    if not residues:
        return []
    if policy == "centroid":
        probes = np.array([res.centroid for res in residues])
        keep = inside_volume(volume_type, probes)
    else:
        sizes = [len(res.positions) for res in residues]
        mask = inside_volume(volume_type, np.vstack([res.positions for res in residues]))
        owner = np.repeat(np.arange(len(residues)), sizes)
        outside = np.bincount(owner, weights=(~mask).astype(float), minlength=len(residues))
        keep = outside == 0
    return [res for res, k in zip(residues, keep) if k]

def tile_and_trim(
    block: Block,
    volume_type: VolumeType,
    policy: str = "any_atom",
    verbose: bool = False,
) -> List[ResidueCopy]:
    extent = np.asarray(block.extent, float)
    if extent.shape != (3,) or not (extent > 0.0).all():
        raise BlockLoadFailure("Block extent must be three positive lengths",
                               extent=tuple(extent.ravel().tolist()))
    counts = replication_counts(volume_type, extent)
    tiled = tile_block(block, counts)
    kept = trim(tiled, volume_type, policy=policy)
    if verbose:
        print(f"    - Tiled block {counts[0]}x{counts[1]}x{counts[2]}: "
              f"{len(tiled)} residues, kept {len(kept)} ({policy})")
    if not kept:
        raise EmptyVolume("No residue survived trimming",
                          volume=volume_type, block_extent=tuple(extent.tolist()),
                          tiled=len(tiled))
    return kept
