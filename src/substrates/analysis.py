# src/substrates/analysis.py
from __future__ import annotations
import math
from collections import Counter
from typing import Dict

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from .substrate_types import (
    Database, System, SurfaceSheet, SurfaceCylinder, ConfigurationFile,
    Cuboid, CylinderVolume, Hexagonal, Triclinic,
)

def dedupe_points(pts: NDArray[np.float64], tol: float = 1e-6) -> NDArray[np.float64]:
    """
    Remove near-duplicates (within tol) while preserving order.
    """
    pts = np.asarray(pts, float)
    if len(pts) == 0:
        return pts
    keep = np.ones(len(pts), bool)
    tree = cKDTree(pts)
    for i, j in sorted(tree.query_pairs(r=tol)):
        if keep[i]:
            keep[j] = False
    return pts[keep]

def nearest_neighbor_distances(pts: NDArray[np.float64]) -> NDArray[np.float64]:
    """Distance from every point to its closest other point (inf for a single point)."""
    pts = np.asarray(pts, float)
    if len(pts) < 2:
        return np.full(len(pts), np.inf)
    d, _ = cKDTree(pts).query(pts, k=2)
    return d[:, 1]

def wrap_into_box(pts: NDArray[np.float64], box) -> NDArray[np.float64]:
    """Wrap points into [0, box) along every axis with a positive box length."""
    pts = np.array(pts, float).reshape(-1, 3)
    box = np.asarray(box, float)
    periodic = box > 0.0
    L = np.where(periodic, box, 1.0)
    wrapped = np.mod(pts, L)
    wrapped = np.where(wrapped >= L, wrapped - L, wrapped)
    return np.where(periodic, wrapped, pts)

def periodic_neighbor_distances(pts: NDArray[np.float64], box) -> NDArray[np.float64]:
    """
    Like `nearest_neighbor_distances` but counting periodic images of the
    box. Axes with a zero box length are not periodic.
    """
    pts = wrap_into_box(pts, box)
    if len(pts) < 2:
        return np.full(len(pts), np.inf)
    tree = cKDTree(pts, boxsize=np.maximum(np.asarray(box, float), 0.0))
    d, _ = tree.query(pts, k=2)
    return d[:, 1]

def radial_distances(pts: NDArray[np.float64], axis: str = "z", center=(0.0, 0.0)) -> NDArray[np.float64]:
    """Distance of each 3D point from a line parallel to `axis` through `center`."""
    pts = np.asarray(pts, float).reshape(-1, 3)
    k = "xyz".index(axis)
    perp = [i for i in range(3) if i != k]
    return np.hypot(pts[:, perp[0]] - center[0], pts[:, perp[1]] - center[1])

# ---------------- Reports ----------------

def _describe_lattice(lattice) -> str:
    if isinstance(lattice, Hexagonal):
        return f"hexagonal a={lattice.a:g}"
    if isinstance(lattice, Triclinic):
        return f"triclinic a={lattice.a:g} b={lattice.b:g} gamma={lattice.gamma:g}"
    raise TypeError(f"Unsupported lattice type: {type(lattice).__name__}")

def describe_component(spec) -> str:
    if isinstance(spec, SurfaceSheet):
        w, h = spec.size
        rough = f", std_z={spec.std_z:g}" if spec.std_z else ""
        return (f"{spec.name} (Surface sheet of {spec.residue}, {_describe_lattice(spec.lattice)}, "
                f"size {w:g} x {h:g}, normal {spec.normal}{rough})")
    if isinstance(spec, SurfaceCylinder):
        return (f"{spec.name} (Surface cylinder of {spec.residue}, {_describe_lattice(spec.lattice)}, "
                f"radius {spec.radius:g}, height {spec.height:g}, "
                f"alignment {spec.alignment}, cap {spec.cap})")
    if isinstance(spec, ConfigurationFile):
        vol = spec.volume_type
        if isinstance(vol, Cuboid):
            shape = "cuboid {:g} x {:g} x {:g}".format(*vol.size)
        elif isinstance(vol, CylinderVolume):
            shape = f"cylinder radius {vol.radius:g}, height {vol.height:g}, normal {vol.normal}"
        else:
            raise TypeError(f"Unsupported volume type: {type(vol).__name__}")
        desc = f" '{spec.description}'" if spec.description else ""
        return f"{spec.name} (Volume from {spec.path}{desc}, {shape})"
    raise TypeError(f"Unsupported component type: {type(spec).__name__}")

def database_overview(db: Database) -> None:
    print("\n=== COMPONENT DEFINITIONS ===")
    if not db.components:
        print("  (none)")
    for i, name in enumerate(db.components):
        print(f"  {i}. {describe_component(db.components[name])}")

    print("\n=== RESIDUE DEFINITIONS ===")
    if not db.residues:
        print("  (none)")
    for code, res in db.residues.items():
        print(f"  {code}  ({len(res.atoms)} atoms: {' '.join(res.atom_codes)})")

def residue_counts(system: System) -> Dict[str, int]:
    seen = {}
    for a in system.atoms:
        seen.setdefault(a.residue_id, a.residue_code)
    return dict(Counter(seen.values()))

def system_report(system: System, label: str = "system") -> None:
    bx, by, bz = (float(v) for v in system.box)
    print(f"\n=== {label.upper()} ===")
    print(f"  atoms={len(system.atoms)}  residues={system.num_residues}")
    print(f"  box = {bx:.3f} x {by:.3f} x {bz:.3f} nm")
    for code, n in sorted(residue_counts(system).items()):
        print(f"  {code:>5s}: {n}")
    if len(system.atoms) > 1:
        nn = nearest_neighbor_distances(system.positions)
        print(f"  closest atom pair: {float(nn.min()):.4f} nm")
        pnn = periodic_neighbor_distances(system.positions, system.box)
        print(f"  closest pair incl. periodic images: {float(pnn.min()):.4f} nm")

def spacing_summary(pts: NDArray[np.float64]) -> str:
    nn = nearest_neighbor_distances(pts)
    if nn.size == 0 or not math.isfinite(float(nn.min())):
        return "no pairs"
    return f"N={nn.size}  min={nn.min():.4f}  median={np.median(nn):.4f}  max={nn.max():.4f}"

__all__ = [
    "dedupe_points", "nearest_neighbor_distances", "periodic_neighbor_distances",
    "wrap_into_box", "radial_distances",
    "describe_component", "database_overview", "residue_counts",
    "system_report", "spacing_summary",
]
