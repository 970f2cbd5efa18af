# src/substrates/assembler.py
"""
Turn component specs into numbered atoms and merge them into one System.

Each component is resolved on its own into residue copies in local
coordinates (no numbering, no shared state), so independent components may
be resolved in parallel. Residue and atom ids are assigned afterwards with a
prefix sum over the per-component residue counts.
"""
from __future__ import annotations
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .analysis import describe_component
from .io_utils import read_gro
from .lattice import closing_width, generate, periodic_extent, row_period
from .surface import axis_frame, map_to_sheet, map_to_cylinder, RngLike
from .substrate_types import (
    Atom, Block, ComponentSpec, ConfigurationFile, Database, Placement,
    Residue, ResidueCopy, SurfaceCylinder, SurfaceSheet, System,
)
from .volume import bounding_box, tile_and_trim

BlockLoader = Callable[[str], Block]
Resolved = Tuple[List[ResidueCopy], np.ndarray]

def instantiate(residue: Residue, placements: Sequence[Placement]) -> List[ResidueCopy]:
    """Stamp the template at every placement: x = position + R @ offset."""
    offsets = residue.offsets
    codes = residue.atom_codes
    return [
        ResidueCopy(residue.code, codes, pl.position + offsets @ pl.orientation.T)
        for pl in placements
    ]

# ---------- Per-component resolution ----------

def _canonical(copies: Sequence[ResidueCopy], frame: np.ndarray) -> np.ndarray:
    """All atom positions of `copies` in the (u, v, w) frame of `frame`."""
    if not copies:
        return np.zeros((0, 3))
    return np.vstack([c.positions for c in copies]) @ frame

def _resolve_sheet(spec: SurfaceSheet, database: Database, rng: RngLike) -> Resolved:
    residue = database.residue(spec.residue)
    width, height = periodic_extent(spec.lattice, spec.size)
    points = generate(spec.lattice, (width, height))
    placements = map_to_sheet(points, normal=spec.normal, std_z=spec.std_z, rng=rng)
    copies = instantiate(residue, placements)

    # in-plane axes are periodic: wrap atoms into the cell. Along the normal
    # the sheet sits at z0, leaving one row period of vacuum between images.
    frame = axis_frame(spec.normal)
    canon = _canonical(copies, frame)
    z0 = float(np.abs(canon[:, 2]).max(initial=0.0)) + 0.5 * row_period(spec.lattice)
    cell = np.array([width, height])
    canon[:, :2] = np.mod(canon[:, :2], cell)
    canon[:, :2] = np.where(canon[:, :2] >= cell, canon[:, :2] - cell, canon[:, :2])
    canon[:, 2] += z0
    world = canon @ frame.T

    out, k = [], 0
    for c in copies:
        n = len(c.atom_codes)
        out.append(ResidueCopy(c.code, c.atom_codes, world[k:k + n]))
        k += n
    extent = np.abs(frame @ np.array([width, height, 2.0 * z0]))
    return out, extent

def _resolve_cylinder(spec: SurfaceCylinder, database: Database) -> Resolved:
    residue = database.residue(spec.residue)
    width = closing_width(spec.lattice, 2.0 * math.pi * spec.radius)
    radius = width / (2.0 * math.pi)
    points = generate(spec.lattice, (width, spec.height))
    placements = map_to_cylinder(
        points, radius, spec.alignment, spec.cap,
        lattice=spec.lattice, height=spec.height,
    )
    copies = instantiate(residue, placements)

    # move the axis from the origin to (reach, reach) and lift anything below
    # the base, so every atom lies in the positive octant
    frame = axis_frame(spec.alignment)
    canon = _canonical(copies, frame)
    reach = max(radius, float(np.hypot(canon[:, 0], canon[:, 1]).max(initial=0.0)))
    w_lo = min(0.0, float(canon[:, 2].min(initial=0.0)))
    w_hi = max(float(spec.height), float(canon[:, 2].max(initial=0.0)))
    shift = frame @ np.array([reach, reach, -w_lo])
    extent = np.abs(frame @ np.array([2.0 * reach, 2.0 * reach, w_hi - w_lo]))
    return [c.translated(shift) for c in copies], extent

def _resolve_volume(spec: ConfigurationFile, block_loader: BlockLoader,
                    trim_policy: str, verbose: bool) -> Resolved:
    block = block_loader(spec.path)
    copies = tile_and_trim(block, spec.volume_type, policy=trim_policy, verbose=verbose)
    return copies, bounding_box(spec.volume_type)

def resolve(
    spec: ComponentSpec,
    database: Database,
    *,
    rng: RngLike = None,
    block_loader: BlockLoader = read_gro,
    trim_policy: str = "any_atom",
    verbose: bool = False,
) -> Resolved:
    """
    Residue copies of one component in its local frame, plus the component's
    nominal extent (used for the system box).
    """
    if isinstance(spec, SurfaceSheet):
        return _resolve_sheet(spec, database, rng)
    if isinstance(spec, SurfaceCylinder):
        return _resolve_cylinder(spec, database)
    if isinstance(spec, ConfigurationFile):
        return _resolve_volume(spec, block_loader, trim_policy, verbose)
    raise TypeError(f"Unsupported component type: {type(spec).__name__}")

# ---------- Numbering ----------

def _fit_box(atoms: List[Atom], nominal: np.ndarray) -> System:
    """
    System whose box holds every atom in [0, box]. If an atom lies below 0
    along an axis, the whole system is shifted up along that axis.
    """
    box = np.maximum(np.asarray(nominal, float), 0.0)
    if not atoms:
        return System(atoms=list(atoms), box=box)
    pos = np.array([a.position for a in atoms], float)
    lift = -np.minimum(pos.min(axis=0), 0.0)
    if (lift > 0.0).any():
        pos = pos + lift
        atoms = [Atom(a.residue_id, a.residue_code, a.atom_id, a.atom_code,
                      tuple(float(c) for c in p)) for a, p in zip(atoms, pos)]
        box = box + lift
    return System(atoms=atoms, box=np.maximum(box, pos.max(axis=0)))

def _box(extents: Sequence[np.ndarray], origins: Sequence[np.ndarray]) -> np.ndarray:
    box = np.zeros(3)
    for ext, org in zip(extents, origins):
        box = np.maximum(box, np.asarray(org, float) + np.asarray(ext, float))
    return box

def number_atoms(
    per_component: Sequence[Sequence[ResidueCopy]],
    origins: Sequence,
) -> List[Atom]:
    """
    Translate every component by its origin and assign contiguous, 1-based
    residue and atom ids in component order.
    """
    res_counts = [len(c) for c in per_component]
    atom_counts = [sum(len(r.atom_codes) for r in c) for c in per_component]
    res_start = np.concatenate([[0], np.cumsum(res_counts)[:-1]]).astype(int) if res_counts else []
    atom_start = np.concatenate([[0], np.cumsum(atom_counts)[:-1]]).astype(int) if atom_counts else []

    atoms: List[Atom] = []
    for copies, origin, r0, a0 in zip(per_component, origins, res_start, atom_start):
        org = np.asarray(origin, float)
        atom_id = int(a0)
        for n, res in enumerate(copies, start=int(r0) + 1):
            for code, pos in zip(res.atom_codes, res.positions + org):
                atom_id += 1
                atoms.append(Atom(n, res.code, atom_id, code, tuple(float(c) for c in pos)))
    return atoms

# ---------- Public entry points ----------

def build(
    spec: ComponentSpec,
    origin=(0.0, 0.0, 0.0),
    database: Optional[Database] = None,
    *,
    seed: Optional[int] = None,
    block_loader: BlockLoader = read_gro,
    trim_policy: str = "any_atom",
    verbose: bool = False,
) -> System:
    """Build a single component placed at `origin`."""
    database = database if database is not None else Database()
    rng = np.random.default_rng(seed) if seed is not None else None
    copies, extent = resolve(spec, database, rng=rng, block_loader=block_loader,
                             trim_policy=trim_policy, verbose=verbose)
    atoms = number_atoms([copies], [origin])
    return _fit_box(atoms, _box([extent], [origin]))

def build_named(name: str, origin, database: Database, **kwargs) -> System:
    return build(database.component(name), origin, database, **kwargs)

def assemble(
    components: Sequence[Tuple[ComponentSpec, Sequence[float]]],
    database: Database,
    *,
    seed: Optional[int] = None,
    block_loader: BlockLoader = read_gro,
    trim_policy: str = "any_atom",
    max_workers: Optional[int] = None,
    verbose: bool = False,
) -> System:
    """
    Build every (spec, origin) pair and concatenate them in order.

    Each component gets its own generator spawned from SeedSequence(seed), so
    the result does not depend on how the work is scheduled. With
    max_workers > 1 the components are resolved in a thread pool.
    """
    specs = [spec for spec, _ in components]
    origins = [np.asarray(org, float) for _, org in components]
    if seed is not None:
        rngs = [np.random.default_rng(s) for s in np.random.SeedSequence(seed).spawn(len(specs))]
    else:
        rngs = [None] * len(specs)

    def _one(k: int) -> Resolved:
        return resolve(specs[k], database, rng=rngs[k], block_loader=block_loader,
                       trim_policy=trim_policy, verbose=verbose)

    if max_workers and max_workers > 1 and len(specs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            resolved = list(pool.map(_one, range(len(specs))))
    else:
        resolved = [_one(k) for k in range(len(specs))]

    if verbose:
        for spec, origin, (copies, _) in zip(specs, origins, resolved):
            ox, oy, oz = origin
            print(f"    - {describe_component(spec)} at ({ox:g}, {oy:g}, {oz:g}): {len(copies)} residues")

    per_component = [copies for copies, _ in resolved]
    atoms = number_atoms(per_component, origins)
    return _fit_box(atoms, _box([ext for _, ext in resolved], origins))

def merge(systems: Sequence[System]) -> System:
    """Concatenate already built systems, renumbering residues and atoms from 1."""
    atoms: List[Atom] = []
    box = np.zeros(3)
    res_offset = atom_offset = 0
    for system in systems:
        last_res = 0
        for a in system.atoms:
            rid = res_offset + a.residue_id
            atoms.append(Atom(rid, a.residue_code, atom_offset + a.atom_id, a.atom_code, a.position))
            last_res = max(last_res, a.residue_id)
        res_offset += last_res
        atom_offset += len(system.atoms)
        box = np.maximum(box, np.asarray(system.box, float))
    return _fit_box(atoms, box)
