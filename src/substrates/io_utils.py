# src/substrates/io_utils.py
from __future__ import annotations
import json, os
from collections import Counter
from pathlib import Path
from typing import Sequence

import numpy as np
import MDAnalysis as mda

from .constants import ANGSTROM_PER_NM
from .errors import BlockLoadFailure
from .substrate_types import Block, ResidueCopy, System

def read_gro(path: str) -> Block:
    """
    Load a pre-built block (e.g. an equilibrated solvent box) from a GRO file.

    MDAnalysis works in Å; coordinates and box are converted back to nm.
    Raises BlockLoadFailure if the file is missing, unparsable or has no box.
    """
    p = Path(path)
    if not p.is_file():
        raise BlockLoadFailure("Block file not found", path=str(path))
    try:
        u = mda.Universe(str(p))
    except (OSError, ValueError, IndexError, TypeError) as exc:
        raise BlockLoadFailure(f"Could not parse block file: {exc}", path=str(path)) from exc

    dims = u.dimensions
    if dims is None or not (np.asarray(dims[:3]) > 0.0).all():
        raise BlockLoadFailure("Block file has no periodic box", path=str(path))
    if len(u.atoms) == 0:
        raise BlockLoadFailure("Block file has no atoms", path=str(path))

    scale = 1.0 / ANGSTROM_PER_NM
    residues = [
        ResidueCopy(
            code=str(res.resname),
            atom_codes=tuple(str(n) for n in res.atoms.names),
            positions=np.asarray(res.atoms.positions, float) * scale,
        )
        for res in u.residues
    ]
    return Block(residues=residues, extent=np.asarray(dims[:3], float) * scale)

def _to_universe(system: System, pad: Sequence[float] = (0.0, 0.0, 0.0)) -> mda.Universe:
    atoms = system.atoms
    resids = [a.residue_id for a in atoms]
    first = {}
    for a in atoms:
        first.setdefault(a.residue_id, a.residue_code)
    order = sorted(first)
    resindex = {rid: i for i, rid in enumerate(order)}

    u = mda.Universe.empty(
        len(atoms),
        n_residues=len(order),
        atom_resindex=[resindex[r] for r in resids],
        trajectory=True,
    )
    u.add_TopologyAttr("names", [a.atom_code for a in atoms])
    u.add_TopologyAttr("resnames", [first[r] for r in order])
    u.add_TopologyAttr("resids", order)
    u.atoms.positions = system.positions * ANGSTROM_PER_NM
    box = (np.asarray(system.box, float) + np.asarray(pad, float)) * ANGSTROM_PER_NM
    u.dimensions = [box[0], box[1], box[2], 90.0, 90.0, 90.0]
    return u

def write_gro(path: str, system: System, pad: Sequence[float] = (0.0, 0.0, 0.0)) -> None:
    """Write a System as a GROMACS .gro file; `pad` is added to the box (nm)."""
    if not system.atoms:
        raise ValueError("No atoms in system to write")
    u = _to_universe(system, pad=pad)
    with mda.coordinates.GRO.GROWriter(str(path), n_atoms=len(u.atoms)) as gro_writer:
        gro_writer.write(u.atoms)

def write_xyz(path: str, system: System) -> None:
    # XYZ readers expect Å
    pts = system.positions * ANGSTROM_PER_NM
    with open(path, "w") as fh:
        fh.write(f"{len(system.atoms)}\n{os.path.basename(path)}\n")
        for a, (x, y, z) in zip(system.atoms, pts):
            fh.write(f"{a.atom_code} {x:.6f} {y:.6f} {z:.6f}\n")

def write_manifest(prefix: str, system: System):
    seen = {}
    for a in system.atoms:
        seen.setdefault(a.residue_id, a.residue_code)
    out = {
        "residues": Counter(seen.values()),
        "n_residues": len(seen),
        "n_atoms": len(system.atoms),
        "box_nm": [round(float(v), 6) for v in system.box],
    }
    with open(f"{prefix}.json", "w") as fh:
        json.dump(out, fh, indent=2, default=int)
