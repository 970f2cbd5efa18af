"""
tests/conftest.py

Shared pytest fixtures for the substrate-builder test suite.

All fixtures are pure geometry held in memory; tests that need files write
them to tmp_path.

Fixture overview
----------------
Residues
    single_atom         One-atom residue "ATM" with its atom at the local origin
    sio_residue         Three-atom O1/SI/O2 stack along local z
    water_residue       Three-atom residue used inside the block

Blocks
    small_block         0.3 x 0.3 x 0.3 nm block holding 3 water residues

Database
    database            Database with the residues above and one component of each kind
    block_loader        Loader returning small_block for any path

Files
    gro_text            Text of a 2-residue GRO block file
"""

from __future__ import annotations

import numpy as np
import pytest

from substrates.substrate_types import (
    Block, ConfigurationFile, Cuboid, Database, Hexagonal, Residue,
    ResidueAtom, ResidueCopy, SurfaceCylinder, SurfaceSheet, Triclinic,
)


# ---------------------------------------------------------------------------
# Residues
# ---------------------------------------------------------------------------

@pytest.fixture
def single_atom() -> Residue:
    return Residue(code="ATM", atoms=(ResidueAtom("A", (0.0, 0.0, 0.0)),))


@pytest.fixture
def sio_residue() -> Residue:
    return Residue(code="SIO", atoms=(
        ResidueAtom("O1", (0.0, 0.0, 0.151)),
        ResidueAtom("SI", (0.0, 0.0, 0.0)),
        ResidueAtom("O2", (0.0, 0.0, -0.151)),
    ))


@pytest.fixture
def water_residue() -> Residue:
    return Residue(code="SOL", atoms=(
        ResidueAtom("OW", (0.0, 0.0, 0.0)),
        ResidueAtom("HW1", (0.01, 0.0, 0.0)),
        ResidueAtom("HW2", (0.0, 0.01, 0.0)),
    ))


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

BLOCK_CENTRES = [(0.05, 0.05, 0.05), (0.15, 0.15, 0.15), (0.25, 0.20, 0.10)]


def _make_block(residue: Residue, extent: float = 0.3) -> Block:
    residues = [
        ResidueCopy(residue.code, residue.atom_codes, residue.offsets + np.array(c))
        for c in BLOCK_CENTRES
    ]
    return Block(residues=residues, extent=np.full(3, extent))


@pytest.fixture
def small_block(water_residue) -> Block:
    return _make_block(water_residue)


@pytest.fixture
def block_loader(small_block):
    return lambda path: small_block


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def database(single_atom, sio_residue, water_residue) -> Database:
    sheet = SurfaceSheet(
        name="silica", residue="SIO",
        lattice=Triclinic(a=0.45, b=0.45, gamma=60.0),
        size=(2.0, 2.0),
    )
    tube = SurfaceCylinder(
        name="tube", residue="ATM",
        lattice=Hexagonal(a=0.142),
        radius=1.0, height=1.0,
    )
    water = ConfigurationFile(
        name="water", path="block.gro",
        volume_type=Cuboid(size=(1.0, 1.0, 1.0)),
        description="test block",
    )
    return Database(
        residues={r.code: r for r in (single_atom, sio_residue, water_residue)},
        components={c.name: c for c in (sheet, tube, water)},
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def gro_line(resid, resname, name, index, xyz) -> str:
    x, y, z = xyz
    return f"{resid:5d}{resname:<5s}{name:>5s}{index:5d}{x:8.3f}{y:8.3f}{z:8.3f}\n"


@pytest.fixture
def gro_text() -> str:
    lines = ["Test block\n", "    6\n"]
    atoms = [
        (1, "SOL", "OW", (0.050, 0.050, 0.050)),
        (1, "SOL", "HW1", (0.060, 0.050, 0.050)),
        (1, "SOL", "HW2", (0.050, 0.060, 0.050)),
        (2, "SOL", "OW", (0.200, 0.200, 0.200)),
        (2, "SOL", "HW1", (0.210, 0.200, 0.200)),
        (2, "SOL", "HW2", (0.200, 0.210, 0.200)),
    ]
    for i, (rid, rn, an, xyz) in enumerate(atoms, start=1):
        lines.append(gro_line(rid, rn, an, i, xyz))
    lines.append(f"{0.3:10.5f}{0.3:10.5f}{0.3:10.5f}\n")
    return "".join(lines)
