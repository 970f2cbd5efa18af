# src/substrates/presets.py
from __future__ import annotations
import math

from .constants import GRAPHENE_BOND, SILICA_SPACING, SILICA_DZ
from .substrate_types import (
    Database, Hexagonal, Residue, ResidueAtom, SurfaceSheet, Triclinic,
)

def graphene_lattice(bond: float = GRAPHENE_BOND) -> Hexagonal:
    """Triangular lattice of the honeycomb cells: a = sqrt(3) * bond."""
    return Hexagonal(a=math.sqrt(3.0) * bond)

def graphene_residue(bond: float = GRAPHENE_BOND) -> Residue:
    """
    Two-carbon basis of the honeycomb. Placed on `graphene_lattice(bond)`,
    every carbon gets three neighbours at `bond`.
    """
    return Residue(code="GRPH", atoms=(
        ResidueAtom("C1", (0.0, 0.0, 0.0)),
        ResidueAtom("C2", (math.sqrt(3.0) * bond / 2.0, bond / 2.0, 0.0)),
    ))

def silica_residue(spacing: float = SILICA_SPACING, dz: float = SILICA_DZ) -> Residue:
    """A rigid O-Si-O stack along the local z axis."""
    x0, y0 = spacing / 4.0, spacing / 6.0
    return Residue(code="SIO", atoms=(
        ResidueAtom("O1", (x0, y0, dz)),
        ResidueAtom("SI", (x0, y0, 0.0)),
        ResidueAtom("O2", (x0, y0, -dz)),
    ))

def default_database() -> Database:
    graphene = SurfaceSheet(
        name="graphene",
        residue="GRPH",
        lattice=graphene_lattice(),
        size=(5.0, 5.0),
    )
    silica = SurfaceSheet(
        name="silica",
        residue="SIO",
        lattice=Triclinic(a=SILICA_SPACING, b=SILICA_SPACING, gamma=60.0),
        size=(5.0, 5.0),
    )
    return Database(
        residues={r.code: r for r in (graphene_residue(), silica_residue())},
        components={c.name: c for c in (graphene, silica)},
    )

def with_presets(db: Database) -> Database:
    """Presets underneath `db`; entries in `db` win on name clashes."""
    base = default_database()
    return Database(
        residues={**base.residues, **db.residues},
        components={**base.components, **db.components},
    )
