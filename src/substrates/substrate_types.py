# src/substrates/substrate_types.py
from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Tuple, List, Mapping, Optional, Union
import numpy as np

from .errors import UnknownResidueCode, UnknownComponent

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

# Residue templates
@dataclass(frozen=True)
class ResidueAtom:
    code: str
    position: Vec3      # offset in the residue's local frame (nm)

@dataclass(frozen=True)
class Residue:
    code: str
    atoms: Tuple[ResidueAtom, ...]

    def __post_init__(self):
        if not self.atoms:
            raise ValueError(f"Residue {self.code!r} has no atoms")
        codes = [a.code for a in self.atoms]
        dupes = sorted({c for c in codes if codes.count(c) > 1})
        if dupes:
            raise ValueError(f"Residue {self.code!r}: duplicate atom codes {dupes}")

    @property
    def atom_codes(self) -> Tuple[str, ...]:
        return tuple(a.code for a in self.atoms)

    @property
    def offsets(self) -> np.ndarray:
        return np.array([a.position for a in self.atoms], float).reshape(-1, 3)

# Lattices
@dataclass(frozen=True)
class Hexagonal:
    a: float

@dataclass(frozen=True)
class Triclinic:
    a: float
    b: float
    gamma: float        # degrees

LatticeSpec = Union[Hexagonal, Triclinic]

# Surface components
@dataclass(frozen=True)
class SurfaceSheet:
    name: str
    residue: str                    # residue code, resolved through the Database
    lattice: LatticeSpec
    size: Vec2                      # in-plane extent (width, height)
    std_z: Optional[float] = None   # roughness along the normal; None/0 = flat
    normal: str = "z"               # "x" | "y" | "z"

@dataclass(frozen=True)
class SurfaceCylinder:
    name: str
    residue: str
    lattice: LatticeSpec
    radius: float
    height: float
    alignment: str = "z"
    cap: str = "none"               # "none" | "top" | "bottom" | "both"

# Volume components
@dataclass(frozen=True)
class Cuboid:
    size: Vec3

@dataclass(frozen=True)
class CylinderVolume:
    radius: float
    height: float
    normal: str = "z"

VolumeType = Union[Cuboid, CylinderVolume]

@dataclass(frozen=True)
class ConfigurationFile:
    name: str
    path: str
    volume_type: VolumeType
    description: str = ""

ComponentSpec = Union[SurfaceSheet, SurfaceCylinder, ConfigurationFile]

# Generated data (owned by one build)
@dataclass(frozen=True, eq=False)
class Placement:
    position: np.ndarray            # (3,)
    orientation: np.ndarray         # (3,3) proper rotation, columns = local axes in world
    tag: str = "sheet"              # "sheet" | "shell" | "top" | "bottom"

@dataclass(frozen=True, eq=False)
class ResidueCopy:
    """One residue in world space, before numbering."""
    code: str
    atom_codes: Tuple[str, ...]
    positions: np.ndarray           # (N,3)

    @property
    def centroid(self) -> np.ndarray:
        return self.positions.mean(axis=0)

    def translated(self, shift) -> "ResidueCopy":
        return ResidueCopy(self.code, self.atom_codes, self.positions + np.asarray(shift, float))

@dataclass(frozen=True, eq=False)
class Block:
    """A pre-built periodic box of residues (e.g. an equilibrated liquid)."""
    residues: List[ResidueCopy]
    extent: np.ndarray              # (3,) box lengths

@dataclass(frozen=True)
class Atom:
    residue_id: int                 # 1-based, contiguous over the system
    residue_code: str
    atom_id: int                    # 1-based, contiguous over the system
    atom_code: str
    position: Vec3

@dataclass(frozen=True, eq=False)
class System:
    atoms: List[Atom]
    box: np.ndarray                 # (3,)

    @property
    def positions(self) -> np.ndarray:
        return np.array([a.position for a in self.atoms], float).reshape(-1, 3)

    @property
    def num_residues(self) -> int:
        return self.atoms[-1].residue_id if self.atoms else 0

    def translate(self, offset) -> "System":
        """
        Move every atom by `offset`; the box grows to keep them in [0, box].
        Raises ValueError if an atom would end up below 0.
        """
        off = np.asarray(offset, float)
        pos = self.positions + off
        if len(pos) and (pos.min(axis=0) < 0.0).any():
            raise ValueError(f"Translation by {tuple(off.tolist())} moves atoms below 0")
        atoms = [
            Atom(a.residue_id, a.residue_code, a.atom_id, a.atom_code, tuple(float(c) for c in p))
            for a, p in zip(self.atoms, pos)
        ]
        box = np.maximum(np.asarray(self.box, float) + np.maximum(off, 0.0), 0.0)
        if len(pos):
            box = np.maximum(box, pos.max(axis=0))
        return System(atoms=atoms, box=box)

# Read-only lookup tables
@dataclass(frozen=True)
class Database:
    residues: Mapping[str, Residue] = field(default_factory=dict)
    components: Mapping[str, ComponentSpec] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "residues", MappingProxyType(dict(self.residues)))
        object.__setattr__(self, "components", MappingProxyType(dict(self.components)))

    def residue(self, code: str) -> Residue:
        try:
            return self.residues[code]
        except KeyError:
            raise UnknownResidueCode(
                f"No residue with code {code!r} in database",
                code=code, known=sorted(self.residues),
            ) from None

    def component(self, name: str) -> ComponentSpec:
        try:
            return self.components[name]
        except KeyError:
            raise UnknownComponent(
                f"No component named {name!r} in database",
                name=name, known=sorted(self.components),
            ) from None
