from .substrate_types import (
    Residue, ResidueAtom, Hexagonal, Triclinic,
    SurfaceSheet, SurfaceCylinder, ConfigurationFile, Cuboid, CylinderVolume,
    Placement, ResidueCopy, Block, Atom, System, Database,
)
from .errors import (
    SubstrateError, InvalidLattice, NonClosingLattice, EmptyVolume,
    UnknownResidueCode, UnknownComponent, BlockLoadFailure,
)
from .assembler import build, build_named, assemble, merge

__version__ = "0.1.0"
