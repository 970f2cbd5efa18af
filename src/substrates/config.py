# src/substrates/config.py
from __future__ import annotations
import argparse
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

try:
    import yaml
except ImportError:
    sys.exit("pip install pyyaml")

from .constants import AXES, CAPS, TRIM_POLICIES
from .substrate_types import (
    ComponentSpec, ConfigurationFile, Cuboid, CylinderVolume, Database,
    Hexagonal, LatticeSpec, Residue, ResidueAtom, SurfaceCylinder,
    SurfaceSheet, Triclinic, VolumeType,
)

# -------------------- CLI --------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="substrate-builder",
        description="Build sheets, cylinders and trimmed solvent blocks as MD input structures."
    )
    p.add_argument("database", help="YAML/JSON database of residues and component definitions")
    p.add_argument("recipe", nargs="?", default=None,
                   help="YAML recipe listing the components to place (not needed with --list)")

    p.add_argument("-o", "--out", default="system.gro", help="Output GRO path")
    p.add_argument("--xyz", action="store_true", help="Also write <out>.xyz")
    p.add_argument("--manifest", action="store_true", help="Also write <out>.json with residue counts")
    p.add_argument("--seed", type=int, default=None,
                   help="Seed for sheet roughness (overrides the recipe's seed)")
    p.add_argument("--workers", type=int, default=1,
                   help="Threads used to build independent components (default: 1)")
    p.add_argument("--trim-policy", choices=list(TRIM_POLICIES), default=None,
                   help="How residues on a volume boundary are judged "
                        "(default from recipe, else any_atom)")
    p.add_argument("--pad", type=float, nargs=3, metavar=("PX", "PY", "PZ"),
                   default=(0.0, 0.0, 0.0), help="Extra box length (nm) added on output")
    p.add_argument("--list", action="store_true", help="Print the database contents and exit")
    p.add_argument("--no-presets", dest="presets", action="store_false",
                   help="Do not add the built-in GRPH/SIO residues and graphene/silica sheets to the database")
    p.set_defaults(presets=True)
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    return p

# -------------------- YAML helpers --------------------

def _parse_axis(val, what: str = "axis") -> str:
    s = str(val).strip().lower()
    if s not in AXES:
        raise ValueError(f"Invalid {what} {val!r}; expected one of {AXES}")
    return s

def _parse_vec(val, n: int, what: str) -> Tuple[float, ...]:
    """
    Parse an n-vector from a list/tuple, a mapping {x,y,z} or a string "1 2 3".
    """
    if isinstance(val, (list, tuple)) and len(val) == n:
        return tuple(float(v) for v in val)
    if isinstance(val, dict):
        keys = {str(k).lower(): float(v) for k, v in val.items()}
        names = "xyz"[:n]
        if all(k in keys for k in names):
            return tuple(keys[k] for k in names)
        raise ValueError(f"{what} mapping must have keys {tuple(names)}: {val!r}")
    if isinstance(val, str):
        toks = [t for t in re.split(r"[,\s]+", val.strip()) if t]
        if len(toks) == n:
            return tuple(float(t) for t in toks)
        raise ValueError(f"Cannot parse {what} string: {val!r}")
    raise TypeError(f"Unsupported {what} type: {type(val).__name__} (need {n} values)")

def _parse_lattice(raw) -> LatticeSpec:
    if not isinstance(raw, dict):
        raise TypeError("lattice must be a mapping with a 'type' key")
    kind = str(raw.get("type", "")).lower()
    if kind == "hexagonal":
        return Hexagonal(a=float(raw["a"]))
    if kind == "triclinic":
        return Triclinic(a=float(raw["a"]), b=float(raw["b"]), gamma=float(raw["gamma"]))
    raise ValueError(f"Unknown lattice type {raw.get('type')!r} (hexagonal | triclinic)")

def _parse_volume(raw) -> VolumeType:
    if not isinstance(raw, dict):
        raise TypeError("volume must be a mapping with a 'type' key")
    kind = str(raw.get("type", "")).lower()
    if kind == "cuboid":
        return Cuboid(size=_parse_vec(raw["size"], 3, "volume.size"))
    if kind == "cylinder":
        return CylinderVolume(
            radius=float(raw["radius"]),
            height=float(raw["height"]),
            normal=_parse_axis(raw.get("normal", "z"), "volume.normal"),
        )
    raise ValueError(f"Unknown volume type {raw.get('type')!r} (cuboid | cylinder)")

def _parse_residue(raw) -> Residue:
    if not isinstance(raw, dict) or "code" not in raw:
        raise KeyError("residues[]: each entry needs a 'code'")
    atoms = raw.get("atoms") or []
    if not isinstance(atoms, list):
        raise TypeError(f"residue {raw['code']!r}: 'atoms' must be a list")
    parsed = []
    for a in atoms:
        if isinstance(a, dict):
            parsed.append(ResidueAtom(code=str(a["code"]),
                                      position=_parse_vec(a.get("position", (0, 0, 0)), 3, "atom.position")))
        elif isinstance(a, (list, tuple)) and len(a) == 2:
            # compact [code, [x, y, z]]
            parsed.append(ResidueAtom(code=str(a[0]), position=_parse_vec(a[1], 3, "atom.position")))
        else:
            raise TypeError("residue atoms must be {code, position} mappings or [code, [x,y,z]] pairs")
    return Residue(code=str(raw["code"]), atoms=tuple(parsed))

def _parse_component(raw, base_dir: Optional[Path] = None) -> ComponentSpec:
    if not isinstance(raw, dict):
        raise TypeError("Each entry in 'components' must be a mapping")
    if "name" not in raw:
        raise KeyError("components[]: missing 'name'")
    name = str(raw["name"])
    kind = str(raw.get("type", "")).lower()

    if kind == "sheet":
        std_z = raw.get("std_z")
        return SurfaceSheet(
            name=name,
            residue=str(raw["residue"]),
            lattice=_parse_lattice(raw["lattice"]),
            size=_parse_vec(raw["size"], 2, f"{name}.size"),
            std_z=float(std_z) if std_z is not None else None,
            normal=_parse_axis(raw.get("normal", "z"), "normal"),
        )
    if kind == "cylinder":
        cap = str(raw.get("cap", "none")).lower()
        if cap not in CAPS:
            raise ValueError(f"{name}: invalid cap {raw.get('cap')!r}; expected one of {CAPS}")
        return SurfaceCylinder(
            name=name,
            residue=str(raw["residue"]),
            lattice=_parse_lattice(raw["lattice"]),
            radius=float(raw["radius"]),
            height=float(raw["height"]),
            alignment=_parse_axis(raw.get("alignment", "z"), "alignment"),
            cap=cap,
        )
    if kind == "volume":
        if "path" not in raw:
            raise KeyError(f"{name}: volume components need a 'path'")
        path = Path(str(raw["path"]))
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return ConfigurationFile(
            name=name,
            path=str(path),
            volume_type=_parse_volume(raw.get("volume")),
            description=str(raw.get("description", "")),
        )
    raise ValueError(f"{name}: unknown component type {raw.get('type')!r} (sheet | cylinder | volume)")

# -------------------- YAML → Database / Recipe --------------------

def database_from_dict(cfg: dict, base_dir: Optional[Path] = None) -> Database:
    residues: Dict[str, Residue] = {}
    for raw in cfg.get("residues") or []:
        res = _parse_residue(raw)
        if res.code in residues:
            raise ValueError(f"Duplicate residue code {res.code!r}")
        residues[res.code] = res

    components: Dict[str, ComponentSpec] = {}
    for raw in cfg.get("components") or []:
        comp = _parse_component(raw, base_dir)
        if comp.name in components:
            raise ValueError(f"Duplicate component name {comp.name!r}")
        components[comp.name] = comp

    return Database(residues=residues, components=components)

def parse_yaml_database(path: str) -> Database:
    """JSON files are accepted as well (JSON is a subset of YAML)."""
    with open(path, "r") as fh:
        cfg = yaml.safe_load(fh) or {}
    if not isinstance(cfg, dict):
        raise TypeError(f"{path}: database must be a mapping with 'residues' and 'components'")
    return database_from_dict(cfg, base_dir=Path(path).resolve().parent)

@dataclass(frozen=True)
class Recipe:
    components: List[Tuple[str, Tuple[float, float, float]]]
    seed: Optional[int] = None
    trim_policy: str = "any_atom"

def recipe_from_dict(cfg: dict) -> Recipe:
    entries = cfg.get("components")
    if not entries:
        raise KeyError("Recipe: need a non-empty 'components' list")
    comps = []
    for it in entries:
        if isinstance(it, str):
            comps.append((it, (0.0, 0.0, 0.0)))
        elif isinstance(it, dict) and "name" in it:
            origin = _parse_vec(it.get("origin", (0, 0, 0)), 3, "origin")
            comps.append((str(it["name"]), origin))
        else:
            raise TypeError("Recipe components must be names or {name, origin} mappings")

    policy = str(cfg.get("trim_policy", "any_atom"))
    if policy not in TRIM_POLICIES:
        raise ValueError(f"Recipe: trim_policy must be one of {TRIM_POLICIES}")
    seed = cfg.get("seed")
    return Recipe(components=comps, seed=int(seed) if seed is not None else None, trim_policy=policy)

def parse_yaml_recipe(path: str) -> Recipe:
    with open(path, "r") as fh:
        cfg = yaml.safe_load(fh) or {}
    if not isinstance(cfg, dict):
        raise TypeError(f"{path}: recipe must be a mapping")
    return recipe_from_dict(cfg)
