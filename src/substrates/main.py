# src/substrates/main.py
from __future__ import annotations
import os
import sys
from typing import List

from .config import build_parser, parse_yaml_database, parse_yaml_recipe
from .presets import with_presets
from .assembler import assemble
from .analysis import database_overview, system_report
from .errors import SubstrateError
from .io_utils import write_gro, write_xyz, write_manifest

def run(argv: List[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.verbose:
        print(f"\n[1] Reading database {args.database}...")
    db = parse_yaml_database(args.database)
    if args.presets:
        db = with_presets(db)
    if args.verbose:
        print(f"    - {len(db.residues)} residues, {len(db.components)} components")

    if args.list:
        database_overview(db)
        return 0

    if args.recipe is None:
        p.error("a recipe is required unless --list is given")

    if args.verbose:
        print(f"\n[2] Reading recipe {args.recipe}...")
    recipe = parse_yaml_recipe(args.recipe)
    seed = args.seed if args.seed is not None else recipe.seed
    policy = args.trim_policy or recipe.trim_policy
    if args.verbose:
        print(f"    - Components: {[name for name, _ in recipe.components]}")
        print(f"    - Seed: {seed}, trim policy: {policy}")

    components = [(db.component(name), origin) for name, origin in recipe.components]

    if args.verbose:
        print("\n[3] Building components...")
    system = assemble(
        components, db,
        seed=seed,
        trim_policy=policy,
        max_workers=args.workers,
        verbose=args.verbose,
    )

    if args.verbose:
        system_report(system)

    if args.verbose:
        print(f"\n[4] Writing GRO to {args.out}")
    write_gro(args.out, system, pad=args.pad)

    prefix = os.path.splitext(args.out)[0]
    if args.xyz:
        if args.verbose:
            print(f"    - Writing {prefix}.xyz")
        write_xyz(f"{prefix}.xyz", system)
    if args.manifest:
        if args.verbose:
            print(f"    - Writing JSON manifest to {prefix}.json")
        write_manifest(prefix, system)
    return 0

def main(argv: List[str] | None = None) -> int:
    try:
        return run(argv)
    except (SubstrateError, KeyError, TypeError, ValueError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

if __name__ == "__main__":
    raise SystemExit(main())
