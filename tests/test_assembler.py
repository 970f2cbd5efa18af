from __future__ import annotations

import math

import numpy as np
import pytest
from scipy.spatial import cKDTree

from substrates.analysis import (
    periodic_neighbor_distances, radial_distances, residue_counts, wrap_into_box,
)
from substrates.assembler import (
    assemble, build, build_named, instantiate, merge, number_atoms, resolve,
)
from substrates.errors import EmptyVolume, UnknownComponent, UnknownResidueCode
from substrates.lattice import closing_width
from substrates.presets import default_database
from substrates.substrate_types import (
    ConfigurationFile, Cuboid, Hexagonal, Placement, SurfaceCylinder, SurfaceSheet,
)


def _assert_contiguous(system):
    atom_ids = [a.atom_id for a in system.atoms]
    assert atom_ids == list(range(1, len(system.atoms) + 1))
    res_ids = [a.residue_id for a in system.atoms]
    assert res_ids[0] == 1
    assert all(b - a in (0, 1) for a, b in zip(res_ids, res_ids[1:]))
    assert system.num_residues == res_ids[-1]


class TestInstantiate:

    def test_rotation_applied_to_offsets(self, sio_residue):
        flip = np.diag([1.0, -1.0, -1.0])
        pl = Placement(position=np.array([1.0, 2.0, 3.0]), orientation=flip)
        (copy,) = instantiate(sio_residue, [pl])
        assert copy.code == "SIO"
        assert copy.atom_codes == ("O1", "SI", "O2")
        assert np.allclose(copy.positions[0], [1.0, 2.0, 3.0 - 0.151])
        assert np.allclose(copy.positions[1], [1.0, 2.0, 3.0])


class TestNumbering:

    def test_prefix_sum_ids(self, sio_residue, single_atom):
        pl = [Placement(np.zeros(3), np.eye(3)), Placement(np.ones(3), np.eye(3))]
        a = instantiate(sio_residue, pl)
        b = instantiate(single_atom, pl)
        atoms = number_atoms([a, b], [(0, 0, 0), (10, 0, 0)])
        assert [x.residue_id for x in atoms] == [1, 1, 1, 2, 2, 2, 3, 4]
        assert [x.atom_id for x in atoms] == list(range(1, 9))
        assert atoms[-1].position == pytest.approx((11.0, 1.0, 1.0))


class TestBuild:

    def test_sheet(self, database):
        system = build_named("silica", (0, 0, 0), database)
        _assert_contiguous(system)
        assert len(system.atoms) == 3 * system.num_residues
        # 2 x 2 nm snapped to 4 columns and 6 rows of the 0.45 nm lattice
        dy = 0.45 * math.sqrt(3.0) / 2.0
        z0 = 0.151 + 0.225
        assert np.allclose(system.box, [4 * 0.45, 6 * dy, 2.0 * z0])
        si = np.array([a.position for a in system.atoms if a.atom_code == "SI"])
        assert len(si) == 24
        assert np.allclose(si[:, 2], z0)

    def test_origin_translates_everything(self, database):
        a = build_named("silica", (0, 0, 0), database)
        b = build_named("silica", (1.0, 2.0, 3.0), database)
        assert np.allclose(b.positions, a.positions + [1.0, 2.0, 3.0])

    def test_rough_sheet_needs_seed(self, database):
        rough = SurfaceSheet("rough", "SIO", Hexagonal(0.3), (1.0, 1.0), std_z=0.05)
        with pytest.raises(ValueError):
            build(rough, database=database)
        a = build(rough, database=database, seed=11)
        b = build(rough, database=database, seed=11)
        assert np.array_equal(a.positions, b.positions)

    def test_cylinder_axis_through_r_r(self, database):
        system = build_named("tube", (0, 0, 0), database)
        radius = closing_width(Hexagonal(0.142), 2.0 * math.pi) / (2.0 * math.pi)
        rad = radial_distances(system.positions, "z", center=(radius, radius))
        assert np.allclose(rad, radius)
        assert radius == pytest.approx(1.0, abs=0.02)
        _assert_contiguous(system)

    def test_capped_cylinder(self, database):
        spec = SurfaceCylinder("capped", "ATM", Hexagonal(0.142), 0.5, 1.0, cap="both")
        plain = SurfaceCylinder("plain", "ATM", Hexagonal(0.142), 0.5, 1.0)
        capped = build(spec, database=database)
        open_ = build(plain, database=database)
        assert len(capped.atoms) > len(open_.atoms)
        z = capped.positions[:, 2]
        assert np.any(np.isclose(z, 1.0))

    def test_volume_uses_block_loader(self, database, block_loader):
        system = build_named("water", (0, 0, 0), database, block_loader=block_loader)
        _assert_contiguous(system)
        assert residue_counts(system) == {"SOL": system.num_residues}
        assert np.all(system.positions <= 1.0 + 1e-6)
        assert np.allclose(system.box, [1.0, 1.0, 1.0])

    def test_empty_volume_propagates(self, database, block_loader):
        tiny = ConfigurationFile("tiny", "x.gro", Cuboid((0.01, 0.01, 0.01)))
        with pytest.raises(EmptyVolume):
            build(tiny, database=database, block_loader=block_loader)

    def test_unknown_residue(self, database):
        spec = SurfaceSheet("bad", "XXX", Hexagonal(0.3), (1.0, 1.0))
        with pytest.raises(UnknownResidueCode) as info:
            build(spec, database=database)
        assert isinstance(info.value, KeyError)
        assert info.value.context["code"] == "XXX"

    def test_unknown_component(self, database):
        with pytest.raises(UnknownComponent):
            build_named("graphite", (0, 0, 0), database)

    def test_unsupported_spec(self, database):
        with pytest.raises(TypeError):
            resolve(object(), database)


class TestAssemble:

    def test_components_concatenate_in_order(self, database, block_loader):
        comps = [
            (database.component("silica"), (0.0, 0.0, 0.0)),
            (database.component("water"), (0.0, 0.0, 0.5)),
            (database.component("tube"), (3.0, 0.0, 0.0)),
        ]
        system = assemble(comps, database, block_loader=block_loader)
        _assert_contiguous(system)

        singles = [build(spec, origin, database, block_loader=block_loader)
                   for spec, origin in comps]
        assert len(system.atoms) == sum(len(s.atoms) for s in singles)
        assert system.num_residues == sum(s.num_residues for s in singles)
        codes = [a.residue_code for a in system.atoms]
        assert codes[0] == "SIO" and codes[-1] == "ATM"
        for s in singles:
            assert np.all(system.box >= s.box - 1e-12)

    def test_parallel_matches_serial(self, database):
        rough = SurfaceSheet("rough", "SIO", Hexagonal(0.3), (1.0, 1.0), std_z=0.05)
        comps = [(rough, (0, 0, 0)), (rough, (0, 0, 1.0)), (database.component("tube"), (2.0, 0, 0))]
        serial = assemble(comps, database, seed=5)
        threaded = assemble(comps, database, seed=5, max_workers=3)
        assert np.array_equal(serial.positions, threaded.positions)
        assert [a.atom_id for a in serial.atoms] == [a.atom_id for a in threaded.atoms]
        # each component draws from its own stream
        n = len(build(rough, database=database, seed=0).atoms)
        first = serial.positions[:n, 2]
        second = serial.positions[n:2 * n, 2] - 1.0
        assert not np.allclose(first, second)


class TestMerge:

    def test_merge_renumbers(self, database):
        a = build_named("silica", (0, 0, 0), database)
        b = build_named("tube", (0, 0, 2.0), database)
        merged = merge([a, b])
        _assert_contiguous(merged)
        assert len(merged.atoms) == len(a.atoms) + len(b.atoms)
        assert merged.num_residues == a.num_residues + b.num_residues
        assert np.allclose(merged.box, np.maximum(a.box, b.box))

    def test_translate(self, database):
        a = build_named("silica", (0, 0, 0), database)
        moved = a.translate((0.0, 0.0, 1.0))
        assert np.allclose(moved.positions, a.positions + [0.0, 0.0, 1.0])
        assert [x.atom_id for x in moved.atoms] == [x.atom_id for x in a.atoms]

    def test_translate_below_zero_rejected(self, database):
        a = build_named("silica", (0, 0, 0), database)
        with pytest.raises(ValueError):
            a.translate((0.0, 0.0, -5.0))


def _assert_inside_box(system):
    pos = system.positions
    assert np.all(pos >= 0.0)
    assert np.all(pos <= system.box + 1e-9)


class TestBoxes:

    def test_silica_preset_inside_box_and_periodic(self):
        db = default_database()
        system = build_named("silica", (0, 0, 0), db)
        _assert_inside_box(system)
        assert system.box[0] / 0.45 == pytest.approx(round(system.box[0] / 0.45))
        si = np.array([a.position for a in system.atoms if a.atom_code == "SI"])
        assert periodic_neighbor_distances(si, system.box).min() == pytest.approx(0.45)
        assert periodic_neighbor_distances(system.positions, system.box).min() >= 0.151 - 1e-9

    def test_graphene_preset_is_honeycomb(self):
        db = default_database()
        system = build_named("graphene", (0, 0, 0), db)
        _assert_inside_box(system)
        assert set(residue_counts(system)) == {"GRPH"}
        pos = wrap_into_box(system.positions, system.box)
        tree = cKDTree(pos, boxsize=system.box)
        neighbours = [len(n) - 1 for n in tree.query_ball_point(pos, r=0.142 + 1e-6)]
        assert neighbours == [3] * len(pos)
        assert periodic_neighbor_distances(pos, system.box) == pytest.approx(0.142)

    def test_single_atom_sheet_periodic_images(self, database):
        spec = SurfaceSheet("dense", "ATM", Hexagonal(0.142), (1.0, 1.0))
        system = build(spec, database=database)
        _assert_inside_box(system)
        assert periodic_neighbor_distances(system.positions, system.box).min() >= 0.142 - 1e-9

    def test_rough_sheet_inside_box(self, database):
        spec = SurfaceSheet("rough", "SIO", Hexagonal(0.3), (1.5, 1.5), std_z=0.05)
        system = build(spec, database=database, seed=2)
        _assert_inside_box(system)
        xy = periodic_neighbor_distances(
            np.array([a.position for a in system.atoms if a.atom_code == "SI"]) * [1, 1, 0],
            system.box * [1, 1, 0],
        )
        assert xy.min() == pytest.approx(0.3)

    def test_capped_cylinder_inside_box(self, database):
        spec = SurfaceCylinder("capped", "SIO", Hexagonal(0.3), 0.8, 1.5, cap="both")
        system = build(spec, database=database)
        _assert_inside_box(system)
        # flipped bottom cap pushes O1 below the base before lifting
        assert system.positions[:, 2].min() == pytest.approx(0.0)

    def test_negative_origin_lifted(self, database):
        comps = [(database.component("silica"), (0.0, 0.0, -1.0)),
                 (database.component("tube"), (0.0, 0.0, 0.0))]
        system = assemble(comps, database)
        _assert_inside_box(system)
        assert system.positions.min(axis=0)[2] == pytest.approx(0.0)

    def test_merge_keeps_atoms_inside(self, database):
        merged = merge([build_named("silica", (0, 0, 0), database),
                        build_named("tube", (0, 0, 1.0), database)])
        _assert_inside_box(merged)
