"""
Unit tests for HexagonalGrid.

Tests:
- Storage basis and lattice constants
- Row parity, dimensions and active cells
- Atom geometry (no overlaps, ideal bond lengths)
- Bounds and checkerboard occupancy
"""

import numpy as np
import pytest
from scipy.spatial import cKDTree

from nanolattice.core.elements import Material
from nanolattice.core.geometry import HH2KL_TO_XYZ, inverse, transform
from nanolattice.core.lattice import HexagonalGrid, HexagonalGridParity

CARBON = Material.elemental('carbon')
BOUNDS = [6, 4, 2]


def positions_of(grid):
    return np.array([atom.position for atom in grid.atoms])


class TestHexagonalGridGeometry:
    """Test constants and basis."""

    def test_lattice_constants(self):
        """a = d √(8/3), c = 8d / 3."""
        grid = HexagonalGrid(BOUNDS, CARBON)
        assert np.isclose(grid.hexagon_side_length, 0.1545 * np.sqrt(8 / 3))
        assert np.isclose(grid.prism_height, 0.1545 * 8 / 3)
        assert np.allclose(grid.real_space_scale,
                           [grid.hexagon_side_length,
                            grid.hexagon_side_length,
                            grid.prism_height])

    def test_basis_vectors(self):
        """h + 2k is the second storage axis."""
        basis = HexagonalGrid.basis_vectors()
        assert np.allclose(basis['h'] + 2 * basis['k'], basis['h2k'])
        assert np.allclose(basis['h2k'], [0, 1, 0])


class TestHexagonalGridLayout:
    """Test parity, dimensions and active cells."""

    def test_default_parity(self):
        grid = HexagonalGrid(BOUNDS, CARBON)
        assert grid.parity is HexagonalGridParity.FIRST_ROW_STAGGERED

    @pytest.mark.parametrize("parity, dims", [
        (HexagonalGridParity.FIRST_ROW_ORIGIN, (3, 9, 3)),
        (HexagonalGridParity.FIRST_ROW_STAGGERED, (3, 10, 3)),
    ])
    def test_dimensions(self, parity, dims):
        """Staggered parity adds one padding row."""
        assert HexagonalGrid(BOUNDS, CARBON, parity=parity).dimensions == dims

    def test_staggered_rows_have_fewer_columns(self):
        """With bound 6 along h, unshifted rows hold 3 cells and staggered rows 2."""
        grid = HexagonalGrid(BOUNDS, CARBON)
        active = grid.active_cells()

        # FIRST_ROW_STAGGERED: even rows are staggered
        assert active[:, 0, 0].tolist() == [True, True, False]
        assert active[:, 1, 0].tolist() == [True, True, True]
        assert not grid.entity_types[2, 0].any()

    def test_staggered_parity_captures_bottom_edge(self):
        """The padding row adds the zigzag atoms along (h + 2k) = 0."""
        origin = HexagonalGrid(BOUNDS, CARBON,
                               parity=HexagonalGridParity.FIRST_ROW_ORIGIN)
        staggered = HexagonalGrid(BOUNDS, CARBON)
        assert staggered.num_atoms > origin.num_atoms

    def test_parity_accepts_int(self):
        grid = HexagonalGrid(BOUNDS, CARBON, parity=0)
        assert grid.parity is HexagonalGridParity.FIRST_ROW_ORIGIN


class TestHexagonalGridAtoms:
    """Test emitted atoms."""

    @pytest.mark.parametrize("parity", list(HexagonalGridParity))
    def test_atoms_within_bounds(self, parity):
        """Atoms expressed in the storage basis lie within [0, B]."""
        grid = HexagonalGrid(BOUNDS, CARBON, parity=parity)
        xyz = positions_of(grid) / grid.real_space_scale
        storage = transform(inverse(HH2KL_TO_XYZ), xyz)

        assert np.all(storage >= -0.011)
        assert np.all(storage <= np.array(BOUNDS) + 0.011)

    def test_no_overlapping_atoms(self):
        """Each site appears once; the closest pair is one bond apart."""
        grid = HexagonalGrid(BOUNDS, CARBON)
        positions = positions_of(grid)
        distances, _ = cKDTree(positions).query(positions, k=2)

        assert np.isclose(distances[:, 1].min(), 0.1545)

    def test_coordination(self):
        """No atom has more than 4 neighbours; bonds are ideal."""
        grid = HexagonalGrid(BOUNDS, CARBON)
        positions = positions_of(grid)
        tree = cKDTree(positions)

        counts = np.array([len(n) - 1 for n in
                           tree.query_ball_point(positions, r=0.1545 * 1.1)])
        assert counts.max() == 4
        for i, j in tree.query_pairs(r=0.1545 * 1.1):
            assert np.isclose(np.linalg.norm(positions[i] - positions[j]), 0.1545)

    def test_checkerboard_bonds_join_different_elements(self):
        """Wurtzite-type SiC: every bond is Si-C."""
        material = Material.checkerboard('silicon', 'carbon')
        grid = HexagonalGrid(BOUNDS, material)
        atoms = grid.atoms
        positions = np.array([atom.position for atom in atoms])

        pairs = cKDTree(positions).query_pairs(r=material.bond_length * 1.1)
        assert len(pairs) > 0
        for i, j in pairs:
            assert atoms[i].element != atoms[j].element

    def test_plane_in_storage_basis(self):
        """A -(h + 2k) plane at 2 removes every atom below row coordinate 2."""
        grid = HexagonalGrid(BOUNDS, CARBON)
        grid.replace(0, where=grid.mask([0, 2, 0], [0, -1, 0]))
        xyz = positions_of(grid) / grid.real_space_scale
        storage = transform(inverse(HH2KL_TO_XYZ), xyz)

        assert grid.num_atoms > 0
        assert np.all(storage[:, 1] >= 2 - 0.011)
