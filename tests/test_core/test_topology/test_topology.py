"""
Unit tests for Topology.

Tests:
- Editing (insert, remove) and index bookkeeping
- Bond inference and neighbour matching
- Nonbonding orbitals
- Angles and torsions
- Export
"""

import numpy as np
import pytest

from nanolattice.core.elements import Element
from nanolattice.core.entity import Entity
from nanolattice.core.topology import Topology

CH = 0.1090
CC = 0.1545


def carbon(*position):
    return Entity(position=position, element=Element.CARBON)


def hydrogen(*position):
    return Entity(position=position, element=Element.HYDROGEN)


def methane():
    """Carbon at the origin with hydrogens along the four sp3 directions."""
    directions = np.array([[1, 1, 1], [1, -1, -1], [-1, 1, -1], [-1, -1, 1]]) / np.sqrt(3)
    return Topology(atoms=[carbon(0, 0, 0)] + [hydrogen(*(CH * d)) for d in directions])


def carbon_chain(n):
    atoms = [carbon(CC * i, 0, 0) for i in range(n)]
    return Topology(atoms=atoms, bonds=[(i, i + 1) for i in range(n - 1)])


class TestTopologyEditing:
    """Test insert and remove."""

    def test_empty(self):
        topology = Topology()
        assert topology.num_atoms == 0
        assert topology.bonds.shape == (0, 2)
        assert topology.positions.shape == (0, 3)

    def test_bonds_sorted_and_unique(self):
        topology = Topology(atoms=[carbon(0, 0, 0), carbon(1, 0, 0), carbon(2, 0, 0)],
                            bonds=[(1, 0), (0, 1), (1, 2)])
        assert topology.bonds.tolist() == [[0, 1], [1, 2]]

    def test_insert_returns_new_bonds(self):
        topology = carbon_chain(3)
        assert topology.insert(bonds=[(0, 1), (0, 2)]) == 1
        assert topology.num_bonds == 3

    def test_insert_bonds_to_new_atoms(self):
        topology = carbon_chain(2)
        topology.insert(atoms=[hydrogen(-CH, 0, 0)], bonds=[(0, 2)])
        assert topology.num_atoms == 3
        assert topology.bond_counts().tolist() == [2, 1, 1]

    def test_insert_errors(self):
        topology = carbon_chain(2)
        with pytest.raises(ValueError, match="out of range"):
            topology.insert(bonds=[(0, 5)])
        with pytest.raises(ValueError, match="itself"):
            topology.insert(bonds=[(1, 1)])
        with pytest.raises(TypeError, match="Entity"):
            topology.insert(atoms=[(0, 0, 0)])

    def test_remove_atoms_shifts_bonds(self):
        topology = carbon_chain(4)
        mapping = topology.remove_atoms([1])

        assert mapping.tolist() == [0, -1, 1, 2]
        assert topology.num_atoms == 3
        assert topology.bonds.tolist() == [[1, 2]]

    def test_remove_bonds(self):
        topology = carbon_chain(4)
        topology.remove_bonds([0, 2])
        assert topology.bonds.tolist() == [[1, 2]]
        with pytest.raises(ValueError, match="out of range"):
            topology.remove_bonds([3])


class TestTopologyMatching:
    """Test distance-based bonding."""

    def test_infer_methane(self):
        topology = methane()
        assert topology.infer_bonds() == 4
        assert topology.bond_counts().tolist() == [4, 1, 1, 1, 1]

    def test_infer_keeps_existing(self):
        topology = carbon_chain(3)
        topology.insert(bonds=[(0, 2)])
        assert topology.infer_bonds() == 0
        assert topology.num_bonds == 3

    def test_hydrogens_never_bond(self):
        topology = Topology(atoms=[hydrogen(0, 0, 0), hydrogen(0.07, 0, 0)])
        assert topology.infer_bonds() == 0

    def test_tolerance(self):
        """A stretched bond is found only with enough slack."""
        stretched = Topology(atoms=[carbon(0, 0, 0), carbon(CC * 1.15, 0, 0)])
        assert stretched.infer_bonds(tolerance=0.1) == 0
        assert stretched.infer_bonds(tolerance=0.2) == 1

    def test_absolute_match(self):
        matches = methane().match(algorithm='absolute', radius=0.12)
        assert matches[0].tolist() == [1, 2, 3, 4]
        for hydrogen_matches in matches[1:]:
            assert hydrogen_matches.tolist() == [0]

    def test_match_against_other_atoms(self):
        """Explicit targets may include the source atom's own position."""
        topology = carbon_chain(2)
        matches = topology.match(source=[carbon(0, 0, 0)])
        assert matches[0].tolist() == [0, 1]

    def test_match_errors(self):
        topology = methane()
        with pytest.raises(ValueError, match="positive radius"):
            topology.match(algorithm='absolute')
        with pytest.raises(ValueError, match="Unknown matching algorithm"):
            topology.match(algorithm='voronoi')


class TestNonbondingOrbitals:
    """Test sp3 orbital placement."""

    def test_three_bonds(self):
        topology = methane()
        topology.infer_bonds()
        topology.remove_atoms([4])

        orbitals = topology.nonbonding_orbitals()
        assert orbitals[0].shape == (1, 3)
        assert np.allclose(orbitals[0][0], np.array([-1, -1, 1]) / np.sqrt(3))

    def test_two_bonds(self):
        topology = methane()
        topology.infer_bonds()
        topology.remove_atoms([3, 4])

        orbitals = topology.nonbonding_orbitals()[0]
        expected = np.array([[-1, 1, -1], [-1, -1, 1]]) / np.sqrt(3)
        assert orbitals.shape == (2, 3)
        assert np.allclose(np.linalg.norm(orbitals, axis=1), 1)
        for direction in expected:
            assert np.any(np.all(np.isclose(orbitals, direction), axis=1))

    def test_saturated_and_hydrogen(self):
        topology = methane()
        topology.infer_bonds()
        assert all(len(o) == 0 for o in topology.nonbonding_orbitals())

    def test_too_few_bonds(self):
        with pytest.raises(ValueError, match="loose atoms"):
            carbon_chain(2).nonbonding_orbitals()


class TestBondedPaths:
    """Test angles and torsions."""

    def test_chain(self):
        topology = carbon_chain(4)
        assert topology.angles().tolist() == [[0, 1, 2], [1, 2, 3]]
        assert topology.torsions().tolist() == [[0, 1, 2, 3]]

    def test_methane_angles(self):
        topology = methane()
        topology.infer_bonds()
        angles = topology.angles()

        assert angles.shape == (6, 3)
        assert np.all(angles[:, 1] == 0)
        assert topology.torsions().shape == (0, 4)

    def test_overbonded_atom(self):
        atoms = [carbon(0, 0, 0)] + [hydrogen(i, 1, 0) for i in range(5)]
        topology = Topology(atoms=atoms, bonds=[(0, i) for i in range(1, 6)])
        with pytest.raises(ValueError, match="max 4"):
            topology.angles()


class TestTopologyExport:
    """Test tables and dictionaries."""

    def test_dataframe(self):
        topology = methane()
        topology.infer_bonds()
        df = topology.to_dataframe()

        assert list(df.columns) == ['element', 'atomic_number', 'x', 'y', 'z', 'bonds']
        assert df['element'].tolist() == ['carbon'] + ['hydrogen'] * 4
        assert df['bonds'].tolist() == [4, 1, 1, 1, 1]

    def test_dict_round_trip(self):
        topology = carbon_chain(3)
        rebuilt = Topology.from_dict(topology.to_dict())

        assert rebuilt.bonds.tolist() == topology.bonds.tolist()
        assert np.allclose(rebuilt.positions, topology.positions)
