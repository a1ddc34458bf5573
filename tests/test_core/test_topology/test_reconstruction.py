"""
Unit tests for surface reconstruction.

Tests:
- ReconstructionPolicy validation and thresholds
- HydrogenCollisionMap bookkeeping and detection
- Chain walking and chain shortening decisions
- Loose atom removal and validation
- Full reconstruction of a carved diamond slab
"""

import numpy as np
import pytest
from scipy.spatial import cKDTree

from nanolattice.core.elements import Element, Material
from nanolattice.core.entity import Entity
from nanolattice.core.lattice import Lattice
from nanolattice.core.topology import (
    CollisionAction,
    HydrogenCollisionMap,
    Reconstruction,
    ReconstructionError,
    ReconstructionPolicy,
    Topology,
)

BOND = CollisionAction.BOND
KEEP = CollisionAction.KEEP


def line_of_atoms(n, spacing=0.25):
    return Topology(atoms=[Entity([spacing * i, 0, 0], Element.CARBON) for i in range(n)])


def chain_map(atoms):
    """Collisions between consecutive atoms of ``atoms``."""
    collisions = HydrogenCollisionMap()
    for k, (a, b) in enumerate(zip(atoms[:-1], atoms[1:])):
        collisions.add((a, b), (1000 + 2 * k, 1001 + 2 * k))
    return collisions


def facing_pair():
    """Two carbons, each with one hydrogen pointing at the other."""
    atoms = [
        Entity([0, 0, 0], 'carbon'),
        Entity([0.25, 0, 0], 'carbon'),
        Entity([0.109, 0, 0], 'hydrogen'),
        Entity([0.141, 0, 0], 'hydrogen'),
    ]
    return Topology(atoms=atoms, bonds=[(0, 2), (1, 3)])


class TestReconstructionPolicy:
    """Test policy parameters."""

    def test_defaults(self):
        policy = ReconstructionPolicy()
        assert policy.collision_factor is None
        assert policy.minimum_bonds == 2
        assert (policy.bond_period, policy.bond_phase) == (4, 1)

    @pytest.mark.parametrize("kwargs", [
        {'collision_factor': 0.0},
        {'collision_factor': 1.2},
        {'minimum_bonds': 4},
        {'bond_period': 0},
        {'bond_phase': 4},
        {'bond_tolerance': -0.1},
        {'max_passes': 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ReconstructionPolicy(**kwargs)

    def test_carbon_threshold(self):
        policy = ReconstructionPolicy()
        assert np.isclose(policy.collision_threshold(6, 6), 0.53 * 0.1545)

    def test_mixed_threshold(self):
        policy = ReconstructionPolicy()
        expected = (0.53 + 0.64) / 2 * 0.1888
        assert np.isclose(policy.collision_threshold(Element.SILICON, Element.CARBON),
                          expected)

    def test_explicit_factor(self):
        policy = ReconstructionPolicy(collision_factor=0.5)
        assert np.isclose(policy.collision_threshold(14, 14), 0.5 * 0.2352)

    def test_no_default_factor(self):
        with pytest.raises(ValueError, match="collision factor"):
            ReconstructionPolicy().collision_threshold(Element.FLUORINE, Element.CARBON)

    @pytest.mark.policy
    def test_decide(self):
        policy = ReconstructionPolicy()
        assert [policy.decide(i) for i in (1, 3, 5, 7)] == [BOND, KEEP, BOND, KEEP]

    def test_dict_round_trip(self):
        policy = ReconstructionPolicy(collision_factor=0.6, bond_phase=3)
        assert ReconstructionPolicy.from_dict(policy.to_dict()) == policy

    def test_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown policy keys"):
            ReconstructionPolicy.from_dict({'temperature': 300})


class TestHydrogenCollisionMap:
    """Test collision bookkeeping."""

    def test_add_sorts_atoms(self):
        collisions = HydrogenCollisionMap()
        c = collisions.add((5, 2), (50, 20))

        assert collisions.collision_atoms[c] == (2, 5)
        assert collisions.collision_hydrogens[c] == (20, 50)
        assert collisions.other_atom(c, 2) == 5

    def test_degree_and_remove(self):
        collisions = chain_map([0, 1, 2])
        assert collisions.degree(1) == 2
        assert collisions.atoms() == [0, 1, 2]

        collisions.remove(0)
        assert len(collisions) == 1
        assert list(collisions.collisions()) == [1]
        assert collisions.degree(1) == 1
        assert collisions.atoms() == [1, 2]

    def test_other_atom_error(self):
        collisions = chain_map([0, 1])
        with pytest.raises(ValueError, match="not part of collision"):
            collisions.other_atom(0, 7)

    def test_detect_facing_pair(self):
        collisions = HydrogenCollisionMap.detect(facing_pair())

        assert len(collisions) == 1
        assert collisions.collision_atoms == [(0, 1)]
        assert collisions.collision_hydrogens == [(2, 3)]

    def test_detect_same_parent_ignored(self):
        atoms = [Entity([0, 0, 0], 'carbon'),
                 Entity([0.05, 0.1, 0], 'hydrogen'),
                 Entity([-0.05, 0.1, 0], 'hydrogen')]
        topology = Topology(atoms=atoms, bonds=[(0, 1), (0, 2)])
        assert len(HydrogenCollisionMap.detect(topology)) == 0

    def test_detect_unbonded_hydrogen(self):
        topology = facing_pair()
        topology.insert(atoms=[Entity([1, 1, 1], 'hydrogen')])
        with pytest.raises(ReconstructionError, match="expected 1"):
            HydrogenCollisionMap.detect(topology)

    def test_three_way_collision(self):
        topology = facing_pair()
        topology.insert(atoms=[Entity([0.125, 0.129, 0], 'carbon'),
                               Entity([0.125, 0.02, 0], 'hydrogen')],
                        bonds=[(4, 5)])
        with pytest.raises(ReconstructionError, match="3-way collision"):
            HydrogenCollisionMap.detect(topology)


@pytest.mark.policy
class TestWalkChains:
    """Test the first-pass decisions."""

    def test_alternation(self):
        """Oriented +x, collisions alternate bond, keep, bond, keep."""
        reconstruction = Reconstruction(line_of_atoms(5))
        decisions = reconstruction.walk_chains(chain_map([0, 1, 2, 3, 4]))
        assert [decisions[c] for c in range(4)] == [BOND, KEEP, BOND, KEEP]

    def test_orientation(self):
        """Reversing positions mirrors the pattern."""
        topology = line_of_atoms(5)
        for atom in topology.atoms:
            atom.position[0] *= -1
        decisions = Reconstruction(topology).walk_chains(chain_map([0, 1, 2, 3, 4]))
        assert [decisions[c] for c in range(4)] == [KEEP, BOND, KEEP, BOND]

    def test_single_collision_bonds(self):
        decisions = Reconstruction(line_of_atoms(2)).walk_chains(chain_map([0, 1]))
        assert decisions == {0: BOND}

    def test_rings_are_kept(self):
        decisions = Reconstruction(line_of_atoms(4)).walk_chains(chain_map([0, 1, 2, 3, 0]))
        assert len(decisions) == 4
        assert set(decisions.values()) == {KEEP}

    def test_branch_raises(self):
        collisions = HydrogenCollisionMap()
        for k, leaf in enumerate((1, 2, 3)):
            collisions.add((0, leaf), (10 + k, 20 + k))
        with pytest.raises(ReconstructionError, match="directions"):
            Reconstruction(line_of_atoms(4)).walk_chains(collisions)

    def test_runaway_chain(self):
        n = 1002
        with pytest.raises(ReconstructionError, match="did not end"):
            Reconstruction(line_of_atoms(n)).walk_chains(chain_map(list(range(n))))


class TestShortenChains:
    """Test the later-pass decisions."""

    def test_short_chain_fully_bonds(self):
        collisions = chain_map([0, 1, 2, 3])
        decisions = Reconstruction(line_of_atoms(4)).shorten_chains(collisions)

        assert decisions == {0: BOND, 1: BOND, 2: BOND}
        assert len(collisions) == 0

    def test_ring_is_kept(self):
        collisions = chain_map([0, 1, 2, 0])
        decisions = Reconstruction(line_of_atoms(3)).shorten_chains(collisions)
        assert set(decisions.values()) == {KEEP}


class TestReconstructionSteps:
    """Test individual pipeline steps."""

    def test_requires_topology(self):
        with pytest.raises(TypeError, match="Topology"):
            Reconstruction([Entity([0, 0, 0], 'carbon')])

    def test_remove_loose_atoms(self):
        """Removing chain ends loosens the middle atom."""
        topology = line_of_atoms(4, spacing=0.1545)
        topology.insert(bonds=[(0, 1), (1, 2)])
        removed = Reconstruction(topology).remove_loose_atoms()

        assert removed == 4
        assert topology.num_atoms == 0

    def test_regenerate_hydrogens(self):
        """A carbon with two hydrogens gets the other two back."""
        ch = 0.1090
        topology = Topology(atoms=[Entity([0, 0, 0], 'carbon'),
                                   Entity(ch * np.array([1, 1, 1]) / np.sqrt(3), 'hydrogen'),
                                   Entity(ch * np.array([1, -1, -1]) / np.sqrt(3), 'hydrogen')],
                            bonds=[(0, 1), (0, 2)])
        added = Reconstruction(topology).regenerate_hydrogens()

        assert added == 2
        assert topology.bond_counts().tolist() == [4, 1, 1, 1, 1]
        distances = np.linalg.norm(topology.positions[3:], axis=1)
        assert np.allclose(distances, ch)

    def test_strip_hydrogens(self):
        topology = facing_pair()
        assert Reconstruction(topology).strip_hydrogens() == 2
        assert topology.num_atoms == 2
        assert topology.num_bonds == 0

    def test_facing_pair_bonds(self):
        """Deciding does not touch the topology."""
        topology = facing_pair()
        reconstruction = Reconstruction(topology)
        collisions = reconstruction.detect_collisions()
        decisions = reconstruction.walk_chains(collisions)

        assert decisions == {0: BOND}
        assert topology.bonds.tolist() == [[0, 2], [1, 3]]

    def test_validate(self):
        reconstruction = Reconstruction(Topology(atoms=[Entity([0, 0, 0], 'carbon')]))
        with pytest.raises(ReconstructionError, match="do not have 4 bonds"):
            reconstruction.validate()


class TestSlabReconstruction:
    """Test the full pipeline on a carved diamond block."""

    @pytest.fixture(scope='class')
    def slab(self):
        lattice = Lattice('cubic', bounds=[10, 3, 2],
                          material=Material.elemental('carbon'))
        return Reconstruction.from_atoms(lattice.atoms).compile()

    def test_valences(self, slab):
        counts = slab.bond_counts()
        elements = slab.elements
        assert np.all(counts[elements == Element.CARBON] == 4)
        assert np.all(counts[elements == Element.HYDROGEN] == 1)

    def test_no_remaining_collisions(self, slab):
        hydrogens = slab.positions[slab.elements == Element.HYDROGEN]
        distances, _ = cKDTree(hydrogens).query(hydrogens, k=2)
        assert distances[:, 1].min() >= 0.53 * 0.1545

    def test_surface_dimers_formed(self, slab):
        """Some C-C bonds are longer than any bulk bond."""
        positions = slab.positions
        carbons = slab.elements == Element.CARBON
        lengths = [np.linalg.norm(positions[i] - positions[j])
                   for i, j in slab.bonds if carbons[i] and carbons[j]]
        assert max(lengths) > 0.1545 * 1.1

    def test_idempotent(self, slab):
        before = (slab.num_atoms, slab.num_bonds)
        again = Reconstruction(slab).compile()
        assert (again.num_atoms, again.num_bonds) == before

    def test_verbose(self):
        lattice = Lattice('cubic', bounds=[3, 2, 2],
                          material=Material.elemental('carbon'))
        topology = Reconstruction.from_atoms(lattice.atoms, verbose=True).compile()
        carbons = topology.elements == Element.CARBON
        assert np.all(topology.bond_counts()[carbons] == 4)
