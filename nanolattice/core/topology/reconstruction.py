"""
Surface reconstruction by hydrogen collision resolution.

Cutting a lattice leaves surface atoms with open valences. Filling every open
sp3 orbital with hydrogen is correct for most surfaces, but on (100)-like
faces the hydrogens of neighbouring atoms land almost on top of each other.
Those pairs are *collisions*. Each one is resolved either by bonding the two
parent atoms directly (a surface dimer, the hydrogens disappear) or by keeping
both hydrogens.

Collisions form chains along a surface: an atom with two colliding hydrogens
links two collisions, and an atom with one ends a chain. Pass 0 walks each
chain from one end and alternates bond/keep decisions along it. Later passes
bond any collision that sits at the free end of a chain, until nothing
changes. Finally every group IV atom must have exactly four bonds.

Pipeline
--------
1. strip hydrogens, infer bonds from distances
2. remove loose atoms (fewer than ``minimum_bonds`` bonds)
3. place hydrogens along nonbonding orbitals
4. detect collisions
5. decide (chain walk on pass 0, chain shortening afterwards)
6. apply: add bonds, regenerate hydrogens; repeat from 4
7. validate valences

Examples
--------
>>> lattice = Lattice('cubic', bounds=[10, 3, 2],
...                   material=Material.elemental('carbon'))
>>> reconstruction = Reconstruction.from_atoms(lattice.atoms)
>>> topology = reconstruction.compile()
"""

import logging
import numpy as np
from dataclasses import asdict, dataclass, fields
from enum import Enum
from scipy.spatial import cKDTree
from tqdm import tqdm
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..elements import LATTICE_ELEMENTS, Element, bond_length, max_bond_length
from ..entity import Entity
from .base import Topology
from ...utils.constants import (
    CHAIN_ORIENTATION_EPSILON,
    DEFAULT_BOND_PERIOD,
    DEFAULT_BOND_PHASE,
    DEFAULT_BOND_TOLERANCE,
    DEFAULT_COLLISION_FACTORS,
    DEFAULT_MAX_PASSES,
    DEFAULT_MINIMUM_BONDS,
    MAX_CHAIN_ITERATIONS,
)

_log = logging.getLogger(__name__)

_GROUP_IV = [int(element) for element in LATTICE_ELEMENTS]


class ReconstructionError(RuntimeError):
    """The bond graph cannot be repaired."""


class CollisionAction(Enum):
    """Resolution of one hydrogen collision."""

    # Bond the two parent atoms; both hydrogens go away.
    BOND = 'bond'

    # Leave both hydrogens in place.
    KEEP = 'keep'


@dataclass
class ReconstructionPolicy:
    """
    Tunable parameters of the reconstruction.

    Attributes
    ----------
    bond_tolerance : float
        Relative slack when inferring bonds from distances.
    collision_factor : float, optional
        Hydrogens collide when closer than this times the bond length of
        their parents. By default a per-element value is used (carbon 0.53,
        silicon 0.64, germanium 0.65); mixed pairs take the mean.
    minimum_bonds : int
        Group IV atoms with fewer bonds are removed before hydrogenation.
    bond_period, bond_phase : int
        Along an oriented chain [atom, collision, atom, ...], the collision
        at list index i bonds when ``i % bond_period == bond_phase``. This is
        a convention for picking one dimer pattern, not a chemical rule.
    max_passes : int
        Upper bound on detect/decide/apply passes.
    """
    bond_tolerance: float = DEFAULT_BOND_TOLERANCE
    collision_factor: Optional[float] = None
    minimum_bonds: int = DEFAULT_MINIMUM_BONDS
    bond_period: int = DEFAULT_BOND_PERIOD
    bond_phase: int = DEFAULT_BOND_PHASE
    max_passes: int = DEFAULT_MAX_PASSES

    def __post_init__(self):
        if self.bond_tolerance < 0:
            raise ValueError("bond_tolerance must be non-negative")
        if self.collision_factor is not None and not 0 < self.collision_factor < 1:
            raise ValueError("collision_factor must be between 0 and 1")
        if not 1 <= self.minimum_bonds <= 3:
            raise ValueError("minimum_bonds must be 1, 2 or 3")
        if self.bond_period < 1:
            raise ValueError("bond_period must be positive")
        if not 0 <= self.bond_phase < self.bond_period:
            raise ValueError("bond_phase must be in [0, bond_period)")
        if self.max_passes < 1:
            raise ValueError("max_passes must be positive")

    def collision_threshold(self, a: int, b: int) -> float:
        """
        Hydrogen separation (nm) below which hydrogens on atoms of elements
        ``a`` and ``b`` collide.
        """
        if self.collision_factor is not None:
            factor = self.collision_factor
        else:
            try:
                factor = (DEFAULT_COLLISION_FACTORS[int(a)]
                          + DEFAULT_COLLISION_FACTORS[int(b)]) / 2
            except KeyError:
                raise ValueError(
                    f"No default collision factor for element pair "
                    f"({int(a)}, {int(b)}); set collision_factor") from None
        return factor * bond_length(a, b)

    def decide(self, index: int) -> CollisionAction:
        """Action for the collision at list index ``index`` of a chain."""
        if index % self.bond_period == self.bond_phase:
            return CollisionAction.BOND
        return CollisionAction.KEEP

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ReconstructionPolicy':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown policy keys: {sorted(unknown)}")
        return cls(**data)


class HydrogenCollisionMap:
    """
    Colliding hydrogen pairs and the atoms that carry them.

    Collisions are numbered in detection order. Removing a collision keeps
    the numbering of the others.

    Attributes
    ----------
    collision_atoms : List[Tuple[int, int]]
        Parent atoms of each collision (sorted).
    collision_hydrogens : List[Tuple[int, int]]
        The two hydrogens of each collision, in ``collision_atoms`` order.
    atom_collisions : Dict[int, List[int]]
        Active collisions of each atom.
    """

    def __init__(self):
        self.collision_atoms: List[Tuple[int, int]] = []
        self.collision_hydrogens: List[Tuple[int, int]] = []
        self.atom_collisions: Dict[int, List[int]] = {}
        self._active: List[bool] = []

    def add(self, atoms: Tuple[int, int], hydrogens: Tuple[int, int]) -> int:
        """Record a collision. Returns its id."""
        (a, ha), (b, hb) = sorted(zip(atoms, hydrogens))
        collision = len(self.collision_atoms)
        self.collision_atoms.append((a, b))
        self.collision_hydrogens.append((ha, hb))
        self._active.append(True)
        self.atom_collisions.setdefault(a, []).append(collision)
        self.atom_collisions.setdefault(b, []).append(collision)
        return collision

    def remove(self, collision: int) -> None:
        """Drop a collision from the map."""
        if not self._active[collision]:
            return
        self._active[collision] = False
        for atom in self.collision_atoms[collision]:
            remaining = [c for c in self.atom_collisions[atom] if c != collision]
            if remaining:
                self.atom_collisions[atom] = remaining
            else:
                del self.atom_collisions[atom]

    def collisions(self) -> Iterator[int]:
        """Ids of active collisions."""
        return (c for c, active in enumerate(self._active) if active)

    def atoms(self) -> List[int]:
        """Atoms with at least one active collision, sorted."""
        return sorted(self.atom_collisions)

    def collisions_of(self, atom: int) -> List[int]:
        return list(self.atom_collisions.get(atom, []))

    def degree(self, atom: int) -> int:
        return len(self.atom_collisions.get(atom, []))

    def other_atom(self, collision: int, atom: int) -> int:
        a, b = self.collision_atoms[collision]
        if atom == a:
            return b
        if atom == b:
            return a
        raise ValueError(f"Atom {atom} is not part of collision {collision}")

    @classmethod
    def detect(cls,
               topology: Topology,
               policy: Optional[ReconstructionPolicy] = None) -> 'HydrogenCollisionMap':
        """
        Find hydrogen pairs closer than ``policy.collision_threshold`` of
        their parent atoms.

        Raises
        ------
        ReconstructionError
            If a hydrogen is not bonded to exactly one atom, or takes part in
            more than one collision.
        """
        result = cls()
        elements = topology.elements
        hydrogens = np.flatnonzero(elements == Element.HYDROGEN)
        if len(hydrogens) < 2:
            return result

        neighbors = topology.map_atoms_to_atoms()
        parents = {}
        for h in map(int, hydrogens):
            if len(neighbors[h]) != 1:
                raise ReconstructionError(
                    f"Hydrogen {h} has {len(neighbors[h])} bonds, expected 1")
            parents[h] = neighbors[h][0]

        positions = topology.positions
        tree = cKDTree(positions[hydrogens])
        policy = policy or ReconstructionPolicy()
        cutoff = max_bond_length()

        hits: Dict[int, int] = {}
        for i, j in sorted(tree.query_pairs(r=cutoff)):
            ha, hb = int(hydrogens[i]), int(hydrogens[j])
            pa, pb = parents[ha], parents[hb]
            if pa == pb:
                continue
            limit = policy.collision_threshold(elements[pa], elements[pb])
            if np.linalg.norm(positions[ha] - positions[hb]) >= limit:
                continue

            for h in (ha, hb):
                hits[h] = hits.get(h, 0) + 1
                if hits[h] > 1:
                    raise ReconstructionError(
                        f"3-way collision at hydrogen {h} (atom {parents[h]})")
            result.add((pa, pb), (ha, hb))

        return result

    def __len__(self) -> int:
        return sum(self._active)

    def __repr__(self) -> str:
        return (f"HydrogenCollisionMap(collisions={len(self)}, "
                f"atoms={len(self.atom_collisions)})")


class Reconstruction:
    """
    Repairs the surface of a carved lattice.

    Parameters
    ----------
    topology : Topology
        Modified in place. Usually just atoms, without bonds.
    policy : ReconstructionPolicy, optional
    verbose : bool
        Show a progress bar over passes.

    Raises
    ------
    TypeError
        If ``topology`` is not a Topology.
    """

    def __init__(self,
                 topology: Topology,
                 policy: Optional[ReconstructionPolicy] = None,
                 verbose: bool = False):
        if not isinstance(topology, Topology):
            raise TypeError("topology must be a Topology instance")
        self.topology = topology
        self.policy = policy or ReconstructionPolicy()
        self.verbose = verbose

    @classmethod
    def from_atoms(cls,
                   atoms: Iterable[Entity],
                   policy: Optional[ReconstructionPolicy] = None,
                   verbose: bool = False) -> 'Reconstruction':
        return cls(Topology(atoms=atoms), policy=policy, verbose=verbose)

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    def strip_hydrogens(self) -> int:
        """Remove every hydrogen. Returns the number removed."""
        hydrogens = np.flatnonzero(self.topology.elements == Element.HYDROGEN)
        if len(hydrogens):
            self.topology.remove_atoms(hydrogens)
        return len(hydrogens)

    def infer_bonds(self) -> int:
        return self.topology.infer_bonds(tolerance=self.policy.bond_tolerance)

    def remove_loose_atoms(self) -> int:
        """
        Strip group IV atoms that are barely attached.

        For each threshold 1, 2, ..., ``minimum_bonds``, atoms with fewer
        bonds than the threshold are removed until none are left. Removing
        one atom can loosen its neighbours, hence the repetition.

        Returns
        -------
        removed : int
        """
        removed = 0
        for threshold in range(1, self.policy.minimum_bonds + 1):
            while True:
                counts = self.topology.bond_counts()
                group_iv = np.isin(self.topology.elements, _GROUP_IV)
                loose = np.flatnonzero(group_iv & (counts < threshold))
                if len(loose) == 0:
                    break
                self.topology.remove_atoms(loose)
                removed += len(loose)
        if removed:
            _log.info("Removed %d loose atoms", removed)
        return removed

    def regenerate_hydrogens(self) -> int:
        """
        Cap every nonbonding orbital with a hydrogen.

        Returns
        -------
        added : int
            Number of hydrogens placed.
        """
        topology = self.topology
        orbitals = topology.nonbonding_orbitals()
        positions = topology.positions
        elements = topology.elements

        first = topology.num_atoms
        atoms, bonds = [], []
        for i, directions in enumerate(orbitals):
            if len(directions) == 0:
                continue
            length = bond_length(elements[i], Element.HYDROGEN)
            for direction in directions:
                bonds.append((i, first + len(atoms)))
                atoms.append(Entity(positions[i] + length * direction,
                                    Element.HYDROGEN))

        topology.insert(atoms=atoms, bonds=bonds)
        return len(atoms)

    def prepare(self) -> None:
        """Steps 1-3: bonds, cleanup and a first set of hydrogens."""
        self.strip_hydrogens()
        bonds = self.infer_bonds()
        self.remove_loose_atoms()
        hydrogens = self.regenerate_hydrogens()
        _log.info("Prepared %d atoms: %d inferred bonds, %d hydrogens",
                  self.topology.num_atoms, bonds, hydrogens)

    # ------------------------------------------------------------------
    # Collisions
    # ------------------------------------------------------------------

    def detect_collisions(self) -> HydrogenCollisionMap:
        return HydrogenCollisionMap.detect(self.topology, self.policy)

    def _walk(self, collisions: HydrogenCollisionMap, start: int) -> List[int]:
        # Interleaved list: atom, collision, atom, ..., atom.
        chain = [start]
        atom, previous = start, None
        for _ in range(MAX_CHAIN_ITERATIONS):
            options = [c for c in collisions.collisions_of(atom) if c != previous]
            if not options:
                return chain
            if len(options) > 1:
                raise ReconstructionError(
                    f"Atom {atom} continues a collision chain in "
                    f"{len(options)} directions")
            previous = options[0]
            atom = collisions.other_atom(previous, atom)
            chain.extend([previous, atom])
        raise ReconstructionError(
            f"Collision chain from atom {start} did not end within "
            f"{MAX_CHAIN_ITERATIONS} iterations")

    def _orient(self, chain: List[int]) -> List[int]:
        positions = self.topology.positions
        delta = positions[chain[-1]] - positions[chain[0]]
        for component in delta:
            if abs(component) > CHAIN_ORIENTATION_EPSILON:
                return chain[::-1] if component < 0 else chain
        return chain

    def walk_chains(self,
                    collisions: HydrogenCollisionMap) -> Dict[int, CollisionAction]:
        """
        Decide every collision by walking chains from their ends.

        Chains are oriented so that the first significant coordinate
        difference (x, then y, then z) from the first atom to the last is
        positive. A chain of one collision always bonds; longer chains follow
        ``policy.decide``. Closed rings have no end and are kept.

        Returns
        -------
        decisions : Dict[int, CollisionAction]
            One entry per active collision.
        """
        decisions: Dict[int, CollisionAction] = {}
        for start in collisions.atoms():
            if collisions.degree(start) != 1:
                continue
            if collisions.collisions_of(start)[0] in decisions:
                continue

            chain = self._orient(self._walk(collisions, start))
            if len(chain) == 3:
                decisions[chain[1]] = CollisionAction.BOND
                continue
            for index in range(1, len(chain), 2):
                decisions[chain[index]] = self.policy.decide(index)
            _log.debug("Chain of %d collisions from atom %d",
                       len(chain) // 2, chain[0])

        rings = [c for c in collisions.collisions() if c not in decisions]
        if rings:
            _log.warning("Skipped %d collisions in closed rings", len(rings))
        for collision in rings:
            decisions[collision] = CollisionAction.KEEP
        return decisions

    def shorten_chains(self,
                       collisions: HydrogenCollisionMap) -> Dict[int, CollisionAction]:
        """
        Bond collisions at the free ends of chains until nothing changes.

        A side is *free* when its atom has no other collision and
        *constrained* when it has one more. A collision bonds when one side
        is free and the other is free or constrained. Bonded collisions leave
        the map, which can free up their neighbours for the next round.
        Within a round an atom takes part in at most one new bond.

        Returns
        -------
        decisions : Dict[int, CollisionAction]
            BOND for shortened collisions, KEEP for the rest.
        """
        decisions: Dict[int, CollisionAction] = {}
        while True:
            selected, locked = [], set()
            for collision in list(collisions.collisions()):
                a, b = collisions.collision_atoms[collision]
                if a in locked or b in locked:
                    continue
                da, db = collisions.degree(a), collisions.degree(b)
                if (da == 1 and db <= 2) or (db == 1 and da <= 2):
                    selected.append(collision)
                    locked.update((a, b))
            if not selected:
                break
            for collision in selected:
                decisions[collision] = CollisionAction.BOND
                collisions.remove(collision)

        remaining = list(collisions.collisions())
        if remaining:
            _log.warning("%d collisions could not be shortened", len(remaining))
        for collision in remaining:
            decisions[collision] = CollisionAction.KEEP
        return decisions

    def apply(self,
              collisions: HydrogenCollisionMap,
              decisions: Dict[int, CollisionAction]) -> int:
        """
        Form every BOND decision at once, then rebuild the hydrogens.

        Returns
        -------
        formed : int
            Number of new bonds.
        """
        bonds = [collisions.collision_atoms[c]
                 for c, action in sorted(decisions.items())
                 if action is CollisionAction.BOND]
        if not bonds:
            return 0

        formed = self.topology.insert(bonds=bonds)
        self.strip_hydrogens()
        self.regenerate_hydrogens()
        return formed

    def validate(self) -> None:
        """
        Raises
        ------
        ReconstructionError
            If any group IV atom does not have exactly four bonds.
        """
        counts = self.topology.bond_counts()
        group_iv = np.isin(self.topology.elements, _GROUP_IV)
        bad = np.flatnonzero(group_iv & (counts != 4))
        if len(bad):
            first = int(bad[0])
            raise ReconstructionError(
                f"{len(bad)} group IV atoms do not have 4 bonds "
                f"(atom {first} has {counts[first]})")

    def compile(self, max_passes: Optional[int] = None) -> Topology:
        """
        Run the whole pipeline.

        Parameters
        ----------
        max_passes : int, optional
            Overrides ``policy.max_passes``.

        Returns
        -------
        topology : Topology
            The repaired topology (same object as ``self.topology``).

        Notes
        -----
        Running ``compile`` again on its own output changes nothing.
        """
        if max_passes is None:
            max_passes = self.policy.max_passes

        self.prepare()

        passes = range(max_passes)
        if self.verbose:
            passes = tqdm(passes, desc="Reconstruction passes")

        for index in passes:
            collisions = self.detect_collisions()
            count = len(collisions)
            if count == 0:
                break

            if index == 0:
                decisions = self.walk_chains(collisions)
            else:
                decisions = self.shorten_chains(collisions)

            formed = self.apply(collisions, decisions)
            _log.info("Pass %d: %d collisions, %d bonds formed",
                      index, count, formed)
            if formed == 0:
                _log.warning("%d collisions left unresolved", count)
                break

        self.validate()
        return self.topology

    def __repr__(self) -> str:
        return f"Reconstruction({self.topology!r}, policy={self.policy})"
