"""
Atoms plus bonds.

A topology owns a mutable list of atoms and an array of bonds (sorted index
pairs). Bonds always reference valid atoms and are never duplicated; removing
atoms shifts the indices of the bonds that survive.
"""

import logging
import numpy as np
import pandas as pd
from scipy.spatial import cKDTree
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..elements import Element, bond_length, max_bond_length, natural_valence
from ..entity import Entity
from ...utils.constants import DEFAULT_BOND_TOLERANCE, TETRAHEDRAL_ANGLE

_log = logging.getLogger(__name__)


def _normalize(vectors: np.ndarray) -> np.ndarray:
    return vectors / np.linalg.norm(vectors, axis=-1, keepdims=True)


def _covalent_length(a: int, b: int) -> Optional[float]:
    try:
        return bond_length(a, b)
    except ValueError:
        return None


class Topology:
    """
    Mutable atom and bond lists.

    Parameters
    ----------
    atoms : iterable of Entity, optional
    bonds : iterable of (int, int), optional
        Index pairs into ``atoms``.

    Attributes
    ----------
    atoms : List[Entity]
    bonds : np.ndarray of int, shape (num_bonds, 2)
        Each row sorted ascending; rows unique.

    Examples
    --------
    >>> topology = Topology(atoms=lattice.atoms)
    >>> topology.infer_bonds()
    >>> len(topology.bonds)
    """

    def __init__(self,
                 atoms: Optional[Iterable[Entity]] = None,
                 bonds: Optional[Iterable[Tuple[int, int]]] = None):
        self.atoms: List[Entity] = []
        self.bonds = np.empty((0, 2), dtype=np.int64)
        self.insert(atoms=atoms or (), bonds=bonds or ())

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def num_atoms(self) -> int:
        return len(self.atoms)

    @property
    def num_bonds(self) -> int:
        return len(self.bonds)

    @property
    def positions(self) -> np.ndarray:
        """Atom positions in nm, shape (num_atoms, 3)."""
        if not self.atoms:
            return np.empty((0, 3))
        return np.array([atom.position for atom in self.atoms])

    @property
    def elements(self) -> np.ndarray:
        """Atomic numbers, shape (num_atoms,)."""
        return np.array([atom.atomic_number for atom in self.atoms], dtype=np.int64)

    def bond_counts(self) -> np.ndarray:
        """Number of bonds on each atom."""
        return np.bincount(self.bonds.ravel(), minlength=self.num_atoms)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def insert(self,
               atoms: Iterable[Entity] = (),
               bonds: Iterable[Tuple[int, int]] = ()) -> int:
        """
        Append atoms, then bonds.

        Bond indices may refer to the atoms added in the same call. Bonds
        that already exist are skipped.

        Returns
        -------
        added : int
            Number of new bonds.

        Raises
        ------
        TypeError
            If an atom is not an Entity.
        ValueError
            If a bond is out of range or joins an atom to itself.
        """
        for atom in atoms:
            if not isinstance(atom, Entity):
                raise TypeError(f"Expected Entity, got {type(atom).__name__}")
            self.atoms.append(atom)

        new = np.asarray(list(bonds), dtype=np.int64).reshape(-1, 2)
        if len(new) == 0:
            return 0

        if np.any(new < 0) or np.any(new >= self.num_atoms):
            raise ValueError(
                f"Bond index out of range for {self.num_atoms} atoms")
        if np.any(new[:, 0] == new[:, 1]):
            raise ValueError("An atom cannot bond to itself")

        new = np.sort(new, axis=1)
        existing = {tuple(bond) for bond in self.bonds.tolist()}
        rows = []
        for bond in map(tuple, new.tolist()):
            if bond not in existing:
                existing.add(bond)
                rows.append(bond)

        if rows:
            self.bonds = np.concatenate(
                [self.bonds, np.array(rows, dtype=np.int64)])
        return len(rows)

    def remove_atoms(self, indices: Iterable[int]) -> np.ndarray:
        """
        Delete atoms and every bond that touches them.

        Returns
        -------
        mapping : np.ndarray of int, shape (old_num_atoms,)
            New index of each old atom, -1 for removed atoms.
        """
        keep = np.ones(self.num_atoms, dtype=bool)
        indices = np.asarray(list(indices), dtype=np.int64)
        if np.any(indices < 0) or np.any(indices >= self.num_atoms):
            raise ValueError(
                f"Atom index out of range for {self.num_atoms} atoms")
        keep[indices] = False

        mapping = np.full(self.num_atoms, -1, dtype=np.int64)
        mapping[keep] = np.arange(np.count_nonzero(keep))

        bonds_kept = keep[self.bonds].all(axis=1)
        self.bonds = mapping[self.bonds[bonds_kept]].reshape(-1, 2)
        self.atoms = [atom for atom, k in zip(self.atoms, keep) if k]
        return mapping

    def remove_bonds(self, indices: Iterable[int]) -> None:
        """Delete bonds by row index."""
        indices = np.asarray(list(indices), dtype=np.int64)
        if np.any(indices < 0) or np.any(indices >= self.num_bonds):
            raise ValueError(
                f"Bond index out of range for {self.num_bonds} bonds")
        keep = np.ones(self.num_bonds, dtype=bool)
        keep[indices] = False
        self.bonds = self.bonds[keep]

    # ------------------------------------------------------------------
    # Neighbour search
    # ------------------------------------------------------------------

    def match(self,
              source: Optional[Sequence[Entity]] = None,
              target: Optional[Sequence[Entity]] = None,
              algorithm: str = 'covalent',
              scale: float = 1 + DEFAULT_BOND_TOLERANCE,
              radius: Optional[float] = None) -> List[np.ndarray]:
        """
        Find target atoms close to each source atom.

        Parameters
        ----------
        source, target : sequence of Entity, optional
            Default to this topology's atoms. When both are omitted, an atom
            never matches itself.
        algorithm : str
            'covalent': distance <= scale * covalent length of the pair.
            Pairs with no tabulated length never match.
            'absolute': distance <= radius (nm).
        scale : float
            Multiplier for 'covalent'.
        radius : float, optional
            Cutoff for 'absolute'.

        Returns
        -------
        matches : List[np.ndarray]
            Sorted target indices for each source atom.
        """
        same = source is None and target is None
        source = self.atoms if source is None else list(source)
        target = self.atoms if target is None else list(target)
        if not source or not target:
            return [np.empty(0, dtype=np.int64) for _ in source]

        source_pos = np.array([atom.position for atom in source])
        target_pos = np.array([atom.position for atom in target])
        source_el = [atom.atomic_number for atom in source]
        target_el = [atom.atomic_number for atom in target]

        if algorithm == 'covalent':
            cutoff = scale * max_bond_length()
        elif algorithm == 'absolute':
            if radius is None or radius <= 0:
                raise ValueError("'absolute' matching needs a positive radius")
            cutoff = radius
        else:
            raise ValueError(f"Unknown matching algorithm '{algorithm}'. "
                             f"Available: covalent, absolute")

        tree = cKDTree(target_pos)
        candidates = tree.query_ball_point(source_pos, r=cutoff)
        lengths: Dict[Tuple[int, int], Optional[float]] = {}

        matches = []
        for i, neighbors in enumerate(candidates):
            kept = []
            for j in neighbors:
                if same and i == j:
                    continue
                if algorithm == 'covalent':
                    key = (source_el[i], target_el[j])
                    if key not in lengths:
                        lengths[key] = _covalent_length(*key)
                    length = lengths[key]
                    if length is None:
                        continue
                    distance = np.linalg.norm(target_pos[j] - source_pos[i])
                    if distance > scale * length:
                        continue
                kept.append(j)
            matches.append(np.array(sorted(kept), dtype=np.int64))
        return matches

    def infer_bonds(self, tolerance: float = DEFAULT_BOND_TOLERANCE) -> int:
        """
        Bond every pair closer than (1 + tolerance) times its covalent length.

        Existing bonds are kept. Hydrogen pairs never bond.

        Returns
        -------
        added : int
            Number of new bonds.
        """
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")

        elements = self.elements
        pairs = []
        for i, neighbors in enumerate(self.match(scale=1 + tolerance)):
            for j in neighbors[neighbors > i]:
                if elements[i] == Element.HYDROGEN and elements[j] == Element.HYDROGEN:
                    continue
                pairs.append((i, int(j)))

        added = self.insert(bonds=pairs)
        _log.debug("Inferred %d bonds among %d atoms", added, self.num_atoms)
        return added

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def map_atoms_to_bonds(self) -> List[List[int]]:
        """Bond row indices touching each atom."""
        result: List[List[int]] = [[] for _ in range(self.num_atoms)]
        for b, (i, j) in enumerate(self.bonds.tolist()):
            result[i].append(b)
            result[j].append(b)
        return result

    def map_atoms_to_atoms(self) -> List[List[int]]:
        """Bonded neighbours of each atom, in bond order."""
        result: List[List[int]] = [[] for _ in range(self.num_atoms)]
        for i, j in self.bonds.tolist():
            result[i].append(j)
            result[j].append(i)
        return result

    def nonbonding_orbitals(self) -> List[np.ndarray]:
        """
        Open sp3 directions of every atom.

        Returns
        -------
        orbitals : List[np.ndarray]
            Unit vectors, shape (k, 3) per atom. Group IV atoms with 3 bonds
            get one orbital (opposite the sum of the bond directions); with 2
            bonds they get two, splitting the bisector at the tetrahedral
            angle; with 4 or more bonds none. Other elements get none.

        Raises
        ------
        ValueError
            If a group IV atom has fewer than 2 bonds.
        """
        positions = self.positions
        elements = self.elements
        neighbors = self.map_atoms_to_atoms()
        half = TETRAHEDRAL_ANGLE / 2

        orbitals = []
        for i, bonded in enumerate(neighbors):
            if natural_valence(elements[i]) != 4 or len(bonded) >= 4:
                orbitals.append(np.empty((0, 3)))
                continue
            if len(bonded) < 2:
                raise ValueError(
                    f"Atom {i} has {len(bonded)} bonds; remove loose atoms "
                    f"before placing orbitals")

            directions = _normalize(positions[bonded] - positions[i])
            if len(bonded) == 3:
                orbital = -_normalize(directions.sum(axis=0))
                orbitals.append(orbital[np.newaxis, :])
            else:
                bisector = -_normalize(directions.sum(axis=0))
                perpendicular = _normalize(np.cross(directions[0], directions[1]))
                orbitals.append(np.stack([
                    bisector * np.cos(half) + perpendicular * np.sin(half),
                    bisector * np.cos(half) - perpendicular * np.sin(half),
                ]))
        return orbitals

    def _bonded_paths(self, length: int) -> np.ndarray:
        # Depth-first enumeration of simple paths with ``length`` atoms, using
        # an explicit stack. Each path is reported once, oriented so the first
        # atom has the lower index.
        neighbors = self.map_atoms_to_atoms()
        for i, bonded in enumerate(neighbors):
            if len(bonded) > 4:
                raise ValueError(f"Atom {i} has {len(bonded)} bonds (max 4)")

        paths = []
        for start in range(self.num_atoms):
            stack = [(start,)]
            while stack:
                path = stack.pop()
                if len(path) == length:
                    if path[0] < path[-1]:
                        paths.append(path)
                    continue
                for nxt in neighbors[path[-1]]:
                    if nxt not in path:
                        stack.append(path + (nxt,))

        if not paths:
            return np.empty((0, length), dtype=np.int64)
        return np.array(sorted(paths), dtype=np.int64)

    def angles(self) -> np.ndarray:
        """Unique bonded triples (i, j, k), j central, shape (n, 3)."""
        return self._bonded_paths(3)

    def torsions(self) -> np.ndarray:
        """Unique bonded quadruples (i, j, k, l), shape (n, 4)."""
        return self._bonded_paths(4)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """Atom table with element, position (nm) and bond count."""
        positions = self.positions
        return pd.DataFrame({
            'element': [atom.element.name.lower() for atom in self.atoms],
            'atomic_number': self.elements,
            'x': positions[:, 0],
            'y': positions[:, 1],
            'z': positions[:, 2],
            'bonds': self.bond_counts(),
        })

    def to_dict(self) -> Dict:
        return {
            'atoms': [atom.to_dict() for atom in self.atoms],
            'bonds': self.bonds.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Topology':
        return cls(atoms=[Entity.from_dict(atom) for atom in data.get('atoms', [])],
                   bonds=[tuple(bond) for bond in data.get('bonds', [])])

    def __repr__(self) -> str:
        return f"Topology(atoms={self.num_atoms}, bonds={self.num_bonds})"
