"""
Cell site templates and half-space masks.

A cell template is the fixed set of candidate atom sites inside one repeating
unit of a crystal system. Intersecting a template with a plane yields a mask
with one flag per site: True when the site is in the plane's "one" volume
(signed distance <= epsilon, i.e. on or behind the plane), False when it is
in the "zero" volume the normal points into.

Degenerate planes (zero normal) include every site. Callers generate them
when a bounding direction collapses, and they must act as a no-op.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Tuple

from ..geometry import (
    IDENTITY,
    HKL_TO_XYZ,
    ArrayLike,
    is_degenerate,
    signed_distance,
    transform,
)
from ...utils.constants import PLANE_EPSILON


@dataclass(frozen=True, eq=False)
class CellTemplate:
    """
    Candidate sites of one unit cell.

    Attributes
    ----------
    name : str
        Crystal system label.
    sites : np.ndarray, shape (num_sites, 3)
        Site offsets from the cell's lower corner, in the template's basis.
    basis : np.ndarray, shape (3, 3)
        Map from the template basis to XYZ lattice units.
    """
    name: str
    sites: np.ndarray
    basis: np.ndarray = field(default_factory=lambda: IDENTITY.copy())

    @property
    def num_sites(self) -> int:
        return len(self.sites)

    @property
    def positions(self) -> np.ndarray:
        """Site offsets in XYZ lattice units, shape (num_sites, 3)."""
        return transform(self.basis, self.sites)

    def intersect(self,
                  origin: ArrayLike,
                  normal: ArrayLike,
                  epsilon: float = PLANE_EPSILON) -> np.ndarray:
        """Shortcut for :func:`intersect` on this template."""
        return intersect(self, origin, normal, epsilon)


def intersect(template: CellTemplate,
              origin: ArrayLike,
              normal: ArrayLike,
              epsilon: float = PLANE_EPSILON) -> np.ndarray:
    """
    Mask the sites of one cell against a half-space.

    Parameters
    ----------
    template : CellTemplate
        Cell whose lower corner sits at the XYZ origin.
    origin, normal : array_like, shape (3,)
        Plane in XYZ lattice units, relative to the cell's lower corner.
    epsilon : float
        Boundary tolerance in lattice units.

    Returns
    -------
    mask : np.ndarray of bool, shape (num_sites,)
        True for sites in the one volume.
    """
    if is_degenerate(normal):
        return np.ones(template.num_sites, dtype=bool)
    return signed_distance(template.positions, origin, normal) <= epsilon


# Diamond cubic, in quarters of the cubic lattice constant. Even slots are the
# FCC sublattice, odd slots the sublattice shifted by (1/4, 1/4, 1/4).
_CUBIC_QUARTERS = np.array([
    [0, 0, 0], [1, 1, 1],
    [0, 2, 2], [1, 3, 3],
    [2, 0, 2], [3, 1, 3],
    [2, 2, 0], [3, 3, 1],
], dtype=float)

CUBIC_CELL = CellTemplate(
    name='cubic',
    sites=_CUBIC_QUARTERS / 4,
)

# Lonsdaleite-type, in (h/3, k/3, l/8). Two puckered six-rings: the lower ring
# at l = 0 and 1/8, the upper ring at l = 1/2 and 5/8. The upper ring starts
# above slot 1 so that every bond (in-ring, vertical, and to neighbouring
# cells) joins an even slot to an odd slot.
_HEXAGONAL_THIRDS = np.array([
    [2, 1, 0], [4, 2, 1], [5, 4, 0], [4, 5, 1], [2, 4, 0], [1, 2, 1],
    [4, 2, 4], [5, 4, 5], [4, 5, 4], [2, 4, 5], [1, 2, 4], [2, 1, 5],
], dtype=float)

HEXAGONAL_CELL = CellTemplate(
    name='hexagonal',
    sites=_HEXAGONAL_THIRDS / np.array([3.0, 3.0, 8.0]),
    basis=HKL_TO_XYZ,
)


class LatticeMask:
    """
    Per-site inclusion flags for every cell of a grid.

    Wraps a boolean array of shape ``(nx, ny, nz, num_sites)``. Masks combine
    with ``&`` (intersection of one volumes, i.e. Convex) and ``|`` (union,
    i.e. Concave).

    Parameters
    ----------
    included : np.ndarray of bool
        True where a site is in the one volume.
    """

    def __init__(self, included: np.ndarray):
        self.included = np.asarray(included, dtype=bool)

    @classmethod
    def full(cls, shape: Tuple[int, ...]) -> 'LatticeMask':
        """Mask that includes every site."""
        return cls(np.ones(shape, dtype=bool))

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.included.shape

    @property
    def excluded(self) -> np.ndarray:
        return ~self.included

    def count(self) -> int:
        """Number of included sites."""
        return int(np.count_nonzero(self.included))

    def _check(self, other: 'LatticeMask') -> None:
        if not isinstance(other, LatticeMask):
            raise TypeError("Can only combine LatticeMask with LatticeMask")
        if other.shape != self.shape:
            raise ValueError(
                f"Mask shape mismatch: {self.shape} vs {other.shape}")

    def __and__(self, other: 'LatticeMask') -> 'LatticeMask':
        self._check(other)
        return LatticeMask(self.included & other.included)

    def __or__(self, other: 'LatticeMask') -> 'LatticeMask':
        self._check(other)
        return LatticeMask(self.included | other.included)

    def __invert__(self) -> 'LatticeMask':
        return LatticeMask(~self.included)

    def __eq__(self, other) -> bool:
        return (isinstance(other, LatticeMask)
                and other.shape == self.shape
                and bool(np.array_equal(self.included, other.included)))

    def __repr__(self) -> str:
        return f"LatticeMask(shape={self.shape}, included={self.count()})"
