"""
Preset lattice grids for tetrahedral crystals.

This module provides concrete implementations of AbstractLatticeGrid for:
- Cubic (diamond / zincblende) lattices
- Hexagonal (lonsdaleite / wurtzite-like) lattices
"""

import numpy as np
from enum import IntEnum
from typing import Dict, Sequence, Union

from ..elements import Material
from ..geometry import HH2KL_TO_XYZ, IDENTITY, SQRT3, ArrayLike, transform
from .base import AbstractLatticeGrid
from .cell import CUBIC_CELL, HEXAGONAL_CELL, CellTemplate
from ...utils.constants import BOUNDS_PADDING


class CubicGrid(AbstractLatticeGrid):
    """
    Diamond cubic lattice grid.

    Each cell is one conventional cubic unit cell with 8 sites: 4 on the FCC
    sublattice (even slots) and 4 on the sublattice shifted by a/4 along
    (1, 1, 1) (odd slots). A checkerboard material therefore produces the
    zincblende structure.

    Geometry
    --------
    Storage basis = h/k/l = XYZ (orthonormal).
    Lattice constant (for nearest-neighbour distance d):
        a = 4d / √3
    Carbon: a ≈ 0.3568 nm.

    Parameters
    ----------
    bounds : array_like, shape (3,)
        Size in cubic cells along h, k, l.
    material : Material
        Elemental or checkerboard occupancy.

    Examples
    --------
    >>> grid = CubicGrid(bounds=[2, 2, 2], material=Material.elemental('carbon'))
    >>> grid.dimensions
    (3, 3, 3)
    """

    @property
    def cell(self) -> CellTemplate:
        return CUBIC_CELL

    @property
    def storage_to_xyz(self) -> np.ndarray:
        return IDENTITY

    @property
    def lattice_constant(self) -> float:
        """Cubic cell edge in nm."""
        return 4 * self.material.bond_length / SQRT3

    @property
    def real_space_scale(self) -> np.ndarray:
        return np.full(3, self.lattice_constant)

    def _compute_dimensions(self, bounds: np.ndarray) -> Sequence[int]:
        return np.ceil(bounds + BOUNDS_PADDING).astype(int)

    def cell_corners(self) -> np.ndarray:
        grid = np.indices(self.dimensions, dtype=float)
        return np.moveaxis(grid, 0, -1)

    @classmethod
    def basis_vectors(cls) -> Dict[str, np.ndarray]:
        return {
            'h': np.array([1.0, 0.0, 0.0]),
            'k': np.array([0.0, 1.0, 0.0]),
            'l': np.array([0.0, 0.0, 1.0]),
        }


class HexagonalGridParity(IntEnum):
    """
    Which grid rows are staggered.

    The larger set of columns is typically half cut off at either cap.
    ``FIRST_ROW_STAGGERED`` is ``FIRST_ROW_ORIGIN`` plus one padding row at the
    bottom, which captures the atoms of the hexagonal zigzag on the lower
    (h + 2k) = 0 edge.
    """

    # First row is unshifted and has the larger column count.
    FIRST_ROW_ORIGIN = 0

    # First row is shifted by 1.5 h and sits half a row below the origin.
    FIRST_ROW_STAGGERED = 1


class HexagonalGrid(AbstractLatticeGrid):
    """
    Hexagonal (lonsdaleite-type) lattice grid.

    Sites are stored in a compressed basis (h, h + 2k, l), similar to "doubled"
    hexagon coordinates but halved and compressed along h. One cell holds two
    puckered six-rings (12 sites) stacked along l. Within a row, cells step 3
    along h; successive rows step 1/2 along (h + 2k), and every other row is
    shifted by 1.5 h, so staggered rows hold one fewer column.

    Geometry
    --------
    h       = (1, 0, 0)        (XYZ lattice units)
    k       = (-1/2, √3/2, 0)
    h + 2k  = (0, √3, 0)
    l       = (0, 0, 1)

    For nearest-neighbour distance d (ideal tetrahedra):
        a = d √(8/3)    (hexagon lattice constant, scales h and k)
        c = 8d / 3      (prism height, scales l)
    Carbon: a ≈ 0.2523 nm, c ≈ 0.4120 nm.

    Parameters
    ----------
    bounds : array_like, shape (3,)
        Extent along h, (h + 2k) and l.
    material : Material
        Elemental or checkerboard occupancy.
    parity : HexagonalGridParity, optional
        Default is FIRST_ROW_STAGGERED.

    Examples
    --------
    >>> h, k, l = (HexagonalGrid.basis_vectors()[key] for key in 'hkl')
    >>> grid = HexagonalGrid(bounds=6 * h + 4 * (h + 2 * k) + 2 * l,
    ...                      material=Material.elemental('carbon'))
    """

    def __init__(self,
                 bounds: ArrayLike,
                 material: Material,
                 parity: Union[HexagonalGridParity, int] =
                 HexagonalGridParity.FIRST_ROW_STAGGERED):
        self.parity = HexagonalGridParity(int(parity))
        super().__init__(bounds, material)

    @property
    def cell(self) -> CellTemplate:
        return HEXAGONAL_CELL

    @property
    def storage_to_xyz(self) -> np.ndarray:
        return HH2KL_TO_XYZ

    @property
    def hexagon_side_length(self) -> float:
        """Hexagonal lattice constant a, in nm."""
        return self.material.bond_length * np.sqrt(8.0 / 3.0)

    @property
    def prism_height(self) -> float:
        """Lattice constant c, in nm."""
        return self.material.bond_length * 8.0 / 3.0

    @property
    def real_space_scale(self) -> np.ndarray:
        a = self.hexagon_side_length
        return np.array([a, a, self.prism_height])

    def row_is_staggered(self, y: Union[int, np.ndarray]):
        """True for rows shifted by 1.5 h."""
        return (np.asarray(y) + int(self.parity)) % 2 == 1

    def _columns(self, staggered: bool) -> int:
        # A cell covers [start, start + 1] along h; it is needed when its
        # start lies inside the padded bound.
        shift = 1.5 if staggered else 0.0
        extent = self.bounds[0] + BOUNDS_PADDING - shift
        if extent < 0:
            return 0
        return int(np.floor(extent / 3.0)) + 1

    def _compute_dimensions(self, bounds: np.ndarray) -> Sequence[int]:
        nx = self._columns(staggered=False)
        ny = int(np.ceil(2 * bounds[1] + int(self.parity) + BOUNDS_PADDING))
        nz = int(np.ceil(bounds[2] + BOUNDS_PADDING))
        return nx, ny, nz

    def active_cells(self) -> np.ndarray:
        nx, ny, nz = self.dimensions
        columns = np.where(self.row_is_staggered(np.arange(ny)),
                           self._columns(staggered=True),
                           self._columns(staggered=False))
        x = np.arange(nx)[:, np.newaxis]
        active = x < columns[np.newaxis, :]
        return np.broadcast_to(active[:, :, np.newaxis], (nx, ny, nz)).copy()

    def cell_corners(self) -> np.ndarray:
        x, y, z = np.indices(self.dimensions, dtype=float)
        offset = np.where(self.row_is_staggered(y.astype(int)), 1.5, 0.0)
        corners = np.stack([
            3.0 * x + offset,
            (y - int(self.parity)) / 2.0,
            z,
        ], axis=-1)
        return transform(HH2KL_TO_XYZ, corners)

    @classmethod
    def basis_vectors(cls) -> Dict[str, np.ndarray]:
        return {
            'h': np.array([1.0, 0.0, 0.0]),
            'k': np.array([-0.5, 0.5, 0.0]),
            'l': np.array([0.0, 0.0, 1.0]),
            'h2k': np.array([0.0, 1.0, 0.0]),
        }

    def __repr__(self) -> str:
        return (f"HexagonalGrid(dimensions={self.dimensions}, "
                f"material={self.material}, parity={self.parity.name}, "
                f"atoms={self.num_atoms})")


# Lattice registry for config-based construction
LATTICE_REGISTRY = {
    'cubic': CubicGrid,
    'hexagonal': HexagonalGrid,
}


def create_lattice(lattice_type: str, **kwargs) -> AbstractLatticeGrid:
    """
    Factory function to create lattice grids from string names.

    Parameters
    ----------
    lattice_type : str
        Type of lattice ('cubic', 'hexagonal')
    **kwargs
        Arguments passed to the grid constructor
        (bounds, material, and for hexagonal grids, parity)

    Returns
    -------
    grid : AbstractLatticeGrid
        Instantiated lattice grid

    Examples
    --------
    >>> grid = create_lattice('cubic', bounds=[4, 4, 4],
    ...                       material=Material.elemental('carbon'))
    >>> isinstance(grid, CubicGrid)
    True

    Raises
    ------
    ValueError
        If lattice_type is not recognized
    """
    if lattice_type not in LATTICE_REGISTRY:
        available = ', '.join(LATTICE_REGISTRY.keys())
        raise ValueError(f"Unknown lattice type '{lattice_type}'. "
                        f"Available types: {available}")

    lattice_class = LATTICE_REGISTRY[lattice_type]
    return lattice_class(**kwargs)
