"""
Abstract base class for lattice grids.

A lattice grid owns a dense 3D array of cells. Every cell holds one entity
type per candidate site of the crystal system's cell template (0 = empty,
otherwise an atomic number). Grids are carved by masking sites against
half-spaces and replacing the masked-out sites, then flattened into atoms.

Everything that does not depend on the crystal system (initialization,
bounding, masking, replacement, flattening) lives here. Subclasses supply the
cell template, the dimension rule, the cell layout and the length scales.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ..elements import EMPTY, Element, Material
from ..entity import Entity
from ..geometry import ArrayLike, is_degenerate, signed_distance, transform
from .cell import CellTemplate, LatticeMask
from ...utils.constants import PLANE_EPSILON

_log = logging.getLogger(__name__)


class AbstractLatticeGrid(ABC):
    """
    Abstract base class for crystal lattice grids.

    Coordinates
    -----------
    Users describe bounds and planes in the grid's *storage basis* (for a
    cubic grid, h/k/l; for a hexagonal grid, h/(h + 2k)/l). Internally,
    planes are converted to orthonormal XYZ lattice units with
    ``storage_to_xyz`` and compared against site positions there. Real-space
    positions (nm) are XYZ lattice units multiplied by ``real_space_scale``.

    Lifecycle
    ---------
    1. ``__init__`` computes dimensions, fills every active cell with the
       material's repeating unit and intersects the grid with the six
       bounding half-spaces.
    2. ``replace`` carves the grid; it is the only mutator afterwards.
    3. ``entities`` / ``atoms`` flatten non-empty sites into atoms.

    Parameters
    ----------
    bounds : array_like, shape (3,)
        Extent along the three storage-basis directions, in lattice units.
    material : Material
        Elemental or checkerboard occupancy.

    Raises
    ------
    ValueError
        If any bound is negative or not finite.
    TypeError
        If ``material`` is not a Material.
    """

    def __init__(self, bounds: ArrayLike, material: Material):
        bounds = np.asarray(bounds, dtype=float).reshape(3)
        if not np.all(np.isfinite(bounds)):
            raise ValueError("Bounds must be finite")
        if np.any(bounds < 0):
            raise ValueError("Bounds must be non-negative")
        if not isinstance(material, Material):
            raise TypeError("material must be a Material instance")

        self.bounds = bounds
        self.material = material
        self.dimensions: Tuple[int, int, int] = tuple(
            int(d) for d in self._compute_dimensions(bounds))
        self._site_positions: Optional[np.ndarray] = None

        num_sites = self.cell.num_sites
        self.entity_types = np.empty(self.dimensions + (num_sites,),
                                     dtype=np.int8)
        self.entity_types[...] = material.repeating_unit(num_sites)
        self.entity_types[~self.active_cells()] = EMPTY

        self.initialize_bounds()
        _log.debug("Initialized %r", self)

    # ------------------------------------------------------------------
    # Crystal-system specifics
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def cell(self) -> CellTemplate:
        """Site template shared by every cell."""
        pass

    @property
    @abstractmethod
    def storage_to_xyz(self) -> np.ndarray:
        """Map from the storage basis to XYZ lattice units, shape (3, 3)."""
        pass

    @property
    @abstractmethod
    def real_space_scale(self) -> np.ndarray:
        """Per-axis factor from XYZ lattice units to nm, shape (3,)."""
        pass

    @abstractmethod
    def _compute_dimensions(self, bounds: np.ndarray) -> Sequence[int]:
        """Number of cells along each storage axis."""
        pass

    @abstractmethod
    def cell_corners(self) -> np.ndarray:
        """
        Lower corner of every cell.

        Returns
        -------
        corners : np.ndarray, shape (nx, ny, nz, 3)
            Corners in XYZ lattice units.
        """
        pass

    @classmethod
    @abstractmethod
    def basis_vectors(cls) -> Dict[str, np.ndarray]:
        """Named lattice directions expressed in the storage basis."""
        pass

    def active_cells(self) -> np.ndarray:
        """
        Cells that hold sites.

        Returns
        -------
        active : np.ndarray of bool, shape (nx, ny, nz)
            Default: every cell. Grids with ragged rows override this.
        """
        return np.ones(self.dimensions, dtype=bool)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def num_cells(self) -> int:
        return int(np.prod(self.dimensions))

    def site_positions(self) -> np.ndarray:
        """
        Position of every candidate site.

        Returns
        -------
        positions : np.ndarray, shape (nx, ny, nz, num_sites, 3)
            XYZ lattice units. Computed once and cached.
        """
        if self._site_positions is None:
            corners = self.cell_corners()
            self._site_positions = (corners[..., np.newaxis, :]
                                    + self.cell.positions)
        return self._site_positions

    def plane_to_xyz(self,
                     origin: ArrayLike,
                     normal: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """Convert a plane from the storage basis to XYZ lattice units."""
        return (transform(self.storage_to_xyz, origin),
                transform(self.storage_to_xyz, normal))

    def mask(self,
             origin: ArrayLike,
             normal: ArrayLike,
             epsilon: float = PLANE_EPSILON) -> LatticeMask:
        """
        Intersect every site of the grid with a half-space.

        Parameters
        ----------
        origin, normal : array_like, shape (3,)
            Plane in the storage basis. A zero normal is a no-op plane that
            includes everything.
        epsilon : float
            Boundary tolerance in XYZ lattice units.

        Returns
        -------
        mask : LatticeMask
            Shape (nx, ny, nz, num_sites); True in the one volume.

        Notes
        -----
        Equivalent to calling ``self.cell.intersect(origin - corner, normal)``
        for every cell, evaluated for all cells at once.
        """
        origin_xyz, normal_xyz = self.plane_to_xyz(origin, normal)
        shape = self.entity_types.shape
        if is_degenerate(normal_xyz):
            return LatticeMask.full(shape)

        distance = signed_distance(self.site_positions(), origin_xyz, normal_xyz)
        return LatticeMask(distance <= epsilon)

    def cell_mask(self,
                  index: Tuple[int, int, int],
                  origin: ArrayLike,
                  normal: ArrayLike,
                  epsilon: float = PLANE_EPSILON) -> np.ndarray:
        """Mask for a single cell, via the cell template."""
        origin_xyz, normal_xyz = self.plane_to_xyz(origin, normal)
        corner = self.cell_corners()[tuple(index)]
        return self.cell.intersect(origin_xyz - corner, normal_xyz, epsilon)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def replace(self, value: Union[Element, int], where: LatticeMask) -> int:
        """
        Overwrite entity types in the mask's zero volume.

        Parameters
        ----------
        value : Element or int
            New entity type; 0 empties the site.
        where : LatticeMask
            Sites that are *excluded* by this mask are overwritten. Included
            sites are left untouched. An element only replaces occupied
            sites, so substitution never grows the crystal.

        Returns
        -------
        changed : int
            Number of site slots whose value changed.
        """
        if where.shape != self.entity_types.shape:
            raise ValueError(
                f"Mask shape {where.shape} does not match grid "
                f"{self.entity_types.shape}")

        value = int(value)
        if value != EMPTY:
            Element(value)

        condition = where.excluded & self.active_cells()[..., np.newaxis]
        if value != EMPTY:
            condition &= self.entity_types != EMPTY
        changed = int(np.count_nonzero(self.entity_types[condition] != value))
        self.entity_types[condition] = value
        return changed

    def initialize_bounds(self) -> None:
        """Cut everything outside [0, bounds] along each storage axis."""
        for axis in range(3):
            normal = np.zeros(3)
            normal[axis] = -1.0
            self.replace(EMPTY, where=self.mask(np.zeros(3), normal))

            normal[axis] = 1.0
            origin = np.zeros(3)
            origin[axis] = self.bounds[axis]
            self.replace(EMPTY, where=self.mask(origin, normal))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @property
    def num_atoms(self) -> int:
        return int(np.count_nonzero(self.entity_types))

    def entities(self) -> Iterator[Entity]:
        """
        Lazily flatten the grid into atoms.

        Yields
        ------
        entity : Entity
            One per non-empty site, position in nm. Cells are visited with z
            outermost and x innermost; slots in template order. Each call
            starts a fresh traversal.
        """
        positions = self.site_positions() * self.real_space_scale
        nx, ny, nz = self.dimensions
        for z in range(nz):
            for y in range(ny):
                for x in range(nx):
                    cell = self.entity_types[x, y, z]
                    for slot in np.flatnonzero(cell):
                        yield Entity(position=positions[x, y, z, slot],
                                     element=Element(int(cell[slot])))

    @property
    def atoms(self) -> List[Entity]:
        """All atoms, as a list."""
        return list(self.entities())

    def __repr__(self) -> str:
        name = self.__class__.__name__
        return (f"{name}(dimensions={self.dimensions}, "
                f"material={self.material}, atoms={self.num_atoms})")
