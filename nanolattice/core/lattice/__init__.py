"""
Lattice geometry module.

This module generates and carves tetrahedral crystal lattices. Grids hold
entity types only; bonds are added later by the topology module.

Available grids:
- CubicGrid: diamond / zincblende
- HexagonalGrid: lonsdaleite-type, compressed (h, h + 2k, l) storage
"""

from .base import AbstractLatticeGrid
from .builder import Lattice
from .cell import CUBIC_CELL, HEXAGONAL_CELL, CellTemplate, LatticeMask, intersect
from .presets import (
    CubicGrid,
    HexagonalGrid,
    HexagonalGridParity,
    LATTICE_REGISTRY,
    create_lattice
)
from .volume import Concave, Convex, Plane, Volume, apply_volume, evaluate, node_from_dict

__all__ = [
    'AbstractLatticeGrid',
    'CellTemplate',
    'CUBIC_CELL',
    'HEXAGONAL_CELL',
    'LatticeMask',
    'intersect',
    'CubicGrid',
    'HexagonalGrid',
    'HexagonalGridParity',
    'LATTICE_REGISTRY',
    'create_lattice',
    'Plane',
    'Convex',
    'Concave',
    'Volume',
    'evaluate',
    'apply_volume',
    'node_from_dict',
    'Lattice',
]
