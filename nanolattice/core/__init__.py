"""
Core domain models for the nanolattice package.

This module contains the fundamental abstractions:
- Elements and materials: what fills a lattice site
- Lattice: grids, cell masks and the volume compiler
- Topology: bonds and surface reconstruction

Everything that turns a crystal description into an atom/bond set lives here.
"""

from .elements import EMPTY, Element, Material, bond_length, natural_valence
from .entity import Entity

from .lattice import (
    AbstractLatticeGrid,
    CubicGrid,
    HexagonalGrid,
    HexagonalGridParity,
    LATTICE_REGISTRY,
    create_lattice,
    LatticeMask,
    Plane,
    Convex,
    Concave,
    Volume,
    Lattice
)

from .topology import (
    Topology,
    Reconstruction,
    ReconstructionError,
    ReconstructionPolicy
)

__all__ = [
    # Elements
    'EMPTY',
    'Element',
    'Material',
    'Entity',
    'bond_length',
    'natural_valence',

    # Lattice
    'AbstractLatticeGrid',
    'CubicGrid',
    'HexagonalGrid',
    'HexagonalGridParity',
    'LATTICE_REGISTRY',
    'create_lattice',
    'LatticeMask',
    'Plane',
    'Convex',
    'Concave',
    'Volume',
    'Lattice',

    # Topology
    'Topology',
    'Reconstruction',
    'ReconstructionError',
    'ReconstructionPolicy',
]
