"""
nanolattice: atomic lattice geometry for crystalline nanostructures

Generates diamond, lonsdaleite and checkerboard (zincblende-type) lattices,
carves them with trees of half-spaces, and repairs the resulting surfaces
into a fully bonded, hydrogen-terminated topology.

Main Components
---------------
core.lattice : Grids, cell masks, volume compiler, declarative builder
core.topology : Bond inference and hydrogen collision reconstruction
utils : Constants and logging setup

Quick Start
-----------
>>> from nanolattice import Lattice, Material, Reconstruction
>>>
>>> # 10 x 3 x 2 cubic cells of diamond
>>> lattice = Lattice('cubic', bounds=[10, 3, 2],
...                   material=Material.elemental('carbon'))
>>>
>>> # Bonds, hydrogens and (100) dimers
>>> topology = Reconstruction.from_atoms(lattice.atoms).compile()
>>> print(topology)

Current Version: 0.1.0-dev
"""

import logging

__version__ = "0.1.0-dev"

# High-level API exports
from .core import (
    # Elements
    EMPTY,
    Element,
    Material,
    Entity,

    # Lattice
    CubicGrid,
    HexagonalGrid,
    HexagonalGridParity,
    create_lattice,
    Plane,
    Convex,
    Concave,
    Volume,
    Lattice,

    # Topology
    Topology,
    Reconstruction,
    ReconstructionError,
    ReconstructionPolicy,
)
from .utils import configure_logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Version info
    '__version__',

    # Core abstractions
    'EMPTY',
    'Element',
    'Material',
    'Entity',
    'CubicGrid',
    'HexagonalGrid',
    'HexagonalGridParity',
    'create_lattice',
    'Plane',
    'Convex',
    'Concave',
    'Volume',
    'Lattice',
    'Topology',
    'Reconstruction',
    'ReconstructionError',
    'ReconstructionPolicy',
    'configure_logging',
]
