"""
Bond graphs and surface reconstruction.

- Topology: atoms, bonds, neighbour search, orbitals, angles and torsions
- Reconstruction: hydrogen collision resolution for carved surfaces
"""

from .base import Topology
from .reconstruction import (
    CollisionAction,
    HydrogenCollisionMap,
    Reconstruction,
    ReconstructionError,
    ReconstructionPolicy
)

__all__ = [
    'Topology',
    'CollisionAction',
    'HydrogenCollisionMap',
    'Reconstruction',
    'ReconstructionError',
    'ReconstructionPolicy',
]
