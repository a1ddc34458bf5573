"""
Numerical constants shared across the package.

Lengths are in nanometres. Lattice-unit tolerances are in units of the
lattice basis vectors (before scaling to real space).
"""

import numpy as np

# Half-space boundary tolerance, in lattice units. A site whose signed
# distance to a plane is <= PLANE_EPSILON counts as included.
PLANE_EPSILON = 0.01

# Padding added to requested bounds before taking the ceiling, so sites lying
# exactly on the far faces still get a cell.
BOUNDS_PADDING = 0.01

# Chain walks longer than this are a convergence failure.
MAX_CHAIN_ITERATIONS = 1000

# Relative tolerance when matching interatomic distances to covalent lengths.
DEFAULT_BOND_TOLERANCE = 0.1

# Two hydrogens collide when closer than this fraction of the bond length
# between their parent atoms. Keyed by atomic number of the parent; each value
# sits between the separation of two hydrogens that point straight at each
# other on an ideal (100) face and the separation left after a neighbouring
# dimer forms.
DEFAULT_COLLISION_FACTORS = {
    6: 0.53,
    14: 0.64,
    32: 0.65,
}

# Atoms with fewer bonds than this are stripped from cut surfaces.
DEFAULT_MINIMUM_BONDS = 2

# Default bond/keep alternation along a collision chain.
DEFAULT_BOND_PERIOD = 4
DEFAULT_BOND_PHASE = 1

# Reconstruction passes before giving up on remaining collisions.
DEFAULT_MAX_PASSES = 8

# sp3 angle between two bonds, ~109.47 degrees.
TETRAHEDRAL_ANGLE = float(np.arccos(-1.0 / 3.0))

# Coordinate differences below this (nm) do not decide a chain's direction.
CHAIN_ORIENTATION_EPSILON = 0.01
