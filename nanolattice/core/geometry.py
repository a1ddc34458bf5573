"""
Coordinate transforms and plane math.

Lattices are described in their natural (possibly oblique) basis. This module
holds the fixed linear maps between those bases and orthonormal space, plus
the signed-distance test used by the cell mask engine. Everything here is a
pure function of its arguments.

Bases
-----
XYZ
    Orthonormal space, in lattice units (not yet scaled to nanometres).
HKL
    Hexagonal basis. h = (1, 0, 0), k = (-1/2, √3/2, 0), l = (0, 0, 1)
    in XYZ; h and k are 120° apart.
HH2KL
    Compressed hexagonal storage basis (h, h + 2k, l). The second axis is
    orthogonal to h, so grid rows line up with the y axis:
    h + 2k = (0, √3, 0) in XYZ.

Matrices act on column vectors: ``xyz = M @ v``. For arrays of row vectors
use :func:`transform`.
"""

import numpy as np
from typing import Sequence, Union

ArrayLike = Union[Sequence[float], np.ndarray]

SQRT3 = float(np.sqrt(3.0))

IDENTITY = np.eye(3)

# Columns are the images of h, k, l.
HKL_TO_XYZ = np.array([
    [1.0, -0.5,       0.0],
    [0.0, SQRT3 / 2,  0.0],
    [0.0, 0.0,        1.0],
])

# Columns are the images of h, (h + 2k), l expressed in h/k/l.
HH2KL_TO_HKL = np.array([
    [1.0, 1.0, 0.0],
    [0.0, 2.0, 0.0],
    [0.0, 0.0, 1.0],
])

#   | 1   0   0 |
#   | 0  √3   0 |
#   | 0   0   1 |
HH2KL_TO_XYZ = HKL_TO_XYZ @ HH2KL_TO_HKL


def transform(matrix: np.ndarray, vectors: ArrayLike) -> np.ndarray:
    """
    Apply a 3x3 linear map to one vector or a stack of vectors.

    Parameters
    ----------
    matrix : np.ndarray, shape (3, 3)
        Linear map acting on column vectors.
    vectors : array_like, shape (3,) or (..., 3)
        Vector(s) in the source basis.

    Returns
    -------
    out : np.ndarray
        Same shape as ``vectors``, in the target basis.
    """
    vectors = np.asarray(vectors, dtype=float)
    return vectors @ np.asarray(matrix, dtype=float).T


def inverse(matrix: np.ndarray) -> np.ndarray:
    """Inverse of a basis map (all maps in this module are invertible)."""
    return np.linalg.inv(matrix)


def is_degenerate(normal: ArrayLike) -> bool:
    """True when a plane normal is exactly zero."""
    return not np.any(np.asarray(normal, dtype=float))


def signed_distance(points: ArrayLike,
                    origin: ArrayLike,
                    normal: ArrayLike) -> np.ndarray:
    """
    Signed distance from point(s) to a plane.

    Parameters
    ----------
    points : array_like, shape (3,) or (..., 3)
        Points in the same orthonormal frame as the plane.
    origin : array_like, shape (3,)
        Any point on the plane.
    normal : array_like, shape (3,)
        Plane normal; need not be unit length, must be nonzero.

    Returns
    -------
    distance : np.ndarray
        Positive on the side the normal points to.

    Raises
    ------
    ValueError
        If the normal is zero. Degenerate planes have no distance; the mask
        engine handles them before calling this.
    """
    normal = np.asarray(normal, dtype=float)
    length = np.linalg.norm(normal)
    if length == 0:
        raise ValueError("Cannot measure distance to a plane with zero normal")

    delta = np.asarray(points, dtype=float) - np.asarray(origin, dtype=float)
    return delta @ (normal / length)
