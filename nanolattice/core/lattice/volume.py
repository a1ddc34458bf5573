"""
Declarative carving of lattice grids.

A construction is a tree of region nodes:

- ``Plane``   : one half-space (the side opposite the normal is kept)
- ``Convex``  : intersection (AND) of its children
- ``Concave`` : union (OR) of its children
- ``Volume``  : implicit Convex over its children, followed by Replace

Every node may carry an ``origin`` that translates all of its descendants.
Offsets accumulate down the tree, so nested nodes can be written relative to
their parent.

The tree is evaluated over the whole grid at once by :func:`evaluate`, a plain
recursive-descent interpreter. :func:`apply_volume` then overwrites every site
excluded by the final mask.

Examples
--------
Keep a slab 6 <= x <= 9 of a cubic grid:

>>> slab = Volume([Concave([Convex([
...     Plane(normal=[1, 0, 0], origin=[9, 0, 0]),
...     Plane(normal=[-1, 0, 0], origin=[6, 0, 0]),
... ])])])
>>> apply_volume(grid, slab)
"""

import logging
import numpy as np
from typing import Dict, List, Optional, Sequence, Union

from ..elements import EMPTY, Element
from ..geometry import ArrayLike
from .base import AbstractLatticeGrid
from .cell import LatticeMask

_log = logging.getLogger(__name__)


def _vector(value: Optional[ArrayLike], name: str) -> np.ndarray:
    if value is None:
        return np.zeros(3)
    vector = np.asarray(value, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {vector.shape}")
    return vector


class Plane:
    """
    Half-space constraint.

    Parameters
    ----------
    normal : array_like, shape (3,)
        Points into the region that gets removed. A zero normal is allowed
        and includes every site.
    origin : array_like, shape (3,), optional
        Any point on the plane, in the grid's storage basis.
    """

    def __init__(self, normal: ArrayLike, origin: Optional[ArrayLike] = None):
        self.normal = _vector(normal, 'normal')
        self.origin = _vector(origin, 'origin')

    def to_dict(self) -> Dict:
        return {
            'type': 'plane',
            'normal': self.normal.tolist(),
            'origin': self.origin.tolist(),
        }

    def __repr__(self) -> str:
        return f"Plane(normal={self.normal.tolist()}, origin={self.origin.tolist()})"


class _Combinator:
    """Shared validation for nodes with children."""

    kind = ''

    def __init__(self, children: Sequence['Node'], origin: Optional[ArrayLike] = None):
        children = list(children)
        if not children:
            raise ValueError(f"{type(self).__name__} needs at least one child")
        for child in children:
            if not isinstance(child, (Plane, Convex, Concave)):
                raise TypeError(
                    f"{type(self).__name__} children must be Plane, Convex or "
                    f"Concave, got {type(child).__name__}")
        self.children: List['Node'] = children
        self.origin = _vector(origin, 'origin')

    def to_dict(self) -> Dict:
        return {
            'type': self.kind,
            'origin': self.origin.tolist(),
            'children': [child.to_dict() for child in self.children],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.children)} children)"


class Convex(_Combinator):
    """Intersection of the children's included regions."""

    kind = 'convex'


class Concave(_Combinator):
    """Union of the children's included regions."""

    kind = 'concave'


class Volume(_Combinator):
    """
    Root of a construction.

    Parameters
    ----------
    children : sequence of Plane, Convex or Concave
        Combined with AND, like a Convex.
    replace : Element, int or str, optional
        Entity type written into every excluded site. Default empties them.
    origin : array_like, shape (3,), optional
        Translation applied to all children.
    """

    kind = 'volume'

    def __init__(self,
                 children: Sequence['Node'],
                 replace: Union[Element, int, str] = EMPTY,
                 origin: Optional[ArrayLike] = None):
        super().__init__(children, origin)
        if isinstance(replace, str) and replace.strip().lower() == 'empty':
            replace = EMPTY
        self.replace = EMPTY if replace == EMPTY else Element.parse(replace)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['replace'] = ('empty' if self.replace == EMPTY
                           else self.replace.name.lower())
        return data

    def __repr__(self) -> str:
        replace = 'empty' if self.replace == EMPTY else self.replace.name.lower()
        return f"Volume({len(self.children)} children, replace={replace})"


Node = Union[Plane, Convex, Concave]


def evaluate(node: Union[Node, Volume],
             grid: AbstractLatticeGrid,
             offset: Optional[ArrayLike] = None) -> LatticeMask:
    """
    Compute the inclusion mask of a region tree over an entire grid.

    Parameters
    ----------
    node : Plane, Convex, Concave or Volume
        Root of the tree. A Volume evaluates like a Convex here; its
        replacement is applied by :func:`apply_volume`.
    grid : AbstractLatticeGrid
        Grid providing site positions and the storage basis.
    offset : array_like, shape (3,), optional
        Translation accumulated from enclosing nodes.

    Returns
    -------
    mask : LatticeMask
        True for sites in the region.
    """
    offset = _vector(offset, 'offset')

    if isinstance(node, Plane):
        return grid.mask(offset + node.origin, node.normal)

    if not isinstance(node, _Combinator):
        raise TypeError(f"Cannot evaluate {type(node).__name__}")

    offset = offset + node.origin
    masks = (evaluate(child, grid, offset) for child in node.children)
    result = next(masks)
    for mask in masks:
        result = result | mask if isinstance(node, Concave) else result & mask
    return result


def apply_volume(grid: AbstractLatticeGrid, volume: Volume) -> int:
    """
    Evaluate a Volume and overwrite every site it excludes.

    Returns
    -------
    changed : int
        Number of sites whose entity type changed.
    """
    if not isinstance(volume, Volume):
        raise TypeError(f"Expected Volume, got {type(volume).__name__}")

    mask = evaluate(volume, grid)
    changed = grid.replace(volume.replace, where=mask)
    _log.debug("%r changed %d sites", volume, changed)
    return changed


_NODE_TYPES = {
    'convex': Convex,
    'concave': Concave,
}


def node_from_dict(data: Dict) -> Union[Node, Volume]:
    """
    Rebuild a region tree from its ``to_dict`` form.

    Raises
    ------
    ValueError
        If a node type is unknown.
    """
    kind = data.get('type')
    if kind == 'plane':
        return Plane(normal=data['normal'], origin=data.get('origin'))

    if kind == 'volume':
        return Volume([node_from_dict(child) for child in data.get('children', [])],
                      replace=data.get('replace', EMPTY),
                      origin=data.get('origin'))

    if kind in _NODE_TYPES:
        return _NODE_TYPES[kind](
            [node_from_dict(child) for child in data.get('children', [])],
            origin=data.get('origin'))

    raise ValueError(f"Unknown node type '{kind}'. "
                     f"Available types: plane, convex, concave, volume")
