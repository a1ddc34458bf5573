"""
Atoms produced by flattening a lattice grid.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict

from .elements import Element


@dataclass
class Entity:
    """
    A single atom.

    Attributes
    ----------
    position : np.ndarray, shape (3,)
        Real-space position in nm.
    element : Element
        Element occupying the site.
    """
    position: np.ndarray
    element: Element = field(default=Element.CARBON)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        self.element = Element.parse(self.element)

    @property
    def atomic_number(self) -> int:
        return int(self.element)

    def to_dict(self) -> Dict:
        return {
            'position': self.position.tolist(),
            'element': self.element.name.lower(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Entity':
        return cls(position=np.array(data['position']),
                   element=Element.parse(data['element']))

    def __repr__(self) -> str:
        x, y, z = self.position
        return (f"Entity({self.element.name.lower()}, "
                f"[{x:.4f}, {y:.4f}, {z:.4f}])")
