"""
Elements, bond lengths and lattice materials.

Entity types are stored in the lattice grid as small integers: 0 means an
empty site, anything else is the atomic number of the occupying element.
"""

import numpy as np
from enum import IntEnum
from typing import Dict, Iterable, List, Tuple, Union


EMPTY = 0


class Element(IntEnum):
    """Supported elements, valued by atomic number."""

    HYDROGEN = 1
    CARBON = 6
    FLUORINE = 9
    SILICON = 14
    CHLORINE = 17
    GERMANIUM = 32

    @classmethod
    def parse(cls, value: Union['Element', int, str]) -> 'Element':
        """
        Coerce an atomic number, name or Element to an Element.

        Raises
        ------
        ValueError
            If the value does not name a supported element.
        """
        if isinstance(value, Element):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unrecognized element: '{value}'") from None
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"Unrecognized element: {value}") from None


# Elements that can fill a tetrahedral lattice site.
LATTICE_ELEMENTS = (Element.CARBON, Element.SILICON, Element.GERMANIUM)

# Group IV atoms must end up with exactly this many bonds.
NATURAL_VALENCE: Dict[Element, int] = {
    Element.HYDROGEN: 1,
    Element.CARBON: 4,
    Element.FLUORINE: 1,
    Element.SILICON: 4,
    Element.CHLORINE: 1,
    Element.GERMANIUM: 4,
}

# Covalent bond lengths in nm, keyed by sorted atomic numbers.
_BOND_LENGTHS: Dict[Tuple[int, int], float] = {
    (1, 6): 0.1090,
    (1, 14): 0.1483,
    (1, 32): 0.1529,
    (6, 6): 0.1545,
    (6, 9): 0.1390,
    (6, 14): 0.1888,
    (6, 17): 0.1790,
    (6, 32): 0.1950,
    (14, 14): 0.2352,
    (14, 32): 0.2401,
    (32, 32): 0.2450,
}


def bond_length(a: Union[Element, int], b: Union[Element, int]) -> float:
    """
    Covalent bond length between two elements, in nm.

    Raises
    ------
    ValueError
        If no bond length is tabulated for the pair.
    """
    key = tuple(sorted((int(a), int(b))))
    if key not in _BOND_LENGTHS:
        raise ValueError(f"No bond length for element pair {key}")
    return _BOND_LENGTHS[key]


def max_bond_length() -> float:
    """Longest tabulated bond, used as a neighbour-search cutoff."""
    return max(_BOND_LENGTHS.values())


def natural_valence(element: Union[Element, int]) -> int:
    """Number of bonds an element forms when saturated."""
    return NATURAL_VALENCE[Element(int(element))]


class Material:
    """
    Occupancy pattern for a tetrahedral lattice.

    A material is either a single element or a two-element checkerboard,
    where the two elements alternate between the lattice's two sublattices.

    Parameters
    ----------
    elements : iterable of Element, int or str
        One element (elemental) or two distinct elements (checkerboard).
        Order matters: the first element sits at template slot 0.

    Raises
    ------
    ValueError
        If the element count is not 1 or 2, an element cannot form a
        tetrahedral lattice, or the two checkerboard elements are equal.

    Examples
    --------
    >>> Material.elemental(Element.CARBON)
    Material(carbon)
    >>> Material.checkerboard('silicon', 'carbon')
    Material(silicon, carbon)
    """

    def __init__(self, elements: Iterable[Union[Element, int, str]]):
        elements = [Element.parse(e) for e in elements]

        if len(elements) not in (1, 2):
            raise ValueError(
                f"Invalid element count: {len(elements)}. Expected 1 or 2.")

        for element in elements:
            if element not in LATTICE_ELEMENTS:
                raise ValueError(
                    f"Unsupported lattice element: {element.name.lower()}")

        if len(elements) == 2 and elements[0] == elements[1]:
            raise ValueError("Elements cannot be the same.")

        self.elements: Tuple[Element, ...] = tuple(elements)

    @classmethod
    def elemental(cls, element: Union[Element, int, str]) -> 'Material':
        return cls([element])

    @classmethod
    def checkerboard(cls,
                     first: Union[Element, int, str],
                     second: Union[Element, int, str]) -> 'Material':
        return cls([first, second])

    @property
    def is_checkerboard(self) -> bool:
        return len(self.elements) == 2

    @property
    def bond_length(self) -> float:
        """Nearest-neighbour distance in the bulk crystal, in nm."""
        first = self.elements[0]
        second = self.elements[-1]
        return bond_length(first, second)

    def repeating_unit(self, num_sites: int) -> np.ndarray:
        """
        Entity types for one cell with ``num_sites`` slots.

        Elemental materials fill every slot. Checkerboards alternate
        first, second, first, ... so adjacent slots always differ.
        """
        pattern: List[int] = [
            int(self.elements[i % len(self.elements)]) for i in range(num_sites)
        ]
        return np.array(pattern, dtype=np.int8)

    def to_dict(self) -> Dict:
        return {'elements': [e.name.lower() for e in self.elements]}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Material':
        if 'elements' not in data:
            raise ValueError("Material dictionary needs an 'elements' list")
        return cls(data['elements'])

    def __eq__(self, other) -> bool:
        return isinstance(other, Material) and self.elements == other.elements

    def __hash__(self) -> int:
        return hash(self.elements)

    def __repr__(self) -> str:
        names = ', '.join(e.name.lower() for e in self.elements)
        return f"Material({names})"
