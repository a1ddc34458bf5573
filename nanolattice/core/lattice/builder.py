"""
Declarative lattice construction.

``Lattice`` holds everything needed to build a carved grid (crystal system,
bounds, material, and an ordered list of Volumes) and compiles it on demand.
Nothing is global: each builder owns its description and every ``compile``
starts from a fresh grid.
"""

import json
import logging
import numpy as np
from pathlib import Path
from tqdm import tqdm
from typing import Dict, Iterable, List, Optional, Union

from ..elements import Material
from ..entity import Entity
from ..geometry import ArrayLike
from .base import AbstractLatticeGrid
from .presets import LATTICE_REGISTRY, create_lattice
from .volume import Volume, apply_volume, node_from_dict

_log = logging.getLogger(__name__)


class Lattice:
    """
    Builder for a carved lattice.

    Parameters
    ----------
    lattice_type : str
        Key of ``LATTICE_REGISTRY`` ('cubic' or 'hexagonal').
    bounds : array_like, shape (3,)
        Extent in the crystal system's storage basis.
    material : Material
        Elemental or checkerboard occupancy.
    volumes : iterable of Volume, optional
        Carving operations, applied in order.
    verbose : bool
        Show a progress bar while applying volumes.
    **grid_kwargs
        Extra grid arguments (e.g. ``parity`` for hexagonal grids).

    Examples
    --------
    >>> lattice = Lattice('cubic', bounds=[10, 3, 2],
    ...                   material=Material.elemental('carbon'))
    >>> lattice.add_volume(Volume([Plane(normal=[1, 0, 0], origin=[5, 0, 0])]))
    >>> atoms = lattice.atoms
    """

    def __init__(self,
                 lattice_type: str,
                 bounds: ArrayLike,
                 material: Material,
                 volumes: Iterable[Volume] = (),
                 verbose: bool = False,
                 **grid_kwargs):
        if lattice_type not in LATTICE_REGISTRY:
            available = ', '.join(LATTICE_REGISTRY.keys())
            raise ValueError(f"Unknown lattice type '{lattice_type}'. "
                             f"Available types: {available}")
        if not isinstance(material, Material):
            raise TypeError("material must be a Material instance")

        self.lattice_type = lattice_type
        self.bounds = np.asarray(bounds, dtype=float).reshape(3)
        self.material = material
        self.grid_kwargs = grid_kwargs
        self.verbose = verbose
        self.volumes: List[Volume] = []
        for volume in volumes:
            self.add_volume(volume)

    def add_volume(self, volume: Volume) -> 'Lattice':
        """Append a carving operation. Returns self for chaining."""
        if not isinstance(volume, Volume):
            raise TypeError(f"Expected Volume, got {type(volume).__name__}")
        self.volumes.append(volume)
        return self

    def compile(self) -> AbstractLatticeGrid:
        """
        Build a fresh grid and apply every volume in order.

        Returns
        -------
        grid : AbstractLatticeGrid
            The carved grid.
        """
        grid = create_lattice(self.lattice_type,
                              bounds=self.bounds,
                              material=self.material,
                              **self.grid_kwargs)

        volumes = self.volumes
        if self.verbose:
            volumes = tqdm(volumes, desc="Applying volumes")

        for volume in volumes:
            apply_volume(grid, volume)

        _log.info("Compiled %s lattice: %d atoms after %d volumes",
                  self.lattice_type, grid.num_atoms, len(self.volumes))
        return grid

    @property
    def atoms(self) -> List[Entity]:
        """Atoms of the compiled lattice, in nm."""
        return self.compile().atoms

    def to_dict(self) -> Dict:
        """
        Serialize to dictionary.

        Returns
        -------
        data : Dict
            JSON-compatible description that ``from_dict`` reverses.
        """
        grid_kwargs = {key: (int(value) if key == 'parity' else value)
                       for key, value in self.grid_kwargs.items()}
        return {
            'lattice': {
                'type': self.lattice_type,
                'bounds': self.bounds.tolist(),
                **grid_kwargs,
            },
            'material': self.material.to_dict(),
            'volumes': [volume.to_dict() for volume in self.volumes],
        }

    @classmethod
    def from_dict(cls, data: Dict, verbose: bool = False) -> 'Lattice':
        """
        Deserialize from dictionary.

        Raises
        ------
        ValueError
            If a required section is missing or a volume entry is not a
            Volume node.
        """
        for key in ('lattice', 'material'):
            if key not in data:
                raise ValueError(f"Lattice configuration is missing '{key}'")

        lattice = dict(data['lattice'])
        if 'type' not in lattice or 'bounds' not in lattice:
            raise ValueError("Lattice section needs 'type' and 'bounds'")
        lattice_type = lattice.pop('type')
        bounds = lattice.pop('bounds')

        volumes = []
        for entry in data.get('volumes', []):
            node = node_from_dict(entry)
            if not isinstance(node, Volume):
                raise ValueError(
                    f"Top-level volume entries must have type 'volume', "
                    f"got '{entry.get('type')}'")
            volumes.append(node)

        return cls(lattice_type,
                   bounds=bounds,
                   material=Material.from_dict(data['material']),
                   volumes=volumes,
                   verbose=verbose,
                   **lattice)

    @classmethod
    def from_config(cls,
                    config_path: Union[str, Path],
                    verbose: bool = False) -> 'Lattice':
        """
        Load a construction from a JSON configuration file.

        Notes
        -----
        Configuration file format::

            {
              "lattice": {"type": "cubic", "bounds": [20, 4, 4]},
              "material": {"elements": ["carbon"]},
              "volumes": [
                {"type": "volume", "replace": "empty", "children": [
                  {"type": "plane", "normal": [1, 0, 0], "origin": [9, 0, 0]}
                ]}
              ]
            }
        """
        config_path = Path(config_path)
        with open(config_path, 'r') as f:
            data = json.load(f)
        _log.debug("Loaded lattice configuration from %s", config_path)
        return cls.from_dict(data, verbose=verbose)

    def save_config(self, config_path: Union[str, Path]) -> None:
        """Write ``to_dict`` to a JSON file."""
        with open(Path(config_path), 'w') as f:
            json.dump(self.to_dict(), f, indent=4)

    def __repr__(self) -> str:
        return (f"Lattice({self.lattice_type}, bounds={self.bounds.tolist()}, "
                f"material={self.material}, volumes={len(self.volumes)})")
