"""
Reconstruction Demo

This example walks through a full construction:
- Lattice (declarative grid + volumes)
- Topology (atoms, inferred bonds, angles)
- Reconstruction (hydrogen termination and (100) dimers)

Each step prints a short summary; pass --verbose for progress bars and logs.
"""

import sys
import tempfile
from pathlib import Path

import numpy as np

# Add nanolattice to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nanolattice import (
    Element,
    HexagonalGridParity,
    Lattice,
    Material,
    Plane,
    Reconstruction,
    ReconstructionPolicy,
    Topology,
    Volume,
    configure_logging,
)


def example_diamond_slab(verbose=False):
    """Example 1: Diamond slab carved from a wider grid."""
    print("=" * 60)
    print("Example 1: Diamond slab, x in [6, 9] of a 20-wide grid")
    print("=" * 60)

    lattice = Lattice('cubic', bounds=[20, 3, 2],
                      material=Material.elemental('carbon'),
                      verbose=verbose)
    lattice.add_volume(Volume([Plane(normal=[1, 0, 0], origin=[9, 0, 0]),
                               Plane(normal=[-1, 0, 0], origin=[6, 0, 0])]))
    print(f"\n{lattice}")

    atoms = lattice.atoms
    print(f"Atoms after carving: {len(atoms)}")

    topology = Reconstruction.from_atoms(atoms, verbose=verbose).compile()
    print(f"\n{topology}")

    df = topology.to_dataframe()
    print("\nElement counts:")
    print(df['element'].value_counts().to_string())

    # Surface dimers are the only C-C bonds longer than a bulk bond
    positions = topology.positions
    carbons = topology.elements == Element.CARBON
    dimers = [
        (i, j) for i, j in topology.bonds
        if carbons[i] and carbons[j]
        and np.linalg.norm(positions[i] - positions[j]) > 0.1545 * 1.1
    ]
    print(f"\nSurface dimers: {len(dimers)}")
    return topology


def example_checkerboard_hexagonal():
    """Example 2: Wurtzite-type SiC prism."""
    print("\n" + "=" * 60)
    print("Example 2: Hexagonal silicon carbide")
    print("=" * 60)

    for parity in HexagonalGridParity:
        lattice = Lattice('hexagonal', bounds=[6, 4, 2],
                          material=Material.checkerboard('silicon', 'carbon'),
                          parity=parity)
        grid = lattice.compile()
        print(f"\n{grid}")
        print(f"  atoms: {grid.num_atoms}")

    topology = Topology(atoms=lattice.atoms)
    topology.infer_bonds()
    counts = topology.bond_counts()
    print(f"\nBonds inferred: {topology.num_bonds}")
    print(f"Bond count histogram: {np.bincount(counts).tolist()}")
    print(f"Bond angles: {len(topology.angles())}, torsions: {len(topology.torsions())}")


def example_configuration(path):
    """Example 3: Round trip through a JSON configuration."""
    print("\n" + "=" * 60)
    print("Example 3: Configuration files")
    print("=" * 60)

    lattice = Lattice('cubic', bounds=[4, 4, 4],
                      material=Material.elemental('silicon'))
    # Replace the upper half with germanium
    lattice.add_volume(Volume([Plane(normal=[0, 0, 1], origin=[0, 0, 2])],
                              replace='germanium'))
    lattice.save_config(path)
    print(f"\nSaved to {path}")

    loaded = Lattice.from_config(path)
    grid = loaded.compile()
    elements = [atom.element for atom in grid.atoms]
    print(f"Silicon: {elements.count(Element.SILICON)}, "
          f"germanium: {elements.count(Element.GERMANIUM)}")

    policy = ReconstructionPolicy(bond_phase=3)
    print(f"\nPolicy: {policy.to_dict()}")
    topology = Reconstruction.from_atoms(grid.atoms, policy=policy).compile()
    print(f"{topology}")


if __name__ == '__main__':
    verbose = '--verbose' in sys.argv
    if verbose:
        configure_logging('INFO')

    example_diamond_slab(verbose=verbose)
    example_checkerboard_hexagonal()
    with tempfile.TemporaryDirectory() as tmp:
        example_configuration(Path(tmp) / "sige_block.json")

    print("\n" + "=" * 60)
    print("Done")
    print("=" * 60)
