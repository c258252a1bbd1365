"""ASE (Atomic Simulation Environment) adapters."""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np
from numpy.typing import ArrayLike

from ..system import Box, Configuration

# Optional ASE import
try:
    from ase import Atoms
    from ase.io import read as ase_read

    HAS_ASE = True
except ImportError:
    HAS_ASE = False


def check_ase() -> None:
    """Check if ASE is available."""
    if not HAS_ASE:
        raise ImportError("ASE required: pip install ase")


def configuration_from_atoms(
    atoms: Atoms,
    type_map: Mapping[str, int],
    weight: float = 1.0,
    use_forces: bool = True,
    use_stress: bool = False,
    energy: float | None = None,
    forces: ArrayLike | None = None,
    stress: ArrayLike | None = None,
    name: str = "",
    contributing: ArrayLike | None = None,
) -> Configuration:
    """
    Convert an ASE Atoms object with reference results to a Configuration.

    Reference values are taken from the attached calculator unless given
    explicitly. ASE reports stress in the same Voigt order and sign
    convention (positive in tension) as Configuration.

    Args:
        atoms: ASE Atoms object with a periodic cell.
        type_map: Chemical symbol to type index.
        weight: Configuration weight.
        use_forces: Whether force residuals count.
        use_stress: Whether stress residuals count.
        energy: Reference total energy (overrides the calculator).
        forces: Reference forces (overrides the calculator).
        stress: Reference stress (overrides the calculator).
        name: Label for diagnostics.
        contributing: Mask of atoms whose force residuals count.

    Returns:
        Configuration instance.

    Raises:
        ValueError: If the cell is degenerate, a symbol has no type, or a
            reference value is unavailable.
    """
    check_ase()

    symbols = atoms.get_chemical_symbols()
    missing = sorted(set(symbols) - set(type_map))
    if missing:
        raise ValueError(f"No type index for symbols: {missing}")
    types = np.array([type_map[s] for s in symbols], dtype=np.int64)

    if not atoms.get_pbc().all():
        raise ValueError("Configuration needs a fully periodic cell")
    box = Box.triclinic(np.asarray(atoms.get_cell()[:], dtype=np.float64))

    if energy is None or forces is None or (use_stress and stress is None):
        if atoms.calc is None:
            raise ValueError("Atoms has no calculator and no explicit reference values")
    if energy is None:
        energy = atoms.get_potential_energy()
    if forces is None:
        forces = atoms.get_forces()
    if stress is None and use_stress:
        stress = atoms.get_stress(voigt=True)

    return Configuration(
        positions=atoms.get_positions(),
        types=types,
        box=box,
        energy=float(energy),
        forces=np.asarray(forces, dtype=np.float64),
        stress=stress,
        weight=weight,
        use_forces=use_forces,
        use_stress=use_stress,
        name=name or atoms.get_chemical_formula(),
        contributing=contributing,
    )


def atoms_from_configuration(config: Configuration, symbols: list[str]) -> Atoms:
    """
    Convert a Configuration back to an ASE Atoms object.

    Args:
        config: Configuration to convert.
        symbols: Chemical symbol of each type index.

    Returns:
        Periodic ASE Atoms object (without calculator).
    """
    check_ase()
    return Atoms(
        symbols=[symbols[t] for t in config.types],
        positions=config.positions,
        cell=config.box.vectors,
        pbc=True,
    )


def read_configurations(
    filename: str,
    type_map: Mapping[str, int],
    index: int | str = ":",
    use_stress: bool = False,
    **kwargs,
) -> list[Configuration]:
    """
    Read reference configurations using ASE's universal reader.

    Any format ASE reads with attached results works (extxyz, OUTCAR, ...).

    Args:
        filename: Input file path.
        type_map: Chemical symbol to type index.
        index: Frame index or slice string (e.g., ":", "-1", "0:10").
        use_stress: Whether stress residuals count.
        **kwargs: Additional arguments passed to ase.io.read.

    Returns:
        List of configurations.
    """
    check_ase()

    atoms_list = ase_read(filename, index=index, **kwargs)
    if not isinstance(atoms_list, list):
        atoms_list = [atoms_list]

    return [
        configuration_from_atoms(
            atoms, type_map, use_stress=use_stress, name=f"{filename}@{k}"
        )
        for k, atoms in enumerate(atoms_list)
    ]
