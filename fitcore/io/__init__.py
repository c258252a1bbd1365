"""Conversion of reference data from ASE objects."""

from .ase_adapter import (
    HAS_ASE,
    atoms_from_configuration,
    check_ase,
    configuration_from_atoms,
    read_configurations,
)

__all__ = [
    "HAS_ASE",
    "check_ase",
    "configuration_from_atoms",
    "atoms_from_configuration",
    "read_configurations",
]
