"""Reference configuration used as a fitting target."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .box import Box

# Voigt order used for stresses and virials throughout the package
VOIGT_PAIRS = ((0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1))


@dataclass(frozen=True)
class Configuration:
    """
    One reference atomic structure with known energy, forces and stress.

    Arrays are made read-only after validation; derived neighbor caches
    live in a separate NeighborContext.

    Attributes:
        positions: Atomic positions, shape (N, 3).
        types: Atom type index of each atom, shape (N,).
        box: Periodic cell.
        energy: Reference total energy.
        forces: Reference forces, shape (N, 3).
        stress: Reference stress in Voigt order (xx, yy, zz, yz, xz, xy), or None.
        weight: Configuration weight.
        use_forces: Whether force residuals of this configuration count.
        use_stress: Whether stress residuals of this configuration count.
        name: Optional label for diagnostics.
        contributing: Atoms whose force residuals count, shape (N,). None
            means every atom contributes.
    """

    positions: NDArray[np.floating]
    types: NDArray[np.integer]
    box: Box
    energy: float
    forces: NDArray[np.floating]
    stress: NDArray[np.floating] | None = None
    weight: float = 1.0
    use_forces: bool = True
    use_stress: bool = False
    name: str = ""
    contributing: NDArray[np.bool_] | None = None

    def __post_init__(self) -> None:
        """Validate and freeze arrays."""
        positions = np.array(self.positions, dtype=np.float64)
        types = np.array(self.types, dtype=np.int64)
        forces = np.array(self.forces, dtype=np.float64)

        n_atoms = len(types)
        if n_atoms == 0:
            raise ValueError("Configuration must contain at least one atom")
        if positions.shape != (n_atoms, 3):
            raise ValueError(
                f"positions shape {positions.shape} incompatible with {n_atoms} atoms"
            )
        if forces.shape != (n_atoms, 3):
            raise ValueError(
                f"forces shape {forces.shape} incompatible with {n_atoms} atoms"
            )
        if np.any(types < 0):
            raise ValueError("Atom types must be non-negative")
        if self.weight < 0.0:
            raise ValueError(f"weight must be non-negative, got {self.weight}")

        stress = self.stress
        if stress is not None:
            stress = np.array(stress, dtype=np.float64)
            if stress.shape == (3, 3):
                stress = np.array([stress[a, b] for a, b in VOIGT_PAIRS])
            if stress.shape != (6,):
                raise ValueError(f"stress must have shape (6,) or (3, 3), got {stress.shape}")
            stress.flags.writeable = False
        elif self.use_stress:
            raise ValueError("use_stress requires a reference stress")

        contributing = self.contributing
        if contributing is not None:
            contributing = np.array(contributing, dtype=bool)
            if contributing.shape != (n_atoms,):
                raise ValueError(
                    f"contributing shape {contributing.shape} incompatible with {n_atoms} atoms"
                )
            contributing.flags.writeable = False

        for array in (positions, types, forces):
            array.flags.writeable = False

        object.__setattr__(self, "positions", positions)
        object.__setattr__(self, "types", types)
        object.__setattr__(self, "forces", forces)
        object.__setattr__(self, "stress", stress)
        object.__setattr__(self, "contributing", contributing)
        object.__setattr__(self, "energy", float(self.energy))

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return len(self.types)

    @property
    def volume(self) -> float:
        """Return cell volume."""
        return self.box.volume

    @property
    def energy_per_atom(self) -> float:
        """Reference energy per atom."""
        return self.energy / self.n_atoms

    def type_counts(self, n_types: int) -> NDArray[np.integer]:
        """Number of atoms of each type, shape (n_types,)."""
        if np.any(self.types >= n_types):
            raise ValueError(f"Configuration '{self.name}' uses a type >= {n_types}")
        return np.bincount(self.types, minlength=n_types)

    @property
    def contribution_mask(self) -> NDArray[np.bool_]:
        """Boolean mask of atoms whose forces enter the deviation."""
        if self.contributing is None:
            return np.ones(self.n_atoms, dtype=bool)
        return self.contributing

    @property
    def n_contributing(self) -> int:
        """Number of atoms whose forces enter the deviation."""
        return int(np.count_nonzero(self.contribution_mask))


def contributing_region(
    positions: ArrayLike,
    origin: ArrayLike | None = None,
    vectors: ArrayLike | None = None,
    sphere_centers: ArrayLike = (),
    sphere_radii: ArrayLike = (),
) -> NDArray[np.bool_]:
    """
    Mark atoms inside a parallelepiped or any of a set of spheres.

    Used to restrict force residuals to the interior of a cluster or slab
    cut from a larger structure, where surface atoms see a truncated
    environment.

    Args:
        positions: Cartesian positions, shape (N, 3).
        origin: Corner of the contributing box.
        vectors: Rows spanning the contributing box, shape (3, 3).
        sphere_centers: Centers of contributing spheres, shape (M, 3).
        sphere_radii: Radii of the spheres, shape (M,).

    Returns:
        Boolean mask of shape (N,). With neither a box nor spheres every
        atom contributes.
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    centers = np.asarray(sphere_centers, dtype=np.float64).reshape(-1, 3)
    radii = np.asarray(sphere_radii, dtype=np.float64).ravel()
    if len(centers) != len(radii):
        raise ValueError(f"Got {len(centers)} sphere centers but {len(radii)} radii")
    if (origin is None) != (vectors is None):
        raise ValueError("A contributing box needs both origin and vectors")

    if vectors is None and len(centers) == 0:
        return np.ones(len(positions), dtype=bool)

    mask = np.zeros(len(positions), dtype=bool)
    if vectors is not None:
        fractional = (positions - np.asarray(origin, dtype=np.float64)) @ np.linalg.inv(
            np.asarray(vectors, dtype=np.float64)
        )
        mask |= np.all((fractional >= 0.0) & (fractional <= 1.0), axis=1)
    for center, radius in zip(centers, radii):
        mask |= np.linalg.norm(positions - center, axis=1) <= radius
    return mask
