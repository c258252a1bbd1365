"""Base interface for force models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..system import VOIGT_PAIRS

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext
    from ..potentials import PotentialRepresentation


@dataclass
class ForceResult:
    """
    Energy, forces and virial of one configuration.

    Attributes:
        energies: Per-atom energy, shape (N,).
        forces: Forces, shape (N, 3).
        virial: Virial sum(d (x) f) in Voigt order, shape (6,), or None.
        converged: False if an inner iteration hit its cap.
        iterations: Inner iterations used (dipole models only).
        densities: Host densities per density channel, for constraint residuals.
    """

    energies: NDArray[np.floating]
    forces: NDArray[np.floating]
    virial: NDArray[np.floating] | None = None
    converged: bool = True
    iterations: int = 0
    densities: dict[str, NDArray[np.floating]] = field(default_factory=dict)

    @classmethod
    def zeros(cls, n_atoms: int, with_stress: bool = False) -> ForceResult:
        """Empty result ready for accumulation."""
        return cls(
            energies=np.zeros(n_atoms),
            forces=np.zeros((n_atoms, 3)),
            virial=np.zeros(6) if with_stress else None,
        )

    @property
    def energy(self) -> float:
        """Total energy."""
        return float(np.sum(self.energies))

    def stress(self, volume: float) -> NDArray[np.floating]:
        """
        Stress in Voigt order, -virial / volume.

        Positive components mean tension.
        """
        if self.virial is None:
            raise ValueError("Result was computed without stress")
        return -self.virial / volume


def scatter_bond_gradients(
    result: ForceResult,
    context: NeighborContext,
    entries: NDArray[np.integer] | slice,
    gradients: NDArray[np.floating],
) -> None:
    """
    Apply bond gradients dE/dd_k of directed neighbor entries.

    With d_k = r_neighbor - r_center, the center receives +g_k and the
    neighbor -g_k; the virial gains -d_k (x) g_k. Net force and torque of
    any rotation-invariant energy therefore vanish.

    Args:
        result: Result to accumulate into.
        context: Neighbor context the entries refer to.
        entries: Entry indices (or slice) of the gradients.
        gradients: dE/dd per entry, shape (n, 3).
    """
    np.add.at(result.forces, context.center[entries], gradients)
    np.add.at(result.forces, context.neighbor[entries], -gradients)
    if result.virial is not None:
        vector = context.vector[entries]
        for c, (a, b) in enumerate(VOIGT_PAIRS):
            result.virial[c] -= np.dot(vector[:, a], gradients[:, b])


def accumulate_energy(
    result: ForceResult, atoms: NDArray[np.integer], values: NDArray[np.floating]
) -> None:
    """Add per-entry energy terms to their owning atoms."""
    result.energies += np.bincount(atoms, weights=values, minlength=len(result.energies))


class ForceModel(ABC):
    """
    Abstract base class for all force accumulation variants.

    One variant per interaction-model family. A run selects exactly one
    variant at construction time; every variant reads the same table
    format through the potential representation and returns a ForceResult.

    Attributes:
        name: Model name used by create_force_model.
        models: Interaction model names this variant can evaluate.
    """

    name: str = ""
    models: tuple[str, ...] = ()

    def check_potential(self, potential: PotentialRepresentation) -> None:
        """
        Verify that a potential matches this force model.

        Raises:
            ValueError: If the potential's interaction model is not supported.
        """
        if potential.descriptor.name not in self.models:
            raise ValueError(
                f"Force model '{self.name}' cannot evaluate a "
                f"'{potential.descriptor.name}' potential (supports {', '.join(self.models)})"
            )

    def required_cutoff(self, potential: PotentialRepresentation) -> float:
        """Neighbor cutoff the contexts must be built with."""
        return potential.max_cutoff

    @abstractmethod
    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """
        Compute per-atom energies, forces and optionally the virial.

        Args:
            potential: Potential with up-to-date tables.
            context: Neighbor context of the configuration.
            with_stress: Also accumulate the virial.

        Returns:
            ForceResult for the configuration.
        """
        ...
