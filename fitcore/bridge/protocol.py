"""Call shape of external model libraries."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from ..errors import BridgeProtocolError
from .parameters import ParameterInfo

# Status codes returned through the callback boundary
STATUS_OK = 1
STATUS_NEIGH_ITER_PAST_END = 2
STATUS_NEIGH_ITER_INIT_OK = 3
STATUS_NEIGH_INVALID_MODE = -6
STATUS_NEIGH_INVALID_REQUEST = -11

# Neighbor addressing modes
ITERATOR_MODE = 0
LOCATOR_MODE = 1

# Iterator-mode requests
ITERATOR_RESET = 0
ITERATOR_INCREMENT = 1

NeighborAnswer = tuple[int, int, int, NDArray[np.integer], NDArray[np.floating]]


@dataclass
class ComputeRequest:
    """
    Compute-request record handed to an external model.

    Inputs are filled by the bridge; outputs are written by the model in
    place. Atom indices seen through ``get_neigh`` are 1-based.

    Attributes:
        n_atoms: Number of atoms.
        species: Type of each atom, shape (N,).
        coordinates: Positions, shape (N, 3).
        get_neigh: Callback get_neigh(mode, request) returning
            (status, atom, n_neighbors, neighbors, rij).
        compute_forces: Whether forces are requested.
        compute_virial: Whether the virial is requested.
        energy: Output total energy.
        particle_energy: Output per-atom energy (optional for the model).
        forces: Output forces, shape (N, 3).
        virial: Output virial sum(r_ij (x) f_ij) in Voigt order, shape (6,).
    """

    n_atoms: int
    species: NDArray[np.integer]
    coordinates: NDArray[np.floating]
    get_neigh: Callable[[int, int], NeighborAnswer]
    compute_forces: bool = True
    compute_virial: bool = False
    energy: float = 0.0
    particle_energy: NDArray[np.floating] | None = None
    forces: NDArray[np.floating] | None = None
    virial: NDArray[np.floating] = field(default_factory=lambda: np.zeros(6))

    def __post_init__(self) -> None:
        if self.forces is None:
            self.forces = np.zeros((self.n_atoms, 3))


class ExternalModel(ABC):
    """
    Abstract base class for pluggable external interatomic models.

    Mirrors the life cycle of a model library: parameters are written into
    the model's own storage, a cutoff is published, the model is
    re-initialised, and only then may it set up neighbor access and compute.
    """

    def __init__(self) -> None:
        self._cutoff: float | None = None
        self._initialised = False

    @abstractmethod
    def parameter_info(self) -> list[ParameterInfo]:
        """Name, rank and shape of every optimizable parameter."""
        ...

    @abstractmethod
    def get_parameter(self, name: str) -> float | NDArray[np.floating]:
        """Current value of a parameter."""
        ...

    @abstractmethod
    def set_parameter(self, name: str, value: float | NDArray[np.floating]) -> None:
        """Write a parameter into the model's storage."""
        ...

    @abstractmethod
    def compute(self, request: ComputeRequest) -> int:
        """
        Compute energy, forces and optionally the virial.

        Returns:
            STATUS_OK on success, a negative status otherwise.
        """
        ...

    @property
    def cutoff(self) -> float | None:
        """Published cutoff, or None before publication."""
        return self._cutoff

    @property
    def initialised(self) -> bool:
        """Whether reinit() ran since the last parameter or cutoff change."""
        return self._initialised

    def publish_cutoff(self, cutoff: float) -> None:
        """
        Publish the cutoff the model must honour.

        Raises:
            BridgeProtocolError: If the cutoff is not positive.
        """
        if not cutoff > 0.0:
            raise BridgeProtocolError("publish-cutoff", f"Cutoff must be positive, got {cutoff}")
        self._cutoff = float(cutoff)
        self._initialised = False

    def reinit(self) -> None:
        """
        Re-initialise after parameter or cutoff changes.

        Raises:
            BridgeProtocolError: If no cutoff was published yet.
        """
        if self._cutoff is None:
            raise BridgeProtocolError("publish-cutoff", "reinit() called before a cutoff was published")
        self.setup()
        self._initialised = True

    def setup(self) -> None:
        """Model-specific derived quantities; called by reinit()."""

    def _parameters_changed(self) -> None:
        self._initialised = False
