"""Abstract base class for parallel backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..messages import Command


class ParallelBackend(ABC):
    """
    Abstract base class for parallelization backends.

    Workers run in lock-step (SPMD): every rank performs the same sequence
    of collective calls. An evaluation needs exactly one broadcast (a
    Command) and one sum-reduction (the partial deviation vector).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return backend name."""
        ...

    @property
    @abstractmethod
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        ...

    @property
    @abstractmethod
    def rank(self) -> int:
        """Return rank of current process (0 for serial)."""
        ...

    @property
    def is_root(self) -> bool:
        """Check if this is the root process."""
        return self.rank == 0

    @abstractmethod
    def broadcast_command(self, command: Command | None, n_parameters: int) -> Command:
        """
        Send the root's command to every rank.

        Args:
            command: Command to send (root only; None on other ranks).
            n_parameters: Parameter vector length, known on every rank.

        Returns:
            The broadcast command on all ranks.
        """
        ...

    @abstractmethod
    def reduce_partials(self, partial: NDArray[np.floating]) -> NDArray[np.floating] | None:
        """
        Sum every rank's partial deviation vector on the root.

        Partials are added in rank order, so a fixed partition gives a
        bitwise reproducible total.

        Args:
            partial: This rank's partial vector.

        Returns:
            Reduced sum on root, None on other ranks.
        """
        ...

    @abstractmethod
    def barrier(self) -> None:
        """Synchronize all workers."""
        ...

    def launch(self, target: Callable[..., None], *args: Any) -> None:
        """
        Start the non-root workers of the pool.

        Backends whose ranks already run the same program (MPI) need no
        launch step. Process-pool backends start ``target(backend, *args)``
        in every child, with a backend bound to that child's rank.

        Args:
            target: Picklable function serving one worker.
            *args: Picklable arguments for target.
        """

    def close(self) -> None:
        """Release backend resources at the end of a run."""
