"""Serial (single-process) backend."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..messages import Command
from .base import ParallelBackend


class SerialBackend(ParallelBackend):
    """
    Serial backend for single-process execution.

    Provides the reference result every partitioned run must reproduce.
    Commands still go through the wire encoding so the root sees exactly
    what an MPI or pipe worker would receive.
    """

    @property
    def name(self) -> str:
        """Return backend name."""
        return "serial"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return 1

    @property
    def rank(self) -> int:
        """Return rank of current process."""
        return 0

    def broadcast_command(self, command: Command | None, n_parameters: int) -> Command:
        """Round-trip the command through its buffer encoding."""
        if command is None:
            raise ValueError("The root must supply a command")
        return Command.unpack(command.pack(n_parameters))

    def reduce_partials(self, partial: NDArray[np.floating]) -> NDArray[np.floating]:
        """Copy of the only partial."""
        return np.array(partial, dtype=np.float64)

    def barrier(self) -> None:
        """Barrier is a no-op in serial."""
        pass
