"""MPI backend using mpi4py."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..messages import Command
from .base import ParallelBackend


class MPI4PyBackend(ParallelBackend):
    """
    MPI backend using mpi4py for distributed-memory parallelism.

    This backend requires mpi4py to be installed and the program
    to be launched with mpirun/mpiexec. Rank 0 drives the optimizer;
    every other rank calls ``DistributedEvaluator.serve``. Commands and
    partials travel as raw float64 buffers (Bcast/Reduce).

    Example:
        mpirun -n 4 python fit.py
    """

    def __init__(self) -> None:
        """Initialize MPI backend."""
        try:
            from mpi4py import MPI
        except ImportError as e:
            raise ImportError(
                "mpi4py is required for MPI backend. Install with: pip install mpi4py"
            ) from e

        self._MPI = MPI
        self._comm = MPI.COMM_WORLD
        self._rank = self._comm.Get_rank()
        self._size = self._comm.Get_size()

    @property
    def name(self) -> str:
        """Return backend name."""
        return "mpi4py"

    @property
    def n_workers(self) -> int:
        """Return number of MPI processes."""
        return self._size

    @property
    def rank(self) -> int:
        """Return MPI rank of current process."""
        return self._rank

    def broadcast_command(self, command: Command | None, n_parameters: int) -> Command:
        """
        Broadcast the root's command buffer to all ranks.

        Args:
            command: Command to send (root only).
            n_parameters: Parameter vector length.

        Returns:
            The decoded command on every rank.
        """
        if self.is_root:
            if command is None:
                raise ValueError("The root must supply a command")
            buffer = command.pack(n_parameters)
        else:
            buffer = np.empty(n_parameters + 1)
        self._comm.Bcast(buffer, root=0)
        return Command.unpack(buffer)

    def reduce_partials(self, partial: NDArray[np.floating]) -> NDArray[np.floating] | None:
        """
        Sum-reduce partial vectors to the root.

        Args:
            partial: Local partial vector.

        Returns:
            Reduced sum on root, None elsewhere.
        """
        partial = np.ascontiguousarray(partial, dtype=np.float64)
        result = np.zeros_like(partial) if self.is_root else None
        self._comm.Reduce(partial, result, op=self._MPI.SUM, root=0)
        return result

    def barrier(self) -> None:
        """Synchronize all MPI processes."""
        self._comm.Barrier()
