"""Multiprocessing backend with a persistent pool of pipe-connected workers."""

from __future__ import annotations

import logging
import multiprocessing as mp
from collections.abc import Callable
from multiprocessing.connection import Connection
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..messages import Command
from .base import ParallelBackend

logger = logging.getLogger(__name__)


class MultiprocessingBackend(ParallelBackend):
    """
    Multiprocessing backend for single-node runs.

    The root process is rank 0. ``launch`` starts ranks 1..n-1 as child
    processes that live for the whole run; each is connected to the root by
    a duplex pipe and runs the same SPMD step as an MPI rank would.

    Example:
        backend = MultiprocessingBackend(n_workers=4)
        evaluator = DistributedEvaluator(configs, pot, model, settings, backend)
        ...
        evaluator.shutdown()
    """

    def __init__(self, n_workers: int | None = None) -> None:
        """
        Initialize multiprocessing backend.

        Args:
            n_workers: Number of workers including the root. Defaults to CPU count.
        """
        self._n_workers = n_workers or mp.cpu_count()
        if self._n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self._n_workers}")
        self._connections: list[Connection] = []
        self._processes: list[mp.Process] = []

    @property
    def name(self) -> str:
        """Return backend name."""
        return "multiprocessing"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return self._n_workers

    @property
    def rank(self) -> int:
        """Return rank (always 0 for the root process)."""
        return 0

    @property
    def started(self) -> bool:
        """Whether the child workers are running."""
        return len(self._processes) > 0

    def launch(self, target: Callable[..., None], *args: Any) -> None:
        """
        Start one child process per non-root rank.

        Args:
            target: Picklable function called as target(backend, *args).
            *args: Picklable arguments for target.
        """
        if self.started:
            raise RuntimeError("Worker processes already started")
        ctx = mp.get_context()
        for rank in range(1, self._n_workers):
            parent_conn, child_conn = ctx.Pipe(duplex=True)
            process = ctx.Process(
                target=_child_main,
                args=(target, rank, self._n_workers, child_conn, args),
                name=f"fitcore-worker-{rank}",
                daemon=True,
            )
            process.start()
            child_conn.close()
            self._connections.append(parent_conn)
            self._processes.append(process)
        logger.info("Started %d worker processes", len(self._processes))

    def broadcast_command(self, command: Command | None, n_parameters: int) -> Command:
        """Send the encoded command to every child and return it decoded."""
        if command is None:
            raise ValueError("The root must supply a command")
        buffer = command.pack(n_parameters)
        for conn in self._connections:
            conn.send_bytes(buffer)
        return Command.unpack(buffer)

    def reduce_partials(self, partial: NDArray[np.floating]) -> NDArray[np.floating]:
        """Sum the root's partial with one partial from every child, in rank order."""
        total = np.array(partial, dtype=np.float64)
        for conn in self._connections:
            total += np.frombuffer(conn.recv_bytes(), dtype=np.float64)
        return total

    def barrier(self) -> None:
        """Wait for a token from every child, then release them."""
        for conn in self._connections:
            conn.recv()
        for conn in self._connections:
            conn.send(True)

    def close(self) -> None:
        """Join child processes and close pipes."""
        for process in self._processes:
            process.join(timeout=5.0)
            if process.is_alive():
                logger.warning("Terminating unresponsive worker %s", process.name)
                process.terminate()
        for conn in self._connections:
            conn.close()
        if self._processes:
            logger.info("Stopped %d worker processes", len(self._processes))
        self._processes = []
        self._connections = []


class PipeWorkerBackend(ParallelBackend):
    """Child side of a MultiprocessingBackend: one rank talking to the root."""

    def __init__(self, rank: int, n_workers: int, connection: Connection) -> None:
        self._rank = rank
        self._n_workers = n_workers
        self._conn = connection

    @property
    def name(self) -> str:
        """Return backend name."""
        return "multiprocessing"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return self._n_workers

    @property
    def rank(self) -> int:
        """Return rank of this child."""
        return self._rank

    def broadcast_command(self, command: Command | None, n_parameters: int) -> Command:
        """Receive the root's command buffer."""
        buffer = np.frombuffer(self._conn.recv_bytes(), dtype=np.float64)
        if len(buffer) != n_parameters + 1:
            raise ValueError(
                f"Rank {self._rank}: command of length {len(buffer)}, expected {n_parameters + 1}"
            )
        return Command.unpack(buffer)

    def reduce_partials(self, partial: NDArray[np.floating]) -> None:
        """Send the local partial to the root."""
        self._conn.send_bytes(np.ascontiguousarray(partial, dtype=np.float64))
        return None

    def barrier(self) -> None:
        """Report to the root and wait for the release."""
        self._conn.send(True)
        self._conn.recv()

    def close(self) -> None:
        """Close the pipe end."""
        self._conn.close()


def _child_main(
    target: Callable[..., None],
    rank: int,
    n_workers: int,
    connection: Connection,
    args: tuple[Any, ...],
) -> None:
    """Entry point of a child process."""
    backend = PipeWorkerBackend(rank, n_workers, connection)
    try:
        target(backend, *args)
    finally:
        backend.close()
