"""Backend selection by name."""

from __future__ import annotations

from typing import Literal

from .backends.base import ParallelBackend
from .backends.serial import SerialBackend

BackendType = Literal["serial", "multiprocessing", "mpi4py"]


def get_backend(
    backend: BackendType | ParallelBackend | None = None,
    **kwargs,
) -> ParallelBackend:
    """
    Resolve a backend name to a new backend instance.

    Every call with a name builds a fresh backend; a run owns the backend
    it was given and closes it on shutdown.

    Args:
        backend: Backend name, a ready instance (returned unchanged), or
            None for a serial backend.
        **kwargs: Backend-specific arguments (n_workers for multiprocessing).

    Returns:
        ParallelBackend instance.

    Raises:
        ValueError: If the backend name is unknown.
        ImportError: If mpi4py is requested but not installed.

    Examples:
        >>> backend = get_backend()
        >>> backend = get_backend("multiprocessing", n_workers=4)
    """
    if isinstance(backend, ParallelBackend):
        return backend

    if backend is None or backend == "serial":
        return SerialBackend()

    elif backend == "multiprocessing":
        from .backends.multiprocessing_backend import MultiprocessingBackend

        return MultiprocessingBackend(**kwargs)

    elif backend == "mpi4py":
        from .backends.mpi4py_backend import MPI4PyBackend

        return MPI4PyBackend()

    else:
        raise ValueError(f"Unknown backend: {backend}. Available: serial, multiprocessing, mpi4py")
