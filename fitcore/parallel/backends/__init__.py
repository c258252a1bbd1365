"""Parallel backend implementations."""

from .base import ParallelBackend
from .multiprocessing_backend import MultiprocessingBackend, PipeWorkerBackend
from .serial import SerialBackend

__all__ = [
    "ParallelBackend",
    "MultiprocessingBackend",
    "PipeWorkerBackend",
    "SerialBackend",
]
