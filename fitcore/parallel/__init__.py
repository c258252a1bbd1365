"""Parallelization infrastructure for distributed evaluation."""

from .backends.base import ParallelBackend
from .backends.serial import SerialBackend
from .dispatcher import get_backend
from .messages import Command, CommandKind
from .partition import check_partition, partition_configurations
from .reduction import DistributedEvaluator, Worker, WorkerState, evaluate_serial

__all__ = [
    "ParallelBackend",
    "SerialBackend",
    "Command",
    "CommandKind",
    "DistributedEvaluator",
    "Worker",
    "WorkerState",
    "evaluate_serial",
    "partition_configurations",
    "check_partition",
    "get_backend",
]
