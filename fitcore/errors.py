"""Exception hierarchy for the fitting engine.

Two classes of failure exist. Penalty-class errors (bad parameter steps,
non-converged dipole iterations) are absorbed into the cost the optimizer
sees. Fatal-class errors (bridge protocol violations, inconsistent worker
partitions) abort the run and name the contract that was broken.
"""

from __future__ import annotations


class FitError(Exception):
    """Base class for all fitcore errors."""


class ParameterBoundError(FitError, ValueError):
    """
    An optimizer step produced a potential that cannot be evaluated.

    Attributes:
        parameter: Flat index of the offending parameter, or None if the
            violation involves several parameters (e.g. node ordering).
    """

    def __init__(self, message: str, parameter: int | None = None) -> None:
        super().__init__(message)
        self.parameter = parameter


class ConvergenceError(FitError, RuntimeError):
    """A self-consistent iteration hit its iteration cap."""

    def __init__(self, message: str, iterations: int, residual: float) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.residual = residual


class BridgeProtocolError(FitError, RuntimeError):
    """
    The external model bridge was driven outside its contract.

    Attributes:
        contract: Short name of the violated contract.
    """

    def __init__(self, contract: str, message: str) -> None:
        super().__init__(f"[{contract}] {message}")
        self.contract = contract


class PartitionError(FitError, ValueError):
    """Static work partition is inconsistent with the worker count."""
