"""
fitcore - Force-matching engine for interatomic potentials.

Design Principles:
- One table format shared by every interaction model
- Fixed-length, deterministic deviation vectors
- Explicit run context instead of global state
- Lock-step (SPMD) parallel evaluation over MPI or processes
- External model libraries as drop-in force models

Quick Start:
    >>> from fitcore import FitContext, FitSettings
    >>> with FitContext(FitSettings(), configurations, potential) as fit:
    ...     deviation = fit.evaluate(potential.parameters())
"""

__version__ = "0.1.0"

from .context import Deviation, FitContext
from .deviation import DeviationAssembler, ResidualLayout
from .errors import (
    BridgeProtocolError,
    ConvergenceError,
    FitError,
    ParameterBoundError,
    PartitionError,
)
from .forcefields import ForceModel, ForceResult, create_force_model
from .neighborlists import NeighborContext
from .potentials import AnalyticPotential, PotentialRepresentation, TabulatedPotential
from .settings import FitSettings
from .splines import SplineTable
from .system import Box, Configuration

__all__ = [
    "FitContext",
    "Deviation",
    "FitSettings",
    "Box",
    "Configuration",
    "SplineTable",
    "PotentialRepresentation",
    "TabulatedPotential",
    "AnalyticPotential",
    "NeighborContext",
    "ForceModel",
    "ForceResult",
    "create_force_model",
    "ResidualLayout",
    "DeviationAssembler",
    "FitError",
    "ParameterBoundError",
    "ConvergenceError",
    "BridgeProtocolError",
    "PartitionError",
]
