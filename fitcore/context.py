"""Run context owning all state of a fitting run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .forcefields import ForceModel, create_force_model
from .parallel import DistributedEvaluator
from .settings import FitSettings

if TYPE_CHECKING:
    from .parallel.backends.base import ParallelBackend
    from .parallel.dispatcher import BackendType
    from .potentials import PotentialRepresentation
    from .system import Configuration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Deviation:
    """
    Outcome of one evaluation.

    Attributes:
        vector: Weighted residual vector, fixed length per run.
        cost: Sum of squared residuals.
        used_count: Number of residuals that contribute.
        accepted: False if the parameter step was unevaluable.
    """

    vector: NDArray[np.floating]
    cost: float
    used_count: int
    accepted: bool


class FitContext:
    """
    Explicit owner of the run state handed to an optimizer.

    Holds the settings, configurations, potential, force model and parallel
    backend for the lifetime of a run. Optimizers only ever see parameter
    vectors going in and deviations coming out.

    Example:
        with FitContext(settings, configs, potential) as fit:
            deviation = fit.evaluate(potential.parameters())
            result = scipy.optimize.least_squares(
                lambda p: fit.residuals(p)[0], potential.parameters())
    """

    def __init__(
        self,
        settings: FitSettings,
        configurations: list[Configuration],
        potential: PotentialRepresentation,
        force_model: str | ForceModel | None = None,
        backend: BackendType | ParallelBackend | None = None,
        partition: list[range] | None = None,
    ) -> None:
        """
        Initialize the run context.

        Args:
            settings: Run settings.
            configurations: Reference configurations.
            potential: Potential representation with initial parameters.
            force_model: Force model or its name; defaults to the potential's
                interaction model.
            backend: Parallel backend or its name.
            partition: Explicit configuration ranges per worker.
        """
        for config in configurations:
            config.type_counts(potential.n_types)

        self.settings = settings
        self.configurations = configurations
        self.force_model = create_force_model(
            force_model if force_model is not None else potential.descriptor.name, settings
        )
        self.evaluator = DistributedEvaluator(
            configurations, potential, self.force_model, settings, backend, partition
        )
        self.layout = self.evaluator.layout
        self._initial = potential
        logger.info(
            "Fit context: %d configurations, %d parameters, %d residuals (%d used)",
            len(configurations),
            potential.n_parameters,
            self.layout.size,
            self.layout.used_count,
        )

    @property
    def is_root(self) -> bool:
        """Whether this process drives the optimizer."""
        return self.evaluator.backend.is_root

    @property
    def n_parameters(self) -> int:
        """Size of the optimizable parameter vector."""
        return self._initial.n_parameters

    @property
    def potential(self) -> PotentialRepresentation:
        """Potential holding the most recently evaluated parameters."""
        return self.evaluator.worker.potential

    def evaluate(self, parameters: ArrayLike) -> Deviation:
        """
        Evaluate the deviation for a parameter vector.

        Unevaluable steps never raise; they return the penalty vector with
        ``accepted`` set to False.
        """
        vector, accepted = self.evaluator.evaluate(parameters)
        return Deviation(
            vector=vector,
            cost=float(np.dot(vector, vector)),
            used_count=self.layout.used_count,
            accepted=accepted,
        )

    def cost(self, parameters: ArrayLike) -> float:
        """Scalar cost for scalar optimizers."""
        return self.evaluate(parameters).cost

    def residuals(self, parameters: ArrayLike) -> tuple[NDArray[np.floating], int]:
        """Deviation vector and used-residual count for least-squares optimizers."""
        deviation = self.evaluate(parameters)
        return deviation.vector, deviation.used_count

    def serve(self) -> None:
        """Worker loop for non-root ranks."""
        self.evaluator.serve()

    def close(self) -> None:
        """Shut the worker pool down."""
        self.evaluator.shutdown()

    def __enter__(self) -> FitContext:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
