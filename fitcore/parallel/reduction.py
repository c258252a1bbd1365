"""Lock-step distributed evaluation of the deviation vector."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..deviation import DeviationAssembler, ResidualLayout
from ..errors import ParameterBoundError
from ..neighborlists import NeighborContext
from .dispatcher import BackendType, get_backend
from .messages import Command, CommandKind
from .partition import check_partition, partition_configurations

if TYPE_CHECKING:
    from ..forcefields import ForceModel
    from ..potentials import PotentialRepresentation
    from ..settings import FitSettings
    from ..system import Configuration
    from .backends.base import ParallelBackend

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    """Position of a worker in the per-evaluation cycle."""

    IDLE = "idle"
    PARAMETERS_RECEIVED = "parameters_received"
    ACCUMULATED = "accumulated"
    READY = "ready"
    REDUCED = "reduced"


class Worker:
    """
    One rank's share of the evaluation.

    Owns a contiguous range of configurations, their neighbor contexts and a
    private copy of the potential. The copy is only ever written from a
    broadcast parameter vector, so all copies stay identical.

    Attributes:
        rank: Rank of the owning process.
        indices: Configuration indices owned by this worker.
        state: Current WorkerState.
        accepted: Whether the last parameter vector was valid.
    """

    def __init__(
        self,
        rank: int,
        configurations: list[Configuration],
        indices: range,
        potential: PotentialRepresentation,
        force_model: ForceModel,
        assembler: DeviationAssembler,
    ) -> None:
        self.rank = rank
        self.indices = indices
        self.configurations = [configurations[i] for i in indices]
        self.potential = potential
        self.force_model = force_model
        self.assembler = assembler
        self.state = WorkerState.IDLE
        self.accepted = True
        self._partial: NDArray[np.floating] | None = None

        cutoff = force_model.required_cutoff(potential)
        self.contexts = [NeighborContext.build(config, cutoff) for config in self.configurations]
        logger.info(
            "Worker %d owns configurations %d..%d (%d atoms)",
            rank,
            indices.start,
            indices.stop - 1,
            sum(config.n_atoms for config in self.configurations),
        )

    def _advance(self, expected: WorkerState, new: WorkerState) -> None:
        if self.state != expected:
            raise RuntimeError(
                f"Worker {self.rank}: cannot move to {new.value} from {self.state.value}"
            )
        self.state = new

    def receive(self, parameters: ArrayLike) -> None:
        """
        Apply a broadcast parameter vector to the private potential.

        An invalid vector is recorded rather than raised so every rank still
        reaches the reduction.
        """
        self._advance(WorkerState.IDLE, WorkerState.PARAMETERS_RECEIVED)
        try:
            self.potential.apply_parameters(parameters)
            self.accepted = True
        except ParameterBoundError as e:
            logger.debug("Worker %d rejected parameter step: %s", self.rank, e)
            self.accepted = False

    def accumulate(self) -> None:
        """Compute every owned configuration and write its residual region."""
        self._advance(WorkerState.PARAMETERS_RECEIVED, WorkerState.ACCUMULATED)
        partial = np.zeros(self.assembler.layout.size + 1)
        if self.accepted:
            for index, config, context in zip(self.indices, self.configurations, self.contexts):
                result = self.force_model.compute(self.potential, context, config.use_stress)
                self.assembler.fill(partial, index, config, result, self.potential)
        else:
            partial[-1] = 1.0
        self._partial = partial

    def ready(self) -> NDArray[np.floating]:
        """
        Partial deviation vector for the reduction.

        The trailing element counts rejected parameter vectors.
        """
        self._advance(WorkerState.ACCUMULATED, WorkerState.READY)
        return self._partial

    def reduced(self) -> None:
        """Mark the reduction complete and return to idle."""
        self._advance(WorkerState.READY, WorkerState.REDUCED)
        self._partial = None
        self._advance(WorkerState.REDUCED, WorkerState.IDLE)

    def step(self, parameters: ArrayLike) -> NDArray[np.floating]:
        """Run receive, accumulate and ready in order."""
        self.receive(parameters)
        self.accumulate()
        return self.ready()


class DistributedEvaluator:
    """
    SPMD evaluator: one broadcast and one reduction per evaluation.

    On the root rank ``evaluate`` drives the cycle; every other rank calls
    ``serve`` and loops until the root shuts the pool down. Backends that
    start their own workers (multiprocessing) are launched here.

    Example:
        evaluator = DistributedEvaluator(configs, pot, model, settings, "serial")
        vector, accepted = evaluator.evaluate(pot.parameters())
    """

    def __init__(
        self,
        configurations: list[Configuration],
        potential: PotentialRepresentation,
        force_model: ForceModel,
        settings: FitSettings,
        backend: BackendType | ParallelBackend | None = None,
        partition: list[range] | None = None,
    ) -> None:
        """
        Initialize the evaluator and this rank's worker.

        Args:
            configurations: All reference configurations, in layout order.
            potential: Root potential; each worker takes a private copy.
            force_model: Force model of the run.
            settings: Run settings.
            backend: Parallel backend or its name.
            partition: Explicit configuration ranges per rank.

        Raises:
            PartitionError: If the partition does not match the worker count.
        """
        if not configurations:
            raise ValueError("At least one configuration is required")
        force_model.check_potential(potential)

        self.backend = get_backend(backend)
        self.configurations = configurations
        self.potential = potential
        self.force_model = force_model
        self.settings = settings
        self.n_parameters = potential.n_parameters
        self.layout = ResidualLayout(configurations, potential)
        self.assembler = DeviationAssembler(self.layout, settings)

        n_workers = self.backend.n_workers
        if partition is None:
            partition = partition_configurations(
                [config.n_atoms for config in configurations], n_workers
            )
        check_partition(partition, len(configurations), n_workers)
        self.partition = partition

        if self.backend.is_root:
            self.backend.launch(
                _serve_worker, configurations, potential, force_model, settings, partition
            )

        self.worker = Worker(
            self.backend.rank,
            configurations,
            partition[self.backend.rank],
            potential.copy(),
            force_model,
            self.assembler,
        )
        self.backend.barrier()
        self._closed = False

    def evaluate(self, parameters: ArrayLike) -> tuple[NDArray[np.floating], bool]:
        """
        Evaluate the full deviation vector on the root rank.

        Args:
            parameters: Optimizable parameter vector.

        Returns:
            Tuple (deviation vector, accepted). A rejected step yields the
            penalty vector.
        """
        if not self.backend.is_root:
            raise RuntimeError("evaluate() is only available on the root rank")
        if self._closed:
            raise RuntimeError("Evaluator has been shut down")

        command = self.backend.broadcast_command(Command.evaluate(parameters), self.n_parameters)
        partial = self.worker.step(command.parameters)
        total = self.backend.reduce_partials(partial)
        self.worker.reduced()

        if total[-1] > 0.0:
            return self.assembler.penalty_vector(), False

        vector = total[:-1]
        # Root's potential copy already holds the broadcast parameters
        self.assembler.fill_globals(vector, self.worker.potential)
        return vector, True

    def serve(self) -> None:
        """Worker loop on non-root ranks; returns after shutdown."""
        if self.backend.is_root:
            raise RuntimeError("serve() must not be called on the root rank")
        while True:
            command = self.backend.broadcast_command(None, self.n_parameters)
            if command.kind == CommandKind.SHUTDOWN:
                break
            partial = self.worker.step(command.parameters)
            self.backend.reduce_partials(partial)
            self.worker.reduced()
        logger.info("Worker %d stopped", self.backend.rank)

    def shutdown(self) -> None:
        """Release the worker pool (root only); idempotent."""
        if self._closed or not self.backend.is_root:
            return
        if self.backend.n_workers > 1:
            self.backend.broadcast_command(Command.shutdown(), self.n_parameters)
        self.backend.close()
        self._closed = True


def _serve_worker(
    backend: ParallelBackend,
    configurations: list[Configuration],
    potential: PotentialRepresentation,
    force_model: ForceModel,
    settings: FitSettings,
    partition: list[range],
) -> None:
    """Body of a launched worker process."""
    evaluator = DistributedEvaluator(
        configurations, potential, force_model, settings, backend, partition
    )
    evaluator.serve()


def evaluate_serial(
    configurations: list[Configuration],
    potential: PotentialRepresentation,
    force_model: ForceModel,
    settings: FitSettings,
    parameters: ArrayLike,
    partition: list[range],
) -> tuple[NDArray[np.floating], bool]:
    """
    Emulate a partitioned run in one process.

    Each range is evaluated by its own Worker with a private potential copy
    and the partial vectors are summed, exactly as a reduction would.
    """
    layout = ResidualLayout(configurations, potential)
    assembler = DeviationAssembler(layout, settings)
    check_partition(partition, len(configurations), len(partition))

    total = np.zeros(layout.size + 1)
    workers: list[Worker] = []
    for rank, indices in enumerate(partition):
        worker = Worker(rank, configurations, indices, potential.copy(), force_model, assembler)
        total += worker.step(parameters)
        worker.reduced()
        workers.append(worker)

    if total[-1] > 0.0:
        return assembler.penalty_vector(), False
    vector = total[:-1]
    assembler.fill_globals(vector, workers[0].potential)
    return vector, True
