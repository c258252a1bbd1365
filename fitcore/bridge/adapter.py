"""Force model that delegates to an external model library."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..errors import BridgeProtocolError
from ..forcefields.base import ForceModel, ForceResult
from .neighbors import NeighborObject
from .parameters import OptimizableParameters
from .protocol import STATUS_OK, ComputeRequest, ExternalModel

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext
    from ..potentials import PotentialRepresentation

logger = logging.getLogger(__name__)


class ExternalModelBridge(ForceModel):
    """
    Adapter that lets an external model stand in for the internal accumulators.

    Every evaluation publishes the potential's optimizable parameters into
    the model, then the cutoff, then re-initialises the model. Neighbor
    requests are answered from the existing NeighborContext and the model's
    energy, forces and virial are copied into a ForceResult, so the deviation
    assembler cannot tell which backend ran.

    Example:
        bridge = ExternalModelBridge(LennardJonesModel(n_species=1))
        result = bridge.compute(potential, context, with_stress=True)
    """

    name = "external"

    def __init__(self, model: ExternalModel) -> None:
        """
        Initialize bridge.

        Args:
            model: External model instance.
        """
        self.model = model
        self.parameters = OptimizableParameters(model.parameter_info())

    def check_potential(self, potential: PotentialRepresentation) -> None:
        """
        Verify that the potential's parameter vector maps onto the model.

        Raises:
            BridgeProtocolError: If the flat sizes differ.
        """
        if potential.n_parameters != self.parameters.size:
            raise BridgeProtocolError(
                "parameter-shape",
                f"Potential has {potential.n_parameters} parameters, "
                f"model declares {self.parameters.size}",
            )

    def initial_parameters(self) -> NDArray[np.floating]:
        """Flat vector of the model's current parameter values."""
        return self.parameters.nest(
            {name: self.model.get_parameter(name) for name in self.parameters.names}
        )

    def publish(self, potential: PotentialRepresentation) -> None:
        """Publish parameters, then the cutoff, then re-initialise the model."""
        values = self.parameters.unnest(potential.parameters())
        for name, value in values.items():
            self.model.set_parameter(name, value)
        self.model.publish_cutoff(potential.max_cutoff)
        self.model.reinit()
        logger.debug(
            "Published %d parameters and cutoff %.4f", self.parameters.size, potential.max_cutoff
        )

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """
        Run the external model on one configuration.

        Raises:
            BridgeProtocolError: If the model was not re-initialised or
                reports a failure status.
        """
        self.publish(potential)
        if not self.model.initialised:
            raise BridgeProtocolError("reinit", "Model computed without re-initialisation")

        config = context.config
        neighbors = NeighborObject(context, self.model.cutoff)
        request = ComputeRequest(
            n_atoms=config.n_atoms,
            species=config.types,
            coordinates=config.positions,
            get_neigh=neighbors.get_neigh,
            compute_forces=True,
            compute_virial=with_stress,
        )
        status = self.model.compute(request)
        if status != STATUS_OK:
            raise BridgeProtocolError("compute", f"External model returned status {status}")

        if request.particle_energy is not None:
            energies = np.array(request.particle_energy, dtype=np.float64)
        else:
            # Only the total is meaningful without per-particle output
            energies = np.full(config.n_atoms, request.energy / config.n_atoms)
        return ForceResult(
            energies=energies,
            forces=np.array(request.forces, dtype=np.float64),
            virial=np.array(request.virial, dtype=np.float64) if with_stress else None,
        )
