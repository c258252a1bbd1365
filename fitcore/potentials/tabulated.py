"""Tabulated potentials: knot values are the free parameters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import ParameterBoundError
from ..splines import SplineTable
from .base import PotentialRepresentation, Slot
from .slots import ModelDescriptor, get_descriptor

if TYPE_CHECKING:
    from ..settings import FitSettings

# Local indices of boundary gradients in the parameter map
GRADIENT_LO = -1
GRADIENT_HI = -2


@dataclass
class TabulatedSlotSpec:
    """
    Declaration of one tabulated slot.

    Attributes:
        channel: Channel name.
        types: Type key of the slot.
        x: Knot positions.
        y: Initial knot values.
        invariant: Keep the slot fixed during optimization.
        gradient: Boundary slopes (None for a natural end).
        optimize_gradient: Whether each given boundary slope is a free parameter.
    """

    channel: str
    types: tuple[int, ...]
    x: ArrayLike
    y: ArrayLike
    invariant: bool = False
    gradient: tuple[float | None, float | None] = (None, None)
    optimize_gradient: tuple[bool, bool] = (False, False)


class TabulatedPotential(PotentialRepresentation):
    """
    Potential given as knot tables.

    The optimizable parameters are the knot values of every non-invariant
    slot followed, per slot, by any boundary slopes flagged as free.

    Example:
        pot = TabulatedPotential("pair", n_types=1, slots=[
            TabulatedSlotSpec("phi", (0, 0), x=np.linspace(1, 5, 20), y=y0),
        ])
        pot.apply_parameters(new_vector)
    """

    def __init__(
        self,
        model: str | ModelDescriptor,
        n_types: int,
        slots: list[TabulatedSlotSpec],
        boundary: str = "natural",
    ) -> None:
        """
        Initialize tabulated potential.

        Args:
            model: Interaction model name or descriptor.
            n_types: Number of atom types.
            slots: One declaration per slot of the model.
            boundary: Default end condition for slots without given slopes;
                'clamped' uses zero slope.
        """
        super().__init__(get_descriptor(model), n_types)
        if boundary not in ("natural", "clamped"):
            raise ValueError(f"Unknown boundary type: {boundary}")

        built = []
        self._specs = {}
        for spec in slots:
            gradient = spec.gradient
            if boundary == "clamped":
                gradient = tuple(0.0 if g is None else g for g in gradient)
            for end, flag in enumerate(spec.optimize_gradient):
                if flag and gradient[end] is None:
                    raise ValueError(
                        f"Slot {spec.channel}{spec.types}: cannot optimize a natural boundary"
                    )
            channel = self.descriptor.channel(spec.channel)
            table = SplineTable(spec.x, spec.y, gradient)
            key = (spec.channel, tuple(spec.types))
            built.append(Slot(key, channel, table, spec.invariant))
            self._specs[key] = spec
        self._register_slots(built)

        for index, slot in enumerate(self.slots):
            if slot.invariant:
                continue
            for k in range(slot.table.n_knots):
                self.parameter_map.add(index, k, f"{slot.name}[{k}]")
            flags = self._specs[slot.key].optimize_gradient
            if flags[0]:
                self.parameter_map.add(index, GRADIENT_LO, f"{slot.name}.grad_lo")
            if flags[1]:
                self.parameter_map.add(index, GRADIENT_HI, f"{slot.name}.grad_hi")

    def parameters(self) -> NDArray[np.floating]:
        """Current knot values and free boundary slopes."""
        values = np.empty(self.n_parameters)
        for i, (slot, local) in enumerate(zip(self.parameter_map.slots, self.parameter_map.local)):
            table = self.slots[slot].table
            if local == GRADIENT_LO:
                values[i] = table.boundary_gradient[0]
            elif local == GRADIENT_HI:
                values[i] = table.boundary_gradient[1]
            else:
                values[i] = table.y[local]
        return values

    def apply_parameters(self, vector: ArrayLike) -> None:
        """Write knot values into the tables and refresh their second derivatives."""
        vector = self._check_vector(vector)
        bad = np.flatnonzero(~np.isfinite(vector))
        if len(bad):
            raise ParameterBoundError(
                f"Non-finite value for {self.parameter_map.names[bad[0]]}", int(bad[0])
            )

        for index, slot in enumerate(self.slots):
            if slot.invariant:
                continue
            flat = self.parameter_map.indices_of(index)
            local = np.asarray(self.parameter_map.local)[flat]
            y = vector[flat[local >= 0]]
            lo, hi = slot.table.boundary_gradient
            if np.any(local == GRADIENT_LO):
                lo = float(vector[flat[local == GRADIENT_LO][0]])
            if np.any(local == GRADIENT_HI):
                hi = float(vector[flat[local == GRADIENT_HI][0]])
            slot.table.update(y, (lo, hi))

    @property
    def n_punishments(self) -> int:
        """One roughness residual per slot, then one per transfer function."""
        return self.n_slots + len(self._transfer_slots())

    def _transfer_slots(self) -> list[int]:
        transfer = {density for density, _ in self.descriptor.embedding}
        return [i for i, slot in enumerate(self.slots) if slot.channel.name in transfer]

    def punishments(self, settings: FitSettings) -> NDArray[np.floating]:
        """
        Shape residuals of the knot tables.

        The first block holds the weighted RMS second difference of each
        slot. The second holds, for every transfer function, the weighted
        norm of its rising knot steps, since densities must not grow with
        distance. Invariant slots contribute zero since the optimizer
        cannot change them.
        """
        result = np.zeros(self.n_punishments)
        if settings.smooth_weight > 0.0:
            for index, slot in enumerate(self.slots):
                if slot.invariant or slot.table.n_knots < 3:
                    continue
                second = np.diff(slot.table.y, 2)
                result[index] = settings.smooth_weight * np.sqrt(np.mean(second * second))
        if settings.monotone_weight > 0.0:
            for offset, index in enumerate(self._transfer_slots(), start=self.n_slots):
                slot = self.slots[index]
                if slot.invariant:
                    continue
                rise = np.maximum(np.diff(slot.table.y), 0.0)
                result[offset] = settings.monotone_weight * np.sqrt(np.sum(rise * rise))
        return result
