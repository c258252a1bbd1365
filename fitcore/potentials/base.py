"""Base interface for potential representations."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..splines import SplineTable
from .slots import Channel, ChannelKind, ModelDescriptor, SlotKey, build_lookup, slot_name

if TYPE_CHECKING:
    from ..settings import FitSettings
    from ..system import Configuration


@dataclass
class Slot:
    """
    One interpolable function of a potential.

    Attributes:
        key: (channel name, type key).
        channel: Channel descriptor.
        table: Spline table used by the force models.
        invariant: Held fixed during optimization.
    """

    key: SlotKey
    channel: Channel
    table: SplineTable
    invariant: bool = False

    @property
    def name(self) -> str:
        """Human-readable slot name."""
        return slot_name(self.key)

    @property
    def cutoff(self) -> float:
        """Upper end of the slot's domain."""
        return self.table.x_max

    @property
    def minimum(self) -> float:
        """Lower end of the slot's domain."""
        return self.table.x_min


@dataclass
class ParameterMap:
    """
    Bijection between the flat parameter vector and slot-local parameters.

    Attributes:
        slots: Owning slot index of each flat parameter (-1 for globals).
        local: Slot-local index of each flat parameter.
        names: Readable name of each flat parameter.
    """

    slots: list[int] = field(default_factory=list)
    local: list[int] = field(default_factory=list)
    names: list[str] = field(default_factory=list)

    def add(self, slot: int, local: int, name: str) -> int:
        """Append one parameter and return its flat index."""
        self.slots.append(slot)
        self.local.append(local)
        self.names.append(name)
        return len(self.names) - 1

    def __len__(self) -> int:
        return len(self.names)

    def indices_of(self, slot: int) -> NDArray[np.integer]:
        """Flat indices belonging to one slot, in local order."""
        return np.flatnonzero(np.asarray(self.slots) == slot)

    def locate(self, index: int) -> tuple[int, int]:
        """(slot, local index) of a flat parameter."""
        return self.slots[index], self.local[index]


class PotentialRepresentation(ABC):
    """
    Abstract base class for potential representations.

    A representation maps every slot of an interaction model to a spline
    table, owns the optimizable parameter vector, and knows how to turn a new
    parameter vector into updated tables. Force models only read tables
    through ``slot_for``/``table``/``evaluate_channel``.

    Attributes:
        descriptor: Active channels of the interaction model.
        n_types: Number of atom types.
        slots: Slots in table order.
    """

    def __init__(self, descriptor: ModelDescriptor, n_types: int) -> None:
        if n_types < 1:
            raise ValueError(f"n_types must be positive, got {n_types}")
        self.descriptor = descriptor
        self.n_types = n_types
        self.slots: list[Slot] = []
        self._slot_index: dict[SlotKey, int] = {}
        self._lookup: dict[str, NDArray[np.integer]] = {}
        self.parameter_map = ParameterMap()

    def _register_slots(self, slots: list[Slot]) -> None:
        """Order slots by the descriptor and build lookup tables."""
        by_key = {slot.key: slot for slot in slots}
        if len(by_key) != len(slots):
            raise ValueError("Duplicate slot definitions")
        expected = self.descriptor.slot_keys(self.n_types)
        missing = [slot_name(key) for key in expected if key not in by_key]
        if missing:
            raise ValueError(f"Missing slots for model '{self.descriptor.name}': {missing}")
        extra = [slot.name for slot in slots if slot.key not in set(expected)]
        if extra:
            raise ValueError(f"Unexpected slots for model '{self.descriptor.name}': {extra}")

        self.slots = [by_key[key] for key in expected]
        self._slot_index = {slot.key: i for i, slot in enumerate(self.slots)}
        self._lookup = {
            channel.name: build_lookup(channel, self.n_types, self._slot_index)
            for channel in self.descriptor.channels
        }

        for slot in self.slots:
            if slot.channel.kind == ChannelKind.RADIAL and slot.cutoff <= 0.0:
                raise ValueError(f"Slot {slot.name} has non-positive cutoff {slot.cutoff}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def n_slots(self) -> int:
        """Return number of slots."""
        return len(self.slots)

    def slot_for(self, channel: str, type_i: int, type_j: int | None = None) -> int:
        """Slot index for a channel and a (center, neighbor) type combination."""
        key = self.descriptor.channel(channel).key_for(type_i, type_j)
        return self._slot_index[(channel, key)]

    def slot_lookup(self, channel: str) -> NDArray[np.integer]:
        """(n_types, n_types) table of slot indices for a channel."""
        return self._lookup[channel]

    def table(self, slot: int) -> SplineTable:
        """Spline table of a slot."""
        return self.slots[slot].table

    def cutoff(self, slot: int) -> float:
        """Cutoff (upper domain end) of a slot."""
        return self.slots[slot].cutoff

    @property
    def max_cutoff(self) -> float:
        """Largest cutoff over all radial slots."""
        return max(
            slot.cutoff for slot in self.slots if slot.channel.kind == ChannelKind.RADIAL
        )

    def channel_cutoff(self, channel: str) -> float:
        """Largest cutoff over the slots of one channel."""
        return max(slot.cutoff for slot in self.slots if slot.key[0] == channel)

    @property
    def domain_signature(self) -> tuple[tuple[float, float, int], ...]:
        """Knot domains of all slots; changes only when cutoffs change."""
        return tuple(
            (slot.minimum, slot.cutoff, slot.table.n_knots) for slot in self.slots
        )

    # ------------------------------------------------------------------
    # Vectorised evaluation
    # ------------------------------------------------------------------

    def evaluate_per_type(
        self, channel: str, x: ArrayLike, types: NDArray[np.integer]
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """
        Evaluate a per-atom channel (e.g. embedding) at one abscissa per atom.

        Args:
            channel: Channel name.
            x: Abscissa per atom.
            types: Type of each atom.

        Returns:
            Tuple (values, gradients) with the shape of x.
        """
        x = np.asarray(x, dtype=np.float64)
        lut = self._lookup[channel]
        slots = lut[types, types]
        value = np.zeros_like(x)
        grad = np.zeros_like(x)
        for slot in np.unique(slots):
            mask = slots == slot
            value[mask], grad[mask] = self.slots[slot].table.value_and_gradient(x[mask])
        return value, grad

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def n_parameters(self) -> int:
        """Size of the optimizable parameter vector."""
        return len(self.parameter_map)

    def parameter_names(self) -> list[str]:
        """Readable names of the optimizable parameters."""
        return list(self.parameter_map.names)

    @abstractmethod
    def parameters(self) -> NDArray[np.floating]:
        """Current optimizable parameter vector (a copy)."""
        ...

    @abstractmethod
    def apply_parameters(self, vector: ArrayLike) -> None:
        """
        Update slot contents from a flat parameter vector.

        Tables are ready for evaluation when this returns.

        Raises:
            ParameterBoundError: If the vector describes an invalid potential.
        """
        ...

    @abstractmethod
    def punishments(self, settings: FitSettings) -> NDArray[np.floating]:
        """Punishment residuals; the length is fixed for a representation."""
        ...

    @property
    @abstractmethod
    def n_punishments(self) -> int:
        """Length of the punishment residual block."""
        ...

    def _check_vector(self, vector: ArrayLike) -> NDArray[np.floating]:
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != (self.n_parameters,):
            raise ValueError(
                f"Parameter vector has shape {vector.shape}, expected ({self.n_parameters},)"
            )
        return vector

    # ------------------------------------------------------------------
    # Global terms
    # ------------------------------------------------------------------

    @property
    def charges(self) -> NDArray[np.floating] | None:
        """Per-type charges, or None for models without electrostatics."""
        return None

    @property
    def polarisabilities(self) -> NDArray[np.floating] | None:
        """Per-type dipole polarisabilities, or None."""
        return None

    def extra_energy(self, config: Configuration) -> float:
        """Configuration energy outside the force models (chemical potentials)."""
        return 0.0

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def listing(self) -> dict[str, NDArray[np.floating]]:
        """Knot listing (x, y, y'') per slot, for potential-file writers."""
        return {slot.name: slot.table.listing() for slot in self.slots}

    def copy(self) -> PotentialRepresentation:
        """Independent deep copy, e.g. for a worker's private representation."""
        return copy.deepcopy(self)
