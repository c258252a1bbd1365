"""Channel descriptors: which functions make up each interaction model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

import numpy as np
from numpy.typing import NDArray

Indexing = Literal["pair", "neighbor", "center"]
SlotKey = tuple[str, tuple[int, ...]]


class ChannelKind(str, Enum):
    """Domain of a channel's abscissa."""

    RADIAL = "radial"
    DENSITY = "density"
    ANGULAR = "angular"


@dataclass(frozen=True)
class Channel:
    """
    One family of interpolable functions within an interaction model.

    Attributes:
        name: Short channel name (phi, rho, F, ...).
        kind: What the abscissa measures.
        indexing: How slots are keyed. 'pair' uses the unordered type pair,
            'neighbor' the neighbor's type, 'center' the central atom's type.
    """

    name: str
    kind: ChannelKind
    indexing: Indexing

    def keys(self, n_types: int) -> list[tuple[int, ...]]:
        """Type keys of all slots of this channel, in table order."""
        if self.indexing == "pair":
            return [(i, j) for i in range(n_types) for j in range(i, n_types)]
        return [(i,) for i in range(n_types)]

    def key_for(self, type_i: int, type_j: int | None = None) -> tuple[int, ...]:
        """Slot key for a center type and (for pair/neighbor channels) a neighbor type."""
        if self.indexing == "center":
            return (type_i,)
        if type_j is None:
            raise ValueError(f"Channel '{self.name}' needs a neighbor type")
        if self.indexing == "neighbor":
            return (type_j,)
        return (min(type_i, type_j), max(type_i, type_j))


PHI = Channel("phi", ChannelKind.RADIAL, "pair")
RHO = Channel("rho", ChannelKind.RADIAL, "neighbor")
RHO2 = Channel("rho2", ChannelKind.RADIAL, "neighbor")
EMBED = Channel("F", ChannelKind.DENSITY, "center")
EMBED2 = Channel("F2", ChannelKind.DENSITY, "center")
DIPOLE = Channel("u", ChannelKind.RADIAL, "pair")
QUADRUPOLE = Channel("w", ChannelKind.RADIAL, "pair")
THREEBODY_RADIAL = Channel("f", ChannelKind.RADIAL, "pair")
ANGULAR = Channel("g", ChannelKind.ANGULAR, "center")
ATTRACTIVE = Channel("a", ChannelKind.RADIAL, "pair")
BOND_ORDER = Channel("b", ChannelKind.DENSITY, "center")


@dataclass(frozen=True)
class ModelDescriptor:
    """
    Active channels of one interaction model.

    Consumed uniformly by table construction and by the force models, so
    every model family shares one table format.

    Attributes:
        name: Model name.
        channels: Channels in table order.
        embedding: Pairs of (density channel, embedding channel).
        needs_angles: Whether the model uses the angular neighbor index.
        electrostatic: Whether the model carries per-type charges.
    """

    name: str
    channels: tuple[Channel, ...]
    embedding: tuple[tuple[str, str], ...] = ()
    needs_angles: bool = False
    electrostatic: bool = False

    def channel(self, name: str) -> Channel:
        """Look up a channel by name."""
        for channel in self.channels:
            if channel.name == name:
                return channel
        raise KeyError(f"Model '{self.name}' has no channel '{name}'")

    def slot_keys(self, n_types: int) -> list[SlotKey]:
        """All slot keys for a given number of atom types, in table order."""
        return [
            (channel.name, key) for channel in self.channels for key in channel.keys(n_types)
        ]


MODELS: dict[str, ModelDescriptor] = {
    "pair": ModelDescriptor("pair", (PHI,)),
    "eam": ModelDescriptor("eam", (PHI, RHO, EMBED), embedding=(("rho", "F"),)),
    "tbeam": ModelDescriptor(
        "tbeam",
        (PHI, RHO, RHO2, EMBED, EMBED2),
        embedding=(("rho", "F"), ("rho2", "F2")),
    ),
    "adp": ModelDescriptor(
        "adp", (PHI, RHO, EMBED, DIPOLE, QUADRUPOLE), embedding=(("rho", "F"),)
    ),
    "meam": ModelDescriptor(
        "meam",
        (PHI, RHO, EMBED, THREEBODY_RADIAL, ANGULAR),
        embedding=(("rho", "F"),),
        needs_angles=True,
    ),
    "stiweb": ModelDescriptor("stiweb", (PHI, THREEBODY_RADIAL, ANGULAR), needs_angles=True),
    "elstat": ModelDescriptor("elstat", (PHI,), electrostatic=True),
    "tersoff": ModelDescriptor(
        "tersoff", (PHI, ATTRACTIVE, THREEBODY_RADIAL, ANGULAR, BOND_ORDER), needs_angles=True
    ),
    "eam_elstat": ModelDescriptor(
        "eam_elstat", (PHI, RHO, EMBED), embedding=(("rho", "F"),), electrostatic=True
    ),
}


def get_descriptor(model: str | ModelDescriptor) -> ModelDescriptor:
    """Resolve a model name to its descriptor."""
    if isinstance(model, ModelDescriptor):
        return model
    try:
        return MODELS[model]
    except KeyError:
        raise ValueError(
            f"Unknown interaction model: {model}. Available: {', '.join(MODELS)}"
        ) from None


def slot_name(key: SlotKey) -> str:
    """Human-readable slot name, e.g. 'phi_0_1'."""
    channel, types = key
    return "_".join([channel, *(str(t) for t in types)])


def build_lookup(
    channel: Channel, n_types: int, slot_index: dict[SlotKey, int]
) -> NDArray[np.integer]:
    """
    Lookup table from (center type, neighbor type) to slot index.

    Per-atom channels are looked up with the center type on both axes.
    """
    lut = np.empty((n_types, n_types), dtype=np.int64)
    for ti in range(n_types):
        for tj in range(n_types):
            lut[ti, tj] = slot_index[(channel.name, channel.key_for(ti, tj))]
    return lut
