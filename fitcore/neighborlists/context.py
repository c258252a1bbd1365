"""Per-configuration neighbor context reused across optimizer steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..potentials import PotentialRepresentation
    from ..system import Configuration

logger = logging.getLogger(__name__)

# Distances below this are treated as coincident atoms and rejected
_MIN_DISTANCE = 1e-10


@dataclass(frozen=True)
class AngleIndex:
    """
    Pairs of neighbor entries sharing a central atom.

    Attributes:
        center: Central atom of each pair, shape (n_angles,).
        first: Entry index of the first neighbor, shape (n_angles,).
        second: Entry index of the second neighbor, shape (n_angles,).
        cos: Cosine of the subtended angle, shape (n_angles,).
    """

    center: NDArray[np.integer]
    first: NDArray[np.integer]
    second: NDArray[np.integer]
    cos: NDArray[np.floating]

    def __len__(self) -> int:
        return len(self.center)


@dataclass(frozen=True)
class ChannelEntries:
    """Neighbor entries that fall inside one slot, with cached knot brackets."""

    slot: int
    entries: NDArray[np.integer]
    knots: NDArray[np.integer]


class NeighborContext:
    """
    Directed full neighbor list of one configuration.

    Built once from positions and cell with the largest cutoff of the run so
    one pass serves every channel. Each directed entry k records the central
    atom, the neighbor atom, the bond vector d_k = r_neighbor - r_center
    (periodic image included), its length and direction. Entries are sorted
    by central atom, then by distance.

    Distances never change during a fit, so bracketing knot indices are
    computed per slot on first use and reused until the potential's knot
    domains change.

    Attributes:
        config: The configuration this context belongs to.
        cutoff: Cutoff radius used for construction.
        center: Central atom of each entry, shape (n_entries,).
        neighbor: Neighbor atom of each entry, shape (n_entries,).
        vector: Bond vectors, shape (n_entries, 3).
        distance: Bond lengths, shape (n_entries,).
        unit: Unit bond vectors, shape (n_entries, 3).
        offsets: Entry range of each atom, shape (n_atoms + 1,).
    """

    def __init__(self, config: Configuration, cutoff: float) -> None:
        """
        Build the neighbor context.

        Args:
            config: Reference configuration.
            cutoff: Neighbor cutoff, usually the potential's largest cutoff.
        """
        if cutoff <= 0.0:
            raise ValueError(f"cutoff must be positive, got {cutoff}")
        self.config = config
        self.cutoff = float(cutoff)

        positions = config.box.wrap(config.positions)
        n_atoms = config.n_atoms
        centers = []
        neighbors = []
        vectors = []

        # Every periodic image within the cutoff sphere, not just the minimum image
        for shift in config.box.image_shifts(self.cutoff):
            d = positions[np.newaxis, :, :] + shift - positions[:, np.newaxis, :]
            r = np.linalg.norm(d, axis=2)
            i_idx, j_idx = np.nonzero((r < self.cutoff) & (r > _MIN_DISTANCE))
            centers.append(i_idx)
            neighbors.append(j_idx)
            vectors.append(d[i_idx, j_idx])

        center = np.concatenate(centers).astype(np.int64)
        neighbor = np.concatenate(neighbors).astype(np.int64)
        vector = np.concatenate(vectors).reshape(-1, 3)
        distance = np.linalg.norm(vector, axis=1)

        order = np.lexsort((distance, center))
        self.center = center[order]
        self.neighbor = neighbor[order]
        self.vector = vector[order]
        self.distance = distance[order]
        self.unit = self.vector / self.distance[:, np.newaxis]
        self.offsets = np.searchsorted(self.center, np.arange(n_atoms + 1))

        for array in (self.center, self.neighbor, self.vector, self.distance, self.unit):
            array.flags.writeable = False

        self._entries: dict[str, list[ChannelEntries]] = {}
        self._signature: tuple | None = None
        self._angles: dict[float, AngleIndex] = {}

    @classmethod
    def build(cls, config: Configuration, cutoff: float) -> NeighborContext:
        """Build a context for a configuration; alias of the constructor."""
        context = cls(config, cutoff)
        logger.debug(
            "Neighbor context for %s: %d atoms, %d entries within %.3f",
            config.name or "<unnamed>",
            config.n_atoms,
            context.n_entries,
            context.cutoff,
        )
        return context

    @property
    def n_entries(self) -> int:
        """Number of directed neighbor entries."""
        return len(self.center)

    @property
    def n_atoms(self) -> int:
        """Number of atoms in the configuration."""
        return self.config.n_atoms

    def neighbors_of(self, atom: int) -> slice:
        """Entry range of one atom's neighbors."""
        if not 0 <= atom < self.n_atoms:
            raise IndexError(f"Atom index {atom} out of range for {self.n_atoms} atoms")
        return slice(int(self.offsets[atom]), int(self.offsets[atom + 1]))

    def neighbor_counts(self) -> NDArray[np.integer]:
        """Number of neighbors of each atom."""
        return np.diff(self.offsets)

    # ------------------------------------------------------------------
    # Slot caches
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop cached knot brackets, e.g. after cutoffs changed."""
        self._entries.clear()
        self._angles.clear()
        self._signature = None

    def channel_entries(
        self, potential: PotentialRepresentation, channel: str
    ) -> list[ChannelEntries]:
        """
        Entries of a radial channel grouped by slot, with knot brackets.

        Only entries closer than the slot's cutoff are kept. The grouping is
        cached and recomputed only when the potential's knot domains change.

        Args:
            potential: Potential representation.
            channel: Radial channel name.

        Returns:
            One ChannelEntries per slot that has at least one entry.
        """
        signature = potential.domain_signature
        if signature != self._signature:
            if self._signature is not None:
                logger.debug("Knot domains changed; refreshing neighbor slot caches")
            self._entries.clear()
            self._signature = signature

        cached = self._entries.get(channel)
        if cached is not None:
            return cached

        types = self.config.types
        slots = potential.slot_lookup(channel)[types[self.center], types[self.neighbor]]
        groups = []
        for slot in np.unique(slots):
            table = potential.table(int(slot))
            entries = np.flatnonzero((slots == slot) & (self.distance < table.x_max))
            if len(entries) == 0:
                continue
            knots = table.locate(self.distance[entries])
            groups.append(ChannelEntries(int(slot), entries, knots))
        self._entries[channel] = groups
        return groups

    def evaluate(
        self, potential: PotentialRepresentation, channel: str
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """
        Value and radial derivative of a channel for every entry.

        Entries beyond their slot's cutoff get zero value and derivative.

        Returns:
            Tuple (values, derivatives), each shape (n_entries,).
        """
        value = np.zeros(self.n_entries)
        grad = np.zeros(self.n_entries)
        for group in self.channel_entries(potential, channel):
            value[group.entries], grad[group.entries] = potential.table(
                group.slot
            ).value_and_gradient(self.distance[group.entries], group.knots)
        return value, grad

    # ------------------------------------------------------------------
    # Angular index
    # ------------------------------------------------------------------

    def angles(self, cutoff: float | None = None) -> AngleIndex:
        """
        Secondary index of neighbor pairs sharing a central atom.

        Args:
            cutoff: Only pair up entries shorter than this (defaults to the
                context cutoff).

        Returns:
            AngleIndex with every unordered pair of distinct entries per center.
        """
        cutoff = self.cutoff if cutoff is None else float(cutoff)
        cached = self._angles.get(cutoff)
        if cached is not None:
            return cached

        centers = []
        firsts = []
        seconds = []
        for atom in range(self.n_atoms):
            start, stop = self.offsets[atom], self.offsets[atom + 1]
            entries = np.arange(start, stop)
            entries = entries[self.distance[entries] < cutoff]
            if len(entries) < 2:
                continue
            a, b = np.triu_indices(len(entries), k=1)
            centers.append(np.full(len(a), atom, dtype=np.int64))
            firsts.append(entries[a])
            seconds.append(entries[b])

        if centers:
            center = np.concatenate(centers)
            first = np.concatenate(firsts)
            second = np.concatenate(seconds)
        else:
            center = first = second = np.zeros(0, dtype=np.int64)
        cos = np.einsum("ij,ij->i", self.unit[first], self.unit[second])
        index = AngleIndex(center, first, second, np.clip(cos, -1.0, 1.0))
        self._angles[cutoff] = index
        return index
