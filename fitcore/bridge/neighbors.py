"""Pull-based neighbor access for external models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..errors import BridgeProtocolError
from .protocol import (
    ITERATOR_INCREMENT,
    ITERATOR_MODE,
    ITERATOR_RESET,
    LOCATOR_MODE,
    STATUS_NEIGH_INVALID_MODE,
    STATUS_NEIGH_INVALID_REQUEST,
    STATUS_NEIGH_ITER_INIT_OK,
    STATUS_NEIGH_ITER_PAST_END,
    STATUS_OK,
    NeighborAnswer,
)

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext

_EMPTY_INDICES = np.zeros(0, dtype=np.int64)
_EMPTY_VECTORS = np.zeros((0, 3))


class NeighborObject:
    """
    Neighbor list of one configuration as seen by an external model.

    Built from an existing NeighborContext, restricted to the published
    cutoff. Internally atoms are 0-based; ``get_neigh`` speaks the external
    library's 1-based dialect with its two addressing modes:

    - iterator mode: request 0 resets the iterator, request 1 advances to
      the next atom and returns its neighbors, or signals the end;
    - locator mode: the request is the 1-based index of the atom wanted.

    Attributes:
        cutoff: Published cutoff the list is restricted to.
        iterator_id: Last atom returned by the iterator; RESET before the first.
    """

    RESET = -1

    def __init__(self, context: NeighborContext, cutoff: float | None) -> None:
        """
        Restrict a neighbor context to a published cutoff.

        Raises:
            BridgeProtocolError: If no cutoff was published, or the context
                was built with a smaller cutoff.
        """
        if cutoff is None:
            raise BridgeProtocolError(
                "publish-cutoff", "Neighbor setup requested before a cutoff was published"
            )
        if cutoff > context.cutoff:
            raise BridgeProtocolError(
                "publish-cutoff",
                f"Published cutoff {cutoff} exceeds neighbor context cutoff {context.cutoff}",
            )
        self.cutoff = float(cutoff)
        self.n_atoms = context.n_atoms

        keep = context.distance < self.cutoff
        self._center = context.center[keep]
        self._neighbor = context.neighbor[keep]
        self._vector = context.vector[keep]
        self._offsets = np.searchsorted(self._center, np.arange(self.n_atoms + 1))
        self.iterator_id = self.RESET

    def neighbors_of(self, atom: int) -> tuple[NDArray[np.integer], NDArray[np.floating]]:
        """
        0-based neighbors of an atom and the vectors r_neighbor - r_atom.

        Raises:
            BridgeProtocolError: If the atom index is out of range.
        """
        if not 0 <= atom < self.n_atoms:
            raise BridgeProtocolError(
                "neighbor-index", f"Atom {atom} out of range for {self.n_atoms} atoms"
            )
        start, stop = self._offsets[atom], self._offsets[atom + 1]
        return self._neighbor[start:stop], self._vector[start:stop]

    def reset(self) -> None:
        """Return the iterator to its reset value."""
        self.iterator_id = self.RESET

    def advance(self) -> tuple[int, NDArray[np.integer], NDArray[np.floating]] | None:
        """
        Step the iterator to the next atom.

        Returns:
            (atom, neighbors, vectors), or None past the last atom.
        """
        if self.iterator_id + 1 >= self.n_atoms:
            self.iterator_id = self.n_atoms
            return None
        self.iterator_id += 1
        neighbors, vectors = self.neighbors_of(self.iterator_id)
        return self.iterator_id, neighbors, vectors

    def get_neigh(self, mode: int, request: int) -> NeighborAnswer:
        """
        Callback in the external library's call shape.

        Args:
            mode: ITERATOR_MODE or LOCATOR_MODE.
            request: Iterator request, or 1-based atom index in locator mode.

        Returns:
            Tuple (status, atom, n_neighbors, neighbors, rij) with 1-based
            atom and neighbor indices.

        Raises:
            BridgeProtocolError: For an unknown mode, an unknown iterator
                request or an out-of-range atom.
        """
        if mode == ITERATOR_MODE:
            if request == ITERATOR_RESET:
                self.reset()
                return STATUS_NEIGH_ITER_INIT_OK, 0, 0, _EMPTY_INDICES, _EMPTY_VECTORS
            if request == ITERATOR_INCREMENT:
                step = self.advance()
                if step is None:
                    return STATUS_NEIGH_ITER_PAST_END, 0, 0, _EMPTY_INDICES, _EMPTY_VECTORS
                atom, neighbors, vectors = step
                return STATUS_OK, atom + 1, len(neighbors), neighbors + 1, vectors
            raise BridgeProtocolError(
                "neighbor-request",
                f"Invalid iterator request {request} (status {STATUS_NEIGH_INVALID_REQUEST})",
            )

        if mode == LOCATOR_MODE:
            if not 1 <= request <= self.n_atoms:
                raise BridgeProtocolError(
                    "neighbor-index",
                    f"Locator request {request} outside 1..{self.n_atoms} "
                    f"(status {STATUS_NEIGH_INVALID_REQUEST})",
                )
            neighbors, vectors = self.neighbors_of(request - 1)
            return STATUS_OK, request, len(neighbors), neighbors + 1, vectors

        raise BridgeProtocolError(
            "neighbor-mode", f"Invalid neighbor mode {mode} (status {STATUS_NEIGH_INVALID_MODE})"
        )
