"""Messages broadcast from the root rank to the workers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np
from numpy.typing import ArrayLike, NDArray


class CommandKind(IntEnum):
    """What the workers do with a broadcast."""

    SHUTDOWN = 0
    EVALUATE = 1


@dataclass(frozen=True)
class Command:
    """
    One root-to-worker broadcast.

    On the wire a command is a float64 buffer of length n_parameters + 1:
    the kind code followed by the parameter vector (zeros for a shutdown).
    Every rank knows n_parameters from its own potential copy, so receive
    buffers are preallocated and no pickling is involved.

    Attributes:
        kind: Evaluate or shut down.
        parameters: Read-only parameter vector of an evaluate command.
    """

    kind: CommandKind
    parameters: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        if self.kind == CommandKind.EVALUATE:
            if self.parameters is None:
                raise ValueError("An evaluate command needs a parameter vector")
            parameters = np.array(self.parameters, dtype=np.float64).ravel()
            parameters.flags.writeable = False
            object.__setattr__(self, "parameters", parameters)
        elif self.parameters is not None:
            raise ValueError("A shutdown command carries no parameters")

    @classmethod
    def evaluate(cls, parameters: ArrayLike) -> Command:
        """Command to evaluate one parameter vector."""
        return cls(CommandKind.EVALUATE, parameters)

    @classmethod
    def shutdown(cls) -> Command:
        """Command ending the worker loop."""
        return cls(CommandKind.SHUTDOWN)

    def pack(self, n_parameters: int) -> NDArray[np.floating]:
        """
        Encode into a flat buffer.

        Raises:
            ValueError: If the parameter vector has the wrong length.
        """
        buffer = np.zeros(n_parameters + 1)
        buffer[0] = float(self.kind)
        if self.kind == CommandKind.EVALUATE:
            if len(self.parameters) != n_parameters:
                raise ValueError(
                    f"Expected {n_parameters} parameters, got {len(self.parameters)}"
                )
            buffer[1:] = self.parameters
        return buffer

    @classmethod
    def unpack(cls, buffer: ArrayLike) -> Command:
        """Decode a buffer written by ``pack``."""
        buffer = np.asarray(buffer, dtype=np.float64)
        kind = CommandKind(int(buffer[0]))
        if kind == CommandKind.SHUTDOWN:
            return cls.shutdown()
        return cls.evaluate(buffer[1:])
