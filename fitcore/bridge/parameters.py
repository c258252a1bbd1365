"""Optimizable parameter publication by name, rank and shape."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import BridgeProtocolError


@dataclass(frozen=True)
class ParameterInfo:
    """
    Declaration of one optimizable parameter of an external model.

    Attributes:
        name: Parameter name in the model's own storage.
        shape: Shape of the value; () for rank-0 scalars.
    """

    name: str
    shape: tuple[int, ...] = ()

    @property
    def rank(self) -> int:
        """Number of array dimensions (0 for scalars)."""
        return len(self.shape)

    @property
    def size(self) -> int:
        """Number of scalars in the flattened value."""
        return int(np.prod(self.shape, dtype=np.int64))


class OptimizableParameters:
    """
    Flat view of an external model's optimizable parameters.

    ``nest`` packs named values into one contiguous vector in declaration
    order (row-major for arrays); ``unnest`` is its inverse, returning
    floats for rank-0 parameters and arrays of the declared shape otherwise.

    Example:
        params = OptimizableParameters([ParameterInfo("shift"),
                                        ParameterInfo("lj", (3, 2))])
        values = params.unnest(vector)
        values["lj"].shape  # (3, 2)
    """

    def __init__(self, infos: list[ParameterInfo]) -> None:
        names = [info.name for info in infos]
        if len(set(names)) != len(names):
            raise BridgeProtocolError("parameter-shape", f"Duplicate parameter names: {names}")
        self.infos = list(infos)
        self.offsets = np.concatenate([[0], np.cumsum([info.size for info in infos])]).astype(
            np.int64
        )

    @property
    def size(self) -> int:
        """Total number of scalars."""
        return int(self.offsets[-1])

    @property
    def names(self) -> list[str]:
        """Parameter names in declaration order."""
        return [info.name for info in self.infos]

    def nest(self, values: dict[str, float | ArrayLike]) -> NDArray[np.floating]:
        """
        Pack named values into one flat vector.

        Raises:
            BridgeProtocolError: If a value is missing or has the wrong shape.
        """
        vector = np.empty(self.size)
        for info, start, stop in zip(self.infos, self.offsets[:-1], self.offsets[1:]):
            if info.name not in values:
                raise BridgeProtocolError("parameter-shape", f"Missing value for '{info.name}'")
            value = np.asarray(values[info.name], dtype=np.float64)
            if value.shape != info.shape:
                raise BridgeProtocolError(
                    "parameter-shape",
                    f"'{info.name}' has shape {value.shape}, declared {info.shape}",
                )
            vector[start:stop] = value.ravel()
        return vector

    def unnest(self, vector: ArrayLike) -> dict[str, float | NDArray[np.floating]]:
        """
        Split a flat vector into named values.

        Raises:
            BridgeProtocolError: If the vector length does not match.
        """
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != (self.size,):
            raise BridgeProtocolError(
                "parameter-shape",
                f"Vector of shape {vector.shape} for {self.size} declared scalars",
            )
        values: dict[str, float | NDArray[np.floating]] = {}
        for info, start, stop in zip(self.infos, self.offsets[:-1], self.offsets[1:]):
            if info.rank == 0:
                values[info.name] = float(vector[start])
            else:
                values[info.name] = vector[start:stop].reshape(info.shape).copy()
        return values
