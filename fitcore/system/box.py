"""Periodic cell representation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class Box:
    """
    Periodic cell of a reference configuration.

    Supports orthorhombic and triclinic cells via a 3x3 matrix representation.
    For orthorhombic cells, the matrix is diagonal with cell lengths on the diagonal.

    Attributes:
        vectors: 3x3 array where rows are cell vectors [a, b, c].
    """

    vectors: NDArray[np.floating]

    def __post_init__(self) -> None:
        """Validate and convert vectors to proper shape."""
        vectors = np.asarray(self.vectors, dtype=np.float64)
        if vectors.shape == (3,):
            vectors = np.diag(vectors)
        if vectors.shape != (3, 3):
            raise ValueError(f"Box vectors must be (3,) or (3, 3), got {vectors.shape}")
        if abs(np.linalg.det(vectors)) < 1e-12:
            raise ValueError("Box vectors are linearly dependent")
        vectors.flags.writeable = False
        object.__setattr__(self, "vectors", vectors)

    @classmethod
    def orthorhombic(cls, lx: float, ly: float, lz: float) -> Box:
        """Create an orthorhombic box with given side lengths."""
        return cls(np.array([lx, ly, lz]))

    @classmethod
    def cubic(cls, length: float) -> Box:
        """Create a cubic box with given side length."""
        return cls.orthorhombic(length, length, length)

    @classmethod
    def triclinic(cls, vectors: ArrayLike) -> Box:
        """Create a triclinic box from 3x3 matrix of box vectors."""
        return cls(np.asarray(vectors))

    @property
    def lengths(self) -> NDArray[np.floating]:
        """Return box vector lengths [|a|, |b|, |c|]."""
        return np.linalg.norm(self.vectors, axis=1)

    @property
    def volume(self) -> float:
        """Return box volume."""
        return float(np.abs(np.linalg.det(self.vectors)))

    @property
    def plane_spacings(self) -> NDArray[np.floating]:
        """Distances between opposite faces of the cell."""
        a, b, c = self.vectors
        return self.volume / np.linalg.norm(
            [np.cross(b, c), np.cross(c, a), np.cross(a, b)], axis=1
        )

    def wrap(self, positions: ArrayLike) -> NDArray[np.floating]:
        """
        Map Cartesian positions into the cell.

        Fractional coordinates are reduced to [0, 1) along every cell
        vector, so ``image_range`` covers all neighbors regardless of
        how far outside the cell the input coordinates lie.

        Args:
            positions: Cartesian positions, shape (n_atoms, 3).

        Returns:
            Wrapped Cartesian positions, shape (n_atoms, 3).
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        fractional = positions @ np.linalg.inv(self.vectors)
        fractional -= np.floor(fractional)
        # tiny negative coordinates round to exactly 1.0 after the subtraction
        fractional[fractional >= 1.0] = 0.0
        return fractional @ self.vectors

    def image_range(self, cutoff: float) -> tuple[int, int, int]:
        """
        Number of periodic images needed along each cell vector.

        A cutoff larger than half the cell requires more than the
        minimum image, so every image within the cutoff sphere is counted.

        Args:
            cutoff: Interaction cutoff distance.

        Returns:
            Tuple (na, nb, nc); images run from -n to +n along each vector.
        """
        counts = np.ceil(cutoff / self.plane_spacings).astype(int)
        return int(counts[0]), int(counts[1]), int(counts[2])

    def image_shifts(self, cutoff: float) -> NDArray[np.floating]:
        """
        Cartesian translation vectors of all images within ``image_range``.

        Returns:
            Array of shape (n_images, 3); the zero shift comes first.
        """
        na, nb, nc = self.image_range(cutoff)
        grid = np.array(
            [
                (i, j, k)
                for i in range(-na, na + 1)
                for j in range(-nb, nb + 1)
                for k in range(-nc, nc + 1)
            ],
            dtype=np.float64,
        )
        order = np.argsort(np.abs(grid).sum(axis=1), kind="stable")
        return grid[order] @ self.vectors
