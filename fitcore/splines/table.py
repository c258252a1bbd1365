"""Cubic spline tables with precomputed second derivatives."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.linalg import solve_banded

logger = logging.getLogger(__name__)

# Relative tolerance for detecting equidistant knot sequences
_EQUIDISTANT_RTOL = 1e-10


class SplineTable:
    """
    Cubic spline interpolation over a strictly increasing knot sequence.

    Second derivatives are solved once per update of the knot values, so
    repeated evaluation during an optimizer step only costs the local
    polynomial. Each end of the table is either natural (zero curvature) or
    clamped to a prescribed slope; the choice is fixed at construction.

    Outside the knot range the table continues linearly with the boundary
    slope of the spline, so slightly out-of-range lookups stay finite.

    Attributes:
        x: Knot abscissae, shape (n,).
        y: Knot values, shape (n,).
        second_derivatives: Spline second derivatives at the knots, shape (n,).
        boundary_gradient: Clamped end slopes (None for a natural end).
    """

    def __init__(
        self,
        x: ArrayLike,
        y: ArrayLike,
        gradient: tuple[float | None, float | None] = (None, None),
    ) -> None:
        """
        Initialize a spline table.

        Args:
            x: Knot abscissae, strictly increasing, at least two knots.
            y: Knot values, same length as x.
            gradient: Slopes at the first and last knot. None selects a
                natural boundary at that end.
        """
        x = np.array(x, dtype=np.float64)
        if x.ndim != 1 or len(x) < 2:
            raise ValueError(f"Spline needs at least two knots, got shape {x.shape}")
        steps = np.diff(x)
        if np.any(steps <= 0.0):
            raise ValueError("Spline knots must be strictly increasing")
        x.flags.writeable = False

        self.x = x
        self._h = steps
        self._natural = (gradient[0] is None, gradient[1] is None)
        self.is_equidistant = bool(
            np.allclose(steps, steps[0], rtol=_EQUIDISTANT_RTOL, atol=0.0)
        )
        self._inv_step = 1.0 / steps[0]

        self.y = np.zeros_like(x)
        self.second_derivatives = np.zeros_like(x)
        self.boundary_gradient: tuple[float | None, float | None] = (None, None)
        self.update(y, gradient)

    @property
    def n_knots(self) -> int:
        """Return number of knots."""
        return len(self.x)

    @property
    def x_min(self) -> float:
        """First knot position."""
        return float(self.x[0])

    @property
    def x_max(self) -> float:
        """Last knot position."""
        return float(self.x[-1])

    @property
    def boundary(self) -> str:
        """Boundary type: 'natural', 'clamped' or 'mixed'."""
        if all(self._natural):
            return "natural"
        if not any(self._natural):
            return "clamped"
        return "mixed"

    def update(
        self,
        y: ArrayLike,
        gradient: tuple[float | None, float | None] | None = None,
    ) -> None:
        """
        Replace the knot values and recompute second derivatives.

        Must be called before any evaluation once the values change;
        evaluation never recomputes the coefficients itself.

        Args:
            y: New knot values.
            gradient: New boundary slopes for clamped ends. None keeps the
                previous slopes. The natural/clamped choice cannot change.
        """
        y = np.array(y, dtype=np.float64)
        if y.shape != self.x.shape:
            raise ValueError(f"y shape {y.shape} does not match knots {self.x.shape}")

        if gradient is not None:
            natural = (gradient[0] is None, gradient[1] is None)
            if natural != self._natural:
                raise ValueError("Boundary type of a spline table is fixed at construction")
            self.boundary_gradient = gradient

        self.y = y
        self.second_derivatives = self._solve_second_derivatives()

    def _solve_second_derivatives(self) -> NDArray[np.floating]:
        """Solve the tridiagonal spline system for the knot curvatures."""
        n = self.n_knots
        h = self._h
        y = self.y
        slopes = np.diff(y) / h

        # Banded storage: row 0 upper, row 1 diagonal, row 2 lower
        bands = np.zeros((3, n))
        rhs = np.zeros(n)

        bands[1, 1:-1] = 2.0 * (h[:-1] + h[1:])
        bands[0, 2:] = h[1:]
        bands[2, :-2] = h[:-1]
        rhs[1:-1] = 6.0 * (slopes[1:] - slopes[:-1])

        if self._natural[0]:
            bands[1, 0] = 1.0
        else:
            bands[1, 0] = 2.0 * h[0]
            bands[0, 1] = h[0]
            rhs[0] = 6.0 * (slopes[0] - self.boundary_gradient[0])

        if self._natural[1]:
            bands[1, -1] = 1.0
        else:
            bands[1, -1] = 2.0 * h[-1]
            bands[2, -2] = h[-1]
            rhs[-1] = 6.0 * (self.boundary_gradient[1] - slopes[-1])

        return solve_banded((1, 1), bands, rhs)

    def locate(self, x: ArrayLike) -> NDArray[np.integer]:
        """
        Find the bracketing interval index for each abscissa.

        Equidistant tables use a direct step computation, others a
        binary search. Indices are clipped to [0, n - 2], so points outside
        the table map onto the boundary interval.

        Args:
            x: Abscissae, any shape.

        Returns:
            Integer array of interval indices with the shape of x.
        """
        x = np.asarray(x, dtype=np.float64)
        if self.is_equidistant:
            index = np.floor((x - self.x[0]) * self._inv_step).astype(np.int64)
        else:
            index = np.searchsorted(self.x, x, side="right") - 1
        return np.clip(index, 0, self.n_knots - 2)

    def _interpolate(
        self, x: NDArray[np.floating], index: NDArray[np.integer] | None
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        if index is None:
            index = self.locate(x)
        else:
            index = np.asarray(index, dtype=np.int64)

        y = self.y
        y2 = self.second_derivatives
        h = self._h[index]
        a = (self.x[index + 1] - x) / h
        b = 1.0 - a
        y_lo, y_hi = y[index], y[index + 1]
        c_lo, c_hi = y2[index], y2[index + 1]

        value = a * y_lo + b * y_hi + ((a**3 - a) * c_lo + (b**3 - b) * c_hi) * h * h / 6.0
        grad = (
            (y_hi - y_lo) / h
            - (3.0 * a * a - 1.0) / 6.0 * h * c_lo
            + (3.0 * b * b - 1.0) / 6.0 * h * c_hi
        )

        below = x < self.x[0]
        above = x > self.x[-1]
        if np.any(below) or np.any(above):
            logger.debug(
                "Linear extrapolation for %d point(s) outside [%g, %g]",
                int(np.count_nonzero(below) + np.count_nonzero(above)),
                self.x[0],
                self.x[-1],
            )
            slope_lo, slope_hi = self.end_slopes()
            value = np.where(below, y[0] + slope_lo * (x - self.x[0]), value)
            grad = np.where(below, slope_lo, grad)
            value = np.where(above, y[-1] + slope_hi * (x - self.x[-1]), value)
            grad = np.where(above, slope_hi, grad)

        return value, grad

    def end_slopes(self) -> tuple[float, float]:
        """Spline slopes at the first and last knot."""
        h0, hn = self._h[0], self._h[-1]
        y, y2 = self.y, self.second_derivatives
        lo = (y[1] - y[0]) / h0 - h0 / 6.0 * (2.0 * y2[0] + y2[1])
        hi = (y[-1] - y[-2]) / hn + hn / 6.0 * (y2[-2] + 2.0 * y2[-1])
        return float(lo), float(hi)

    def value(self, x: ArrayLike, index: ArrayLike | None = None) -> NDArray[np.floating]:
        """
        Interpolated value.

        Args:
            x: Abscissae, any shape.
            index: Pre-resolved interval indices from ``locate``, or None.

        Returns:
            Values with the shape of x.
        """
        x = np.asarray(x, dtype=np.float64)
        return self._interpolate(x, None if index is None else np.asarray(index))[0]

    def gradient(self, x: ArrayLike, index: ArrayLike | None = None) -> NDArray[np.floating]:
        """Interpolated first derivative."""
        x = np.asarray(x, dtype=np.float64)
        return self._interpolate(x, None if index is None else np.asarray(index))[1]

    def value_and_gradient(
        self, x: ArrayLike, index: ArrayLike | None = None
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Interpolated value and first derivative from one bracket lookup."""
        x = np.asarray(x, dtype=np.float64)
        return self._interpolate(x, None if index is None else np.asarray(index))

    def copy(self) -> SplineTable:
        """Independent copy with the same knots and values."""
        return SplineTable(self.x, self.y.copy(), self.boundary_gradient)

    def listing(self) -> NDArray[np.floating]:
        """Knot listing as rows of (x, y, y'') for potential-file writers."""
        return np.column_stack([self.x, self.y, self.second_derivatives])
