"""Spline interpolation of tabulated potential functions."""

from .table import SplineTable

__all__ = ["SplineTable"]
