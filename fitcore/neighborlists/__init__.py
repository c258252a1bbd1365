"""Neighbor contexts built once per configuration."""

from .context import AngleIndex, ChannelEntries, NeighborContext

__all__ = ["NeighborContext", "AngleIndex", "ChannelEntries"]
