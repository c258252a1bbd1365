"""Potential representations: slots, tables and analytic functions."""

from .analytic import AnalyticPotential, AnalyticSlotSpec, GlobalParameter
from .base import ParameterMap, PotentialRepresentation, Slot
from .functions import FUNCTIONS, AnalyticFunction, get_function
from .slots import MODELS, Channel, ChannelKind, ModelDescriptor, get_descriptor
from .tabulated import TabulatedPotential, TabulatedSlotSpec

__all__ = [
    "PotentialRepresentation",
    "TabulatedPotential",
    "TabulatedSlotSpec",
    "AnalyticPotential",
    "AnalyticSlotSpec",
    "GlobalParameter",
    "ParameterMap",
    "Slot",
    "AnalyticFunction",
    "FUNCTIONS",
    "get_function",
    "Channel",
    "ChannelKind",
    "ModelDescriptor",
    "MODELS",
    "get_descriptor",
]
