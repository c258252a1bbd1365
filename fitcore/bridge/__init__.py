"""Bridge to pluggable external interatomic model libraries."""

from .adapter import ExternalModelBridge
from .models import LennardJonesModel
from .neighbors import NeighborObject
from .parameters import OptimizableParameters, ParameterInfo
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
    ComputeRequest,
    ExternalModel,
)

__all__ = [
    "ExternalModel",
    "ExternalModelBridge",
    "ComputeRequest",
    "NeighborObject",
    "OptimizableParameters",
    "ParameterInfo",
    "LennardJonesModel",
    "ITERATOR_MODE",
    "LOCATOR_MODE",
    "ITERATOR_RESET",
    "ITERATOR_INCREMENT",
    "STATUS_OK",
    "STATUS_NEIGH_ITER_PAST_END",
    "STATUS_NEIGH_ITER_INIT_OK",
    "STATUS_NEIGH_INVALID_MODE",
    "STATUS_NEIGH_INVALID_REQUEST",
]
