"""Force, energy and virial accumulation, one variant per model family."""

from .base import ForceModel, ForceResult, scatter_bond_gradients
from .electrostatics import EAMElectrostaticForce, ElectrostaticForce, damped_coulomb
from .embedded import ADPForce, EAMForce
from .factory import create_force_model
from .pair import PairForce
from .threebody import MEAMForce, StillingerWeberForce, TersoffForce

__all__ = [
    "ForceModel",
    "ForceResult",
    "scatter_bond_gradients",
    "PairForce",
    "EAMForce",
    "ADPForce",
    "MEAMForce",
    "StillingerWeberForce",
    "TersoffForce",
    "ElectrostaticForce",
    "EAMElectrostaticForce",
    "damped_coulomb",
    "create_force_model",
]
