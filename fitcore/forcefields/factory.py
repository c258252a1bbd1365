"""Construction-time selection of the force model."""

from __future__ import annotations

from typing import Literal

from ..settings import FitSettings
from .base import ForceModel
from .electrostatics import EAMElectrostaticForce, ElectrostaticForce
from .embedded import ADPForce, EAMForce
from .pair import PairForce
from .threebody import MEAMForce, StillingerWeberForce, TersoffForce

ModelType = Literal[
    "pair", "eam", "tbeam", "adp", "meam", "stiweb", "tersoff", "elstat", "eam_elstat"
]


def create_force_model(
    name: ModelType | ForceModel,
    settings: FitSettings | None = None,
    **kwargs,
) -> ForceModel:
    """
    Create the force model for an interaction model.

    Args:
        name: Interaction model name, or a ready ForceModel instance.
        settings: Run settings (used by the electrostatic models).
        **kwargs: Model-specific arguments.

    Returns:
        ForceModel instance.

    Raises:
        ValueError: If the model name is unknown.

    Examples:
        >>> model = create_force_model("eam")
        >>> model = create_force_model("elstat", settings, strict=True)
    """
    if isinstance(name, ForceModel):
        return name

    if name == "pair":
        return PairForce()

    elif name in ("eam", "tbeam"):
        return EAMForce()

    elif name == "adp":
        return ADPForce()

    elif name == "meam":
        return MEAMForce()

    elif name == "stiweb":
        return StillingerWeberForce()

    elif name == "tersoff":
        return TersoffForce()

    elif name == "elstat":
        return ElectrostaticForce(settings, **kwargs)

    elif name == "eam_elstat":
        return EAMElectrostaticForce(settings, **kwargs)

    else:
        raise ValueError(
            f"Unknown force model: {name}. "
            "Available: pair, eam, tbeam, adp, meam, stiweb, tersoff, elstat, eam_elstat"
        )
