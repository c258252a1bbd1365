"""Pairwise force model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from .base import ForceModel, ForceResult, accumulate_energy, scatter_bond_gradients

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext
    from ..potentials import PotentialRepresentation


def pair_terms(
    potential: PotentialRepresentation, context: NeighborContext, result: ForceResult
) -> None:
    """
    Accumulate the pair channel phi into a result.

    E = 1/2 sum_k phi(r_k) over directed entries, so each direction of a
    bond carries half the pair energy and half the bond gradient.
    """
    phi, dphi = context.evaluate(potential, "phi")
    accumulate_energy(result, context.center, 0.5 * phi)
    gradients = (0.5 * dphi)[:, np.newaxis] * context.unit
    scatter_bond_gradients(result, context, slice(None), gradients)


class PairForce(ForceModel):
    """
    Tabulated pair potential.

    E = 1/2 * sum_i sum_j phi_{t_i t_j}(r_ij)

    Example:
        model = PairForce()
        result = model.compute(potential, context, with_stress=True)
    """

    name = "pair"
    models = ("pair",)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute pair energies and forces."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)
        return result
