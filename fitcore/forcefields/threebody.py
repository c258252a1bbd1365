"""Three-body force models using the angular neighbor index."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import ForceModel, ForceResult, accumulate_energy, scatter_bond_gradients
from .embedded import host_density
from .pair import pair_terms

if TYPE_CHECKING:
    from ..neighborlists import AngleIndex, NeighborContext
    from ..potentials import PotentialRepresentation


def triplet_terms(
    potential: PotentialRepresentation, context: NeighborContext
) -> tuple[AngleIndex, NDArray[np.floating], NDArray[np.floating], NDArray[np.floating]]:
    """
    Evaluate f(r_ij) f(r_ik) g(cos theta_jik) for every angle.

    Returns:
        Tuple (angles, terms, dterm/dd_ij, dterm/dd_ik); gradients have shape
        (n_angles, 3).
    """
    angles = context.angles(potential.channel_cutoff("f"))
    f, df = context.evaluate(potential, "f")
    types = context.config.types
    g, dg = potential.evaluate_per_type("g", angles.cos, types[angles.center])

    first, second, cos = angles.first, angles.second, angles.cos
    f1, f2 = f[first], f[second]
    u1, u2 = context.unit[first], context.unit[second]
    r1, r2 = context.distance[first], context.distance[second]

    terms = f1 * f2 * g
    # dcos/dd1 = (u2 - cos u1) / r1 and symmetrically for d2
    grad1 = (df[first] * f2 * g)[:, np.newaxis] * u1 + (f1 * f2 * dg / r1)[:, np.newaxis] * (
        u2 - cos[:, np.newaxis] * u1
    )
    grad2 = (f1 * df[second] * g)[:, np.newaxis] * u2 + (f1 * f2 * dg / r2)[:, np.newaxis] * (
        u1 - cos[:, np.newaxis] * u2
    )
    return angles, terms, grad1, grad2


def scatter_triplets(
    result: ForceResult,
    context: NeighborContext,
    angles: AngleIndex,
    grad1: NDArray[np.floating],
    grad2: NDArray[np.floating],
    scale: NDArray[np.floating] | None = None,
) -> None:
    """Distribute triplet gradients to the center and both neighbors."""
    if scale is not None:
        grad1 = scale[:, np.newaxis] * grad1
        grad2 = scale[:, np.newaxis] * grad2
    scatter_bond_gradients(result, context, angles.first, grad1)
    scatter_bond_gradients(result, context, angles.second, grad2)


class MEAMForce(ForceModel):
    """
    Modified embedded-atom method with an angular density contribution.

    rho_i = sum_j rho(r_ij) + sum_{j<k} f(r_ij) f(r_ik) g(cos theta_jik)
    E = 1/2 * sum_ij phi(r_ij) + sum_i F(rho_i)
    """

    name = "meam"
    models = ("meam",)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute pair, radial and angular density contributions."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)

        density, drho = host_density(potential, context, "rho")
        angles, terms, grad1, grad2 = triplet_terms(potential, context)
        density += np.bincount(angles.center, weights=terms, minlength=context.n_atoms)

        embed, dembed = potential.evaluate_per_type("F", density, context.config.types)
        result.energies += embed
        result.densities["rho"] = density

        radial = (dembed[context.center] * drho)[:, np.newaxis] * context.unit
        scatter_bond_gradients(result, context, slice(None), radial)
        scatter_triplets(result, context, angles, grad1, grad2, dembed[angles.center])
        return result


class StillingerWeberForce(ForceModel):
    """
    Stillinger-Weber style potential.

    E = 1/2 * sum_ij phi(r_ij) + sum_i sum_{j<k} f(r_ij) f(r_ik) g(cos theta_jik)
    """

    name = "stiweb"
    models = ("stiweb",)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute two- and three-body contributions."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)

        angles, terms, grad1, grad2 = triplet_terms(potential, context)
        accumulate_energy(result, angles.center, terms)
        scatter_triplets(result, context, angles, grad1, grad2)
        return result


class TersoffForce(ForceModel):
    """
    Tersoff bond-order potential.

    zeta_ij = sum_{k != j} f(r_ik) g(cos theta_jik)
    E = 1/2 * sum_ij [phi(r_ij) + b(zeta_ij) a(r_ij)]

    phi is the repulsive and a the attractive pair branch; b is the
    bond-order function of the central atom's type.
    """

    name = "tersoff"
    models = ("tersoff",)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute repulsive, bond-order-scaled attractive contributions."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)

        attract, dattract = context.evaluate(potential, "a")
        f, df = context.evaluate(potential, "f")
        types = context.config.types
        # Every bond with a nonzero attractive branch needs its full environment
        angles = context.angles(max(potential.channel_cutoff("a"), potential.channel_cutoff("f")))
        g, dg = potential.evaluate_per_type("g", angles.cos, types[angles.center])

        first, second, cos = angles.first, angles.second, angles.cos
        f1, f2 = f[first], f[second]
        zeta = np.bincount(first, weights=f2 * g, minlength=context.n_entries) + np.bincount(
            second, weights=f1 * g, minlength=context.n_entries
        )
        bond, dbond = potential.evaluate_per_type("b", zeta, types[context.center])
        accumulate_energy(result, context.center, 0.5 * bond * attract)

        direct = (0.5 * bond * dattract)[:, np.newaxis] * context.unit
        scatter_bond_gradients(result, context, slice(None), direct)

        # dE/dzeta per bond, then chain through each angle's two zeta terms
        weight = 0.5 * attract * dbond
        w1, w2 = weight[first], weight[second]
        u1, u2 = context.unit[first], context.unit[second]
        r1, r2 = context.distance[first], context.distance[second]
        angular = (w1 * f2 + w2 * f1) * dg
        grad1 = (angular / r1)[:, np.newaxis] * (u2 - cos[:, np.newaxis] * u1) + (
            w2 * df[first] * g
        )[:, np.newaxis] * u1
        grad2 = (angular / r2)[:, np.newaxis] * (u1 - cos[:, np.newaxis] * u2) + (
            w1 * df[second] * g
        )[:, np.newaxis] * u2
        scatter_triplets(result, context, angles, grad1, grad2)
        return result
