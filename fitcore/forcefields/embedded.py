"""Embedded-atom and angular-dependent force models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import ForceModel, ForceResult, scatter_bond_gradients
from .pair import pair_terms

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext
    from ..potentials import PotentialRepresentation


def host_density(
    potential: PotentialRepresentation, context: NeighborContext, channel: str
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Host density of every atom from one transfer channel.

    Returns:
        Tuple (density per atom, transfer-function derivative per entry).
    """
    rho, drho = context.evaluate(potential, channel)
    density = np.bincount(context.center, weights=rho, minlength=context.n_atoms)
    return density, drho


def embedding_terms(
    potential: PotentialRepresentation, context: NeighborContext, result: ForceResult
) -> None:
    """
    Accumulate F(rho_i) for every (density, embedding) channel pair.

    The embedding derivative is taken together with its value so F is
    evaluated once per atom. Densities are stored on the result.
    """
    types = context.config.types
    for density_channel, embed_channel in potential.descriptor.embedding:
        density, drho = host_density(potential, context, density_channel)
        embed, dembed = potential.evaluate_per_type(embed_channel, density, types)
        result.energies += embed
        result.densities[density_channel] = density

        gradients = (dembed[context.center] * drho)[:, np.newaxis] * context.unit
        scatter_bond_gradients(result, context, slice(None), gradients)


class EAMForce(ForceModel):
    """
    Embedded-atom method with one or two transfer channels.

    E = 1/2 * sum_ij phi(r_ij) + sum_i F(rho_i) [+ sum_i F2(rho2_i)]

    rho_i = sum_j rho_{t_j}(r_ij)
    """

    name = "eam"
    models = ("eam", "tbeam")

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute pair and embedding contributions."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)
        embedding_terms(potential, context, result)
        return result


class ADPForce(ForceModel):
    """
    Angular-dependent potential.

    Adds dipole and quadrupole distortion terms to EAM:

        E_i = 1/2 sum_j phi + F(rho_i) + 1/2 |mu_i|^2 + 1/2 sum lambda_i^2
              - 1/6 nu_i^2

    with mu_i = sum_j u(r_ij) d_ij, lambda_i = sum_j w(r_ij) d_ij (x) d_ij
    and nu_i the trace of lambda_i. The per-atom sums must be complete
    before any force is applied.
    """

    name = "adp"
    models = ("adp",)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute pair, embedding and angular contributions."""
        result = ForceResult.zeros(context.n_atoms, with_stress)
        pair_terms(potential, context, result)
        embedding_terms(potential, context, result)

        n_atoms = context.n_atoms
        d = context.vector
        r = context.distance
        u, du = context.evaluate(potential, "u")
        w, dw = context.evaluate(potential, "w")

        # First pass: vector and tensor partial sums per atom
        mu = np.zeros((n_atoms, 3))
        np.add.at(mu, context.center, u[:, np.newaxis] * d)
        dd = d[:, :, np.newaxis] * d[:, np.newaxis, :]
        lam = np.zeros((n_atoms, 3, 3))
        np.add.at(lam, context.center, w[:, np.newaxis, np.newaxis] * dd)
        nu = np.trace(lam, axis1=1, axis2=2)

        result.energies += (
            0.5 * np.sum(mu * mu, axis=1)
            + 0.5 * np.sum(lam * lam, axis=(1, 2))
            - nu * nu / 6.0
        )

        # Second pass: bond gradients from the completed sums
        mu_k = mu[context.center]
        lam_k = lam[context.center]
        nu_k = nu[context.center]
        mu_dot_d = np.einsum("ij,ij->i", mu_k, d)
        lam_d = np.einsum("kab,kb->ka", lam_k, d)
        d_lam_d = np.einsum("ka,ka->k", d, lam_d)

        gradients = (
            u[:, np.newaxis] * mu_k
            + (du * mu_dot_d / r)[:, np.newaxis] * d
            + 2.0 * w[:, np.newaxis] * lam_d
            + (dw * d_lam_d / r)[:, np.newaxis] * d
            - (nu_k * (2.0 * w + dw * r) / 3.0)[:, np.newaxis] * d
        )
        scatter_bond_gradients(result, context, slice(None), gradients)
        return result
