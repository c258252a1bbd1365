"""Electrostatic force model with optional induced dipoles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
from scipy.special import erfc

from ..errors import ConvergenceError
from ..settings import FitSettings
from .base import ForceModel, ForceResult, accumulate_energy, scatter_bond_gradients
from .embedded import embedding_terms
from .pair import pair_terms

if TYPE_CHECKING:
    from ..neighborlists import NeighborContext
    from ..potentials import PotentialRepresentation

logger = logging.getLogger(__name__)


def damped_coulomb(
    r: NDArray[np.floating], kappa: float
) -> tuple[NDArray[np.floating], ...]:
    """
    Screened kernel erfc(kappa r) / r and its first three derivatives.

    Args:
        r: Distances.
        kappa: Damping parameter (0 gives the bare 1/r kernel).

    Returns:
        Tuple (g, g', g'', g''').
    """
    r = np.asarray(r, dtype=np.float64)
    e = erfc(kappa * r)
    h = 2.0 * kappa / np.sqrt(np.pi) * np.exp(-(kappa * r) ** 2)
    k2 = kappa * kappa
    g0 = e / r
    g1 = -e / r**2 - h / r
    g2 = 2.0 * e / r**3 + 2.0 * h / r**2 + 2.0 * k2 * h
    g3 = -6.0 * e / r**4 - 6.0 * h / r**3 - 4.0 * k2 * h / r - 4.0 * k2 * k2 * r * h
    return g0, g1, g2, g3


class ElectrostaticForce(ForceModel):
    """
    Short-range pair potential plus damped shifted-force Coulomb.

    The Coulomb kernel v(r) = g(r) - g(rc) - g'(rc) (r - rc) with
    g = erfc(kappa r) / r vanishes with its slope at the Coulomb cutoff,
    which is independent of the short-range cutoff. Atoms with a positive
    polarisability carry induced dipoles p_i = alpha_i E_i solved by linear
    mixing; the iteration stops at the tolerance or the iteration cap and
    reports non-convergence on the result.

    Attributes:
        settings: Run settings (cutoff, damping, dipole solver knobs).
        strict: Raise ConvergenceError instead of flagging the result.
    """

    name = "elstat"
    models = ("elstat",)

    def __init__(self, settings: FitSettings | None = None, strict: bool = False) -> None:
        """
        Initialize electrostatic force model.

        Args:
            settings: Run settings; defaults are used when None.
            strict: Raise on dipole non-convergence.
        """
        self.settings = settings if settings is not None else FitSettings()
        self.strict = strict
        self.cutoff = self.settings.coulomb_cutoff
        self.kappa = self.settings.coulomb_damping
        g_c, dg_c, _, _ = damped_coulomb(np.array([self.cutoff]), self.kappa)
        self._g_cut = float(g_c[0])
        self._dg_cut = float(dg_c[0])

    def required_cutoff(self, potential: PotentialRepresentation) -> float:
        """Short-range or Coulomb cutoff, whichever is larger."""
        return max(potential.max_cutoff, self.cutoff)

    def kernel(
        self, r: NDArray[np.floating]
    ) -> tuple[NDArray[np.floating], ...]:
        """
        Shifted kernel and the radial factors of its field and dipole tensor.

        With a = v'/r and b = (v'' - a)/r^2 the field of a charge is q a d and
        the dipole tensor is T = a I + b d (x) d.

        Returns:
            Tuple (v, a, da/dr, b, db/dr).
        """
        g0, g1, g2, g3 = damped_coulomb(r, self.kappa)
        v = g0 - self._g_cut - self._dg_cut * (r - self.cutoff)
        dv = g1 - self._dg_cut
        a = dv / r
        da = (g2 - a) / r
        b = (g2 - a) / r**2
        db = (g3 - da) / r**2 - 2.0 * b / r
        return v, a, da, b, db

    def self_energy(self, charges: NDArray[np.floating]) -> NDArray[np.floating]:
        """Per-atom self term of the shifted-force sum (before the Coulomb constant)."""
        shift = 0.5 * erfc(self.kappa * self.cutoff) / self.cutoff
        shift += self.kappa / np.sqrt(np.pi)
        return -shift * charges * charges

    def solve_dipoles(
        self,
        context: NeighborContext,
        entries: NDArray[np.integer],
        charges: NDArray[np.floating],
        alpha: NDArray[np.floating],
        a: NDArray[np.floating],
        b: NDArray[np.floating],
    ) -> tuple[NDArray[np.floating], int, bool]:
        """
        Self-consistent induced dipoles by linear mixing.

        p_new = mix * alpha * E(p) + (1 - mix) * p, starting from p = 0.

        Returns:
            Tuple (dipoles (N, 3), iterations used, converged flag).
        """
        n_atoms = context.n_atoms
        dipoles = np.zeros((n_atoms, 3))
        if not np.any(alpha > 0.0):
            return dipoles, 0, True

        settings = self.settings
        center = context.center[entries]
        neighbor = context.neighbor[entries]
        d = context.vector[entries]

        static = np.zeros((n_atoms, 3))
        np.add.at(static, center, (charges[neighbor] * a)[:, np.newaxis] * d)

        change = np.inf
        for iteration in range(1, settings.dipole_max_iterations + 1):
            p_j = dipoles[neighbor]
            field = static.copy()
            induced = a[:, np.newaxis] * p_j + (b * np.einsum("ij,ij->i", d, p_j))[:, np.newaxis] * d
            np.add.at(field, center, induced)

            updated = (
                settings.dipole_mixing * alpha[:, np.newaxis] * field
                + (1.0 - settings.dipole_mixing) * dipoles
            )
            change = float(np.sqrt(np.mean(np.sum((updated - dipoles) ** 2, axis=1))))
            dipoles = updated
            if change < settings.dipole_tolerance:
                return dipoles, iteration, True

        message = (
            f"Dipole iteration did not converge in {settings.dipole_max_iterations} "
            f"steps (RMS change {change:.3e})"
        )
        if self.strict:
            raise ConvergenceError(message, settings.dipole_max_iterations, change)
        logger.warning("%s for configuration %s", message, context.config.name or "<unnamed>")
        return dipoles, settings.dipole_max_iterations, False

    def short_range(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        result: ForceResult,
    ) -> None:
        """Accumulate the non-Coulomb part of the model."""
        pair_terms(potential, context, result)

    def compute(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        with_stress: bool = False,
    ) -> ForceResult:
        """Compute short-range, Coulomb and dipole contributions."""
        if context.cutoff < self.cutoff:
            raise ValueError(
                f"Neighbor context cutoff {context.cutoff} is below the Coulomb cutoff {self.cutoff}"
            )
        if potential.charges is None:
            raise ValueError("Electrostatic model requires per-type charges")

        result = ForceResult.zeros(context.n_atoms, with_stress)
        self.short_range(potential, context, result)

        types = context.config.types
        q = potential.charges[types]
        polar = potential.polarisabilities
        alpha = np.zeros(context.n_atoms) if polar is None else polar[types]

        entries = np.flatnonzero(context.distance < self.cutoff)
        center = context.center[entries]
        neighbor = context.neighbor[entries]
        d = context.vector[entries]
        r = context.distance[entries]
        v, a, da, b, db = self.kernel(r)

        dipoles, iterations, converged = self.solve_dipoles(context, entries, q, alpha, a, b)
        result.iterations = iterations
        result.converged = converged

        q_i, q_j = q[center], q[neighbor]
        p_i, p_j = dipoles[center], dipoles[neighbor]
        pi_d = np.einsum("ij,ij->i", p_i, d)
        pj_d = np.einsum("ij,ij->i", p_j, d)
        pi_pj = np.einsum("ij,ij->i", p_i, p_j)

        terms = 0.5 * q_i * q_j * v - q_j * a * pi_d - 0.5 * (a * pi_pj + b * pi_d * pj_d)
        self_terms = self.self_energy(q)
        polarised = alpha > 0.0
        self_terms[polarised] += (
            np.sum(dipoles[polarised] ** 2, axis=1) / (2.0 * alpha[polarised])
        )

        constant = self.settings.coulomb_constant
        accumulate_energy(result, center, constant * terms)
        result.energies += constant * self_terms

        inv_r = 1.0 / r
        gradients = (
            (0.5 * q_i * q_j * a)[:, np.newaxis] * d
            - q_j[:, np.newaxis]
            * ((da * pi_d * inv_r)[:, np.newaxis] * d + a[:, np.newaxis] * p_i)
            - 0.5
            * (
                ((da * pi_pj + db * pi_d * pj_d) * inv_r)[:, np.newaxis] * d
                + b[:, np.newaxis] * (pj_d[:, np.newaxis] * p_i + pi_d[:, np.newaxis] * p_j)
            )
        )
        scatter_bond_gradients(result, context, entries, constant * gradients)
        return result


class EAMElectrostaticForce(ElectrostaticForce):
    """
    Embedded-atom method plus the damped shifted-force Coulomb sum.

    E = 1/2 * sum_ij phi(r_ij) + sum_i F(rho_i) + E_coulomb [+ E_dipole]

    Charges, polarisabilities and the dipole solver behave as in
    ElectrostaticForce; the embedding densities are stored on the result
    for the density-limit residuals.
    """

    name = "eam_elstat"
    models = ("eam_elstat",)

    def short_range(
        self,
        potential: PotentialRepresentation,
        context: NeighborContext,
        result: ForceResult,
    ) -> None:
        """Accumulate pair and embedding contributions."""
        pair_terms(potential, context, result)
        embedding_terms(potential, context, result)
