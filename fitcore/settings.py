"""Run-level settings for a fitting run."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FitSettings:
    """
    Numerical knobs shared by every component of a run.

    Attributes:
        energy_weight: Global weight of energy residuals.
        stress_weight: Global weight of stress residuals.
        force_weighting: Scale force residuals by 1 / (|F0| + force_eps).
        force_eps: Softening added to reference force magnitudes.
        dummy_weight: Weight of the embedding-function dummy constraints.
        dummy_density: Density at which the second embedding slope is constrained.
            None uses the midpoint of the embedding domain.
        punish_value: Residual scale for analytic bound/shape violations.
        smooth_weight: Weight of tabulated roughness residuals.
        monotone_weight: Weight of residuals punishing rising tabulated
            transfer functions.
        penalty_residual: Residual value written for unevaluable steps.
        coulomb_cutoff: Cutoff of the long-range electrostatic term.
        coulomb_constant: e^2 / (4 pi epsilon_0) in eV*Angstrom.
        coulomb_damping: Damping parameter kappa of the shifted-force sum.
        dipole_tolerance: RMS change below which dipoles are converged.
        dipole_mixing: Linear mixing factor for the dipole iteration.
        dipole_max_iterations: Hard cap on dipole iterations.
    """

    energy_weight: float = 1.0
    stress_weight: float = 1.0
    force_weighting: bool = False
    force_eps: float = 0.1
    dummy_weight: float = 100.0
    dummy_density: float | None = None
    punish_value: float = 1.0e7
    smooth_weight: float = 0.0
    monotone_weight: float = 0.0
    penalty_residual: float = 1.0e5
    coulomb_cutoff: float = 10.0
    coulomb_constant: float = 14.40
    coulomb_damping: float = 0.1
    dipole_tolerance: float = 1.0e-7
    dipole_mixing: float = 0.2
    dipole_max_iterations: int = 50

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ValueError if any setting is out of range."""
        for name in (
            "energy_weight",
            "stress_weight",
            "dummy_weight",
            "smooth_weight",
            "monotone_weight",
        ):
            if getattr(self, name) < 0.0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.force_eps <= 0.0:
            raise ValueError(f"force_eps must be positive, got {self.force_eps}")
        if self.coulomb_cutoff <= 0.0:
            raise ValueError(f"coulomb_cutoff must be positive, got {self.coulomb_cutoff}")
        if self.coulomb_damping < 0.0:
            raise ValueError(f"coulomb_damping must be non-negative, got {self.coulomb_damping}")
        if not 0.0 < self.dipole_mixing <= 1.0:
            raise ValueError(f"dipole_mixing must be in (0, 1], got {self.dipole_mixing}")
        if self.dipole_tolerance <= 0.0:
            raise ValueError(f"dipole_tolerance must be positive, got {self.dipole_tolerance}")
        if self.dipole_max_iterations < 1:
            raise ValueError(
                f"dipole_max_iterations must be at least 1, got {self.dipole_max_iterations}"
            )
