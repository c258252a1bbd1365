#!/usr/bin/env python
"""
Example: Recovering Lennard-Jones parameters by force matching.

This script demonstrates how to:
1. Generate reference configurations (here from a known potential)
2. Declare an analytic potential with bounded parameters
3. Build a FitContext
4. Drive scipy's least-squares optimizer with the deviation vector
5. Inspect the fitted potential

Reduced LJ units are used throughout.

Usage:
    python examples/fit_lj_pair.py
"""

import logging

import numpy as np
from scipy.optimize import least_squares

from fitcore import AnalyticPotential, Configuration, FitContext, FitSettings
from fitcore.forcefields import PairForce
from fitcore.neighborlists import NeighborContext
from fitcore.potentials import AnalyticSlotSpec
from fitcore.system import Box


def lj_potential(epsilon: float, sigma: float) -> AnalyticPotential:
    """Single-type LJ potential sampled between 0.8 and 2.5 sigma."""
    return AnalyticPotential(
        "pair",
        1,
        [
            AnalyticSlotSpec(
                "phi",
                (0, 0),
                "lj",
                [epsilon, sigma],
                domain=(0.8, 2.5),
                lower=[0.1, 0.5],
                upper=[5.0, 2.0],
            )
        ],
    )


def make_reference_set(potential: AnalyticPotential, n_configs: int = 6, seed: int = 7):
    """
    Jittered simple-cubic lattices labelled with a reference potential.

    Args:
        potential: Potential producing the reference energies, forces and stress.
        n_configs: Number of configurations.
        seed: Random seed.

    Returns:
        List of labelled configurations.
    """
    rng = np.random.default_rng(seed)
    grid = np.array(
        [[i, j, k] for i in range(3) for j in range(3) for k in range(3)], dtype=np.float64
    )
    model = PairForce()
    configs = []
    for n in range(n_configs):
        spacing = 1.05 + 0.03 * n
        positions = (grid + 0.5) * spacing + rng.uniform(-0.06, 0.06, grid.shape)
        bare = Configuration(
            positions=positions,
            types=np.zeros(len(grid), dtype=int),
            box=Box.cubic(3.0 * spacing),
            energy=0.0,
            forces=np.zeros((len(grid), 3)),
        )
        result = model.compute(
            potential, NeighborContext(bare, model.required_cutoff(potential)), with_stress=True
        )
        configs.append(
            Configuration(
                positions=positions,
                types=bare.types,
                box=bare.box,
                energy=result.energy,
                forces=result.forces,
                stress=result.stress(bare.volume),
                use_stress=True,
                name=f"sc-{spacing:.2f}",
            )
        )
    return configs


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("Force Matching: Lennard-Jones")
    print("=" * 60)

    configs = make_reference_set(lj_potential(1.0, 1.0))
    start = lj_potential(0.7, 1.12)
    settings = FitSettings(energy_weight=10.0, stress_weight=1.0)

    with FitContext(settings, configs, start) as fit:
        initial = fit.evaluate(start.parameters())
        print(f"\nResiduals: {initial.vector.size} ({initial.used_count} used)")
        print(f"Initial cost: {initial.cost:.6e}")

        result = least_squares(
            lambda p: fit.residuals(p)[0], start.parameters(), xtol=1e-12, ftol=1e-12
        )
        final = fit.evaluate(result.x)

        print(f"Final cost:   {final.cost:.6e}")
        for name, value in zip(fit.potential.parameter_names(), result.x):
            print(f"   {name:<16s} {value:.6f}")

        print("\nFitted tables:")
        for name, knots in fit.potential.listing().items():
            print(f"   {name}: {len(knots)} knots, phi(x_min) = {knots[0, 1]:.4f}")


if __name__ == "__main__":
    main()
