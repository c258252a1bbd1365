#!/usr/bin/env python
"""
Example: Parallel EAM fit from an extended-XYZ training set.

Every rank reads the same configurations and builds the same FitContext.
Rank 0 runs the optimizer; the other ranks serve evaluations until the
root closes the context.

Usage:
    python examples/fit_eam_parallel.py train.extxyz --workers 4
    mpirun -n 4 python examples/fit_eam_parallel.py train.extxyz --backend mpi4py
"""

import argparse
import logging

from scipy.optimize import least_squares

from fitcore import AnalyticPotential, FitContext, FitSettings
from fitcore.io import read_configurations
from fitcore.parallel import get_backend
from fitcore.potentials import AnalyticSlotSpec


def eam_potential(cutoff: float) -> AnalyticPotential:
    """Single-element analytic EAM starting guess."""
    return AnalyticPotential(
        "eam",
        1,
        [
            AnalyticSlotSpec(
                "phi", (0, 0), "morse", [0.3, 1.4, 2.6], domain=(1.5, cutoff), smooth_width=0.5
            ),
            AnalyticSlotSpec(
                "rho", (0,), "exp_decay", [1.0, 1.5, 2.5], domain=(1.5, cutoff), smooth_width=0.5
            ),
            AnalyticSlotSpec("F", (0,), "poly2", [0.0, -1.0, 0.05], domain=(0.0, 30.0)),
        ],
    )


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("filename", help="Labelled configurations readable by ASE")
    parser.add_argument("--element", default="Cu")
    parser.add_argument("--cutoff", type=float, default=5.5)
    parser.add_argument("--backend", default="multiprocessing")
    parser.add_argument("--workers", type=int, default=2)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(processName)s %(name)s: %(message)s")

    configs = read_configurations(args.filename, {args.element: 0}, use_stress=True)
    if args.backend == "multiprocessing":
        backend = get_backend(args.backend, n_workers=args.workers)
    else:
        backend = get_backend(args.backend)

    potential = eam_potential(args.cutoff)
    settings = FitSettings(energy_weight=20.0, force_weighting=True, dummy_weight=100.0)

    with FitContext(settings, configs, potential, backend=backend) as fit:
        if not fit.is_root:
            fit.serve()
            return

        result = least_squares(lambda p: fit.residuals(p)[0], potential.parameters())
        final = fit.evaluate(result.x)
        print(f"Final cost {final.cost:.6e} over {final.used_count} residuals")
        for name, value in zip(fit.potential.parameter_names(), result.x):
            print(f"   {name:<20s} {value:.6f}")


if __name__ == "__main__":
    main()
