"""
Conservation Gates.

These tests verify the symmetries every force model must respect.
Any regression here blocks PR merge.

Gates:
1. Newton's third law: net force on an isolated cluster < 1e-10
2. Rotational invariance: net torque on an isolated cluster vanishes
3. Rigid motion: energy unchanged under rotation and translation
"""

import numpy as np
import pytest

from fitcore.forcefields import (
    ADPForce,
    EAMElectrostaticForce,
    EAMForce,
    ElectrostaticForce,
    MEAMForce,
    PairForce,
    StillingerWeberForce,
    TersoffForce,
)
from fitcore.neighborlists import NeighborContext
from fitcore.potentials import AnalyticPotential, AnalyticSlotSpec
from fitcore.settings import FitSettings
from fitcore.system import Box, Configuration

CLUSTER_CENTER = np.array([15.0, 15.0, 15.0])


def create_cluster(seed: int, n_types: int = 1) -> Configuration:
    """Distorted octahedron plus central atom, far from its periodic images."""
    rng = np.random.default_rng(seed)
    shell = 1.2 * np.vstack([np.eye(3), -np.eye(3)])
    positions = np.vstack([[0.0, 0.0, 0.0], shell]) + rng.uniform(-0.1, 0.1, (7, 3))
    return Configuration(
        positions=positions + CLUSTER_CENTER,
        types=np.arange(7) % n_types,
        box=Box.cubic(30.0),
        energy=0.0,
        forces=np.zeros((7, 3)),
    )


def rotation_matrix(axis, angle: float) -> np.ndarray:
    """Rodrigues rotation about a unit axis."""
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    k = np.array([[0.0, -axis[2], axis[1]], [axis[2], 0.0, -axis[0]], [-axis[1], axis[0], 0.0]])
    return np.eye(3) + np.sin(angle) * k + (1.0 - np.cos(angle)) * (k @ k)


def run_model(model, potential, config):
    context = NeighborContext(config, model.required_cutoff(potential))
    return model.compute(potential, context)


def embedding_slots(extra=()):
    return [
        AnalyticSlotSpec("phi", (0, 0), "morse", [0.5, 1.5, 2.6], domain=(0.8, 4.0)),
        AnalyticSlotSpec("rho", (0,), "exp_decay", [1.0, 1.2, 2.5], domain=(0.8, 4.0)),
        AnalyticSlotSpec("F", (0,), "poly2", [0.0, -1.0, 0.05], domain=(0.0, 20.0)),
        *extra,
    ]


def create_potential(model: str) -> AnalyticPotential:
    """Smooth single-type potential (two types for the charged models)."""
    if model == "pair":
        return AnalyticPotential("pair", 1, embedding_slots()[:1])
    if model == "eam":
        return AnalyticPotential("eam", 1, embedding_slots())
    if model == "adp":
        return AnalyticPotential(
            "adp",
            1,
            embedding_slots(
                [
                    AnalyticSlotSpec("u", (0, 0), "exp_decay", [0.2, 1.0, 2.5], domain=(0.8, 4.0)),
                    AnalyticSlotSpec("w", (0, 0), "exp_decay", [0.1, 1.0, 2.5], domain=(0.8, 4.0)),
                ]
            ),
        )
    if model == "meam":
        return AnalyticPotential(
            "meam",
            1,
            embedding_slots(
                [
                    AnalyticSlotSpec("f", (0, 0), "exp_decay", [1.0, 1.0, 2.5], domain=(0.8, 3.0)),
                    AnalyticSlotSpec("g", (0,), "poly2", [0.1, 0.2, 0.3], domain=(-1.0, 1.0)),
                ]
            ),
        )
    if model == "stiweb":
        return AnalyticPotential(
            "stiweb",
            1,
            [
                AnalyticSlotSpec(
                    "phi", (0, 0), "sw_pair", [7.05, 0.6, 4.0, 0.0, 1.0, 1.8], domain=(0.8, 1.8)
                ),
                AnalyticSlotSpec("f", (0, 0), "sw_radial", [1.2, 1.8], domain=(0.8, 1.8)),
                AnalyticSlotSpec("g", (0,), "sw_angular", [21.0], domain=(-1.0, 1.0)),
            ],
        )
    if model == "tersoff":
        return AnalyticPotential(
            "tersoff",
            1,
            [
                AnalyticSlotSpec(
                    "phi", (0, 0), "tersoff_exp", [3.0, 1.5, 2.2, 0.3], domain=(0.8, 3.0)
                ),
                AnalyticSlotSpec(
                    "a", (0, 0), "tersoff_exp", [-2.0, 1.0, 2.2, 0.3], domain=(0.8, 3.0)
                ),
                AnalyticSlotSpec("f", (0, 0), "tersoff_cutoff", [2.2, 0.3], domain=(0.8, 2.6)),
                AnalyticSlotSpec(
                    "g", (0,), "tersoff_angular", [1.0, 1.5, 1.0, -0.4], domain=(-1.0, 1.0)
                ),
                AnalyticSlotSpec("b", (0,), "tersoff_bond", [0.6, 1.5], domain=(0.0, 30.0)),
            ],
        )
    if model == "eam_elstat":
        return AnalyticPotential(
            "eam_elstat",
            2,
            [
                *[
                    AnalyticSlotSpec("phi", key, "exp_decay", [5.0, 3.0, 1.0], domain=(0.5, 4.0))
                    for key in ((0, 0), (0, 1), (1, 1))
                ],
                *[
                    AnalyticSlotSpec("rho", key, "exp_decay", [1.0, 1.2, 2.5], domain=(0.5, 4.0))
                    for key in ((0,), (1,))
                ],
                *[
                    AnalyticSlotSpec("F", key, "poly2", [0.0, -1.0, 0.05], domain=(0.0, 20.0))
                    for key in ((0,), (1,))
                ],
            ],
            charges=[1.0, -1.0],
            polarisabilities=[0.05, 0.0],
        )
    return AnalyticPotential(
        "elstat",
        2,
        [
            AnalyticSlotSpec("phi", key, "exp_decay", [5.0, 3.0, 1.0], domain=(0.5, 4.0))
            for key in ((0, 0), (0, 1), (1, 1))
        ],
        charges=[1.0, -1.0],
        polarisabilities=[0.05, 0.0],
    )


ELSTAT_SETTINGS = FitSettings(
    coulomb_cutoff=6.0, dipole_mixing=0.9, dipole_tolerance=1e-13, dipole_max_iterations=500
)

GATE_MODELS = [
    pytest.param(PairForce(), "pair", 1, id="pair"),
    pytest.param(EAMForce(), "eam", 1, id="eam"),
    pytest.param(ADPForce(), "adp", 1, id="adp"),
    pytest.param(MEAMForce(), "meam", 1, id="meam"),
    pytest.param(StillingerWeberForce(), "stiweb", 1, id="stiweb"),
    pytest.param(TersoffForce(), "tersoff", 1, id="tersoff"),
    pytest.param(ElectrostaticForce(ELSTAT_SETTINGS), "elstat", 2, id="elstat"),
    pytest.param(EAMElectrostaticForce(ELSTAT_SETTINGS), "eam_elstat", 2, id="eam_elstat"),
]


class TestNewtonThirdLaw:
    """
    Gate: Internal forces cancel.

    Threshold: |sum F| < 1e-10

    This catches:
    - One-sided scatter of bond gradients
    - Missing reverse entries in the neighbor context
    """

    @pytest.mark.parametrize("model, name, n_types", GATE_MODELS)
    def test_net_force(self, model, name, n_types):
        """Gate: Net force on an isolated cluster vanishes."""
        result = run_model(model, create_potential(name), create_cluster(7, n_types))

        assert result.converged
        assert np.abs(result.forces).max() > 1e-3, "Cluster should be interacting"
        np.testing.assert_allclose(
            result.forces.sum(axis=0),
            0.0,
            atol=1e-10,
            err_msg=f"GATE FAILED: Net force on {name} cluster",
        )


class TestRotationalInvariance:
    """
    Gate: Energies depend on geometry only.

    Threshold: |net torque| < 1e-8, energy change < 1e-10 relative
    """

    @pytest.mark.parametrize("model, name, n_types", GATE_MODELS)
    def test_net_torque(self, model, name, n_types):
        """Gate: Net torque on an isolated cluster vanishes."""
        config = create_cluster(8, n_types)
        result = run_model(model, create_potential(name), config)

        arms = config.positions - config.positions.mean(axis=0)
        torque = np.cross(arms, result.forces).sum(axis=0)
        np.testing.assert_allclose(
            torque, 0.0, atol=1e-8, err_msg=f"GATE FAILED: Net torque on {name} cluster"
        )

    @pytest.mark.parametrize("model, name, n_types", GATE_MODELS)
    def test_rigid_rotation(self, model, name, n_types):
        """Gate: Rotating the cluster leaves the energy unchanged and rotates forces."""
        config = create_cluster(9, n_types)
        potential = create_potential(name)
        rotation = rotation_matrix([1.0, 2.0, -0.5], 0.7)
        rotated = Configuration(
            positions=(config.positions - CLUSTER_CENTER) @ rotation.T + CLUSTER_CENTER,
            types=config.types,
            box=config.box,
            energy=0.0,
            forces=np.zeros((config.n_atoms, 3)),
        )

        before = run_model(model, potential, config)
        after = run_model(model, potential, rotated)

        assert after.energy == pytest.approx(before.energy, rel=1e-10, abs=1e-10)
        np.testing.assert_allclose(after.forces, before.forces @ rotation.T, atol=1e-8)

    @pytest.mark.parametrize("model, name, n_types", GATE_MODELS)
    def test_periodic_translation(self, model, name, n_types):
        """Gate: Translating a periodic configuration leaves the energy unchanged."""
        rng = np.random.default_rng(10)
        grid = np.array(
            [[i, j, k] for i in range(2) for j in range(2) for k in range(2)], dtype=np.float64
        )
        spacing = 1.2 if name == "stiweb" else 2.5
        positions = (grid + 0.5) * spacing + rng.uniform(-0.1, 0.1, grid.shape)
        potential = create_potential(name)

        energies = []
        # The last shift moves every atom two cells away
        for shift in ([0.0, 0.0, 0.0], [0.37, -0.81, 2.2], [4.0 * spacing, 0.0, -4.0 * spacing]):
            config = Configuration(
                positions=positions + shift,
                types=np.arange(8) % n_types,
                box=Box.cubic(2.0 * spacing),
                energy=0.0,
                forces=np.zeros((8, 3)),
            )
            energies.append(run_model(model, potential, config).energy)

        assert energies[1] == pytest.approx(energies[0], rel=1e-10, abs=1e-10)
        assert energies[2] == pytest.approx(energies[0], rel=1e-10, abs=1e-10)
