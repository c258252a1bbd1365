"""Tests for force models."""

import numpy as np
import pytest
from scipy.special import erfc

from fitcore.errors import ConvergenceError
from fitcore.forcefields import (
    ADPForce,
    EAMElectrostaticForce,
    EAMForce,
    ElectrostaticForce,
    ForceResult,
    MEAMForce,
    PairForce,
    StillingerWeberForce,
    TersoffForce,
    create_force_model,
    damped_coulomb,
)
from fitcore.neighborlists import NeighborContext
from fitcore.potentials import (
    AnalyticPotential,
    AnalyticSlotSpec,
    TabulatedPotential,
    TabulatedSlotSpec,
    get_function,
)
from fitcore.settings import FitSettings
from fitcore.system import Box, Configuration

DIPOLE_SETTINGS = FitSettings(
    coulomb_cutoff=6.0,
    dipole_mixing=0.9,
    dipole_tolerance=1e-12,
    dipole_max_iterations=500,
)


def lattice_config(
    n_side: int = 2,
    spacing: float = 2.5,
    jitter: float = 0.15,
    seed: int = 0,
    n_types: int = 1,
) -> Configuration:
    """Jittered simple-cubic configuration filling a periodic cell."""
    rng = np.random.default_rng(seed)
    grid = np.array(
        [[i, j, k] for i in range(n_side) for j in range(n_side) for k in range(n_side)],
        dtype=np.float64,
    )
    positions = (grid + 0.5) * spacing + rng.uniform(-jitter, jitter, grid.shape)
    n_atoms = len(grid)
    return Configuration(
        positions=positions,
        types=np.arange(n_atoms) % n_types,
        box=Box.cubic(n_side * spacing),
        energy=0.0,
        forces=np.zeros((n_atoms, 3)),
    )


def moved(config: Configuration, positions=None, box=None) -> Configuration:
    """Copy of a configuration with new positions and/or cell."""
    return Configuration(
        positions=config.positions if positions is None else positions,
        types=config.types,
        box=config.box if box is None else box,
        energy=0.0,
        forces=np.zeros((config.n_atoms, 3)),
    )


def compute(model, potential, config, with_stress=False) -> ForceResult:
    context = NeighborContext(config, model.required_cutoff(potential))
    return model.compute(potential, context, with_stress)


def numerical_forces(model, potential, config, h=1e-5) -> np.ndarray:
    """Central-difference forces -dE/dr."""
    forces = np.zeros((config.n_atoms, 3))
    for atom in range(config.n_atoms):
        for axis in range(3):
            plus = config.positions.copy()
            minus = config.positions.copy()
            plus[atom, axis] += h
            minus[atom, axis] -= h
            e_plus = compute(model, potential, moved(config, plus)).energy
            e_minus = compute(model, potential, moved(config, minus)).energy
            forces[atom, axis] = -(e_plus - e_minus) / (2.0 * h)
    return forces


def numerical_stress(model, potential, config, h=1e-6) -> np.ndarray:
    """Central-difference stress (1/V) dE/d(strain) for xx and xy."""
    result = []
    for strain in (
        np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]]),
        np.array([[0.0, 0.5, 0.0], [0.5, 0.0, 0.0], [0.0, 0.0, 0.0]]),
    ):
        energies = []
        for sign in (1.0, -1.0):
            deformation = np.eye(3) + sign * h * strain
            strained = moved(
                config,
                positions=config.positions @ deformation.T,
                box=Box.triclinic(config.box.vectors @ deformation.T),
            )
            energies.append(compute(model, potential, strained).energy)
        result.append((energies[0] - energies[1]) / (2.0 * h * config.volume))
    return np.array(result)


def pair_potential() -> AnalyticPotential:
    return AnalyticPotential(
        "pair",
        1,
        [AnalyticSlotSpec("phi", (0, 0), "morse", [0.5, 1.5, 2.6], domain=(1.0, 4.0))],
    )


def eam_slots() -> list[AnalyticSlotSpec]:
    return [
        AnalyticSlotSpec("phi", (0, 0), "morse", [0.5, 1.5, 2.6], domain=(1.0, 4.0)),
        AnalyticSlotSpec("phi", (0, 1), "morse", [0.4, 1.4, 2.7], domain=(1.0, 4.0)),
        AnalyticSlotSpec("phi", (1, 1), "morse", [0.3, 1.3, 2.8], domain=(1.0, 4.0)),
        AnalyticSlotSpec("rho", (0,), "exp_decay", [1.0, 1.2, 2.5], domain=(1.0, 4.0)),
        AnalyticSlotSpec("rho", (1,), "exp_decay", [0.8, 1.0, 2.5], domain=(1.0, 4.0)),
        AnalyticSlotSpec("F", (0,), "poly2", [0.0, -1.0, 0.05], domain=(0.0, 20.0)),
        AnalyticSlotSpec("F", (1,), "poly2", [0.0, -0.8, 0.04], domain=(0.0, 20.0)),
    ]


def eam_potential(model: str = "eam") -> AnalyticPotential:
    """Two-type EAM (or two-band EAM) potential."""
    slots = eam_slots()
    if model == "tbeam":
        slots += [
            AnalyticSlotSpec("rho2", (0,), "exp_decay", [0.5, 2.0, 2.5], domain=(1.0, 3.5)),
            AnalyticSlotSpec("rho2", (1,), "exp_decay", [0.4, 2.0, 2.5], domain=(1.0, 3.5)),
            AnalyticSlotSpec("F2", (0,), "poly2", [0.0, -0.3, 0.02], domain=(0.0, 10.0)),
            AnalyticSlotSpec("F2", (1,), "poly2", [0.0, -0.2, 0.03], domain=(0.0, 10.0)),
        ]
    return AnalyticPotential(model, 2, slots)


def adp_potential() -> AnalyticPotential:
    return AnalyticPotential(
        "adp",
        1,
        [
            AnalyticSlotSpec("phi", (0, 0), "morse", [0.5, 1.5, 2.6], domain=(1.0, 4.0)),
            AnalyticSlotSpec("rho", (0,), "exp_decay", [1.0, 1.2, 2.5], domain=(1.0, 4.0)),
            AnalyticSlotSpec("F", (0,), "poly2", [0.0, -1.0, 0.05], domain=(0.0, 20.0)),
            AnalyticSlotSpec("u", (0, 0), "exp_decay", [0.2, 1.0, 2.5], domain=(1.0, 4.0)),
            AnalyticSlotSpec("w", (0, 0), "exp_decay", [0.1, 1.0, 2.5], domain=(1.0, 4.0)),
        ],
    )


def meam_potential() -> AnalyticPotential:
    return AnalyticPotential(
        "meam",
        1,
        [
            AnalyticSlotSpec("phi", (0, 0), "morse", [0.5, 1.5, 2.6], domain=(1.0, 4.0)),
            AnalyticSlotSpec("rho", (0,), "exp_decay", [1.0, 1.2, 2.5], domain=(1.0, 4.0)),
            AnalyticSlotSpec("F", (0,), "poly2", [0.0, -1.0, 0.05], domain=(0.0, 20.0)),
            AnalyticSlotSpec("f", (0, 0), "exp_decay", [1.0, 1.0, 2.5], domain=(1.0, 3.0)),
            AnalyticSlotSpec("g", (0,), "poly2", [0.1, 0.2, 0.3], domain=(-1.0, 1.0)),
        ],
    )


def stiweb_potential() -> AnalyticPotential:
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


def elstat_potential(polarisabilities=(0.3, 0.0)) -> AnalyticPotential:
    return AnalyticPotential(
        "elstat",
        2,
        [
            AnalyticSlotSpec("phi", key, "exp_decay", [5.0, 3.0, 1.0], domain=(0.5, 4.0))
            for key in ((0, 0), (0, 1), (1, 1))
        ],
        charges=[1.0, -1.0],
        polarisabilities=polarisabilities,
    )


def tersoff_potential() -> AnalyticPotential:
    return AnalyticPotential(
        "tersoff",
        1,
        [
            AnalyticSlotSpec(
                "phi", (0, 0), "tersoff_exp", [3.0, 1.5, 3.2, 0.3], domain=(1.0, 4.0)
            ),
            AnalyticSlotSpec(
                "a", (0, 0), "tersoff_exp", [-2.0, 1.0, 3.2, 0.3], domain=(1.0, 4.0)
            ),
            AnalyticSlotSpec("f", (0, 0), "tersoff_cutoff", [3.2, 0.3], domain=(1.0, 3.6)),
            AnalyticSlotSpec(
                "g", (0,), "tersoff_angular", [1.0, 1.5, 1.0, -0.4], domain=(-1.0, 1.0)
            ),
            AnalyticSlotSpec("b", (0,), "tersoff_bond", [0.6, 1.5], domain=(0.0, 30.0)),
        ],
    )


def eam_elstat_potential(polarisabilities=(0.3, 0.0)) -> AnalyticPotential:
    """Two-type EAM potential carrying charges."""
    return AnalyticPotential(
        "eam_elstat",
        2,
        eam_slots(),
        charges=[1.0, -1.0],
        polarisabilities=polarisabilities,
    )


MODEL_CASES = [
    pytest.param(PairForce(), pair_potential, {}, id="pair"),
    pytest.param(EAMForce(), eam_potential, {"n_types": 2}, id="eam"),
    pytest.param(EAMForce(), lambda: eam_potential("tbeam"), {"n_types": 2}, id="tbeam"),
    pytest.param(ADPForce(), adp_potential, {}, id="adp"),
    pytest.param(MEAMForce(), meam_potential, {}, id="meam"),
    pytest.param(
        StillingerWeberForce(), stiweb_potential, {"spacing": 1.2, "jitter": 0.08}, id="stiweb"
    ),
    pytest.param(TersoffForce(), tersoff_potential, {}, id="tersoff"),
    pytest.param(
        ElectrostaticForce(DIPOLE_SETTINGS), elstat_potential, {"n_types": 2}, id="elstat"
    ),
    pytest.param(
        EAMElectrostaticForce(DIPOLE_SETTINGS),
        eam_elstat_potential,
        {"n_types": 2},
        id="eam_elstat",
    ),
]


class TestForceResult:
    """Tests for ForceResult."""

    def test_zeros(self):
        """Test empty results."""
        result = ForceResult.zeros(4, with_stress=True)

        assert result.energies.shape == (4,)
        assert result.forces.shape == (4, 3)
        assert result.virial.shape == (6,)
        assert result.energy == 0.0
        assert result.converged

    def test_stress_requires_virial(self):
        """Test stress is unavailable without a virial."""
        with pytest.raises(ValueError, match="without stress"):
            ForceResult.zeros(2).stress(10.0)

    def test_stress_sign(self):
        """Test stress is minus the virial over the volume."""
        result = ForceResult.zeros(1, with_stress=True)
        result.virial[:] = [2.0, 4.0, 6.0, 0.0, 0.0, 1.0]

        np.testing.assert_allclose(result.stress(2.0), [-1.0, -2.0, -3.0, 0.0, 0.0, -0.5])


class TestPairForce:
    """Tests for the pair force model."""

    def test_linear_pair_force(self):
        """Test phi = A (rc - r) gives equal and opposite forces of magnitude A."""
        amplitude = 0.7
        x = np.linspace(1.0, 5.0, 9)
        pot = TabulatedPotential(
            "pair", 1, [TabulatedSlotSpec("phi", (0, 0), x, amplitude * (5.0 - x))]
        )
        config = Configuration(
            positions=[[5.0, 5.0, 5.0], [7.0, 5.0, 5.0]],
            types=[0, 0],
            box=Box.cubic(20.0),
            energy=0.0,
            forces=np.zeros((2, 3)),
        )
        result = compute(PairForce(), pot, config)

        assert result.energy == pytest.approx(3.0 * amplitude)
        np.testing.assert_allclose(result.forces[0], [-amplitude, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(result.forces[1], [amplitude, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(result.energies, [1.5 * amplitude, 1.5 * amplitude])

    def test_beyond_cutoff(self):
        """Test atoms beyond the table cutoff do not interact."""
        config = Configuration(
            positions=[[5.0, 5.0, 5.0], [9.5, 5.0, 5.0]],
            types=[0, 0],
            box=Box.cubic(20.0),
            energy=0.0,
            forces=np.zeros((2, 3)),
        )
        result = compute(PairForce(), pair_potential(), config)

        assert result.energy == 0.0
        np.testing.assert_array_equal(result.forces, 0.0)

    def test_check_potential(self):
        """Test model/potential mismatches are rejected."""
        with pytest.raises(ValueError, match="cannot evaluate"):
            PairForce().check_potential(eam_potential())


class TestForceConsistency:
    """Forces and stresses against finite differences of the energy."""

    @pytest.mark.parametrize("model, factory, layout", MODEL_CASES)
    def test_forces_match_energy_gradient(self, model, factory, layout):
        """Test analytic forces equal -dE/dr."""
        potential = factory()
        config = lattice_config(**layout)
        result = compute(model, potential, config)

        expected = numerical_forces(model, potential, config)
        np.testing.assert_allclose(result.forces, expected, rtol=1e-5, atol=1e-5)

    @pytest.mark.parametrize("model, factory, layout", MODEL_CASES)
    def test_net_force_vanishes(self, model, factory, layout):
        """Test forces sum to zero."""
        result = compute(model, factory(), lattice_config(seed=5, **layout))

        np.testing.assert_allclose(result.forces.sum(axis=0), 0.0, atol=1e-10)

    @pytest.mark.parametrize(
        "model, factory, layout",
        [case for case in MODEL_CASES if case.id not in ("elstat", "eam_elstat")],
    )
    def test_stress_matches_strain_derivative(self, model, factory, layout):
        """Test stress equals (1/V) dE/d(strain)."""
        potential = factory()
        config = lattice_config(**layout)
        result = compute(model, potential, config, with_stress=True)
        stress = result.stress(config.volume)

        expected = numerical_stress(model, potential, config)
        np.testing.assert_allclose(stress[[0, 5]], expected, rtol=1e-4, atol=1e-6)

    def test_densities_stored(self):
        """Test embedding models report host densities per channel."""
        result = compute(EAMForce(), eam_potential("tbeam"), lattice_config(n_types=2))

        assert set(result.densities) == {"rho", "rho2"}
        assert np.all(result.densities["rho"] > 0.0)


class TestElectrostatics:
    """Tests for the electrostatic force model."""

    def test_kernel_derivatives(self):
        """Test damped kernel derivatives against finite differences."""
        r = np.linspace(1.0, 6.0, 11)
        h = 1e-5
        g = damped_coulomb(r, 0.3)
        g_plus = damped_coulomb(r + h, 0.3)
        g_minus = damped_coulomb(r - h, 0.3)

        for order in range(3):
            numeric = (g_plus[order] - g_minus[order]) / (2.0 * h)
            np.testing.assert_allclose(g[order + 1], numeric, rtol=1e-6, atol=1e-9)

    def test_undamped_kernel(self):
        """Test kappa = 0 gives the bare Coulomb kernel."""
        r = np.array([2.0])
        g0, g1, g2, _ = damped_coulomb(r, 0.0)

        assert g0[0] == pytest.approx(0.5)
        assert g1[0] == pytest.approx(-0.25)
        assert g2[0] == pytest.approx(0.25)

    def test_shifted_kernel_vanishes_at_cutoff(self):
        """Test the shifted-force kernel and its slope vanish at the cutoff."""
        model = ElectrostaticForce(FitSettings(coulomb_cutoff=8.0))
        v, a, _, _, _ = model.kernel(np.array([8.0]))

        assert v[0] == pytest.approx(0.0, abs=1e-14)
        assert a[0] == pytest.approx(0.0, abs=1e-14)

    def test_ion_pair_energy(self):
        """Test energy of two point charges without dipoles."""
        settings = FitSettings(coulomb_cutoff=8.0)
        pot = AnalyticPotential(
            "elstat",
            2,
            [
                AnalyticSlotSpec("phi", key, "constant", [0.0], domain=(1.0, 4.0))
                for key in ((0, 0), (0, 1), (1, 1))
            ],
            charges=[1.0, -1.0],
        )
        config = Configuration(
            positions=[[10.0, 10.0, 10.0], [13.0, 10.0, 10.0]],
            types=[0, 1],
            box=Box.cubic(30.0),
            energy=0.0,
            forces=np.zeros((2, 3)),
        )
        result = compute(ElectrostaticForce(settings), pot, config)

        kappa, rc, k = settings.coulomb_damping, settings.coulomb_cutoff, settings.coulomb_constant
        g = erfc(kappa * 3.0) / 3.0
        g_c = erfc(kappa * rc) / rc
        dg_c = -erfc(kappa * rc) / rc**2 - 2.0 * kappa / np.sqrt(np.pi) * np.exp(
            -((kappa * rc) ** 2)
        ) / rc
        v = g - g_c - dg_c * (3.0 - rc)
        self_term = 0.5 * g_c + kappa / np.sqrt(np.pi)
        expected = k * (-v - 2.0 * self_term)

        assert result.energy == pytest.approx(expected, rel=1e-10)
        assert result.forces[0, 0] > 0.0
        assert result.iterations == 0

    def test_default_mixing_converges_or_flags(self):
        """Test the dipole loop stays within its cap and reports its outcome."""
        settings = FitSettings(coulomb_cutoff=6.0)
        result = compute(
            ElectrostaticForce(settings), elstat_potential(), lattice_config(n_types=2)
        )

        assert 1 <= result.iterations <= settings.dipole_max_iterations
        assert result.converged or result.iterations == settings.dipole_max_iterations

    def test_non_convergence_flagged(self):
        """Test hitting the iteration cap flags the result."""
        settings = FitSettings(
            coulomb_cutoff=6.0, dipole_tolerance=1e-14, dipole_max_iterations=2
        )
        result = compute(
            ElectrostaticForce(settings), elstat_potential(), lattice_config(n_types=2)
        )

        assert not result.converged
        assert result.iterations == 2

    def test_non_convergence_strict(self):
        """Test strict mode raises ConvergenceError."""
        settings = FitSettings(
            coulomb_cutoff=6.0, dipole_tolerance=1e-14, dipole_max_iterations=2
        )
        model = ElectrostaticForce(settings, strict=True)

        with pytest.raises(ConvergenceError) as info:
            compute(model, elstat_potential(), lattice_config(n_types=2))
        assert info.value.iterations == 2

    def test_context_cutoff_too_small(self):
        """Test contexts must cover the Coulomb cutoff."""
        model = ElectrostaticForce(FitSettings(coulomb_cutoff=6.0))
        config = lattice_config(n_types=2)
        context = NeighborContext(config, 4.0)

        with pytest.raises(ValueError, match="Coulomb cutoff"):
            model.compute(elstat_potential(), context)

    def test_required_cutoff(self):
        """Test the neighbor cutoff covers both ranges."""
        model = ElectrostaticForce(FitSettings(coulomb_cutoff=6.0))

        assert model.required_cutoff(elstat_potential()) == 6.0


class TestTersoff:
    """Tests for the Tersoff bond-order model."""

    def dimer(self, r: float) -> Configuration:
        return Configuration(
            positions=[[5.0, 5.0, 5.0], [5.0 + r, 5.0, 5.0]],
            types=[0, 0],
            box=Box.cubic(20.0),
            energy=0.0,
            forces=np.zeros((2, 3)),
        )

    def test_dimer_has_full_bond_order(self):
        """Test an isolated bond sees b(0) = 1, so E = phi + a."""
        result = compute(TersoffForce(), tersoff_potential(), self.dimer(2.3))

        branch = get_function("tersoff_exp").evaluate
        expected = branch(np.array([2.3]), [3.0, 1.5, 3.2, 0.3])[0] + branch(
            np.array([2.3]), [-2.0, 1.0, 3.2, 0.3]
        )[0]
        assert result.energy == pytest.approx(float(expected[0]), rel=1e-6)
        np.testing.assert_allclose(result.forces[0], -result.forces[1], atol=1e-12)

    def test_third_atom_weakens_bonds(self):
        """Test a neighbor within the angular cutoff reduces the attraction per bond."""
        pot = tersoff_potential()
        dimer = compute(TersoffForce(), pot, self.dimer(2.3))
        trimer = compute(
            TersoffForce(),
            pot,
            Configuration(
                positions=[[5.0, 5.0, 5.0], [7.3, 5.0, 5.0], [5.0, 7.3, 5.0]],
                types=[0, 0, 0],
                box=Box.cubic(20.0),
                energy=0.0,
                forces=np.zeros((3, 3)),
            ),
        )

        # Two 2.3 bonds plus one 3.25 bond inside the cutoff shell
        assert trimer.energy > 2.0 * dimer.energy

    def test_bond_order_function(self):
        """Test b(zeta) and its slope against finite differences."""
        evaluate = get_function("tersoff_bond").evaluate
        zeta = np.array([0.5, 2.0, 8.0])
        value, grad = evaluate(zeta, [0.6, 1.5])
        h = 1e-6
        numeric = (evaluate(zeta + h, [0.6, 1.5])[0] - evaluate(zeta - h, [0.6, 1.5])[0]) / (2 * h)

        assert evaluate(np.array([0.0]), [0.6, 1.5])[0][0] == 1.0
        np.testing.assert_allclose(grad, numeric, rtol=1e-6)
        assert np.all(np.diff(value) < 0.0)

    @pytest.mark.parametrize(
        "name, params, x",
        [
            ("tersoff_cutoff", [3.2, 0.3], np.array([2.5, 3.0, 3.3, 3.45])),
            ("tersoff_exp", [-2.0, 1.0, 3.2, 0.3], np.array([2.5, 3.0, 3.3])),
            ("tersoff_angular", [1.0, 1.5, 1.0, -0.4], np.array([-0.9, -0.2, 0.5])),
        ],
    )
    def test_function_slopes(self, name, params, x):
        """Test closed-form slopes of the Tersoff branches."""
        evaluate = get_function(name).evaluate
        h = 1e-6
        numeric = (evaluate(x + h, params)[0] - evaluate(x - h, params)[0]) / (2 * h)

        np.testing.assert_allclose(evaluate(x, params)[1], numeric, rtol=1e-6, atol=1e-9)


class TestEAMElectrostatics:
    """Tests for the embedded-atom model with charges."""

    def test_sum_of_parts(self):
        """Test energy and forces equal EAM plus the Coulomb sum of the same charges."""
        settings = FitSettings(coulomb_cutoff=6.0)
        config = lattice_config(n_types=2, seed=2)
        coulomb_only = AnalyticPotential(
            "elstat",
            2,
            [
                AnalyticSlotSpec("phi", key, "constant", [0.0], domain=(1.0, 4.0))
                for key in ((0, 0), (0, 1), (1, 1))
            ],
            charges=[1.0, -1.0],
        )

        combined = compute(
            EAMElectrostaticForce(settings), eam_elstat_potential(polarisabilities=None), config
        )
        eam = compute(EAMForce(), eam_potential(), config)
        coulomb = compute(ElectrostaticForce(settings), coulomb_only, config)

        assert combined.energy == pytest.approx(eam.energy + coulomb.energy, rel=1e-10)
        np.testing.assert_allclose(combined.forces, eam.forces + coulomb.forces, atol=1e-10)
        assert set(combined.densities) == {"rho"}

    def test_requires_charges(self):
        """Test the model needs per-type charges."""
        with pytest.raises(ValueError, match="charges"):
            AnalyticPotential("eam_elstat", 2, eam_slots())

    def test_required_cutoff(self):
        """Test the neighbor cutoff covers the Coulomb range."""
        model = EAMElectrostaticForce(FitSettings(coulomb_cutoff=6.0))

        assert model.required_cutoff(eam_elstat_potential()) == 6.0


class TestFactory:
    """Tests for create_force_model."""

    @pytest.mark.parametrize(
        "name, cls",
        [
            ("pair", PairForce),
            ("eam", EAMForce),
            ("tbeam", EAMForce),
            ("adp", ADPForce),
            ("meam", MEAMForce),
            ("stiweb", StillingerWeberForce),
            ("tersoff", TersoffForce),
            ("elstat", ElectrostaticForce),
            ("eam_elstat", EAMElectrostaticForce),
        ],
    )
    def test_create_by_name(self, name, cls):
        """Test each model name maps to its variant."""
        assert isinstance(create_force_model(name), cls)

    def test_instance_passthrough(self):
        """Test ready instances are returned unchanged."""
        model = PairForce()

        assert create_force_model(model) is model

    def test_electrostatic_kwargs(self):
        """Test model-specific arguments reach the electrostatic model."""
        model = create_force_model("elstat", FitSettings(coulomb_cutoff=7.0), strict=True)

        assert model.strict
        assert model.cutoff == 7.0

    def test_unknown_model(self):
        """Test unknown names raise."""
        with pytest.raises(ValueError, match="Unknown force model"):
            create_force_model("reaxff")
