"""Tests for the external model bridge."""

import numpy as np
import pytest

from fitcore.bridge import (
    ITERATOR_INCREMENT,
    ITERATOR_MODE,
    ITERATOR_RESET,
    LOCATOR_MODE,
    STATUS_NEIGH_ITER_INIT_OK,
    STATUS_NEIGH_ITER_PAST_END,
    STATUS_OK,
    ComputeRequest,
    ExternalModel,
    ExternalModelBridge,
    LennardJonesModel,
    NeighborObject,
    OptimizableParameters,
    ParameterInfo,
)
from fitcore.errors import BridgeProtocolError
from fitcore.forcefields import PairForce
from fitcore.neighborlists import NeighborContext
from fitcore.potentials import AnalyticPotential, AnalyticSlotSpec
from fitcore.system import Box, Configuration


def dimer(distance: float) -> Configuration:
    return Configuration(
        positions=[[5.0, 5.0, 5.0], [5.0 + distance, 5.0, 5.0]],
        types=[0, 0],
        box=Box.cubic(20.0),
        energy=0.0,
        forces=np.zeros((2, 3)),
    )


def lj_cluster(seed: int = 0) -> Configuration:
    """Jittered periodic simple-cubic LJ configuration."""
    rng = np.random.default_rng(seed)
    grid = np.array(
        [[i, j, k] for i in range(3) for j in range(3) for k in range(3)], dtype=np.float64
    )
    positions = (grid + 0.5) * 1.1 + rng.uniform(-0.04, 0.04, grid.shape)
    return Configuration(
        positions=positions,
        types=np.zeros(len(grid), dtype=int),
        box=Box.cubic(3.3),
        energy=0.0,
        forces=np.zeros((len(grid), 3)),
    )


def lj_potential(n_types: int = 1) -> AnalyticPotential:
    keys = [(i, j) for i in range(n_types) for j in range(i, n_types)]
    return AnalyticPotential(
        "pair",
        n_types,
        [AnalyticSlotSpec("phi", key, "lj", [1.0, 1.0], domain=(0.8, 2.5)) for key in keys],
    )


class FailingModel(ExternalModel):
    """Model that always reports a failure status."""

    def parameter_info(self):
        return [ParameterInfo("epsilon"), ParameterInfo("sigma")]

    def get_parameter(self, name):
        return 1.0

    def set_parameter(self, name, value):
        self._parameters_changed()

    def compute(self, request):
        return -3


class TestOptimizableParameters:
    """Tests for parameter publication."""

    def test_shapes(self):
        """Test rank and size of declarations."""
        scalar = ParameterInfo("shift")
        matrix = ParameterInfo("lj", (3, 2))

        assert scalar.rank == 0 and scalar.size == 1
        assert matrix.rank == 2 and matrix.size == 6

    def test_nest_unnest(self):
        """Test named values pack row-major and unpack with their shapes."""
        params = OptimizableParameters([ParameterInfo("shift"), ParameterInfo("lj", (2, 2))])
        vector = params.nest({"shift": 0.5, "lj": [[1.0, 2.0], [3.0, 4.0]]})

        np.testing.assert_array_equal(vector, [0.5, 1.0, 2.0, 3.0, 4.0])
        values = params.unnest(vector)
        assert isinstance(values["shift"], float)
        assert values["lj"].shape == (2, 2)
        assert values["lj"][1, 0] == 3.0

    def test_wrong_length(self):
        """Test length mismatches are protocol errors."""
        params = OptimizableParameters([ParameterInfo("lj", (2, 2))])

        with pytest.raises(BridgeProtocolError) as info:
            params.unnest(np.zeros(3))
        assert info.value.contract == "parameter-shape"

    def test_missing_and_misshaped(self):
        """Test nest validates names and shapes."""
        params = OptimizableParameters([ParameterInfo("lj", (2, 2))])

        with pytest.raises(BridgeProtocolError, match="Missing"):
            params.nest({})
        with pytest.raises(BridgeProtocolError, match="shape"):
            params.nest({"lj": np.zeros(4)})

    def test_duplicate_names(self):
        """Test duplicate declarations are rejected."""
        with pytest.raises(BridgeProtocolError):
            OptimizableParameters([ParameterInfo("a"), ParameterInfo("a")])


class TestNeighborObject:
    """Tests for pull-based neighbor access."""

    def test_published_cutoff_filter(self):
        """Test neighbors are restricted to the published cutoff."""
        inside = NeighborObject(NeighborContext(dimer(4.9), 6.0), 5.0)
        outside = NeighborObject(NeighborContext(dimer(5.1), 6.0), 5.0)

        status, atom, count, neighbors, rij = inside.get_neigh(LOCATOR_MODE, 1)
        assert status == STATUS_OK
        assert atom == 1
        assert count == 1
        np.testing.assert_array_equal(neighbors, [2])
        np.testing.assert_allclose(rij, [[4.9, 0.0, 0.0]])

        assert outside.get_neigh(LOCATOR_MODE, 1)[2] == 0

    def test_iterator(self):
        """Test iterator mode walks every atom then signals the end."""
        neighbors = NeighborObject(NeighborContext(dimer(2.0), 3.0), 3.0)

        assert neighbors.iterator_id == NeighborObject.RESET
        assert neighbors.get_neigh(ITERATOR_MODE, ITERATOR_RESET)[0] == STATUS_NEIGH_ITER_INIT_OK
        first = neighbors.get_neigh(ITERATOR_MODE, ITERATOR_INCREMENT)
        second = neighbors.get_neigh(ITERATOR_MODE, ITERATOR_INCREMENT)
        end = neighbors.get_neigh(ITERATOR_MODE, ITERATOR_INCREMENT)

        assert first[:3] == (STATUS_OK, 1, 1)
        assert second[:3] == (STATUS_OK, 2, 1)
        np.testing.assert_array_equal(second[3], [1])
        assert end[0] == STATUS_NEIGH_ITER_PAST_END

        neighbors.get_neigh(ITERATOR_MODE, ITERATOR_RESET)
        assert neighbors.iterator_id == NeighborObject.RESET
        assert neighbors.get_neigh(ITERATOR_MODE, ITERATOR_INCREMENT)[1] == 1

    def test_invalid_requests(self):
        """Test protocol violations name their contract."""
        neighbors = NeighborObject(NeighborContext(dimer(2.0), 3.0), 3.0)

        with pytest.raises(BridgeProtocolError) as info:
            neighbors.get_neigh(2, 0)
        assert info.value.contract == "neighbor-mode"

        with pytest.raises(BridgeProtocolError) as info:
            neighbors.get_neigh(ITERATOR_MODE, 7)
        assert info.value.contract == "neighbor-request"

        for request in (0, 3):
            with pytest.raises(BridgeProtocolError) as info:
                neighbors.get_neigh(LOCATOR_MODE, request)
            assert info.value.contract == "neighbor-index"

    def test_cutoff_required(self):
        """Test neighbor setup before cutoff publication is rejected."""
        context = NeighborContext(dimer(2.0), 3.0)

        with pytest.raises(BridgeProtocolError) as info:
            NeighborObject(context, None)
        assert info.value.contract == "publish-cutoff"

        with pytest.raises(BridgeProtocolError):
            NeighborObject(context, 4.0)


class TestExternalModel:
    """Tests for the external model life cycle."""

    def test_reinit_before_cutoff(self):
        """Test reinit requires a published cutoff."""
        model = LennardJonesModel()

        with pytest.raises(BridgeProtocolError) as info:
            model.reinit()
        assert info.value.contract == "publish-cutoff"

    def test_invalid_cutoff(self):
        """Test non-positive cutoffs are rejected."""
        with pytest.raises(BridgeProtocolError):
            LennardJonesModel().publish_cutoff(0.0)

    def test_parameter_change_requires_reinit(self):
        """Test writing parameters invalidates the initialisation."""
        model = LennardJonesModel()
        model.publish_cutoff(2.5)
        model.reinit()
        assert model.initialised

        model.set_parameter(LennardJonesModel.PARAMETER, np.array([[2.0, 1.0]]))
        assert not model.initialised

    def test_compute_without_reinit(self):
        """Test an uninitialised model refuses to compute."""
        model = LennardJonesModel()
        neighbors = NeighborObject(NeighborContext(dimer(2.0), 3.0), 3.0)
        request = ComputeRequest(
            n_atoms=2,
            species=np.zeros(2, dtype=int),
            coordinates=np.zeros((2, 3)),
            get_neigh=neighbors.get_neigh,
        )

        assert model.compute(request) != STATUS_OK

    def test_pair_parameter_layout(self):
        """Test one (epsilon, sigma) row per species pair."""
        model = LennardJonesModel(n_species=2, epsilon=[1.0, 2.0, 3.0], sigma=1.5)
        info = model.parameter_info()

        assert info[0].shape == (3, 2)
        np.testing.assert_array_equal(model.get_parameter(LennardJonesModel.PARAMETER)[:, 0], [1, 2, 3])


class TestExternalModelBridge:
    """Tests for the bridge force model."""

    def test_matches_internal_pair_model(self):
        """Test the external LJ model reproduces the tabulated pair model."""
        pot = lj_potential()
        config = lj_cluster()
        bridge = ExternalModelBridge(LennardJonesModel())
        bridge.check_potential(pot)
        context = NeighborContext(config, bridge.required_cutoff(pot))

        external = bridge.compute(pot, context, with_stress=True)
        internal = PairForce().compute(pot, context, with_stress=True)

        assert external.energy == pytest.approx(internal.energy, rel=1e-5)
        np.testing.assert_allclose(external.energies, internal.energies, rtol=1e-4, atol=1e-5)
        np.testing.assert_allclose(external.forces, internal.forces, rtol=1e-3, atol=1e-3)
        np.testing.assert_allclose(external.virial, internal.virial, rtol=1e-3, atol=1e-3)

    def test_two_species(self):
        """Test species pairs map onto the same rows as the pair slots."""
        pot = lj_potential(n_types=2)
        params = pot.parameters()
        params[2:4] = [0.5, 1.1]
        pot.apply_parameters(params)

        config = lj_cluster(seed=2)
        config = Configuration(
            positions=config.positions,
            types=np.arange(config.n_atoms) % 2,
            box=config.box,
            energy=0.0,
            forces=np.zeros((config.n_atoms, 3)),
        )
        bridge = ExternalModelBridge(LennardJonesModel(n_species=2))
        context = NeighborContext(config, bridge.required_cutoff(pot))

        external = bridge.compute(pot, context)
        internal = PairForce().compute(pot, context)
        assert external.energy == pytest.approx(internal.energy, rel=1e-5)
        np.testing.assert_allclose(external.forces, internal.forces, rtol=1e-3, atol=1e-3)

    def test_publishes_parameters(self):
        """Test compute publishes parameters, cutoff and reinitialises."""
        pot = lj_potential()
        pot.apply_parameters([2.0, 1.2])
        model = LennardJonesModel()
        bridge = ExternalModelBridge(model)
        bridge.publish(pot)

        np.testing.assert_array_equal(model.get_parameter(model.PARAMETER), [[2.0, 1.2]])
        assert model.cutoff == pot.max_cutoff
        assert model.initialised

    def test_initial_parameters(self):
        """Test the model's own values flatten into a vector."""
        bridge = ExternalModelBridge(LennardJonesModel(epsilon=0.3, sigma=1.7))

        np.testing.assert_array_equal(bridge.initial_parameters(), [0.3, 1.7])

    def test_parameter_count_mismatch(self):
        """Test the potential must carry the model's parameters."""
        bridge = ExternalModelBridge(LennardJonesModel(n_species=2))

        with pytest.raises(BridgeProtocolError) as info:
            bridge.check_potential(lj_potential())
        assert info.value.contract == "parameter-shape"

    def test_failure_status(self):
        """Test model failures abort with the compute contract."""
        bridge = ExternalModelBridge(FailingModel())
        context = NeighborContext(dimer(2.0), 3.0)

        with pytest.raises(BridgeProtocolError) as info:
            bridge.compute(lj_potential(), context)
        assert info.value.contract == "compute"
