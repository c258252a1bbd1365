"""Analytic potentials: closed-form functions sampled onto spline tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import ParameterBoundError
from ..splines import SplineTable
from .base import PotentialRepresentation, Slot
from .functions import AnalyticFunction, get_function, smooth_cutoff
from .slots import ChannelKind, ModelDescriptor, get_descriptor

if TYPE_CHECKING:
    from ..settings import FitSettings
    from ..system import Configuration

logger = logging.getLogger(__name__)

APOT_STEPS = 500


@dataclass
class AnalyticSlotSpec:
    """
    Declaration of one analytic slot.

    Attributes:
        channel: Channel name.
        types: Type key of the slot.
        function: Registry name of the closed form.
        params: Initial parameter values.
        domain: (minimum, cutoff) of the sampled table.
        lower: Lower parameter bounds (None for unbounded).
        upper: Upper parameter bounds (None for unbounded).
        invariant: Keep the slot fixed during optimization.
        smooth_width: Initial width h of the smooth cutoff, or None for
            a hard cutoff. When given, h becomes the last parameter.
    """

    channel: str
    types: tuple[int, ...]
    function: str
    params: ArrayLike
    domain: tuple[float, float]
    lower: ArrayLike | None = None
    upper: ArrayLike | None = None
    invariant: bool = False
    smooth_width: float | None = None


@dataclass
class GlobalParameter:
    """
    A block of global scalar parameters (charges, chemical potentials, ...).

    Attributes:
        name: Block name; parameters are named '<name>_<k>'.
        values: Current values.
        lower: Lower bounds.
        upper: Upper bounds.
        fixed: Keep the block out of the optimizable vector.
    """

    name: str
    values: NDArray[np.floating]
    lower: NDArray[np.floating]
    upper: NDArray[np.floating]
    fixed: bool = False

    @classmethod
    def create(
        cls,
        name: str,
        values: ArrayLike,
        lower: ArrayLike | None = None,
        upper: ArrayLike | None = None,
        fixed: bool = False,
    ) -> GlobalParameter:
        """Build a block with unbounded defaults."""
        values = np.array(values, dtype=np.float64).ravel()
        lower = np.full_like(values, -np.inf) if lower is None else np.array(lower, dtype=np.float64)
        upper = np.full_like(values, np.inf) if upper is None else np.array(upper, dtype=np.float64)
        if lower.shape != values.shape or upper.shape != values.shape:
            raise ValueError(f"Bounds of '{name}' do not match its {len(values)} values")
        return cls(name, values, lower, upper, fixed)


class _AnalyticSlot(Slot):
    """Slot carrying its closed form and parameters."""

    def __init__(
        self,
        slot: Slot,
        function: AnalyticFunction,
        params: NDArray[np.floating],
        lower: NDArray[np.floating],
        upper: NDArray[np.floating],
        smooth: bool,
    ) -> None:
        super().__init__(slot.key, slot.channel, slot.table, slot.invariant)
        self.function = function
        self.params = params
        self.lower = lower
        self.upper = upper
        self.smooth = smooth


class AnalyticPotential(PotentialRepresentation):
    """
    Potential built from named closed-form functions.

    Each slot is sampled onto ``steps`` equidistant knots after every
    parameter update, so the force models evaluate analytic and tabulated
    potentials through the same spline tables. Closed-form derivatives clamp
    the table ends and are available through ``evaluate_exact``.

    Global parameter blocks: per-type charges and polarisabilities
    (electrostatic models), per-type chemical potentials, and composition
    nodes (binary systems), whose positions must stay strictly increasing
    inside (0, 1).

    Example:
        pot = AnalyticPotential("pair", n_types=1, slots=[
            AnalyticSlotSpec("phi", (0, 0), "lj", [1.0, 2.0], domain=(1.5, 6.0)),
        ])
    """

    def __init__(
        self,
        model: str | ModelDescriptor,
        n_types: int,
        slots: list[AnalyticSlotSpec],
        charges: GlobalParameter | ArrayLike | None = None,
        polarisabilities: GlobalParameter | ArrayLike | None = None,
        chemical_potentials: GlobalParameter | ArrayLike | None = None,
        composition_nodes: ArrayLike | None = None,
        steps: int = APOT_STEPS,
    ) -> None:
        """
        Initialize analytic potential.

        Args:
            model: Interaction model name or descriptor.
            n_types: Number of atom types.
            slots: One declaration per slot of the model.
            charges: Per-type charges (required for electrostatic models).
            polarisabilities: Per-type polarisabilities; enables induced dipoles.
            chemical_potentials: Per-type chemical potentials.
            composition_nodes: Rows of (concentration, energy) for binary systems.
            steps: Number of sampling knots per slot.
        """
        super().__init__(get_descriptor(model), n_types)
        self.steps = steps

        built = []
        for spec in slots:
            built.append(self._build_slot(spec))
        self._register_slots(built)

        self._globals: list[GlobalParameter] = []
        self._charges = self._global_block("q", charges)
        self._polarisabilities = self._global_block("alpha", polarisabilities)
        self._chemical = self._global_block("mu", chemical_potentials)
        self._node_x: GlobalParameter | None = None
        self._node_y: GlobalParameter | None = None

        if self.descriptor.electrostatic and self._charges is None:
            raise ValueError("Electrostatic models need per-type charges")
        if composition_nodes is not None:
            if n_types != 2:
                raise ValueError("Composition nodes are only defined for binary systems")
            nodes = np.array(composition_nodes, dtype=np.float64).reshape(-1, 2)
            self._node_x = GlobalParameter.create(
                "node_x", nodes[:, 0], np.zeros(len(nodes)), np.ones(len(nodes))
            )
            self._node_y = GlobalParameter.create("node_y", nodes[:, 1])
            self._globals.extend([self._node_x, self._node_y])
            self._check_nodes(self._node_x.values)

        for index, slot in enumerate(self.slots):
            if slot.invariant:
                continue
            for k, pname in enumerate(self._param_names(slot)):
                self.parameter_map.add(index, k, f"{slot.name}.{pname}")
        for block in self._globals:
            if block.fixed:
                continue
            for k in range(len(block.values)):
                self.parameter_map.add(-1, k, f"{block.name}_{k}")

        for index in range(self.n_slots):
            self.resample(index)

    def _build_slot(self, spec: AnalyticSlotSpec) -> _AnalyticSlot:
        function = get_function(spec.function)
        params = np.array(spec.params, dtype=np.float64).ravel()
        if len(params) != function.n_parameters:
            raise ValueError(
                f"Function '{function.name}' takes {function.n_parameters} parameters, "
                f"got {len(params)}"
            )
        channel = self.descriptor.channel(spec.channel)
        smooth = spec.smooth_width is not None
        if smooth:
            if channel.kind != ChannelKind.RADIAL:
                raise ValueError("Smooth cutoffs apply to radial channels only")
            params = np.append(params, spec.smooth_width)

        lower = np.full_like(params, -np.inf)
        upper = np.full_like(params, np.inf)
        if spec.lower is not None:
            lower[: len(np.ravel(spec.lower))] = np.ravel(spec.lower)
        if spec.upper is not None:
            upper[: len(np.ravel(spec.upper))] = np.ravel(spec.upper)

        x_min, x_max = spec.domain
        if x_max <= x_min:
            raise ValueError(f"Empty domain {spec.domain} for slot {spec.channel}{spec.types}")
        x = np.linspace(x_min, x_max, self.steps)
        table = SplineTable(x, np.zeros_like(x), (0.0, 0.0))
        slot = Slot((spec.channel, tuple(spec.types)), channel, table, spec.invariant)
        return _AnalyticSlot(slot, function, params, lower, upper, smooth)

    def _global_block(
        self, name: str, values: GlobalParameter | ArrayLike | None
    ) -> GlobalParameter | None:
        if values is None:
            return None
        block = values if isinstance(values, GlobalParameter) else GlobalParameter.create(name, values)
        if len(block.values) != self.n_types:
            raise ValueError(f"'{name}' needs {self.n_types} values, got {len(block.values)}")
        self._globals.append(block)
        return block

    @staticmethod
    def _param_names(slot: _AnalyticSlot) -> list[str]:
        names = list(slot.function.parameters)
        if slot.smooth:
            names.append("h")
        return names

    @staticmethod
    def _check_nodes(positions: NDArray[np.floating]) -> None:
        if np.any(positions <= 0.0) or np.any(positions >= 1.0):
            raise ParameterBoundError("Composition nodes must lie strictly inside (0, 1)")
        if np.any(np.diff(positions) <= 0.0):
            raise ParameterBoundError("Composition nodes must be strictly increasing")

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_exact(
        self, slot: int, x: ArrayLike
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """
        Closed-form value and derivative of a slot.

        Args:
            slot: Slot index.
            x: Abscissae.

        Returns:
            Tuple (values, derivatives).
        """
        entry: _AnalyticSlot = self.slots[slot]
        x = np.asarray(x, dtype=np.float64)
        params = entry.params
        if entry.smooth:
            params, width = params[:-1], params[-1]
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            value, grad = entry.function.evaluate(x, params)
            if entry.smooth:
                factor, dfactor = smooth_cutoff(x, entry.cutoff, width)
                value, grad = value * factor, grad * factor + value * dfactor
        return np.asarray(value, dtype=np.float64), np.asarray(grad, dtype=np.float64)

    def resample(self, slot: int) -> None:
        """
        Regenerate a slot's table from its closed form.

        Raises:
            ParameterBoundError: If the closed form is not finite on the domain.
        """
        entry = self.slots[slot]
        x = entry.table.x
        value, grad = self.evaluate_exact(slot, x)
        if not np.all(np.isfinite(value)):
            raise ParameterBoundError(f"Slot {entry.name} is not finite on its domain")
        lo, hi = grad[0], grad[-1]
        if not np.isfinite(lo):
            lo = (value[1] - value[0]) / (x[1] - x[0])
        if not np.isfinite(hi):
            hi = (value[-1] - value[-2]) / (x[-1] - x[-2])
        entry.table.update(value, (float(lo), float(hi)))

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def parameters(self) -> NDArray[np.floating]:
        """Current free slot parameters followed by free global parameters."""
        values = []
        for slot in self.slots:
            if not slot.invariant:
                values.append(slot.params)
        for block in self._globals:
            if not block.fixed:
                values.append(block.values)
        if not values:
            return np.zeros(0)
        return np.concatenate(values)

    def apply_parameters(self, vector: ArrayLike) -> None:
        """
        Distribute a parameter vector over slots and global blocks, then resample.

        Hard bounds (non-positive cutoff width, negative polarisability,
        misordered composition nodes, non-finite samples) raise
        ParameterBoundError; soft bounds are left to ``punishments``.
        """
        vector = self._check_vector(vector)
        bad = np.flatnonzero(~np.isfinite(vector))
        if len(bad):
            raise ParameterBoundError(
                f"Non-finite value for {self.parameter_map.names[bad[0]]}", int(bad[0])
            )

        offset = 0
        new_params = []
        for slot in self.slots:
            if slot.invariant:
                new_params.append(slot.params)
                continue
            n = len(slot.params)
            params = vector[offset : offset + n].copy()
            if slot.smooth and params[-1] <= 0.0:
                raise ParameterBoundError(
                    f"Cutoff width of {slot.name} must be positive", offset + n - 1
                )
            new_params.append(params)
            offset += n

        new_globals = []
        for block in self._globals:
            if block.fixed:
                new_globals.append(block.values)
                continue
            n = len(block.values)
            new_globals.append(vector[offset : offset + n].copy())
            offset += n

        for block, values in zip(self._globals, new_globals):
            if block is self._polarisabilities and np.any(values < 0.0):
                raise ParameterBoundError("Polarisabilities must be non-negative")
            if block is self._node_x:
                self._check_nodes(values)

        previous = [slot.params for slot in self.slots]
        for slot, params in zip(self.slots, new_params):
            slot.params = params
        try:
            for index, slot in enumerate(self.slots):
                if not slot.invariant:
                    self.resample(index)
        except ParameterBoundError as e:
            logger.debug("Restoring previous slot parameters: %s", e)
            for index, (slot, params) in enumerate(zip(self.slots, previous)):
                slot.params = params
                if not slot.invariant:
                    self.resample(index)
            raise
        for block, values in zip(self._globals, new_globals):
            block.values = values

    @property
    def n_punishments(self) -> int:
        """One residual per free parameter plus one per slot."""
        return self.n_parameters + self.n_slots

    def punishments(self, settings: FitSettings) -> NDArray[np.floating]:
        """
        Residuals for parameters outside their bounds and unphysical slot shapes.

        The first block holds one entry per free parameter; the second one
        entry per slot, punishing negative transfer functions.
        """
        lower = []
        upper = []
        for slot in self.slots:
            if not slot.invariant:
                lower.append(slot.lower)
                upper.append(slot.upper)
        for block in self._globals:
            if not block.fixed:
                lower.append(block.lower)
                upper.append(block.upper)

        result = np.zeros(self.n_punishments)
        if self.n_parameters:
            values = self.parameters()
            lo = np.concatenate(lower)
            hi = np.concatenate(upper)
            excess = np.maximum(lo - values, 0.0) + np.maximum(values - hi, 0.0)
            violated = excess > 0.0
            result[: self.n_parameters][violated] = settings.punish_value * (1.0 + excess[violated])

        for index, slot in enumerate(self.slots):
            if slot.key[0] in ("rho", "rho2"):
                minimum = float(np.min(slot.table.y))
                if minimum < 0.0:
                    result[self.n_parameters + index] = settings.punish_value * -minimum
        return result

    # ------------------------------------------------------------------
    # Global terms
    # ------------------------------------------------------------------

    @property
    def charges(self) -> NDArray[np.floating] | None:
        """Per-type charges."""
        return None if self._charges is None else self._charges.values

    @property
    def polarisabilities(self) -> NDArray[np.floating] | None:
        """Per-type dipole polarisabilities."""
        return None if self._polarisabilities is None else self._polarisabilities.values

    @property
    def composition_nodes(self) -> NDArray[np.floating] | None:
        """Rows of (concentration, energy), or None."""
        if self._node_x is None:
            return None
        return np.column_stack([self._node_x.values, self._node_y.values])

    def extra_energy(self, config: Configuration) -> float:
        """
        Chemical-potential energy of a configuration.

        Sum of n_t * mu_t over types, plus for binary systems with composition
        nodes N times the energy interpolated linearly in the concentration of
        type 1 between (0, 0), the nodes, and (1, 0).
        """
        energy = 0.0
        counts = config.type_counts(self.n_types)
        if self._chemical is not None:
            energy += float(np.dot(counts, self._chemical.values))
        if self._node_x is not None:
            concentration = counts[1] / config.n_atoms
            xs = np.concatenate([[0.0], self._node_x.values, [1.0]])
            ys = np.concatenate([[0.0], self._node_y.values, [0.0]])
            energy += config.n_atoms * float(np.interp(concentration, xs, ys))
        return energy

    def listing(self) -> dict[str, NDArray[np.floating]]:
        """Parameter listing per slot and global block, for potential-file writers."""
        result = {slot.name: slot.params.copy() for slot in self.slots}
        for block in self._globals:
            result[block.name] = block.values.copy()
        return result
