"""Assembly of the weighted deviation vector consumed by optimizers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .forcefields import ForceResult
    from .potentials import PotentialRepresentation
    from .settings import FitSettings
    from .system import Configuration


@dataclass(frozen=True)
class ConfigurationRegion:
    """Residual positions of one configuration."""

    energy: int
    forces: slice
    stress: slice | None


class ResidualLayout:
    """
    Fixed ordering of the deviation vector.

    Per configuration: energy, 3N force components (zero for atoms
    outside the contributing set), then 6 stress components if that
    configuration uses stress. After all configurations come the global
    blocks: two dummy constraints per embedding slot, one density-limit
    residual per configuration (embedding models only) and the
    potential's punishment residuals. The layout is built once; the
    vector length never changes.

    Attributes:
        regions: Residual region of each configuration.
        dummy: Slice of the dummy-constraint block.
        limits: Slice of the density-limit block.
        punishments: Slice of the punishment block.
        size: Total length.
        used_count: Number of residuals that contribute to the cost.
    """

    def __init__(
        self, configurations: list[Configuration], potential: PotentialRepresentation
    ) -> None:
        self.regions: list[ConfigurationRegion] = []
        offset = 0
        used = 0
        for config in configurations:
            n_forces = 3 * config.n_atoms
            forces = slice(offset + 1, offset + 1 + n_forces)
            offset += 1 + n_forces
            used += 1
            if config.use_forces:
                used += 3 * config.n_contributing
            stress = None
            if config.use_stress:
                stress = slice(offset, offset + 6)
                offset += 6
                used += 6
            self.regions.append(ConfigurationRegion(forces.start - 1, forces, stress))

        self.embedding_slots = [
            index
            for index, slot in enumerate(potential.slots)
            if slot.key[0] in {embed for _, embed in potential.descriptor.embedding}
        ]
        n_dummy = 2 * len(self.embedding_slots)
        n_limits = len(configurations) if potential.descriptor.embedding else 0
        n_punish = potential.n_punishments

        self.dummy = slice(offset, offset + n_dummy)
        offset += n_dummy
        self.limits = slice(offset, offset + n_limits)
        offset += n_limits
        self.punishments = slice(offset, offset + n_punish)
        offset += n_punish

        self.size = offset
        self.used_count = used + n_dummy + n_limits + n_punish

    @property
    def n_configurations(self) -> int:
        """Number of configurations in the layout."""
        return len(self.regions)


class DeviationAssembler:
    """
    Writes computed-minus-reference residuals into a fixed layout.

    Example:
        assembler = DeviationAssembler(ResidualLayout(configs, pot), settings)
        vector = assembler.new_vector()
        assembler.fill(vector, 0, configs[0], result, pot)
        assembler.fill_globals(vector, pot)
    """

    def __init__(self, layout: ResidualLayout, settings: FitSettings) -> None:
        self.layout = layout
        self.settings = settings

    def new_vector(self) -> NDArray[np.floating]:
        """Zeroed deviation vector of the layout's length."""
        return np.zeros(self.layout.size)

    def penalty_vector(self) -> NDArray[np.floating]:
        """Vector reported for an unevaluable parameter step."""
        return np.full(self.layout.size, self.settings.penalty_residual)

    def fill(
        self,
        vector: NDArray[np.floating],
        index: int,
        config: Configuration,
        result: ForceResult,
        potential: PotentialRepresentation,
    ) -> None:
        """
        Write the residuals of one configuration.

        Args:
            vector: Deviation vector to write into.
            index: Configuration index in the layout.
            config: Reference configuration.
            result: Computed energies, forces and virial.
            potential: Potential (for chemical-potential energy and density limits).
        """
        settings = self.settings
        region = self.layout.regions[index]
        n_atoms = config.n_atoms

        if result.converged:
            energy = result.energy + potential.extra_energy(config)
            vector[region.energy] = np.sqrt(config.weight * settings.energy_weight) * (
                energy / n_atoms - config.energy_per_atom
            )
        else:
            vector[region.energy] = settings.penalty_residual

        if config.use_forces:
            delta = result.forces - config.forces
            delta[~config.contribution_mask] = 0.0
            if settings.force_weighting:
                scale = np.linalg.norm(config.forces, axis=1) + settings.force_eps
                delta = delta / scale[:, np.newaxis]
            vector[region.forces] = np.sqrt(config.weight) * delta.ravel()
        else:
            vector[region.forces] = 0.0

        if region.stress is not None:
            stress = result.stress(config.volume)
            vector[region.stress] = np.sqrt(config.weight * settings.stress_weight) * (
                stress - config.stress
            )

        if self.layout.limits.stop > self.layout.limits.start:
            vector[self.layout.limits.start + index] = self.density_limit(
                potential, config, result
            )

    def density_limit(
        self,
        potential: PotentialRepresentation,
        config: Configuration,
        result: ForceResult,
    ) -> float:
        """
        Residual for host densities outside the embedding domain.

        Every atom contributes its distance below the first or above the
        last embedding knot.
        """
        excess = 0.0
        for density_channel, embed_channel in potential.descriptor.embedding:
            density = result.densities.get(density_channel)
            if density is None:
                continue
            lut = potential.slot_lookup(embed_channel)
            slots = lut[config.types, config.types]
            lower = np.array([potential.slots[s].minimum for s in slots])
            upper = np.array([potential.slots[s].cutoff for s in slots])
            excess += float(
                np.sum(np.maximum(lower - density, 0.0) + np.maximum(density - upper, 0.0))
            )
        return self.settings.dummy_weight * excess

    def fill_globals(self, vector: NDArray[np.floating], potential: PotentialRepresentation) -> None:
        """
        Write dummy constraints and punishments.

        Each embedding slot gets two slope constraints: one at zero density and
        one at the configured dummy density (domain midpoint by default).
        """
        settings = self.settings
        dummy = np.zeros(self.layout.dummy.stop - self.layout.dummy.start)
        for k, slot in enumerate(self.layout.embedding_slots):
            table = potential.table(slot)
            density = settings.dummy_density
            if density is None:
                density = 0.5 * (table.x_min + table.x_max)
            slopes = table.gradient(np.array([0.0, density]))
            dummy[2 * k : 2 * k + 2] = settings.dummy_weight * slopes
        vector[self.layout.dummy] = dummy
        vector[self.layout.punishments] = potential.punishments(settings)
