"""Reference external model implementations."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..system import VOIGT_PAIRS
from .parameters import ParameterInfo
from .protocol import (
    ITERATOR_INCREMENT,
    ITERATOR_MODE,
    ITERATOR_RESET,
    STATUS_NEIGH_ITER_INIT_OK,
    STATUS_NEIGH_ITER_PAST_END,
    STATUS_OK,
    ComputeRequest,
    ExternalModel,
)


class LennardJonesModel(ExternalModel):
    """
    Lennard-Jones 12-6 model driving the neighbor protocol in iterator mode.

    V(r) = 4 * epsilon * [(sigma/r)^12 - (sigma/r)^6] for r < cutoff

    One (epsilon, sigma) row per unordered species pair, in the same order
    as the pair slots of a potential: (0,0), (0,1), ..., (1,1), ...
    The rows are published as a single rank-2 parameter.

    Attributes:
        n_species: Number of species.
    """

    PARAMETER = "pair_parameters"

    def __init__(
        self,
        n_species: int = 1,
        epsilon: ArrayLike = 1.0,
        sigma: ArrayLike = 1.0,
    ) -> None:
        """
        Initialize Lennard-Jones model.

        Args:
            n_species: Number of species.
            epsilon: Well depth, scalar or one value per species pair.
            sigma: Size parameter, scalar or one value per species pair.
        """
        super().__init__()
        self.n_species = n_species
        n_pairs = n_species * (n_species + 1) // 2
        self._params = np.empty((n_pairs, 2))
        self._params[:, 0] = np.broadcast_to(np.asarray(epsilon, dtype=np.float64), n_pairs)
        self._params[:, 1] = np.broadcast_to(np.asarray(sigma, dtype=np.float64), n_pairs)

        self._pair_index = np.empty((n_species, n_species), dtype=np.int64)
        k = 0
        for i in range(n_species):
            for j in range(i, n_species):
                self._pair_index[i, j] = self._pair_index[j, i] = k
                k += 1

    def parameter_info(self) -> list[ParameterInfo]:
        """One rank-2 parameter holding all (epsilon, sigma) rows."""
        return [ParameterInfo(self.PARAMETER, self._params.shape)]

    def get_parameter(self, name: str) -> NDArray[np.floating]:
        """Current value of a parameter."""
        if name != self.PARAMETER:
            raise KeyError(f"Unknown parameter: {name}")
        return self._params.copy()

    def set_parameter(self, name: str, value: float | NDArray[np.floating]) -> None:
        """Write a parameter."""
        if name != self.PARAMETER:
            raise KeyError(f"Unknown parameter: {name}")
        value = np.asarray(value, dtype=np.float64)
        if value.shape != self._params.shape:
            raise ValueError(f"Expected shape {self._params.shape}, got {value.shape}")
        self._params = value.copy()
        self._parameters_changed()

    def compute(self, request: ComputeRequest) -> int:
        """Walk all atoms with the iterator and accumulate pair terms."""
        if not self.initialised:
            return -1

        status, *_ = request.get_neigh(ITERATOR_MODE, ITERATOR_RESET)
        if status != STATUS_NEIGH_ITER_INIT_OK:
            return status

        energies = np.zeros(request.n_atoms)
        forces = np.zeros((request.n_atoms, 3))
        virial = np.zeros(6)
        while True:
            status, atom, n_neighbors, neighbors, rij = request.get_neigh(
                ITERATOR_MODE, ITERATOR_INCREMENT
            )
            if status == STATUS_NEIGH_ITER_PAST_END:
                break
            if status != STATUS_OK:
                return status
            if n_neighbors == 0:
                continue

            i = atom - 1
            j = neighbors - 1
            r = np.linalg.norm(rij, axis=1)
            mask = r < self.cutoff
            j, rij, r = j[mask], rij[mask], r[mask]

            pair = self._pair_index[request.species[i], request.species[j]]
            epsilon = self._params[pair, 0]
            sigma = self._params[pair, 1]
            sr6 = (sigma / r) ** 6
            phi = 4.0 * epsilon * (sr6 * sr6 - sr6)
            dphi = -24.0 * epsilon * (2.0 * sr6 * sr6 - sr6) / r

            # Half of each pair per direction
            energies[i] += 0.5 * np.sum(phi)
            gradients = (0.5 * dphi / r)[:, np.newaxis] * rij
            forces[i] += np.sum(gradients, axis=0)
            np.add.at(forces, j, -gradients)
            if request.compute_virial:
                for c, (a, b) in enumerate(VOIGT_PAIRS):
                    virial[c] -= np.dot(rij[:, a], gradients[:, b])

        request.particle_energy = energies
        request.energy = float(np.sum(energies))
        if request.compute_forces:
            request.forces[:] = forces
        if request.compute_virial:
            request.virial[:] = virial
        return STATUS_OK
