"""Static partitioning of configurations across workers."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from ..errors import PartitionError


def partition_configurations(atom_counts: ArrayLike, n_workers: int) -> list[range]:
    """
    Split configurations into contiguous ranges with balanced atom counts.

    The partition is decided once at startup and never rebalanced. Every
    worker owns at least one configuration.

    Args:
        atom_counts: Number of atoms of each configuration, in order.
        n_workers: Number of workers.

    Returns:
        One range of configuration indices per worker, in rank order.

    Raises:
        PartitionError: If there are fewer configurations than workers.

    Example:
        >>> partition_configurations([10, 10, 20], 2)
        [range(0, 2), range(2, 3)]
    """
    counts = np.asarray(atom_counts, dtype=np.int64)
    n_configs = len(counts)
    if n_workers < 1:
        raise PartitionError(f"n_workers must be positive, got {n_workers}")
    if n_workers > n_configs:
        raise PartitionError(
            f"Cannot split {n_configs} configurations over {n_workers} workers"
        )

    cumulative = np.cumsum(counts)
    total = cumulative[-1]
    bounds = [0]
    for worker in range(1, n_workers):
        target = total * worker / n_workers
        # First split point whose prefix reaches the target
        split = int(np.searchsorted(cumulative, target)) + 1
        if split - 1 > bounds[-1] and abs(cumulative[split - 2] - target) <= abs(
            cumulative[split - 1] - target
        ):
            split -= 1
        split = max(split, bounds[-1] + 1)
        split = min(split, n_configs - (n_workers - worker))
        bounds.append(split)
    bounds.append(n_configs)
    return [range(bounds[w], bounds[w + 1]) for w in range(n_workers)]


def check_partition(partition: list[range], n_configs: int, n_workers: int) -> None:
    """
    Verify that ranges cover every configuration exactly once, in order.

    Raises:
        PartitionError: If the partition does not match the run.
    """
    if len(partition) != n_workers:
        raise PartitionError(
            f"Partition has {len(partition)} ranges for {n_workers} workers"
        )
    expected = 0
    for rank, part in enumerate(partition):
        if part.step != 1 or part.start != expected or part.stop <= part.start:
            raise PartitionError(f"Range {part} of rank {rank} is not contiguous and non-empty")
        expected = part.stop
    if expected != n_configs:
        raise PartitionError(f"Partition covers {expected} of {n_configs} configurations")
