#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Random Data Module for Tree Ensembles
Seedable random stream handed explicitly to every learner component
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

# Range used when deriving per-tree seeds
MAX_SEED = 2 ** 62


class RandomData:
    """
    Random-number wrapper around numpy's default_rng.

    Integer draws use inclusive bounds on both ends. A RandomData instance
    is owned by a single task and is not shared between threads; concurrent
    work derives its own streams with derive().
    """

    def __init__(self, seed: Optional[Union[int, np.random.SeedSequence]] = None):
        """
        Initialize the stream

        Args:
            seed: Seed or SeedSequence for the underlying generator
                (None draws fresh entropy)
        """
        self.seed = seed
        if isinstance(seed, np.random.SeedSequence):
            self._seed_sequence = seed
        else:
            self._seed_sequence = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self._seed_sequence)

    def derive(self, key: Tuple[int, ...]) -> 'RandomData':
        """
        Independent stream determined by this stream's seed and a key.

        Derived streams do not depend on how many numbers were drawn from
        this stream, so concurrent tasks may derive them in any order.

        Args:
            key: Non-negative integers identifying the sub-stream

        Returns:
            New RandomData
        """
        parent = self._seed_sequence
        return RandomData(np.random.SeedSequence(parent.entropy,
                                                 spawn_key=tuple(parent.spawn_key) + tuple(key)))

    def next_long(self, lower: int, upper: int) -> int:
        """Uniform integer in [lower, upper]"""
        return int(self.rng.integers(lower, upper, endpoint=True))

    def next_int(self, lower: int, upper: int) -> int:
        """Uniform integer in [lower, upper]"""
        return int(self.rng.integers(lower, upper, endpoint=True))

    def next_uniform(self) -> float:
        """Uniform float in [0, 1)"""
        return float(self.rng.random())

    def permutation(self, n: int) -> np.ndarray:
        return self.rng.permutation(n)

    def choice(self, n: int, size: int, replace: bool) -> np.ndarray:
        """
        Sample indices from range(n)

        Args:
            n: Population size
            size: Number of samples to draw
            replace: Whether to sample with replacement

        Returns:
            Integer array of sampled indices
        """
        return self.rng.choice(n, size=size, replace=replace)

    def poisson(self, lam: float, size: int) -> np.ndarray:
        return self.rng.poisson(lam, size=size)

    def pick(self, items: Sequence):
        """Pick one element uniformly"""
        return items[self.next_int(0, len(items) - 1)]

    def spawn_seeds(self, n: int) -> List[int]:
        """
        Draw independent seeds for n sub-streams

        Args:
            n: Number of seeds

        Returns:
            List of seeds, one per sub-stream
        """
        return [self.next_long(0, MAX_SEED) for _ in range(n)]
