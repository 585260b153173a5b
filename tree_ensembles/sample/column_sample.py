#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Column Sample Module for Tree Ensembles
Random feature subsets per tree or per tree node
"""

import logging
import math
import threading
from typing import Dict, Iterator, List, Sequence

import numpy as np

from tree_ensembles.learner.configuration import ColumnSamplingMode
from tree_ensembles.models.signature import TreeNodeSignature
from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)

# Sub-stream tag of column sampling draws
COLUMN_SAMPLE_STREAM = 1


class ColumnSample:
    """Attribute columns eligible for splitting at a node"""

    def __init__(self, data, attribute_indices: Sequence[int]):
        self._data = data
        self.attribute_indices = tuple(sorted(int(i) for i in attribute_indices))
        self._index_set = frozenset(self.attribute_indices)

    def __iter__(self) -> Iterator:
        for index in self.attribute_indices:
            yield self._data.get_column(index)

    def __len__(self) -> int:
        return len(self.attribute_indices)

    def __contains__(self, attribute_index: int) -> bool:
        return attribute_index in self._index_set

    def column_names(self) -> List[str]:
        return [self._data.get_column(i).name for i in self.attribute_indices]

    def __repr__(self) -> str:
        return f"ColumnSample({list(self.attribute_indices)})"


def get_sample_size(mode: ColumnSamplingMode, nr_columns: int,
                    fraction: float = 1.0, absolute: int = 1) -> int:
    """
    Number of columns drawn for a mode

    Args:
        mode: Column sampling mode
        nr_columns: Number of attribute columns
        fraction: Fraction for LINEAR mode
        absolute: Count for ABSOLUTE mode

    Returns:
        Sample size between 1 and nr_columns
    """
    if mode == ColumnSamplingMode.NONE:
        size = nr_columns
    elif mode == ColumnSamplingMode.LINEAR:
        size = int(math.ceil(fraction * nr_columns))
    elif mode == ColumnSamplingMode.SQUARE_ROOT:
        size = int(round(math.sqrt(nr_columns)))
    elif mode == ColumnSamplingMode.ABSOLUTE:
        size = absolute
    else:
        raise ValueError(f"Unknown column sampling mode: {mode}")
    return max(1, min(size, nr_columns))


class ColumnSampleStrategy:
    """
    Column sampling of one tree.

    Samples are cached by node signature, so asking twice for the same node
    yields the same sample. Draws for a node come from a stream derived from
    the tree's seed and the node path, which keeps them independent of the
    order in which nodes are visited.
    """

    def __init__(self, data, mode: ColumnSamplingMode, sample_size: int,
                 random_data: RandomData, per_node: bool):
        self._data = data
        self.mode = mode
        self.sample_size = sample_size
        self.per_node = per_node
        self._random_data = random_data
        self._cache: Dict[TreeNodeSignature, ColumnSample] = {}
        self._lock = threading.Lock()
        self._tree_sample = None if per_node else self._draw(())

    def _draw(self, path) -> ColumnSample:
        nr_columns = self._data.nr_attributes
        if self.sample_size >= nr_columns:
            return ColumnSample(self._data, range(nr_columns))
        stream = self._random_data.derive((COLUMN_SAMPLE_STREAM,) + tuple(path))
        return ColumnSample(self._data, stream.choice(nr_columns, self.sample_size, replace=False))

    def get_column_sample_for_tree_node(self, signature: TreeNodeSignature) -> ColumnSample:
        """
        Column sample of a node

        Args:
            signature: Signature of the node

        Returns:
            Cached or newly drawn ColumnSample
        """
        if self._tree_sample is not None:
            return self._tree_sample
        with self._lock:
            sample = self._cache.get(signature)
            if sample is None:
                sample = self._draw(signature.path)
                self._cache[signature] = sample
        return sample

    def get_root_column_sample(self) -> ColumnSample:
        return self.get_column_sample_for_tree_node(TreeNodeSignature(()))

    def __repr__(self) -> str:
        return (f"ColumnSampleStrategy(mode={self.mode.value}, size={self.sample_size}, "
                f"per_node={self.per_node})")


def create_column_sample_strategy(config, data, random_data: RandomData) -> ColumnSampleStrategy:
    """
    Build the column sampling strategy of one tree

    Args:
        config: TreeEnsembleLearnerConfiguration
        data: TreeData
        random_data: Random stream of the tree

    Returns:
        ColumnSampleStrategy
    """
    size = get_sample_size(config.column_sampling_mode, data.nr_attributes,
                           config.column_fraction_linear, config.column_absolute)
    per_node = config.use_different_attributes_at_each_node and config.column_sampling_mode != ColumnSamplingMode.NONE
    return ColumnSampleStrategy(data, config.column_sampling_mode, size, random_data, per_node)
