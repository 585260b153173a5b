#!/usr/bin/env python
# -*- coding: utf-8 -*-

import numpy as np
import pytest

from tree_ensembles.learner.configuration import ColumnSamplingMode, TreeEnsembleLearnerConfiguration
from tree_ensembles.models.signature import ROOT_SIGNATURE, TreeNodeSignatureFactory
from tree_ensembles.sample.column_sample import (
    ColumnSample, ColumnSampleStrategy, create_column_sample_strategy, get_sample_size
)
from tree_ensembles.sample.row_sample import RowSample, RowSampler
from tree_ensembles.utils.random_data import RandomData


def test_bootstrap_sample():
    sample = RowSampler(1.0, with_replacement=True).create_row_sample(100, RandomData(1))
    assert sample.nr_rows == 100
    assert sample.sample_size == 100
    assert len(sample.included_rows()) + len(sample.out_of_bag_rows()) == 100
    assert len(sample.out_of_bag_rows()) > 0


def test_sample_without_replacement():
    sample = RowSampler(0.5, with_replacement=False).create_row_sample(100, RandomData(1))
    assert sample.sample_size == 50
    assert set(np.unique(sample.counts)) == {0, 1}

    full = RowSampler(1.0, with_replacement=False).create_row_sample(10, RandomData(1))
    assert np.all(full.counts == 1)


def test_row_sample_is_read_only():
    sample = RowSample(np.array([1, 0, 2]))
    assert sample.count_for(2) == 2
    with pytest.raises(ValueError):
        sample.counts[0] = 3


def test_invalid_row_fraction():
    with pytest.raises(ValueError):
        RowSampler(0.0)


def test_row_sampler_from_configuration():
    config = TreeEnsembleLearnerConfiguration(data_fraction=0.3, data_selection_with_replacement=False)
    sampler = RowSampler.from_configuration(config)
    assert sampler.fraction == 0.3
    assert not sampler.with_replacement
    assert sampler.sample_size(10) == 3


@pytest.mark.parametrize("mode,expected", [
    (ColumnSamplingMode.NONE, 16),
    (ColumnSamplingMode.LINEAR, 10),
    (ColumnSamplingMode.SQUARE_ROOT, 4),
    (ColumnSamplingMode.ABSOLUTE, 5),
])
def test_sample_size(mode, expected):
    assert get_sample_size(mode, 16, fraction=0.6, absolute=5) == expected


def test_sample_size_is_clamped():
    assert get_sample_size(ColumnSamplingMode.ABSOLUTE, 3, absolute=10) == 3
    assert get_sample_size(ColumnSamplingMode.LINEAR, 3, fraction=0.01) == 1


def test_tree_wide_column_sample(mixed_data):
    strategy = ColumnSampleStrategy(mixed_data, ColumnSamplingMode.SQUARE_ROOT, 3, RandomData(4), per_node=False)
    factory = TreeNodeSignatureFactory()
    child = factory.get_child_signature(ROOT_SIGNATURE, 1)

    root_sample = strategy.get_root_column_sample()
    assert len(root_sample) == 3
    assert strategy.get_column_sample_for_tree_node(child) is root_sample


def test_per_node_column_sample_is_cached_and_deterministic(mixed_data):
    factory = TreeNodeSignatureFactory()
    signatures = [factory.get_child_signature(ROOT_SIGNATURE, i) for i in range(5)]

    first = ColumnSampleStrategy(mixed_data, ColumnSamplingMode.ABSOLUTE, 2, RandomData(8), per_node=True)
    second = ColumnSampleStrategy(mixed_data, ColumnSamplingMode.ABSOLUTE, 2, RandomData(8), per_node=True)

    for signature in signatures:
        sample = first.get_column_sample_for_tree_node(signature)
        assert first.get_column_sample_for_tree_node(signature) is sample
        assert len(sample) == 2
    # requested in reverse order
    for signature in reversed(signatures):
        assert (second.get_column_sample_for_tree_node(signature).attribute_indices
                == first.get_column_sample_for_tree_node(signature).attribute_indices)


def test_column_sample_iterates_columns(mixed_data):
    sample = ColumnSample(mixed_data, [2, 0])
    assert sample.attribute_indices == (0, 2)
    assert [column.name for column in sample] == ['x1', 'color']
    assert 2 in sample and 1 not in sample
    assert sample.column_names() == ['x1', 'color']


def test_strategy_from_configuration(mixed_data):
    config = TreeEnsembleLearnerConfiguration(column_sampling_mode='none', use_different_attributes_at_each_node=True)
    strategy = create_column_sample_strategy(config, mixed_data, RandomData(0))
    assert not strategy.per_node
    assert len(strategy.get_root_column_sample()) == mixed_data.nr_attributes


def test_random_data_streams():
    a = RandomData(3)
    b = RandomData(3)
    assert a.spawn_seeds(4) == b.spawn_seeds(4)
    assert 0 <= a.next_int(0, 5) <= 5

    derived = RandomData(3).derive((1, 2))
    used = RandomData(3)
    used.next_uniform()
    assert derived.next_uniform() == used.derive((1, 2)).next_uniform()
    assert RandomData(3).derive((1,)).next_uniform() != RandomData(3).derive((2,)).next_uniform()
    assert RandomData(3).pick(['only']) == 'only'
