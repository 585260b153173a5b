#!/usr/bin/env python
# -*- coding: utf-8 -*-

import numpy as np
import pandas as pd
import pytest

from tree_ensembles.data.memberships import DataMemberships
from tree_ensembles.data.priors import ClassificationPriors
from tree_ensembles.data.tree_data import TreeDataCreator
from tree_ensembles.learner.configuration import TreeEnsembleLearnerConfiguration
from tree_ensembles.learner.split_candidates import SplitType
from tree_ensembles.learner.split_finder import SplitSearchContext, find_best_split_classification
from tree_ensembles.learner.surrogates import (
    calculate_association_measure, calculate_surrogates, create_surrogate_split_with_default_direction,
    find_surrogates
)
from tree_ensembles.learner.tree_learner import TreeLearnerClassification
from tree_ensembles.models.conditions import SurrogateCondition
from tree_ensembles.sample.column_sample import ColumnSample
from tree_ensembles.sample.row_sample import RowSample
from tree_ensembles.utils.random_data import RandomData


@pytest.fixture
def surrogate_data(surrogate_frame):
    return TreeDataCreator().read_data(surrogate_frame, 'target')


def _surrogate_config(**values):
    return TreeEnsembleLearnerConfiguration(
        missing_value_handling='surrogate', split_criterion='gini', column_sampling_mode='none',
        data_selection_with_replacement=False, seed=1, **values)


def _primary_split(data, config):
    context = SplitSearchContext.from_configuration(config, RandomData(0))
    memberships = DataMemberships.root(np.ones(data.nr_rows))
    priors = ClassificationPriors.from_memberships(data.target_column, memberships, context.criterion)
    labels = data.target_column.values[memberships.original_indices]
    candidate = find_best_split_classification(data.get_column_by_name('primary'), memberships, labels,
                                               priors.nr_classes, priors, context)
    return candidate, memberships, context


def test_association_measure():
    assert calculate_association_measure(0.4, 1.0) == pytest.approx(1.0)
    assert calculate_association_measure(0.4, 0.6) == pytest.approx(0.0)
    assert calculate_association_measure(0.4, 0.5) < 0.0


def test_surrogates_are_ranked(surrogate_data):
    config = _surrogate_config()
    candidate, memberships, context = _primary_split(surrogate_data, config)
    assert candidate.split_type == SplitType.NUMERIC
    assert len(candidate.missing_rows) == 20

    column_sample = ColumnSample(surrogate_data, range(surrogate_data.nr_attributes))
    ranked, majority_goes_left = find_surrogates(memberships, candidate, column_sample, context)

    assert ranked
    assert ranked[0].candidate.column.name == 'backup'
    assert not ranked[0].use_complement
    associations = [surrogate.association for surrogate in ranked]
    assert associations == sorted(associations, reverse=True)
    assert all(a > 0.0 for a in associations)
    assert all(s.candidate.column.name != 'primary' for s in ranked)
    assert isinstance(majority_goes_left, bool)


def test_surrogate_split_routes_every_row(surrogate_data):
    config = _surrogate_config()
    candidate, memberships, context = _primary_split(surrogate_data, config)
    column_sample = ColumnSample(surrogate_data, range(surrogate_data.nr_attributes))

    split = calculate_surrogates(surrogate_data, memberships, candidate, column_sample, context)
    left, right = split.child_masks

    assert split.nr_surrogates > 0
    assert not (left & right).any()
    assert np.all(left | right)
    assert all(isinstance(condition, SurrogateCondition) for condition in split.conditions)

    rows = memberships.original_indices
    assert np.array_equal(split.conditions[0].test_rows(surrogate_data, rows), left)
    assert np.array_equal(split.conditions[1].test_rows(surrogate_data, rows), right)

    # missing rows follow the backup column
    missing_positions = memberships.positions_of(candidate.missing_rows)
    backup = surrogate_data.get_column_by_name('backup').values[candidate.missing_rows]
    agreement = np.mean(left[missing_positions] == (backup <= candidate.threshold))
    assert agreement >= 0.8


def test_default_direction_without_missing_values(separable_data):
    config = TreeEnsembleLearnerConfiguration(missing_value_handling='surrogate')
    context = SplitSearchContext.from_configuration(config, RandomData(0))
    memberships = DataMemberships.root(np.ones(separable_data.nr_rows))
    priors = ClassificationPriors.from_memberships(separable_data.target_column, memberships, context.criterion)
    labels = separable_data.target_column.values
    candidate = find_best_split_classification(separable_data.get_column(0), memberships, labels, 2,
                                               priors, context)

    split = create_surrogate_split_with_default_direction(separable_data, memberships, candidate)
    assert split.nr_surrogates == 0
    assert split.majority_goes_left
    assert split.conditions[0].test({'x': None}) is True
    assert split.conditions[1].test({'x': None}) is False
    assert split.child_masks[0].sum() == 50


def test_multiway_primary_is_rejected(mixed_data):
    config = TreeEnsembleLearnerConfiguration(use_binary_nominal_splits=False, missing_value_handling='none')
    context = SplitSearchContext.from_configuration(config, RandomData(0))
    memberships = DataMemberships.root(np.ones(mixed_data.nr_rows))
    priors = ClassificationPriors.from_memberships(mixed_data.target_column, memberships, context.criterion)
    labels = mixed_data.target_column.values
    candidate = find_best_split_classification(mixed_data.get_column_by_name('color'), memberships, labels,
                                               priors.nr_classes, priors, context)

    with pytest.raises(ValueError, match="binary"):
        find_surrogates(memberships, candidate, ColumnSample(mixed_data, range(mixed_data.nr_attributes)), context)


def test_surrogate_tree_keeps_every_row(surrogate_data):
    config = _surrogate_config(hardcoded_root_column='primary')
    learner = TreeLearnerClassification(config, surrogate_data, RowSample(np.ones(surrogate_data.nr_rows)),
                                        RandomData(1))
    tree = learner.learn_single_tree()

    root_children = tree.get_children(tree.root)
    assert tree.root.split_column == 'primary'
    assert all(isinstance(child.condition, SurrogateCondition) for child in root_children)
    assert root_children[0].condition.surrogates
    assert sum(leaf.nr_rows for leaf in tree.leaves()) == surrogate_data.nr_rows

    frame = pd.DataFrame([surrogate_data.get_record(row) for row in range(surrogate_data.nr_rows)])
    frame.loc[:, 'primary'] = np.nan
    predictions = tree.predict(frame)
    assert len(predictions) == surrogate_data.nr_rows


def test_rows_missing_every_surrogate_follow_the_majority():
    rng = np.random.default_rng(11)
    n = 200
    primary = rng.normal(size=n)
    backup = primary + rng.normal(scale=0.05, size=n)
    target = np.where(primary > 0.0, 'up', 'down')
    missing_rows = rng.choice(n, size=20, replace=False)
    primary[missing_rows] = np.nan
    backup[missing_rows[:10]] = np.nan
    data = TreeDataCreator().read_data(pd.DataFrame({'primary': primary, 'backup': backup, 'target': target}),
                                       'target')

    candidate, memberships, context = _primary_split(data, _surrogate_config())
    split = calculate_surrogates(data, memberships, candidate, ColumnSample(data, range(data.nr_attributes)),
                                 context)
    assert [s.candidate.column.name for s in split.surrogates] == ['backup']

    left_condition, right_condition = split.conditions
    both_missing = np.sort(missing_rows[:10])
    only_primary_missing = np.sort(missing_rows[10:])
    _, unresolved = left_condition.evaluate_rows(data, both_missing)
    assert unresolved.all()
    _, unresolved = left_condition.evaluate_rows(data, only_primary_missing)
    assert not unresolved.any()

    left_mask = split.child_masks[0]
    assert np.all(left_mask[memberships.positions_of(both_missing)] == split.majority_goes_left)
    assert left_condition.test({'primary': None, 'backup': None}) == split.majority_goes_left
    assert right_condition.test({'primary': None, 'backup': None}) == (not split.majority_goes_left)
