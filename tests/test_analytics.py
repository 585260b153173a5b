#!/usr/bin/env python
# -*- coding: utf-8 -*-

import numpy as np
import pandas as pd
import pytest

from tree_ensembles.analytics.performance_metrics import (
    OutOfBagEvaluator, calculate_classification_metrics, calculate_regression_metrics, sum_squared_error
)
from tree_ensembles.analytics.variable_importance import AttributeStatistics
from tree_ensembles.learner.ensemble_learner import TreeEnsembleLearner


@pytest.fixture
def forest(make_config, mixed_data):
    config = make_config(nr_models=10, seed=21, n_jobs=2, column_sampling_mode='none')
    learner = TreeEnsembleLearner(config, mixed_data)
    return learner, learner.learn_ensemble()


def test_classification_metrics():
    metrics = calculate_classification_metrics(['a', 'b', 'b', 'a'], ['a', 'b', 'a', 'a'], ['a', 'b'])
    assert metrics['accuracy'] == pytest.approx(0.75)
    assert metrics['error_rate'] == pytest.approx(0.25)
    assert metrics['confusion_matrix'] == [[2, 0], [1, 1]]
    assert calculate_classification_metrics([], [])['nr_rows'] == 0


def test_regression_metrics():
    metrics = calculate_regression_metrics(np.array([1.0, 2.0, 3.0]), np.array([1.0, 2.0, 5.0]))
    assert metrics['sse'] == pytest.approx(4.0)
    assert metrics['mse'] == pytest.approx(4.0 / 3.0)
    assert metrics['mae'] == pytest.approx(2.0 / 3.0)
    assert sum_squared_error([1.0], [3.0]) == pytest.approx(4.0)


def test_attribute_statistics(forest, mixed_data):
    _, model = forest
    statistics = AttributeStatistics(model, mixed_data, max_level=2)

    assert statistics.split_counts.shape == (mixed_data.nr_attributes, 2)
    # every tree splits its root
    assert statistics.split_counts[:, 0].sum() == model.nr_models
    assert np.all(statistics.candidate_counts >= statistics.split_counts)

    importance = statistics.get_gain_importance()
    assert sum(importance.values()) == pytest.approx(1.0)
    assert list(importance.values()) == sorted(importance.values(), reverse=True)

    table = statistics.to_dataframe()
    assert list(table.columns) == ['#splits (level 0)', '#candidates (level 0)',
                                   '#splits (level 1)', '#candidates (level 1)', 'gain importance']
    assert list(table.index) == [column.name for column in mixed_data.columns]


def test_attribute_statistics_rejects_bad_level(forest, mixed_data):
    with pytest.raises(ValueError):
        AttributeStatistics(forest[1], mixed_data, max_level=0)


def test_out_of_bag_evaluation(forest, mixed_data):
    learner, model = forest
    evaluator = OutOfBagEvaluator(model, mixed_data, learner.row_samples)

    predictions = evaluator.predict()
    assert len(predictions) == mixed_data.nr_rows
    metrics = evaluator.evaluate()
    assert metrics['nr_rows'] + metrics['nr_rows_without_prediction'] == mixed_data.nr_rows
    assert 0.0 <= metrics['accuracy'] <= 1.0
    assert metrics['classes'] == mixed_data.target_column.class_names


def test_out_of_bag_regression(make_config, regression_data):
    learner = TreeEnsembleLearner(make_config(target='y', regression=True, nr_models=8, seed=2), regression_data)
    model = learner.learn_ensemble()
    metrics = OutOfBagEvaluator(model, regression_data, learner.row_samples).evaluate()
    assert metrics['mse'] < np.var(regression_data.target_column.values)


def test_out_of_bag_requires_one_sample_per_tree(forest, mixed_data):
    learner, model = forest
    with pytest.raises(ValueError):
        OutOfBagEvaluator(model, mixed_data, learner.row_samples[:2])


def test_separable_forest_uses_single_attribute(make_config, separable_data):
    model = TreeEnsembleLearner(make_config(nr_models=5, seed=1), separable_data).learn_ensemble()
    importance = AttributeStatistics(model, separable_data).get_gain_importance()
    assert importance == {'x': pytest.approx(1.0)}
    table = AttributeStatistics(model, separable_data).to_dataframe()
    assert isinstance(table, pd.DataFrame)
