#!/usr/bin/env python
# -*- coding: utf-8 -*-

import numpy as np
import pytest

from tree_ensembles.learner.configuration import InvalidSettingsError, LossFunction
from tree_ensembles.learner.gradient_boosting import (
    AbsoluteErrorLoss, GradientBoostingLearner, HuberLoss, QuantileBoostingLearner, SquaredErrorLoss,
    create_boosting_learner, get_loss_function, huber_leaf_coefficient
)
from tree_ensembles.models.ensemble import GradientBoostedTreesModel, QuantileBoostedTreesModel
from tree_ensembles.utils.execution_monitor import CanceledExecutionError, ExecutionMonitor


def test_squared_error_loss():
    loss = SquaredErrorLoss()
    y = np.array([1.0, 2.0, 3.0])
    f = np.array([1.0, 1.0, 1.0])
    assert loss.loss(y, f) == pytest.approx(5.0 / 3.0)
    np.testing.assert_allclose(loss.negative_gradient(y, f), [0.0, 1.0, 2.0])
    assert loss.initial_value(y) == pytest.approx(2.0)


def test_absolute_error_loss():
    loss = AbsoluteErrorLoss()
    y = np.array([1.0, 2.0, 10.0])
    assert loss.initial_value(y) == pytest.approx(2.0)
    np.testing.assert_allclose(loss.negative_gradient(y, np.full(3, 2.0)), [-1.0, 0.0, 1.0])


def test_huber_loss_clips_gradient():
    loss = HuberLoss(alpha=0.5)
    y = np.array([0.0, 1.0, 2.0, 10.0])
    gradient = loss.negative_gradient(y, np.zeros(4))
    assert loss.delta == pytest.approx(1.5)
    np.testing.assert_allclose(gradient, [0.0, 1.0, 1.5, 1.5])
    # quadratic below delta, linear above
    expected = np.mean([0.0, 0.5, 1.5 * (2.0 - 0.75), 1.5 * (10.0 - 0.75)])
    assert loss.loss(y, np.zeros(4)) == pytest.approx(expected)


def test_get_loss_function():
    assert isinstance(get_loss_function(LossFunction.SQUARED_ERROR), SquaredErrorLoss)
    assert isinstance(get_loss_function(LossFunction.ABSOLUTE_ERROR), AbsoluteErrorLoss)
    huber = get_loss_function(LossFunction.HUBER, alpha=0.8)
    assert isinstance(huber, HuberLoss) and huber.alpha == 0.8


def test_huber_leaf_coefficient():
    assert huber_leaf_coefficient(np.array([]), 1.0) == 0.0
    # median 2, clipped deviations -1, 0, 1 average to 0
    assert huber_leaf_coefficient(np.array([1.0, 2.0, 3.0]), 5.0) == pytest.approx(2.0)
    # outlier deviation 98 is clipped to 1
    assert huber_leaf_coefficient(np.array([1.0, 2.0, 100.0]), 1.0) == pytest.approx(2.0)
    assert huber_leaf_coefficient(np.array([1.0, 2.0, 3.0, 100.0]), 1.0) == pytest.approx(2.5)


@pytest.mark.parametrize("loss_function", ['squared_error', 'absolute_error'])
def test_training_loss_does_not_increase(make_boosting_config, regression_data, loss_function):
    config = make_boosting_config(nr_iterations=5, loss_function=loss_function, seed=0, max_depth=3)
    learner = create_boosting_learner(config, regression_data)
    assert isinstance(learner, GradientBoostingLearner)
    model = learner.learn()

    assert isinstance(model, GradientBoostedTreesModel)
    assert model.nr_models == 5
    losses = model.training_losses
    y = regression_data.target_column.values
    initial_loss = learner.loss.loss(y, np.full(len(y), model.initial_value))
    assert losses[0] <= initial_loss + 1e-12
    for previous, current in zip(losses, losses[1:]):
        assert current <= previous + 1e-12


def test_boosted_model_predicts_like_training(make_boosting_config, regression_frame, regression_data):
    config = make_boosting_config(nr_iterations=10, seed=0, learning_rate=0.5)
    model = create_boosting_learner(config, regression_data).learn()

    predictions = model.predict(regression_frame)
    y = regression_frame['y'].to_numpy()
    assert np.mean((y - predictions) ** 2) == pytest.approx(model.training_losses[-1])
    assert model.predict_record(regression_data.get_record(0)) == pytest.approx(predictions[0])
    assert model.to_dict()['type'] == 'gradient_boosted_trees'


def test_line_search_returns_zero_without_improvement(make_boosting_config, regression_data):
    learner = GradientBoostingLearner(make_boosting_config(), regression_data)
    y = regression_data.target_column.values
    assert learner.find_coefficient(y, y.copy(), np.ones(len(y))) == pytest.approx(0.0, abs=1e-6)

    prediction = np.zeros(len(y))
    assert learner.find_coefficient(y, prediction, y) == pytest.approx(1.0, abs=1e-4)


def test_quantile_boosting(make_boosting_config, regression_frame, regression_data):
    config = make_boosting_config(nr_iterations=8, loss_function='huber', alpha=0.9, seed=2)
    learner = create_boosting_learner(config, regression_data)
    assert isinstance(learner, QuantileBoostingLearner)

    model = learner.learn()
    assert isinstance(model, QuantileBoostedTreesModel)
    assert model.nr_models == 8
    assert len(model.training_losses) == 8
    assert model.initial_value == pytest.approx(float(np.median(regression_data.target_column.values)))

    for tree, coefficients in zip(model.models, model.leaf_coefficients):
        leaf_signatures = {leaf.signature for leaf in tree.leaves()}
        assert set(coefficients) == leaf_signatures

    predictions = model.predict(regression_frame)
    y = regression_frame['y'].to_numpy()
    assert np.all(np.isfinite(predictions))
    assert np.mean(np.abs(y - predictions)) < np.mean(np.abs(y - np.median(y)))
    assert len(model.to_dict()['leaf_coefficients']) == 8


def test_unknown_leaf_contributes_nothing(make_boosting_config, regression_data):
    config = make_boosting_config(nr_iterations=2, loss_function='huber', seed=2)
    model = create_boosting_learner(config, regression_data).learn()
    model.leaf_coefficients[0] = {}
    record = regression_data.get_record(0)
    expected = model.initial_value + model.learning_rate * model.tree_contribution(1, record)
    assert model.predict_record(record) == pytest.approx(expected)


def test_boosting_reports_progress_and_cancels(make_boosting_config, regression_data):
    monitor = ExecutionMonitor()
    create_boosting_learner(make_boosting_config(nr_iterations=3), regression_data).learn(monitor)
    assert monitor.progress == pytest.approx(1.0)

    canceled = ExecutionMonitor()
    canceled.cancel()
    with pytest.raises(CanceledExecutionError):
        create_boosting_learner(make_boosting_config(nr_iterations=3), regression_data).learn(canceled)


def test_boosting_requires_numeric_target(make_boosting_config, mixed_data):
    with pytest.raises(InvalidSettingsError):
        create_boosting_learner(make_boosting_config(target='target'), mixed_data)
