#!/usr/bin/env python
# -*- coding: utf-8 -*-

import random
import threading
import time

import numpy as np
import pytest

from tree_ensembles.learner.configuration import InvalidSettingsError
from tree_ensembles.learner.ensemble_learner import TreeEnsembleLearner
from tree_ensembles.learner.tree_learner import TreeLearnerClassification
from tree_ensembles.utils.execution_monitor import CanceledExecutionError, ExecutionMonitor


def _slow_learning(monkeypatch):
    original = TreeLearnerClassification.learn_single_tree
    jitter = random.Random()

    def learn_with_delay(self, monitor=None):
        time.sleep(jitter.uniform(0.0, 0.03))
        return original(self, monitor)

    monkeypatch.setattr(TreeLearnerClassification, 'learn_single_tree', learn_with_delay)


def test_ensemble_size_and_order_under_random_timing(make_config, mixed_data, monkeypatch):
    config = make_config(nr_models=12, seed=123, n_jobs=1)
    reference = TreeEnsembleLearner(config, mixed_data).learn_ensemble()

    _slow_learning(monkeypatch)
    parallel_config = make_config(nr_models=12, seed=123, n_jobs=6)
    model = TreeEnsembleLearner(parallel_config, mixed_data).learn_ensemble()

    assert model.nr_models == 12
    for index in range(12):
        assert model.get_tree_model(index).to_dict() == reference.get_tree_model(index).to_dict()


def test_ensemble_metadata_and_samples(make_config, mixed_data):
    config = make_config(nr_models=5, seed=3, n_jobs=2)
    learner = TreeEnsembleLearner(config, mixed_data)
    model = learner.learn_ensemble()

    assert len(learner.row_samples) == 5
    assert all(sample.sample_size == mixed_data.nr_rows for sample in learner.row_samples)
    assert len(learner.root_column_samples) == 5
    assert all(len(sample) == 3 for sample in learner.root_column_samples)
    assert model.metadata['nr_rows'] == mixed_data.nr_rows
    assert model.metadata['configuration']['nr_models'] == 5
    assert model.class_names == mixed_data.target_column.class_names
    assert not model.regression


def test_trees_differ_between_seeds(make_config, mixed_data):
    first = TreeEnsembleLearner(make_config(nr_models=3, seed=1), mixed_data).learn_ensemble()
    second = TreeEnsembleLearner(make_config(nr_models=3, seed=2), mixed_data).learn_ensemble()
    assert [t.to_dict() for t in first] != [t.to_dict() for t in second]


def test_regression_ensemble(make_config, regression_frame, regression_data):
    config = make_config(target='y', regression=True, nr_models=10, seed=4, column_sampling_mode='none')
    model = TreeEnsembleLearner(config, regression_data).learn_ensemble()

    assert model.regression
    predictions = model.predict(regression_frame)
    residuals = regression_frame['y'].to_numpy() - predictions
    assert np.mean(residuals ** 2) < np.var(regression_frame['y'].to_numpy())


def test_majority_vote_prediction(make_config, separable_frame, separable_data):
    model = TreeEnsembleLearner(make_config(nr_models=7, seed=5), separable_data).learn_ensemble()
    assert model.predict_record({'x': 2.0}) == 'neg'
    assert model.predict_record({'x': 97.0}) == 'pos'
    assert model.predict_record({'x': 97.0}, models=[0]) == 'pos'

    probabilities = model.predict_proba(separable_frame)
    np.testing.assert_allclose(probabilities.sum(axis=1), 1.0)
    assert model.predict_per_tree(separable_frame).shape == (7, 100)


def test_first_failure_is_propagated(make_config, mixed_data, monkeypatch):
    calls = []
    lock = threading.Lock()
    original = TreeLearnerClassification.learn_single_tree

    def failing(self, monitor=None):
        with lock:
            calls.append(1)
            nr_calls = len(calls)
        if nr_calls == 3:
            raise RuntimeError("tree exploded")
        return original(self, monitor)

    monkeypatch.setattr(TreeLearnerClassification, 'learn_single_tree', failing)
    learner = TreeEnsembleLearner(make_config(nr_models=8, seed=1, n_jobs=2), mixed_data)
    with pytest.raises(RuntimeError, match="tree exploded"):
        learner.learn_ensemble()


def test_cancel_before_start(make_config, mixed_data):
    monitor = ExecutionMonitor()
    monitor.cancel()
    with pytest.raises(CanceledExecutionError):
        TreeEnsembleLearner(make_config(nr_models=4), mixed_data).learn_ensemble(monitor)


def test_cancel_while_learning(make_config, mixed_data, monkeypatch):
    monitor = ExecutionMonitor()
    original = TreeLearnerClassification.learn_single_tree

    def cancel_then_learn(self, monitor_arg=None):
        monitor.cancel()
        return original(self, monitor_arg)

    monkeypatch.setattr(TreeLearnerClassification, 'learn_single_tree', cancel_then_learn)
    with pytest.raises(CanceledExecutionError):
        TreeEnsembleLearner(make_config(nr_models=6, n_jobs=2), mixed_data).learn_ensemble(monitor)


def test_cancellation_wins_over_tree_failure(make_config, mixed_data, monkeypatch):
    monitor = ExecutionMonitor()

    def fail_after_cancel(self, monitor_arg=None):
        monitor.cancel()
        raise RuntimeError("tree exploded")

    monkeypatch.setattr(TreeLearnerClassification, 'learn_single_tree', fail_after_cancel)
    with pytest.raises(CanceledExecutionError):
        TreeEnsembleLearner(make_config(nr_models=4, n_jobs=2), mixed_data).learn_ensemble(monitor)


def test_progress_reaches_one(make_config, mixed_data):
    updates = []
    monitor = ExecutionMonitor(lambda fraction, message: updates.append(fraction))
    TreeEnsembleLearner(make_config(nr_models=4, n_jobs=2), mixed_data).learn_ensemble(monitor)
    assert monitor.progress == pytest.approx(1.0)
    assert len(updates) == 4


def test_configuration_is_checked_against_data(make_config, regression_data):
    with pytest.raises(InvalidSettingsError):
        TreeEnsembleLearner(make_config(target='y'), regression_data)
