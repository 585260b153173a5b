#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Gradient Boosting Module for Tree Ensembles
Sequential boosting of regression trees on pseudo-residuals
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.optimize import minimize_scalar

from tree_ensembles.learner.configuration import GradientBoostingLearnerConfiguration, LossFunction
from tree_ensembles.learner.ensemble_learner import ROW_SAMPLE_STREAM
from tree_ensembles.learner.tree_learner import TreeLearnerRegression
from tree_ensembles.models.ensemble import GradientBoostedTreesModel, QuantileBoostedTreesModel
from tree_ensembles.models.node import TreeModel
from tree_ensembles.models.signature import TreeNodeSignature, TreeNodeSignatureFactory
from tree_ensembles.sample.row_sample import RowSampler
from tree_ensembles.utils.execution_monitor import ExecutionMonitor
from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)


class Loss:
    """Loss of a regression prediction"""

    name = 'loss'

    def loss(self, y: np.ndarray, f: np.ndarray) -> float:
        """Mean loss of predictions f for targets y"""
        raise NotImplementedError

    def negative_gradient(self, y: np.ndarray, f: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def initial_value(self, y: np.ndarray) -> float:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SquaredErrorLoss(Loss):
    name = 'squared_error'

    def loss(self, y, f) -> float:
        return float(np.mean((y - f) ** 2))

    def negative_gradient(self, y, f) -> np.ndarray:
        return y - f

    def initial_value(self, y) -> float:
        return float(np.mean(y))


class AbsoluteErrorLoss(Loss):
    name = 'absolute_error'

    def loss(self, y, f) -> float:
        return float(np.mean(np.abs(y - f)))

    def negative_gradient(self, y, f) -> np.ndarray:
        return np.sign(y - f)

    def initial_value(self, y) -> float:
        return float(np.median(y))


class HuberLoss(Loss):
    """
    Huber loss whose transition point delta is the alpha-quantile of the
    absolute residuals, updated by every call to negative_gradient
    """

    name = 'huber'

    def __init__(self, alpha: float = 0.9):
        self.alpha = alpha
        self.delta: Optional[float] = None

    def update_delta(self, residuals: np.ndarray) -> float:
        self.delta = float(np.quantile(np.abs(residuals), self.alpha))
        return self.delta

    def loss(self, y, f) -> float:
        residuals = y - f
        delta = self.delta if self.delta is not None else self.update_delta(residuals)
        absolute = np.abs(residuals)
        quadratic = absolute <= delta
        values = np.where(quadratic, 0.5 * residuals ** 2, delta * (absolute - 0.5 * delta))
        return float(np.mean(values))

    def negative_gradient(self, y, f) -> np.ndarray:
        residuals = y - f
        delta = self.update_delta(residuals)
        return np.clip(residuals, -delta, delta)

    def initial_value(self, y) -> float:
        return float(np.median(y))

    def __repr__(self) -> str:
        return f"HuberLoss(alpha={self.alpha})"


def get_loss_function(loss_function: LossFunction, alpha: float = 0.9) -> Loss:
    """
    Loss object of a configured loss function

    Args:
        loss_function: Configured loss
        alpha: Quantile of the Huber transition point

    Returns:
        Loss instance
    """
    if loss_function == LossFunction.SQUARED_ERROR:
        return SquaredErrorLoss()
    elif loss_function == LossFunction.ABSOLUTE_ERROR:
        return AbsoluteErrorLoss()
    elif loss_function == LossFunction.HUBER:
        return HuberLoss(alpha)
    raise ValueError(f"Unknown loss function: {loss_function}")


class AbstractBoostingLearner:
    """Shared iteration machinery of the boosting learners"""

    def __init__(self, config: GradientBoostingLearnerConfiguration, data):
        """
        Initialize the learner

        Args:
            config: Boosting configuration
            data: TreeData with a numeric target

        Raises:
            InvalidSettingsError: If the configuration does not fit the data
        """
        config.check_against(data)
        self.config = config
        self.data = data
        self.random_data = RandomData(config.seed)
        self.row_sampler = RowSampler.from_configuration(config)
        self.signature_factory = TreeNodeSignatureFactory()

    @property
    def target(self) -> np.ndarray:
        return self.data.target_column.values

    def learn_tree(self, pseudo_targets: np.ndarray, seed: int,
                   monitor: ExecutionMonitor) -> Tuple[TreeModel, TreeLearnerRegression]:
        """
        Fit one regression tree to pseudo-targets

        Args:
            pseudo_targets: Target of this iteration, one per row
            seed: Seed of the iteration's random stream
            monitor: Cancellation collaborator

        Returns:
            Tuple of (tree, the learner that built it)
        """
        random_data = RandomData(seed)
        pseudo_data = self.data.with_target_values(pseudo_targets)
        row_sample = self.row_sampler.create_row_sample(pseudo_data.nr_rows,
                                                        random_data.derive((ROW_SAMPLE_STREAM,)))
        learner = TreeLearnerRegression(self.config, pseudo_data, row_sample, random_data,
                                        signature_factory=self.signature_factory)
        return learner.learn_single_tree(monitor), learner

    def _report(self, monitor: ExecutionMonitor, iteration: int, loss: float) -> None:
        nr_iterations = self.config.nr_iterations
        logger.debug(f"Boosting iteration {iteration + 1}/{nr_iterations}: training loss {loss:.6g}")
        monitor.set_progress((iteration + 1) / nr_iterations,
                             f"Learned tree {iteration + 1}/{nr_iterations}")


class GradientBoostingLearner(AbstractBoostingLearner):
    """Generic gradient boosting with one line-searched coefficient per tree"""

    def __init__(self, config: GradientBoostingLearnerConfiguration, data):
        super().__init__(config, data)
        self.loss = get_loss_function(config.loss_function, config.alpha)

    def find_coefficient(self, y: np.ndarray, prediction: np.ndarray, direction: np.ndarray) -> float:
        """
        Scalar minimizing the loss along a tree's prediction (Brent's method)

        Args:
            y: Target values
            prediction: Current accumulated prediction
            direction: The new tree's prediction on the training rows

        Returns:
            Coefficient; 0.0 if the search does not improve the loss
        """
        result = minimize_scalar(lambda c: self.loss.loss(y, prediction + c * direction), method='brent')
        coefficient = float(result.x)
        if not np.isfinite(coefficient):
            return 0.0
        if self.loss.loss(y, prediction + coefficient * direction) > self.loss.loss(y, prediction):
            return 0.0
        return coefficient

    def learn(self, monitor: Optional[ExecutionMonitor] = None) -> GradientBoostedTreesModel:
        """
        Run the boosting iterations

        Args:
            monitor: Cancellation and progress collaborator

        Returns:
            GradientBoostedTreesModel with per-iteration training losses

        Raises:
            CanceledExecutionError: If the monitor was canceled
        """
        monitor = monitor or ExecutionMonitor()
        config = self.config
        start_time = time.time()
        logger.info(f"Gradient boosting with {config.nr_iterations} iterations, "
                    f"loss {self.loss.name}, learning rate {config.learning_rate}")

        y = self.target
        initial_value = self.loss.initial_value(y)
        prediction = np.full(len(y), initial_value)
        seeds = self.random_data.spawn_seeds(config.nr_iterations)

        models: List[TreeModel] = []
        coefficients: List[float] = []
        losses: List[float] = []
        for iteration in range(config.nr_iterations):
            monitor.check_canceled()
            gradient = self.loss.negative_gradient(y, prediction)
            tree, _ = self.learn_tree(gradient, seeds[iteration], monitor)

            direction = tree.predict_rows(self.data).astype(np.float64)
            coefficient = self.find_coefficient(y, prediction, direction)
            prediction = prediction + config.learning_rate * coefficient * direction

            models.append(tree)
            coefficients.append(coefficient)
            losses.append(self.loss.loss(y, prediction))
            self._report(monitor, iteration, losses[-1])

        monitor.check_canceled()
        model = GradientBoostedTreesModel(models, initial_value, coefficients, config.learning_rate,
                                          self.data.target_column.name)
        model.training_losses = losses
        logger.info(f"Gradient boosting finished in {time.time() - start_time:.2f} seconds, "
                    f"final training loss {losses[-1]:.6g}")
        return model


def huber_leaf_coefficient(residuals: np.ndarray, delta: float) -> float:
    """
    One-step Huber M-estimate of a leaf's location

    Args:
        residuals: Residuals of the rows in the leaf
        delta: Huber transition point

    Returns:
        median + mean of the clipped deviations from the median
    """
    if len(residuals) == 0:
        return 0.0
    median = float(np.median(residuals))
    deviations = residuals - median
    return median + float(np.mean(np.sign(deviations) * np.minimum(delta, np.abs(deviations))))


class QuantileBoostingLearner(AbstractBoostingLearner):
    """
    Huber-loss boosting with one coefficient per leaf.

    Pseudo-targets are residuals clipped to the alpha-quantile of their
    absolute values. Leaf coefficients are computed from the unclipped
    residuals of the training rows recorded in each leaf.
    """

    def __init__(self, config: GradientBoostingLearnerConfiguration, data):
        super().__init__(config, data)
        self.loss = HuberLoss(config.alpha)

    def learn(self, monitor: Optional[ExecutionMonitor] = None) -> QuantileBoostedTreesModel:
        """
        Run the boosting iterations

        Args:
            monitor: Cancellation and progress collaborator

        Returns:
            QuantileBoostedTreesModel with per-iteration training losses

        Raises:
            CanceledExecutionError: If the monitor was canceled
        """
        monitor = monitor or ExecutionMonitor()
        config = self.config
        start_time = time.time()
        logger.info(f"Quantile boosting with {config.nr_iterations} iterations, alpha {config.alpha}, "
                    f"learning rate {config.learning_rate}")

        y = self.target
        initial_value = float(np.median(y))
        prediction = np.full(len(y), initial_value)
        seeds = self.random_data.spawn_seeds(config.nr_iterations)

        models: List[TreeModel] = []
        leaf_coefficients: List[Dict[TreeNodeSignature, float]] = []
        losses: List[float] = []
        for iteration in range(config.nr_iterations):
            monitor.check_canceled()
            residuals = y - prediction
            delta = self.loss.update_delta(residuals)
            pseudo_targets = np.clip(residuals, -delta, delta)
            tree, learner = self.learn_tree(pseudo_targets, seeds[iteration], monitor)

            coefficients = {leaf.signature: huber_leaf_coefficient(residuals[leaf.row_indices], delta)
                            for leaf in learner.get_leaves()}
            node_coefficients = np.array([coefficients.get(node.signature, 0.0) for node in tree.nodes])
            prediction = prediction + config.learning_rate * node_coefficients[tree.assign_rows(self.data)]

            models.append(tree)
            leaf_coefficients.append(coefficients)
            losses.append(self.loss.loss(y, prediction))
            self._report(monitor, iteration, losses[-1])

        monitor.check_canceled()
        model = QuantileBoostedTreesModel(models, initial_value, leaf_coefficients, config.learning_rate,
                                          self.data.target_column.name)
        model.training_losses = losses
        logger.info(f"Quantile boosting finished in {time.time() - start_time:.2f} seconds, "
                    f"final training loss {losses[-1]:.6g}")
        return model


def create_boosting_learner(config: GradientBoostingLearnerConfiguration, data) -> AbstractBoostingLearner:
    """Per-leaf Huber boosting for the Huber loss, line-searched boosting otherwise"""
    if config.loss_function == LossFunction.HUBER:
        return QuantileBoostingLearner(config, data)
    return GradientBoostingLearner(config, data)
