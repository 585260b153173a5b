#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ensemble Learner Module for Tree Ensembles
Random-forest style bagging of independently learned trees
"""

import logging
import threading
import time
from typing import List, Optional

from joblib import Parallel, delayed

from tree_ensembles.learner.configuration import TreeEnsembleLearnerConfiguration
from tree_ensembles.learner.tree_learner import create_tree_learner
from tree_ensembles.models.ensemble import TreeEnsembleModel
from tree_ensembles.models.node import TreeModel
from tree_ensembles.models.signature import TreeNodeSignatureFactory
from tree_ensembles.sample.column_sample import ColumnSample, ColumnSampleStrategy, create_column_sample_strategy
from tree_ensembles.sample.row_sample import RowSample, RowSampler
from tree_ensembles.utils.execution_monitor import CanceledExecutionError, ExecutionMonitor
from tree_ensembles.utils.memory_management import get_max_concurrent_trees, monitor_memory_usage
from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)

# Sub-stream tag of row sampling draws
ROW_SAMPLE_STREAM = 0


class TreeEnsembleLearner:
    """
    Learns nr_models trees concurrently.

    Each tree gets its own seed, row sample and column sampling strategy.
    A bounded semaphore limits the number of trees in flight. The first
    failure of any tree is recorded and re-raised once every task has
    finished; no partial ensemble is returned.
    """

    def __init__(self, config: TreeEnsembleLearnerConfiguration, data):
        """
        Initialize the learner

        Args:
            config: Learner configuration
            data: TreeData shared by all trees

        Raises:
            InvalidSettingsError: If the configuration does not fit the data
        """
        config.check_against(data)
        self.config = config
        self.data = data
        self.random_data = RandomData(config.seed)

        self.row_samples: List[Optional[RowSample]] = []
        self.column_sample_strategies: List[Optional[ColumnSampleStrategy]] = []
        self._models: List[Optional[TreeModel]] = []
        self._failure: Optional[BaseException] = None
        self._failure_lock = threading.Lock()
        self._completed = 0
        self._progress_lock = threading.Lock()

    @property
    def root_column_samples(self) -> List[ColumnSample]:
        return [strategy.get_root_column_sample() for strategy in self.column_sample_strategies]

    def _record_failure(self, error: BaseException) -> bool:
        """Keep the first failure; returns True if this one was recorded"""
        with self._failure_lock:
            if self._failure is None:
                self._failure = error
                return True
            return False

    def _has_failed(self) -> bool:
        with self._failure_lock:
            return self._failure is not None

    def _learn_tree(self, index: int, seed: int, row_sampler: RowSampler,
                    signature_factory: TreeNodeSignatureFactory, semaphore: threading.BoundedSemaphore,
                    monitor: ExecutionMonitor) -> None:
        with semaphore:
            if self._has_failed():
                return
            try:
                monitor.check_canceled()
                random_data = RandomData(seed)
                row_sample = row_sampler.create_row_sample(self.data.nr_rows,
                                                           random_data.derive((ROW_SAMPLE_STREAM,)))
                strategy = create_column_sample_strategy(self.config, self.data, random_data)
                learner = create_tree_learner(self.config, self.data, row_sample, random_data,
                                              signature_factory=signature_factory,
                                              column_sample_strategy=strategy)
                model = learner.learn_single_tree(monitor)
                monitor.check_canceled()

                self._models[index] = model
                self.row_samples[index] = row_sample
                self.column_sample_strategies[index] = strategy
            except CanceledExecutionError as e:
                self._record_failure(e)
                return
            except Exception as e:
                if self._record_failure(e):
                    logger.error(f"Learning tree {index} failed: {e}", exc_info=True)
                return

        with self._progress_lock:
            self._completed += 1
            monitor.set_progress(self._completed / self.config.nr_models,
                                 f"Learned tree {self._completed}/{self.config.nr_models}")

    def learn_ensemble(self, monitor: Optional[ExecutionMonitor] = None) -> TreeEnsembleModel:
        """
        Learn the ensemble

        Args:
            monitor: Cancellation and progress collaborator

        Returns:
            TreeEnsembleModel with trees in index order

        Raises:
            CanceledExecutionError: If the monitor was canceled
            Exception: The first failure of any tree
        """
        monitor = monitor or ExecutionMonitor()
        nr_models = self.config.nr_models
        max_in_flight = get_max_concurrent_trees(self.config.n_jobs)
        start_time = time.time()
        logger.info(f"Learning ensemble of {nr_models} trees on {self.data.nr_rows} rows "
                    f"({max_in_flight} concurrent trees)")

        seeds = self.random_data.spawn_seeds(nr_models)
        row_sampler = RowSampler.from_configuration(self.config)
        signature_factory = TreeNodeSignatureFactory()
        semaphore = threading.BoundedSemaphore(max_in_flight)

        self._models = [None] * nr_models
        self.row_samples = [None] * nr_models
        self.column_sample_strategies = [None] * nr_models
        self._failure = None
        self._completed = 0

        if not monitor_memory_usage():
            logger.warning(f"Each of the {max_in_flight} concurrent trees holds its own row memberships; "
                           "consider lowering n_jobs")
        monitor.check_canceled()
        Parallel(n_jobs=max_in_flight, backend='threading')(
            delayed(self._learn_tree)(index, seeds[index], row_sampler, signature_factory, semaphore, monitor)
            for index in range(nr_models)
        )

        monitor.check_canceled()
        if self._failure is not None:
            raise self._failure

        model = TreeEnsembleModel(self._models, self.data.target_column.name,
                                  None if self.config.regression else self.data.target_column.class_names,
                                  regression=self.config.regression)
        model.metadata = {
            'configuration': self.config.to_dict(),
            'nr_rows': self.data.nr_rows,
            'training_time': time.time() - start_time
        }
        logger.info(f"Learned {nr_models} trees in {model.metadata['training_time']:.2f} seconds")
        return model
