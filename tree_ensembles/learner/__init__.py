#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Learner Module for Tree Ensembles
Split search, tree learning, bagging and gradient boosting
"""

from .configuration import (
    InvalidSettingsError, SplitCriterion, MissingValueHandling, ColumnSamplingMode, LossFunction,
    TreeEnsembleLearnerConfiguration, GradientBoostingLearnerConfiguration
)
from .tree_learner import (
    TreeLearnerError, TreeLearnerClassification, TreeLearnerRegression, create_tree_learner
)
from .ensemble_learner import TreeEnsembleLearner
from .gradient_boosting import (
    GradientBoostingLearner, QuantileBoostingLearner, create_boosting_learner, get_loss_function
)

__all__ = [
    'InvalidSettingsError',
    'SplitCriterion',
    'MissingValueHandling',
    'ColumnSamplingMode',
    'LossFunction',
    'TreeEnsembleLearnerConfiguration',
    'GradientBoostingLearnerConfiguration',
    'TreeLearnerError',
    'TreeLearnerClassification',
    'TreeLearnerRegression',
    'create_tree_learner',
    'TreeEnsembleLearner',
    'GradientBoostingLearner',
    'QuantileBoostingLearner',
    'create_boosting_learner',
    'get_loss_function'
]
