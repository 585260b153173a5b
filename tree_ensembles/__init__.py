#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Ensembles
Random-forest style and gradient boosted decision tree ensembles on columnar data
"""

__version__ = '1.0.0'

from .learner import (
    TreeEnsembleLearnerConfiguration, GradientBoostingLearnerConfiguration,
    TreeEnsembleLearner, GradientBoostingLearner, QuantileBoostingLearner, create_boosting_learner
)
from .data import TreeData, TreeDataCreator
from .models import TreeModel, TreeEnsembleModel, GradientBoostedTreesModel, QuantileBoostedTreesModel

__all__ = [
    'TreeEnsembleLearnerConfiguration',
    'GradientBoostingLearnerConfiguration',
    'TreeEnsembleLearner',
    'GradientBoostingLearner',
    'QuantileBoostingLearner',
    'create_boosting_learner',
    'TreeData',
    'TreeDataCreator',
    'TreeModel',
    'TreeEnsembleModel',
    'GradientBoostedTreesModel',
    'QuantileBoostedTreesModel'
]
