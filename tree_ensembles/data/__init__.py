#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Data Module for Tree Ensembles
Columnar learning data, node memberships, impurity criteria and priors
"""

from .columns import (
    ColumnType, NominalValueRepresentation, TreeNumericColumn, TreeNominalColumn,
    TreeBitVectorColumn, TreeTargetNominalColumn, TreeTargetNumericColumn
)
from .tree_data import TreeData, TreeDataCreator, TreeType
from .memberships import DataMemberships
from .impurity import GiniImpurity, EntropyImpurity, GainRatioImpurity, get_impurity_criterion, EPSILON
from .priors import ClassificationPriors, RegressionPriors

__all__ = [
    'ColumnType',
    'NominalValueRepresentation',
    'TreeNumericColumn',
    'TreeNominalColumn',
    'TreeBitVectorColumn',
    'TreeTargetNominalColumn',
    'TreeTargetNumericColumn',
    'TreeData',
    'TreeDataCreator',
    'TreeType',
    'DataMemberships',
    'GiniImpurity',
    'EntropyImpurity',
    'GainRatioImpurity',
    'get_impurity_criterion',
    'EPSILON',
    'ClassificationPriors',
    'RegressionPriors'
]
