#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Models Module for Tree Ensembles
Node signatures, conditions, trees and ensemble models
"""

from .signature import TreeNodeSignature, TreeNodeSignatureFactory, StructuralOverflowError
from .conditions import (
    NodeCondition, TrueCondition, NumericCondition, NominalBinaryCondition,
    NominalValueCondition, BitVectorCondition, SurrogateCondition
)
from .node import TreeNode, TreeNodeClassification, TreeNodeRegression, TreeModel
from .ensemble import TreeEnsembleModel, GradientBoostedTreesModel, QuantileBoostedTreesModel

__all__ = [
    'TreeNodeSignature',
    'TreeNodeSignatureFactory',
    'StructuralOverflowError',
    'NodeCondition',
    'TrueCondition',
    'NumericCondition',
    'NominalBinaryCondition',
    'NominalValueCondition',
    'BitVectorCondition',
    'SurrogateCondition',
    'TreeNode',
    'TreeNodeClassification',
    'TreeNodeRegression',
    'TreeModel',
    'TreeEnsembleModel',
    'GradientBoostedTreesModel',
    'QuantileBoostedTreesModel'
]
