#!/usr/bin/env python
# -*- coding: utf-8 -*-

import threading

import numpy as np
import pandas as pd
import pytest

from tree_ensembles.data.impurity import GiniImpurity
from tree_ensembles.data.priors import ClassificationPriors
from tree_ensembles.data.tree_data import TreeDataCreator
from tree_ensembles.models.conditions import (
    BitVectorCondition, NominalBinaryCondition, NominalValueCondition, NumericCondition,
    SurrogateCondition, TrueCondition
)
from tree_ensembles.models.node import TreeModel, TreeNodeClassification
from tree_ensembles.models.signature import (
    MAX_CHILD_INDEX, ROOT_SIGNATURE, StructuralOverflowError, TreeNodeSignature, TreeNodeSignatureFactory
)


@pytest.fixture
def small_data():
    df = pd.DataFrame({
        'x': [1.0, 5.0, np.nan, 3.0],
        'color': ['red', 'blue', 'green', None],
        'bits': ['01', '10', '11', '00'],
        'target': ['a', 'b', 'a', 'b']
    })
    return TreeDataCreator({'bit_vector_columns': ['bits']}).read_data(df, 'target')


def test_signature_identity():
    factory = TreeNodeSignatureFactory()
    root = factory.get_root_signature()
    first = factory.get_child_signature(root, 1)
    second = factory.get_child_signature(root, 1)

    assert first is second
    assert first == TreeNodeSignature((1,))
    assert hash(first) == hash(TreeNodeSignature((1,)))
    assert factory.get_child_signature(first, 0).path == (1, 0)
    assert str(factory.get_child_signature(first, 0)) == '/1/0'
    assert root.is_root and root.child_index == -1
    assert len(factory) == 3


def test_signature_overflow():
    factory = TreeNodeSignatureFactory()
    factory.get_child_signature(ROOT_SIGNATURE, MAX_CHILD_INDEX)
    with pytest.raises(StructuralOverflowError):
        factory.get_child_signature(ROOT_SIGNATURE, MAX_CHILD_INDEX + 1)


def test_signature_factory_is_thread_safe():
    factory = TreeNodeSignatureFactory()
    results = []
    lock = threading.Lock()

    def work():
        signatures = [factory.get_child_signature(ROOT_SIGNATURE, i % 8) for i in range(200)]
        with lock:
            results.append(signatures)

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for signatures in results[1:]:
        assert all(a is b for a, b in zip(signatures, results[0]))


def test_numeric_condition():
    condition = NumericCondition(0, 'x', 2.5, True)
    assert condition.evaluate({'x': 1.0}) is True
    assert condition.evaluate({'x': 3.0}) is False
    assert condition.evaluate({'x': None}) is None
    assert condition.test({'x': np.nan}) is False

    negated = condition.negate()
    assert negated.test({'x': 3.0}) is True
    assert negated.test({'x': None}) is True
    assert condition.to_dict()['operator'] == '<='


def test_numeric_condition_rows(small_data):
    condition = NumericCondition(0, 'x', 2.5, False, accepts_missing=True)
    result, missing = condition.evaluate_rows(small_data, np.arange(4))
    assert list(result) == [False, True, False, True]
    assert list(missing) == [False, False, True, False]
    assert list(condition.test_rows(small_data, np.arange(4))) == [False, True, True, True]


def test_nominal_binary_condition_sends_unknown_values_to_complement(small_data):
    column = small_data.get_column_by_name('color')
    codes = frozenset({column.code_for('red')})
    inside = NominalBinaryCondition(column.attribute_index, 'color', frozenset({'red'}), codes, True)
    outside = NominalBinaryCondition(column.attribute_index, 'color', frozenset({'red'}), codes, False)

    assert inside.evaluate({'color': 'red'}) is True
    assert outside.evaluate({'color': 'purple'}) is True
    assert inside.evaluate({'color': None}) is None
    assert list(inside.test_rows(small_data, np.arange(4))) == [True, False, False, False]


def test_nominal_value_condition(small_data):
    column = small_data.get_column_by_name('color')
    condition = NominalValueCondition(column.attribute_index, 'color', 'blue', column.code_for('blue'))
    assert condition.evaluate({'color': 'blue'}) is True
    assert condition.evaluate({'color': 'purple'}) is False
    assert list(condition.test_rows(small_data, np.arange(4))) == [False, True, False, False]


def test_bit_vector_condition(small_data):
    column = small_data.get_column_by_name('bits[1]')
    condition = BitVectorCondition(column.attribute_index, 'bits', 1, True)
    assert condition.evaluate({'bits': '01'}) is True
    assert condition.evaluate({'bits': '00'}) is False
    assert condition.evaluate({'bits': None}) is None
    assert condition.column_name == 'bits'
    assert list(condition.test_rows(small_data, np.arange(4))) == [True, False, True, False]


def test_surrogate_condition_falls_back_in_order(small_data):
    primary = NumericCondition(0, 'x', 2.5, True)
    color = small_data.get_column_by_name('color')
    surrogate = NominalBinaryCondition(color.attribute_index, 'color', frozenset({'green'}),
                                       frozenset({color.code_for('green')}), True)
    condition = SurrogateCondition([primary, surrogate], default_response=False)

    assert condition.test({'x': 1.0, 'color': 'blue'}) is True
    assert condition.test({'x': None, 'color': 'green'}) is True
    assert condition.test({'x': None, 'color': None}) is False
    assert condition.accepts_missing is False

    result, missing = condition.evaluate_rows(small_data, np.arange(4))
    # row 2 has no x but color green, row 3 has x = 3
    assert list(result) == [True, False, True, False]
    assert not missing.any()


def _node(signature, condition, distribution):
    priors = ClassificationPriors(np.array(distribution, dtype=float), ['a', 'b'], GiniImpurity())
    return TreeNodeClassification(signature, condition, signature.depth, priors, int(sum(distribution)))


@pytest.fixture
def stump():
    factory = TreeNodeSignatureFactory()
    root = factory.get_root_signature()
    left = _node(factory.get_child_signature(root, 0), NumericCondition(0, 'x', 2.5, True), [2, 0])
    right = _node(factory.get_child_signature(root, 1), NumericCondition(0, 'x', 2.5, False), [0, 2])
    return TreeModel.from_subtree((_node(root, TrueCondition(), [2, 2]), [(left, []), (right, [])]),
                                  'target', ['a', 'b'])


def test_tree_model_layout(stump):
    assert stump.nr_nodes == 3
    assert stump.root.children == [1, 2]
    assert stump.get_node(2).parent == 0
    assert stump.depth == 1
    assert len(stump.leaves()) == 2
    assert stump.get_node_by_signature(TreeNodeSignature((1,))) is stump.get_node(2)
    assert stump.get_node_rules(stump.get_node(1)) == ['x <= 2.5']


def test_record_without_accepting_child_stops_at_internal_node(stump):
    assert stump.find_matching_leaf({'x': 1.0}).index == 1
    assert stump.find_matching_leaf({'x': None}).index == 0
    assert stump.predict_record({'x': 4.0}) == 'b'


def test_assign_rows_matches_record_routing(stump, small_data):
    assignment = stump.assign_rows(small_data)
    expected = [stump.find_matching_leaf(small_data.get_record(row)).index for row in range(4)]
    assert list(assignment) == expected
    assert list(stump.predict_rows(small_data)) == ['a', 'b', 'a', 'b']


def test_tree_model_to_dict(stump):
    result = stump.to_dict()
    assert result['class_names'] == ['a', 'b']
    assert [node['signature'] for node in result['nodes']] == ['/', '/0', '/1']
    assert result['nodes'][0]['majority_class'] == 'a'


def test_print_tree(stump):
    assert stump.print_tree().splitlines() == [
        "TRUE -> a (0.50, n=4)",
        "  x <= 2.5 -> a (1.00, n=2)",
        "  x > 2.5 -> b (1.00, n=2)",
    ]
