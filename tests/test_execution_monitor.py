#!/usr/bin/env python
# -*- coding: utf-8 -*-

import logging

import pandas as pd
import pytest

from tree_ensembles.utils.execution_monitor import CanceledExecutionError, ExecutionMonitor
from tree_ensembles.utils.logging_utils import LogCapture
from tree_ensembles.utils.memory_management import (
    get_dataframe_memory_usage, get_max_concurrent_trees, monitor_memory_usage
)


def test_progress_is_clamped():
    updates = []
    monitor = ExecutionMonitor(lambda fraction, message: updates.append((fraction, message)))
    monitor.set_progress(1.5, "done")
    assert monitor.progress == 1.0
    assert monitor.message == "done"
    monitor.set_progress(-1.0)
    assert monitor.progress == 0.0
    assert updates == [(1.0, "done"), (0.0, None)]


def test_sub_progress_is_weighted():
    parent = ExecutionMonitor()
    first = parent.create_sub_progress(0.25)
    second = parent.create_sub_progress(0.75)

    first.set_progress(1.0)
    assert parent.progress == pytest.approx(0.25)
    second.set_progress(0.5, "halfway")
    assert parent.progress == pytest.approx(0.625)
    assert parent.message == "halfway"


def test_cancellation_reaches_sub_monitors():
    parent = ExecutionMonitor()
    child = parent.create_sub_progress(0.5)
    child.check_canceled()

    parent.cancel()
    assert child.is_canceled()
    with pytest.raises(CanceledExecutionError):
        child.check_canceled()


def test_cancel_does_not_propagate_upwards():
    parent = ExecutionMonitor()
    child = parent.create_sub_progress(0.5)
    child.cancel()
    assert not parent.is_canceled()


def test_cancellation_is_logged():
    with LogCapture('tree_ensembles.utils.execution_monitor', logging.INFO) as capture:
        ExecutionMonitor().cancel()
    assert any("Cancellation requested" in message for message in capture.get_log_messages())


def test_max_concurrent_trees():
    assert get_max_concurrent_trees(3) == 3
    assert get_max_concurrent_trees() >= 1


def test_memory_monitoring():
    assert monitor_memory_usage(threshold_percent=100.0)
    with LogCapture('tree_ensembles.utils.memory_management', logging.WARNING) as capture:
        assert not monitor_memory_usage(threshold_percent=-1.0)
    assert capture.get_log_messages()[0].startswith("WARNING - High memory usage")
    assert get_dataframe_memory_usage(pd.DataFrame({'x': range(1000)})) > 0
