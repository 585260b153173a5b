#!/usr/bin/env python
# -*- coding: utf-8 -*-

import logging

import pytest

from tree_ensembles.utils.logging_utils import (
    NODE_LEVEL_LOGGERS, LogCapture, log_exception, log_system_info, setup_logging, setup_logging_from_config
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    for name in NODE_LEVEL_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_node_loggers_held_at_info_by_default():
    setup_logging(log_level=logging.DEBUG, enable_console=False)
    assert logging.getLogger().level == logging.DEBUG
    for name in NODE_LEVEL_LOGGERS:
        assert not logging.getLogger(name).isEnabledFor(logging.DEBUG)
    assert logging.getLogger('tree_ensembles.learner.ensemble_learner').isEnabledFor(logging.DEBUG)


def test_node_details_enabled_from_config():
    setup_logging_from_config({'logging': {'level': 'debug', 'enable_console': False, 'node_details': True}})
    for name in NODE_LEVEL_LOGGERS:
        assert logging.getLogger(name).isEnabledFor(logging.DEBUG)


def test_invalid_level_falls_back_to_info():
    setup_logging_from_config({'logging': {'level': 'loud', 'enable_console': False}})
    assert logging.getLogger().level == logging.INFO


def test_file_logging(tmp_path):
    setup_logging(log_dir=tmp_path / 'logs', enable_console=False)
    logging.getLogger('tree_ensembles.test').info("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_files = list((tmp_path / 'logs').glob('tree_ensembles_*.log'))
    assert len(log_files) == 1
    assert "written to file" in log_files[0].read_text(encoding='utf-8')


def test_log_exception_names_context():
    logger = logging.getLogger('tree_ensembles.test.errors')
    with LogCapture('tree_ensembles.test.errors', logging.ERROR) as capture:
        try:
            raise ValueError("boom")
        except ValueError as e:
            log_exception(e, logger, context="Tree 3")
    messages = capture.get_log_messages()
    assert len(messages) == 1
    assert messages[0].startswith("ERROR - Tree 3 failed: ValueError: boom")
    assert "Traceback" in messages[0]


def test_log_system_info():
    info = log_system_info(n_jobs=2)
    assert info['max_concurrent_trees'] == 2
    assert info['cpu_count'] >= 1
    assert 'numpy_version' in info and 'sklearn_version' in info
