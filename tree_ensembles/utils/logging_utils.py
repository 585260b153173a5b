#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Logging Utilities for Tree Ensembles
Console and rotating file logging, with a switch for per-node learner output
"""

import sys
import logging
import logging.handlers
import platform
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union

import numpy as np
import pandas as pd
import psutil
import scipy
import sklearn

from tree_ensembles.utils.memory_management import get_max_concurrent_trees

DEFAULT_LOG_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'

# Loggers emitting one DEBUG record per tree node or split candidate
NODE_LEVEL_LOGGERS = (
    'tree_ensembles.learner.tree_learner',
    'tree_ensembles.learner.split_finder',
    'tree_ensembles.learner.surrogates',
)


def setup_logging(log_dir: Optional[Union[str, Path]] = None,
                  log_level: int = logging.INFO,
                  log_format: Optional[str] = None,
                  enable_console: bool = True,
                  max_log_size: int = 10485760,  # 10MB
                  backup_count: int = 5,
                  node_details: bool = False) -> logging.Logger:
    """
    Set up logging with console and file handlers

    Tree learning threads log concurrently, so the default format carries
    the thread name.

    Args:
        log_dir: Directory for log files (no file logging if None)
        log_level: Logging level (default: INFO)
        log_format: Log message format (default: defined in module)
        enable_console: Whether to enable console logging
        max_log_size: Maximum size for log files before rotation (bytes)
        backup_count: Number of backup log files to keep
        node_details: Keep per-node DEBUG records of the learners; when False
            those loggers are held at INFO even if log_level is DEBUG

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir / f'tree_ensembles_{timestamp}.log'

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_log_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)
        logger.info(f"Logging initialized: {log_file}")

    node_level = logging.NOTSET if node_details else max(log_level, logging.INFO)
    for name in NODE_LEVEL_LOGGERS:
        set_log_level(name, node_level)

    logger.info(f"Log level: {logging.getLevelName(log_level)}")

    return root_logger


def setup_logging_from_config(config: Dict[str, Any]) -> logging.Logger:
    """
    Set up logging from the 'logging' and 'application' configuration sections

    Args:
        config: Configuration dictionary

    Returns:
        Configured root logger
    """
    log_config = config.get('logging', {})
    level = logging.getLevelName(str(log_config.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    return setup_logging(
        log_dir=config.get('application', {}).get('log_dir'),
        log_level=level,
        enable_console=log_config.get('enable_console', True),
        max_log_size=log_config.get('max_log_size', 10485760),
        backup_count=log_config.get('backup_count', 5),
        node_details=log_config.get('node_details', False)
    )


def set_log_level(logger_name: Optional[str] = None, level: int = logging.INFO) -> None:
    """
    Set the level of a logger and of its own handlers

    Args:
        logger_name: Name of the logger to modify (None for root logger)
        level: New logging level (NOTSET defers to the parent logger)
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    for handler in logger.handlers:
        handler.setLevel(level)

    logging.getLogger(__name__).debug(
        f"Log level for {'root' if logger_name is None else logger_name} "
        f"set to {logging.getLevelName(level)}"
    )


def flush_logs() -> None:
    """Flush all handlers of the root logger"""
    for handler in logging.getLogger().handlers:
        handler.flush()


def log_exception(e: Exception, logger: Optional[logging.Logger] = None, context: str = "") -> None:
    """
    Log an exception with traceback

    Args:
        e: Exception to log
        logger: Logger to use (defaults to root logger)
        context: What was running when the exception occurred
    """
    if logger is None:
        logger = logging.getLogger()

    prefix = f"{context} failed" if context else "Exception"
    logger.error(f"{prefix}: {type(e).__name__}: {str(e)}", exc_info=True)


def log_system_info(n_jobs: Optional[int] = None) -> Dict[str, Any]:
    """
    Log the platform, library versions and tree-learning parallelism

    Args:
        n_jobs: Configured number of concurrent trees (None = derived from cores)

    Returns:
        Dictionary with system information
    """
    logger = logging.getLogger(__name__)

    memory = psutil.virtual_memory()
    system_info = {
        'platform': platform.platform(),
        'python_version': platform.python_version(),
        'numpy_version': np.__version__,
        'pandas_version': pd.__version__,
        'scipy_version': scipy.__version__,
        'sklearn_version': sklearn.__version__,
        'cpu_count': psutil.cpu_count(),
        'max_concurrent_trees': get_max_concurrent_trees(n_jobs),
        'memory_total': f"{memory.total / (1024**3):.2f} GB",
        'memory_available': f"{memory.available / (1024**3):.2f} GB"
    }

    logger.info("System information:")
    for key, value in system_info.items():
        logger.info(f"  {key}: {value}")

    return system_info


class LogCapture:
    """Context manager to capture logs during a specific operation"""

    def __init__(self, logger_name: Optional[str] = None, level: int = logging.INFO):
        """
        Initialize log capture

        Args:
            logger_name: Name of the logger to capture (None for root)
            level: Minimum log level to capture
        """
        self.logger_name = logger_name
        self.level = level
        self.logger = logging.getLogger(logger_name)
        self.log_records = []
        self.handler = None
        self._previous_level = None

    def __enter__(self):
        self.handler = _MemoryHandler(self.log_records)
        self.handler.setLevel(self.level)
        self.handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))

        self._previous_level = self.logger.level
        if self.logger.getEffectiveLevel() > self.level:
            self.logger.setLevel(self.level)
        self.logger.addHandler(self.handler)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.handler:
            self.logger.removeHandler(self.handler)
            self.logger.setLevel(self._previous_level)

    def get_log_messages(self) -> list:
        """Captured records formatted as 'LEVEL - message'"""
        if not self.handler:
            return []
        return [self.handler.format(record) for record in self.log_records]


class _MemoryHandler(logging.Handler):
    """Handler storing log records in a list"""

    def __init__(self, records_list):
        super().__init__()
        self.records_list = records_list

    def emit(self, record):
        self.records_list.append(record)
