#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Execution Monitor Module for Tree Ensembles
Cooperative cancellation and progress reporting for long-running learners
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, Optional[str]], None]


class CanceledExecutionError(Exception):
    """Raised when a cancellation request is observed"""

    def __init__(self, message: str = "Execution canceled"):
        super().__init__(message)


class ExecutionMonitor:
    """
    Progress and cancellation handle passed to learners.

    Sub-monitors created with create_sub_progress share the cancellation
    state of their ancestors and report a weighted share of their progress
    into the parent.
    """

    def __init__(self, progress_callback: Optional[ProgressCallback] = None,
                 parent: Optional['ExecutionMonitor'] = None,
                 weight: float = 1.0):
        """
        Initialize the monitor

        Args:
            progress_callback: Called with (fraction, message) on every update
            parent: Monitor receiving this monitor's weighted progress
            weight: Share of the parent's progress covered by this monitor
        """
        self.progress_callback = progress_callback
        self.parent = parent
        self.weight = weight
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._progress = 0.0
        self._message = None

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def message(self) -> Optional[str]:
        return self._message

    def cancel(self) -> None:
        """Request cancellation of this monitor and all its sub-monitors"""
        logger.info("Cancellation requested")
        self._cancel_event.set()

    def is_canceled(self) -> bool:
        monitor = self
        while monitor is not None:
            if monitor._cancel_event.is_set():
                return True
            monitor = monitor.parent
        return False

    def check_canceled(self) -> None:
        """
        Raise if cancellation was requested

        Raises:
            CanceledExecutionError: If this monitor or an ancestor was canceled
        """
        if self.is_canceled():
            raise CanceledExecutionError()

    def set_progress(self, fraction: float, message: Optional[str] = None) -> None:
        """
        Set the progress of this monitor

        Args:
            fraction: Progress in [0, 1], clamped
            message: Optional status message
        """
        fraction = min(1.0, max(0.0, float(fraction)))
        with self._lock:
            delta = fraction - self._progress
            self._progress = fraction
            if message is not None:
                self._message = message
        self._notify(fraction, message)
        if self.parent is not None:
            self.parent._add_progress(delta * self.weight, message)

    def create_sub_progress(self, weight: float) -> 'ExecutionMonitor':
        """
        Create a monitor covering a slice of this monitor's progress

        Args:
            weight: Fraction of this monitor's progress the child covers

        Returns:
            Child monitor
        """
        return ExecutionMonitor(parent=self, weight=weight)

    def _add_progress(self, delta: float, message: Optional[str]) -> None:
        with self._lock:
            before = self._progress
            self._progress = min(1.0, max(0.0, self._progress + delta))
            applied = self._progress - before
            current = self._progress
            if message is not None:
                self._message = message
        self._notify(current, message)
        if self.parent is not None:
            self.parent._add_progress(applied * self.weight, message)

    def _notify(self, fraction: float, message: Optional[str]) -> None:
        if self.progress_callback is not None:
            self.progress_callback(fraction, message)
