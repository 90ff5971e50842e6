"""
Background worker thread for the post-processing of a finished macro.

Building a layer configuration scans folders, reads image headers and writes
JSON, so it runs in a QThread; results are queued back to the GUI thread.
"""

import logging
from typing import Any, Callable

from PyQt6.QtCore import QThread, pyqtSignal

logger = logging.getLogger(__name__)


class PostProcessWorker(QThread):
    """
    Signals:
        result_signal: (value returned by the job)
        error_signal: (exception raised by the job)
    """

    result_signal = pyqtSignal(object)
    error_signal = pyqtSignal(object)

    # A running thread must outlive the task that started it
    _active = set()

    def __init__(self, job: Callable[[], Any]):
        super().__init__()
        self._job = job
        self.finished.connect(self._release)

    def start(self, *args):
        PostProcessWorker._active.add(self)
        super().start(*args)

    def _release(self):
        PostProcessWorker._active.discard(self)

    def run(self):
        try:
            value = self._job()
        except Exception as e:
            logger.debug("Post-processing failed: %s", e, exc_info=True)
            self.error_signal.emit(e)
            return
        self.result_signal.emit(value)
