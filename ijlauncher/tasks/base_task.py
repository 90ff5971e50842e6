"""
Base class for ImageJ batch-macro tasks.

A task owns at most one external process. Its lifecycle is::

    IDLE -> RUNNING -> SUCCEEDED | FAILED | CANCELLING -> CANCELLED
                    -> CANCELLED

Exit code 0 means success, 1 means failure and anything else (including a
crash or a signal) is treated as a cancellation. After a successful exit the
task stays RUNNING while its post-processing job (if any) runs on a
:class:`PostProcessWorker` thread; it cannot be cancelled in that window.

Runtime problems never raise out of the task: they end the run and are
reported through the signals and the :class:`TaskResult` given to
``finished``. Post-processing errors only become warnings. Only the
synchronous checks done by :meth:`Task.run` before spawning (missing output
folder, missing source, invalid parameters) raise.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ijlauncher.errors import (
    AmbiguousExit,
    ImageJError,
    JobValidationError,
    MissingOutputFolder,
    ProcessExitFailure,
    ProcessStreamError,
    SourceNotFound,
    SpawnError,
    TaskStateError,
)
from ijlauncher.models.job_parameters import JobParameters
from ijlauncher.services.processing.progress_parser import parse_progress
from ijlauncher.workers.PostProcessWorker import PostProcessWorker

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED, TaskState.CANCELLED)


class TaskOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TaskResult:
    """
    Final outcome of a task run.

    Attributes:
        outcome: How the run ended
        artifact_path: JSON file produced on success, if any
        reason: Human readable failure or cancellation reason
        exit_code: Exit code of the process, if it exited
        error: Error behind a failure or an ambiguous exit
        warnings: Problems of post-processing that did not change the outcome
        details: Extra lines reported by the macro (image information)
    """

    outcome: TaskOutcome
    artifact_path: Optional[str] = None
    reason: str = ""
    exit_code: Optional[int] = None
    error: Optional[ImageJError] = None
    warnings: Tuple[str, ...] = ()
    details: Tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.outcome == TaskOutcome.SUCCEEDED


@dataclass(frozen=True)
class CustomAction:
    """Follow-up action offered to the user once a task has succeeded."""
    caption: str
    callback: Callable[[], Any] = field(repr=False)

    def trigger(self):
        return self.callback()


# Receives (task, artifact_path) when the user triggers a custom action
CustomActionHandler = Callable[["Task", Optional[str]], Any]


class Task(QObject):
    """
    One run of an ImageJ batch macro.

    Subclasses set ``NAME`` and ``MACRO`` and implement
    :meth:`encode_arguments`; those producing results override
    :meth:`_on_process_success` (quick, GUI thread) or
    :meth:`_post_process_job` and :meth:`_on_post_process_result` (blocking
    I/O, worker thread).

    Signals:
        progress: Percentage in [0, 100], non-decreasing during a run
        succeeded: Emitted on success with the artifact path (or None)
        failed: Emitted on failure with the reason
        cancelled: Emitted when the run was cancelled
        warning: Secondary problem that does not change the outcome
        state_changed: New state value
        log_message: (level, message) for the log panel
        finished: Emitted last, exactly once, with the TaskResult
    """

    NAME = "ImageJ Task"
    MACRO = ""
    CUSTOM_ACTION_CAPTION: Optional[str] = None

    progress = pyqtSignal(float)
    succeeded = pyqtSignal(object)
    failed = pyqtSignal(str)
    cancelled = pyqtSignal()
    warning = pyqtSignal(str)
    state_changed = pyqtSignal(str)
    log_message = pyqtSignal(str, str)
    finished = pyqtSignal(object)

    def __init__(self, details: str, runner, parent: Optional[QObject] = None):
        """
        Args:
            details: Free-text label shown with the task name (e.g. source file)
            runner: ProcessRunner used to spawn the macro
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.name = self.NAME
        self.details = details
        self._runner = runner
        self._state = TaskState.IDLE
        self._progress = 0.0
        self._handle = None
        self._kill_timer: Optional[QTimer] = None
        self._post_worker: Optional[PostProcessWorker] = None
        self._post_processing = False
        self._exit_code: Optional[int] = None
        self._warnings: List[str] = []
        self._on_complete: Optional[Callable[[TaskResult], Any]] = None
        self._custom_action_handler: Optional[CustomActionHandler] = None

        self.source_path: Optional[str] = None
        self.parameters: Optional[JobParameters] = None
        self.result: Optional[TaskResult] = None
        self.custom_action: Optional[CustomAction] = None

    # Subclass hooks

    def encode_arguments(self, source_path: str, parameters: JobParameters) -> str:
        """Build the ``#``-separated argument string of the macro."""
        raise NotImplementedError("Subclass must implement encode_arguments()")

    def _check_source(self, source_path: str):
        if not source_path or not Path(source_path).exists():
            raise SourceNotFound(source_path)

    def _on_process_success(self) -> Optional[str]:
        """
        Post-process a successful run on the GUI thread.

        Returns:
            Path of the produced artifact, or None

        Any exception raised here is reported as a warning.
        """
        return None

    def _post_process_job(self) -> Optional[Callable[[], Any]]:
        """
        Blocking work to run on a worker thread after a successful exit.

        The job must not touch Qt objects; its return value is handed to
        :meth:`_on_post_process_result`. None means there is nothing to run.
        """
        return None

    def _on_post_process_result(self, value: Any) -> Optional[str]:
        """Turn the value of the post-processing job into the artifact path."""
        return None

    def _handle_output(self, text: str):
        """Called with every stdout chunk after progress parsing."""

    def _result_details(self) -> Tuple[str, ...]:
        return ()

    # Public API

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def progress_percent(self) -> float:
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._state in (TaskState.RUNNING, TaskState.CANCELLING)

    @property
    def is_finished(self) -> bool:
        return self._state.is_terminal

    @property
    def process_handle(self):
        return self._handle

    @property
    def result_artifact(self) -> Optional[str]:
        return self.result.artifact_path if self.result else None

    def display_name(self) -> str:
        return f"{self.name} ({self.details})" if self.details else self.name

    def set_custom_action_handler(self, handler: Optional[CustomActionHandler]):
        """Set what the custom action does once the task has succeeded."""
        self._custom_action_handler = handler

    def run(self, source_path: str, parameters: Optional[JobParameters],
            on_complete: Optional[Callable[[TaskResult], Any]] = None):
        """
        Start the macro on ``source_path``.

        Args:
            source_path: Image, folder or image list to process
            parameters: Options collected from the options dialog
            on_complete: Called with the TaskResult when the task ends

        Raises:
            TaskStateError: If the task has already been run
            MissingOutputFolder: If no output folder was chosen
            SourceNotFound: If ``source_path`` does not exist
            JobValidationError: If the parameters are invalid
        """
        if self._state != TaskState.IDLE:
            raise TaskStateError(f"{self.display_name()} has already been started")

        if parameters is None or not parameters.has_output_folder():
            raise MissingOutputFolder(self.name)

        source_path = str(source_path)
        self._check_source(source_path)

        is_valid, error_msg = parameters.validate()
        if not is_valid:
            raise JobValidationError(error_msg)

        arg_string = self.encode_arguments(source_path, parameters)

        self.source_path = source_path
        self.parameters = parameters
        self._on_complete = on_complete
        self._progress = 0.0
        self._warnings = []
        self._set_state(TaskState.RUNNING)
        self._log("info", f"{self.display_name()} started")

        try:
            handle = self._runner.prepare(self.MACRO, arg_string, self)
        except (OSError, ValueError) as e:
            self._finish_failed(SpawnError(f"Cannot prepare {self.MACRO}: {e}"))
            return

        self._handle = handle
        handle.stdout_received.connect(self._on_stdout)
        handle.stderr_received.connect(self._on_stderr)
        handle.exited.connect(self._on_process_exited)
        handle.failed_to_start.connect(self._on_failed_to_start)
        handle.stream_error.connect(self._on_stream_error)
        handle.start()

    def cancel(self) -> bool:
        """
        Cancel a running task.

        The process is asked to terminate; if it is still alive after the
        configured grace period it is killed. The task stays CANCELLING until
        the process has exited.

        Returns:
            True if cancellation was started, False if the task was not
            running or its process has already exited
        """
        if self._state != TaskState.RUNNING or self._post_processing:
            return False

        self._set_state(TaskState.CANCELLING)
        self._log("info", f"Cancelling {self.display_name()}...")

        handle = self._handle
        if handle is None or not handle.is_running():
            self._finish_cancelled("Cancelled by user")
            return True

        handle.terminate()

        timeout = getattr(getattr(self._runner, "configuration", None), "kill_timeout_ms", 0)
        if timeout and timeout > 0:
            self._kill_timer = QTimer(self)
            self._kill_timer.setSingleShot(True)
            self._kill_timer.timeout.connect(self._force_kill)
            self._kill_timer.start(int(timeout))
        return True

    # Process event handlers

    def _on_stdout(self, text: str):
        for line in text.splitlines():
            if line.strip():
                logger.debug("[%s] %s", self.MACRO, line)

        if self._state == TaskState.RUNNING:
            percent = parse_progress(text)
            if percent is not None and percent >= self._progress:
                self._progress = percent
                self.progress.emit(percent)

        self._handle_output(text)

    def _on_stderr(self, text: str):
        message = text.strip()
        if message:
            logger.warning("[%s] stderr: %s", self.MACRO, message)
            self.log_message.emit("warning", f"stderr: {message}")

    def _on_process_exited(self, exit_code: int, crashed: bool):
        if self._state == TaskState.CANCELLING:
            self._finish_cancelled("Cancelled by user", exit_code=exit_code)
            return

        if self._state != TaskState.RUNNING:
            return

        if not crashed and exit_code == EXIT_SUCCESS:
            self._start_post_processing(exit_code)
        elif not crashed and exit_code == EXIT_FAILURE:
            self._finish_failed(ProcessExitFailure(exit_code), exit_code=exit_code)
        else:
            error = AmbiguousExit(exit_code, crashed)
            logger.warning("%s: %s", self.display_name(), error)
            self._finish_cancelled(str(error), exit_code=exit_code, error=error)

    def _on_failed_to_start(self, message: str):
        if self.is_running:
            self._finish_failed(SpawnError(f"{self.NAME} exec error: {message}"))

    def _on_stream_error(self, message: str):
        if self.is_running:
            if self._handle is not None:
                self._handle.kill()
            self._finish_failed(ProcessStreamError(f"Lost contact with {self.MACRO}: {message}"))

    def _force_kill(self):
        if self._state == TaskState.CANCELLING and self._handle is not None:
            self._log("warning", "Graceful termination failed, forcing stop...")
            self._handle.kill()

    # Post-processing

    def _start_post_processing(self, exit_code: int):
        self._release_handle()
        self._exit_code = exit_code
        self._post_processing = True

        artifact, job = None, None
        try:
            artifact = self._on_process_success()
            job = self._post_process_job()
        except Exception as e:
            self._add_warning(e)

        if job is None:
            self._finish_succeeded(artifact)
            return

        worker = PostProcessWorker(job)
        worker.result_signal.connect(self._on_post_process_done)
        worker.error_signal.connect(self._on_post_process_error)
        self._post_worker = worker
        worker.start()

    def _on_post_process_done(self, value: Any):
        self._post_worker = None
        artifact = None
        try:
            artifact = self._on_post_process_result(value)
        except Exception as e:
            self._add_warning(e)
        self._finish_succeeded(artifact)

    def _on_post_process_error(self, error: Exception):
        self._post_worker = None
        self._add_warning(error)
        self._finish_succeeded(None)

    def _add_warning(self, error: BaseException):
        message = str(error) or type(error).__name__
        if isinstance(error, (ImageJError, OSError)):
            logger.warning("%s: %s", self.display_name(), message)
        else:
            logger.warning("%s: unexpected post-processing error", self.display_name(), exc_info=error)
        self._warnings.append(message)
        self.warning.emit(message)

    # Terminal transitions

    def _finish_succeeded(self, artifact: Optional[str]):
        self._post_processing = False
        if not self._set_state(TaskState.SUCCEEDED):
            return

        self._attach_custom_action(artifact)
        self._log("success", f"{self.display_name()} completed")
        self.succeeded.emit(artifact)
        self._complete(TaskResult(
            outcome=TaskOutcome.SUCCEEDED,
            artifact_path=artifact,
            exit_code=self._exit_code,
            warnings=tuple(self._warnings),
            details=self._result_details(),
        ))

    def _finish_failed(self, error: ImageJError, exit_code: Optional[int] = None):
        self._release_handle()
        if not self._set_state(TaskState.FAILED):
            return

        reason = str(error)
        self._log("error", f"{self.display_name()} failed: {reason}")
        self.failed.emit(reason)
        self._complete(TaskResult(
            outcome=TaskOutcome.FAILED,
            reason=reason,
            exit_code=exit_code,
            error=error,
        ))

    def _finish_cancelled(self, reason: str, exit_code: Optional[int] = None,
                          error: Optional[ImageJError] = None):
        self._release_handle()
        if not self._set_state(TaskState.CANCELLED):
            return

        self._log("warning", f"{self.display_name()} cancelled")
        self.cancelled.emit()
        self._complete(TaskResult(
            outcome=TaskOutcome.CANCELLED,
            reason=reason,
            exit_code=exit_code,
            error=error,
        ))

    def _complete(self, result: TaskResult):
        self.result = result
        self.finished.emit(result)
        if self._on_complete is not None:
            callback = self._on_complete
            self._on_complete = None
            callback(result)

    # Helpers

    def _set_state(self, state: TaskState) -> bool:
        if self._state.is_terminal:
            logger.debug("%s: ignoring %s after %s", self.display_name(), state.value, self._state.value)
            return False
        self._state = state
        self.state_changed.emit(state.value)
        return True

    def _release_handle(self):
        if self._kill_timer is not None:
            self._kill_timer.stop()
            self._kill_timer = None

        handle = self._handle
        self._handle = None
        if handle is None:
            return

        for signal, slot in (
            (handle.stdout_received, self._on_stdout),
            (handle.stderr_received, self._on_stderr),
            (handle.exited, self._on_process_exited),
            (handle.failed_to_start, self._on_failed_to_start),
            (handle.stream_error, self._on_stream_error),
        ):
            try:
                signal.disconnect(slot)
            except TypeError:
                pass
        if hasattr(handle, "deleteLater") and not handle.is_running():
            handle.deleteLater()

    def _attach_custom_action(self, artifact: Optional[str]):
        if self.CUSTOM_ACTION_CAPTION is None:
            return

        handler = self._custom_action_handler

        def callback():
            if handler is None:
                self._log("info", f"No handler for '{self.CUSTOM_ACTION_CAPTION}' ({artifact})")
                return None
            return handler(self, artifact)

        self.custom_action = CustomAction(self.CUSTOM_ACTION_CAPTION, callback)

    def _log(self, level: str, message: str):
        log_level = {"success": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}
        logger.log(log_level.get(level, logging.INFO), message)
        self.log_message.emit(level, message)
