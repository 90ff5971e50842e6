"""
Error types raised or reported by ijlauncher.

Validation errors (missing output folder, missing source, not installed) are
raised synchronously before any process is spawned. Runtime errors (spawn,
exit code, stream) never escape a task: they are carried by the task's
``TaskResult`` and announced through its signals.
"""

from typing import Optional


class ImageJError(Exception):
    """Base class for all ijlauncher errors."""


class JobValidationError(ImageJError, ValueError):
    """Job parameters or source were rejected before launch."""


class MissingOutputFolder(JobValidationError):
    """No output folder was chosen for a job that needs one."""

    def __init__(self, task_name: str = ""):
        self.task_name = task_name
        prefix = f"{task_name}: " if task_name else ""
        super().__init__(f"{prefix}You must choose an output folder where results will be saved.")


class SourceNotFound(JobValidationError):
    """The source image, folder or list does not exist."""

    def __init__(self, source_path: str):
        self.source_path = source_path
        super().__init__(f"Source does not exist: {source_path}")


class TaskStateError(ImageJError, RuntimeError):
    """An operation is not allowed in the task's current state."""


class NotInstalled(ImageJError):
    """The configured installation path does not contain ImageJ."""

    def __init__(self, path: Optional[str], missing: str):
        self.path = path
        self.missing = missing
        super().__init__(f"ImageJ is not installed at '{path}': missing {missing}")


class SpawnError(ImageJError):
    """The operating system refused to start the external process."""


class ProcessStreamError(ImageJError):
    """Reading the output of the external process failed."""


class ProcessExitFailure(ImageJError):
    """The external process exited with the failure code (1)."""

    def __init__(self, exit_code: int = 1):
        self.exit_code = exit_code
        super().__init__("Problems with JVM...")


class AmbiguousExit(ImageJError):
    """The external process exited with a code other than 0 or 1."""

    def __init__(self, exit_code: int, crashed: bool = False):
        self.exit_code = exit_code
        self.crashed = crashed
        how = "crashed" if crashed else f"exited with code {exit_code}"
        super().__init__(f"Process {how}; treated as cancelled")


class DimensionProbeError(ImageJError):
    """Image dimensions could not be read for a layer configuration."""


class ArtifactWriteError(ImageJError):
    """The JSON layer configuration could not be written to disk."""


class InstallError(ImageJError):
    """Downloading or installing plugin jars failed."""
