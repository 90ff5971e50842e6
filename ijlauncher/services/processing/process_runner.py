"""
Spawning of ImageJ batch processes.

:class:`ProcessRunner` turns a macro name and an argument string into the
ImageJ command line and wraps the resulting ``QProcess`` in a
:class:`ProcessHandle`. Output is delivered through Qt signals on the event
loop, so no thread is needed to follow a running macro.
"""

import codecs
import logging
from typing import List, Optional, Tuple

from PyQt6.QtCore import QObject, QProcess, pyqtSignal

from ijlauncher.models.imagej_configuration import ImageJConfiguration
from ijlauncher.services.processing.tool_config import ImageJInstallation

logger = logging.getLogger(__name__)


class ProcessHandle(QObject):
    """
    Owner of one external process.

    Signals:
        stdout_received: Decoded chunk of standard output
        stderr_received: Decoded chunk of standard error
        exited: Process ended (exit_code, crashed); always emitted after the
            last output chunk
        failed_to_start: The process could not be spawned (error message)
        stream_error: Reading from or writing to the process failed (error message)
    """

    stdout_received = pyqtSignal(str)
    stderr_received = pyqtSignal(str)
    exited = pyqtSignal(int, bool)
    failed_to_start = pyqtSignal(str)
    stream_error = pyqtSignal(str)

    def __init__(self, process: QProcess, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._process = process
        self._stdout_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        process.readyReadStandardOutput.connect(self._read_stdout)
        process.readyReadStandardError.connect(self._read_stderr)
        process.finished.connect(self._on_finished)
        process.errorOccurred.connect(self._on_error)

    @property
    def process(self) -> QProcess:
        return self._process

    def start(self):
        """Start the prepared process; failures arrive through ``failed_to_start``."""
        logger.debug("Starting %s %s", self._process.program(), " ".join(self._process.arguments()))
        self._process.start()

    def is_running(self) -> bool:
        return self._process.state() != QProcess.ProcessState.NotRunning

    def terminate(self):
        """Ask the process to stop. Does nothing if it is not running."""
        if self.is_running():
            self._process.terminate()

    def kill(self):
        """Kill the process. Does nothing if it is not running."""
        if self.is_running():
            self._process.kill()

    # Process event handlers

    def _read_stdout(self):
        data = bytes(self._process.readAllStandardOutput())
        if data:
            text = self._stdout_decoder.decode(data)
            if text:
                self.stdout_received.emit(text)

    def _read_stderr(self):
        data = bytes(self._process.readAllStandardError())
        if data:
            text = self._stderr_decoder.decode(data)
            if text:
                self.stderr_received.emit(text)

    def _on_finished(self, exit_code: int, exit_status: QProcess.ExitStatus):
        # Flush whatever is still buffered so that output always precedes exit
        self._read_stdout()
        self._read_stderr()
        tail = self._stdout_decoder.decode(b"", final=True)
        if tail:
            self.stdout_received.emit(tail)
        tail = self._stderr_decoder.decode(b"", final=True)
        if tail:
            self.stderr_received.emit(tail)

        crashed = exit_status == QProcess.ExitStatus.CrashExit
        self.exited.emit(int(exit_code), crashed)

    def _on_error(self, error: QProcess.ProcessError):
        message = self._process.errorString()
        if error == QProcess.ProcessError.FailedToStart:
            self.failed_to_start.emit(message)
        elif error in (QProcess.ProcessError.ReadError, QProcess.ProcessError.WriteError):
            self.stream_error.emit(message)
        else:
            # Crashed is followed by finished(); Timedout only concerns waitFor* calls
            logger.debug("Process error %s: %s", error, message)


class ProcessRunner:
    """
    Builds and spawns ImageJ command lines.

    The configuration is captured when the runner is created; configuration
    changes made later only affect runners created afterwards.
    """

    def __init__(self, configuration: ImageJConfiguration):
        self.configuration = configuration
        self.installation = ImageJInstallation(configuration)

    def _java_command(self) -> Tuple[str, List[str]]:
        program = self.installation.java_executable() or self.configuration.java_binary
        arguments = [
            f"-Xmx{self.configuration.memory}m",
            f"-Xss{self.configuration.stack_memory}m",
            "-jar",
            self.configuration.runtime_jar,
        ]
        return program, arguments

    def build_command(self, macro: str, arg_string: str) -> Tuple[str, List[str]]:
        """
        Build the command line of a batch macro run.

        Args:
            macro: Macro name (file name without ``.ijm``)
            arg_string: Macro arguments, already encoded

        Returns:
            Tuple of (program, arguments)
        """
        program, arguments = self._java_command()
        arguments += ["-batchpath", str(self.installation.macro_path(macro)), arg_string]
        return program, arguments

    def prepare(self, macro: str, arg_string: str, parent: Optional[QObject] = None) -> ProcessHandle:
        """
        Create the process of a macro run without starting it.

        Callers connect to the handle's signals and then call ``start()``.
        """
        program, arguments = self.build_command(macro, arg_string)
        process = QProcess(parent)
        process.setWorkingDirectory(str(self.installation.root))
        process.setProgram(program)
        process.setArguments(arguments)
        handle = ProcessHandle(process, parent)
        process.setParent(handle)
        return handle

    def launch_interactive(self) -> bool:
        """
        Start the ImageJ user interface, detached from this application.

        Returns:
            True if the process was started
        """
        program, arguments = self._java_command()
        result = QProcess.startDetached(program, arguments, str(self.installation.root))
        started = result[0] if isinstance(result, tuple) else bool(result)
        if started:
            logger.info("ImageJ launched from %s", self.installation.root)
        else:
            logger.error("Could not launch ImageJ with %s", program)
        return started
