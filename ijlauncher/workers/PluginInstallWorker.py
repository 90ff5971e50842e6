"""
Background worker thread for plugin installation.

Downloads block on the network, so they run in a QThread and report back
through signals (queued to the GUI thread by Qt).
"""

from PyQt6.QtCore import QThread, pyqtSignal

from ijlauncher.errors import InstallError
from ijlauncher.services.install.plugin_installer import install_plugins


class PluginInstallWorker(QThread):
    """
    Signals:
        progress_signal: (jar_index, total_jars)
        log_signal: (level, message)
        finished: (downloaded_count, error_count)
        error_signal: (error_message)
    """

    progress_signal = pyqtSignal(int, int)
    log_signal = pyqtSignal(str, str)
    finished = pyqtSignal(int, int)
    error_signal = pyqtSignal(str)

    def __init__(self, install_path: str, repository: str, installer=install_plugins):
        super().__init__()
        self.install_path = install_path
        self.repository = repository
        self._installer = installer

    def _on_progress(self, index: int, total: int, name: str):
        self.progress_signal.emit(index, total)
        if name:
            self.log_signal.emit('info', f"Installing {name} ({index + 1}/{total})")

    def run(self):
        try:
            downloaded = self._installer(self.install_path, self.repository, self._on_progress)
        except InstallError as e:
            self.error_signal.emit(str(e))
            self.log_signal.emit('error', str(e))
            self.finished.emit(0, 1)
            return

        self.log_signal.emit('success', f"Plugins installed ({len(downloaded)} downloaded)")
        self.finished.emit(len(downloaded), 0)
