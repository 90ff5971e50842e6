"""Unit tests for plugin jar installation."""

import shutil
import tempfile
import unittest
import urllib.error
from pathlib import Path
from unittest import mock

from fakes import qt_app
from ijlauncher.errors import InstallError
from ijlauncher.services.install.plugin_installer import LIBRARIES, PLUGINS, install_plugins, plan_downloads
from ijlauncher.workers.PluginInstallWorker import PluginInstallWorker


def setUpModule():
    qt_app()


def fake_urlretrieve(url, filename, reporthook=None):
    Path(filename).write_text(url)
    return filename, None


class TestPluginInstaller(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_plan_places_library_in_lib(self):
        plan = dict(plan_downloads(self.temp_dir))

        self.assertEqual(plan[PLUGINS[0]], self.temp_dir / "plugins" / PLUGINS[0])
        self.assertEqual(plan[LIBRARIES[0]], self.temp_dir / "plugins" / "lib" / LIBRARIES[0])

    @mock.patch('urllib.request.urlretrieve', side_effect=fake_urlretrieve)
    def test_downloads_every_jar(self, urlretrieve):
        progress = []

        downloaded = install_plugins(self.temp_dir, "https://example.org/jars/",
                                     lambda i, total, name: progress.append((i, total, name)))

        self.assertEqual(len(downloaded), len(PLUGINS) + len(LIBRARIES))
        first = self.temp_dir / "plugins" / PLUGINS[0]
        self.assertEqual(first.read_text(), f"https://example.org/jars/{PLUGINS[0]}")
        self.assertEqual(progress[-1], (len(downloaded), len(downloaded), ""))
        self.assertFalse(list(self.temp_dir.rglob("*.part")))

    @mock.patch('urllib.request.urlretrieve', side_effect=fake_urlretrieve)
    def test_existing_jars_are_skipped(self, urlretrieve):
        existing = self.temp_dir / "plugins" / PLUGINS[0]
        existing.parent.mkdir(parents=True)
        existing.write_text("local")

        downloaded = install_plugins(self.temp_dir, "https://example.org/jars")

        self.assertNotIn(existing, downloaded)
        self.assertEqual(existing.read_text(), "local")
        self.assertEqual(urlretrieve.call_count, len(PLUGINS) + len(LIBRARIES) - 1)

    def test_requires_repository(self):
        with self.assertRaises(InstallError):
            install_plugins(self.temp_dir, None)

    @mock.patch('urllib.request.urlretrieve', side_effect=urllib.error.URLError("offline"))
    def test_download_failure(self, urlretrieve):
        with self.assertRaises(InstallError):
            install_plugins(self.temp_dir, "https://example.org/jars")


class TestPluginInstallWorker(unittest.TestCase):

    def run_worker(self, installer):
        worker = PluginInstallWorker("/opt/ImageJ", "https://example.org/jars", installer=installer)
        events = []
        worker.progress_signal.connect(lambda index, total: events.append(("progress", index, total)))
        worker.log_signal.connect(lambda level, message: events.append(("log", level)))
        worker.error_signal.connect(lambda message: events.append(("error", message)))
        worker.finished.connect(lambda downloaded, errors: events.append(("finished", downloaded, errors)))
        worker.run()
        return events

    def test_success(self):
        def installer(path, repository, progress_callback):
            progress_callback(0, 1, "a.jar")
            progress_callback(1, 1, "")
            return [Path(path) / "plugins" / "a.jar"]

        events = self.run_worker(installer)

        self.assertIn(("progress", 0, 1), events)
        self.assertEqual(events[-1], ("finished", 1, 0))

    def test_failure(self):
        def installer(path, repository, progress_callback):
            raise InstallError("offline")

        events = self.run_worker(installer)

        self.assertIn(("error", "offline"), events)
        self.assertEqual(events[-1], ("finished", 0, 1))


if __name__ == '__main__':
    unittest.main()
