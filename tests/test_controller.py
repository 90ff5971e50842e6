"""Unit tests for ImageJController with a mocked view."""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from PIL import Image

from fakes import FakeRunner, qt_app, wait_until
from ijlauncher.controllers.imagej_controller import ImageJController
from ijlauncher.models.imagej_configuration import ImageJConfiguration, MAX_STACK_MEMORY
from ijlauncher.models.layer_config import LayersMode
from ijlauncher.models.task_list_model import TaskListModel
from ijlauncher.services.config_service import ConfigurationService, YamlKeyValueStore
from ijlauncher.tasks import HolesDetectionTask, MapCreatorTask, TaskState


def setUpModule():
    qt_app()


class TestImageJController(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.imagej = self.temp_dir / "ImageJ"
        self.imagej.mkdir()
        (self.imagej / "ij.jar").write_bytes(b"")
        self.output = self.temp_dir / "out"
        self.output.mkdir()
        self.source = self.temp_dir / "slide.tif"
        Image.new("L", (64, 32)).save(self.source)

        self.runners = []
        self.view = mock.Mock()
        self.view.choose_source.return_value = str(self.source)
        self.view.request_parameters.return_value = {'output_folder': str(self.output)}
        self.view.show_not_installed.return_value = None

        self.config_service = ConfigurationService(YamlKeyValueStore(self.temp_dir / "settings.yaml"))
        self.task_list = TaskListModel()
        self.logs = []
        self.controller = ImageJController(
            configuration=ImageJConfiguration(path=str(self.imagej), memory=512),
            config_service=self.config_service,
            task_list=self.task_list,
            view=self.view,
            runner_factory=self.make_runner,
        )
        self.controller.set_log_callback(lambda level, message: self.logs.append((level, message)))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_runner(self, configuration):
        runner = FakeRunner(configuration)
        self.runners.append(runner)
        return runner

    def test_holes_detection_runs_task(self):
        task = self.controller.holes_detection(LayersMode.SINGLE_IMAGE)

        self.assertIsInstance(task, HolesDetectionTask)
        self.assertEqual(task.state, TaskState.RUNNING)
        self.assertEqual(self.task_list.tasks(), [task])
        self.view.choose_source.assert_called_once_with("Holes detection options", folder=False, image_list=False)

        self.runners[-1].last_handle.finish(0)
        self.assertTrue(wait_until(lambda: task.is_finished))

        self.view.notify.assert_called_with("ImageJ Holes Detection (slide.tif) completed")
        self.assertTrue((self.output / "holes_pixels" / "holes_slide.tif.json").is_file())

    def test_folder_mode_asks_for_folder(self):
        self.view.choose_source.return_value = str(self.temp_dir)

        self.controller.object_detection(LayersMode.FOLDER)

        self.view.choose_source.assert_called_once_with("Object detection options", folder=True, image_list=False)

    def test_missing_output_folder_is_shown_and_nothing_spawns(self):
        self.view.request_parameters.return_value = {'output_folder': ''}

        task = self.controller.crop_image()

        self.assertIsNone(task)
        self.view.show_error.assert_called_once()
        self.assertIn("output folder", self.view.show_error.call_args[0][1])
        self.assertEqual(self.runners[-1].handles, [])
        self.assertEqual(self.task_list.tasks(), [])

    def test_cancelled_dialogs_do_nothing(self):
        self.view.choose_source.return_value = None
        self.assertIsNone(self.controller.convert_image())

        self.view.choose_source.return_value = str(self.source)
        self.view.request_parameters.return_value = None
        self.assertIsNone(self.controller.convert_image())

        self.assertEqual(self.task_list.tasks(), [])

    def test_not_installed_blocks_jobs(self):
        self.controller.configure_imagej(path=str(self.temp_dir / "elsewhere"))

        task = self.controller.image_info()

        self.assertIsNone(task)
        self.view.show_not_installed.assert_called_once()
        self.view.choose_source.assert_not_called()

    def test_not_installed_can_open_configuration(self):
        self.controller.configure_imagej(path=str(self.temp_dir / "elsewhere"))
        self.view.show_not_installed.return_value = "configure"
        self.view.request_configuration.return_value = {
            'path': str(self.imagej), 'memory': 256, 'stack_memory': 32,
        }

        self.controller.launch_imagej()

        self.assertEqual(self.controller.configuration.path, str(self.imagej))
        self.assertEqual(self.controller.configuration.stack_memory, 32)

    def test_configure_clamps_and_persists(self):
        changed = []
        self.controller.configuration_changed.connect(changed.append)

        configuration = self.controller.configure_imagej(memory=1, stack_memory=99999)

        self.assertEqual(configuration.stack_memory, MAX_STACK_MEMORY)
        self.assertEqual(self.config_service.load(), configuration)
        self.assertEqual(changed, [configuration])

    def test_running_task_keeps_its_configuration(self):
        task = self.controller.holes_detection()
        self.controller.configure_imagej(stack_memory=16)

        self.assertEqual(self.runners[0].configuration.stack_memory, MAX_STACK_MEMORY)
        self.assertEqual(task.state, TaskState.RUNNING)

    def test_map_creator_defaults_from_source(self):
        self.view.request_parameters.return_value = {'output_folder': str(self.output), 'map_name': 'slide'}

        task = self.controller.create_map(is_map=True, is_folder=False)

        self.assertIsInstance(task, MapCreatorTask)
        fields = self.view.request_parameters.call_args[0][1]
        map_name = next(field for field in fields if field['name'] == 'map_name')
        self.assertEqual(map_name['default'], 'slide')
        self.assertFalse(any(field.get('group') == 'stack' for field in fields))

    def test_map_action_receives_artifact(self):
        opened = []
        self.controller.map_action = opened.append
        self.view.request_parameters.return_value = {'output_folder': str(self.output), 'map_name': 'atlas'}

        task = self.controller.create_map(is_map=True)
        self.runners[-1].last_handle.finish(0)
        task.custom_action.trigger()

        self.assertEqual(opened, [str(self.output / "atlas" / "atlas.json")])

    def test_failure_and_cancel_notifications(self):
        failing = self.controller.crop_image()
        self.runners[-1].last_handle.finish(1)
        self.view.notify.assert_called_with("ImageJ Image Cropping (slide.tif) failed: Problems with JVM...")

        running = self.controller.crop_image()
        self.assertTrue(self.controller.cancel_task(running))
        self.runners[-1].last_handle.finish(143)
        self.view.notify.assert_called_with("ImageJ Image Cropping (slide.tif) cancelled")
        self.assertEqual(failing.state, TaskState.FAILED)

    def test_remove_running_task_cancels_it(self):
        task = self.controller.convert_image()

        self.assertTrue(self.controller.remove_task(task))

        self.assertEqual(task.state, TaskState.CANCELLING)
        self.assertEqual(self.runners[-1].last_handle.terminate_calls, 1)
        self.assertEqual(self.task_list.tasks(), [])

    def test_image_info_details_are_shown(self):
        task = self.controller.image_info()
        handle = self.runners[-1].last_handle

        handle.output("Width: 64\nHeight: 32\n")
        handle.finish(0)

        self.view.show_task_details.assert_called_once_with(task.display_name(), ["Width: 64", "Height: 32"])

    def test_launch_imagej(self):
        self.assertTrue(self.controller.launch_imagej())
        self.assertEqual(self.runners[-1].interactive_launches, 1)

    def test_failed_launch_reports_environment_problems(self):
        with mock.patch.object(FakeRunner, "launch_interactive", return_value=False):
            self.assertFalse(self.controller.launch_imagej())

        title, message = self.view.show_error.call_args[0]
        self.assertEqual(title, "Launch ImageJ")
        self.assertIn("Macros folder not found", message)

    def test_install_plugins_without_repository(self):
        self.assertFalse(self.controller.install_plugins())
        self.view.show_error.assert_called_once_with("Install plugins", "No plugin repository configured")

    def test_install_plugins_starts_worker(self):
        worker = mock.Mock()
        worker_factory = mock.Mock(return_value=worker)
        controller = ImageJController(
            configuration=ImageJConfiguration(path=str(self.imagej), memory=512,
                                              plugin_repository="https://example.org/jars"),
            config_service=self.config_service,
            task_list=self.task_list,
            view=self.view,
            runner_factory=self.make_runner,
            install_worker_factory=worker_factory,
        )

        self.assertTrue(controller.install_plugins())

        worker_factory.assert_called_once_with(str(self.imagej), "https://example.org/jars")
        worker.start.assert_called_once()
        worker.isRunning.return_value = True
        self.assertFalse(controller.install_plugins())


if __name__ == '__main__':
    unittest.main()
