"""
Unit tests for the Task state machine and its subtypes.

Processes are replaced by FakeProcessHandle so every exit path can be
driven deterministically.
"""

import json
import shutil
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from PIL import Image
from PyQt6.QtTest import QTest

from fakes import FakeRunner, qt_app, wait_until, write_png_header
from ijlauncher.errors import (
    AmbiguousExit,
    JobValidationError,
    MissingOutputFolder,
    ProcessExitFailure,
    ProcessStreamError,
    SourceNotFound,
    SpawnError,
    TaskStateError,
)
from ijlauncher.models.imagej_configuration import ImageJConfiguration
from ijlauncher.models.job_parameters import (
    ConvertParameters,
    CropParameters,
    HolesDetectionParameters,
    InfoParameters,
    MapCreatorParameters,
    ObjectDetectionParameters,
)
from ijlauncher.models.layer_config import LayersMode
from ijlauncher.services.io.layer_config_builder import LayerConfigBuilder
from ijlauncher.tasks import (
    ConvertTask,
    CropTask,
    HolesDetectionTask,
    InfoTask,
    MapCreatorTask,
    ObjectDetectionTask,
    TaskOutcome,
    TaskState,
)


def setUpModule():
    qt_app()


class SignalRecorder:
    """Collects every signal a task emits, in order."""

    def __init__(self, task):
        self.events = []
        self.progress = []
        self.results = []
        self.warnings = []
        task.progress.connect(lambda value: (self.progress.append(value), self.events.append('progress')))
        task.succeeded.connect(lambda artifact: self.events.append('succeeded'))
        task.failed.connect(lambda reason: self.events.append('failed'))
        task.cancelled.connect(lambda: self.events.append('cancelled'))
        task.warning.connect(lambda message: (self.warnings.append(message), self.events.append('warning')))
        task.finished.connect(lambda result: (self.results.append(result), self.events.append('finished')))


class GatedBuilder(LayerConfigBuilder):
    """Layer builder that blocks until the test opens the gate."""

    def __init__(self):
        super().__init__(author="tester")
        self.gate = threading.Event()
        self.thread = None

    def build_and_write(self, *args):
        self.thread = threading.current_thread()
        self.gate.wait(5)
        return super().build_and_write(*args)


class TaskTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.output = self.temp_dir / "out"
        self.output.mkdir()
        self.source = self.temp_dir / "slide 1.png"
        Image.new("L", (300, 200)).save(self.source)
        self.runner = FakeRunner(ImageJConfiguration(path=str(self.temp_dir), memory=512, kill_timeout_ms=20))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def start_holes(self, mode=LayersMode.SINGLE_IMAGE, source=None):
        task = HolesDetectionTask("slide 1.png", mode, self.runner)
        recorder = SignalRecorder(task)
        task.run(str(source or self.source), HolesDetectionParameters(output_folder=str(self.output)))
        return task, recorder, self.runner.last_handle

    def finish(self, task, handle, exit_code=0):
        handle.finish(exit_code)
        self.assertTrue(wait_until(lambda: task.is_finished))


class TestTaskExitCodes(TaskTestCase):

    def test_run_spawns_process_and_enters_running(self):
        task, _, handle = self.start_holes()

        self.assertEqual(task.state, TaskState.RUNNING)
        self.assertTrue(handle.started)
        self.assertEqual(handle.macro, "HolesDetector")
        self.assertIs(task.process_handle, handle)

    def test_exit_zero_writes_layer_configuration(self):
        task, recorder, handle = self.start_holes()

        handle.output("10/100\n")
        handle.output("55/100\n")
        self.finish(task, handle)

        expected = self.output / "holes_pixels" / "holes_slide 1.png.json"
        self.assertEqual(task.state, TaskState.SUCCEEDED)
        self.assertEqual(recorder.progress, [10.0, 55.0])
        self.assertTrue(expected.is_file())

        with open(expected, encoding="utf-8") as file:
            config = json.load(file)
        self.assertEqual(config["type"], "pixelsLayer")
        self.assertEqual(config["role"], "holes")
        self.assertEqual(config["tileSize"], 300)
        self.assertEqual(config["size"], 300)
        self.assertEqual(config["pixelsUrlTemplate"], "holes_slide_1.png.txt")

        result = recorder.results[0]
        self.assertEqual(result.outcome, TaskOutcome.SUCCEEDED)
        self.assertEqual(result.artifact_path, str(expected))
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(task.custom_action.caption, "Add layer to a map in workspace")

    def test_exit_one_fails_without_artifact(self):
        task, recorder, handle = self.start_holes()

        handle.finish(1)

        self.assertEqual(task.state, TaskState.FAILED)
        result = recorder.results[0]
        self.assertEqual(result.reason, "Problems with JVM...")
        self.assertIsInstance(result.error, ProcessExitFailure)
        self.assertIsNone(result.artifact_path)
        self.assertFalse((self.output / "holes_pixels").exists())
        self.assertIsNone(task.custom_action)

    def test_other_exit_codes_are_ambiguous_cancellations(self):
        for code, crashed in ((2, False), (130, False), (-1, False), (0, True)):
            with self.subTest(code=code, crashed=crashed):
                task, recorder, handle = self.start_holes()

                handle.finish(code, crashed)

                self.assertEqual(task.state, TaskState.CANCELLED)
                result = recorder.results[0]
                self.assertEqual(result.outcome, TaskOutcome.CANCELLED)
                self.assertIsInstance(result.error, AmbiguousExit)
                self.assertEqual(result.error.crashed, crashed)

    def test_finished_is_emitted_once_and_last(self):
        task, recorder, handle = self.start_holes()

        handle.output("3/4")
        handle.finish(0)
        handle.finish(1)
        self.assertTrue(wait_until(lambda: task.is_finished))

        self.assertEqual(recorder.events.count('finished'), 1)
        self.assertEqual(recorder.events[-1], 'finished')
        self.assertEqual(task.state, TaskState.SUCCEEDED)
        self.assertIsNone(task.process_handle)

    def test_progress_never_decreases(self):
        task, recorder, handle = self.start_holes()

        handle.output("50/100")
        handle.output("20/100")
        handle.output("no progress here")
        handle.output("5/0")
        handle.output("75/100")

        self.assertEqual(recorder.progress, [50.0, 75.0])
        self.assertEqual(task.progress_percent, 75.0)

    def test_probe_failure_is_a_warning(self):
        self.source.write_bytes(b"not an image")

        task, recorder, handle = self.start_holes()
        self.finish(task, handle)

        self.assertEqual(task.state, TaskState.SUCCEEDED)
        result = recorder.results[0]
        self.assertIsNone(result.artifact_path)
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(recorder.warnings, list(result.warnings))

    def test_oversized_image_header_still_yields_layer(self):
        write_png_header(self.source, 20000, 20000)

        task, recorder, handle = self.start_holes()
        self.finish(task, handle)

        self.assertEqual(task.state, TaskState.SUCCEEDED)
        with open(task.result_artifact, encoding="utf-8") as file:
            config = json.load(file)
        self.assertEqual(config["tileSize"], 20000)
        self.assertEqual(recorder.warnings, [])

    def test_unexpected_builder_error_is_a_warning(self):
        builder = mock.Mock()
        builder.build_and_write.side_effect = RuntimeError("boom")
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner, builder=builder)
        recorder = SignalRecorder(task)
        task.run(str(self.source), HolesDetectionParameters(output_folder=str(self.output)))

        self.finish(task, self.runner.last_handle)

        self.assertEqual(task.state, TaskState.SUCCEEDED)
        self.assertEqual(recorder.warnings, ["boom"])
        self.assertEqual(recorder.results[0].warnings, ("boom",))

    def test_stderr_is_forwarded_as_warning_log(self):
        task, _, handle = self.start_holes()
        messages = []
        task.log_message.connect(lambda level, message: messages.append((level, message)))

        handle.error_output("java.lang.OutOfMemoryError\n")

        self.assertIn(("warning", "stderr: java.lang.OutOfMemoryError"), messages)
        self.assertEqual(task.state, TaskState.RUNNING)


class TestTaskValidation(TaskTestCase):

    def test_missing_output_folder_never_spawns(self):
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner)

        with self.assertRaises(MissingOutputFolder):
            task.run(str(self.source), HolesDetectionParameters(output_folder=""))
        with self.assertRaises(MissingOutputFolder):
            task.run(str(self.source), None)

        self.assertEqual(task.state, TaskState.IDLE)
        self.assertEqual(self.runner.handles, [])

    def test_missing_source_raises(self):
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner)

        with self.assertRaises(SourceNotFound):
            task.run(str(self.temp_dir / "missing.png"), HolesDetectionParameters(output_folder=str(self.output)))
        self.assertEqual(self.runner.handles, [])

    def test_invalid_parameters_raise(self):
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner)

        with self.assertRaises(JobValidationError):
            task.run(str(self.source), HolesDetectionParameters(output_folder=str(self.output), threshold=300))
        self.assertEqual(task.state, TaskState.IDLE)

    def test_task_runs_only_once(self):
        task, _, handle = self.start_holes()
        self.finish(task, handle)

        with self.assertRaises(TaskStateError):
            task.run(str(self.source), HolesDetectionParameters(output_folder=str(self.output)))


class TestTaskCancellation(TaskTestCase):

    def test_cancel_before_run_returns_false(self):
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner)

        self.assertFalse(task.cancel())
        self.assertEqual(task.state, TaskState.IDLE)

    def test_cancel_terminates_then_waits_for_exit(self):
        task, recorder, handle = self.start_holes()

        self.assertTrue(task.cancel())
        self.assertEqual(task.state, TaskState.CANCELLING)
        self.assertEqual(handle.terminate_calls, 1)
        self.assertFalse(task.cancel())

        handle.finish(143)

        self.assertEqual(task.state, TaskState.CANCELLED)
        result = recorder.results[0]
        self.assertEqual(result.outcome, TaskOutcome.CANCELLED)
        self.assertIsNone(result.error)
        self.assertEqual(recorder.events, ['cancelled', 'finished'])

    def test_progress_ignored_while_cancelling(self):
        task, recorder, handle = self.start_holes()

        task.cancel()
        handle.output("90/100")

        self.assertEqual(recorder.progress, [])

    def test_process_is_killed_after_grace_period(self):
        task, _, handle = self.start_holes()

        task.cancel()
        QTest.qWait(100)

        self.assertGreaterEqual(handle.kill_calls, 1)
        self.assertEqual(task.state, TaskState.CANCELLING)

        handle.finish(9, crashed=True)
        self.assertEqual(task.state, TaskState.CANCELLED)

    def test_cancel_after_finish_returns_false(self):
        task, _, handle = self.start_holes()
        self.finish(task, handle)

        self.assertFalse(task.cancel())
        self.assertEqual(task.state, TaskState.SUCCEEDED)

    def test_layer_is_built_off_the_gui_thread_after_exit(self):
        builder = GatedBuilder()
        task = HolesDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner, builder=builder)
        recorder = SignalRecorder(task)
        task.run(str(self.source), HolesDetectionParameters(output_folder=str(self.output)))
        handle = self.runner.last_handle

        handle.finish(0)

        self.assertEqual(task.state, TaskState.RUNNING)
        self.assertIsNone(task.process_handle)
        self.assertFalse(task.cancel())
        self.assertEqual(handle.terminate_calls, 0)
        self.assertEqual(recorder.events, [])

        builder.gate.set()
        self.assertTrue(wait_until(lambda: task.is_finished))

        self.assertIsNot(builder.thread, threading.main_thread())
        self.assertEqual(task.state, TaskState.SUCCEEDED)
        self.assertEqual(recorder.events, ["succeeded", "finished"])
        self.assertTrue(Path(task.result_artifact).is_file())


class TestProcessErrors(TaskTestCase):

    def test_spawn_failure_fails_task(self):
        self.runner.start_error = "No such file or directory"

        task, recorder, _ = self.start_holes()

        self.assertEqual(task.state, TaskState.FAILED)
        self.assertIsInstance(recorder.results[0].error, SpawnError)

    def test_stream_error_kills_process_and_fails(self):
        task, recorder, handle = self.start_holes()

        handle.stream_error.emit("broken pipe")

        self.assertEqual(task.state, TaskState.FAILED)
        self.assertEqual(handle.kill_calls, 1)
        self.assertIsInstance(recorder.results[0].error, ProcessStreamError)

    def test_on_complete_receives_result(self):
        received = []
        task = CropTask("slide", self.runner)
        task.run(str(self.source), CropParameters(output_folder=str(self.output)), on_complete=received.append)

        self.runner.last_handle.finish(0)

        self.assertEqual(len(received), 1)
        self.assertTrue(received[0].succeeded)
        self.assertIsNone(received[0].artifact_path)


class TestTaskSubtypes(TaskTestCase):

    def test_map_creator_arguments_and_map_artifact(self):
        task = MapCreatorTask("slide", True, False, self.runner)
        parameters = MapCreatorParameters(output_folder=str(self.output), map_name="my:map", use_all_slices=True)

        task.run(str(self.source), parameters)
        handle = self.runner.last_handle

        self.assertEqual(handle.macro, "MapCreator")
        self.assertEqual(
            handle.arg_string,
            f"false#1#1#1#{self.source}#map=[mymap] pixel=256 maximum=5 slice=1 use create "
            f"choose={self.output}#false",
        )

        handle.finish(0)
        self.assertEqual(task.result_artifact, str(self.output / "mymap" / "mymap.json"))
        self.assertEqual(task.custom_action.caption, "Load map to workspace")

    def test_map_creator_layer_artifact(self):
        task = MapCreatorTask("slide", False, True, self.runner)
        task.run(str(self.temp_dir), MapCreatorParameters(output_folder=str(self.output), map_name="atlas"))

        self.assertTrue(self.runner.last_handle.arg_string.startswith("true#"))
        self.assertNotIn("create ", self.runner.last_handle.arg_string)

        self.runner.last_handle.finish(0)
        self.assertEqual(task.result_artifact, str(self.output / "atlas" / "atlas_tiles" / "atlas_tiles.json"))
        self.assertEqual(task.custom_action.caption, "Add layer to a map in workspace")

    def test_object_detection_arguments_and_points_layer(self):
        task = ObjectDetectionTask("slide", LayersMode.SINGLE_IMAGE, self.runner)
        parameters = ObjectDetectionParameters(output_folder=str(self.output), maximum=None)

        task.run(str(self.source), parameters)
        handle = self.runner.last_handle
        self.assertEqual(handle.arg_string, f"0#{self.source}#1#5#1#Moments#1#[]#0.5#0#{self.output}")

        self.finish(task, handle)
        artifact = Path(task.result_artifact)
        self.assertEqual(artifact, self.output / "points" / "centroid_slide 1.png.json")
        with open(artifact, encoding="utf-8") as file:
            config = json.load(file)
        self.assertEqual(config["type"], "csvTiles")
        self.assertEqual(config["url"], "points_slide_1.png.csv")

    def test_holes_folder_mode_argument(self):
        tiles = self.temp_dir / "tiles"
        tiles.mkdir()
        Image.new("L", (100, 100)).save(tiles / "tile_X0_Y0.png")

        task, _, handle = self.start_holes(LayersMode.FOLDER, tiles)

        self.assertEqual(handle.arg_string, f"1#{tiles}#10#250#{self.output}")

    def test_crop_arguments(self):
        task = CropTask("slide", self.runner)
        task.run(str(self.source), CropParameters(output_folder=str(self.output), tile_size=512, x=5))

        self.assertEqual(
            self.runner.last_handle.arg_string,
            f"{self.source}#slide 1#512#10#10#5#0#{self.output}",
        )
        self.assertEqual(task.name, "ImageJ Image Cropping")

    def test_convert_arguments(self):
        task = ConvertTask("slide", self.runner)
        task.run(str(self.source), ConvertParameters(output_folder=str(self.output), output_format="png"))

        self.assertEqual(self.runner.last_handle.macro, "Converter")
        self.assertEqual(self.runner.last_handle.arg_string, f"{self.source}#slide 1#png#{self.output}")

    def test_info_task_collects_output_lines(self):
        task = InfoTask("slide", self.runner)
        task.run(str(self.source), InfoParameters(output_folder=str(self.output)))
        handle = self.runner.last_handle

        handle.output("Width: 300\nHei")
        handle.output("ght: 200\n1/2\n")
        handle.output("Slices: 1")
        handle.finish(0)

        self.assertEqual(task.info_lines, ["Width: 300", "Height: 200", "Slices: 1"])
        self.assertEqual(task.result.details, ("Width: 300", "Height: 200", "Slices: 1"))

    def test_custom_action_handler_receives_artifact(self):
        received = []
        task, _, handle = self.start_holes()
        task.set_custom_action_handler(lambda t, artifact: received.append((t, artifact)))

        self.finish(task, handle)
        task.custom_action.trigger()

        self.assertEqual(received, [(task, task.result_artifact)])


if __name__ == '__main__':
    unittest.main()
