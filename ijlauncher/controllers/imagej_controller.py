"""
Controller binding the launcher's menu actions to ImageJ tasks.

Each job action follows the same sequence: check the installation, ask the
view for a source, ask the view for the job options, create the task, register
it with the task list and run it. Validation problems are shown to the user
immediately; everything that happens once the process is running arrives
through the task's signals.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type

from PyQt6.QtCore import QObject, pyqtSignal

from ijlauncher.errors import ImageJError, JobValidationError, NotInstalled
from ijlauncher.interfaces.view_interfaces import IExtensionView
from ijlauncher.models.imagej_configuration import ImageJConfiguration, MAX_STACK_MEMORY, max_memory
from ijlauncher.models.job_parameters import (
    ConvertParameters,
    CropParameters,
    HolesDetectionParameters,
    InfoParameters,
    JobParameters,
    MapCreatorParameters,
    ObjectDetectionParameters,
)
from ijlauncher.models.layer_config import LayersMode
from ijlauncher.models.task_list_model import TaskListModel
from ijlauncher.services.config_service import ConfigurationService
from ijlauncher.services.io.image_info import count_slices
from ijlauncher.services.processing.process_runner import ProcessRunner
from ijlauncher.services.processing.tool_config import ImageJInstallation
from ijlauncher.tasks import (
    ConvertTask,
    CropTask,
    HolesDetectionTask,
    InfoTask,
    MapCreatorTask,
    ObjectDetectionTask,
    Task,
    TaskResult,
)
from ijlauncher.tasks.map_creator_task import sanitize_filename
from ijlauncher.workers.PluginInstallWorker import PluginInstallWorker

logger = logging.getLogger(__name__)

# Called with the artifact path when the user triggers a task's custom action
ArtifactAction = Callable[[Optional[str]], Any]


class ImageJController(QObject):
    """
    Coordinates configuration, plugin installation and ImageJ jobs.

    Signals:
        configuration_changed: New ImageJConfiguration after configure_imagej()
        task_started: Task that has just been started
    """

    configuration_changed = pyqtSignal(object)
    task_started = pyqtSignal(object)

    def __init__(self, configuration: ImageJConfiguration,
                 config_service: ConfigurationService,
                 task_list: TaskListModel,
                 view: Optional[IExtensionView] = None,
                 runner_factory: Callable[[ImageJConfiguration], Any] = ProcessRunner,
                 install_worker_factory: Type[PluginInstallWorker] = PluginInstallWorker,
                 map_action: Optional[ArtifactAction] = None,
                 layer_action: Optional[ArtifactAction] = None):
        super().__init__()
        self._configuration = configuration
        self.config_service = config_service
        self.task_list = task_list
        self._view = view
        self._runner_factory = runner_factory
        self._install_worker_factory = install_worker_factory
        self._install_worker = None
        self.map_action = map_action
        self.layer_action = layer_action
        self._log_callback: Optional[Callable[[str, str], None]] = None

    @property
    def configuration(self) -> ImageJConfiguration:
        return self._configuration

    def set_view(self, view: IExtensionView):
        """Set the view reference for UI updates."""
        self._view = view

    def set_log_callback(self, callback: Callable[[str, str], None]):
        """Set callback function for logging messages."""
        self._log_callback = callback

    def _log_message(self, level: str, message: str):
        """Log a message if callback is set."""
        if self._log_callback:
            self._log_callback(level, message)

    # =============================================================================
    # ImageJ installation and configuration
    # =============================================================================

    def launch_imagej(self) -> bool:
        """Open the ImageJ user interface with the current memory settings."""
        if not self._ensure_installed():
            return False

        runner = self._runner_factory(self._configuration)
        if runner.launch_interactive():
            self._log_message("info", "ImageJ launched")
            return True

        _, errors = ImageJInstallation(self._configuration).validate_environment()
        details = "\n".join(errors) if errors else "Check the Java installation."
        self._show_error("Launch ImageJ", f"ImageJ could not be started.\n{details}")
        return False

    def configure_imagej(self, path: Optional[str] = None, memory: Optional[int] = None,
                         stack_memory: Optional[int] = None) -> Optional[ImageJConfiguration]:
        """
        Change installation path and memory limits.

        Without arguments the view is asked for the new values. Memory values
        are clamped to the machine limits. Running tasks keep the settings they
        were started with.

        Returns:
            The new configuration, or None if the user cancelled
        """
        current = self._configuration
        if path is None and memory is None and stack_memory is None:
            if self._view is None:
                return None
            values = self._view.request_configuration(
                current.path, current.memory, current.stack_memory, max_memory(), MAX_STACK_MEMORY
            )
            if not values:
                return None
            path = values.get("path")
            memory = values.get("memory")
            stack_memory = values.get("stack_memory")

        changes: Dict[str, Any] = {}
        if path:
            changes["path"] = str(path)
        if memory is not None:
            changes["memory"] = int(memory)
        if stack_memory is not None:
            changes["stack_memory"] = int(stack_memory)

        self._configuration = current.updated(**changes)
        if not self.config_service.save(self._configuration):
            self._log_message("warning", "ImageJ configuration could not be saved")

        self._log_message(
            "info",
            f"ImageJ configured: {self._configuration.path} "
            f"(memory {self._configuration.memory}MB, stack {self._configuration.stack_memory}MB)",
        )
        self.configuration_changed.emit(self._configuration)
        return self._configuration

    def install_plugins(self) -> bool:
        """Download the plugin jars in the background."""
        if self._install_worker is not None and self._install_worker.isRunning():
            self._log_message("warning", "Plugin installation is already in progress")
            return False

        repository = self._configuration.plugin_repository
        if not repository:
            self._show_error("Install plugins", "No plugin repository configured")
            return False

        worker = self._install_worker_factory(self._configuration.path, repository)
        worker.log_signal.connect(self._log_message)
        worker.error_signal.connect(lambda message: self._show_error("Install plugins", message))
        worker.finished.connect(self._on_install_finished)
        self._install_worker = worker
        self._log_message("info", f"Installing plugins into {self._configuration.path}")
        worker.start()
        return True

    def _on_install_finished(self, downloaded: int, errors: int):
        if errors == 0:
            self._notify(f"ImageJ plugins installed ({downloaded} downloaded)")
        worker = self._install_worker
        self._install_worker = None
        if worker is not None:
            worker.deleteLater()

    def _ensure_installed(self) -> bool:
        try:
            ImageJInstallation(self._configuration).check()
        except NotInstalled as e:
            logger.warning("%s", e)
            self._log_message("error", str(e))
            choice = self._view.show_not_installed(str(e)) if self._view is not None else None
            if choice == "configure":
                self.configure_imagej()
            elif choice == "install":
                self.install_plugins()
            return False
        return True

    # =============================================================================
    # Jobs
    # =============================================================================

    def create_map(self, is_map: bool = True, is_folder: bool = False) -> Optional[Task]:
        """Create a map (or a map layer) from an image or a folder of images."""
        title = "Map creator options" if is_map else "Layer creator options"
        return self._start_job(
            title=title,
            parameters_cls=MapCreatorParameters,
            task_factory=lambda details, runner: MapCreatorTask(details, is_map, is_folder, runner),
            folder=is_folder,
            fields_hook=lambda fields, source: self._map_creator_fields(fields, source, is_folder),
            action=self.map_action if is_map else self.layer_action,
        )

    def object_detection(self, mode: LayersMode = LayersMode.SINGLE_IMAGE) -> Optional[Task]:
        mode = LayersMode(mode)
        return self._start_job(
            title="Object detection options",
            parameters_cls=ObjectDetectionParameters,
            task_factory=lambda details, runner: ObjectDetectionTask(details, mode, runner),
            folder=mode == LayersMode.FOLDER,
            image_list=mode == LayersMode.IMAGE_LIST,
            action=self.layer_action,
        )

    def holes_detection(self, mode: LayersMode = LayersMode.SINGLE_IMAGE) -> Optional[Task]:
        mode = LayersMode(mode)
        return self._start_job(
            title="Holes detection options",
            parameters_cls=HolesDetectionParameters,
            task_factory=lambda details, runner: HolesDetectionTask(details, mode, runner),
            folder=mode == LayersMode.FOLDER,
            image_list=mode == LayersMode.IMAGE_LIST,
            action=self.layer_action,
        )

    def crop_image(self) -> Optional[Task]:
        return self._start_job(
            title="Image cropping options",
            parameters_cls=CropParameters,
            task_factory=CropTask,
        )

    def convert_image(self) -> Optional[Task]:
        return self._start_job(
            title="Format conversion options",
            parameters_cls=ConvertParameters,
            task_factory=ConvertTask,
        )

    def image_info(self) -> Optional[Task]:
        return self._start_job(
            title="Image information",
            parameters_cls=InfoParameters,
            task_factory=InfoTask,
        )

    def cancel_task(self, task: Task) -> bool:
        if task.cancel():
            self._log_message("info", f"Cancel requested for {task.display_name()}")
            return True
        return False

    def remove_task(self, task: Task) -> bool:
        """Remove a task from the list, cancelling it first if it is running."""
        if task.is_running:
            task.cancel()
        return self.task_list.remove_task(task)

    def _start_job(self, title: str, parameters_cls: Type[JobParameters],
                   task_factory: Callable[[str, Any], Task],
                   folder: bool = False, image_list: bool = False,
                   fields_hook: Optional[Callable[[List[Dict[str, Any]], str], List[Dict[str, Any]]]] = None,
                   action: Optional[ArtifactAction] = None) -> Optional[Task]:
        if self._view is None:
            raise RuntimeError("ImageJController has no view")

        if not self._ensure_installed():
            return None

        source = self._view.choose_source(title, folder=folder, image_list=image_list)
        if not source:
            return None

        fields = parameters_cls.form_fields()
        if fields_hook is not None:
            fields = fields_hook(fields, source)

        values = self._view.request_parameters(title, fields, source)
        if values is None:
            return None

        try:
            parameters = parameters_cls.from_form(values)
        except (ValueError, TypeError) as e:
            self._show_error(title, f"Invalid option: {e}")
            return None

        task = task_factory(Path(source).name, self._runner_factory(self._configuration))
        if action is not None:
            task.set_custom_action_handler(lambda _task, artifact: action(artifact))
        self._connect_task(task)
        self.task_list.add_task(task)

        try:
            task.run(source, parameters)
        except JobValidationError as e:
            self.task_list.remove_task(task)
            self._show_error(title, str(e))
            return None

        self.task_started.emit(task)
        return task

    @staticmethod
    def _map_creator_fields(fields: List[Dict[str, Any]], source: str, is_folder: bool) -> List[Dict[str, Any]]:
        slices = 1 if is_folder else count_slices(source)
        for field in fields:
            if field['name'] == 'map_name':
                field['default'] = sanitize_filename(Path(source).stem)
            elif field['name'] in ('initial_slice', 'last_slice', 'used_slice') and not is_folder:
                field['max'] = slices
            elif field['name'] in ('use_all_slices', 'merge_all_slices') and slices == 1:
                field['enabled'] = False
        if not is_folder:
            fields = [field for field in fields if field.get('group') != 'stack']
        return fields

    # =============================================================================
    # Task notifications
    # =============================================================================

    def _connect_task(self, task: Task):
        task.log_message.connect(self._log_message)
        task.succeeded.connect(lambda _artifact, task=task: self._notify(f"{task.display_name()} completed"))
        task.failed.connect(lambda reason, task=task: self._notify(f"{task.display_name()} failed: {reason}"))
        task.cancelled.connect(lambda task=task: self._notify(f"{task.display_name()} cancelled"))
        task.warning.connect(lambda message, task=task: self._on_task_warning(task, message))
        task.finished.connect(lambda result, task=task: self._on_task_finished(task, result))

    def _on_task_warning(self, task: Task, message: str):
        self._log_message("warning", f"{task.display_name()}: {message}")
        self._notify(message)

    def _on_task_finished(self, task: Task, result: TaskResult):
        if isinstance(result.error, ImageJError):
            logger.info("%s ended: %s", task.display_name(), result.error)
        if result.succeeded and result.details and self._view is not None:
            self._view.show_task_details(task.display_name(), list(result.details))

    def _notify(self, message: str):
        if self._view is not None:
            self._view.notify(message)

    def _show_error(self, title: str, message: str):
        self._log_message("error", message)
        if self._view is not None:
            self._view.show_error(title, message)
