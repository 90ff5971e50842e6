from ijlauncher.tasks.base_task import CustomAction, Task, TaskOutcome, TaskResult, TaskState
from ijlauncher.tasks.convert_task import ConvertTask
from ijlauncher.tasks.crop_task import CropTask
from ijlauncher.tasks.holes_detection_task import HolesDetectionTask
from ijlauncher.tasks.info_task import InfoTask
from ijlauncher.tasks.map_creator_task import MapCreatorTask
from ijlauncher.tasks.object_detection_task import ObjectDetectionTask

__all__ = [
    "ConvertTask",
    "CropTask",
    "CustomAction",
    "HolesDetectionTask",
    "InfoTask",
    "MapCreatorTask",
    "ObjectDetectionTask",
    "Task",
    "TaskOutcome",
    "TaskResult",
    "TaskState",
]
