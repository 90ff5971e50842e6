from typing import List, Optional

from PyQt6.QtCore import QObject, pyqtSignal


class TaskListModel(QObject):
    """Tasks shown in the task panel, in creation order."""

    task_added = pyqtSignal(object)  # task
    task_removed = pyqtSignal(object)  # task
    task_updated = pyqtSignal(object)  # task

    def __init__(self, auto_remove_finished: bool = False, parent: Optional[QObject] = None):
        """
        Args:
            auto_remove_finished: Remove a task as soon as it ends
        """
        super().__init__(parent)
        self.auto_remove_finished = auto_remove_finished
        self._tasks: List[QObject] = []

    def add_task(self, task):
        if task in self._tasks:
            return
        self._tasks.append(task)
        task.state_changed.connect(lambda _state, task=task: self._on_task_changed(task))
        task.progress.connect(lambda _value, task=task: self.task_updated.emit(task))
        task.finished.connect(lambda _result, task=task: self._on_task_finished(task))
        self.task_added.emit(task)

    def remove_task(self, task) -> bool:
        """
        Forget ``task``. Running tasks are not cancelled here.

        Returns:
            True if the task was in the list
        """
        if task not in self._tasks:
            return False
        self._tasks.remove(task)
        self.task_removed.emit(task)
        return True

    def tasks(self) -> list:
        return list(self._tasks)

    def running_tasks(self) -> list:
        return [task for task in self._tasks if task.is_running]

    def _on_task_changed(self, task):
        if task in self._tasks:
            self.task_updated.emit(task)

    def _on_task_finished(self, task):
        if self.auto_remove_finished:
            self.remove_task(task)
