from typing import Any, Dict, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QMainWindow, QMenu, QMessageBox, QPlainTextEdit, QSplitter, QTreeWidget, QTreeWidgetItem
)

from ijlauncher._metadata import __description__, __version__
from ijlauncher.controllers.imagej_controller import ImageJController
from ijlauncher.interfaces.view_interfaces import IExtensionView
from ijlauncher.models.layer_config import LayersMode
from ijlauncher.services.ui.dialog_service import DialogService
from ijlauncher.tasks import TaskState
from ijlauncher.ui.ConfigureDialog import ConfigureDialog
from ijlauncher.ui.ParameterDialog import ParameterDialog

LOG_COLORS = {
    'error': '#c0392b',
    'warning': '#d68910',
    'success': '#1e8449',
}


class MainWindow(QMainWindow):
    """Menus for every ImageJ action, the task list and the log panel."""

    def __init__(self, controller: ImageJController):
        super(MainWindow, self).__init__()
        self.setWindowTitle("ImageJ Launcher")
        self.resize(800, 500)

        self.controller = controller
        self.dialog_service = DialogService(self)
        self._items: Dict[int, QTreeWidgetItem] = {}

        self.task_tree = QTreeWidget()
        self.task_tree.setHeaderLabels(["Task", "State", "Progress"])
        self.task_tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.task_tree.customContextMenuRequested.connect(self.show_task_menu)

        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)

        splitter = QSplitter(Qt.Orientation.Vertical)
        splitter.addWidget(self.task_tree)
        splitter.addWidget(self.log_view)
        self.setCentralWidget(splitter)

        self._build_menus()

        task_list = controller.task_list
        task_list.task_added.connect(self._on_task_added)
        task_list.task_removed.connect(self._on_task_removed)
        task_list.task_updated.connect(self._refresh_task)

        controller.set_view(self)
        controller.set_log_callback(self.add_log_message)

    def _build_menus(self):
        menu_bar = self.menuBar()
        c = self.controller

        imagej_menu = menu_bar.addMenu("&ImageJ")
        self._add_action(imagej_menu, "Launch ImageJ", c.launch_imagej)
        self._add_action(imagej_menu, "Configure...", c.configure_imagej)
        self._add_action(imagej_menu, "Install plugins", c.install_plugins)
        imagej_menu.addSeparator()
        self._add_action(imagej_menu, "About", self.show_about)

        map_menu = menu_bar.addMenu("&Map")
        self._add_action(map_menu, "Create map from image", lambda: c.create_map(True, False))
        self._add_action(map_menu, "Create map from folder", lambda: c.create_map(True, True))
        self._add_action(map_menu, "Create layer from image", lambda: c.create_map(False, False))
        self._add_action(map_menu, "Create layer from folder", lambda: c.create_map(False, True))

        detection_menu = menu_bar.addMenu("&Detection")
        sources = [
            ("image", LayersMode.SINGLE_IMAGE),
            ("folder", LayersMode.FOLDER),
            ("image list", LayersMode.IMAGE_LIST),
        ]
        for label, mode in sources:
            self._add_action(detection_menu, f"Object detection ({label})",
                             lambda mode=mode: c.object_detection(mode))
        detection_menu.addSeparator()
        for label, mode in sources:
            self._add_action(detection_menu, f"Holes detection ({label})",
                             lambda mode=mode: c.holes_detection(mode))

        tools_menu = menu_bar.addMenu("&Tools")
        self._add_action(tools_menu, "Crop image", c.crop_image)
        self._add_action(tools_menu, "Convert format", c.convert_image)
        self._add_action(tools_menu, "Image information", c.image_info)

    def _add_action(self, menu: QMenu, text: str, callback):
        action = QAction(text, self)
        action.triggered.connect(lambda _checked=False: callback())
        menu.addAction(action)
        return action

    # =============================================================================
    # IExtensionView
    # =============================================================================

    def choose_source(self, title: str, folder: bool = False, image_list: bool = False) -> Optional[str]:
        return self.dialog_service.browse_source(title, folder=folder, image_list=image_list)

    def request_parameters(self, title: str, fields: List[Dict[str, Any]],
                           source_path: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return ParameterDialog.get_values(title, fields, source_path, self)

    def request_configuration(self, path: str, memory: int, stack_memory: int,
                              max_memory: int, max_stack_memory: int) -> Optional[Dict[str, Any]]:
        dialog = ConfigureDialog(path, memory, stack_memory, max_memory, max_stack_memory, self)
        if dialog.exec() == ConfigureDialog.DialogCode.Accepted:
            return dialog.values()
        return None

    def show_error(self, title: str, message: str) -> None:
        self.dialog_service.show_error(title, message)

    def notify(self, message: str) -> None:
        self.statusBar().showMessage(message, 10000)

    def show_not_installed(self, message: str) -> Optional[str]:
        return self.dialog_service.ask_not_installed(message)

    def add_log_message(self, level: str, message: str) -> None:
        color = LOG_COLORS.get(level)
        if color:
            self.log_view.appendHtml(f'<span style="color:{color}">[{level}] {message}</span>')
        else:
            self.log_view.appendPlainText(f"[{level}] {message}")

    def show_task_details(self, title: str, lines: List[str]) -> None:
        self.dialog_service.show_information(title, "\n".join(lines))

    # =============================================================================
    # Task list
    # =============================================================================

    def _on_task_added(self, task):
        item = QTreeWidgetItem([task.display_name(), task.state.value, "0%"])
        item.setData(0, Qt.ItemDataRole.UserRole, task)
        self.task_tree.addTopLevelItem(item)
        self._items[id(task)] = item

    def _on_task_removed(self, task):
        item = self._items.pop(id(task), None)
        if item is not None:
            index = self.task_tree.indexOfTopLevelItem(item)
            self.task_tree.takeTopLevelItem(index)

    def _refresh_task(self, task):
        item = self._items.get(id(task))
        if item is not None:
            item.setText(1, task.state.value)
            percent = 100.0 if task.state == TaskState.SUCCEEDED else task.progress_percent
            item.setText(2, f"{percent:.0f}%")

    def show_task_menu(self, position):
        item = self.task_tree.itemAt(position)
        if item is None:
            return
        task = item.data(0, Qt.ItemDataRole.UserRole)

        menu = QMenu(self)
        if task.is_running:
            menu.addAction("Cancel", lambda: self.controller.cancel_task(task))
        if task.custom_action is not None:
            menu.addAction(task.custom_action.caption, task.custom_action.trigger)
        menu.addAction("Remove", lambda: self.controller.remove_task(task))
        menu.exec(self.task_tree.viewport().mapToGlobal(position))

    def show_about(self):
        QMessageBox.about(self, "About ImageJ Launcher", f"ImageJ Launcher {__version__}\n\n{__description__}")

    def closeEvent(self, event):
        running = self.controller.task_list.running_tasks()
        if running:
            reply = QMessageBox.question(
                self, "Tasks running",
                f"{len(running)} ImageJ task(s) still running. Cancel them and quit?",
            )
            if reply != QMessageBox.StandardButton.Yes:
                event.ignore()
                return
            for task in running:
                self.controller.cancel_task(task)
        event.accept()
