"""
Dialog Service for the ImageJ launcher

Message boxes and file pickers used by the main window, so that views and
controllers never build these widgets themselves.
"""

from typing import Optional

from PyQt6.QtCore import QStandardPaths
from PyQt6.QtWidgets import QFileDialog, QMessageBox, QWidget

IMAGE_FILTER = "Images (*.tif *.tiff *.png *.jpg *.jpeg *.bmp *.gif);;All Files (*)"
IMAGE_LIST_FILTER = "Image lists (*.txt *.csv);;All Files (*)"


class DialogService:
    """Thin wrapper over QMessageBox and QFileDialog."""

    def __init__(self, parent: Optional[QWidget] = None):
        self.parent = parent

    def set_parent(self, parent: QWidget):
        self.parent = parent

    # Information and Confirmation Dialogs

    def show_information(self, title: str, message: str) -> None:
        QMessageBox.information(self.parent, title, message)

    def show_warning(self, title: str, message: str) -> None:
        QMessageBox.warning(self.parent, title, message)

    def show_error(self, title: str, message: str) -> None:
        QMessageBox.critical(self.parent, title, message)

    def ask_not_installed(self, message: str) -> Optional[str]:
        """
        Offer to configure or install ImageJ.

        Returns:
            ``"configure"``, ``"install"`` or None if the user dismissed the box
        """
        msg_box = QMessageBox(self.parent)
        msg_box.setWindowTitle("ImageJ not found")
        msg_box.setText(message)
        msg_box.setInformativeText("Choose the ImageJ folder, or install the plugins into the configured one.")
        msg_box.setIcon(QMessageBox.Icon.Warning)

        configure = msg_box.addButton("Configure...", QMessageBox.ButtonRole.AcceptRole)
        install = msg_box.addButton("Install plugins", QMessageBox.ButtonRole.ActionRole)
        cancel = msg_box.addButton(QMessageBox.StandardButton.Cancel)
        msg_box.setDefaultButton(cancel)

        msg_box.exec()
        clicked = msg_box.clickedButton()
        if clicked == configure:
            return "configure"
        if clicked == install:
            return "install"
        return None

    # File and Directory Dialogs

    def browse_directory(self, title: str, start_dir: Optional[str] = None) -> Optional[str]:
        """Return the chosen directory, or None if cancelled."""
        if start_dir is None:
            start_dir = QStandardPaths.writableLocation(
                QStandardPaths.StandardLocation.PicturesLocation
            )

        directory = QFileDialog.getExistingDirectory(self.parent, title, start_dir)
        return directory if directory else None

    def browse_file(self, title: str, file_filter: str = IMAGE_FILTER,
                    start_dir: str = "") -> Optional[str]:
        """Return the chosen file, or None if cancelled."""
        file_path, _ = QFileDialog.getOpenFileName(self.parent, title, start_dir, file_filter)
        return file_path if file_path else None

    def browse_source(self, title: str, folder: bool = False, image_list: bool = False) -> Optional[str]:
        """Pick the input of a job: an image, a folder of tiles or an image list."""
        if folder:
            return self.browse_directory(title)
        if image_list:
            return self.browse_file(title, IMAGE_LIST_FILTER)
        return self.browse_file(title)
