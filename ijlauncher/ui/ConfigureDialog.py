from typing import Any, Dict, Optional

from PyQt6.QtWidgets import (
    QDialog, QDialogButtonBox, QFileDialog, QFormLayout, QHBoxLayout, QLineEdit, QPushButton, QSpinBox, QWidget
)

from ijlauncher.models.imagej_configuration import MIN_MEMORY, MIN_STACK_MEMORY


class ConfigureDialog(QDialog):
    """Edits the ImageJ folder and the Java memory limits."""

    def __init__(self, path: str, memory: int, stack_memory: int, max_memory: int, max_stack_memory: int,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle("Configure ImageJ")
        self.setMinimumWidth(450)

        layout = QFormLayout(self)

        path_row = QHBoxLayout()
        self.path_edit = QLineEdit(path)
        browse_button = QPushButton("Browse...")
        browse_button.clicked.connect(self._browse_path)
        path_row.addWidget(self.path_edit)
        path_row.addWidget(browse_button)
        layout.addRow("ImageJ folder:", path_row)

        self.memory_spin = QSpinBox()
        self.memory_spin.setRange(MIN_MEMORY, max(MIN_MEMORY, max_memory))
        self.memory_spin.setSuffix(" MB")
        self.memory_spin.setValue(memory)
        layout.addRow("Memory:", self.memory_spin)

        self.stack_memory_spin = QSpinBox()
        self.stack_memory_spin.setRange(MIN_STACK_MEMORY, max_stack_memory)
        self.stack_memory_spin.setSuffix(" MB")
        self.stack_memory_spin.setValue(stack_memory)
        layout.addRow("Stack memory:", self.stack_memory_spin)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _browse_path(self):
        directory = QFileDialog.getExistingDirectory(self, "Select ImageJ folder", self.path_edit.text())
        if directory:
            self.path_edit.setText(directory)

    def values(self) -> Dict[str, Any]:
        return {
            "path": self.path_edit.text().strip(),
            "memory": self.memory_spin.value(),
            "stack_memory": self.stack_memory_spin.value(),
        }
