"""
Options dialog of an ImageJ job.

Built from the field descriptions of a job parameter class plus an output
folder picker. ``values()`` returns the raw form values expected by
``JobParameters.from_form``.
"""

from typing import Any, Dict, List, Optional

from PyQt6.QtWidgets import (
    QDialog, QDialogButtonBox, QFileDialog, QGroupBox, QHBoxLayout, QLabel, QLineEdit, QPushButton,
    QVBoxLayout, QWidget
)

from ijlauncher.ui.widgets.parameter_widget_factory import ParameterWidget, ParameterWidgetFactory

GROUP_TITLES = {
    'stack': "Image combination parameters",
}


class ParameterDialog(QDialog):

    def __init__(self, title: str, fields: List[Dict[str, Any]], source_path: Optional[str] = None,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.setMinimumWidth(400)

        layout = QVBoxLayout(self)
        if source_path:
            source_label = QLabel(source_path)
            source_label.setWordWrap(True)
            layout.addWidget(source_label)

        self.widgets: Dict[str, ParameterWidget] = {}
        groups: Dict[str, QVBoxLayout] = {}
        for field in fields:
            widget = ParameterWidgetFactory.create_widget(field, self)
            self.widgets[field['name']] = widget

            group = field.get('group')
            if group is None:
                layout.addWidget(widget)
                continue
            if group not in groups:
                box = QGroupBox(GROUP_TITLES.get(group, group.title()))
                groups[group] = QVBoxLayout(box)
                layout.addWidget(box)
            groups[group].addWidget(widget)

        self._link_slice_options()

        folder_row = QHBoxLayout()
        folder_row.addWidget(QLabel("Output folder:"))
        self.output_folder_edit = QLineEdit()
        folder_row.addWidget(self.output_folder_edit)
        browse_button = QPushButton("Browse...")
        browse_button.clicked.connect(self._browse_output_folder)
        folder_row.addWidget(browse_button)
        layout.addLayout(folder_row)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _link_slice_options(self):
        use_all = self.widgets.get('use_all_slices')
        merge_all = self.widgets.get('merge_all_slices')
        used_slice = self.widgets.get('used_slice')
        if use_all is None or merge_all is None:
            return

        # "Use all" and "merge all" exclude each other and the single slice choice
        def refresh(*_args):
            merge_all.setEnabled(not use_all.get_value() and use_all.field.get('enabled', True))
            use_all.setEnabled(not merge_all.get_value() and merge_all.field.get('enabled', True))
            if used_slice is not None:
                used_slice.setEnabled(not (use_all.get_value() or merge_all.get_value()))

        use_all.valueChanged.connect(refresh)
        merge_all.valueChanged.connect(refresh)
        refresh()

    def _browse_output_folder(self):
        directory = QFileDialog.getExistingDirectory(self, "Select output folder", self.output_folder_edit.text())
        if directory:
            self.output_folder_edit.setText(directory)

    def values(self) -> Dict[str, Any]:
        values = {name: widget.get_value() for name, widget in self.widgets.items()}
        values['output_folder'] = self.output_folder_edit.text().strip()
        return values

    @classmethod
    def get_values(cls, title: str, fields: List[Dict[str, Any]], source_path: Optional[str] = None,
                   parent: Optional[QWidget] = None) -> Optional[Dict[str, Any]]:
        """Show the dialog modally; None if it was cancelled."""
        dialog = cls(title, fields, source_path, parent)
        if dialog.exec() == QDialog.DialogCode.Accepted:
            return dialog.values()
        return None
