"""
Factory for job option widgets.

Widgets are built from the field descriptions of the job parameter classes
(``name``, ``display_name``, ``type``, ``default``, ``min``, ``max``, ``step``,
``decimals``, ``choices``, ``enabled``).
"""
import logging
from typing import Any, Dict, List, Optional

from PyQt6.QtWidgets import (
    QCheckBox, QComboBox, QDoubleSpinBox, QFrame, QHBoxLayout, QLabel, QLineEdit, QSpinBox, QWidget
)
from PyQt6.QtCore import pyqtSignal

logger = logging.getLogger(__name__)

LABEL_WIDTH = 150


class ParameterWidget(QFrame):
    """Base class for parameter input widgets."""

    valueChanged = pyqtSignal(str, object)  # parameter_name, value

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.param_name = field['name']
        self.field = field
        self.setFrameStyle(QFrame.Shape.NoFrame)
        self.setContentsMargins(0, 0, 0, 0)

        self._layout = QHBoxLayout()
        self._layout.setContentsMargins(0, 0, 0, 0)
        self.setLayout(self._layout)

    def _add_labelled(self, editor: QWidget):
        label = QLabel(f"{self.field.get('display_name', self.param_name)}:")
        label.setMinimumWidth(LABEL_WIDTH)
        label.setMaximumWidth(LABEL_WIDTH)
        self._layout.addWidget(label)
        self._layout.addWidget(editor)
        editor.setEnabled(self.field.get('enabled', True))

    def _emit(self, value):
        try:
            self.valueChanged.emit(self.param_name, value)
        except RuntimeError:
            # Widget has been deleted, ignore the signal
            pass

    def get_value(self) -> Any:
        raise NotImplementedError

    def set_value(self, value: Any) -> None:
        raise NotImplementedError


class IntParameterWidget(ParameterWidget):
    """Integer option using QSpinBox."""

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(field, parent)
        self.spin_box = QSpinBox()
        self.spin_box.setMinimum(field.get('min', -999999))
        self.spin_box.setMaximum(field.get('max', 999999))
        self.spin_box.setSingleStep(field.get('step', 1))
        if field.get('default') is not None:
            self.spin_box.setValue(int(field['default']))
        self.spin_box.valueChanged.connect(self._emit)
        self._add_labelled(self.spin_box)

    def get_value(self) -> int:
        return self.spin_box.value()

    def set_value(self, value: Any) -> None:
        if value is not None:
            self.spin_box.setValue(int(value))


class FloatParameterWidget(ParameterWidget):
    """Decimal option using QDoubleSpinBox."""

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(field, parent)
        self.spin_box = QDoubleSpinBox()
        self.spin_box.setDecimals(field.get('decimals', 2))
        self.spin_box.setMinimum(field.get('min', -999999.0))
        self.spin_box.setMaximum(field.get('max', 999999.0))
        self.spin_box.setSingleStep(field.get('step', 0.01))
        if field.get('default') is not None:
            self.spin_box.setValue(float(field['default']))
        self.spin_box.valueChanged.connect(self._emit)
        self._add_labelled(self.spin_box)

    def get_value(self) -> float:
        return self.spin_box.value()

    def set_value(self, value: Any) -> None:
        if value is not None:
            self.spin_box.setValue(float(value))


class BoolParameterWidget(ParameterWidget):
    """Yes/no option using QCheckBox."""

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(field, parent)
        self.checkbox = QCheckBox(field.get('display_name', self.param_name))
        self.checkbox.setChecked(bool(field.get('default', False)))
        self.checkbox.setEnabled(field.get('enabled', True))
        self.checkbox.toggled.connect(self._emit)
        self._layout.addWidget(self.checkbox)
        self._layout.addStretch()

    def get_value(self) -> bool:
        return self.checkbox.isChecked()

    def set_value(self, value: Any) -> None:
        if value is not None:
            self.checkbox.setChecked(bool(value))


class StringParameterWidget(ParameterWidget):
    """Free text option using QLineEdit."""

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(field, parent)
        self.line_edit = QLineEdit()
        self.line_edit.setPlaceholderText(field.get('placeholder', ''))
        if field.get('default') is not None:
            self.line_edit.setText(str(field['default']))
        self.line_edit.editingFinished.connect(lambda: self._emit(self.line_edit.text()))
        self._add_labelled(self.line_edit)

    def get_value(self) -> str:
        return self.line_edit.text()

    def set_value(self, value: Any) -> None:
        if value is not None:
            self.line_edit.setText(str(value))


class ChoiceParameterWidget(ParameterWidget):
    """Option picked from a fixed list using QComboBox."""

    def __init__(self, field: Dict[str, Any], parent: Optional[QWidget] = None):
        super().__init__(field, parent)
        self.combo_box = QComboBox()
        self.combo_box.addItems([str(choice) for choice in field.get('choices', [])])
        self.set_value(field.get('default'))
        self.combo_box.currentTextChanged.connect(self._emit)
        self._add_labelled(self.combo_box)

    def get_value(self) -> str:
        return self.combo_box.currentText()

    def set_value(self, value: Any) -> None:
        if value is not None:
            index = self.combo_box.findText(str(value))
            if index >= 0:
                self.combo_box.setCurrentIndex(index)


class ParameterWidgetFactory:
    """Creates the widget matching a field description."""

    WIDGETS = {
        'int': IntParameterWidget,
        'float': FloatParameterWidget,
        'bool': BoolParameterWidget,
        'str': StringParameterWidget,
        'choice': ChoiceParameterWidget,
    }

    @staticmethod
    def create_widget(field: Dict[str, Any], parent: Optional[QWidget] = None) -> ParameterWidget:
        field_type = field.get('type', 'str').lower()
        if field.get('choices'):
            field_type = 'choice'

        widget_cls = ParameterWidgetFactory.WIDGETS.get(field_type)
        if widget_cls is None:
            logger.warning("Unknown field type '%s' for '%s', using a text field", field_type, field['name'])
            widget_cls = StringParameterWidget
        return widget_cls(field, parent)

    @staticmethod
    def create_widgets(fields: List[Dict[str, Any]],
                       parent: Optional[QWidget] = None) -> Dict[str, ParameterWidget]:
        """Create one widget per field, keyed by field name, in field order."""
        return {field['name']: ParameterWidgetFactory.create_widget(field, parent) for field in fields}
