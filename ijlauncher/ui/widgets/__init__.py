from .parameter_widget_factory import ParameterWidget, ParameterWidgetFactory
