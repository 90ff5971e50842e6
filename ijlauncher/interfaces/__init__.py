"""View interfaces that define the contract between the controller and the UI."""

from .view_interfaces import IExtensionView

__all__ = ['IExtensionView']
