"""
Controllers package of the ImageJ launcher.

- ImageJController: configuration, plugin installation and job tasks
"""

from .imagej_controller import ImageJController

__all__ = ['ImageJController']
