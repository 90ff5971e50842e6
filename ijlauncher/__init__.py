"""ImageJ launcher and batch-macro task runner."""

from ijlauncher._metadata import __version__

__all__ = ["__version__"]
