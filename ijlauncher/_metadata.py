"""
Single source of truth for application metadata.
This file is used by the About box and read by pyproject.toml.
"""

__version__ = "0.4.0"
__authors__ = ["Atlas ImageJ extension contributors"]
__copyright__ = "© 2026 ijlauncher contributors"
__license__ = "GPL-3.0-or-later"
__description__ = "Launcher and batch-macro task runner for ImageJ"
