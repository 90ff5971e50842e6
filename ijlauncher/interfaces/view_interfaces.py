"""
View interface of the ImageJ launcher.

Contract between :class:`ImageJController` and whatever shows the UI. The
main window implements it; tests use mocks.

Note: We use Protocol instead of ABC to avoid metaclass conflicts with Qt classes.
"""

from typing import Any, Dict, List, Optional, Protocol


class IExtensionView(Protocol):
    """Interface for the launcher's main view."""

    # =============================================================================
    # Input
    # =============================================================================

    def choose_source(self, title: str, folder: bool = False, image_list: bool = False) -> Optional[str]:
        """Ask for the image, folder or image list to process. None if cancelled."""
        ...

    def request_parameters(self, title: str, fields: List[Dict[str, Any]],
                           source_path: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Show an options dialog built from field descriptions.

        Returns the form values (including ``output_folder``) or None if cancelled.
        """
        ...

    def request_configuration(self, path: str, memory: int, stack_memory: int,
                              max_memory: int, max_stack_memory: int) -> Optional[Dict[str, Any]]:
        """Ask for installation path and memory limits. None if cancelled."""
        ...

    # =============================================================================
    # Feedback
    # =============================================================================

    def show_error(self, title: str, message: str) -> None:
        """Show a blocking error message."""
        ...

    def notify(self, message: str) -> None:
        """Show a non-blocking notification."""
        ...

    def show_not_installed(self, message: str) -> Optional[str]:
        """
        Tell the user ImageJ is missing.

        Returns ``"configure"``, ``"install"`` or None.
        """
        ...

    def add_log_message(self, level: str, message: str) -> None:
        """Add a log message to the display."""
        ...

    def show_task_details(self, title: str, lines: List[str]) -> None:
        """Show text reported by a finished task."""
        ...
