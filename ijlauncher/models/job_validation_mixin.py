"""
Validation mixin for job parameter dataclasses.

Every ``*Parameters`` class in :mod:`ijlauncher.models.job_parameters` uses
these helpers so that form errors read the same for every job type.
"""

import os
from typing import Iterable, Optional, Tuple, Union

Number = Union[int, float]


class JobValidationMixin:
    """
    Mixin class providing common validation methods for job parameters.

    Helpers return ``(is_valid, error_message)`` tuples; an unset optional
    value (``None``) is always valid because it is sent to ImageJ as ``[]``.

    Usage:
        @dataclass(frozen=True)
        class MyParameters(JobValidationMixin):
            output_folder: str
            radius: Optional[int] = None

            def validate(self) -> Tuple[bool, str]:
                is_valid, msg = self._validate_directory_exists(self.output_folder, "Output folder")
                if not is_valid:
                    return False, msg
                ...
    """

    def _validate_directory_exists(self, dir_path: Optional[str], field_name: str = "Directory") -> Tuple[bool, str]:
        """
        Validate that a directory exists at the given path.

        Args:
            dir_path: Path to the directory to validate
            field_name: Human-readable field name for error messages

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not dir_path or not str(dir_path).strip():
            return False, f"{field_name} path is required"

        if not os.path.exists(dir_path):
            return False, f"{field_name} does not exist: {dir_path}"

        if not os.path.isdir(dir_path):
            return False, f"{field_name} path is not a directory: {dir_path}"

        return True, ""

    def _validate_number_range(self, value: Optional[Number], field_name: str,
                               minimum: Optional[Number] = None,
                               maximum: Optional[Number] = None) -> Tuple[bool, str]:
        """
        Validate that an optional number lies within ``[minimum, maximum]``.

        Args:
            value: Number to check, or None when the field was left empty
            field_name: Human-readable field name for error messages
            minimum: Inclusive lower bound, if any
            maximum: Inclusive upper bound, if any

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            return True, ""

        if minimum is not None and value < minimum:
            return False, f"{field_name} must be at least {minimum} (got {value})"

        if maximum is not None and value > maximum:
            return False, f"{field_name} must be at most {maximum} (got {value})"

        return True, ""

    def _validate_ordered(self, low: Optional[Number], high: Optional[Number],
                          low_name: str, high_name: str) -> Tuple[bool, str]:
        """Validate that ``low <= high`` when both are set."""
        if low is None or high is None:
            return True, ""

        if low > high:
            return False, f"{low_name} ({low}) must not exceed {high_name} ({high})"

        return True, ""

    def _validate_choice(self, value: Optional[str], choices: Iterable[str],
                         field_name: str = "Value") -> Tuple[bool, str]:
        """Validate that an optional string is one of ``choices``."""
        if value is None:
            return True, ""

        choices = list(choices)
        if value not in choices:
            return False, f"{field_name} must be one of: {', '.join(choices)}"

        return True, ""

    def _validate_string_not_empty(self, value: Optional[str], field_name: str = "Value") -> Tuple[bool, str]:
        """
        Validate that a string value is not empty or whitespace-only.

        Args:
            value: String value to validate
            field_name: Human-readable field name for error messages

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not value or not value.strip():
            return False, f"{field_name} is required"

        return True, ""

    @staticmethod
    def _first_error(*results: Tuple[bool, str]) -> Tuple[bool, str]:
        """Return the first failing result, or ``(True, "")``."""
        for is_valid, error_msg in results:
            if not is_valid:
                return False, error_msg
        return True, ""
