"""
Macro argument encoding.

ImageJ receives a single ``-batchpath`` argument string whose positional
fields are joined with ``#``. Unset values are sent as ``[]``, which the
macros read as "use your default".
"""

from enum import IntEnum
from typing import Any, Iterable

from ijlauncher.errors import JobValidationError

DELIMITER = "#"
PLACEHOLDER = "[]"


def format_field(value: Any) -> str:
    """Render one field the way the macros parse it."""
    if value is None:
        return PLACEHOLDER
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, IntEnum):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value)
    return text if text.strip() else PLACEHOLDER


def encode_fields(fields: Iterable[Any]) -> str:
    """
    Join fields into a macro argument string.

    Raises:
        JobValidationError: If a field contains the delimiter
    """
    parts = []
    for field in fields:
        text = format_field(field)
        if DELIMITER in text:
            raise JobValidationError(f"'{text}' must not contain '{DELIMITER}'")
        parts.append(text)
    return DELIMITER.join(parts)


def decode_fields(arg_string: str) -> list:
    """Split an argument string back into its raw fields."""
    return arg_string.split(DELIMITER)
