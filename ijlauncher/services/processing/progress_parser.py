"""Progress extraction from ImageJ macro output."""

import re
from typing import Optional, Union

PROGRESS_PATTERN = re.compile(r"(\d+)/(\d+)")


def parse_progress(chunk: Union[str, bytes]) -> Optional[float]:
    """
    Extract a percentage from a chunk of process output.

    Macros print their progress as ``current/total``. A chunk may hold several
    such lines; the last one wins. A match split across two chunks is lost,
    which is acceptable for a progress indicator.

    Args:
        chunk: Raw stdout data

    Returns:
        Percentage in [0, 100], or None if the chunk carries no usable progress
    """
    if isinstance(chunk, bytes):
        chunk = chunk.decode("utf-8", errors="replace")

    matches = PROGRESS_PATTERN.findall(chunk)
    if not matches:
        return None

    current, total = (int(group) for group in matches[-1])
    if total == 0:
        return None

    percent = 100.0 * current / total
    return max(0.0, min(100.0, percent))
