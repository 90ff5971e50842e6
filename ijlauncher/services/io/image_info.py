"""
Image metadata helpers backed by Pillow.

Only the image header is read: ``Image.open`` is lazy and neither helper
touches pixel data, so Pillow's decompression-bomb limit is lifted while
the header is read.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Tuple, Union

from PIL import Image, UnidentifiedImageError

from ijlauncher.errors import DimensionProbeError

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = (".tif", ".tiff")

_PIXEL_LIMIT_LOCK = threading.Lock()


@contextmanager
def open_header(image_path: Union[str, Path]):
    """Open an image for header access, without the pixel-count limit."""
    with _PIXEL_LIMIT_LOCK:
        limit = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            with Image.open(image_path) as image:
                yield image
        finally:
            Image.MAX_IMAGE_PIXELS = limit


def probe_image_size(image_path: Union[str, Path]) -> Tuple[int, int]:
    """
    Read the width and height of an image.

    Args:
        image_path: Image file to inspect

    Returns:
        (width, height) in pixels

    Raises:
        DimensionProbeError: If the file is missing or not a readable image
    """
    try:
        with open_header(image_path) as image:
            return image.size
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
        raise DimensionProbeError(f"Cannot read dimensions of {image_path}: {e}") from e


def count_slices(image_path: Union[str, Path]) -> int:
    """
    Number of slices (pages) of an image.

    Only TIFF stacks hold more than one slice; every other file, and any TIFF
    that cannot be read, counts as a single slice.
    """
    if not str(image_path).lower().endswith(TIFF_SUFFIXES):
        return 1

    try:
        with open_header(image_path) as image:
            return max(1, getattr(image, "n_frames", 1))
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("Cannot count slices of %s: %s", image_path, e)
        return 1
