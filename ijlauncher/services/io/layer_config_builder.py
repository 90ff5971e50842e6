"""
Layer configuration builder.

Turns the source of a detection job (single image, tiled folder or image
list) into a :class:`LayerConfig` and persists it as JSON beside the job's
results, e.g. ``<output>/holes_pixels/holes_<file>.json``.
"""

import getpass
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from ijlauncher.errors import ArtifactWriteError, DimensionProbeError
from ijlauncher.models.layer_config import LayerConfig, LayerKind, LayersMode
from ijlauncher.services.io.image_info import probe_image_size

logger = logging.getLogger(__name__)

X_PATTERN = re.compile(r"_X(\d+)")
Y_PATTERN = re.compile(r"_Y(\d+)")

# Image lists are not probed; every list gets this size
IMAGE_LIST_SIZE = 256

RESULT_FOLDERS = {
    LayerKind.POINTS: "points",
    LayerKind.PIXELS: "holes_pixels",
}

PathLike = Union[str, Path]
SizeProbe = Callable[[PathLike], Tuple[int, int]]


@dataclass(frozen=True)
class TiledFolder:
    """Summary of a folder of tiles named ``..._X<col>..._Y<row>...``."""
    representative: Path
    template: str
    x_tiles: int
    y_tiles: int


def scan_tiled_folder(folder: PathLike) -> Optional[TiledFolder]:
    """
    Collect tile coordinates from the file names of a folder.

    Files without both an ``_X<n>`` and a ``_Y<n>`` part are ignored, as are
    sub-folders. The first matching file in name order is used as the
    representative tile and as the base of the name template.

    Args:
        folder: Folder to scan

    Returns:
        TiledFolder summary, or None if no file carries both coordinates

    Raises:
        DimensionProbeError: If the folder cannot be listed
    """
    try:
        entries = sorted(
            (entry for entry in os.scandir(folder) if entry.is_file()),
            key=lambda entry: entry.name,
        )
    except OSError as e:
        raise DimensionProbeError(f"Cannot list folder {folder}: {e}") from e

    x_values: List[int] = []
    y_values: List[int] = []
    representative = None
    template = None

    for entry in entries:
        x_match = X_PATTERN.search(entry.name)
        y_match = Y_PATTERN.search(entry.name)
        if x_match is None or y_match is None:
            continue

        x_values.append(int(x_match.group(1)))
        y_values.append(int(y_match.group(1)))

        if representative is None:
            representative = Path(entry.path)
            template = X_PATTERN.sub("_X{x}", entry.name, count=1)
            template = Y_PATTERN.sub("_Y{y}", template, count=1)

    if representative is None:
        return None

    return TiledFolder(
        representative=representative,
        template=template,
        x_tiles=max(x_values) - min(x_values) + 1,
        y_tiles=max(y_values) - min(y_values) + 1,
    )


def default_author() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class LayerConfigBuilder:
    """Builds and writes layer configurations for detection results."""

    def __init__(self, probe: SizeProbe = probe_image_size, author: Optional[str] = None):
        """
        Args:
            probe: Callable returning (width, height) of an image file
            author: Author recorded in the configuration (default: current user)
        """
        self._probe = probe
        self._author = author

    def measure(self, source_path: PathLike, mode: LayersMode) -> Tuple[int, int, str]:
        """
        Compute tile size, overall size and display file name of a source.

        Returns:
            (tile_size, size, filename)

        Raises:
            DimensionProbeError: If dimensions cannot be determined
        """
        mode = LayersMode(mode)
        source = Path(source_path)

        if mode == LayersMode.IMAGE_LIST:
            return IMAGE_LIST_SIZE, IMAGE_LIST_SIZE, source.name

        if mode == LayersMode.SINGLE_IMAGE:
            width, height = self._probe(source)
            tile_size = max(width, height)
            return tile_size, tile_size, source.name

        tiled = scan_tiled_folder(source)
        if tiled is None:
            raise DimensionProbeError(f"No tiles named _X<n>/_Y<n> found in {source}")

        width, height = self._probe(tiled.representative)
        tile_size = max(width, height)
        size = max(width * tiled.x_tiles, height * tiled.y_tiles)
        logger.debug("Folder %s: %dx%d tiles of %dx%d", source, tiled.x_tiles, tiled.y_tiles, width, height)
        return tile_size, size, tiled.template

    def build(self, source_path: PathLike, destination_path: PathLike,
              mode: LayersMode, layer_type: Union[LayerKind, str]) -> LayerConfig:
        """
        Build the layer configuration of a detection job.

        Args:
            source_path: Image, tile folder or image list the job ran on
            destination_path: Output folder of the job
            mode: How ``source_path`` is interpreted
            layer_type: ``points`` (object detection) or ``pixels`` (holes)

        Returns:
            The layer configuration

        Raises:
            DimensionProbeError: If image dimensions cannot be read
            ValueError: If ``layer_type`` is unknown
        """
        kind = LayerKind(layer_type)
        tile_size, size, filename = self.measure(source_path, mode)
        url_name = filename.replace(" ", "_")
        author = self._author or default_author()

        if kind == LayerKind.POINTS:
            config = LayerConfig(
                name=f"centroid_{filename}",
                author=author,
                kind=kind,
                url=f"points_{url_name}.csv",
                tile_size=tile_size,
                size=size,
            )
        else:
            config = LayerConfig(
                name=f"holes_{filename}",
                author=author,
                kind=kind,
                url=f"holes_{url_name}.txt",
                tile_size=tile_size,
                size=size,
                norm=1,
            )

        logger.info("Built %s layer '%s' for %s (output %s)", config.config_type, config.name,
                    source_path, destination_path)
        return config

    @staticmethod
    def artifact_path(config: LayerConfig, destination_path: PathLike) -> Path:
        """Where the JSON file of ``config`` lives inside an output folder."""
        return Path(destination_path) / RESULT_FOLDERS[config.kind] / f"{config.name}.json"

    def write(self, config: LayerConfig, destination_path: PathLike) -> Path:
        """
        Write ``config`` as pretty-printed UTF-8 JSON.

        Returns:
            Path of the written file

        Raises:
            ArtifactWriteError: If the file cannot be written
        """
        json_path = self.artifact_path(config, destination_path)
        try:
            json_path.parent.mkdir(parents=True, exist_ok=True)
            with open(json_path, "w", encoding="utf-8") as file:
                json.dump(config.to_dict(), file, indent=2, ensure_ascii=False)
        except OSError as e:
            raise ArtifactWriteError(f"Can't save JSON configuration file {json_path}: {e}") from e

        logger.info("Layer configuration saved to %s", json_path)
        return json_path

    def build_and_write(self, source_path: PathLike, destination_path: PathLike,
                        mode: LayersMode, layer_type: Union[LayerKind, str]) -> Tuple[LayerConfig, Path]:
        config = self.build(source_path, destination_path, mode, layer_type)
        return config, self.write(config, destination_path)
