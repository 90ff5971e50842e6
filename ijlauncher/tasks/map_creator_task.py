import re
from pathlib import Path
from typing import Optional

from ijlauncher.errors import JobValidationError
from ijlauncher.models.job_parameters import MapCreatorParameters
from ijlauncher.tasks.arguments import encode_fields, format_field
from ijlauncher.tasks.base_task import Task

_ILLEGAL_CHARACTERS = re.compile(r'[/\\?<>:*|"\x00-\x1f\x80-\x9f]')
_RESERVED_NAMES = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_MAX_NAME_BYTES = 255


def sanitize_filename(name: Optional[str]) -> str:
    """Strip characters and names that are not valid in a file name on any platform."""
    if not name:
        return ""
    cleaned = _ILLEGAL_CHARACTERS.sub("", name)
    if cleaned in (".", "..") or _RESERVED_NAMES.match(cleaned):
        return ""
    cleaned = cleaned.rstrip(". ")
    while len(cleaned.encode("utf-8")) > _MAX_NAME_BYTES:
        cleaned = cleaned[:-1]
    return cleaned


class MapCreatorTask(Task):
    """Builds a tiled map (or a map layer) from an image, a stack or a folder of images."""

    NAME = "ImageJ MapCreator"
    MACRO = "MapCreator"

    def __init__(self, details: str, is_map: bool, is_folder: bool, runner, parent=None):
        super().__init__(details, runner, parent)
        self.is_map = is_map
        self.is_folder = is_folder
        self.CUSTOM_ACTION_CAPTION = "Load map to workspace" if is_map else "Add layer to a map in workspace"

    def map_name(self, parameters: MapCreatorParameters) -> str:
        return sanitize_filename(parameters.map_name)

    def encode_arguments(self, source_path: str, parameters: MapCreatorParameters) -> str:
        map_name = self.map_name(parameters)
        if not map_name:
            raise JobValidationError(f"'{parameters.map_name}' is not a valid map name")

        options = (
            f"map=[{map_name}] "
            f"pixel={format_field(parameters.pixel_tiles)} "
            f"maximum={format_field(parameters.maximum_zoom)} "
            f"slice={format_field(parameters.used_slice)} "
        )
        if parameters.use_all_slices:
            options += "use "
        if self.is_map:
            options += "create "
        options += f"choose={parameters.output_folder}"

        return encode_fields([
            self.is_folder,
            parameters.initial_slice,
            parameters.last_slice,
            parameters.scale,
            source_path,
            options,
            parameters.merge_all_slices,
        ])

    def _on_process_success(self) -> Optional[str]:
        name = self.map_name(self.parameters)
        output = Path(self.parameters.output_folder) / name
        if self.is_map:
            return str(output / f"{name}.json")
        return str(output / f"{name}_tiles" / f"{name}_tiles.json")
