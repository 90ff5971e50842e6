from pathlib import Path

from ijlauncher.models.job_parameters import CropParameters
from ijlauncher.tasks.arguments import encode_fields
from ijlauncher.tasks.base_task import Task


class CropTask(Task):
    """Cuts a big stitched image into tiles of a given size."""

    NAME = "ImageJ Image Cropping"
    MACRO = "croppingBigSTiched"

    def encode_arguments(self, source_path: str, parameters: CropParameters) -> str:
        return encode_fields([
            source_path,
            Path(source_path).stem,
            parameters.tile_size,
            parameters.height,
            parameters.width,
            parameters.x,
            parameters.y,
            parameters.output_folder,
        ])
