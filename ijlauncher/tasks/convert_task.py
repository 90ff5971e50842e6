from pathlib import Path

from ijlauncher.models.job_parameters import ConvertParameters
from ijlauncher.tasks.arguments import encode_fields
from ijlauncher.tasks.base_task import Task


class ConvertTask(Task):
    """Saves an image in another file format."""

    NAME = "ImageJ Format Conversion"
    MACRO = "Converter"

    def encode_arguments(self, source_path: str, parameters: ConvertParameters) -> str:
        return encode_fields([
            source_path,
            Path(source_path).stem,
            parameters.output_format,
            parameters.output_folder,
        ])
