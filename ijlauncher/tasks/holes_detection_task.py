from ijlauncher.models.job_parameters import HolesDetectionParameters
from ijlauncher.models.layer_config import LayerKind
from ijlauncher.tasks.arguments import encode_fields
from ijlauncher.tasks.layer_task import LayerTask


class HolesDetectionTask(LayerTask):
    """Detects holes (bright regions) and exports them as a pixels layer."""

    NAME = "ImageJ Holes Detection"
    MACRO = "HolesDetector"
    LAYER_KIND = LayerKind.PIXELS

    def encode_arguments(self, source_path: str, parameters: HolesDetectionParameters) -> str:
        return encode_fields([
            self.mode,
            source_path,
            parameters.radius,
            parameters.threshold,
            parameters.output_folder,
        ])
