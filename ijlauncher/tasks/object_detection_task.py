from ijlauncher.models.job_parameters import ObjectDetectionParameters
from ijlauncher.models.layer_config import LayerKind
from ijlauncher.tasks.arguments import encode_fields
from ijlauncher.tasks.layer_task import LayerTask


class ObjectDetectionTask(LayerTask):
    """Detects round objects and exports their centroids as a points layer."""

    NAME = "ImageJ Object Detector"
    MACRO = "ObjectDetector"
    LAYER_KIND = LayerKind.POINTS

    def encode_arguments(self, source_path: str, parameters: ObjectDetectionParameters) -> str:
        return encode_fields([
            self.mode,
            source_path,
            parameters.radius_min,
            parameters.radius_max,
            parameters.radius_by,
            parameters.threshold_method,
            parameters.minimum,
            parameters.maximum,
            parameters.fraction,
            parameters.tolerance,
            parameters.output_folder,
        ])
