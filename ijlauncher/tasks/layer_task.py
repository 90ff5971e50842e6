from functools import partial
from typing import Optional

from ijlauncher.models.layer_config import LayerKind, LayersMode
from ijlauncher.services.io.layer_config_builder import LayerConfigBuilder
from ijlauncher.tasks.base_task import Task


class LayerTask(Task):
    """
    Task whose result is a map layer.

    On success a layer configuration describing the macro's output is built
    from the source and written beside the results; its path is the task's
    artifact. Building scans folders and reads image headers, so it runs on
    the post-processing worker.
    """

    LAYER_KIND: LayerKind = LayerKind.POINTS
    CUSTOM_ACTION_CAPTION = "Add layer to a map in workspace"

    def __init__(self, details: str, mode: LayersMode, runner, parent=None,
                 builder: Optional[LayerConfigBuilder] = None):
        super().__init__(details, runner, parent)
        self.mode = LayersMode(mode)
        self.builder = builder or LayerConfigBuilder()
        self.layer_config = None

    def _post_process_job(self):
        return partial(self.builder.build_and_write, self.source_path,
                       self.parameters.output_folder, self.mode, self.LAYER_KIND)

    def _on_post_process_result(self, value) -> Optional[str]:
        config, json_path = value
        self.layer_config = config
        return str(json_path)
