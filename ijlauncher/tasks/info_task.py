from typing import List, Tuple

from ijlauncher.models.job_parameters import InfoParameters
from ijlauncher.services.processing.progress_parser import PROGRESS_PATTERN
from ijlauncher.tasks.arguments import encode_fields
from ijlauncher.tasks.base_task import Task


class InfoTask(Task):
    """
    Reports the metadata of an image (dimensions, slices, calibration).

    Every line the macro prints that is not a progress report is kept in
    ``info_lines`` and returned in ``TaskResult.details``.
    """

    NAME = "ImageJ Image Info"
    MACRO = "ImageInfo"

    def __init__(self, details: str, runner, parent=None):
        super().__init__(details, runner, parent)
        self.info_lines: List[str] = []
        self._partial = ""

    def encode_arguments(self, source_path: str, parameters: InfoParameters) -> str:
        return encode_fields([source_path, parameters.output_folder])

    def _handle_output(self, text: str):
        # Chunks do not follow line boundaries
        lines = (self._partial + text).split("\n")
        self._partial = lines.pop()
        for line in lines:
            self._collect(line)

    def _collect(self, line: str):
        line = line.strip()
        if line and not PROGRESS_PATTERN.fullmatch(line):
            self.info_lines.append(line)

    def _on_process_success(self):
        if self._partial:
            self._collect(self._partial)
            self._partial = ""
        return None

    def _result_details(self) -> Tuple[str, ...]:
        return tuple(self.info_lines)
