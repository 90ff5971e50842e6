"""
Job parameter value objects.

One frozen dataclass per job type. Instances are built once from the values
of the options dialog (:meth:`from_form`) and handed to ``Task.run()``; they
are never mutated afterwards. Optional numeric fields left empty in the form
are ``None`` and reach ImageJ as the ``[]`` placeholder.
"""

import typing
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from ijlauncher.models.job_validation_mixin import JobValidationMixin

THRESHOLD_METHODS = [
    "Default",
    "Huang",
    "Intermodes",
    "IsoData",
    "Li",
    "MaxEntropy",
    "Mean",
    "MinError(I)",
    "Minimum",
    "Moments",
    "Otsu",
    "Percentile",
    "RenyiEntropy",
    "Shanbhag",
    "Triangle",
    "Yen",
]

CONVERSION_FORMATS = ["tiff", "png", "jpeg", "bmp", "gif"]


def _coerce(value: Any, target: Any) -> Any:
    """Convert a raw form value to the dataclass field type."""
    if typing.get_origin(target) is typing.Union:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        target = next(arg for arg in typing.get_args(target) if arg is not type(None))

    if value is None:
        return None
    if target is bool:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if target is int:
        return int(float(value)) if isinstance(value, str) else int(value)
    if target is float:
        return float(value)
    if target is str:
        return str(value).strip()
    return value


class JobParameters(JobValidationMixin):
    """Shared behaviour of every ``*Parameters`` dataclass."""

    output_folder: Optional[str]

    # Field descriptions consumed by the options dialog
    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = []

    @classmethod
    def from_form(cls, values: Dict[str, Any]):
        """
        Build parameters from raw form values.

        Keys that are missing from ``values`` keep their dataclass default;
        empty strings become ``None``.

        Args:
            values: Mapping of field name to widget value

        Returns:
            New parameters instance
        """
        hints = typing.get_type_hints(cls)
        kwargs = {}
        for field in fields(cls):
            if field.name in values:
                kwargs[field.name] = _coerce(values[field.name], hints[field.name])
        return cls(**kwargs)

    @classmethod
    def form_fields(cls) -> List[Dict[str, Any]]:
        return [dict(field) for field in cls.FORM_FIELDS]

    def has_output_folder(self) -> bool:
        return bool(self.output_folder and str(self.output_folder).strip())

    def validate(self) -> Tuple[bool, str]:
        return self._validate_directory_exists(self.output_folder, "Output folder")


@dataclass(frozen=True)
class MapCreatorParameters(JobParameters):
    """Options of the MapCreator macro."""

    output_folder: Optional[str] = None
    map_name: Optional[str] = None
    initial_slice: Optional[int] = 1
    last_slice: Optional[int] = 1
    scale: Optional[float] = 1.0
    pixel_tiles: Optional[str] = "256"
    maximum_zoom: Optional[int] = 5
    used_slice: Optional[int] = 1
    use_all_slices: bool = False
    merge_all_slices: bool = False

    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = [
        {'name': 'initial_slice', 'display_name': 'Initial slice', 'type': 'int', 'default': 1, 'min': 1,
         'group': 'stack'},
        {'name': 'last_slice', 'display_name': 'Last slice', 'type': 'int', 'default': 1, 'min': 1,
         'group': 'stack'},
        {'name': 'scale', 'display_name': 'Scale', 'type': 'float', 'default': 1.0, 'min': 0.0, 'max': 1.0,
         'step': 0.001, 'decimals': 3, 'group': 'stack'},
        {'name': 'map_name', 'display_name': 'Map name', 'type': 'str', 'default': ''},
        {'name': 'pixel_tiles', 'display_name': 'Pixel tiles dimension', 'type': 'str', 'default': '256'},
        {'name': 'maximum_zoom', 'display_name': 'Maximum zoom', 'type': 'int', 'default': 5, 'min': 0, 'max': 8},
        {'name': 'use_all_slices', 'display_name': 'Use all slice', 'type': 'bool', 'default': False},
        {'name': 'merge_all_slices', 'display_name': 'Merge all slice', 'type': 'bool', 'default': False},
        {'name': 'used_slice', 'display_name': 'Slice to be used', 'type': 'int', 'default': 1, 'min': 1},
    ]

    def validate(self) -> Tuple[bool, str]:
        is_valid, error_msg = super().validate()
        if not is_valid:
            return False, error_msg

        if self.use_all_slices and self.merge_all_slices:
            return False, "'Use all slice' and 'Merge all slice' cannot both be selected"

        return self._first_error(
            self._validate_string_not_empty(self.map_name, "Map name"),
            self._validate_number_range(self.initial_slice, "Initial slice", minimum=1),
            self._validate_number_range(self.last_slice, "Last slice", minimum=1),
            self._validate_ordered(self.initial_slice, self.last_slice, "Initial slice", "Last slice"),
            self._validate_number_range(self.scale, "Scale", minimum=0, maximum=1),
            self._validate_number_range(self.maximum_zoom, "Maximum zoom", minimum=0, maximum=8),
            self._validate_number_range(self.used_slice, "Slice to be used", minimum=1),
        )


@dataclass(frozen=True)
class ObjectDetectionParameters(JobParameters):
    """Options of the ObjectDetector macro."""

    output_folder: Optional[str] = None
    radius_min: Optional[int] = 1
    radius_max: Optional[int] = 5
    radius_by: Optional[int] = 1
    threshold_method: str = "Moments"
    minimum: Optional[int] = 1
    maximum: Optional[int] = -1
    fraction: Optional[float] = 0.5
    tolerance: Optional[int] = 0

    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = [
        {'name': 'radius_min', 'display_name': 'Minimum radius', 'type': 'int', 'default': 1, 'min': 1, 'max': 15},
        {'name': 'radius_max', 'display_name': 'Maximum radius', 'type': 'int', 'default': 5, 'min': 1, 'max': 15},
        {'name': 'radius_by', 'display_name': 'By', 'type': 'int', 'default': 1, 'min': 0},
        {'name': 'threshold_method', 'display_name': 'Threshold method', 'type': 'choice',
         'default': 'Moments', 'choices': THRESHOLD_METHODS},
        {'name': 'minimum', 'display_name': 'Minimum', 'type': 'int', 'default': 1, 'min': 0},
        {'name': 'maximum', 'display_name': 'Maximum', 'type': 'int', 'default': -1, 'min': -1},
        {'name': 'fraction', 'display_name': 'Fraction', 'type': 'float', 'default': 0.5, 'min': 0.0,
         'max': 1.0, 'step': 0.001, 'decimals': 3},
        {'name': 'tolerance', 'display_name': 'Tolerance', 'type': 'int', 'default': 0, 'min': 0},
    ]

    def validate(self) -> Tuple[bool, str]:
        is_valid, error_msg = super().validate()
        if not is_valid:
            return False, error_msg

        return self._first_error(
            self._validate_number_range(self.radius_min, "Minimum radius", minimum=1, maximum=15),
            self._validate_number_range(self.radius_max, "Maximum radius", minimum=1, maximum=15),
            self._validate_ordered(self.radius_min, self.radius_max, "Minimum radius", "Maximum radius"),
            self._validate_number_range(self.radius_by, "By", minimum=0),
            self._validate_choice(self.threshold_method, THRESHOLD_METHODS, "Threshold method"),
            self._validate_number_range(self.minimum, "Minimum", minimum=0),
            self._validate_number_range(self.maximum, "Maximum", minimum=-1),
            self._validate_number_range(self.fraction, "Fraction", minimum=0, maximum=1),
            self._validate_number_range(self.tolerance, "Tolerance", minimum=0),
        )


@dataclass(frozen=True)
class HolesDetectionParameters(JobParameters):
    """Options of the HolesDetector macro."""

    output_folder: Optional[str] = None
    radius: Optional[int] = 10
    threshold: Optional[int] = 250

    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = [
        {'name': 'radius', 'display_name': 'Radius of median filter', 'type': 'int', 'default': 10, 'min': 0},
        {'name': 'threshold', 'display_name': 'Threshold', 'type': 'int', 'default': 250, 'min': 0, 'max': 255},
    ]

    def validate(self) -> Tuple[bool, str]:
        is_valid, error_msg = super().validate()
        if not is_valid:
            return False, error_msg

        return self._first_error(
            self._validate_number_range(self.radius, "Radius", minimum=0),
            self._validate_number_range(self.threshold, "Threshold", minimum=0, maximum=255),
        )


@dataclass(frozen=True)
class CropParameters(JobParameters):
    """Options of the mosaic cropping macro."""

    output_folder: Optional[str] = None
    tile_size: Optional[int] = 10
    height: Optional[int] = 10
    width: Optional[int] = 10
    x: int = 0
    y: int = 0

    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = [
        {'name': 'tile_size', 'display_name': 'Tile size', 'type': 'int', 'default': 10, 'min': 0, 'max': 4000},
        {'name': 'height', 'display_name': 'Original image height', 'type': 'int', 'default': 10, 'min': 0},
        {'name': 'width', 'display_name': 'Original image width', 'type': 'int', 'default': 10, 'min': 0},
        {'name': 'x', 'display_name': 'X0', 'type': 'int', 'default': 0, 'min': 0},
        {'name': 'y', 'display_name': 'Y0', 'type': 'int', 'default': 0, 'min': 0},
    ]

    @classmethod
    def from_form(cls, values: Dict[str, Any]) -> "CropParameters":
        # The origin is never sent as a placeholder: an empty field means 0
        values = dict(values)
        for key in ("x", "y"):
            if key in values and (values[key] is None or str(values[key]).strip() == ""):
                values[key] = 0
        return super().from_form(values)

    def validate(self) -> Tuple[bool, str]:
        is_valid, error_msg = super().validate()
        if not is_valid:
            return False, error_msg

        return self._first_error(
            self._validate_number_range(self.tile_size, "Tile size", minimum=0, maximum=4000),
            self._validate_number_range(self.height, "Original image height", minimum=0),
            self._validate_number_range(self.width, "Original image width", minimum=0),
            self._validate_number_range(self.x, "X0", minimum=0),
            self._validate_number_range(self.y, "Y0", minimum=0),
        )


@dataclass(frozen=True)
class ConvertParameters(JobParameters):
    """Options of the format conversion macro."""

    output_folder: Optional[str] = None
    output_format: str = "tiff"

    FORM_FIELDS: ClassVar[List[Dict[str, Any]]] = [
        {'name': 'output_format', 'display_name': 'Output format', 'type': 'choice', 'default': 'tiff',
         'choices': CONVERSION_FORMATS},
    ]

    def validate(self) -> Tuple[bool, str]:
        is_valid, error_msg = super().validate()
        if not is_valid:
            return False, error_msg

        return self._validate_choice(self.output_format, CONVERSION_FORMATS, "Output format")


@dataclass(frozen=True)
class InfoParameters(JobParameters):
    """The image information macro only needs somewhere to write its report."""

    output_folder: Optional[str] = None
