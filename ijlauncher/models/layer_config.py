"""Layer configuration records written beside detection results."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List

POINTS_BOUNDS = [[-256, 0], [0, 256]]


class LayersMode(IntEnum):
    """How the source path of a job is interpreted (also sent to the macros)."""
    SINGLE_IMAGE = 0
    FOLDER = 1
    IMAGE_LIST = 2


class LayerKind(str, Enum):
    """Kind of layer produced by a detection job."""
    POINTS = "points"
    PIXELS = "pixels"


@dataclass(frozen=True)
class LayerConfig:
    """
    Description of a map layer.

    Attributes:
        name: Display name (``centroid_<file>`` or ``holes_<file>``)
        author: User that produced the layer
        kind: Points (objects) or pixels (holes)
        url: Data file, relative to the JSON file
        tile_size: Size in pixels of one tile
        size: Size in pixels of the whole layer
        norm: Normalisation factor of a pixels layer
    """

    name: str
    author: str
    kind: LayerKind
    url: str
    tile_size: int
    size: int
    norm: float = 1
    bounds: List[List[int]] = field(default_factory=lambda: [list(b) for b in POINTS_BOUNDS])

    @property
    def config_type(self) -> str:
        return "csvTiles" if self.kind == LayerKind.POINTS else "pixelsLayer"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON layout understood by the map viewer."""
        if self.kind == LayerKind.POINTS:
            return {
                "name": self.name,
                "author": self.author,
                "type": self.config_type,
                "url": self.url,
                "options": {
                    "tileSize": self.tile_size,
                    "size": self.size,
                    "bounds": [list(b) for b in self.bounds],
                    "localRS": True,
                    "grid": True,
                    "color": "blue",
                    "fillColor": "blue",
                    "radius": 5,
                },
            }
        return {
            "name": self.name,
            "author": self.author,
            "type": self.config_type,
            "role": "holes",
            "tileSize": self.tile_size,
            "size": self.size,
            "norm": self.norm,
            "pixelsUrlTemplate": self.url,
        }
