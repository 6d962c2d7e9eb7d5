"""Configuration snapshots for histogram equalization."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping, Tuple, Union

# Parameter ranges, also used for the ROS parameter descriptors
TILE_SIZE_MIN = 1
TILE_SIZE_MAX = 100
CLIP_LIMIT_MIN = 1.0
CLIP_LIMIT_MAX = 255.0


class EqualizationType(str, Enum):
    ADAPTIVE_CLAHE = "AdaptiveCLAHE"
    GLOBAL_EQUALIZE = "GlobalEqualize"

    @classmethod
    def parse(cls, value: Union["EqualizationType", str, int]) -> "EqualizationType":
        """Accept enum members, names, short aliases and the legacy integer codes."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid histogram equalization type: {value!r}")
        if isinstance(value, int):
            codes = {0: cls.ADAPTIVE_CLAHE, 1: cls.GLOBAL_EQUALIZE}
            if value in codes:
                return codes[value]
            raise ValueError(f"Invalid histogram equalization type code: {value}")
        if isinstance(value, str):
            key = value.strip().lower()
            aliases = {
                "adaptiveclahe": cls.ADAPTIVE_CLAHE,
                "clahe": cls.ADAPTIVE_CLAHE,
                "globalequalize": cls.GLOBAL_EQUALIZE,
                "equalize_hist": cls.GLOBAL_EQUALIZE,
                "equalizehist": cls.GLOBAL_EQUALIZE,
            }
            if key in aliases:
                return aliases[key]
        raise ValueError(
            f"Invalid histogram equalization type: {value!r} "
            f"(expected one of {[t.value for t in cls]})"
        )


@dataclass(frozen=True)
class EqualizationConfig:
    """Immutable snapshot of the reconfigurable parameters.

    Updates never mutate a snapshot; use ``updated`` to get a new, validated one.
    """

    equalization_type: EqualizationType = EqualizationType.ADAPTIVE_CLAHE
    clahe_tile_size_x: int = 2
    clahe_tile_size_y: int = 2
    clahe_clip_limit: float = 20.0
    use_camera_info: bool = False

    def __post_init__(self):
        object.__setattr__(self, "equalization_type", EqualizationType.parse(self.equalization_type))
        for name in ("clahe_tile_size_x", "clahe_tile_size_y"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer (got {type(value).__name__})")
            if not TILE_SIZE_MIN <= value <= TILE_SIZE_MAX:
                raise ValueError(f"{name} must be in [{TILE_SIZE_MIN}, {TILE_SIZE_MAX}] (got {value})")

        clip = self.clahe_clip_limit
        if isinstance(clip, bool) or not isinstance(clip, (int, float)):
            raise ValueError(f"clahe_clip_limit must be a number (got {type(clip).__name__})")
        clip = float(clip)
        if not CLIP_LIMIT_MIN <= clip <= CLIP_LIMIT_MAX:
            raise ValueError(f"clahe_clip_limit must be in [{CLIP_LIMIT_MIN}, {CLIP_LIMIT_MAX}] (got {clip})")
        object.__setattr__(self, "clahe_clip_limit", clip)

        if not isinstance(self.use_camera_info, bool):
            raise ValueError("use_camera_info must be a boolean")

    @property
    def tile_grid_size(self) -> Tuple[int, int]:
        return (self.clahe_tile_size_x, self.clahe_tile_size_y)

    def updated(self, **overrides: Any) -> "EqualizationConfig":
        return replace(self, **overrides)

    @classmethod
    def from_parameters(cls, values: Mapping[str, Any]) -> "EqualizationConfig":
        """Build a snapshot from a parameter name -> value mapping.

        ``histogram_equalization_type`` maps onto ``equalization_type``; unknown keys are ignored.
        """
        return cls().merged(values)

    def merged(self, values: Mapping[str, Any]) -> "EqualizationConfig":
        overrides = {}
        names = {f.name for f in fields(self)}
        for key, value in values.items():
            if key == "histogram_equalization_type":
                key = "equalization_type"
            if key in names:
                overrides[key] = value
        return self.updated(**overrides)

    def as_parameters(self) -> dict:
        return {
            "histogram_equalization_type": self.equalization_type.value,
            "clahe_tile_size_x": self.clahe_tile_size_x,
            "clahe_tile_size_y": self.clahe_tile_size_y,
            "clahe_clip_limit": self.clahe_clip_limit,
            "use_camera_info": self.use_camera_info,
        }


@dataclass(frozen=True)
class NodeSettings:
    """Startup parameters, fixed for the lifetime of the node."""

    queue_size: int = 3
    debug_view: bool = False
    use_opencl: bool = True
    always_subscribe: bool = False
    connection_check_period: float = 0.5  # seconds

    def __post_init__(self):
        if isinstance(self.queue_size, bool) or not isinstance(self.queue_size, int) or self.queue_size < 1:
            raise ValueError(f"queue_size must be a positive integer (got {self.queue_size!r})")
        if not self.connection_check_period > 0:
            raise ValueError(
                f"connection_check_period must be positive (got {self.connection_check_period!r})"
            )
