"""Histogram equalization helpers."""

from .equalization_algorithms import (  # noqa: F401
    CLAHEEqualization,
    GlobalEqualization,
    HistogramEqualizer,
    to_grayscale,
)
from .equalization_config import EqualizationConfig, EqualizationType, NodeSettings  # noqa: F401
from .errors import (  # noqa: F401
    EqualizationError,
    MalformedFrameError,
    ProcessingError,
    UnsupportedEncodingError,
)

__all__ = [
    "CLAHEEqualization",
    "GlobalEqualization",
    "HistogramEqualizer",
    "to_grayscale",
    "EqualizationConfig",
    "EqualizationType",
    "NodeSettings",
    "EqualizationError",
    "MalformedFrameError",
    "ProcessingError",
    "UnsupportedEncodingError",
]
