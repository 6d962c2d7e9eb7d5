import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Union

import cv2
import numpy as np

from image_equalization.equalization.equalization_config import EqualizationConfig, EqualizationType
from image_equalization.equalization.errors import MalformedFrameError, ProcessingError, UnsupportedEncodingError

Frame = Union[np.ndarray, cv2.UMat]

# Supported input encodings and their luma conversion (None: already single channel)
GRAYSCALE_CONVERSIONS: Dict[str, Optional[int]] = {
    "bgr8": cv2.COLOR_BGR2GRAY,
    "rgb8": cv2.COLOR_RGB2GRAY,
    "mono8": None,
}


def check_frame(image: np.ndarray, encoding: str) -> None:
    """Raise UnsupportedEncodingError unless the array is 8-bit and shaped like its encoding."""
    if encoding not in GRAYSCALE_CONVERSIONS:
        raise UnsupportedEncodingError(encoding, f"expected one of {sorted(GRAYSCALE_CONVERSIONS)}")
    if image.dtype != np.uint8:
        raise UnsupportedEncodingError(encoding, f"expected 8-bit data, got {image.dtype}")

    if GRAYSCALE_CONVERSIONS[encoding] is None:
        single_channel = image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1)
        if not single_channel:
            raise UnsupportedEncodingError(encoding, f"expected 1 channel, got shape {image.shape}")
    elif image.ndim != 3 or image.shape[2] != 3:
        raise UnsupportedEncodingError(encoding, f"expected 3 channels, got shape {image.shape}")


def check_buffer(encoding: str, height: int, width: int, step: int, size: int) -> None:
    """Raise MalformedFrameError unless a raw image buffer holds height rows of step bytes."""
    if encoding not in GRAYSCALE_CONVERSIONS:
        raise UnsupportedEncodingError(encoding)
    channels = 1 if GRAYSCALE_CONVERSIONS[encoding] is None else 3
    if step < width * channels:
        raise MalformedFrameError(
            f"{encoding} row step {step} is shorter than width {width} x {channels} channel(s)"
        )
    if size < height * step:
        raise MalformedFrameError(f"buffer holds {size} bytes, {height} rows of {step} need {height * step}")


def to_grayscale(image: Frame, encoding: str) -> Frame:
    """Luma conversion for color frames, an unchanged copy for mono frames."""
    if encoding not in GRAYSCALE_CONVERSIONS:
        raise UnsupportedEncodingError(encoding)
    code = GRAYSCALE_CONVERSIONS[encoding]
    if code is not None:
        return cv2.cvtColor(image, code)
    if isinstance(image, np.ndarray):
        # (H, W, 1) collapses to (H, W)
        return image.reshape(image.shape[:2]).copy()
    return image


class EqualizationAlgorithm(ABC):
    '''Abstract Base Class for histogram equalization of single channel 8-bit images.'''

    @abstractmethod
    def apply_algorithm(self, image: Frame, config: EqualizationConfig) -> Frame:
        pass

    def __call__(self, image: Frame, config: EqualizationConfig) -> Frame:
        return self.apply_algorithm(image, config)


class GlobalEqualization(EqualizationAlgorithm):
    """Apply global histogram equalization."""

    def apply_algorithm(self, image: Frame, config: EqualizationConfig) -> Frame:
        return cv2.equalizeHist(image)

    def __str__(self):
        return "GlobalEqualize"


class CLAHEEqualization(EqualizationAlgorithm):
    """Apply Contrast Limited Adaptive Histogram Equalization (CLAHE).

    The cv2.CLAHE object is created on first use and kept for the lifetime of this
    instance. Tile grid and clip limit are set right before every apply.
    """

    def __init__(self):
        self._clahe = None
        self._lock = threading.Lock()

    @property
    def created(self) -> bool:
        return self._clahe is not None

    def apply_algorithm(self, image: Frame, config: EqualizationConfig) -> Frame:
        with self._lock:
            if self._clahe is None:
                self._clahe = cv2.createCLAHE()
            self._clahe.setTilesGridSize(config.tile_grid_size)
            self._clahe.setClipLimit(config.clahe_clip_limit)
            return self._clahe.apply(image)

    def __str__(self):
        return "AdaptiveCLAHE"


class HistogramEqualizer:
    '''Converts a frame to grayscale and equalizes it with the configured algorithm.'''

    def __init__(self, config: Optional[EqualizationConfig] = None, use_opencl: bool = False):
        self._config = config if config is not None else EqualizationConfig()
        self.use_opencl = use_opencl
        self.algorithms = {
            EqualizationType.ADAPTIVE_CLAHE: CLAHEEqualization(),
            EqualizationType.GLOBAL_EQUALIZE: GlobalEqualization(),
        }

    @property
    def config(self) -> EqualizationConfig:
        return self._config

    def initialize(self, config: EqualizationConfig) -> None:
        self.reconfigure(config)

    def reconfigure(self, config: EqualizationConfig) -> None:
        # Single assignment, frames in flight keep the snapshot they already read
        self._config = config

    def algorithm_for(self, equalization_type: EqualizationType) -> EqualizationAlgorithm:
        return self.algorithms[EqualizationType.parse(equalization_type)]

    def process(self, image: np.ndarray, encoding: str) -> np.ndarray:
        """
        Equalize one frame.

        Args:
            image: 8-bit frame, (H, W) for mono8 or (H, W, 3) for bgr8/rgb8
            encoding: ROS image encoding of ``image``

        Returns:
            Equalized single channel uint8 image

        Raises:
            UnsupportedEncodingError: encoding or array layout not supported
            ProcessingError: OpenCV failed during conversion or equalization
        """
        check_frame(image, encoding)
        config = self._config
        algorithm = self.algorithm_for(config.equalization_type)

        try:
            frame = cv2.UMat(image) if self.use_opencl and cv2.ocl.useOpenCL() else image
            gray = to_grayscale(frame, encoding)
            dst = algorithm(gray, config)
        except cv2.error as e:
            raise ProcessingError.from_cv_error(e) from e

        if isinstance(dst, cv2.UMat):
            dst = dst.get()
        return dst

    def __str__(self):
        return f"HistogramEqualizer({self._config.equalization_type.value})"
