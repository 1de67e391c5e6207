from __future__ import annotations

from typing import Any, Sequence

import numpy as np
import torch

from face_restoration.core.errors import BatchSizeError
from face_restoration.core.preprocessor import Preprocessor
from face_restoration.core.tensor_binding import TensorBinding
from face_restoration.enums import ColorConversion, ResizeInterpolation
from logger.filtered_logger import FilteredLogger, LogChannel, get_shared_logger

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None


def normalize(pixels: np.ndarray) -> np.ndarray:
    """Map uint8 pixels to float32 in [-1, 1]: ``(v / 255 - 0.5) / 0.5``."""
    return (pixels.astype(np.float32) / 255.0 - 0.5) / 0.5


def interpolation_flag(interpolation: ResizeInterpolation) -> int:
    if cv2 is None:
        raise RuntimeError("cv2 is required for resizing but is not available.")
    return {
        ResizeInterpolation.NEAREST: cv2.INTER_NEAREST,
        ResizeInterpolation.LINEAR: cv2.INTER_LINEAR,
        ResizeInterpolation.CUBIC: cv2.INTER_CUBIC,
        ResizeInterpolation.AREA: cv2.INTER_AREA,
        ResizeInterpolation.LANCZOS: cv2.INTER_LANCZOS4,
    }[interpolation]


class FacePreprocessor(Preprocessor):
    """Colour-converts, resizes and normalizes images into a planar float batch."""

    def __init__(
        self,
        color_conversion: ColorConversion | str = ColorConversion.BGR_TO_RGB,
        interpolation: ResizeInterpolation | str = ResizeInterpolation.LINEAR,
        *,
        logger: FilteredLogger | None = None,
    ) -> None:
        self.color_conversion = ColorConversion(color_conversion)
        self.interpolation = ResizeInterpolation(interpolation)
        self._log = logger or get_shared_logger()
        self.batch_size = 0
        self.target_height = 0
        self.target_width = 0

    def configure(self, binding: TensorBinding) -> None:
        self.batch_size = binding.batch_size
        self.target_height = binding.height
        self.target_width = binding.width

    def process(self, images: Sequence[np.ndarray], out: Any) -> Any:
        if self.batch_size == 0:
            raise RuntimeError("FacePreprocessor.configure() must be called before process().")
        if len(images) != self.batch_size:
            raise BatchSizeError(self.batch_size, len(images))

        for idx, image in enumerate(images):
            prepared = self.prepare_image(image)
            out[idx] = torch.from_numpy(prepared).permute(2, 0, 1)
        return out

    def prepare_image(self, image: np.ndarray) -> np.ndarray:
        """Return one (H, W, 3) float32 image at model resolution, normalized."""
        if cv2 is None:
            raise RuntimeError("cv2 is required for CPU preprocessing but is not available.")
        converted = np.ascontiguousarray(image)
        if self.color_conversion is ColorConversion.BGR_TO_RGB:
            converted = cv2.cvtColor(converted, cv2.COLOR_BGR2RGB)
        if converted.shape[:2] != (self.target_height, self.target_width):
            self._log.debug(
                LogChannel.PREPROCESS,
                f"Resizing {converted.shape[1]}x{converted.shape[0]} -> {self.target_width}x{self.target_height}",
            )
            converted = cv2.resize(
                converted,
                (self.target_width, self.target_height),
                interpolation=interpolation_flag(self.interpolation),
            )
        return normalize(converted)
