from __future__ import annotations

from typing import Any

import numpy as np
import torch

from face_restoration.core.postprocessor import Postprocessor
from face_restoration.core.tensor_binding import TensorBinding
from face_restoration.enums import ColorConversion

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None


def denormalize(values: np.ndarray) -> np.ndarray:
    """Map engine output back to uint8: ``clamp(x * 0.5 + 0.5, 0, 1) * 255``, truncated."""
    scaled = np.clip(values.astype(np.float32) * 0.5 + 0.5, 0.0, 1.0) * 255.0
    return scaled.astype(np.uint8)


class FacePostprocessor(Postprocessor):
    """Rebuilds interleaved uint8 images at the model's output resolution."""

    def __init__(self, color_conversion: ColorConversion | str = ColorConversion.BGR_TO_RGB) -> None:
        self.color_conversion = ColorConversion(color_conversion)
        self.batch_size = 0
        self.height = 0
        self.width = 0
        self.channels = 0

    def configure(self, binding: TensorBinding) -> None:
        self.batch_size, self.channels, self.height, self.width = binding.shape

    def process(self, output: Any) -> np.ndarray:
        if self.batch_size == 0:
            raise RuntimeError("FacePostprocessor.configure() must be called before process().")
        if torch.is_tensor(output):
            output = output.detach().cpu().numpy()
        planar = np.asarray(output, dtype=np.float32).reshape(
            self.batch_size, self.channels, self.height, self.width
        )
        pixels = denormalize(planar).transpose(0, 2, 3, 1)
        images = [self._restore_channel_order(np.ascontiguousarray(image)) for image in pixels]
        return np.stack(images, axis=0)

    def _restore_channel_order(self, image: np.ndarray) -> np.ndarray:
        if self.color_conversion is ColorConversion.NONE:
            return image
        if cv2 is None:
            raise RuntimeError("cv2 is required for colour conversion but is not available.")
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
