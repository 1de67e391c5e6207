from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from face_restoration.core.tensor_binding import TensorBinding


class Postprocessor(ABC):
    """Turns the engine's planar float output back into caller-facing images."""

    @abstractmethod
    def configure(self, binding: TensorBinding) -> None:
        """Set output resolution and batch size from the engine output binding."""

    @abstractmethod
    def process(self, output: Any) -> np.ndarray:
        """Return a (B, H, W, 3) uint8 batch."""
