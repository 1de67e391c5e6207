from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np

from face_restoration.core.tensor_binding import TensorBinding


class Preprocessor(ABC):
    """Turns caller images into the engine's planar float input tensor."""

    @abstractmethod
    def configure(self, binding: TensorBinding) -> None:
        """Set target size and batch size from the engine input binding."""

    @abstractmethod
    def process(self, images: Sequence[np.ndarray], out: Any) -> Any:
        """Write the normalized (B, C, H, W) batch into ``out`` and return it."""
