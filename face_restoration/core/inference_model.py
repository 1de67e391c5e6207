from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np

from face_restoration.core.tensor_binding import TensorBinding


class InferenceModel(ABC):
    """Contract for a fixed-batch image-to-image TensorRT model."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable model identifier (e.g., face_restoration)."""

    @property
    @abstractmethod
    def batch_size(self) -> int:
        """Compiled batch size every ``infer`` call must match."""

    @property
    @abstractmethod
    def input_binding(self) -> TensorBinding:
        """Validated input tensor description."""

    @property
    @abstractmethod
    def output_binding(self) -> TensorBinding:
        """Validated output tensor description."""

    @abstractmethod
    def warm_up(self) -> None:
        """Run one throwaway batch so the first real call does not pay setup costs."""

    @abstractmethod
    def infer(self, images: np.ndarray | Sequence[np.ndarray]) -> np.ndarray:
        """Restore a batch of uint8 HWC images and return a (B, H_out, W_out, 3) uint8 array."""

    @abstractmethod
    def close(self) -> None:
        """Destroy the TensorRT context and release host/device memory."""

    def __call__(self, images: np.ndarray | Sequence[np.ndarray]) -> np.ndarray:
        return self.infer(images)

    def __enter__(self) -> "InferenceModel":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
