from __future__ import annotations

from dataclasses import dataclass

from face_restoration.enums import TensorMode

_FLOAT32_ITEMSIZE = 4


@dataclass(frozen=True, slots=True)
class TensorBinding:
    """One named engine I/O tensor, validated once when the engine is loaded.

    Shapes are NCHW and fully resolved (no ``-1`` dimensions).
    """

    name: str
    mode: TensorMode
    dtype: str
    shape: tuple[int, int, int, int]

    @property
    def batch_size(self) -> int:
        return self.shape[0]

    @property
    def channels(self) -> int:
        return self.shape[1]

    @property
    def height(self) -> int:
        return self.shape[2]

    @property
    def width(self) -> int:
        return self.shape[3]

    @property
    def volume(self) -> int:
        count = 1
        for dim in self.shape:
            count *= dim
        return count

    @property
    def nbytes(self) -> int:
        return self.volume * _FLOAT32_ITEMSIZE

    @property
    def image_shape(self) -> tuple[int, int, int]:
        """Per-image interleaved shape (H, W, C) seen by callers."""
        return (self.height, self.width, self.channels)
