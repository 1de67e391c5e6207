from __future__ import annotations

from typing import Any

try:
    import torch
except Exception:  # pragma: no cover
    torch = None  # type: ignore[assignment]


class DeviceBufferPool:
    """Pre-allocated float32 device tensors keyed by binding name."""

    def __init__(self, device: str = "cuda") -> None:
        self._device = device
        self._buffers: dict[str, Any] = {}

    def reserve(self, key: str, shape: tuple[int, ...]) -> Any:
        """Reserve or reuse a buffer for the given key; a new shape replaces the old buffer."""
        buffer = self._buffers.get(key)
        if buffer is None or tuple(buffer.shape) != tuple(shape):
            if torch is None:
                raise RuntimeError("torch is required for device buffers")
            buffer = torch.empty(shape, dtype=torch.float32, device=self._device)
            self._buffers[key] = buffer
        return buffer

    def clear(self) -> None:
        self._buffers.clear()

    def __len__(self) -> int:
        return len(self._buffers)
