from __future__ import annotations

from typing import Any

try:
    import torch
except Exception:  # pragma: no cover
    torch = None  # type: ignore[assignment]


class CudaStreamPool:
    """Keeps one CUDA stream per named key so repeated calls reuse it."""

    def __init__(self) -> None:
        self._handles: dict[str, Any] = {}

    def acquire(self, key: str) -> Any:
        """Return the stream owned by key, creating it on first use."""
        if key in self._handles:
            return self._handles[key]
        if torch is None or not torch.cuda.is_available():
            raise RuntimeError("CUDA is not available for stream creation")
        self._handles[key] = torch.cuda.Stream()
        return self._handles[key]

    def release(self, key: str) -> None:
        """Pooled streams stay alive until ``clear``."""
        return None

    def clear(self) -> None:
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)
