from __future__ import annotations

from pathlib import Path
from typing import Any

from face_restoration.core.errors import EngineLoadError
from logger.filtered_logger import FilteredLogger, LogChannel, get_shared_logger

try:
    import tensorrt as trt
except Exception:  # pragma: no cover
    trt = None  # type: ignore[assignment]


# TRT registers the first logger handed to trt.Runtime() as a process-global
# singleton and keeps a raw pointer to it. One adapter is created for the
# whole process and never released; each loader points it at its own logger.
_TRT_LOG_ADAPTER: Any | None = None


def get_trt_logger(log: FilteredLogger) -> Any:
    """Return the process-wide ``trt.ILogger``, now forwarding to ``log``.

    Verbose messages go to the ENGINE debug channel, so they only show up when
    ENGINE_DEBUG_LOGS=1; everything from INFO upwards is always printed.
    """
    global _TRT_LOG_ADAPTER
    if trt is None:
        raise EngineLoadError("tensorrt python package unavailable")

    if _TRT_LOG_ADAPTER is None:
        severity = trt.ILogger.Severity

        class TrtLogAdapter(trt.ILogger):
            def __init__(self, target: FilteredLogger) -> None:
                trt.ILogger.__init__(self)
                self.target = target

            def log(self, level: Any, msg: str) -> None:
                if level in (severity.INTERNAL_ERROR, severity.ERROR):
                    self.target.error(LogChannel.ENGINE, msg)
                elif level == severity.WARNING:
                    self.target.warning(LogChannel.ENGINE, msg)
                elif level == severity.INFO:
                    self.target.info(LogChannel.ENGINE, msg)
                else:
                    self.target.debug(LogChannel.ENGINE, msg)

        _TRT_LOG_ADAPTER = TrtLogAdapter(log)
    _TRT_LOG_ADAPTER.target = log
    return _TRT_LOG_ADAPTER


class TensorRTEngineLoader:
    """Loads a serialized TensorRT plan and exposes its I/O tensor metadata.

    ``load()`` either returns a deserialized engine or raises
    :class:`EngineLoadError`; a loader never hands out a half-built engine.
    """

    def __init__(self, engine_path: str | Path, *, logger: FilteredLogger | None = None) -> None:
        self.engine_path = str(engine_path)
        self._log = logger or get_shared_logger()
        self._metadata: dict[str, Any] = {}
        self._runtime: Any | None = None
        self._engine: Any | None = None

    @property
    def engine(self) -> Any | None:
        return self._engine

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def load(self) -> Any:
        """Deserialize the engine (once) and cache tensor names/shapes."""
        if self._engine is not None:
            return self._engine

        resolved = self._resolve_engine_path(self.engine_path)
        if not resolved.is_file():
            raise EngineLoadError(f"could not open engine: {resolved} not found")
        if trt is None:
            raise EngineLoadError("tensorrt python package unavailable")
        try:
            engine_bytes = resolved.read_bytes()
        except OSError as exc:
            raise EngineLoadError(f"could not read engine {resolved}: {exc}") from exc
        if not engine_bytes:
            raise EngineLoadError(f"engine file {resolved} is empty")

        runtime = trt.Runtime(get_trt_logger(self._log))
        engine = runtime.deserialize_cuda_engine(engine_bytes)
        if engine is None:
            raise EngineLoadError(f"TensorRT rejected the serialized engine {resolved}")

        io_tensors: list[dict[str, Any]] = []
        for index in range(int(engine.num_io_tensors)):
            name = engine.get_tensor_name(index)
            mode = engine.get_tensor_mode(name)
            io_tensors.append(
                {
                    "name": name,
                    "mode": "input" if mode == trt.TensorIOMode.INPUT else "output",
                    "dtype": engine.get_tensor_dtype(name),
                    "shape": tuple(int(x) for x in engine.get_tensor_shape(name)),
                }
            )

        self._runtime = runtime
        self._engine = engine
        self._metadata = {
            "path": str(resolved),
            "size_bytes": len(engine_bytes),
            "io_tensors": io_tensors,
        }
        self._log.info(
            LogChannel.ENGINE,
            f"Loaded engine {resolved.name} ({len(engine_bytes) / (1024 * 1024):.1f} MB, "
            f"{len(io_tensors)} I/O tensors)",
        )
        return engine

    def describe(self) -> list[str]:
        """One human-readable line per I/O tensor, e.g. ``input  input  FLOAT (1, 3, 512, 512)``."""
        lines = []
        for tensor in self._metadata.get("io_tensors", []):
            dtype = getattr(tensor["dtype"], "name", str(tensor["dtype"]))
            lines.append(f"{tensor['name']:<16} {tensor['mode']:<6} {dtype:<6} {tensor['shape']}")
        return lines

    def release(self) -> None:
        """Drop the engine before the runtime that created it."""
        if self._engine is not None:
            self._log.debug(LogChannel.ENGINE, f"Releasing engine {self.engine_path}")
        self._engine = None
        self._runtime = None

    @staticmethod
    def _resolve_engine_path(engine_path: str) -> Path:
        candidate = Path(engine_path)
        if candidate.is_absolute() or candidate.exists():
            return candidate
        return Path(__file__).resolve().parents[2] / candidate
