from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from face_restoration.core.errors import BindingValidationError, DeviceError, EngineLoadError
from face_restoration.core.tensor_binding import TensorBinding
from face_restoration.enums import TensorMode
from logger.filtered_logger import FilteredLogger, LogChannel, get_shared_logger

try:
    import tensorrt as trt
except Exception:  # pragma: no cover
    trt = None  # type: ignore[assignment]

try:
    import torch
except Exception:  # pragma: no cover
    torch = None  # type: ignore[assignment]


if TYPE_CHECKING:
    from face_restoration.infrastructure.gpu_buffer_pool import DeviceBufferPool
    from face_restoration.infrastructure.stream_pool import CudaStreamPool
    from face_restoration.infrastructure.tensorrt_engine_loader import TensorRTEngineLoader


_STREAM_KEY = "face_restoration"
_EXPECTED_CHANNELS = 3


class TensorRTExecutionContext:
    """Wraps one TensorRT execution context and its two validated bindings.

    Without pools, every :meth:`execute` call creates its own CUDA stream and
    device buffers and drops them before returning. Passing a
    ``stream_pool``/``buffer_pool`` pair keeps them alive across calls.
    """

    def __init__(
        self,
        engine_loader: "TensorRTEngineLoader",
        *,
        input_name: str = "input",
        output_name: str = "output",
        batch_size: int = 1,
        stream_pool: "CudaStreamPool | None" = None,
        buffer_pool: "DeviceBufferPool | None" = None,
        logger: FilteredLogger | None = None,
    ) -> None:
        if (stream_pool is None) != (buffer_pool is None):
            raise ValueError("stream_pool and buffer_pool must be given together")
        self.engine_loader = engine_loader
        self.stream_pool = stream_pool
        self.buffer_pool = buffer_pool
        self._log = logger or get_shared_logger()
        self.last_timings: dict[str, float] = {}

        engine = self.engine_loader.load()
        context = engine.create_execution_context()
        if context is None:
            self.engine_loader.release()
            raise EngineLoadError(f"could not create an execution context for {self.engine_loader.engine_path}")
        self._context: Any | None = context
        try:
            self.input_binding, self.output_binding = self._validate_bindings(
                engine, input_name, output_name, batch_size
            )
        except BindingValidationError:
            self._context = None
            self.engine_loader.release()
            raise
        self._log.info(
            LogChannel.ENGINE,
            f"Bindings: {self.input_binding.name}{self.input_binding.shape} -> "
            f"{self.output_binding.name}{self.output_binding.shape}",
        )

    @property
    def pooled(self) -> bool:
        return self.stream_pool is not None

    @property
    def closed(self) -> bool:
        return self._context is None

    def execute(self, host_input: Any, host_output: Any) -> None:
        """Copy host_input to the device, run the engine, copy the result into host_output.

        Blocks until the stream has drained. Any CUDA or TensorRT failure is
        raised as :class:`DeviceError`; no partial output is reported.
        """
        if self._context is None:
            raise DeviceError("execution context has been released")
        if torch is None or not torch.cuda.is_available():
            raise DeviceError("CUDA device unavailable")

        try:
            stream = self._acquire_stream()
            start_ns = time.perf_counter_ns()
            with torch.cuda.stream(stream):
                device_input, device_output = self._acquire_buffers()
                device_input.copy_(host_input, non_blocking=True)
                h2d_ns = time.perf_counter_ns()

                self._context.set_tensor_address(self.input_binding.name, int(device_input.data_ptr()))
                self._context.set_tensor_address(self.output_binding.name, int(device_output.data_ptr()))
                ok = bool(self._context.execute_async_v3(int(stream.cuda_stream)))
                enqueue_ns = time.perf_counter_ns()
                if not ok:
                    raise DeviceError("execute_async_v3 failed")

                host_output.copy_(device_output, non_blocking=True)
                d2h_ns = time.perf_counter_ns()
            stream.synchronize()
            sync_ns = time.perf_counter_ns()
        except DeviceError:
            raise
        except RuntimeError as exc:
            raise DeviceError(f"CUDA failure during inference: {exc}") from exc
        finally:
            self._release_stream()

        self.last_timings = {
            "h2d_ms": (h2d_ns - start_ns) / 1_000_000.0,
            "enqueue_ms": (enqueue_ns - h2d_ns) / 1_000_000.0,
            "d2h_ms": (d2h_ns - enqueue_ns) / 1_000_000.0,
            "stream_sync_ms": (sync_ns - d2h_ns) / 1_000_000.0,
        }

    def describe(self) -> list[str]:
        return self.engine_loader.describe()

    def close(self) -> None:
        """Destroy the TensorRT context, pooled device memory, and the engine."""
        if self._context is None:
            return
        self._context = None
        if self.buffer_pool is not None:
            self.buffer_pool.clear()
        if self.stream_pool is not None:
            self.stream_pool.clear()
        self.engine_loader.release()

    # ------------------------------------------------------------------
    # device resources
    # ------------------------------------------------------------------

    def _acquire_stream(self) -> Any:
        if self.stream_pool is not None:
            return self.stream_pool.acquire(_STREAM_KEY)
        return torch.cuda.Stream()

    def _acquire_buffers(self) -> tuple[Any, Any]:
        if self.buffer_pool is not None:
            return (
                self.buffer_pool.reserve(self.input_binding.name, self.input_binding.shape),
                self.buffer_pool.reserve(self.output_binding.name, self.output_binding.shape),
            )
        self._log.debug(
            LogChannel.INFERENCE,
            f"Allocating per-call device buffers ({self.input_binding.nbytes} + {self.output_binding.nbytes} bytes)",
        )
        return (
            torch.empty(self.input_binding.shape, dtype=torch.float32, device="cuda"),
            torch.empty(self.output_binding.shape, dtype=torch.float32, device="cuda"),
        )

    def _release_stream(self) -> None:
        if self.stream_pool is not None:
            self.stream_pool.release(_STREAM_KEY)

    # ------------------------------------------------------------------
    # binding validation
    # ------------------------------------------------------------------

    def _validate_bindings(
        self, engine: Any, input_name: str, output_name: str, batch_size: int
    ) -> tuple[TensorBinding, TensorBinding]:
        names = [engine.get_tensor_name(index) for index in range(int(engine.num_io_tensors))]
        if len(names) != 2:
            raise BindingValidationError(f"expected exactly 2 I/O tensors, engine has {len(names)}: {names}")

        input_shape = self._check_tensor(engine, names, input_name, trt.TensorIOMode.INPUT)
        if input_shape[0] < 0:
            input_shape = (batch_size,) + input_shape[1:]
            if not self._context.set_input_shape(input_name, input_shape):
                raise BindingValidationError(
                    f"batch size {batch_size} is outside the optimization profile of '{input_name}'"
                )
            self._log.debug(LogChannel.ENGINE, f"Resolved dynamic batch of '{input_name}' to {batch_size}")
        input_binding = self._make_binding(input_name, TensorMode.INPUT, input_shape)

        self._check_tensor(engine, names, output_name, trt.TensorIOMode.OUTPUT)
        output_shape = tuple(int(x) for x in self._context.get_tensor_shape(output_name))
        output_binding = self._make_binding(output_name, TensorMode.OUTPUT, output_shape)

        if output_binding.batch_size != input_binding.batch_size:
            raise BindingValidationError(
                f"input batch {input_binding.batch_size} differs from output batch {output_binding.batch_size}"
            )
        return input_binding, output_binding

    @staticmethod
    def _check_tensor(engine: Any, names: list[str], name: str, mode: Any) -> tuple[int, ...]:
        if name not in names:
            raise BindingValidationError(f"engine has no tensor named '{name}' (found {names})")
        if engine.get_tensor_mode(name) != mode:
            raise BindingValidationError(f"tensor '{name}' has the wrong I/O mode")
        dtype = engine.get_tensor_dtype(name)
        if dtype != trt.DataType.FLOAT:
            raise BindingValidationError(f"tensor '{name}' must be FLOAT, engine declares {dtype}")
        shape = tuple(int(x) for x in engine.get_tensor_shape(name))
        if len(shape) != 4:
            raise BindingValidationError(f"tensor '{name}' must be 4-D NCHW, got shape {shape}")
        return shape

    @staticmethod
    def _make_binding(name: str, mode: TensorMode, shape: tuple[int, ...]) -> TensorBinding:
        if len(shape) != 4 or any(dim <= 0 for dim in shape):
            raise BindingValidationError(f"unresolved shape for '{name}': {shape}")
        if shape[1] != _EXPECTED_CHANNELS:
            raise BindingValidationError(f"tensor '{name}' must have {_EXPECTED_CHANNELS} channels, got {shape[1]}")
        return TensorBinding(name=name, mode=mode, dtype="float32", shape=shape)  # type: ignore[arg-type]
