from __future__ import annotations

from enum import Enum
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from face_restoration.core.tensor_binding import TensorBinding
from face_restoration.enums import TensorMode
from logger.filtered_logger import FilteredLogger


# ---------------------------------------------------------------------------
# Minimal stand-ins for the tensorrt module.  Tests patch them into the
# modules under test, so nothing here needs a GPU or a TRT installation.
# ---------------------------------------------------------------------------

class _Severity(Enum):
    INTERNAL_ERROR = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    VERBOSE = 4


class _ILogger:
    Severity = _Severity

    def __init__(self) -> None:
        pass


class _TensorIOMode(Enum):
    NONE = 0
    INPUT = 1
    OUTPUT = 2


class _DataType(Enum):
    FLOAT = 0
    HALF = 1
    INT8 = 2
    INT32 = 3


class FakeTrtContext:
    """Records what the execution context wrapper asks TensorRT to do."""

    def __init__(self, engine: "FakeEngine", execute_ok: bool = True) -> None:
        self._engine = engine
        self.execute_ok = execute_ok
        self.input_shapes: dict[str, tuple[int, ...]] = {}
        self.addresses: dict[str, int] = {}
        self.execute_calls: list[int] = []

    def set_input_shape(self, name: str, shape: tuple[int, ...]) -> bool:
        max_batch = self._engine.max_batch
        if max_batch is not None and shape[0] > max_batch:
            return False
        self.input_shapes[name] = tuple(shape)
        return True

    def get_tensor_shape(self, name: str) -> tuple[int, ...]:
        shape = self._engine.shapes[name]
        if shape and shape[0] < 0 and self.input_shapes:
            batch = next(iter(self.input_shapes.values()))[0]
            return (batch,) + tuple(shape[1:])
        return tuple(shape)

    def set_tensor_address(self, name: str, address: int) -> bool:
        self.addresses[name] = address
        return True

    def execute_async_v3(self, stream_handle: int) -> bool:
        self.execute_calls.append(stream_handle)
        return self.execute_ok


class FakeEngine:
    def __init__(
        self,
        tensors: list[tuple[str, Any, Any, tuple[int, ...]]],
        *,
        context_ok: bool = True,
        max_batch: int | None = None,
    ) -> None:
        self.names = [name for name, _, _, _ in tensors]
        self.modes = {name: mode for name, mode, _, _ in tensors}
        self.dtypes = {name: dtype for name, _, dtype, _ in tensors}
        self.shapes = {name: shape for name, _, _, shape in tensors}
        self.context_ok = context_ok
        self.max_batch = max_batch
        self.contexts: list[FakeTrtContext] = []

    @property
    def num_io_tensors(self) -> int:
        return len(self.names)

    def get_tensor_name(self, index: int) -> str:
        return self.names[index]

    def get_tensor_mode(self, name: str) -> Any:
        return self.modes[name]

    def get_tensor_dtype(self, name: str) -> Any:
        return self.dtypes[name]

    def get_tensor_shape(self, name: str) -> tuple[int, ...]:
        return self.shapes[name]

    def create_execution_context(self) -> FakeTrtContext | None:
        if not self.context_ok:
            return None
        context = FakeTrtContext(self)
        self.contexts.append(context)
        return context


def _make_fake_trt(engine: FakeEngine | None) -> SimpleNamespace:
    runtime = MagicMock()
    runtime.deserialize_cuda_engine.return_value = engine
    return SimpleNamespace(
        ILogger=_ILogger,
        TensorIOMode=_TensorIOMode,
        DataType=_DataType,
        Runtime=MagicMock(return_value=runtime),
        runtime=runtime,
    )


@pytest.fixture
def make_engine():
    """Factory for a two-binding float engine; override any tensor with ``tensors=``."""

    def _factory(
        input_shape: tuple[int, ...] = (1, 3, 64, 64),
        output_shape: tuple[int, ...] = (1, 3, 64, 64),
        *,
        tensors: list[tuple[str, Any, Any, tuple[int, ...]]] | None = None,
        context_ok: bool = True,
        max_batch: int | None = None,
    ) -> FakeEngine:
        if tensors is None:
            tensors = [
                ("input", _TensorIOMode.INPUT, _DataType.FLOAT, input_shape),
                ("output", _TensorIOMode.OUTPUT, _DataType.FLOAT, output_shape),
            ]
        return FakeEngine(tensors, context_ok=context_ok, max_batch=max_batch)

    return _factory


@pytest.fixture
def fake_trt_factory():
    return _make_fake_trt


@pytest.fixture
def trt_enums() -> SimpleNamespace:
    return SimpleNamespace(TensorIOMode=_TensorIOMode, DataType=_DataType, Severity=_Severity)


@pytest.fixture
def engine_file(tmp_path: Path) -> Path:
    path = tmp_path / "face.engine"
    path.write_bytes(b"\x00serialized-plan\x01")
    return path


# ---------------------------------------------------------------------------
# Identity execution context: copies the input tensor to the output tensor,
# standing in for the network when testing the marshalling pipeline.
# ---------------------------------------------------------------------------

class IdentityExecutionContext:
    def __init__(self, shape: tuple[int, int, int, int]) -> None:
        self.input_binding = TensorBinding("input", TensorMode.INPUT, "float32", shape)
        self.output_binding = TensorBinding("output", TensorMode.OUTPUT, "float32", shape)
        self.calls = 0
        self.closed = False
        self.last_timings = {"enqueue_ms": 0.0}

    def execute(self, host_input: Any, host_output: Any) -> None:
        self.calls += 1
        host_output.copy_(host_input)

    def describe(self) -> list[str]:
        return [f"input  input  FLOAT {self.input_binding.shape}", f"output output FLOAT {self.output_binding.shape}"]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def identity_context():
    def _factory(shape: tuple[int, int, int, int] = (1, 3, 32, 32)) -> IdentityExecutionContext:
        return IdentityExecutionContext(shape)

    return _factory


@pytest.fixture
def captured_logger() -> tuple[FilteredLogger, list[str]]:
    lines: list[str] = []
    log = FilteredLogger(sink=lines.append)
    return log, lines
