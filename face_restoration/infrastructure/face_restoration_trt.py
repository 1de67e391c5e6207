from __future__ import annotations

import time
from typing import Any, Sequence

import numpy as np
import torch

from face_restoration.core.errors import BatchSizeError, DeviceError, FaceRestorationError, InputValidationError
from face_restoration.core.inference_model import InferenceModel
from face_restoration.core.postprocessor import Postprocessor
from face_restoration.core.preprocessor import Preprocessor
from face_restoration.core.tensor_binding import TensorBinding
from face_restoration.infrastructure.face_postprocessor import FacePostprocessor
from face_restoration.infrastructure.face_preprocessor import FacePreprocessor
from logger.filtered_logger import FilteredLogger, LogChannel, get_shared_logger


class FaceRestorationTRT(InferenceModel):
    """TensorRT face restoration model with a fixed compiled batch size.

    Call contract:
        • Input: (B, H, W, 3) uint8 array, or a sequence of B (H, W, 3) uint8
          arrays; H and W may differ from the model resolution and between
          images. B must equal the engine batch size.
        • Output: (B, H_out, W_out, 3) uint8 array at the engine's output
          resolution. Channel order matches the input (BGR in, BGR out with
          the default ``bgr2rgb`` conversion).

    The two host scratch tensors are allocated once and overwritten on every
    call, so one instance must not be shared between threads.
    """

    def __init__(
        self,
        engine_context: Any,
        *,
        preprocessor: Preprocessor | None = None,
        postprocessor: Postprocessor | None = None,
        pin_host_memory: bool = False,
        logger: FilteredLogger | None = None,
    ) -> None:
        self._context = engine_context
        self._log = logger or get_shared_logger()
        self._name = "face_restoration"
        self._input_binding: TensorBinding = engine_context.input_binding
        self._output_binding: TensorBinding = engine_context.output_binding
        self._preprocessor = preprocessor or FacePreprocessor(logger=self._log)
        self._postprocessor = postprocessor or FacePostprocessor()
        self._preprocessor.configure(self._input_binding)
        self._postprocessor.configure(self._output_binding)

        pin = bool(pin_host_memory and torch.cuda.is_available())
        self._host_input: Any | None = torch.empty(self._input_binding.shape, dtype=torch.float32, pin_memory=pin)
        self._host_output: Any | None = torch.empty(self._output_binding.shape, dtype=torch.float32, pin_memory=pin)
        self._failure: DeviceError | None = None
        self._closed = False
        self.last_timings: dict[str, float] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def batch_size(self) -> int:
        return self._input_binding.batch_size

    @property
    def input_binding(self) -> TensorBinding:
        return self._input_binding

    @property
    def output_binding(self) -> TensorBinding:
        return self._output_binding

    @property
    def closed(self) -> bool:
        return self._closed

    def warm_up(self) -> None:
        height, width, channels = self._input_binding.image_shape
        self.infer(np.zeros((self.batch_size, height, width, channels), dtype=np.uint8))
        self._log.debug(LogChannel.INFERENCE, f"Warm-up done in {self.last_timings.get('total_ms', 0.0):.1f} ms")

    def infer(self, images: np.ndarray | Sequence[np.ndarray]) -> np.ndarray:
        """Restore one batch of faces; see the class docstring for the contract."""
        self._ensure_usable()
        batch = self._validate_images(images)

        start_ns = time.perf_counter_ns()
        self._preprocessor.process(batch, self._host_input)
        preprocess_ns = time.perf_counter_ns()
        try:
            self._context.execute(self._host_input, self._host_output)
        except DeviceError as exc:
            self._failure = exc
            self._log.error(LogChannel.INFERENCE, f"Fatal device error, model disabled: {exc}")
            raise
        inference_ns = time.perf_counter_ns()
        restored = self._postprocessor.process(self._host_output)
        end_ns = time.perf_counter_ns()

        self.last_timings = {
            "preprocess_ms": (preprocess_ns - start_ns) / 1_000_000.0,
            "inference_ms": (inference_ns - preprocess_ns) / 1_000_000.0,
            "postprocess_ms": (end_ns - inference_ns) / 1_000_000.0,
            "total_ms": (end_ns - start_ns) / 1_000_000.0,
            **getattr(self._context, "last_timings", {}),
        }
        self._log.debug(
            LogChannel.INFERENCE,
            f"batch={self.batch_size} pre={self.last_timings['preprocess_ms']:.2f}ms "
            f"infer={self.last_timings['inference_ms']:.2f}ms post={self.last_timings['postprocess_ms']:.2f}ms",
        )
        return restored

    def describe(self) -> list[str]:
        """Binding summary of the underlying engine, one line per tensor."""
        return list(self._context.describe())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._context.close()
        self._host_input = None
        self._host_output = None
        self._log.info(LogChannel.ENGINE, f"Released {self._name} engine and buffers")

    def _ensure_usable(self) -> None:
        if self._closed:
            raise FaceRestorationError(f"{self._name} model has been closed")
        if self._failure is not None:
            raise DeviceError(f"{self._name} model disabled after a device failure: {self._failure}") from self._failure

    def _validate_images(self, images: Any) -> list[np.ndarray]:
        if isinstance(images, np.ndarray):
            if images.ndim != 4:
                raise InputValidationError(
                    f"expected a (batch, height, width, 3) array, got shape {images.shape}"
                )
            batch = list(images)
        elif isinstance(images, (list, tuple)):
            batch = list(images)
        else:
            raise InputValidationError(
                f"expected a numpy array or a sequence of arrays, got {type(images).__name__}"
            )

        if len(batch) != self.batch_size:
            raise BatchSizeError(self.batch_size, len(batch))

        for index, image in enumerate(batch):
            if not isinstance(image, np.ndarray):
                raise InputValidationError(f"image {index} is {type(image).__name__}, not a numpy array")
            if image.dtype != np.uint8:
                raise InputValidationError(f"image {index} has dtype {image.dtype}, expected uint8")
            if image.ndim != 3 or image.shape[2] != 3:
                raise InputValidationError(f"image {index} must be (height, width, 3), got shape {image.shape}")
            if image.shape[0] == 0 or image.shape[1] == 0:
                raise InputValidationError(f"image {index} is empty: shape {image.shape}")
        return batch
