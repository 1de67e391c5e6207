from __future__ import annotations

from typing import Any

from face_restoration.infrastructure.face_postprocessor import FacePostprocessor
from face_restoration.infrastructure.face_preprocessor import FacePreprocessor
from face_restoration.infrastructure.face_restoration_trt import FaceRestorationTRT
from face_restoration.infrastructure.gpu_buffer_pool import DeviceBufferPool
from face_restoration.infrastructure.stream_pool import CudaStreamPool
from face_restoration.infrastructure.tensorrt_engine_loader import TensorRTEngineLoader
from face_restoration.infrastructure.tensorrt_execution_context import TensorRTExecutionContext
from logger.filtered_logger import FilteredLogger, LogChannel, get_shared_logger


class ModelBuilder:
    """Constructs a `FaceRestorationTRT` from a resolved restoration config."""

    def __init__(self, config: dict[str, Any], *, logger: FilteredLogger | None = None) -> None:
        self._config = config
        self._log = logger or get_shared_logger()

    def build_loader(self) -> TensorRTEngineLoader:
        return TensorRTEngineLoader(self._config["engine"]["path"], logger=self._log)

    def build_context(self, loader: TensorRTEngineLoader | None = None) -> TensorRTExecutionContext:
        engine_cfg = self._config["engine"]
        execution_cfg = self._config["execution"]
        stream_pool = buffer_pool = None
        if execution_cfg.get("reuse_device_buffers", False):
            stream_pool = CudaStreamPool()
            buffer_pool = DeviceBufferPool()
            self._log.info(LogChannel.GLOBAL, "Device buffers and stream are pooled across calls")
        return TensorRTExecutionContext(
            loader or self.build_loader(),
            input_name=engine_cfg["input_name"],
            output_name=engine_cfg["output_name"],
            batch_size=engine_cfg["batch_size"],
            stream_pool=stream_pool,
            buffer_pool=buffer_pool,
            logger=self._log,
        )

    def build_model(self) -> FaceRestorationTRT:
        preprocess_cfg = self._config["preprocess"]
        context = self.build_context()
        try:
            return FaceRestorationTRT(
                context,
                preprocessor=FacePreprocessor(
                    preprocess_cfg["color_conversion"],
                    preprocess_cfg["interpolation"],
                    logger=self._log,
                ),
                postprocessor=FacePostprocessor(preprocess_cfg["color_conversion"]),
                pin_host_memory=self._config["execution"].get("pin_host_memory", False),
                logger=self._log,
            )
        except Exception:
            context.close()
            raise
