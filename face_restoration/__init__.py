from __future__ import annotations

from pathlib import Path

from face_restoration.application.model_builder import ModelBuilder
from face_restoration.config import load_restoration_config
from face_restoration.core.errors import (
    BatchSizeError,
    BindingValidationError,
    ConfigurationError,
    DeviceError,
    EngineLoadError,
    FaceRestorationError,
    InputValidationError,
)
from face_restoration.infrastructure.face_restoration_trt import FaceRestorationTRT
from logger.filtered_logger import FilteredLogger


def load_model(
    engine_path: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
    logger: FilteredLogger | None = None,
) -> FaceRestorationTRT:
    """Build a ready-to-call restoration model.

    ``engine_path`` wins over ``engine.path`` from the config (and over
    FACE_RESTORATION_ENGINE).
    """
    config = load_restoration_config(config_path)
    if engine_path is not None:
        config["engine"]["path"] = str(engine_path)
    return ModelBuilder(config, logger=logger).build_model()


__all__ = [
    "BatchSizeError",
    "BindingValidationError",
    "ConfigurationError",
    "DeviceError",
    "EngineLoadError",
    "FaceRestorationError",
    "FaceRestorationTRT",
    "InputValidationError",
    "load_model",
]
