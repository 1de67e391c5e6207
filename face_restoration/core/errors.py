from __future__ import annotations


class FaceRestorationError(Exception):
    """Base class for recoverable errors raised by the restoration wrapper."""


class ConfigurationError(FaceRestorationError):
    """Invalid configuration: bad option values, missing engine, unusable bindings."""


class EngineLoadError(ConfigurationError):
    """The serialized engine could not be read, deserialized, or given a context."""


class BindingValidationError(ConfigurationError):
    """The engine's I/O tensors do not match the expected two float32 NCHW bindings."""


class InputValidationError(FaceRestorationError):
    """The image batch handed to ``infer`` has the wrong type, dtype, or layout."""


class BatchSizeError(InputValidationError):
    """The number of images differs from the engine's compiled batch size."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"engine expects a batch of {expected} image(s), got {actual}")
        self.expected = expected
        self.actual = actual


class DeviceError(Exception):
    """Unrecoverable CUDA / TensorRT failure during inference.

    Not a ``FaceRestorationError`` subclass. The model that raised it refuses
    further work.
    """
