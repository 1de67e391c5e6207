from enum import Enum


class ColorConversion(str, Enum):
    """Channel reordering applied before inference and reversed after it."""

    BGR_TO_RGB = "bgr2rgb"
    NONE = "none"


class ResizeInterpolation(str, Enum):
    """OpenCV interpolation used to bring images to the model resolution."""

    NEAREST = "nearest"
    LINEAR = "linear"
    CUBIC = "cubic"
    AREA = "area"
    LANCZOS = "lanczos"


class TensorMode(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
