from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from env_utils import parse_bool_env, read_optional_env
from face_restoration.core.errors import ConfigurationError
from face_restoration.enums import ColorConversion, ResizeInterpolation


_CONFIG_FILE = Path(__file__).parent / "restoration.yaml"

_DEFAULTS: dict[str, dict[str, Any]] = {
    "engine": {
        "path": "models/tensorrt/face_restoration.engine",
        "input_name": "input",
        "output_name": "output",
        "batch_size": 1,
    },
    "preprocess": {
        "color_conversion": ColorConversion.BGR_TO_RGB.value,
        "interpolation": ResizeInterpolation.LINEAR.value,
    },
    "execution": {
        "reuse_device_buffers": False,
        "pin_host_memory": False,
    },
}


def load_restoration_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load the restoration config, fill defaults, apply env overrides and validate it."""
    config_path = Path(path) if path is not None else _CONFIG_FILE
    if not config_path.exists():
        raise FileNotFoundError(f"Missing restoration config: {config_path}")
    with config_path.open("r", encoding="utf-8") as stream:
        try:
            raw = yaml.safe_load(stream) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return resolve_restoration_config(raw)


def resolve_restoration_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Merge raw onto defaults, then apply FACE_RESTORATION_* environment overrides."""
    config: dict[str, dict[str, Any]] = {}
    for section, defaults in _DEFAULTS.items():
        overrides = raw.get(section) or {}
        if not isinstance(overrides, dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping")
        config[section] = {**defaults, **overrides}

    engine_override = read_optional_env("FACE_RESTORATION_ENGINE")
    if engine_override is not None:
        config["engine"]["path"] = engine_override
    if read_optional_env("FACE_RESTORATION_REUSE_DEVICE_BUFFERS") is not None:
        config["execution"]["reuse_device_buffers"] = parse_bool_env("FACE_RESTORATION_REUSE_DEVICE_BUFFERS")

    preprocess = config["preprocess"]
    preprocess["color_conversion"] = _parse_enum(ColorConversion, preprocess["color_conversion"], "preprocess.color_conversion")
    preprocess["interpolation"] = _parse_enum(ResizeInterpolation, preprocess["interpolation"], "preprocess.interpolation")

    batch_size = config["engine"]["batch_size"]
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ConfigurationError(f"engine.batch_size must be a positive integer, got {batch_size!r}")
    for key in ("reuse_device_buffers", "pin_host_memory"):
        config["execution"][key] = bool(config["execution"][key])
    return config


def _parse_enum(enum_cls: Any, value: Any, key: str) -> Any:
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"{key} must be one of [{allowed}], got {value!r}") from None
