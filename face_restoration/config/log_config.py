from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from env_utils import read_optional_env
from logger.filtered_logger import FilteredLogger, get_shared_logger


_LOG_CONFIG_FILE = Path(__file__).parent / "log.yaml"

# log.yaml channel -> (FilteredLogger.configure keyword, environment flag)
_CHANNEL_FLAGS = {
    "global": ("extreme_debug", "EXTREME_DEBUG"),
    "engine": ("engine_debug", "ENGINE_DEBUG_LOGS"),
    "preprocess": ("preprocess_debug", "PREPROCESS_DEBUG_LOGS"),
    "inference": ("inference_debug", "INFERENCE_DEBUG_LOGS"),
}


def load_log_config() -> dict[str, Any]:
    """Load the log configuration that defines active channels."""
    if not _LOG_CONFIG_FILE.exists():
        raise FileNotFoundError(f"Missing log config: {_LOG_CONFIG_FILE}")
    with _LOG_CONFIG_FILE.open("r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def apply_log_config(logger: FilteredLogger | None = None) -> FilteredLogger:
    """Apply the log channel flags to logger (the shared one by default) and return it.

    A channel whose environment flag is set keeps the value the logger read
    from the environment; log.yaml only fills in the others.
    """
    target = logger or get_shared_logger()
    config = load_log_config()
    channels: Dict[str, bool] = config.get("channels") or {}
    overrides: Dict[str, bool] = {}
    for channel, (keyword, env_name) in _CHANNEL_FLAGS.items():
        if read_optional_env(env_name) is not None:
            continue
        value = channels.get(channel)
        if value is not None:
            overrides[keyword] = bool(value)
    target.configure(**overrides)
    return target
