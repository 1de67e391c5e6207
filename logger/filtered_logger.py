from enum import Enum

from env_utils import parse_bool_env


class LogChannel(Enum):
    GLOBAL = "GLOBAL"
    ENGINE = "ENGINE"
    PREPROCESS = "PREPROCESS"
    INFERENCE = "INFERENCE"


class LogLevel(Enum):
    INFO = "INFO"
    WARNING = "WARN"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


class FilteredLogger:
    """Channel-tagged console logger.

    Instances are handed to every component that logs; nothing inside the
    package reaches for the shared instance unless no logger was injected.
    """

    def __init__(self, sink=None):
        self.extreme_debug = parse_bool_env('EXTREME_DEBUG', '0')
        self.engine_debug = parse_bool_env('ENGINE_DEBUG_LOGS', '0')
        self.preprocess_debug = parse_bool_env('PREPROCESS_DEBUG_LOGS', '0')
        self.inference_debug = parse_bool_env('INFERENCE_DEBUG_LOGS', '0')
        self._sink = sink or print

    def configure(self, *, extreme_debug=None, engine_debug=None, preprocess_debug=None, inference_debug=None):
        if extreme_debug is not None:
            self.extreme_debug = extreme_debug
        if engine_debug is not None:
            self.engine_debug = engine_debug
        if preprocess_debug is not None:
            self.preprocess_debug = preprocess_debug
        if inference_debug is not None:
            self.inference_debug = inference_debug

    def should_log_debug(self, channel):
        if self.extreme_debug:
            return True
        if channel == LogChannel.GLOBAL:
            return self.engine_debug or self.preprocess_debug or self.inference_debug
        if channel == LogChannel.ENGINE:
            return self.engine_debug
        if channel == LogChannel.PREPROCESS:
            return self.preprocess_debug
        if channel == LogChannel.INFERENCE:
            return self.inference_debug
        return False

    def _print(self, level, channel, message):
        prefix = f"[{level.value}]"
        channel_tag = f"[{channel.value}]"
        for line in str(message).splitlines():
            self._sink(f"{prefix} {channel_tag} {line}")

    def info(self, channel, message):
        self._print(LogLevel.INFO, channel, message)

    def warning(self, channel, message):
        self._print(LogLevel.WARNING, channel, message)

    def error(self, channel, message):
        self._print(LogLevel.ERROR, channel, message)

    def debug(self, channel, message):
        if not self.should_log_debug(channel):
            return
        self._print(LogLevel.DEBUG, channel, message)


_shared_logger = FilteredLogger()


def get_shared_logger():
    return _shared_logger
