"""
config.py - Environment-driven configuration for godot_shot.

Configuration is read once at process start (`ScreenshotConfig.from_env()`)
and handed to the `BridgeContext`; nothing else reads the environment later.

Recognized variables:
    SCREENSHOT_QUALITY  JPEG quality hint, default 85 (not used by the capture path yet)
    SCREENSHOT_FORMAT   "png" or "jpg", default "png"
    TEMP_DIR            Overrides the temp directory used for scripts and images
    USE_NIRCMD          "true" switches captures to nircmd.exe
    BRIDGE_RETRIES      Extra attempts for a failed bridge call, default 0
    MCP_LOG_LEVEL       Log level name, default "INFO"
    MCP_LOG_FILE        Optional log file path
    MCP_API_HOST        HTTP API bind host, default "127.0.0.1"
    MCP_API_PORT        HTTP API port, default 8080
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping, TypeAlias

from godot_shot.logger import get_logger

logger = get_logger(__name__)

ImageFormat: TypeAlias = Literal["png", "jpg"]

SUPPORTED_FORMATS: tuple[str, ...] = ("png", "jpg")

DEFAULT_QUALITY = 85
DEFAULT_FORMAT: ImageFormat = "png"
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8080


def _read_int(env: Mapping[str, str], name: str, default: int, minimum: int | None = None) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: '{raw}'. Using default {default}.")
        return default
    if minimum is not None and value < minimum:
        logger.warning(f"{name}={value} is below the minimum of {minimum}. Using default {default}.")
        return default
    return value


def _read_format(env: Mapping[str, str]) -> ImageFormat:
    raw = env.get("SCREENSHOT_FORMAT", DEFAULT_FORMAT).strip().lower()
    if raw == "jpeg":
        raw = "jpg"
    if raw not in SUPPORTED_FORMATS:
        logger.warning(f"Unsupported SCREENSHOT_FORMAT '{raw}'. Falling back to '{DEFAULT_FORMAT}'.")
        return DEFAULT_FORMAT
    return raw  # type: ignore[return-value]


@dataclass(frozen=True)
class ScreenshotConfig:
    """Process-wide settings, immutable once loaded."""
    quality: int = DEFAULT_QUALITY
    image_format: ImageFormat = DEFAULT_FORMAT
    temp_dir: str | None = None
    use_nircmd: bool = False
    bridge_retries: int = 0
    log_level: str = "INFO"
    log_file: str | None = None
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ScreenshotConfig:
        """Builds the configuration from `env` (defaults to `os.environ`)."""
        if env is None:
            env = os.environ

        temp_dir = env.get("TEMP_DIR")
        log_file = env.get("MCP_LOG_FILE")
        config = cls(
            quality=_read_int(env, "SCREENSHOT_QUALITY", DEFAULT_QUALITY, minimum=1),
            image_format=_read_format(env),
            temp_dir=temp_dir if temp_dir and temp_dir.strip() else None,
            use_nircmd=env.get("USE_NIRCMD", "").strip().lower() == "true",
            bridge_retries=_read_int(env, "BRIDGE_RETRIES", 0, minimum=0),
            log_level=env.get("MCP_LOG_LEVEL", "INFO").upper(),
            log_file=log_file if log_file and log_file.strip() else None,
            api_host=env.get("MCP_API_HOST", DEFAULT_API_HOST),
            api_port=_read_int(env, "MCP_API_PORT", DEFAULT_API_PORT, minimum=1),
        )
        logger.debug(f"Configuration loaded: {config}")
        return config


def is_test_mode() -> bool:
    """True when MCP_TEST_MODE is set; servers then stay quiet."""
    return bool(os.getenv("MCP_TEST_MODE"))
