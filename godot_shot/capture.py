"""
capture.py - Screenshot capture through the host bridge.

Each capture follows the same sequence:

    throttle -> temp dir -> build script/command -> run on host
             -> verify sentinel -> read + base64 image -> cleanup

The image is written by the host into a temp directory both sides can see,
then read back here. Script and image files are removed on every path,
including failures; cleanup errors never replace the original error.
"""
from __future__ import annotations

import asyncio
import base64
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from PIL import Image, UnidentifiedImageError

from godot_shot.bridge import BridgeError, HostBridge, host_shell, powershell_file
from godot_shot.commands import (
    SUCCESS_SENTINEL,
    capture_screen_command,
    capture_window_script,
    nircmd_capture_screen,
    nircmd_capture_window,
)
from godot_shot.config import ImageFormat
from godot_shot.context import BridgeContext, timestamp_ms
from godot_shot.logger import get_logger
from godot_shot.paths import remove_quietly

logger = get_logger(__name__)

CAPTURE_TIMEOUT_MS = 5000

_MIME_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
}

__all__ = [
    "CaptureError",
    "CaptureOptions",
    "CaptureResult",
    "ScreenshotPipeline",
]


class CaptureError(Exception):
    """Raised when a screenshot could not be produced."""
    pass


@dataclass(frozen=True)
class CaptureOptions:
    """Per-call overrides; `None` means "use the configured default"."""
    image_format: ImageFormat | None = None
    use_nircmd: bool | None = None


@dataclass(frozen=True)
class CaptureResult:
    base64: str
    image_format: ImageFormat
    width: int | None = None
    height: int | None = None

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self.image_format]


def _read_dimensions(data: bytes) -> tuple[int | None, int | None]:
    """Reads width/height from the image header; best effort only."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            return width, height
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not read image dimensions: {e}")
        return None, None


class ScreenshotPipeline:
    """Captures windows or the full screen via PowerShell (default) or NirCmd."""

    def __init__(self, context: BridgeContext, bridge: HostBridge):
        self._context = context
        self._bridge = bridge

    def _resolve_options(self, options: CaptureOptions | None) -> tuple[ImageFormat, bool]:
        options = options or CaptureOptions()
        config = self._context.config
        fmt = options.image_format or config.image_format
        use_nircmd = config.use_nircmd if options.use_nircmd is None else options.use_nircmd
        return fmt, use_nircmd

    async def capture_window(self, window_title: str, options: CaptureOptions | None = None) -> CaptureResult:
        """
        Captures the window whose title equals (or else contains) `window_title`.

        Raises:
            CaptureError: The window was not found, the host reported an
                          error, or the image could not be read. The message
                          always names `window_title`.
        """
        fmt, use_nircmd = self._resolve_options(options)
        logger.info(f"Capturing window '{window_title}' (format={fmt}, nircmd={use_nircmd}).")
        try:
            return await self._capture(
                prefix="screenshot",
                fmt=fmt,
                use_nircmd=use_nircmd,
                build_script=lambda path: capture_window_script(window_title, path, fmt),
                build_command=lambda path: nircmd_capture_window(window_title, path),
            )
        except (BridgeError, CaptureError, OSError) as e:
            logger.error(f"Window capture failed for '{window_title}': {e}")
            raise CaptureError(f'Failed to capture window "{window_title}": {e}') from e

    async def capture_screen(self, options: CaptureOptions | None = None) -> CaptureResult:
        """Captures the primary display."""
        fmt, use_nircmd = self._resolve_options(options)
        logger.info(f"Capturing full screen (format={fmt}, nircmd={use_nircmd}).")
        try:
            return await self._capture(
                prefix="fullscreen",
                fmt=fmt,
                use_nircmd=use_nircmd,
                build_script=lambda path: capture_screen_command(path, fmt),
                build_command=nircmd_capture_screen,
            )
        except (BridgeError, CaptureError, OSError) as e:
            logger.error(f"Full screen capture failed: {e}")
            raise CaptureError(f"Failed to capture screen: {e}") from e

    async def _capture(
        self,
        prefix: str,
        fmt: ImageFormat,
        use_nircmd: bool,
        build_script: Callable[[str], str],
        build_command: Callable[[str], str],
    ) -> CaptureResult:
        ctx = self._context
        slot = await ctx.throttle.reserve()
        logger.debug(f"Capture slot reserved at {slot:.3f}.")

        temp_dir = Path(await self._bridge.resolve_temp_dir())
        stamp = timestamp_ms()
        # Filenames are millisecond-stamped; two captures in the same ms would collide.
        image_path = temp_dir / f"{prefix}-{stamp}.{fmt}"
        host_image_path = ctx.host_path(str(image_path))
        script_path: Path | None = None

        try:
            if use_nircmd:
                await self._bridge.run(host_shell(build_command(host_image_path)), timeout_ms=CAPTURE_TIMEOUT_MS)
            else:
                script_path = temp_dir / f"capture-{stamp}.ps1"
                script_path.write_text(build_script(host_image_path), encoding="utf-8-sig")
                output = await self._bridge.run(
                    powershell_file(ctx.host_path(str(script_path))),
                    timeout_ms=CAPTURE_TIMEOUT_MS,
                )
                if output.stderr.strip() or SUCCESS_SENTINEL not in output.stdout:
                    raise CaptureError(f"PowerShell error: {output.stderr.strip() or 'success marker missing from output'}")

            try:
                data = await asyncio.to_thread(image_path.read_bytes)
            except OSError as e:
                raise CaptureError(f"Could not read captured image '{image_path}': {e}") from e
        finally:
            remove_quietly(script_path)
            remove_quietly(image_path)

        if not data:
            raise CaptureError(f"Captured image '{image_path}' is empty.")

        width, height = _read_dimensions(data)
        logger.info(f"Captured {len(data)} bytes ({width}x{height}, {fmt}).")
        return CaptureResult(
            base64=base64.b64encode(data).decode("ascii"),
            image_format=fmt,
            width=width,
            height=height,
        )
