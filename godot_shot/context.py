"""
context.py - Process-wide state shared by the bridge, registry and capture pipeline.

One `BridgeContext` is created at process start and passed to every
component. It owns the caches (window lists, bridge availability, the
resolved temp directory) and the capture throttle, so none of them live
in module globals.

The caches are read-check-then-write without locks. That is only sound
because all core logic runs on a single asyncio event loop.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, TypeAlias

from godot_shot.config import ScreenshotConfig
from godot_shot.logger import get_logger
from godot_shot.paths import is_wsl, to_caller_path, to_host_path

if TYPE_CHECKING:
    from godot_shot.windows import WindowCacheEntry

logger = get_logger(__name__)

Clock: TypeAlias = Callable[[], float]
Sleeper: TypeAlias = Callable[[float], Awaitable[None]]

CAPTURE_INTERVAL_S: float = 0.5


def timestamp_ms() -> int:
    """Wall-clock milliseconds, used to name temp files."""
    return time.time_ns() // 1_000_000


class CaptureThrottle:
    """
    Spaces capture starts at least `interval_s` apart.

    `reserve()` computes and records the caller's slot before its first
    await, so overlapping callers on the same event loop always get
    distinct slots instead of computing the same wait.
    """

    def __init__(self, interval_s: float, clock: Clock, sleep: Sleeper):
        self.interval_s = interval_s
        self._clock = clock
        self._sleep = sleep
        self._last_slot: float | None = None

    @property
    def last_slot(self) -> float | None:
        return self._last_slot

    async def reserve(self) -> float:
        """Waits for the next free slot and returns its start time."""
        now = self._clock()
        if self._last_slot is None:
            slot = now
        else:
            slot = max(now, self._last_slot + self.interval_s)
        self._last_slot = slot

        delay = slot - now
        if delay > 0:
            logger.debug(f"Throttling capture for {delay * 1000:.0f} ms.")
            await self._sleep(delay)
        return slot


@dataclass
class BridgeContext:
    """Shared state for one server process."""
    config: ScreenshotConfig = field(default_factory=ScreenshotConfig)
    wsl: bool = field(default_factory=is_wsl)
    clock: Clock = time.monotonic
    sleep: Sleeper = asyncio.sleep

    window_cache: dict[str | None, WindowCacheEntry] = field(default_factory=dict)
    bridge_available: bool | None = None
    bridge_checked_at: float = 0.0
    temp_dir: str | None = None
    throttle: CaptureThrottle = field(init=False)

    def __post_init__(self):
        self.throttle = CaptureThrottle(CAPTURE_INTERVAL_S, self.clock, self.sleep)
        logger.debug(f"BridgeContext created (wsl={self.wsl}, nircmd={self.config.use_nircmd}).")

    @classmethod
    def from_env(cls) -> BridgeContext:
        return cls(config=ScreenshotConfig.from_env())

    def host_path(self, caller_path: str) -> str:
        """Path as the host sees it; identity when not running under WSL."""
        return to_host_path(caller_path) if self.wsl else caller_path

    def caller_path(self, host_path: str) -> str:
        return to_caller_path(host_path) if self.wsl else host_path

    def close(self) -> None:
        """Drops every cached value; called on server shutdown."""
        self.window_cache.clear()
        self.bridge_available = None
        self.bridge_checked_at = 0.0
        self.temp_dir = None
        logger.debug("BridgeContext closed.")
