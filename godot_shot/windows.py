"""
windows.py - Window enumeration on the Windows host, plus Godot-specific filters.

`WindowRegistry.list_windows()` runs a PowerShell listing script through the
host bridge and parses its `pid|title` lines into `WindowRecord`s. Results are
cached per filter pattern for `WINDOW_CACHE_TTL_S`; each pattern gets its own
entry and its own bridge round trip.

The classifier functions below only filter a registry snapshot:
- debug windows: title contains "(DEBUG)" (a running game launched from the editor)
- editor windows: title ends with "- Godot Engine"
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from godot_shot.bridge import BridgeError, HostBridge, powershell_file
from godot_shot.commands import list_windows_script
from godot_shot.context import BridgeContext, timestamp_ms
from godot_shot.logger import get_logger
from godot_shot.paths import remove_quietly

logger = get_logger(__name__)

WINDOW_CACHE_TTL_S = 5.0
LIST_TIMEOUT_MS = 5000

DEBUG_WINDOW_MARKER = "(DEBUG)"
EDITOR_WINDOW_SUFFIX = "- Godot Engine"


# --- Custom Exception Classes ---
class WindowError(RuntimeError):
    """Base class for window lookup errors."""
    pass


class WindowNotFoundError(WindowError):
    """Raised when no window matches a required lookup."""
    pass


class WindowListError(WindowError):
    """Raised when the host window listing could not be produced."""
    pass


@dataclass(frozen=True)
class WindowRecord:
    handle: str
    title: str


@dataclass(frozen=True)
class WindowCacheEntry:
    timestamp: float
    windows: tuple[WindowRecord, ...]


def parse_window_list(output: str, pattern: str | None = None) -> list[WindowRecord]:
    """
    Parses `handle|title` lines, splitting on the first '|' only.

    Lines without a separator, handle or title are dropped. When `pattern`
    is given, only titles containing it (case-insensitive) are kept.
    Source order is preserved.
    """
    needle = pattern.lower() if pattern else None
    windows: list[WindowRecord] = []
    for line in output.splitlines():
        handle, sep, title = line.partition("|")
        handle, title = handle.strip(), title.strip()
        if not sep or not handle or not title:
            if line.strip():
                logger.debug(f"Skipping malformed window line: {line!r}")
            continue
        if needle is not None and needle not in title.lower():
            continue
        windows.append(WindowRecord(handle=handle, title=title))
    return windows


class WindowRegistry:
    """Cached view of the host's titled top-level windows."""

    def __init__(self, context: BridgeContext, bridge: HostBridge):
        self._context = context
        self._bridge = bridge

    async def list_windows(self, pattern: str | None = None) -> list[WindowRecord]:
        """
        Lists host windows, optionally filtered by a title substring.

        Raises:
            WindowListError: The listing script could not be written or run.
        """
        ctx = self._context
        cache_key = pattern or None

        cached = ctx.window_cache.get(cache_key)
        if cached is not None and ctx.clock() - cached.timestamp < WINDOW_CACHE_TTL_S:
            logger.debug(f"Window cache hit for pattern {cache_key!r} ({len(cached.windows)} windows).")
            return list(cached.windows)

        temp_dir = await self._bridge.resolve_temp_dir()
        script_path = Path(temp_dir) / f"list-windows-{timestamp_ms()}.ps1"
        try:
            # BOM so Windows PowerShell 5.1 reads the script as UTF-8
            script_path.write_text(list_windows_script(), encoding="utf-8-sig")
            output = await self._bridge.run(
                powershell_file(ctx.host_path(str(script_path))),
                timeout_ms=LIST_TIMEOUT_MS,
            )
            if output.stderr.strip():
                logger.warning(f"Window listing wrote to stderr: {output.stderr.strip()}")
            windows = parse_window_list(output.stdout, cache_key)
        except (BridgeError, OSError) as e:
            logger.error(f"Failed to list windows: {e}")
            raise WindowListError(f"Failed to list windows: {e}") from e
        finally:
            remove_quietly(script_path)

        ctx.window_cache[cache_key] = WindowCacheEntry(timestamp=ctx.clock(), windows=tuple(windows))
        logger.info(f"Listed {len(windows)} windows (pattern={cache_key!r}).")
        return windows

    def clear_cache(self) -> None:
        self._context.window_cache.clear()


# --- Godot window classifier ---

def filter_debug_windows(windows: Iterable[WindowRecord]) -> list[WindowRecord]:
    return [w for w in windows if DEBUG_WINDOW_MARKER in w.title]


def filter_editor_windows(windows: Iterable[WindowRecord]) -> list[WindowRecord]:
    return [w for w in windows if w.title.endswith(EDITOR_WINDOW_SUFFIX)]


def match_title(windows: Iterable[WindowRecord], title: str, exact: bool = False) -> WindowRecord | None:
    for w in windows:
        if (w.title == title) if exact else (title in w.title):
            return w
    return None


def pick_window(candidates: Sequence[WindowRecord], discriminator: str | None = None) -> WindowRecord:
    """
    Chooses one window among `candidates`.

    With a discriminator (e.g. a project name) and several candidates, the
    first title containing it wins. If none contains it, the first
    candidate is returned anyway; strict matching is `match_title`'s job.
    """
    if not candidates:
        raise WindowNotFoundError("No candidate windows to choose from.")
    if discriminator and len(candidates) > 1:
        for w in candidates:
            if discriminator in w.title:
                return w
        logger.info(f"No window matched '{discriminator}'; falling back to '{candidates[0].title}'.")
    return candidates[0]


async def find_godot_debug_windows(registry: WindowRegistry) -> list[WindowRecord]:
    return filter_debug_windows(await registry.list_windows())


async def find_godot_editor_windows(registry: WindowRegistry) -> list[WindowRecord]:
    return filter_editor_windows(await registry.list_windows())


async def find_window_by_title(registry: WindowRegistry, title: str, exact: bool = False) -> WindowRecord | None:
    return match_title(await registry.list_windows(), title, exact)
