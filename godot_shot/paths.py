"""
paths.py - Path translation between WSL and the Windows host.

WSL mounts host drives at /mnt/<letter>; the host addresses the same files
as <LETTER>:\\... Only that drive-rooted shape is translated. Every other
input (UNC paths, relative paths, /tmp, ...) passes through unchanged.
"""
import re
from pathlib import Path

from godot_shot.logger import get_logger

logger = get_logger(__name__)

_CALLER_DRIVE_RE = re.compile(r"^/mnt/([a-z])(?=/|$)")
_HOST_DRIVE_RE = re.compile(r"^([a-zA-Z]):(?=\\|/|$)")

_PROC_VERSION = Path("/proc/version")


def to_host_path(path: str) -> str:
    """'/mnt/c/Users/me/a.png' -> 'C:\\Users\\me\\a.png'."""
    match = _CALLER_DRIVE_RE.match(path)
    if not match:
        return path
    drive = match.group(1).upper()
    rest = path[match.end():].replace("/", "\\")
    return f"{drive}:{rest}"


def to_caller_path(path: str) -> str:
    """'C:\\Users\\me\\a.png' -> '/mnt/c/Users/me/a.png'."""
    match = _HOST_DRIVE_RE.match(path)
    if not match:
        return path
    drive = match.group(1).lower()
    rest = path[match.end():].replace("\\", "/")
    return f"/mnt/{drive}{rest}"


def is_wsl() -> bool:
    """True when running under the Windows Subsystem for Linux."""
    try:
        return "microsoft" in _PROC_VERSION.read_text(encoding="utf-8").lower()
    except OSError:
        return False


def remove_quietly(path: str | Path | None) -> None:
    """Deletes a temp artifact; a missing file or a failed delete is only logged."""
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Ignoring cleanup failure for '{path}': {e}")
