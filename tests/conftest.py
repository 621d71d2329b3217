"""godot_shot テスト設定

The fake host below stands in for powershell.exe / cmd.exe. It understands
the scripts godot_shot generates well enough to list windows and to write
real image files where a capture asks for them.
"""

import re
import subprocess
from pathlib import Path

import pytest
from PIL import Image

from godot_shot.bridge import HostBridge
from godot_shot.config import ScreenshotConfig
from godot_shot.context import BridgeContext
from godot_shot.tools import ScreenshotTools

_TITLE_RE = re.compile(r"^\$targetTitle = '((?:[^']|'')*)'$", re.MULTILINE)
_SAVE_RE = re.compile(r"\.Save\('((?:[^']|'')*)'")
_NIRCMD_SAVE_RE = re.compile(r'savescreenshot(?:win)? "([^"]*)"')
_NIRCMD_TITLE_RE = re.compile(r'ititle "([^"]*)"')


def _unquote(literal: str) -> str:
    return literal.replace("''", "'")


def write_image(path: str | Path, size: tuple[int, int] = (10, 10)) -> None:
    fmt = "JPEG" if str(path).endswith(".jpg") else "PNG"
    Image.new("RGB", size, color="blue").save(path, fmt)


class ManualClock:
    """Monotonic clock the test moves by hand; `sleep` advances it."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeHost:
    """Callable with the `subprocess.run` signature, recording every call."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.windows: list[tuple[int, str]] = []
        self.reachable = True
        self.nircmd_installed = False
        self.image_size = (10, 10)
        self.capture_stderr = ""
        self.scripts: list[str] = []

    def add_window(self, title: str, pid: int | None = None) -> None:
        self.windows.append((pid or 1000 + len(self.windows), title))

    def find(self, title: str) -> str | None:
        for _, t in self.windows:
            if t == title:
                return t
        for _, t in self.windows:
            if title in t:
                return t
        return None

    @property
    def listing_calls(self) -> int:
        return sum(1 for s in self.scripts if s.startswith("Get-Process | Where-Object {$_.MainWindowTitle -ne"))

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        if not self.reachable:
            raise FileNotFoundError(2, "No such file or directory", argv[0])

        if argv[0] == "cmd.exe":
            return self._run_cmd(argv, argv[-1])
        if "-File" in argv:
            script = Path(argv[-1]).read_text(encoding="utf-8-sig")
            self.scripts.append(script)
            return self._run_script(argv, script)
        return self._run_command(argv, argv[-1])

    def _done(self, argv, stdout="", stderr="", returncode=0):
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)

    def _run_command(self, argv, command):
        if command == "Write-Output 'OK'":
            return self._done(argv, stdout="OK\r\n")
        if command == "Write-Output $env:TEMP":
            return self._done(argv, stdout="C:\\Users\\dev\\AppData\\Local\\Temp\r\n")
        return self._done(argv, stderr=f"unexpected command: {command}", returncode=1)

    def _run_script(self, argv, script):
        if "PrimaryScreen" in script:
            write_image(_unquote(_SAVE_RE.search(script).group(1)), self.image_size)
            return self._done(argv, stdout="SUCCESS\r\n", stderr=self.capture_stderr)

        title_match = _TITLE_RE.search(script)
        if title_match is None:
            lines = [f"{pid}|{title}" for pid, title in self.windows]
            return self._done(argv, stdout="\r\n".join(lines) + "\r\n")

        title = _unquote(title_match.group(1))
        if self.find(title) is None:
            return self._done(argv, stderr=f"Window not found: {title}", returncode=1)
        write_image(_unquote(_SAVE_RE.search(script).group(1)), self.image_size)
        return self._done(argv, stdout="SUCCESS\r\n", stderr=self.capture_stderr)

    def _run_cmd(self, argv, command):
        if not self.nircmd_installed:
            return self._done(argv, stderr="'nircmd.exe' is not recognized", returncode=1)
        if command == "nircmd.exe help":
            return self._done(argv)
        title_match = _NIRCMD_TITLE_RE.search(command)
        if title_match and self.find(title_match.group(1)) is None:
            # nircmd silently does nothing when no window matches
            return self._done(argv)
        write_image(_NIRCMD_SAVE_RE.search(command).group(1), self.image_size)
        return self._done(argv)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def config(tmp_path):
    return ScreenshotConfig(temp_dir=str(tmp_path))


@pytest.fixture
def context(config, clock):
    """WSL translation off: host paths equal local paths in tests."""
    return BridgeContext(config=config, wsl=False, clock=clock, sleep=clock.sleep)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def bridge(context, host):
    return HostBridge(context, runner=host)


@pytest.fixture
def tools(context, bridge):
    return ScreenshotTools(context, bridge=bridge)
