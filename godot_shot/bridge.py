"""
bridge.py - Gateway to the Windows host through WSL interop.

All host work goes through `HostBridge.run()`, which starts powershell.exe
or cmd.exe as a child process with a hard timeout. The bridge also owns
two cached lookups kept in the shared `BridgeContext`: the availability
check (30 s TTL) and the host temp directory (resolved once, never
invalidated).
"""
from __future__ import annotations

import asyncio
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Any, Callable, Sequence, TypeAlias

from godot_shot.commands import PING_REPLY, nircmd_help_command, ping_command, temp_dir_command
from godot_shot.context import BridgeContext
from godot_shot.logger import get_logger, truncate_output

logger = get_logger(__name__)

POWERSHELL_EXE = "powershell.exe"
CMD_EXE = "cmd.exe"

CHECK_TIMEOUT_MS = 2000
OPERATION_TIMEOUT_MS = 5000
AVAILABILITY_TTL_S = 30.0

# Used when $env:TEMP cannot be read from the host.
FALLBACK_HOST_TEMP_DIR = "/mnt/c/Windows/Temp"

Runner: TypeAlias = Callable[..., subprocess.CompletedProcess[Any]]

__all__ = [
    "BridgeError",
    "BridgeExecutionError",
    "BridgeUnavailableError",
    "BridgeOutput",
    "HostBridge",
    "powershell_file",
    "powershell_command",
    "host_shell",
]


class BridgeError(RuntimeError):
    """Base class for host bridge failures."""
    pass


class BridgeExecutionError(BridgeError):
    """A host command failed to start, exited non-zero, or timed out."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class BridgeUnavailableError(BridgeError):
    """The host bridge did not answer the availability check."""
    pass


@dataclass(frozen=True)
class BridgeOutput:
    stdout: str
    stderr: str


def powershell_file(host_script_path: str) -> list[str]:
    return [POWERSHELL_EXE, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-File", host_script_path]


def powershell_command(command: str) -> list[str]:
    return [POWERSHELL_EXE, "-NoProfile", "-NonInteractive", "-Command", command]


def host_shell(command: str) -> list[str]:
    return [CMD_EXE, "/c", command]


class HostBridge:
    """
    Runs host-native commands and answers "is the host reachable?".

    Args:
        context: Shared process state (config, caches, clock).
        runner: Process runner with the `subprocess.run` signature. Tests
                substitute a fake here.
    """

    def __init__(self, context: BridgeContext, runner: Runner = subprocess.run):
        self._context = context
        self._runner = runner

    @property
    def context(self) -> BridgeContext:
        return self._context

    async def run(self, argv: Sequence[str], timeout_ms: int = OPERATION_TIMEOUT_MS) -> BridgeOutput:
        """
        Executes `argv` on the host and returns its output.

        Failed attempts are repeated `config.bridge_retries` times (default
        0, so each call is attempt-once).

        Raises:
            BridgeExecutionError: Non-zero exit, timeout, or the executable
                                  could not be started.
        """
        attempts = 1 + max(0, self._context.config.bridge_retries)
        attempt = 1
        while True:
            try:
                return await asyncio.to_thread(self._run_once, list(argv), timeout_ms)
            except BridgeExecutionError as e:
                if attempt >= attempts:
                    raise
                logger.warning(f"Bridge call failed (attempt {attempt}/{attempts}): {e}. Retrying.")
                attempt += 1

    def _run_once(self, argv: list[str], timeout_ms: int) -> BridgeOutput:
        executable = argv[0] if argv else "<empty>"
        logger.debug(f"Bridge exec: {executable} (timeout {timeout_ms} ms), args={argv[1:]}")
        try:
            completed = self._runner(
                argv,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout_ms / 1000,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"Bridge command '{executable}' timed out after {timeout_ms} ms.")
            raise BridgeExecutionError(f"Command '{executable}' timed out after {timeout_ms} ms") from e
        except OSError as e:
            logger.error(f"Could not start bridge command '{executable}': {e}")
            raise BridgeExecutionError(f"Could not start '{executable}': {e}") from e

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        if stdout:
            logger.debug(f"Bridge stdout: {truncate_output(stdout)}")
        if stderr:
            logger.debug(f"Bridge stderr: {truncate_output(stderr)}")

        if completed.returncode != 0:
            detail = stderr.strip() or stdout.strip() or "no output"
            raise BridgeExecutionError(
                f"Command '{executable}' exited with code {completed.returncode}: {detail}",
                returncode=completed.returncode,
                stderr=stderr,
            )
        return BridgeOutput(stdout=stdout, stderr=stderr)

    async def check_availability(self) -> bool:
        """
        Round-trips a trivial PowerShell command.

        The verdict (positive or negative) is cached in the context for
        `AVAILABILITY_TTL_S`. There is no manual invalidation.
        """
        ctx = self._context
        now = ctx.clock()
        if ctx.bridge_available is not None and now - ctx.bridge_checked_at < AVAILABILITY_TTL_S:
            return ctx.bridge_available

        try:
            output = await self.run(powershell_command(ping_command()), timeout_ms=CHECK_TIMEOUT_MS)
            verdict = output.stdout.strip() == PING_REPLY
            if not verdict:
                logger.warning(f"Unexpected reply from PowerShell availability check: {output.stdout.strip()!r}")
        except BridgeExecutionError as e:
            logger.warning(f"PowerShell availability check failed: {e}")
            verdict = False

        ctx.bridge_available = verdict
        ctx.bridge_checked_at = now
        logger.debug(f"Bridge availability: {verdict}")
        return verdict

    async def ensure_available(self) -> None:
        """Raises `BridgeUnavailableError` when the availability check fails."""
        if not await self.check_availability():
            raise BridgeUnavailableError(
                "PowerShell is not accessible from WSL. Please ensure Windows interop is enabled."
            )

    async def check_nircmd(self) -> bool:
        try:
            await self.run(host_shell(nircmd_help_command()), timeout_ms=CHECK_TIMEOUT_MS)
            return True
        except BridgeExecutionError as e:
            logger.debug(f"nircmd.exe not usable: {e}")
            return False

    async def resolve_temp_dir(self) -> str:
        """
        Caller-side directory that the host can also reach.

        Resolved on first use and cached in the context for the rest of the
        process. Precedence: TEMP_DIR override, then the host's $env:TEMP
        when running under WSL, then the local system temp directory.
        """
        ctx = self._context
        if ctx.temp_dir is not None:
            return ctx.temp_dir

        if ctx.config.temp_dir:
            resolved = ctx.config.temp_dir
        elif ctx.wsl:
            resolved = await self._query_host_temp_dir()
        else:
            resolved = tempfile.gettempdir()

        ctx.temp_dir = resolved
        logger.info(f"Using temp directory: {resolved}")
        return resolved

    async def _query_host_temp_dir(self) -> str:
        try:
            output = await self.run(powershell_command(temp_dir_command()))
        except BridgeExecutionError as e:
            logger.warning(f"Could not read host TEMP ({e}); using {FALLBACK_HOST_TEMP_DIR}.")
            return FALLBACK_HOST_TEMP_DIR

        host_temp = output.stdout.strip()
        # An unexpanded variable comes back as ':TEMP' when quoting goes wrong.
        if host_temp and host_temp != ":TEMP" and "\\" in host_temp:
            return self._context.caller_path(host_temp)

        logger.warning(f"Unexpected host TEMP value {host_temp!r}; using {FALLBACK_HOST_TEMP_DIR}.")
        return FALLBACK_HOST_TEMP_DIR
