"""
diagnostics.py - Environment check for the Godot screenshot server.

Run `godot-shot-diagnose` (or `python -m godot_shot.diagnostics`) inside WSL
before registering the MCP server with a client. It checks:
- WSL detection
- PowerShell reachability through Windows interop (required)
- nircmd.exe on the host PATH (optional)
- Window enumeration and the Godot debug/editor classifiers
- The effective configuration read from the environment

Exit code is 1 when PowerShell cannot be reached, 0 otherwise.
"""
import asyncio
import sys

from godot_shot import __version__
from godot_shot.bridge import HostBridge
from godot_shot.config import ScreenshotConfig
from godot_shot.context import BridgeContext
from godot_shot.windows import WindowError, WindowRegistry, filter_debug_windows, filter_editor_windows

SAMPLE_WINDOW_COUNT = 5


class DiagnosticsRunner:
    """Prints one section per check and remembers whether the bridge works."""

    def __init__(self, context: BridgeContext, bridge: HostBridge | None = None):
        self.context = context
        self.bridge = bridge or HostBridge(context)
        self.registry = WindowRegistry(context, self.bridge)
        self.powershell_ok = False

    def _print_header(self, title: str) -> None:
        print(f"\n--- {title} ---")

    async def check_environment(self) -> None:
        self._print_header("Environment Checks")
        print(f"[{'OK' if self.context.wsl else 'WARN'}] WSL detected: {self.context.wsl}")

        self.powershell_ok = await self.bridge.check_availability()
        print(f"[{'OK' if self.powershell_ok else 'ERROR'}] PowerShell access: {self.powershell_ok}")

        nircmd_ok = await self.bridge.check_nircmd()
        print(f"[{'OK' if nircmd_ok else 'INFO'}] NirCmd access: {nircmd_ok} (optional)")

    async def check_windows(self) -> None:
        self._print_header("Window Enumeration")
        try:
            windows = await self.registry.list_windows()
        except WindowError as e:
            print(f"[ERROR] Window enumeration failed: {e}")
            return

        print(f"[OK] Found {len(windows)} total windows")
        for w in windows[:SAMPLE_WINDOW_COUNT]:
            print(f"    - {w.title}")
        if len(windows) > SAMPLE_WINDOW_COUNT:
            print(f"    ... and {len(windows) - SAMPLE_WINDOW_COUNT} more")

        self._print_header("Godot Window Detection")
        for label, found in (("Debug", filter_debug_windows(windows)), ("Editor", filter_editor_windows(windows))):
            print(f"[{'OK' if found else 'WARN'}] {label} windows: {len(found)} found")
            for w in found:
                print(f"    - {w.title}")

    def print_configuration(self) -> None:
        self._print_header("Configuration")
        config = self.context.config
        print(f"SCREENSHOT_QUALITY: {config.quality}")
        print(f"SCREENSHOT_FORMAT: {config.image_format}")
        print(f"TEMP_DIR: {config.temp_dir or '(auto)'}")
        print(f"USE_NIRCMD: {str(config.use_nircmd).lower()}")
        print(f"BRIDGE_RETRIES: {config.bridge_retries}")

    def print_summary(self) -> None:
        self._print_header("Summary")
        if not self.context.wsl:
            print("[WARN] Not running in WSL. Some features may not work correctly.")
        if not self.powershell_ok:
            print("[ERROR] PowerShell not accessible. Enable Windows interop in WSL.")
        else:
            print("[OK] Ready to capture. Start the server with `godot-shot-mcp`.")

    async def run(self) -> int:
        print(f"===== Godot Screenshot MCP v{__version__} Diagnostics =====")
        await self.check_environment()
        if self.powershell_ok:
            await self.check_windows()
        self.print_configuration()
        self.print_summary()
        return 0 if self.powershell_ok else 1


def main() -> None:
    context = BridgeContext(config=ScreenshotConfig.from_env())
    try:
        exit_code = asyncio.run(DiagnosticsRunner(context).run())
    finally:
        context.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
