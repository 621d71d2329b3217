"""診断コマンドのテスト"""

import pytest

from godot_shot.diagnostics import DiagnosticsRunner


class TestDiagnosticsRunner:
    @pytest.mark.asyncio
    async def test_reports_windows(self, context, bridge, host, capsys):
        for i in range(7):
            host.add_window(f"Window {i}")
        host.add_window("MyGame (DEBUG)")

        exit_code = await DiagnosticsRunner(context, bridge).run()

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Found 8 total windows" in out
        assert "... and 3 more" in out
        assert "Debug windows: 1 found" in out
        assert "Editor windows: 0 found" in out
        assert "NirCmd access: False" in out

    @pytest.mark.asyncio
    async def test_fails_without_powershell(self, context, bridge, host, capsys):
        host.reachable = False

        exit_code = await DiagnosticsRunner(context, bridge).run()

        out = capsys.readouterr().out
        assert exit_code == 1
        assert "PowerShell not accessible" in out
        assert "Window Enumeration" not in out
