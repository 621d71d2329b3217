"""ホストコマンド生成のテスト"""

import pytest

from godot_shot.commands import (
    SUCCESS_SENTINEL,
    SafeLiteral,
    capture_screen_command,
    capture_window_script,
    list_windows_script,
    nircmd_capture_screen,
    nircmd_capture_window,
)


class TestSafeLiteral:
    def test_strips_command_separators(self):
        literal = SafeLiteral("Game; rm -rf | `whoami` $env:PATH & x\r\ny")
        assert literal.value == "Game rm -rf  whoami env:PATH  xy"

    def test_single_quotes_are_doubled(self):
        assert SafeLiteral("it's").single_quoted() == "'it''s'"

    def test_double_quotes_are_removed_for_cmd(self):
        assert SafeLiteral('say "hi"').double_quoted() == '"say hi"'

    def test_plain_title_is_unchanged(self):
        assert SafeLiteral("My Game (DEBUG)").value == "My Game (DEBUG)"


class TestCaptureWindowScript:
    def test_contains_sentinel_and_lookup_order(self):
        script = capture_window_script("Game", "C:\\Temp\\s.png")
        assert script.rstrip().endswith(f"Write-Output '{SUCCESS_SENTINEL}'")
        exact = script.index("-eq $targetTitle")
        contains = script.index(".Contains($targetTitle)")
        assert exact < contains
        assert 'throw "Window not found: $targetTitle"' in script

    def test_hostile_title_cannot_escape_literal(self):
        script = capture_window_script("x'; Remove-Item C:\\ -Recurse; '", "C:\\Temp\\s.png")
        assert "$targetTitle = 'x'' Remove-Item C:\\ -Recurse '''" in script
        assert "; Remove-Item" not in script

    def test_format_selects_encoder(self):
        assert "ImageFormat]::Png" in capture_window_script("G", "C:\\t.png", "png")
        assert "ImageFormat]::Jpeg" in capture_window_script("G", "C:\\t.jpg", "jpg")

    def test_unknown_format_is_rejected(self):
        with pytest.raises(ValueError, match="Unsupported image format"):
            capture_window_script("G", "C:\\t.bmp", "bmp")

    def test_braces_are_rendered(self):
        script = capture_window_script("G", "C:\\t.png")
        assert "{{" not in script
        assert "Where-Object { $_.MainWindowTitle -eq $targetTitle }" in script


class TestOtherTemplates:
    def test_screen_command_saves_to_path(self):
        command = capture_screen_command("C:\\Temp\\full.png")
        assert ".Save('C:\\Temp\\full.png'" in command
        assert "\n" not in command
        assert command.endswith(f"Write-Output '{SUCCESS_SENTINEL}'")

    def test_list_script_emits_pid_and_title(self):
        assert '"$($_.Id)|$($_.MainWindowTitle)"' in list_windows_script()

    def test_nircmd_window_activates_then_saves(self):
        command = nircmd_capture_window("Game & del x", "C:\\Temp\\w.png")
        assert command == (
            'nircmd.exe win activate ititle "Game  del x" & '
            "nircmd.exe wait 200 & "
            'nircmd.exe savescreenshotwin "C:\\Temp\\w.png"'
        )

    def test_nircmd_screen(self):
        assert nircmd_capture_screen("C:\\Temp\\f.png") == 'nircmd.exe savescreenshot "C:\\Temp\\f.png"'
