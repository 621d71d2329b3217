"""
commands.py - Host-side command and script templates.

Everything that ends up inside a PowerShell script or a cmd.exe line is
built here. Interpolated values must go through `SafeLiteral`, which is
sanitized on construction; templates only ever see the rendered literal,
so a hostile window title cannot close a string or chain a second command.
"""
from __future__ import annotations

from godot_shot.config import ImageFormat

# Printed by every capture template on success; the only positive signal.
SUCCESS_SENTINEL = "SUCCESS"

# Expected reply to `ping_command()`.
PING_REPLY = "OK"

# Characters that could chain or substitute commands on the host.
_FORBIDDEN_CHARS = frozenset(";|`$&\r\n")

_GDI_FORMATS: dict[str, str] = {
    "png": "Png",
    "jpg": "Jpeg",
}


class SafeLiteral:
    """
    A string value cleared for interpolation into host commands.

    Command separators, pipes, backticks, `$` and line breaks are dropped
    when the literal is created. Quoting depends on where the value lands,
    so it is applied by the render methods.
    """
    __slots__ = ("_value",)

    def __init__(self, raw: str):
        self._value = "".join(ch for ch in str(raw) if ch not in _FORBIDDEN_CHARS)

    @property
    def value(self) -> str:
        return self._value

    def single_quoted(self) -> str:
        """PowerShell verbatim string: 'it''s'."""
        return "'" + self._value.replace("'", "''") + "'"

    def double_quoted(self) -> str:
        """cmd.exe argument: double quotes cannot be escaped there, so they are removed."""
        return '"' + self._value.replace('"', "") + '"'

    def __repr__(self) -> str:
        return f"SafeLiteral({self._value!r})"

    def __str__(self) -> str:
        return self._value


def _gdi_format(fmt: ImageFormat) -> str:
    try:
        return _GDI_FORMATS[fmt]
    except KeyError:
        raise ValueError(f"Unsupported image format: '{fmt}'. Expected one of {sorted(_GDI_FORMATS)}.") from None


# --- PowerShell templates ---

def list_windows_script() -> str:
    """One 'pid|title' line per process that owns a titled main window."""
    return (
        'Get-Process | Where-Object {$_.MainWindowTitle -ne ""} | '
        'ForEach-Object { Write-Output "$($_.Id)|$($_.MainWindowTitle)" }'
    )


_CAPTURE_WINDOW_TEMPLATE = """\
$ErrorActionPreference = 'Stop'
Add-Type -AssemblyName System.Drawing,System.Windows.Forms

$targetTitle = {title}
$targetProcess = Get-Process | Where-Object {{ $_.MainWindowTitle -eq $targetTitle }} | Select-Object -First 1
if (-not $targetProcess) {{
    $targetProcess = Get-Process | Where-Object {{ $_.MainWindowTitle.Contains($targetTitle) }} | Select-Object -First 1
}}

if (-not $targetProcess -or $targetProcess.MainWindowHandle -eq [IntPtr]::Zero) {{
    throw "Window not found: $targetTitle"
}}

$hwnd = $targetProcess.MainWindowHandle

Add-Type @"
using System;
using System.Runtime.InteropServices;
public struct RECT {{
    public int Left; public int Top; public int Right; public int Bottom;
}}
public class Win32 {{
    [DllImport("user32.dll")]
    public static extern bool GetWindowRect(IntPtr hwnd, out RECT lpRect);
    [DllImport("user32.dll")]
    public static extern bool SetForegroundWindow(IntPtr hwnd);
    [DllImport("user32.dll")]
    public static extern bool ShowWindow(IntPtr hwnd, int nCmdShow);
}}
"@

# Region capture needs the window on top; restore it, raise it, let it settle.
[Win32]::ShowWindow($hwnd, 9) | Out-Null
[Win32]::SetForegroundWindow($hwnd) | Out-Null
Start-Sleep -Milliseconds {settle_ms}

$rect = New-Object RECT
[Win32]::GetWindowRect($hwnd, [ref]$rect) | Out-Null
$width = $rect.Right - $rect.Left
$height = $rect.Bottom - $rect.Top

if ($width -le 0 -or $height -le 0) {{
    throw "Invalid window dimensions: $width x $height"
}}

# Copy from the screen, not PrintWindow: GPU-composited surfaces come back blank otherwise.
$bitmap = New-Object System.Drawing.Bitmap($width, $height)
$graphics = [System.Drawing.Graphics]::FromImage($bitmap)
try {{
    $graphics.CopyFromScreen($rect.Left, $rect.Top, 0, 0, $bitmap.Size)
    $bitmap.Save({path}, [System.Drawing.Imaging.ImageFormat]::{gdi_format})
}} finally {{
    $graphics.Dispose()
    $bitmap.Dispose()
}}
Write-Output '{sentinel}'
"""


def capture_window_script(
    window_title: str,
    host_output_path: str,
    fmt: ImageFormat = "png",
    settle_ms: int = 200,
) -> str:
    """
    Builds the PowerShell script that captures one window by title.

    The window is looked up by exact title first, then by substring. The
    script throws if nothing matches, if the handle is null, or if the
    window rectangle is empty, and prints `SUCCESS_SENTINEL` when the
    image has been written to `host_output_path`.
    """
    title = SafeLiteral(window_title)
    path = SafeLiteral(host_output_path)
    return _CAPTURE_WINDOW_TEMPLATE.format(
        title=title.single_quoted(),
        path=path.single_quoted(),
        gdi_format=_gdi_format(fmt),
        settle_ms=int(settle_ms),
        sentinel=SUCCESS_SENTINEL,
    )


def capture_screen_command(host_output_path: str, fmt: ImageFormat = "png") -> str:
    """Single-line PowerShell command capturing the primary screen."""
    path = SafeLiteral(host_output_path)
    return (
        "Add-Type -AssemblyName System.Drawing,System.Windows.Forms; "
        "$screen = [System.Windows.Forms.Screen]::PrimaryScreen.Bounds; "
        "$bitmap = New-Object System.Drawing.Bitmap $screen.Width,$screen.Height; "
        "$graphics = [System.Drawing.Graphics]::FromImage($bitmap); "
        "$graphics.CopyFromScreen($screen.Left,$screen.Top,0,0,$bitmap.Size); "
        f"$bitmap.Save({path.single_quoted()}, [System.Drawing.Imaging.ImageFormat]::{_gdi_format(fmt)}); "
        "$graphics.Dispose(); $bitmap.Dispose(); "
        f"Write-Output '{SUCCESS_SENTINEL}'"
    )


def temp_dir_command() -> str:
    return "Write-Output $env:TEMP"


def ping_command() -> str:
    return f"Write-Output '{PING_REPLY}'"


# --- NirCmd templates (alternate capture tool, run through cmd.exe) ---

def nircmd_capture_window(window_title: str, host_output_path: str) -> str:
    """Activates the first window whose title contains `window_title`, then saves it."""
    title = SafeLiteral(window_title)
    path = SafeLiteral(host_output_path)
    # '&' is the cmd.exe separator; values above cannot contain one.
    return (
        f"nircmd.exe win activate ititle {title.double_quoted()} & "
        "nircmd.exe wait 200 & "
        f"nircmd.exe savescreenshotwin {path.double_quoted()}"
    )


def nircmd_capture_screen(host_output_path: str) -> str:
    path = SafeLiteral(host_output_path)
    return f"nircmd.exe savescreenshot {path.double_quoted()}"


def nircmd_help_command() -> str:
    return "nircmd.exe help"
