"""
tools.py - The five screenshot tools and their argument validation.

`ScreenshotTools` is shared by the stdio MCP server and the HTTP API. The
MCP-facing entry point `call()` validates arguments with pydantic, runs
the availability check, dispatches, and converts every failure into a
`ToolError` carrying a JSON-RPC error code. Raw internal exceptions never
leave `call()`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from godot_shot.bridge import BridgeUnavailableError, HostBridge
from godot_shot.capture import CaptureResult, ScreenshotPipeline
from godot_shot.context import BridgeContext
from godot_shot.logger import get_logger
from godot_shot.windows import (
    WindowNotFoundError,
    WindowRecord,
    WindowRegistry,
    filter_debug_windows,
    filter_editor_windows,
    find_godot_debug_windows,
    find_godot_editor_windows,
    find_window_by_title,
    pick_window,
)

logger = get_logger(__name__)

# JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ToolError(Exception):
    """A tool failure in the shape the transport layer reports."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


# --- Argument models ---
class GodotWindowArgs(BaseModel):
    """Arguments of capture_godot_debug / capture_godot_editor."""
    model_config = ConfigDict(populate_by_name=True)

    project_name: str | None = Field(
        None, alias="projectName", min_length=1, max_length=200,
        description="Project name to pick a specific window when several are open.",
    )


class WindowTitleArgs(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Window title to capture.")
    exact: bool = Field(False, description="Whether to match the title exactly.")


class NoArgs(BaseModel):
    pass


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "capture_godot_debug", "description": "Capture a screenshot of the Godot debug game window.", "inputSchema": {"type": "object", "properties": {"projectName": {"type": "string", "description": "Project name to filter a specific debug window."}}}},
    {"name": "capture_godot_editor", "description": "Capture a screenshot of the Godot scene editor.", "inputSchema": {"type": "object", "properties": {"projectName": {"type": "string", "description": "Project name to filter a specific editor window."}}}},
    {"name": "capture_window_by_title", "description": "Capture a screenshot of any window by its title.", "inputSchema": {"type": "object", "properties": {"title": {"type": "string", "description": "Window title to capture."}, "exact": {"type": "boolean", "description": "Whether to match the title exactly.", "default": False}}, "required": ["title"]}},
    {"name": "capture_fullscreen", "description": "Capture a screenshot of the entire primary screen.", "inputSchema": {"type": "object", "properties": {}}},
    {"name": "list_godot_windows", "description": "List all open Godot windows (editor and debug).", "inputSchema": {"type": "object", "properties": {}}},
]


@dataclass(frozen=True)
class GodotWindowListing:
    debug: list[WindowRecord]
    editor: list[WindowRecord]

    def to_text(self) -> str:
        lines = ["=== Godot Debug Windows ==="]
        lines += [f"- {w.title}" for w in self.debug]
        lines += ["", "=== Godot Editor Windows ==="]
        lines += [f"- {w.title}" for w in self.editor]
        if not self.debug and not self.editor:
            lines += ["", "No Godot windows found."]
        return "\n".join(lines)


def format_validation_error(error: ValidationError) -> str:
    issues = ", ".join(
        f"{'.'.join(str(p) for p in issue['loc']) or '(root)'}: {issue['msg']}"
        for issue in error.errors()
    )
    return f"Invalid parameters: {issues}"


def image_content(result: CaptureResult) -> dict[str, Any]:
    return {"content": [{"type": "image", "data": result.base64, "mimeType": result.mime_type}]}


def text_content(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


class ScreenshotTools:
    """Tool implementations on top of one shared `BridgeContext`."""

    def __init__(
        self,
        context: BridgeContext,
        bridge: HostBridge | None = None,
        registry: WindowRegistry | None = None,
        pipeline: ScreenshotPipeline | None = None,
    ):
        self.context = context
        self.bridge = bridge or HostBridge(context)
        self.registry = registry or WindowRegistry(context, self.bridge)
        self.pipeline = pipeline or ScreenshotPipeline(context, self.bridge)
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "capture_godot_debug": self._call_capture_debug,
            "capture_godot_editor": self._call_capture_editor,
            "capture_window_by_title": self._call_capture_by_title,
            "capture_fullscreen": self._call_capture_fullscreen,
            "list_godot_windows": self._call_list_windows,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    # --- Operations (also used directly by the HTTP API) ---

    async def capture_godot_debug(self, project_name: str | None = None) -> CaptureResult:
        windows = await find_godot_debug_windows(self.registry)
        if not windows:
            raise WindowNotFoundError("No Godot debug windows found. Please ensure the game is running in debug mode.")
        target = pick_window(windows, project_name)
        return await self.pipeline.capture_window(target.title)

    async def capture_godot_editor(self, project_name: str | None = None) -> CaptureResult:
        windows = await find_godot_editor_windows(self.registry)
        if not windows:
            raise WindowNotFoundError("No Godot editor windows found. Please ensure Godot Engine is running.")
        target = pick_window(windows, project_name)
        return await self.pipeline.capture_window(target.title)

    async def capture_window_by_title(self, title: str, exact: bool = False) -> CaptureResult:
        window = await find_window_by_title(self.registry, title, exact)
        if window is None:
            how = "exactly matching" if exact else "containing"
            raise WindowNotFoundError(f'No window found with title {how}: "{title}"')
        return await self.pipeline.capture_window(window.title)

    async def capture_fullscreen(self) -> CaptureResult:
        return await self.pipeline.capture_screen()

    async def list_godot_windows(self) -> GodotWindowListing:
        windows = await self.registry.list_windows()
        return GodotWindowListing(debug=filter_debug_windows(windows), editor=filter_editor_windows(windows))

    # --- MCP dispatch ---

    async def call(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """
        Runs tool `name` and returns an MCP `CallToolResult` payload.

        Raises:
            ToolError: For every failure, with a JSON-RPC error code.
        """
        if not isinstance(name, str):
            raise ToolError(INVALID_PARAMS, "Invalid parameters: tool name must be a string")
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolError(METHOD_NOT_FOUND, f"Unknown tool: {name}")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolError(INVALID_PARAMS, "Invalid parameters: arguments must be an object")

        try:
            await self.bridge.ensure_available()
            return await handler(arguments)
        except ValidationError as e:
            message = format_validation_error(e)
            logger.warning(f"Tool '{name}': {message}")
            raise ToolError(INVALID_PARAMS, message) from e
        except WindowNotFoundError as e:
            logger.warning(f"Tool '{name}': {e}")
            raise ToolError(INVALID_REQUEST, str(e)) from e
        except BridgeUnavailableError as e:
            logger.error(f"Tool '{name}': {e}")
            raise ToolError(INTERNAL_ERROR, str(e)) from e
        except Exception as e:
            logger.error(f"Error in tool '{name}': {e}", exc_info=True)
            raise ToolError(INTERNAL_ERROR, f"Tool execution failed: {e}") from e

    async def _call_capture_debug(self, arguments: dict[str, Any]) -> dict[str, Any]:
        args = GodotWindowArgs.model_validate(arguments)
        return image_content(await self.capture_godot_debug(args.project_name))

    async def _call_capture_editor(self, arguments: dict[str, Any]) -> dict[str, Any]:
        args = GodotWindowArgs.model_validate(arguments)
        return image_content(await self.capture_godot_editor(args.project_name))

    async def _call_capture_by_title(self, arguments: dict[str, Any]) -> dict[str, Any]:
        args = WindowTitleArgs.model_validate(arguments)
        return image_content(await self.capture_window_by_title(args.title, args.exact))

    async def _call_capture_fullscreen(self, arguments: dict[str, Any]) -> dict[str, Any]:
        NoArgs.model_validate(arguments)
        return image_content(await self.capture_fullscreen())

    async def _call_list_windows(self, arguments: dict[str, Any]) -> dict[str, Any]:
        NoArgs.model_validate(arguments)
        listing = await self.list_godot_windows()
        return text_content(listing.to_text())
