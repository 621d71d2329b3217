"""MCPツール層のテスト"""

import base64

import pytest

from godot_shot.tools import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    TOOL_DEFINITIONS,
    GodotWindowListing,
    ToolError,
)
from godot_shot.windows import WindowRecord


class TestToolDefinitions:
    def test_five_tools_with_schemas(self, tools):
        names = [t["name"] for t in TOOL_DEFINITIONS]
        assert names == tools.tool_names
        assert all(t["inputSchema"]["type"] == "object" for t in TOOL_DEFINITIONS)

    def test_title_is_required(self):
        by_name = {t["name"]: t for t in TOOL_DEFINITIONS}
        assert by_name["capture_window_by_title"]["inputSchema"]["required"] == ["title"]


class TestListing:
    def test_text_with_windows(self):
        listing = GodotWindowListing(
            debug=[WindowRecord("1", "MyGame (DEBUG)")],
            editor=[WindowRecord("2", "MyGame - Godot Engine")],
        )
        assert listing.to_text() == (
            "=== Godot Debug Windows ===\n"
            "- MyGame (DEBUG)\n"
            "\n"
            "=== Godot Editor Windows ===\n"
            "- MyGame - Godot Engine"
        )

    def test_text_without_windows(self):
        assert GodotWindowListing(debug=[], editor=[]).to_text().endswith("\n\nNo Godot windows found.")


class TestCall:
    @pytest.mark.asyncio
    async def test_capture_debug_returns_image_content(self, tools, host):
        host.add_window("MyGame (DEBUG)")

        result = await tools.call("capture_godot_debug", {})

        content = result["content"][0]
        assert content["type"] == "image"
        assert content["mimeType"] == "image/png"
        assert base64.b64decode(content["data"]).startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_project_name_selects_window(self, tools, host):
        host.add_window("Alpha (DEBUG)")
        host.add_window("Beta (DEBUG)")

        await tools.call("capture_godot_debug", {"projectName": "Beta"})

        assert "$targetTitle = 'Beta (DEBUG)'" in host.scripts[-1]

    @pytest.mark.asyncio
    async def test_editor_capture(self, tools, host):
        host.add_window("Proj - Godot Engine")
        result = await tools.call("capture_godot_editor", {"projectName": "Proj"})
        assert result["content"][0]["type"] == "image"

    @pytest.mark.asyncio
    async def test_no_debug_window(self, tools, host):
        host.add_window("Notepad")
        with pytest.raises(ToolError) as excinfo:
            await tools.call("capture_godot_debug", {})
        assert excinfo.value.code == INVALID_REQUEST
        assert "No Godot debug windows found" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_no_editor_window(self, tools):
        with pytest.raises(ToolError) as excinfo:
            await tools.call("capture_godot_editor", {})
        assert excinfo.value.code == INVALID_REQUEST
        assert "No Godot editor windows found" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_window_by_title_not_found(self, tools, host):
        host.add_window("Untitled - Notepad")
        with pytest.raises(ToolError) as excinfo:
            await tools.call("capture_window_by_title", {"title": "Notepad", "exact": True})
        assert excinfo.value.code == INVALID_REQUEST
        assert excinfo.value.message == 'No window found with title exactly matching: "Notepad"'

    @pytest.mark.asyncio
    async def test_window_by_title_substring(self, tools, host):
        host.add_window("Untitled - Notepad")
        result = await tools.call("capture_window_by_title", {"title": "Notepad"})
        assert result["content"][0]["type"] == "image"

    @pytest.mark.asyncio
    async def test_fullscreen(self, tools):
        result = await tools.call("capture_fullscreen", {})
        assert result["content"][0]["mimeType"] == "image/png"

    @pytest.mark.asyncio
    async def test_list_godot_windows(self, tools, host):
        host.add_window("MyGame (DEBUG)")
        host.add_window("MyGame - Godot Engine")

        result = await tools.call("list_godot_windows", {})

        text = result["content"][0]["text"]
        assert "- MyGame (DEBUG)" in text
        assert "- MyGame - Godot Engine" in text
        assert host.listing_calls == 1

    @pytest.mark.asyncio
    async def test_unknown_tool(self, tools):
        with pytest.raises(ToolError) as excinfo:
            await tools.call("capture_everything", {})
        assert excinfo.value.code == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [["capture_fullscreen"], {"tool": "x"}, 7])
    async def test_non_string_tool_name(self, tools, name):
        with pytest.raises(ToolError) as excinfo:
            await tools.call(name, {})
        assert excinfo.value.code == INVALID_PARAMS

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, arguments",
        [
            ("capture_window_by_title", {}),
            ("capture_window_by_title", {"title": ""}),
            ("capture_window_by_title", {"title": "x", "exact": "maybe"}),
            ("capture_godot_debug", {"projectName": 42}),
            ("capture_godot_debug", ["not", "a", "dict"]),
        ],
    )
    async def test_invalid_arguments(self, tools, name, arguments):
        with pytest.raises(ToolError) as excinfo:
            await tools.call(name, arguments)
        assert excinfo.value.code == INVALID_PARAMS
        assert excinfo.value.message.startswith("Invalid parameters")

    @pytest.mark.asyncio
    async def test_bridge_unavailable(self, tools, host):
        host.reachable = False
        with pytest.raises(ToolError) as excinfo:
            await tools.call("list_godot_windows", {})
        assert excinfo.value.code == INTERNAL_ERROR
        assert "PowerShell is not accessible" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_capture_failure_is_internal_error(self, tools, host):
        host.add_window("MyGame (DEBUG)")
        host.capture_stderr = "access denied"
        with pytest.raises(ToolError) as excinfo:
            await tools.call("capture_godot_debug", {})
        assert excinfo.value.code == INTERNAL_ERROR
        assert excinfo.value.message.startswith("Tool execution failed:")
