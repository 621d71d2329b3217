#!/usr/bin/env python3
"""
MCP Server for Godot screenshots over stdio.

Implements the Model Context Protocol (JSON-RPC 2.0, one JSON object per
line) for clients such as Claude Desktop. The server runs inside WSL and
reaches the Windows desktop through powershell.exe.

Features:
- Five tools: capture_godot_debug, capture_godot_editor,
  capture_window_by_title, capture_fullscreen, list_godot_windows
- One asyncio event loop; each tools/call runs as its own task, so
  overlapping calls share the capture throttle and window cache
- Logging to stderr (stdout carries protocol traffic), configured from
  MCP_LOG_LEVEL / MCP_LOG_FILE, silenced by MCP_TEST_MODE
"""
# ===== STANDARD LIBRARY =====
import asyncio
import json
import logging
import sys
import threading
from typing import Any, Set

# ===== PACKAGE DEPENDENCIES =====
from godot_shot import __version__
from godot_shot.config import ScreenshotConfig, is_test_mode
from godot_shot.context import BridgeContext
from godot_shot.logger import get_logger, setup_logging
from godot_shot.tools import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    TOOL_DEFINITIONS,
    ScreenshotTools,
    ToolError,
)

logger = get_logger(__name__)

SERVER_NAME = "godot-screenshot-server"
SERVER_VERSION = __version__
PROTOCOL_VERSION = "2024-11-05"
PARSE_ERROR = -32700


def send_response(response: dict[str, Any]) -> None:
    """Writes one JSON-RPC message to stdout."""
    try:
        json_str = json.dumps(response)
    except (TypeError, ValueError) as te:
        logger.critical(f"JSON serialization error for response (ID: {response.get('id')}): {te}", exc_info=True)
        json_str = json.dumps({
            "jsonrpc": "2.0",
            "id": response.get("id"),
            "error": {"code": INTERNAL_ERROR, "message": "Internal error: Response serialization failed."},
        })
    sys.stdout.write(json_str + "\n")
    sys.stdout.flush()

    resp_id = response.get("id", "N/A")
    if "error" in response:
        logger.debug(f"Sent error response (ID: {resp_id}): {response['error'].get('message', 'Unknown error')}")
    else:
        logger.debug(f"Sent response (ID: {resp_id})")


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def handle_initialize(params: dict[str, Any]) -> dict[str, Any]:
    logger.info(f"Handling 'initialize' request. Client: {params.get('clientInfo', 'unknown')}")
    return {
        "protocolVersion": params.get("protocolVersion", PROTOCOL_VERSION),
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        "capabilities": {"tools": {"listChanged": False}},
    }


class StdioServer:
    """Reads requests from stdin and answers on stdout."""

    def __init__(self, tools: ScreenshotTools):
        self.tools = tools
        self.active_tasks: Set[asyncio.Task] = set()
        self.reader_thread: threading.Thread | None = None

    async def handle_tool_call(self, params: dict[str, Any], request_id: Any) -> None:
        tool_name = params.get("name")
        arguments = params.get("arguments") or {}
        logger.info(f"Tool Call: '{tool_name}' (ID: {request_id}). Args: {list(arguments) if isinstance(arguments, dict) else arguments!r}")
        try:
            result = await self.tools.call(tool_name, arguments)
            send_response({"jsonrpc": "2.0", "id": request_id, "result": result})
        except ToolError as e:
            send_response(error_response(request_id, e.code, e.message))
        except Exception as e:
            logger.error(f"Unexpected failure in tool call '{tool_name}' (ID: {request_id}): {e}", exc_info=True)
            send_response(error_response(request_id, INTERNAL_ERROR, f"Internal error: {e}"))

    def _spawn_tool_call(self, params: dict[str, Any], request_id: Any) -> None:
        task = asyncio.create_task(self.handle_tool_call(params, request_id))
        self.active_tasks.add(task)
        task.add_done_callback(self.active_tasks.discard)

    async def handle_message(self, line: str) -> bool:
        """Processes one input line. Returns False when the server should stop."""
        try:
            request = json.loads(line)
            if not isinstance(request, dict):
                raise json.JSONDecodeError("Input not JSON object.", line, 0)
        except json.JSONDecodeError as e_json:
            logger.error(f"Invalid JSON: '{line}'. Error: {e_json!s}")
            send_response(error_response(None, PARSE_ERROR, f"Parse error: {e_json.msg}"))
            return True

        method = request.get("method")
        params_data = request.get("params") or {}
        request_id = request.get("id")
        logger.debug(f"Request: Method='{method}', ID='{request_id}'")

        if request_id is None:
            if method == "notifications/initialized":
                logger.info("Client 'initialized' notification.")
            else:
                logger.debug(f"Unhandled notification: '{method}'.")
            return True

        if not isinstance(params_data, dict):
            send_response(error_response(request_id, INVALID_PARAMS, "Invalid parameters: params must be an object"))
            return True

        if method == "initialize":
            send_response({"jsonrpc": "2.0", "id": request_id, "result": handle_initialize(params_data)})
        elif method == "tools/list":
            send_response({"jsonrpc": "2.0", "id": request_id, "result": {"tools": TOOL_DEFINITIONS}})
        elif method == "tools/call":
            tool_name = params_data.get("name")
            if not tool_name:
                send_response(error_response(request_id, INVALID_PARAMS, "Invalid parameters: tool 'name' missing."))
            elif not isinstance(tool_name, str):
                send_response(error_response(request_id, INVALID_PARAMS, "Invalid parameters: tool 'name' must be a string."))
            else:
                self._spawn_tool_call(params_data, request_id)
        elif method == "ping":
            send_response({"jsonrpc": "2.0", "id": request_id, "result": {}})
        elif method == "shutdown":
            logger.info(f"Shutdown request (ID: {request_id}).")
            await self.drain()
            send_response({"jsonrpc": "2.0", "id": request_id, "result": "Server shutting down."})
            return False
        else:
            logger.warning(f"Method not found: '{method}' (ID: {request_id})")
            send_response(error_response(request_id, METHOD_NOT_FOUND, f"Method '{method}' not found."))
        return True

    async def drain(self) -> None:
        """Waits for in-flight tool calls."""
        if self.active_tasks:
            await asyncio.gather(*list(self.active_tasks), return_exceptions=True)

    def _start_reader(self) -> asyncio.Queue:
        """
        Reads stdin on a daemon thread and hands lines to the loop.

        The thread never holds up interpreter exit, even while parked in
        readline. An empty string marks end of input.
        """
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue = asyncio.Queue()

        def pump() -> None:
            try:
                for line in iter(sys.stdin.readline, ""):
                    loop.call_soon_threadsafe(lines.put_nowait, line)
                loop.call_soon_threadsafe(lines.put_nowait, "")
            except RuntimeError:
                # loop already closed; nobody is waiting for more input
                return

        self.reader_thread = threading.Thread(target=pump, name="stdin-reader", daemon=True)
        self.reader_thread.start()
        return lines

    async def serve(self) -> None:
        logger.info(f"{SERVER_NAME} v{SERVER_VERSION} listening on stdin...")
        lines = self._start_reader()
        while True:
            line = await lines.get()
            if not line:
                logger.info("Stdin closed. Server shutting down.")
                break
            line = line.strip()
            if not line:
                continue
            if not await self.handle_message(line):
                break
        await self.drain()


def configure_logging(config: ScreenshotConfig) -> None:
    if is_test_mode():
        logging.disable(logging.CRITICAL)
        return
    setup_logging(level=config.log_level, log_file=config.log_file, force=True)


def main() -> None:
    config = ScreenshotConfig.from_env()
    configure_logging(config)
    context = BridgeContext(config=config)
    if not context.wsl:
        logger.warning("This server is designed to run in WSL. Some features may not work correctly.")

    server = StdioServer(ScreenshotTools(context))
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Server shutdown by KeyboardInterrupt.")
    except Exception as e_top:
        logger.critical(f"Top-level unrecoverable error: {e_top!s}", exc_info=True)
        sys.stderr.write(f"CRITICAL SERVER ERROR: {e_top}\n")
        sys.exit(1)
    finally:
        context.close()
        logger.info("Godot screenshot MCP server process shut down.")


if __name__ == "__main__":
    main()
