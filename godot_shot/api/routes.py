"""
routes.py - FastAPI layer exposing the screenshot tools over HTTP.

Mirrors the five MCP tools with plain JSON contracts. The router expects a
`ScreenshotTools` instance on `app.state.tools` (set up by `main.create_app`).
"""
from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from godot_shot.bridge import BridgeUnavailableError
from godot_shot.capture import CaptureError, CaptureResult
from godot_shot.logger import get_logger
from godot_shot.tools import GodotWindowArgs, ScreenshotTools, WindowTitleArgs
from godot_shot.windows import WindowListError, WindowNotFoundError

logger = get_logger(__name__)

T = TypeVar("T")

router = APIRouter(tags=["Godot Screenshots"])


class ScreenshotResponseData(BaseModel):
    image_base64: str = Field(description="Base64 encoded image bytes.")
    format: str = Field(description="Image format ('png' or 'jpg').")
    mime_type: str = Field(description="MIME type of the image.")
    width: int | None = Field(None, description="Width in pixels, when it could be read.")
    height: int | None = Field(None, description="Height in pixels, when it could be read.")

    @classmethod
    def from_result(cls, result: CaptureResult) -> ScreenshotResponseData:
        return cls(
            image_base64=result.base64,
            format=result.image_format,
            mime_type=result.mime_type,
            width=result.width,
            height=result.height,
        )


class WindowInfo(BaseModel):
    handle: str
    title: str


class GodotWindowsResponse(BaseModel):
    debug: list[WindowInfo]
    editor: list[WindowInfo]
    text: str = Field(description="Human readable listing, as returned by the MCP tool.")


def get_tools(request: Request) -> ScreenshotTools:
    return request.app.state.tools


async def _run(tools: ScreenshotTools, operation: str, action: Callable[[], Awaitable[T]]) -> T:
    """Runs `action` after the bridge availability check and maps failures to HTTP errors."""
    try:
        await tools.bridge.ensure_available()
        return await action()
    except WindowNotFoundError as e:
        logger.warning(f"{operation}: {e!s}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error_type": "window_not_found", "message": str(e)})
    except BridgeUnavailableError as e:
        logger.error(f"{operation}: {e!s}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail={"error_type": "bridge_unavailable", "message": str(e)})
    except (CaptureError, WindowListError) as e:
        logger.error(f"{operation} failed: {e!s}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error_type": "screenshot_failed", "message": str(e)})
    except Exception as e:
        logger.error(f"Unexpected error during {operation}: {e!s}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error_type": "internal_server_error", "message": f"An unexpected server error occurred: {e!s}"})


@router.get(
    "/windows",
    response_model=GodotWindowsResponse,
    summary="List Godot Windows",
    description="Lists open Godot windows, grouped into debug and editor windows.",
)
async def api_list_windows(tools: ScreenshotTools = Depends(get_tools)) -> GodotWindowsResponse:
    logger.info("API List Windows request received.")
    listing = await _run(tools, "list windows", tools.list_godot_windows)
    return GodotWindowsResponse(
        debug=[WindowInfo(handle=w.handle, title=w.title) for w in listing.debug],
        editor=[WindowInfo(handle=w.handle, title=w.title) for w in listing.editor],
        text=listing.to_text(),
    )


@router.post(
    "/capture/debug",
    response_model=ScreenshotResponseData,
    summary="Capture Godot Debug Window",
)
async def api_capture_debug(data: GodotWindowArgs | None = None, tools: ScreenshotTools = Depends(get_tools)):
    project_name = data.project_name if data else None
    logger.info(f"API capture debug window request (project={project_name!r}).")
    result = await _run(tools, "debug window capture", lambda: tools.capture_godot_debug(project_name))
    return ScreenshotResponseData.from_result(result)


@router.post(
    "/capture/editor",
    response_model=ScreenshotResponseData,
    summary="Capture Godot Editor Window",
)
async def api_capture_editor(data: GodotWindowArgs | None = None, tools: ScreenshotTools = Depends(get_tools)):
    project_name = data.project_name if data else None
    logger.info(f"API capture editor window request (project={project_name!r}).")
    result = await _run(tools, "editor window capture", lambda: tools.capture_godot_editor(project_name))
    return ScreenshotResponseData.from_result(result)


@router.post(
    "/capture/window",
    response_model=ScreenshotResponseData,
    summary="Capture Window By Title",
)
async def api_capture_window(data: WindowTitleArgs, tools: ScreenshotTools = Depends(get_tools)):
    logger.info(f"API capture window request: title='{data.title}', exact={data.exact}")
    result = await _run(tools, "window capture", lambda: tools.capture_window_by_title(data.title, data.exact))
    return ScreenshotResponseData.from_result(result)


@router.post(
    "/capture/screen",
    response_model=ScreenshotResponseData,
    summary="Capture Full Screen",
)
async def api_capture_screen(tools: ScreenshotTools = Depends(get_tools)):
    logger.info("API full screen capture request.")
    result = await _run(tools, "full screen capture", tools.capture_fullscreen)
    return ScreenshotResponseData.from_result(result)
