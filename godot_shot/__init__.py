"""
godot_shot - Screenshots of Godot windows from WSL, exposed as MCP tools.

Core package initializer.
"""
__version__ = "1.0.0"

import sys

from .logger import get_logger

_logger = get_logger(__name__)
_logger.debug(f"Initializing godot_shot v{__version__} on Python {sys.version.split()[0]} ({sys.platform})")
