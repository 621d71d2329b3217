"""
logger.py - Logging setup shared by every godot_shot module.

Modules never configure logging themselves; they call `get_logger(__name__)`.
Console records go to stderr because the stdio server owns stdout for
JSON-RPC traffic. An optional log file receives the same records.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Bridge output can be long (full window listings); cap what goes to the log.
MAX_LOGGED_OUTPUT: int = 1024

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("PIL.PngImagePlugin", "uvicorn.access", "asyncio")

_configured = False


def _level_from(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if isinstance(resolved, int):
        return resolved
    print(f"Warning: Unknown log level '{value}', using INFO.", file=sys.stderr)
    return logging.INFO


def _file_handler(log_file: Path | str) -> logging.Handler | None:
    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        # Console logging still works; the file is optional.
        print(f"Warning: Cannot log to '{path}': {e}", file=sys.stderr)
        return None


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Path | str | None = None,
    format_string: str | None = None,
    force: bool = False,
) -> None:
    """
    Installs the root handlers.

    Only the first call has an effect unless `force=True`, which replaces
    any handlers installed earlier (the servers do this once they have read
    their configuration).

    Args:
        level: Level number or name ("DEBUG", "info", ...).
        log_file: Optional file that receives a copy of every record.
        format_string: Overrides `LOG_FORMAT`.
        force: Reconfigure even if logging was already set up.
    """
    global _configured
    if _configured and not force:
        return

    formatter = logging.Formatter(format_string or LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        extra = _file_handler(log_file)
        if extra is not None:
            handlers.append(extra)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(_level_from(level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    root.debug(f"Logging ready (level={logging.getLevelName(root.level)}, file={log_file or '-'}).")


def get_logger(name: str) -> logging.Logger:
    """
    Returns the logger for `name`, applying the default setup on first use
    so early records are not dropped.

    Example:
        >>> from godot_shot.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Window cache refreshed")
    """
    if not _configured:
        setup_logging()
    return logging.getLogger(name)


def truncate_output(text: str, limit: int = MAX_LOGGED_OUTPUT) -> str:
    """Shortens bridge output for DEBUG logging."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text) - limit} more chars)"
