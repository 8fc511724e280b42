from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("chipsfx.logging")

LOG_DIR_ENV = "CHIPSFX_LOG_DIR"
DEBUG_ENV = "CHIPSFX_DEBUG"
LOG_FILE = "chipsfx.log"

_PACKAGE_LOGGER = "chipsfx"
_CONSOLE_HANDLER = "chipsfx.console"
_FILE_HANDLER = "chipsfx.file"
_CONSOLE_FORMAT = "%(marker)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MARKERS = {
    logging.DEBUG: "🐛",
    logging.INFO: "🔊",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}


class _MarkerFormatter(logging.Formatter):
    """Console formatter that prefixes each line with a level marker."""

    def format(self, record: logging.LogRecord) -> str:
        record.marker = _MARKERS.get(record.levelno, "")
        return super().format(record)


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "chipsfx" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / LOG_FILE


def debug_enabled() -> bool:
    return bool(os.environ.get(DEBUG_ENV))


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.set_name(_CONSOLE_HANDLER)
    handler.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    handler.setFormatter(_MarkerFormatter(_CONSOLE_FORMAT))
    return handler


def _file_handler() -> logging.Handler | None:
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("File logging disabled, %s is not writable: %s", path, exc)
        return None
    handler.set_name(_FILE_HANDLER)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FORMAT))
    return handler


def configure_logging(*, force: bool = False) -> None:
    """Attach the chipsfx console and file handlers.

    Handlers are looked up by name, so repeated calls are cheap and never
    stack duplicates. ``force`` drops the existing handlers first, which
    also re-reads ``CHIPSFX_LOG_DIR`` and ``CHIPSFX_DEBUG``. The console
    handler is skipped when the application already configured the root
    logger.
    """

    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    present = {handler.get_name() for handler in logger.handlers}
    if _CONSOLE_HANDLER not in present and (force or not logging.getLogger().handlers):
        logger.addHandler(_console_handler())
    if _FILE_HANDLER not in present:
        file_handler = _file_handler()
        if file_handler is not None:
            logger.addHandler(file_handler)
    logger.propagate = True


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append a timestamped traceback of ``exc`` to the chipsfx log file.

    Returns the file written, or None when the log directory is unusable.
    """

    path = get_log_path()
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    header = f"[{datetime.now().isoformat()}] {context} failed: {type(exc).__name__}: {exc}\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(header)
            handle.writelines(lines)
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Failed to write crash log %s: %s", path, log_exc)
        return None
    return path
