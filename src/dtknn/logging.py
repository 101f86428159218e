"""Logging utilities for dtknn.

The package logs through loguru. Records are suppressed until
``enable_logging()`` is called, which adds a stderr handler filtered to
dtknn records and returns a handle used to remove it again.
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

# Drop loguru's default stderr handler (ID 0); enable_logging() adds its own
# level-filtered one. Already removed elsewhere: nothing to do.
with contextlib.suppress(ValueError):
    logger.remove(0)

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["short", "full"]

_FORMATS: Final[dict[str, str]] = {
    "short": (
        "<green>{time:HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{function}</cyan> - "
        "<level>{message}</level> {extra}"
    ),
    "full": (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level> {extra}"
    ),
}


class LoggingHandle:
    """Handle owning one loguru handler added by :func:`enable_logging`.

    Call :meth:`disable` or use the handle as a context manager to remove the
    handler. Once the last active handle is disabled the ``dtknn`` logger is
    disabled again.
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler; disable dtknn logging if no handle remains."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(*, level: LogLevel = "INFO", log_format: LogFormat = "short") -> LoggingHandle:
    """Enable dtknn log output on stderr.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum level shown. ``"DEBUG"`` adds per-tree summaries and
        ``"TRACE"`` every chosen split.
    log_format : {"short", "full"}, default="short"
        ``"full"`` adds the module and line number of each record.

    Returns
    -------
    LoggingHandle
        Handle that removes the handler when disabled.
    """
    if log_format not in _FORMATS:
        raise ValueError(f"log_format must be one of {sorted(_FORMATS)}, got {log_format!r}")
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_dtknn_record,
        format=_FORMATS[log_format],
    )
    return LoggingHandle(handler_id)


def _is_dtknn_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
