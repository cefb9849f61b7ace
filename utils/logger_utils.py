from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils"]

type LevelType = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "LocalePipeline"


class LoggerUtils:
    """Process-wide logging configuration for the locale pipeline.

    The first instantiation wires a console handler (WARNING and above) and, when a file name
    is given, a rotating UTF-8 file handler onto the namespace root logger. Later instantiations
    return the same object and leave the handlers untouched.

    Attributes:
        _LOGGER_NAMESPACE (str): Prefix for every logger handed out by get_logger().
        _configured (bool): Set once handlers have been attached.
        _instance (LoggerUtils | None): The shared instance.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, filename: str | Path, *, use_null_console: bool = False) -> None:
        """Attach handlers to the namespace root logger.

        Args:
            filename (str | Path): Absolute path of the log file. An empty value disables file logging.
            use_null_console (bool): Use a NullHandler instead of writing to stderr.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self._use_null_console: bool = bool(use_null_console) or sys.stderr is None
        filename = str(filename)
        # handlers filter on their own level; the logger must stay at or below the lowest of them
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)

        self._console_logging()
        if filename.strip():
            self._file_logging(filename)
        else:
            self.root_logger.warning("Log file name is empty. Logging to the file is not performed.")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Route ``warnings.warn`` output into the log (signature of ``warnings.showwarning``)."""
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    def _console_logging(self) -> None:
        if self._use_null_console:
            if not self._has_handler(NullHandler):
                self.root_logger.addHandler(NullHandler())
            return

        if self._has_handler(StreamHandler):
            self.root_logger.warning("Console logging is already configured.")
            return

        console_handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(Formatter("%(levelname)s: %(message)s"))
        self.root_logger.addHandler(console_handler)

    def _file_logging(self, filename: str) -> None:
        """Attach a rotating file handler that records everything from DEBUG up."""
        if self._has_handler(RotatingFileHandler):
            self.root_logger.warning("File logging is already configured.")
            return

        try:
            file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except (FileNotFoundError, PermissionError):
            self.root_logger.error("Incorrect log file name: %s\nLogging to the file is not performed.", filename)
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            Formatter("%(asctime)s %(levelname)-8s %(process)5d %(lineno)4d %(name)-40s\t%(funcName)s\t%(message)s")
        )
        self.root_logger.addHandler(file_handler)

    def _has_handler(self, handler_type: type) -> bool:
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def set_level(self, level: LevelType) -> None:
        """Set the namespace root level, falling back to INFO for unknown names."""
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            self.root_logger.setLevel(level_map[level.upper()])
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified.\nLogging level set to 'INFO'.", level)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return a logger inside the configured namespace.

        Args:
            name (str | None): Module name, usually ``__name__``. None returns the namespace root.

        Returns:
            logging.Logger: The logger instance.
        """
        full_name: str | None
        if LoggerUtils._LOGGER_NAMESPACE:
            full_name = f"{LoggerUtils._LOGGER_NAMESPACE}.{name}" if name else LoggerUtils._LOGGER_NAMESPACE
        else:
            full_name = name or None
        return logging.getLogger(full_name)
