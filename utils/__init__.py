"""Utility modules for the locale pipeline.

This package provides logging setup, millisecond time helpers and an explicit retry helper.
"""

from utils.logger_utils import LoggerUtils
from utils.retry_utils import retry_async
from utils.time_utils import DAY_MS, TimeUtils

__all__: list[str] = ["DAY_MS", "LoggerUtils", "TimeUtils", "retry_async"]
