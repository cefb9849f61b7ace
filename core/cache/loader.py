"""Translation catalog loaders.

A catalog is the JSON object of messages for one locale. Loaders only fetch and decode it;
caching, coalescing and metrics are the cache manager's job.
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from handlers.async_comm import AsyncCommError, AsyncHttp
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.cache_models import Messages

__all__: list[str] = [
    "CatalogLoadError",
    "CatalogLoaderInterface",
    "HTTPCatalogLoader",
    "JSONFileCatalogLoader",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Language tag such as "en", "zh", "zh-Hant" or "pt_BR"; keeps file names and URLs safe.
LOCALE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z]{2,3}(?:[-_][A-Za-z0-9]{2,8})*$")


class CatalogLoadError(Exception):
    """Raised when a catalog cannot be fetched or is not a JSON object."""

    def __init__(self, locale: str, reason: str) -> None:
        self.locale: str = locale
        self.reason: str = reason
        super().__init__(f"Failed to load messages for locale '{locale}': {reason}")


class CatalogLoaderInterface(ABC):
    """Source of translation catalogs."""

    @abstractmethod
    async def load(self, locale: str) -> Messages:
        """Fetch the catalog of ``locale``.

        Raises:
            CatalogLoadError: If the catalog is missing, unreadable or not a JSON object.
        """

    async def close(self) -> None:  # noqa: B027
        """Release loader resources."""

    @staticmethod
    def check_locale(locale: str) -> None:
        if not isinstance(locale, str) or not LOCALE_PATTERN.match(locale):
            raise CatalogLoadError(str(locale), "invalid locale code")

    @staticmethod
    def check_catalog(locale: str, catalog: Any) -> Messages:
        if not isinstance(catalog, dict):
            raise CatalogLoadError(locale, f"expected a JSON object, got {type(catalog).__name__}")
        return catalog


class JSONFileCatalogLoader(CatalogLoaderInterface):
    """Reads ``<directory>/<locale>.json`` in a worker thread.

    Attributes:
        directory (Path): Folder holding one JSON file per locale.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory: Path = Path(directory)

    def _read(self, path: Path) -> Any:
        with path.open(encoding="utf-8") as file:
            return json.load(file)

    async def load(self, locale: str) -> Messages:
        self.check_locale(locale)
        path: Path = self.directory / f"{locale}.json"
        try:
            catalog: Any = await asyncio.to_thread(self._read, path)
        except FileNotFoundError as err:
            raise CatalogLoadError(locale, f"file not found: {path}") from err
        except (OSError, UnicodeDecodeError) as err:
            raise CatalogLoadError(locale, f"cannot read {path}: {err}") from err
        except json.JSONDecodeError as err:
            raise CatalogLoadError(locale, f"invalid JSON in {path}: {err}") from err

        logger.debug("Loaded catalog '%s' from %s", locale, path)
        return self.check_catalog(locale, catalog)


class HTTPCatalogLoader(CatalogLoaderInterface):
    """Fetches ``<base_url>/<locale>.json`` with AsyncHttp.

    Attributes:
        base_url (str): URL prefix without the trailing slash.
        total_timeout (float): Request timeout in seconds.
    """

    def __init__(self, base_url: str, *, http: AsyncHttp | None = None, total_timeout: float = 10.0) -> None:
        if not base_url.strip():
            msg: str = "The catalog base URL is empty."
            raise ValueError(msg)
        self.base_url: str = base_url.rstrip("/")
        self.total_timeout: float = total_timeout
        self._http: AsyncHttp = http if http is not None else AsyncHttp()

    async def load(self, locale: str) -> Messages:
        self.check_locale(locale)
        url: str = f"{self.base_url}/{locale}.json"
        try:
            catalog: Any = await self._http.get(url=url, total_timeout=self.total_timeout)
        except AsyncCommError as err:
            raise CatalogLoadError(locale, err.msg) from err
        except (json.JSONDecodeError, UnicodeDecodeError) as err:
            raise CatalogLoadError(locale, f"invalid JSON from {url}: {err}") from err

        logger.debug("Loaded catalog '%s' from %s", locale, url)
        return self.check_catalog(locale, catalog)

    async def close(self) -> None:
        await self._http.close()
