"""Asynchronous HTTP client used to fetch remote translation catalogs.

Responses are decoded by a handler chosen from the response ``Content-Type``. Transport problems
(timeouts, refused connections, error status codes) are raised as AsyncCommError subclasses so
callers only deal with one exception family.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from aiohttp.client import ClientResponse


__all__: list[str] = ["AsyncCommError", "AsyncCommInvalidContentTypeError", "AsyncCommTimeoutError", "AsyncHttp"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

CONNECT_TIMEOUT: Final[float] = 1.0


def _decode_json(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


class AsyncHttp:
    """Small aiohttp wrapper with content-type based decoding.

    The session is created on first use inside the running event loop and closed by close()
    or by leaving the ``async with`` block.

    Attributes:
        content_handlers (dict[str, Callable[[bytes], Any]]): Decoder per media type.
    """

    def __init__(self, *, headers: dict[str, str] | None = None) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self._headers: dict[str, str] = dict(headers or {})
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("application/json", _decode_json)
        self.add_handler("text/json", _decode_json)
        self.add_handler("text/plain", lambda raw: raw.decode("utf-8"))

    async def __aenter__(self) -> Self:
        self.initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    def initialize_session(self) -> None:
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(headers=self._headers, raise_for_status=True)
            logger.debug("%s session initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """Current session, created when missing or closed."""
        self.initialize_session()
        assert self.__session is not None
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        if self.__session is not None and not self.__session.closed:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Register the decoder for a media type, replacing any existing one.

        Args:
            content_type (str): Media type without parameters, e.g. ``application/json``.
            handler (Callable[[bytes], Any]): Converts the raw body into the returned value.
        """
        if content_type in self.content_handlers:
            logger.debug("Replacing handler for content type '%s'", content_type)
        self.content_handlers[content_type] = handler

    async def get(self, *, url: str, total_timeout: float = 10.0) -> Any:
        """GET ``url`` and return the decoded body.

        Args:
            url (str): Absolute URL.
            total_timeout (float): Total timeout in seconds; 0 or less disables it.

        Returns:
            Any: Decoded body, or None for an empty body.

        Raises:
            AsyncCommTimeoutError: If the server did not answer in time.
            AsyncCommError: On connection failures and error status codes.
            AsyncCommInvalidContentTypeError: If no handler matches the response media type.
        """
        return await self._request("GET", url=url, total_timeout=total_timeout)

    async def decode_response(self, resp: ClientResponse) -> Any:
        content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip().lower()
        raw: bytes = await resp.read()
        if not raw:
            logger.debug("Received empty response from '%s'", resp.url)
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(content_type)
        if handler is None:
            msg: str = f"Unknown Content-Type '{content_type}'"
            raise AsyncCommInvalidContentTypeError(msg)
        return handler(raw)

    @staticmethod
    def _timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        if total_timeout < CONNECT_TIMEOUT:
            return aiohttp.ClientTimeout(total=total_timeout)
        # Fail fast on connect while still honoring the total timeout.
        return aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

    async def _request(self, method: HTTPMethod, *, url: str, total_timeout: float, **kwargs: Any) -> Any:
        logger.debug("[%s] url=%s timeout=%s", method, url, total_timeout)
        try:
            async with self.session.request(
                method=method,
                url=url,
                timeout=self._timeout(total_timeout),
                **kwargs,
            ) as resp:
                return await self.decode_response(resp)
        except TimeoutError as err:
            msg = f"Timeout while waiting for '{url}'."
            raise AsyncCommTimeoutError(msg) from err
        except aiohttp.ClientConnectorError as err:
            msg = f"Could not connect to '{url}'."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientResponseError as err:
            msg = f"Error response from '{url}'"
            raise AsyncCommError(msg, response=err) from err
        except (aiohttp.ClientError, ConnectionResetError) as err:
            msg = f"Request to '{url}' failed: {err}"
            raise AsyncCommError(msg) from err


class AsyncCommError(Exception):
    """Base class of the HTTP client errors.

    Attributes:
        msg (str): Description, with the status code appended for error responses.
        status (int | None): HTTP status of an error response.
    """

    def __init__(self, msg: str | BaseException, **kwargs: Any) -> None:
        self.msg: str = str(msg)
        self.status: int | None = None

        rsp: aiohttp.ClientResponseError | None = kwargs.pop("response", None)
        if isinstance(rsp, aiohttp.ClientResponseError):
            self.status = rsp.status
            self.msg = f"{self.msg}: status='{rsp.status}'"

        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """The request did not complete within its timeout."""


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """No handler is registered for the media type of the response."""
