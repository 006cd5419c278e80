"""Async HTTP client wrapper with timeout configuration."""

import asyncio
from typing import Any, Dict, Optional

import httpx

from p2p_scanner.fetcher.errors import InvalidFormat, NetworkError


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Configurable connect timeout and a hard bound on each request
    - Connection pooling via httpx
    - Context manager for proper lifecycle management

    Timeouts and transport failures surface as ``NetworkError`` and corrupt
    bodies as ``InvalidFormat``; the in-flight request is cancelled when the
    bound expires.
    """

    def __init__(
        self,
        request_timeout: float = 10.0,
        connect_timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize HTTP client.

        Args:
            request_timeout: Upper bound for one request, in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            return
        timeout = httpx.Timeout(self.request_timeout, connect=self.connect_timeout)
        self._client = httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Perform GET request.

        Raises:
            NetworkError: On timeout or connection failure
        """
        return await self.request("GET", url, params=params, **kwargs)

    async def post(
        self,
        url: str,
        json: Optional[Any] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Perform POST request with a JSON body.

        Raises:
            NetworkError: On timeout or connection failure
        """
        return await self.request("POST", url, json=json, **kwargs)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        try:
            return await asyncio.wait_for(
                self._client.request(method, url, **kwargs),
                timeout=self.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"timeout after {self.request_timeout}s: {url}") from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"timeout: {url}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        except httpx.DecodingError as e:
            raise InvalidFormat(f"undecodable response body: {e}") from e
        except httpx.RequestError as e:
            # Redirect loops and other request-level failures
            raise NetworkError(f"{type(e).__name__}: {e}") from e
