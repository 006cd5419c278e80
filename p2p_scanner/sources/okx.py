"""Primary provider: OKX p2p-ticker aggregate endpoint with mirror failover."""

from typing import Any, Dict, List, Optional

import httpx

from p2p_scanner.fetcher.clock import Clock, WallClock
from p2p_scanner.fetcher.errors import HttpError, InvalidFormat, QuoteSourceError, UpstreamError
from p2p_scanner.fetcher.http_client import AsyncHTTPClient
from p2p_scanner.models.data_models import SOURCE_OKX, QuoteSet, Side
from p2p_scanner.processor.normalizer import OKX_EXTRACTORS, normalize_quotes, upstream_error_code
from p2p_scanner.sources.base import QuoteSource


TICKER_PATH = "/api/v5/dex/aggregate/quote/p2p-ticker"

MINIMAL_HEADERS: Dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9,uk;q=0.8",
    "Referer": "https://www.okx.com/",
    "Origin": "https://www.okx.com",
}


class OKXSource(QuoteSource):
    """
    OKX adapter.

    Per attempt, mirrors are tried in configured order. Each mirror gets a
    request with minimal headers first and, if that is rejected with a
    non-2xx status, a second one with browser-like headers. The first mirror
    that yields a well-formed payload without an error code wins; remaining
    mirrors are not contacted.
    """

    name = "okx"

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        base_urls: List[str],
        amount: str = "1000",
        clock: Optional[Clock] = None,
        logger=None
    ):
        """
        Args:
            http_client: Shared HTTP client
            base_urls: Mirror base URLs, in priority order
            amount: Fiat amount forwarded to the ticker query
            clock: Clock used for QuoteSet timestamps
            logger: Optional structured logger
        """
        if not base_urls:
            raise ValueError("OKXSource needs at least one base URL")
        self.http_client = http_client
        self.base_urls = list(base_urls)
        self.amount = amount
        self.clock = clock or WallClock()
        self.logger = logger

    def _params(self, side: Side, fiat: str, crypto: str) -> Dict[str, str]:
        return {
            "side": side.value,
            "fiat": fiat,
            "crypto": crypto,
            "paymentMethod": "all",
            "amount": self.amount,
        }

    async def _request_mirror(self, url: str, params: Dict[str, str]) -> httpx.Response:
        """Minimal headers first, escalating to browser headers on rejection."""
        response = await self.http_client.get(url, params=params, headers=MINIMAL_HEADERS)
        if not response.is_success:
            response = await self.http_client.get(url, params=params, headers=BROWSER_HEADERS)
        if not response.is_success:
            raise HttpError(response.status_code, url)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise InvalidFormat(f"response is not JSON: {e}") from e

    async def fetch(self, side: Side, fiat: str, crypto: str, limit: int) -> QuoteSet:
        """
        Fetch quotes from the first healthy mirror.

        Raises:
            NetworkError | HttpError | UpstreamError | InvalidFormat:
                The error from the last mirror when every mirror fails
        """
        params = self._params(side, fiat, crypto)
        last_error: Optional[QuoteSourceError] = None

        for base_url in self.base_urls:
            url = f"{base_url}{TICKER_PATH}"
            try:
                response = await self._request_mirror(url, params)
                payload = self._decode(response)

                code = upstream_error_code(payload)
                if code is not None:
                    message = payload.get("msg", "") if isinstance(payload, dict) else ""
                    raise UpstreamError(code, message)

                items = normalize_quotes(payload, limit, OKX_EXTRACTORS)
            except QuoteSourceError as e:
                last_error = e
                if self.logger:
                    self.logger.mirror_error(source=self.name, url=url, error=str(e))
                continue

            return QuoteSet(
                side=side,
                fiat=fiat,
                crypto=crypto,
                items=items,
                ts=self.clock.now(),
                stale=False,
                source=SOURCE_OKX,
            )

        raise last_error
