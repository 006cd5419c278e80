"""Secondary provider: P2P.Army order-book API (credential required)."""

from typing import Any, Optional

from p2p_scanner.fetcher.clock import Clock, WallClock
from p2p_scanner.fetcher.errors import HttpError, InvalidFormat, Unavailable, UpstreamError
from p2p_scanner.fetcher.http_client import AsyncHTTPClient
from p2p_scanner.models.data_models import SOURCE_P2PARMY, QuoteSet, Side
from p2p_scanner.processor.normalizer import P2PARMY_EXTRACTORS, normalize_quotes
from p2p_scanner.sources.base import QuoteSource


ORDER_BOOK_PATH = "/get_p2p_order_book"


class P2PArmySource(QuoteSource):
    """
    P2P.Army adapter.

    Inert without an API key: ``available`` is False and ``fetch`` raises
    ``Unavailable`` without touching the network.
    """

    name = "p2parmy"

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        base_url: str,
        api_key: Optional[str] = None,
        market: str = "okx",
        clock: Optional[Clock] = None
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or None
        self.market = market
        self.clock = clock or WallClock()

    @property
    def available(self) -> bool:
        return self.api_key is not None

    async def fetch(self, side: Side, fiat: str, crypto: str, limit: int) -> QuoteSet:
        """
        Fetch the order book for one side.

        Raises:
            Unavailable: No API key configured
            NetworkError | HttpError | UpstreamError | InvalidFormat
        """
        if not self.available:
            raise Unavailable("P2P_ARMY_API_KEY is not configured")

        url = f"{self.base_url}{ORDER_BOOK_PATH}"
        response = await self.http_client.post(
            url,
            json={
                "market": self.market,
                "fiat": fiat,
                "asset": crypto,
                "side": side.value.upper(),
                "limit": limit,
            },
            headers={"Content-Type": "application/json", "X-APIKEY": self.api_key},
        )

        if not response.is_success:
            raise HttpError(response.status_code, url)

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise InvalidFormat(f"response is not JSON: {e}") from e

        if not isinstance(payload, dict):
            raise InvalidFormat("response is not a JSON object")

        status = payload.get("status")
        if status != 1:
            raise UpstreamError(status, str(payload.get("message") or payload.get("error") or ""))

        items = normalize_quotes(payload, limit, P2PARMY_EXTRACTORS)

        return QuoteSet(
            side=side,
            fiat=fiat,
            crypto=crypto,
            items=items,
            ts=self.clock.now(),
            stale=False,
            source=SOURCE_P2PARMY,
        )
