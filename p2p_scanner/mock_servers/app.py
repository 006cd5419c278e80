"""FastAPI mock upstream servers for local development and testing."""

import asyncio
import os
import random
from typing import Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel


PAYMENT_METHODS = ["Monobank", "PrivatBank", "PUMB", "A-Bank", "Sense SuperApp"]


def generate_offers(
    side: str,
    count: int,
    rng: random.Random,
    base_price: float = 41.5
) -> List[Dict]:
    """
    Generate OKX-style raw offers.

    Buy-side offers ascend in price, sell-side offers descend, as the
    real ticker does.
    """
    step = 0.02 if side == "buy" else -0.02
    offers = []
    for i in range(count):
        offers.append({
            "avgPrice": f"{base_price + step * i:.2f}",
            "minLimit": str(rng.choice([100, 500, 1000])),
            "maxLimit": str(rng.choice([20000, 50000, 100000])),
            "availableAmount": f"{rng.uniform(100, 5000):.2f}",
            "paymentMethods": ",".join(rng.sample(PAYMENT_METHODS, 2)),
            "nickName": f"merchant_{i + 1}",
            "recentCompletedOrderCount": str(rng.randint(10, 2000)),
            "recentCompletionRate": f"{rng.uniform(90, 100):.1f}",
        })
    return offers


def _shape_payload(offers: List[Dict], payload_shape: str) -> Dict:
    if payload_shape == "nested-list":
        return {"code": "0", "data": {"list": offers}}
    if payload_shape == "nested-data":
        return {"code": "0", "data": {"data": offers}}
    return {"code": "0", "data": offers}


def create_okx_mock_app(
    name: str = "okx-mock",
    random_seed: Optional[int] = None,
    error_rate: float = 0.0,
    extra_latency_ms: int = 0,
    items: int = 20,
    payload_shape: str = "list",
    error_code: Optional[str] = None,
    require_browser_headers: bool = False
) -> FastAPI:
    """
    Create a mock of the OKX p2p-ticker endpoint.

    Args:
        name: Server name
        random_seed: Seed for deterministic behavior
        error_rate: Probability of returning 5xx errors (0.0-1.0)
        extra_latency_ms: Additional latency in milliseconds
        items: Offers per response
        payload_shape: "list", "nested-list" or "nested-data"
        error_code: When set, every response carries this application error code
        require_browser_headers: Reject requests without a User-Agent with 403

    Returns:
        FastAPI application
    """
    app = FastAPI(title=f"Mock OKX - {name}")
    rng = random.Random(random_seed)

    @app.get("/api/v5/dex/aggregate/quote/p2p-ticker")
    async def p2p_ticker(
        request: Request,
        side: str = "buy",
        fiat: str = "UAH",
        crypto: str = "USDT"
    ):
        """Ticker offers for one side."""
        if extra_latency_ms > 0:
            await asyncio.sleep(extra_latency_ms / 1000.0)

        if require_browser_headers and not request.headers.get("user-agent", "").startswith("Mozilla"):
            raise HTTPException(status_code=403, detail="Forbidden")

        if rng.random() < error_rate:
            raise HTTPException(status_code=rng.choice([500, 502, 503]), detail="Simulated error")

        if error_code is not None:
            return {"code": error_code, "msg": "Simulated upstream error", "data": []}

        if side not in ("buy", "sell"):
            raise HTTPException(status_code=400, detail="Invalid side")

        return _shape_payload(generate_offers(side, items, rng), payload_shape)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


class OrderBookRequest(BaseModel):
    """P2P.Army order book request body."""
    market: str = "okx"
    fiat: str
    asset: str
    side: str
    limit: int = 10


def create_p2parmy_mock_app(
    name: str = "p2parmy-mock",
    api_key: str = "test-key",
    random_seed: Optional[int] = None,
    error_rate: float = 0.0
) -> FastAPI:
    """
    Create a mock of the P2P.Army order book endpoint.

    Requests without the expected X-APIKEY header get ``status: 0``.
    """
    app = FastAPI(title=f"Mock P2P.Army - {name}")
    rng = random.Random(random_seed)

    @app.post("/get_p2p_order_book")
    async def order_book(body: OrderBookRequest, x_apikey: Optional[str] = Header(default=None)):
        """Order book ads for one side."""
        if rng.random() < error_rate:
            raise HTTPException(status_code=503, detail="Simulated error")

        if x_apikey != api_key:
            return {"status": 0, "message": "Invalid API key"}

        ads = []
        for i, offer in enumerate(generate_offers(body.side.lower(), body.limit, rng)):
            ads.append({
                "price": float(offer["avgPrice"]),
                "min_fiat": float(offer["minLimit"]),
                "max_fiat": float(offer["maxLimit"]),
                "surplus_amount": float(offer["availableAmount"]),
                "payment_methods": offer["paymentMethods"].split(","),
                "user_name": f"army_{i + 1}",
                "user_orders": int(offer["recentCompletedOrderCount"]),
                "user_rate": float(offer["recentCompletionRate"]),
                "text": "",
            })
        return {"status": 1, "ads": ads}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads SERVER_NAME from environment to determine which server to create.
    Defaults to the OKX mock if not specified.
    """
    server_name = os.getenv("SERVER_NAME", "okx")

    if server_name == "p2parmy":
        return create_p2parmy_mock_app(
            api_key=os.getenv("P2P_ARMY_API_KEY", "test-key"),
            random_seed=int(os.getenv("RANDOM_SEED", 42)),
            error_rate=float(os.getenv("ERROR_RATE", 0.0)),
        )

    return create_okx_mock_app(
        random_seed=int(os.getenv("RANDOM_SEED", 42)),
        error_rate=float(os.getenv("ERROR_RATE", 0.1)),
        extra_latency_ms=int(os.getenv("EXTRA_LATENCY_MS", 0)),
        items=int(os.getenv("ITEMS", 20)),
        payload_shape=os.getenv("PAYLOAD_SHAPE", "list"),
    )
