"""Summary assembly from independent buy-side and sell-side QuoteSets."""

from typing import Iterable, Optional

from p2p_scanner.models.data_models import Quote, QuoteSet, SummaryView


def best_buy_price(items: Iterable[Quote]) -> float:
    """Lowest positive price on the buy side, 0.0 when there is none."""
    prices = [quote.price for quote in items if quote.price > 0]
    return min(prices) if prices else 0.0


def best_sell_price(items: Iterable[Quote]) -> float:
    """Highest positive price on the sell side, 0.0 when there is none."""
    prices = [quote.price for quote in items if quote.price > 0]
    return max(prices) if prices else 0.0


def spread_pct(buy_price: float, sell_price: float) -> float:
    """
    Spread relative to the best buy price, in percent.

    Negative for a crossed market (sell below buy); never clamped.
    """
    if buy_price <= 0:
        return 0.0
    return (sell_price - buy_price) / buy_price * 100


def build_summary(
    buy: Optional[QuoteSet],
    sell: Optional[QuoteSet],
    top_n: Optional[int] = None,
    ts: Optional[float] = None
) -> Optional[SummaryView]:
    """
    Combine both sides into a SummaryView.

    Args:
        buy: Buy-side result, None if its fetch failed
        sell: Sell-side result, None if its fetch failed
        top_n: Offers kept per side (default: all)
        ts: Summary timestamp (default: newest of the two fetch times)

    Returns:
        SummaryView, or None when either side is missing. A summary is
        never partially populated.
    """
    if buy is None or sell is None:
        return None

    buy_price = best_buy_price(buy.items)
    sell_price = best_sell_price(sell.items)

    return SummaryView(
        fiat=buy.fiat,
        crypto=buy.crypto,
        best_buy_price=buy_price,
        best_sell_price=sell_price,
        mid=(buy_price + sell_price) / 2,
        spread_pct=spread_pct(buy_price, sell_price),
        buy_top=tuple(buy.items[:top_n]),
        sell_top=tuple(sell.items[:top_n]),
        stale=buy.stale or sell.stale,
        ts=max(buy.ts, sell.ts) if ts is None else ts,
    )
