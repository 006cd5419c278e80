"""JSON output formatter for quote results.

Wire format shared by the HTTP API and the CLI ``--json`` mode. Keys are
camelCase and timestamps are epoch milliseconds.

Example QuoteSet:
{
    "side": "buy",
    "fiat": "UAH",
    "crypto": "USDT",
    "items": [
        {
            "price": 41.52,
            "minLimit": 500.0,
            "maxLimit": 20000.0,
            "available": 1250.0,
            "paymentMethods": ["Monobank", "PrivatBank"],
            "merchantName": "trader1",
            "merchantOrders": 320,
            "merchantCompletionRate": 98.5,
            "terms": ""
        }
    ],
    "ts": 1760870400000,
    "stale": false,
    "source": "okx-api"
}
"""

import json
from typing import Any, Dict, List, Optional

from p2p_scanner.models.data_models import FetchReport, Quote, QuoteSet, Snapshot, SummaryView


def _to_millis(seconds: float) -> int:
    return int(round(seconds * 1000))


class JSONOutputFormatter:
    """Formats quote results as JSON-serializable dictionaries."""

    def format_quote(self, quote: Quote) -> Dict[str, Any]:
        formatted: Dict[str, Any] = {
            "price": quote.price,
            "minLimit": quote.min_limit,
            "maxLimit": quote.max_limit,
            "available": quote.available,
            "paymentMethods": list(quote.payment_methods),
            "merchantName": quote.merchant_name,
            "terms": quote.terms,
        }
        if quote.merchant_orders is not None:
            formatted["merchantOrders"] = quote.merchant_orders
        if quote.merchant_completion_rate is not None:
            formatted["merchantCompletionRate"] = quote.merchant_completion_rate
        return formatted

    def _format_quotes(self, quotes) -> List[Dict[str, Any]]:
        return [self.format_quote(quote) for quote in quotes]

    def format_quote_set(self, quote_set: QuoteSet) -> Dict[str, Any]:
        """Format a QuoteSet with items in source order."""
        return {
            "side": quote_set.side.value,
            "fiat": quote_set.fiat,
            "crypto": quote_set.crypto,
            "items": self._format_quotes(quote_set.items),
            "ts": _to_millis(quote_set.ts),
            "stale": quote_set.stale,
            "source": quote_set.source,
        }

    def format_summary(self, summary: SummaryView) -> Dict[str, Any]:
        """Format summary; ``spreadPct`` keeps its sign."""
        return {
            "ts": _to_millis(summary.ts),
            "fiat": summary.fiat,
            "crypto": summary.crypto,
            "bestBuyPrice": summary.best_buy_price,
            "bestSellPrice": summary.best_sell_price,
            "mid": summary.mid,
            "spreadPct": summary.spread_pct,
            "buyTop": self._format_quotes(summary.buy_top),
            "sellTop": self._format_quotes(summary.sell_top),
            "stale": summary.stale,
        }

    def format_snapshot(self, snapshot: Snapshot) -> Dict[str, Any]:
        return {
            "id": snapshot.id,
            "capturedAt": _to_millis(snapshot.captured_at),
            "summary": self.format_summary(snapshot.summary),
        }

    def format_report(self, report: FetchReport) -> Dict[str, Any]:
        return {
            "side": report.side.value,
            "attempts": [
                {"source": attempt.source, "status": attempt.status.value}
                for attempt in report.attempts
            ],
        }

    def format_error(self, error: str, hint: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": error}
        if hint:
            body["hint"] = hint
        return body

    def dumps(self, data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False)
