"""Unit tests for the JSON wire formatter."""

import json

import pytest

from p2p_scanner.models.data_models import (
    AttemptStatus,
    FetchReport,
    Quote,
    Side,
    Snapshot,
    SourceAttempt,
)
from p2p_scanner.pipeline.output import JSONOutputFormatter
from p2p_scanner.processor.summary import build_summary
from tests.fixtures.sample_data import make_quote_set


@pytest.fixture
def formatter():
    return JSONOutputFormatter()


def test_format_quote_camel_case(formatter):
    quote = Quote(
        price=41.52,
        min_limit=500.0,
        max_limit=20000.0,
        available=1250.0,
        payment_methods=("Monobank", "PrivatBank"),
        merchant_name="trader1",
        merchant_orders=320,
        merchant_completion_rate=98.5,
        terms="",
    )

    assert formatter.format_quote(quote) == {
        "price": 41.52,
        "minLimit": 500.0,
        "maxLimit": 20000.0,
        "available": 1250.0,
        "paymentMethods": ["Monobank", "PrivatBank"],
        "merchantName": "trader1",
        "merchantOrders": 320,
        "merchantCompletionRate": 98.5,
        "terms": "",
    }


def test_optional_merchant_stats_omitted_when_unknown(formatter):
    quote = make_quote_set(Side.BUY, [41.0]).items[0]
    formatted = formatter.format_quote(quote)

    assert "merchantOrders" not in formatted
    assert "merchantCompletionRate" not in formatted


def test_format_quote_set(formatter):
    data = make_quote_set(Side.SELL, [41.9, 41.8], stale=True, source="error-fallback", ts=1700000000.123)
    formatted = formatter.format_quote_set(data)

    assert formatted["side"] == "sell"
    assert formatted["ts"] == 1700000000123
    assert formatted["stale"] is True
    assert formatted["source"] == "error-fallback"
    assert [item["price"] for item in formatted["items"]] == [41.9, 41.8]


def test_format_summary(formatter):
    summary = build_summary(
        make_quote_set(Side.BUY, [42.0], ts=10.0),
        make_quote_set(Side.SELL, [41.0], ts=12.0),
    )
    formatted = formatter.format_summary(summary)

    assert set(formatted) == {
        "ts", "fiat", "crypto", "bestBuyPrice", "bestSellPrice",
        "mid", "spreadPct", "buyTop", "sellTop", "stale",
    }
    assert formatted["ts"] == 12000
    assert formatted["spreadPct"] < 0
    assert formatted["mid"] == 41.5


def test_format_snapshot(formatter):
    summary = build_summary(make_quote_set(Side.BUY, [41.0]), make_quote_set(Side.SELL, [41.5]))
    formatted = formatter.format_snapshot(Snapshot(id=3, captured_at=2.5, summary=summary))

    assert formatted["id"] == 3
    assert formatted["capturedAt"] == 2500
    assert formatted["summary"]["bestSellPrice"] == 41.5


def test_format_report(formatter):
    report = FetchReport(side=Side.BUY, attempts=[
        SourceAttempt("okx", AttemptStatus.FAILED),
        SourceAttempt("p2parmy", AttemptStatus.SKIPPED),
    ])

    assert formatter.format_report(report) == {
        "side": "buy",
        "attempts": [
            {"source": "okx", "status": "failed"},
            {"source": "p2parmy", "status": "skipped"},
        ],
    }


def test_format_error(formatter):
    assert formatter.format_error("Failed") == {"error": "Failed"}
    assert formatter.format_error("Failed", "try X") == {"error": "Failed", "hint": "try X"}


def test_dumps_is_valid_json(formatter):
    data = formatter.format_quote_set(make_quote_set(Side.BUY, [41.0]))
    assert json.loads(formatter.dumps(data)) == data
