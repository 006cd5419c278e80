"""Quote normalizer for converting heterogeneous upstream payloads to Quotes.

Upstream wire shapes are not contractually stable, so parsing is defensive:
the item list is located by an ordered list of extractor strategies, and
every per-item field is looked up under several known names (legacy and
current). Malformed numbers never raise; they become ``0``.
"""

import math
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from p2p_scanner.fetcher.errors import InvalidFormat
from p2p_scanner.models.data_models import Quote


ItemExtractor = Callable[[Any], Optional[List[Any]]]


def _path_extractor(*path: str) -> ItemExtractor:
    """Build an extractor returning the list found at ``path``, or None."""

    def extract(payload: Any) -> Optional[List[Any]]:
        node = payload
        for part in path:
            if not isinstance(node, Mapping):
                return None
            node = node.get(part)
        return node if isinstance(node, list) else None

    extract.__name__ = "extract_" + "_".join(path)
    return extract


# data[], data.list[], data.data[]
OKX_EXTRACTORS: Tuple[ItemExtractor, ...] = (
    _path_extractor("data"),
    _path_extractor("data", "list"),
    _path_extractor("data", "data"),
)

P2PARMY_EXTRACTORS: Tuple[ItemExtractor, ...] = (
    _path_extractor("ads"),
)


PRICE_FIELDS = ("avgPrice", "price")
MIN_LIMIT_FIELDS = ("minLimit", "min_fiat", "minAmount")
MAX_LIMIT_FIELDS = ("maxLimit", "max_fiat", "maxAmount")
AVAILABLE_FIELDS = ("availableAmount", "available", "surplus_amount")
PAYMENT_METHOD_FIELDS = ("paymentMethods", "payment_methods", "payMethods")
MERCHANT_NAME_FIELDS = ("nickName", "advertiserName", "userName", "user_name", "merchantName")
MERCHANT_ORDERS_FIELDS = ("recentCompletedOrderCount", "user_orders", "completedOrders")
COMPLETION_RATE_FIELDS = ("recentCompletionRate", "user_rate", "completionRate")
TERMS_FIELDS = ("advertisedPayMethod", "terms", "text", "remark")

# Keys tried on payment-method objects
PAYMENT_NAME_KEYS = ("name", "paymentMethod", "payment_method", "method", "label", "title", "identifier")

_MISSING = object()


def extract_items(payload: Any, extractors: Sequence[ItemExtractor]) -> List[Any]:
    """
    Locate the raw item list in a payload.

    Args:
        payload: Decoded JSON body
        extractors: Strategies tried in order; the first non-None result wins

    Returns:
        Raw item list

    Raises:
        InvalidFormat: If no strategy recognizes the payload
    """
    for extractor in extractors:
        items = extractor(payload)
        if items is not None:
            return items
    raise InvalidFormat("response has no recognizable item list")


def _first_present(raw: Mapping, fields: Sequence[str]) -> Any:
    """Return the first value that is present and not empty."""
    for field in fields:
        value = raw.get(field)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return _MISSING


def to_float(value: Any) -> float:
    """
    Coerce a number or numeric string to float.

    Anything unparseable (including NaN and infinities) becomes 0.0.
    """
    if value is _MISSING or value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, str):
        value = value.strip().replace(",", "")
    elif not isinstance(value, (int, float)):
        return 0.0

    try:
        result = float(value)
    except (OverflowError, ValueError):
        # Integers beyond float range raise OverflowError
        return 0.0

    return result if math.isfinite(result) else 0.0


def _optional_float(raw: Mapping, fields: Sequence[str]) -> Optional[float]:
    value = _first_present(raw, fields)
    if value is _MISSING:
        return None
    return to_float(value)


def _optional_int(raw: Mapping, fields: Sequence[str]) -> Optional[int]:
    value = _first_present(raw, fields)
    if value is _MISSING:
        return None
    return int(to_float(value))


def _extract_text(raw: Mapping, fields: Sequence[str], default: str) -> str:
    value = _first_present(raw, fields)
    if value is _MISSING:
        return default
    return str(value).strip()


def _extract_payment_methods(raw: Mapping) -> Tuple[str, ...]:
    """
    Extract payment method names.

    Handles:
    - Comma-joined strings: "Monobank, PrivatBank"
    - Arrays of strings: ["Monobank", "PrivatBank"]
    - Arrays of objects: [{"name": "Monobank"}, {"paymentMethod": "PUMB"}]
    """
    value = _first_present(raw, PAYMENT_METHOD_FIELDS)

    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())

    if not isinstance(value, list):
        return ()

    methods = []
    for entry in value:
        if isinstance(entry, str):
            if entry.strip():
                methods.append(entry.strip())
        elif isinstance(entry, Mapping):
            for key in PAYMENT_NAME_KEYS:
                name = entry.get(key)
                if isinstance(name, str) and name.strip():
                    methods.append(name.strip())
                    break
    return tuple(methods)


def normalize_quote(raw: Mapping) -> Quote:
    """
    Normalize a single upstream offer.

    Args:
        raw: Raw offer object (any known field-name variant)

    Returns:
        Quote with zero/empty defaults for missing fields

    Examples:
        >>> normalize_quote({"avgPrice": "41.5", "paymentMethods": "mono,privat"}).price
        41.5
        >>> normalize_quote({"price": "n/a"}).price
        0.0
    """
    return Quote(
        price=to_float(_first_present(raw, PRICE_FIELDS)),
        min_limit=to_float(_first_present(raw, MIN_LIMIT_FIELDS)),
        max_limit=to_float(_first_present(raw, MAX_LIMIT_FIELDS)),
        available=to_float(_first_present(raw, AVAILABLE_FIELDS)),
        payment_methods=_extract_payment_methods(raw),
        merchant_name=_extract_text(raw, MERCHANT_NAME_FIELDS, "Unknown"),
        merchant_orders=_optional_int(raw, MERCHANT_ORDERS_FIELDS),
        merchant_completion_rate=_optional_float(raw, COMPLETION_RATE_FIELDS),
        terms=_extract_text(raw, TERMS_FIELDS, ""),
    )


def normalize_quotes(
    payload: Any,
    limit: int,
    extractors: Sequence[ItemExtractor] = OKX_EXTRACTORS
) -> Tuple[Quote, ...]:
    """
    Normalize an upstream payload into at most ``limit`` Quotes.

    Source order is preserved. Non-object items are skipped.

    Raises:
        InvalidFormat: If the payload has no recognizable item list
    """
    items = extract_items(payload, extractors)
    quotes: List[Quote] = []
    for raw in items:
        if len(quotes) >= limit:
            break
        if isinstance(raw, Mapping):
            quotes.append(normalize_quote(raw))
    return tuple(quotes)


def upstream_error_code(payload: Any) -> Optional[Any]:
    """Return the application ``code`` of a payload, or None when it signals success."""
    if not isinstance(payload, Mapping):
        return None
    code = payload.get("code")
    if code is None or code == "" or code in (0, "0"):
        return None
    return code
