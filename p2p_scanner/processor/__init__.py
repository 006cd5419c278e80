"""Quote normalization and summary assembly."""

from .normalizer import normalize_quote, normalize_quotes
from .summary import build_summary

__all__ = ["build_summary", "normalize_quote", "normalize_quotes"]
