"""Upstream quote source adapters."""

from .base import QuoteSource
from .okx import OKXSource
from .p2parmy import P2PArmySource

__all__ = ["OKXSource", "P2PArmySource", "QuoteSource"]
