"""Mock upstream servers for testing."""

from .app import create_okx_mock_app, create_p2parmy_mock_app, generate_offers

__all__ = ["create_okx_mock_app", "create_p2parmy_mock_app", "generate_offers"]
