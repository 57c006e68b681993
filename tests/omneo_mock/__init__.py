"""Omneo API mock for integration testing.

Provides an in-memory implementation of the Omneo webhook and custom-field
endpoints, served through httpx.MockTransport.

Key Features:
- In-memory state for webhook registrations and custom fields
- Call log for asserting which remote calls were made
- Per-key error and latency injection
- Listing failure injection

Usage:
    from omneo_mock import MockOmneoContext

    async with MockOmneoContext() as ctx:
        reconciler = Reconciler(ctx.client)
        await reconciler.sync(state, "https://example.ngrok.app")

        assert len(ctx.api.mutations) == 2
"""

from .api import API_BASE_PATH, MockCall, MockOmneoAPI, MockOmneoState
from .context import MOCK_BASE_URL, MOCK_TOKEN, MockOmneoContext

__all__ = [
    "API_BASE_PATH",
    "MOCK_BASE_URL",
    "MOCK_TOKEN",
    "MockCall",
    "MockOmneoAPI",
    "MockOmneoContext",
    "MockOmneoState",
]
