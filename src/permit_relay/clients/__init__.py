"""
Client module for the permit relayer API.

Provides an httpx-based client that submits signed permits and queries
transaction and replay status.
"""

from .http_client import RelayerClient, RelayerResponseError

__all__ = ["RelayerClient", "RelayerResponseError"]
