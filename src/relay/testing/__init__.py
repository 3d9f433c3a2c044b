"""Test utilities for relay applications::

    from relay.testing import TestClient
"""

from relay.testing.client import TestClient

__all__ = ["TestClient"]
