"""Client for the external user-profile service.

Profiles are fetched from ``{base_url}/api/v1/user/{user_id}``. Failures
(timeouts, connection errors, non-2xx responses, bad JSON) raise
``UpstreamUnavailableError``; ``resolve_profile`` turns them into a
placeholder so that callers never fail because the profile service is down.

A module-level singleton is created lazily from config; tests replace it
with ``set_profile_client``.
"""
import logging
from typing import Optional

import httpx

from courier.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "Unknown User"


def placeholder_profile(user_id: str) -> dict:
    return {"id": user_id, "name": PLACEHOLDER_NAME}


class UserProfileClient:
    """Fetches profile documents by user id.

    Args:
        base_url: Root URL of the user service.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_profile(self, user_id: str) -> dict:
        """Fetch one profile.

        Raises:
            UpstreamUnavailableError: On any transport or HTTP failure.
        """
        url = f"{self.base_url}/api/v1/user/{user_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailableError(f"Profile lookup failed for {user_id}: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"Unexpected profile payload for {user_id}")
        return data

    async def resolve_profile(self, user_id: str) -> dict:
        """Fetch a profile, degrading to a placeholder on failure."""
        try:
            return await self.get_profile(user_id)
        except UpstreamUnavailableError as e:
            logger.error(f"Error fetching user data: {e.message}")
            return placeholder_profile(user_id)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_client: Optional[UserProfileClient] = None


def get_profile_client() -> UserProfileClient:
    """Return the global client, building it from config on first use."""
    global _client
    if _client is None:
        from courier.config import get_config
        settings = get_config().user_service
        _client = UserProfileClient(settings.base_url, timeout=settings.timeout_seconds)
    return _client


def set_profile_client(client: Optional[UserProfileClient]) -> None:
    """Set (or clear) the global client."""
    global _client
    _client = client
