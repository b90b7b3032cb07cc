"""
Instance Metadata Client

Reads instance identity from the local metadata service using the
session-token flow (IMDSv2): a PUT to obtain a short-lived token, then one
GET per field carrying that token. Every failure degrades the affected
field to "unknown" instead of raising.
"""

import time
from typing import Dict, Optional

import httpx

from config import settings
from models.health import InstanceIdentity, UNKNOWN
from utils.logging import get_logger, log_external_api_call

logger = get_logger("instance-metadata")

TOKEN_PATH = "/api/token"
TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"
TOKEN_HEADER = "X-aws-ec2-metadata-token"

# InstanceIdentity field -> metadata path
IDENTITY_PATHS: Dict[str, str] = {
    "id": "/meta-data/instance-id",
    "type": "/meta-data/instance-type",
    "availability_zone": "/meta-data/placement/availability-zone",
    "region": "/meta-data/placement/region",
    "private_ip": "/meta-data/local-ipv4",
}


class InstanceMetadataClient:
    """Fetches instance identity with a token-authenticated metadata flow."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token_ttl_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.METADATA_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.METADATA_TIMEOUT
        self.token_ttl_seconds = token_ttl_seconds or settings.METADATA_TOKEN_TTL_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def fetch_token(self, client: httpx.AsyncClient) -> Optional[str]:
        """Request a session token. Returns None if the service is unreachable."""
        start_time = time.time()
        try:
            response = await client.put(
                TOKEN_PATH, headers={TOKEN_TTL_HEADER: str(self.token_ttl_seconds)}
            )
        except httpx.HTTPError as e:
            logger.warning("Metadata token request failed", error=str(e))
            return None

        log_external_api_call(
            "instance-metadata",
            TOKEN_PATH,
            method="PUT",
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            logger=logger,
        )
        if response.status_code != 200 or not response.text.strip():
            logger.warning("Metadata token request rejected", status_code=response.status_code)
            return None
        return response.text.strip()

    async def fetch_field(self, client: httpx.AsyncClient, token: str, path: str) -> str:
        """Fetch one metadata value, or "unknown" on any failure."""
        try:
            response = await client.get(path, headers={TOKEN_HEADER: token})
        except httpx.HTTPError as e:
            logger.warning("Metadata request failed", path=path, error=str(e))
            return UNKNOWN

        if response.status_code != 200:
            logger.warning("Metadata request rejected", path=path, status_code=response.status_code)
            return UNKNOWN
        return response.text.strip() or UNKNOWN

    async def get_identity(self) -> InstanceIdentity:
        """Fetch the full instance identity, degrading missing fields to "unknown"."""
        async with self._client() as client:
            token = await self.fetch_token(client)
            if token is None:
                return InstanceIdentity.filled(UNKNOWN)

            values = {}
            for field_name, path in IDENTITY_PATHS.items():
                values[field_name] = await self.fetch_field(client, token, path)
            return InstanceIdentity(**values)
