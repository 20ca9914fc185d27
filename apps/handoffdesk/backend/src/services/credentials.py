"""
Ephemeral Credential Client
===========================

Fetches the short-lived, single-use credential that opens a realtime
session. One GET per connect attempt, no retry.

Expected responses::

    200 {"credential": {"value": "ek_...", "expires_at": 1735689600}}
    200 {"client_secret": {"value": "ek_...", "expires_at": 1735689600}}
    4xx/5xx {"error": "rate_limited", "details": "..."}

Usage:
    client = EphemeralCredentialClient("http://localhost:3000/api/session")
    credential = await client.fetch()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from apps.handoffdesk.backend.voice.shared.errors import (
    CredentialMissingError,
    CredentialNetworkError,
    CredentialServerError,
)
from utils.ml_logging import get_logger

logger = get_logger("services.credentials")


@dataclass(frozen=True)
class EphemeralCredential:
    """Opaque single-use token; ``expires_at`` is epoch seconds when known."""

    value: str
    expires_at: int | None = None

    def __repr__(self) -> str:
        # keep the secret out of logs
        return f"EphemeralCredential(value='***', expires_at={self.expires_at!r})"


class EphemeralCredentialClient:
    """
    Async client for the credential endpoint.

    Args:
        endpoint_url: URL of the credential endpoint
        timeout: Request timeout in seconds
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._transport = transport

    async def __call__(self) -> EphemeralCredential:
        return await self.fetch()

    async def fetch(self) -> EphemeralCredential:
        """
        Request a fresh credential.

        Raises:
            CredentialNetworkError: transport failure, timeout or unparseable body
            CredentialServerError: non-2xx status
            CredentialMissingError: 2xx response without a credential value
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.endpoint_url)
        except httpx.HTTPError as e:
            logger.error("Credential fetch failed | url=%s error=%s", self.endpoint_url, e)
            raise CredentialNetworkError(f"Credential request failed: {e}") from e

        if not response.is_success:
            error, details = _parse_error_body(response)
            logger.error(
                "Credential endpoint error | status=%s error=%s",
                response.status_code,
                error,
            )
            raise CredentialServerError(response.status_code, error, details)

        try:
            body = response.json()
        except ValueError as e:
            logger.error("Credential response not JSON | status=%s", response.status_code)
            raise CredentialNetworkError(f"Credential response was not valid JSON: {e}") from e

        block = _credential_block(body)
        value = block.get("value") if block else None
        if not isinstance(value, str) or not value:
            logger.error("Credential response carried no value")
            raise CredentialMissingError("Credential response did not include a value")

        expires_at = block.get("expires_at")
        logger.info("Credential fetched | expires_at=%s", expires_at)
        return EphemeralCredential(
            value=value,
            expires_at=int(expires_at) if isinstance(expires_at, (int, float)) else None,
        )


def _credential_block(body: Any) -> dict[str, Any] | None:
    if not isinstance(body, dict):
        return None
    for key in ("credential", "client_secret"):
        block = body.get(key)
        if isinstance(block, dict):
            return block
    return None


def _parse_error_body(response: httpx.Response) -> tuple[str | None, Any]:
    try:
        body = response.json()
    except ValueError:
        return (response.text or None), None
    if isinstance(body, dict):
        return body.get("error"), body.get("details")
    return None, body


def create_credential_client(
    endpoint_url: str | None = None,
    timeout: float | None = None,
) -> EphemeralCredentialClient:
    """Build a client from settings, with optional overrides."""
    from apps.handoffdesk.backend.config.settings import (
        CREDENTIAL_ENDPOINT_URL,
        CREDENTIAL_TIMEOUT_SECONDS,
    )

    return EphemeralCredentialClient(
        endpoint_url or CREDENTIAL_ENDPOINT_URL,
        timeout=timeout if timeout is not None else CREDENTIAL_TIMEOUT_SECONDS,
    )


__all__ = [
    "EphemeralCredential",
    "EphemeralCredentialClient",
    "create_credential_client",
]
