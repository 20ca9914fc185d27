"""
Tests for EphemeralCredentialClient
===================================

Uses ``httpx.MockTransport`` so no network is touched.
"""

from __future__ import annotations

import httpx
import pytest

from apps.handoffdesk.backend.src.services.credentials import (
    EphemeralCredential,
    EphemeralCredentialClient,
)
from apps.handoffdesk.backend.voice.shared.errors import (
    CredentialMissingError,
    CredentialNetworkError,
    CredentialServerError,
)

ENDPOINT = "http://credentials.test/api/session"


def _client(handler) -> EphemeralCredentialClient:
    return EphemeralCredentialClient(ENDPOINT, timeout=2.0, transport=httpx.MockTransport(handler))


class TestFetch:
    @pytest.mark.asyncio
    async def test_success(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"credential": {"value": "ek_abc", "expires_at": 1735689600}})

        credential = await _client(handler).fetch()

        assert credential == EphemeralCredential(value="ek_abc", expires_at=1735689600)
        assert len(requests) == 1
        assert requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_client_secret_block_accepted(self):
        def handler(request):
            return httpx.Response(200, json={"client_secret": {"value": "ek_alias"}})

        credential = await _client(handler)()

        assert credential.value == "ek_alias"
        assert credential.expires_at is None

    @pytest.mark.asyncio
    async def test_repr_hides_value(self):
        def handler(request):
            return httpx.Response(200, json={"credential": {"value": "ek_secret"}})

        credential = await _client(handler).fetch()

        assert "ek_secret" not in repr(credential)


class TestFailures:
    @pytest.mark.asyncio
    async def test_server_error_carries_status_and_body(self):
        def handler(request):
            return httpx.Response(429, json={"error": "rate_limited", "details": "try later"})

        with pytest.raises(CredentialServerError) as exc_info:
            await _client(handler).fetch()

        error = exc_info.value
        assert error.status_code == 429
        assert error.error == "rate_limited"
        assert error.details == "try later"
        assert error.classification == "credential-server-error"

    @pytest.mark.asyncio
    async def test_missing_value(self):
        def handler(request):
            return httpx.Response(200, json={"credential": {"expires_at": 1}})

        with pytest.raises(CredentialMissingError):
            await _client(handler).fetch()

    @pytest.mark.asyncio
    async def test_empty_body(self):
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(CredentialMissingError):
            await _client(handler).fetch()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CredentialNetworkError):
            await _client(handler).fetch()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"not json", headers={"content-type": "application/json"})

        with pytest.raises(CredentialNetworkError):
            await _client(handler).fetch()
