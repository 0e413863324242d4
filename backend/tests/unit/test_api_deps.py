"""Tests for the credential service dependencies in api/deps.py.

The providers must hand every caller the one store the application
lifespan opened, not a fresh one per request.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from temple.api.deps import (
    CredentialStoreDep,
    OtpServiceDep,
    RefreshSessionServiceDep,
    get_credential_store,
    get_otp_service,
    get_refresh_session_service,
)
from temple.core.config import settings
from temple.credentials.store import CredentialNamespace
from temple.main import create_app
from temple.services.otp_service import OtpPurpose, OtpService
from temple.services.refresh_sessions import RefreshSessionService

_USER = "6f1c2d2e-0000-4000-8000-000000000001"


@pytest.fixture
def app() -> FastAPI:
    return create_app()


def _request_for(app: FastAPI) -> MagicMock:
    request = MagicMock()
    request.app = app
    return request


class TestProviders:
    @pytest.mark.asyncio
    async def test_store_is_the_lifespan_store(self, app: FastAPI) -> None:
        with patch.object(settings, "credential_store_backend", "memory"):
            async with app.router.lifespan_context(app):
                store = get_credential_store(_request_for(app))

                assert store is app.state.credential_store
                assert isinstance(get_otp_service(store), OtpService)
                assert isinstance(get_refresh_session_service(store), RefreshSessionService)

    def test_store_without_lifespan_is_disabled(self, app: FastAPI) -> None:
        store = get_credential_store(_request_for(app))

        assert store.enabled is False
        assert store.is_available() is False


class TestRoutesShareTheStore:
    @pytest.mark.asyncio
    async def test_services_write_to_shared_store(self, app: FastAPI) -> None:
        @app.post("/test/otp")
        async def issue(otp: OtpServiceDep) -> dict:
            return {"code": await otp.issue_code(_USER, OtpPurpose.LOGIN)}

        @app.post("/test/logout-all")
        async def logout_all(sessions: RefreshSessionServiceDep) -> dict:
            return {"removed": await sessions.revoke_all(_USER)}

        with patch.object(settings, "credential_store_backend", "memory"):
            async with app.router.lifespan_context(app):
                store = app.state.credential_store
                await store.issue(
                    CredentialNamespace.REFRESH, _USER, "h1", 300, discriminator="phone"
                )
                transport = ASGITransport(app=app)
                async with AsyncClient(transport=transport, base_url="http://test") as client:
                    issued = await client.post("/test/otp")
                    revoked = await client.post("/test/logout-all")

                stored = await store.read(
                    CredentialNamespace.OTP, _USER, discriminator=OtpPurpose.LOGIN.value
                )
                assert stored == issued.json()["code"]
                assert revoked.json() == {"removed": 1}

    @pytest.mark.asyncio
    async def test_health_reports_available_store(self, app: FastAPI) -> None:
        @app.get("/test/store")
        async def store_state(store: CredentialStoreDep) -> dict:
            return {"enabled": store.enabled}

        with patch.object(settings, "credential_store_backend", "memory"):
            async with app.router.lifespan_context(app):
                transport = ASGITransport(app=app)
                async with AsyncClient(transport=transport, base_url="http://test") as client:
                    health = await client.get("/health")
                    state = await client.get("/test/store")

        assert health.json()["credential_store"] == "available"
        assert state.json() == {"enabled": True}
