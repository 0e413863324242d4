"""Shared dependencies for API endpoints.

Donation endpoints accept guests, so authentication is optional at the
dependency level: OptionalPrincipal yields None when there is no valid
session cookie, and the service decides what a guest may do.
CurrentPrincipal and AdminPrincipal reject up front.

Credential services share the store the lifespan put on app.state.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from temple.core.auth import Principal, decode_principal
from temple.core.config import settings
from temple.core.database import get_db
from temple.core.errors import AdminRequiredError, UnauthorizedError
from temple.credentials.store import CredentialStore
from temple.services.donation_service import DonationService
from temple.services.otp_service import OtpService
from temple.services.refresh_sessions import RefreshSessionService


def get_optional_principal(request: Request) -> Principal | None:
    """Principal from the session cookie, or None.

    An expired or tampered cookie is treated the same as no cookie.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        return None
    return decode_principal(token)


def get_current_principal(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
) -> Principal:
    """Authenticated caller.

    Raises:
        UnauthorizedError: No valid session cookie.
    """
    if principal is None:
        raise UnauthorizedError()
    return principal


def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Authenticated SUPER_ADMIN or SUB_ADMIN.

    Raises:
        AdminRequiredError: Authenticated but not an administrator.
    """
    if not principal.is_admin:
        raise AdminRequiredError()
    return principal


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_donation_service(db: DbSession) -> DonationService:
    return DonationService(db)


OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
DonationServiceDep = Annotated[DonationService, Depends(get_donation_service)]


def get_credential_store(request: Request) -> CredentialStore:
    """The process-wide store opened by the application lifespan.

    Without a running lifespan the store reads as disabled.
    """
    store = getattr(request.app.state, "credential_store", None)
    return store if store is not None else CredentialStore(None)


CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]


def get_otp_service(store: CredentialStoreDep) -> OtpService:
    return OtpService(store)


def get_refresh_session_service(store: CredentialStoreDep) -> RefreshSessionService:
    return RefreshSessionService(store)


OtpServiceDep = Annotated[OtpService, Depends(get_otp_service)]
RefreshSessionServiceDep = Annotated[
    RefreshSessionService, Depends(get_refresh_session_service)
]
