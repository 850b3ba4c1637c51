"""
OAuth handshake and authentication status endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from api.dependencies import get_app_settings, get_credential_manager
from core.config import Settings
from core.exceptions import HandshakeTicketError, SyncError
from ingestion.auth.oauth import CredentialManager
from ingestion.extractors.discogs_client import CatalogClient
from schemas.api import (
    AuthStatusResponse,
    ErrorResponse,
    OAuthCallbackRequest,
    OAuthCallbackResponse,
    OAuthSetupResponse,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Authentication"])

SETUP_INSTRUCTIONS = [
    "1. Visit the authorizeUrl above",
    "2. Log in and authorize the application",
    "3. Copy the verification code shown after authorizing",
    "4. POST the verification code and requestToken to /oauth/callback",
]


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).dict()
    )


@router.get(
    "/oauth/setup",
    response_model=OAuthSetupResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}}
)
async def oauth_setup(manager: CredentialManager = Depends(get_credential_manager)):
    """Start the handshake unless a credential is already stored."""
    try:
        if await manager.is_authenticated():
            return OAuthSetupResponse(
                status="already_authenticated",
                message="OAuth tokens already exist. Authentication is complete."
            )

        start = await manager.begin_handshake()
    except SyncError as e:
        logger.error(f"OAuth setup failed: {e.message}")
        return _error(500, "Failed to initialize OAuth setup", e.message)

    return OAuthSetupResponse(
        status="auth_required",
        message="Please visit the authorization URL to complete OAuth setup",
        authorize_url=start.authorize_url,
        request_token=start.token,
        expires_at=start.expires_at,
        instructions=SETUP_INSTRUCTIONS
    )


@router.post(
    "/oauth/callback",
    response_model=OAuthCallbackResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def oauth_callback(
    body: OAuthCallbackRequest,
    manager: CredentialManager = Depends(get_credential_manager)
):
    """Exchange the verification code for the long-lived credential."""
    if not body.verifier:
        return _error(400, "verifier must be a non-empty string", "Missing or invalid verifier")
    if not body.request_token:
        return _error(400, "requestToken must be a non-empty string", "Missing or invalid requestToken")

    try:
        await manager.complete_handshake(body.request_token, body.verifier)
    except HandshakeTicketError as e:
        return _error(400, "Please restart the OAuth flow from /oauth/setup", e.message)
    except SyncError as e:
        logger.error(f"OAuth callback failed: {e.message}")
        return _error(500, "Failed to complete OAuth authentication", e.message)

    try:
        signer = await manager.get_signer()
        async with CatalogClient(
            signer,
            settings=manager.settings,
            http_client=manager.http_client,
            retry_policy=manager.retry_policy
        ) as client:
            identity = await client.fetch_identity() or {}
    except SyncError as e:
        logger.warning(f"Failed to verify identity, but tokens were stored: {e.message}")
        return OAuthCallbackResponse(
            status="success",
            message="OAuth tokens stored, but failed to verify identity",
            warning="Could not verify identity endpoint"
        )

    return OAuthCallbackResponse(
        status="success",
        message="OAuth authentication completed successfully",
        username=identity.get("username")
    )


@router.get("/auth/status", response_model=AuthStatusResponse, response_model_exclude_none=True)
async def auth_status(
    manager: CredentialManager = Depends(get_credential_manager),
    app_settings: Settings = Depends(get_app_settings)
):
    is_authenticated = await manager.is_authenticated()
    return AuthStatusResponse(
        is_authenticated=is_authenticated,
        username=app_settings.DISCOGS_USERNAME if is_authenticated else None
    )


@router.delete("/auth", response_model=AuthStatusResponse)
async def revoke_auth(manager: CredentialManager = Depends(get_credential_manager)):
    """Forget the stored credential; a new handshake is needed afterwards."""
    await manager.revoke()
    return AuthStatusResponse(is_authenticated=False)
