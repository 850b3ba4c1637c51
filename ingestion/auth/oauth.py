"""
OAuth 1.0a request signing and credential lifecycle for the catalog API.

Handshake state machine:

    Unauthenticated
        -> begin_handshake(): request token + secret, ticket cached for 15 minutes
    AwaitingUserVerification
        -> complete_handshake(token, verifier): ticket claimed, exchanged once
           for the long-lived credential, credential stored, ticket discarded
    Authenticated
        -> every request signed with the stored credential

The exchange runs under the retry policy; storing the credential is a separate
step so that a storage retry never re-sends the single-use verifier.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import httpx
from oauthlib.oauth1 import Client, SIGNATURE_PLAINTEXT
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from core.config import Settings, settings as default_settings
from core.database import Database
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DataFormatError,
    HandshakeTicketError,
    PersistenceError,
    RetriesExhaustedError,
)
from core.retry import RetryPolicy, with_retry
from ingestion.http import raise_for_status, transport_error
from ingestion.state import SettingsStore
from models.handshake_ticket import HandshakeTicket

logger = logging.getLogger(__name__)

REQUEST_TOKEN_PATH = "/oauth/request_token"
ACCESS_TOKEN_PATH = "/oauth/access_token"
OUT_OF_BAND_CALLBACK = "oob"

OAUTH_TOKEN_KEY = "oauth_token"
OAUTH_TOKEN_SECRET_KEY = "oauth_token_secret"


@dataclass(frozen=True)
class Credential:
    """Long-lived access token pair"""
    key: str
    secret: str


@dataclass(frozen=True)
class HandshakeStart:
    token: str
    authorize_url: str
    expires_at: datetime


# ============================================================================
# Request signing
# ============================================================================

class RequestSigner:
    """
    Produce ``Authorization`` headers with PLAINTEXT OAuth 1.0a signatures.

    Signing is a pure function of URL, method and the credential pair apart
    from the nonce and timestamp the scheme requires.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        credential: Optional[Credential] = None
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.credential = credential

    def _authorization(self, url: str, method: str, **client_kwargs: Any) -> str:
        client = Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            signature_method=SIGNATURE_PLAINTEXT,
            **client_kwargs
        )
        _, headers, _ = client.sign(url, http_method=method.upper())
        return headers["Authorization"]

    def sign(self, url: str, method: str = "GET") -> str:
        """Sign a resource request with the long-lived credential."""
        if self.credential is None:
            raise ConfigurationError("No access credential available to sign requests")
        return self._authorization(
            url,
            method,
            resource_owner_key=self.credential.key,
            resource_owner_secret=self.credential.secret
        )

    def sign_request_token(self, url: str, callback: str = OUT_OF_BAND_CALLBACK) -> str:
        return self._authorization(url, "GET", callback_uri=callback)

    def sign_access_token(self, url: str, token: str, ticket_secret: str, verifier: str) -> str:
        return self._authorization(
            url,
            "POST",
            resource_owner_key=token,
            resource_owner_secret=ticket_secret,
            verifier=verifier
        )


# ============================================================================
# Handshake ticket caches
# ============================================================================

class TicketCache(ABC):
    """Expiring key/value cache for handshake ticket secrets."""

    @abstractmethod
    async def put(self, token: str, secret: str, ttl_seconds: float):
        pass

    @abstractmethod
    async def get(self, token: str) -> Optional[str]:
        """Return the secret, or None when unknown or expired."""
        pass

    @abstractmethod
    async def delete(self, token: str):
        pass

    @abstractmethod
    async def take(self, token: str) -> Optional[Tuple[str, float]]:
        """
        Atomically remove a live ticket.

        Returns:
            (secret, remaining seconds), or None when unknown, expired or
            already taken by another caller
        """
        pass


class MemoryTicketCache(TicketCache):
    """Process-local cache; suitable for a single instance and for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def put(self, token: str, secret: str, ttl_seconds: float):
        self._entries[token] = (secret, self._clock() + ttl_seconds)

    async def get(self, token: str) -> Optional[str]:
        entry = self._entries.get(token)
        if entry is None:
            return None
        secret, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[token]
            return None
        return secret

    async def delete(self, token: str):
        self._entries.pop(token, None)

    async def take(self, token: str) -> Optional[Tuple[str, float]]:
        entry = self._entries.pop(token, None)
        if entry is None:
            return None
        secret, expires_at = entry
        remaining = expires_at - self._clock()
        if remaining <= 0:
            return None
        return secret, remaining


class DatabaseTicketCache(TicketCache):
    """Ticket cache shared through the database, independent of local disk."""

    def __init__(self, database: Database, clock: Callable[[], datetime] = datetime.utcnow):
        self.database = database
        self._clock = clock

    async def put(self, token: str, secret: str, ttl_seconds: float):
        now = self._clock()
        async with self.database.session() as session:
            # Opportunistically drop expired tickets
            await session.execute(delete(HandshakeTicket).where(HandshakeTicket.expires_at <= now))
            await session.merge(HandshakeTicket(
                token=token,
                secret=secret,
                expires_at=now + timedelta(seconds=ttl_seconds)
            ))
            await session.commit()

    async def get(self, token: str) -> Optional[str]:
        async with self.database.session() as session:
            ticket = await session.get(HandshakeTicket, token)
            if ticket is None:
                return None
            if self._clock() >= ticket.expires_at:
                await session.delete(ticket)
                await session.commit()
                return None
            return ticket.secret

    async def delete(self, token: str):
        async with self.database.session() as session:
            await session.execute(delete(HandshakeTicket).where(HandshakeTicket.token == token))
            await session.commit()

    async def take(self, token: str) -> Optional[Tuple[str, float]]:
        async with self.database.session() as session:
            ticket = await session.get(HandshakeTicket, token)
            if ticket is None:
                return None
            secret, expires_at = ticket.secret, ticket.expires_at

            # Only the caller whose delete removed the row owns the ticket
            result = await session.execute(
                delete(HandshakeTicket).where(
                    HandshakeTicket.token == token,
                    HandshakeTicket.expires_at == expires_at
                ).execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return None
        remaining = (expires_at - self._clock()).total_seconds()
        if remaining <= 0:
            return None
        return secret, remaining


# ============================================================================
# Credential storage
# ============================================================================

class CredentialStore:
    """Persist the single active credential in the settings table."""

    def __init__(self, store: SettingsStore):
        self.store = store

    async def load(self) -> Optional[Credential]:
        values = await self.store.get_many([OAUTH_TOKEN_KEY, OAUTH_TOKEN_SECRET_KEY])
        key, secret = values[OAUTH_TOKEN_KEY], values[OAUTH_TOKEN_SECRET_KEY]
        if key and secret:
            return Credential(key=key, secret=secret)
        return None

    async def save(self, credential: Credential):
        try:
            await self.store.set_many({
                OAUTH_TOKEN_KEY: credential.key,
                OAUTH_TOKEN_SECRET_KEY: credential.secret,
            })
        except SQLAlchemyError as e:
            raise PersistenceError(
                "Failed to store access credential",
                context={"operation": "UPSERT", "table_name": "settings"},
                original_exception=e
            )

    async def clear(self):
        await self.store.delete(OAUTH_TOKEN_KEY, OAUTH_TOKEN_SECRET_KEY)


def _is_persistence_error(error: BaseException) -> bool:
    return isinstance(error, PersistenceError)


# ============================================================================
# Credential manager
# ============================================================================

class CredentialManager:
    """
    Drive the OAuth handshake and hand out request signers.

    Attributes:
        settings: Application settings (consumer pair, endpoints, TTL)
        credential_store: Where the long-lived credential lives
        ticket_cache: Where handshake tickets wait for verification
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        ticket_cache: TicketCache,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.settings = settings or default_settings
        self.credential_store = credential_store
        self.ticket_cache = ticket_cache
        self.http_client = http_client
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.storage_policy = RetryPolicy(
            max_retries=3,
            base_delay=0.5,
            max_delay=5.0,
            retry_condition=_is_persistence_error
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _consumer_pair(self) -> Tuple[str, str]:
        key = self.settings.DISCOGS_CONSUMER_KEY
        secret = self.settings.DISCOGS_CONSUMER_SECRET
        if not key or not secret:
            raise ConfigurationError(
                "DISCOGS_CONSUMER_KEY and DISCOGS_CONSUMER_SECRET must be set"
            )
        return key, secret

    def _url(self, path: str) -> str:
        return f"{self.settings.DISCOGS_API_BASE_URL.rstrip('/')}{path}"

    @asynccontextmanager
    async def _http(self):
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.settings.REQUEST_TIMEOUT) as client:
                yield client

    async def _send(self, method: str, path: str, authorization: str) -> Dict[str, str]:
        """Issue one handshake request and decode its form-encoded answer."""
        url = self._url(path)
        headers = {
            "Authorization": authorization,
            "User-Agent": self.settings.USER_AGENT,
        }
        async with self._http() as client:
            try:
                response = await client.request(method, url, headers=headers)
            except httpx.TransportError as e:
                raise transport_error(e, path)

        raise_for_status(response, path)

        values = dict(parse_qsl(response.text))
        if not values.get("oauth_token") or not values.get("oauth_token_secret"):
            raise DataFormatError(
                f"Invalid token response from {path}",
                context={"endpoint": path, "response_body": response.text[:200]}
            )
        return values

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def is_authenticated(self) -> bool:
        return await self.credential_store.load() is not None

    async def get_signer(self) -> RequestSigner:
        """
        Build a signer for resource requests.

        Raises:
            ConfigurationError: If the consumer pair or the credential is missing
        """
        consumer_key, consumer_secret = self._consumer_pair()
        credential = await self.credential_store.load()
        if credential is None:
            raise ConfigurationError(
                "No OAuth credential found. Please complete the OAuth handshake first."
            )
        return RequestSigner(consumer_key, consumer_secret, credential)

    async def revoke(self):
        await self.credential_store.clear()
        logger.info("Stored OAuth credential revoked")

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def begin_handshake(self) -> HandshakeStart:
        """
        Obtain a request token and cache its secret as a handshake ticket.

        Returns:
            The token and the authorize URL the user has to visit
        """
        consumer_key, consumer_secret = self._consumer_pair()
        signer = RequestSigner(consumer_key, consumer_secret)

        async def request_ticket() -> Dict[str, str]:
            logger.info("Requesting OAuth request token")
            try:
                return await self._send(
                    "GET",
                    REQUEST_TOKEN_PATH,
                    signer.sign_request_token(self._url(REQUEST_TOKEN_PATH))
                )
            except AuthenticationError as e:
                raise AuthenticationError(
                    "Invalid consumer key or secret. Check DISCOGS_CONSUMER_KEY and "
                    "DISCOGS_CONSUMER_SECRET.",
                    status_code=e.status_code,
                    response_body=e.response_body,
                    context={"endpoint": REQUEST_TOKEN_PATH},
                    original_exception=e
                )

        values = await with_retry(
            request_ticket,
            self.retry_policy,
            description="OAuth request token",
            sleep=self._sleep
        )

        token = values["oauth_token"]
        ttl = self.settings.HANDSHAKE_TICKET_TTL_SECONDS
        await self.ticket_cache.put(token, values["oauth_token_secret"], ttl)

        authorize_url = f"{self.settings.DISCOGS_AUTHORIZE_URL}?{urlencode({'oauth_token': token})}"
        logger.info("OAuth request token obtained; awaiting user verification")
        return HandshakeStart(
            token=token,
            authorize_url=authorize_url,
            expires_at=datetime.utcnow() + timedelta(seconds=ttl)
        )

    async def complete_handshake(self, token: str, verifier: str) -> Credential:
        """
        Exchange a verified ticket for the long-lived credential and store it.

        Raises:
            HandshakeTicketError: Unknown or expired ticket (restart the handshake)
            AuthenticationError: Verifier rejected or already used
            PersistenceError: The credential could not be stored
        """
        consumer_key, consumer_secret = self._consumer_pair()
        claimed = await self.ticket_cache.take(token)
        if claimed is None:
            raise HandshakeTicketError(
                "Request token not found or expired. Please restart the OAuth handshake.",
                context={"endpoint": ACCESS_TOKEN_PATH}
            )
        ticket_secret, remaining_ttl = claimed

        signer = RequestSigner(consumer_key, consumer_secret)

        async def exchange() -> Credential:
            logger.info("Exchanging verified request token for access token")
            try:
                values = await self._send(
                    "POST",
                    ACCESS_TOKEN_PATH,
                    signer.sign_access_token(self._url(ACCESS_TOKEN_PATH), token, ticket_secret, verifier)
                )
            except AuthenticationError as e:
                raise AuthenticationError(
                    "Verification code rejected (invalid, expired or already used)",
                    status_code=e.status_code,
                    response_body=e.response_body,
                    context={"endpoint": ACCESS_TOKEN_PATH},
                    original_exception=e
                )
            return Credential(key=values["oauth_token"], secret=values["oauth_token_secret"])

        try:
            credential = await with_retry(
                exchange,
                self.retry_policy,
                description="OAuth access token",
                sleep=self._sleep
            )
        except RetriesExhaustedError:
            # Only transient failures get here; the ticket stays usable until it expires
            logger.warning("Access token exchange kept failing; returning the ticket to the cache")
            await self.ticket_cache.put(token, ticket_secret, remaining_ttl)
            raise

        # Stored separately: the verifier above must not be sent twice
        await with_retry(
            lambda: self.credential_store.save(credential),
            self.storage_policy,
            description="Store OAuth credential",
            sleep=self._sleep
        )

        logger.info("OAuth handshake completed; credential stored")
        return credential
