"""Identity boundary: bearer token, login flag, and the OAuth2 PKCE login flow."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Callable, Protocol
from urllib.parse import urlencode

import httpx
import structlog

from hsportal.errors import TransportError
from hsportal.settings import Settings
from .session import KeyValueStore

logger = structlog.get_logger(__name__)

TOKEN_KEY = "hydroshare-token"
VERIFIER_KEY = "hydroshare-pkce-verifier"


class AuthContext(Protocol):
    """Everything the pipeline needs to know about the logged-in user."""

    token: str | None
    login_in_progress: bool

    def log_in(self) -> None:
        ...


@dataclass(slots=True)
class PKCEPair:
    verifier: str
    challenge: str


def generate_pkce_pair() -> PKCEPair:
    verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return PKCEPair(verifier=verifier, challenge=challenge)


def build_authorization_url(settings: Settings, challenge: str, state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": settings.hs_client_id,
        "redirect_uri": settings.hs_redirect_uri,
        "scope": " ".join(settings.hs_scopes),
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "state": state,
    }
    return f"{settings.hs_authorize_url}?{urlencode(params)}"


async def exchange_code(
    client: httpx.AsyncClient, settings: Settings, code: str, verifier: str
) -> str:
    """Trade an authorization code for an access token."""
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": settings.hs_redirect_uri,
        "client_id": settings.hs_client_id,
        "code_verifier": verifier,
    }
    try:
        response = await client.post(settings.hs_token_url, data=data, timeout=30)
    except httpx.HTTPError as exc:
        raise TransportError(f"Token exchange failed: {exc}", operation="token") from exc
    if response.status_code != 200:
        raise TransportError(
            f"Token exchange failed (HTTP {response.status_code})",
            status=response.status_code,
            operation="token",
        )
    try:
        token = response.json().get("access_token")
    except (ValueError, AttributeError) as exc:
        raise TransportError("Token response was not a JSON object", operation="token") from exc
    if not token:
        raise TransportError("Token response carried no access_token", operation="token")
    logger.info("auth.token_acquired")
    return token


class StoredTokenAuth:
    """AuthContext whose token lives in the persisted key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings,
        *,
        on_login: Callable[[str], None] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._on_login = on_login
        self.login_in_progress = False

    @property
    def token(self) -> str | None:
        return self._store.get(TOKEN_KEY)

    def log_in(self) -> None:
        """Start the PKCE flow and hand the authorization URL to ``on_login``."""
        pair = generate_pkce_pair()
        self._store.set(VERIFIER_KEY, pair.verifier)
        url = build_authorization_url(self._settings, pair.challenge, secrets.token_urlsafe(16))
        self.login_in_progress = True
        logger.info("auth.login_started", authorize_url=self._settings.hs_authorize_url)
        if self._on_login:
            self._on_login(url)

    async def complete_login(self, client: httpx.AsyncClient, code: str) -> str:
        verifier = self._store.get(VERIFIER_KEY)
        if not verifier:
            raise TransportError("No login in progress; run the login step first.", operation="token")
        token = await exchange_code(client, self._settings, code, verifier)
        self._store.set(TOKEN_KEY, token)
        self._store.remove(VERIFIER_KEY)
        self.login_in_progress = False
        return token

    def log_out(self) -> None:
        self._store.remove(TOKEN_KEY)
        self._store.remove(VERIFIER_KEY)
