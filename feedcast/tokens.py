"""
OAuth 2.0 credential handling for destinations that post on a user's behalf.

``OAuthClient`` speaks to a provider's token endpoint; ``TokenManager`` holds one
destination's credential and refreshes it on demand or after a 401.
"""
from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, TypeVar
from urllib.parse import urlencode

import requests

from feedcast.errors import PersistenceError, TokenRefreshError, UnauthorizedError
from feedcast.models import Credential
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TokenGrant:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


def generate_pkce_pair() -> Tuple[str, str]:
    """Return a random code verifier and its S256 challenge."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return verifier, challenge


class OAuthClient:
    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        authorize_url: str = "",
        scopes: Optional[List[str]] = None,
        redirect_uri: str = "https://127.0.0.1",
        basic_auth: bool = False,
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.scopes = scopes or []
        self.redirect_uri = redirect_uri
        self.basic_auth = basic_auth
        self.timeout = timeout
        self.session = session or requests.Session()

    def authorization_url(self, state: Optional[str] = None, pkce: bool = False) -> Tuple[str, Optional[str]]:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state or secrets.token_urlsafe(16),
        }
        verifier = None
        if pkce:
            verifier, challenge = generate_pkce_pair()
            params["code_challenge"] = challenge
            params["code_challenge_method"] = "S256"
        return f"{self.authorize_url}?{urlencode(params)}", verifier

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        data = {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri}
        if code_verifier:
            data["code_verifier"] = code_verifier
        logger.info("Exchanging authorization code for tokens at %s", self.token_url)
        return self._token_request(data)

    def refresh(self, refresh_token: str) -> TokenGrant:
        logger.info("Refreshing access token at %s", self.token_url)
        grant = self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        # providers may omit a rotated refresh token
        if not grant.refresh_token:
            grant.refresh_token = refresh_token
        return grant

    def _token_request(self, data: dict) -> TokenGrant:
        auth = None
        if self.basic_auth:
            auth = (self.client_id, self.client_secret)
        else:
            data = {**data, "client_id": self.client_id, "client_secret": self.client_secret}
        try:
            resp = self.session.post(self.token_url, data=data, auth=auth, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TokenRefreshError(f"Token request failed: {redact_secrets(str(exc))}") from exc
        if resp.status_code >= 400:
            raise TokenRefreshError(
                f"Token endpoint answered {resp.status_code}: {redact_secrets(resp.text[:300])}"
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise TokenRefreshError("Token endpoint returned invalid JSON") from exc
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise TokenRefreshError("No access_token in token response")
        expires_in = payload.get("expires_in")
        return TokenGrant(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
        )


class TokenManager:
    """
    Holds one destination's access/refresh token pair.

    The lock only guards reads and writes of the pair; token endpoint calls and
    the destination call itself run without it.
    """

    def __init__(
        self,
        destination_id: str,
        oauth_client: OAuthClient,
        credential: Optional[Credential] = None,
        persist: Optional[Callable[[str, Credential], None]] = None,
    ) -> None:
        self.destination_id = destination_id
        self.oauth_client = oauth_client
        self._credential = credential or Credential()
        self._persist = persist
        self._lock = threading.Lock()

    @property
    def credential(self) -> Credential:
        with self._lock:
            return Credential(self._credential.access_token, self._credential.refresh_token)

    def get_valid_token(self) -> str:
        with self._lock:
            token = self._credential.access_token
        if token:
            return token
        return self.refresh()

    def refresh(self) -> str:
        with self._lock:
            refresh_token = self._credential.refresh_token
        if not refresh_token:
            raise TokenRefreshError(f"No refresh token available for {self.destination_id}")

        grant = self.oauth_client.refresh(refresh_token)
        updated = Credential(access_token=grant.access_token, refresh_token=grant.refresh_token or refresh_token)
        with self._lock:
            self._credential = updated
        logger.info("Successfully refreshed %s access token", self.destination_id)
        self._save(updated)
        return updated.access_token or ""

    def call_with_refresh(self, call: Callable[[str], T]) -> T:
        token = self.get_valid_token()
        try:
            return call(token)
        except UnauthorizedError:
            logger.info("%s access token rejected, attempting to refresh...", self.destination_id)
        # one retry with a fresh token; any failure from here on is final
        return call(self.refresh())

    def _save(self, credential: Credential) -> None:
        if self._persist is None:
            return
        try:
            self._persist(self.destination_id, credential)
        except PersistenceError as exc:
            logger.warning("Failed to save updated tokens for %s: %s", self.destination_id, exc)
