"""
Identity provider contract and its GoTrue (Supabase Auth) client.

The portal never stores credentials or hashes passwords itself. Everything
about who a user is comes from the identity provider through the narrow
contract below:

- sign_up: create a credential, return the new principal
- sign_in_with_password: exchange email/password for a session
- sign_out: revoke an access token
- get_user: resolve an access token back to its principal
- refresh_session: exchange a refresh token for a new session
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from portal.config import SUPABASE_URL, SUPABASE_ANON_KEY, HTTP_TIMEOUT_SECONDS
from portal.errors import AuthError
from portal.logging_config import get_logger, log_with_context

logger = get_logger("auth")


@dataclass(frozen=True)
class Principal:
    """An authenticated identity as reported by the identity provider."""
    id: str
    email: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


@dataclass(frozen=True)
class AuthTokens:
    """A session issued by the identity provider."""
    access_token: str
    refresh_token: Optional[str]
    principal: Principal


class IdentityProvider(ABC):
    """Identity provider interface"""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> Principal:
        """Create a credential entry"""
        pass

    @abstractmethod
    def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        """Authenticate and open a session"""
        pass

    @abstractmethod
    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind an access token"""
        pass

    @abstractmethod
    def get_user(self, access_token: str) -> Principal:
        """Resolve an access token to its principal"""
        pass

    @abstractmethod
    def refresh_session(self, refresh_token: str) -> AuthTokens:
        """Exchange a refresh token for a new session"""
        pass


class GoTrueIdentityProvider(IdentityProvider):
    """
    Client for a GoTrue-compatible auth API (Supabase Auth).

    Error responses become AuthError with the provider's own message;
    network failures become AuthError("identity provider unreachable").
    """

    def __init__(self, base_url: str = None, api_key: str = None,
                 timeout: float = None, transport: httpx.BaseTransport = None):
        self.base_url = (base_url or SUPABASE_URL).rstrip("/") + "/auth/v1"
        self.api_key = api_key if api_key is not None else SUPABASE_ANON_KEY
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"apikey": self.api_key},
            transport=self.transport,
        )

    def _request(self, method: str, path: str, access_token: str = None, **kwargs) -> dict:
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        start_time = time.time()
        try:
            with self._client() as client:
                response = client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            log_with_context(logger, "ERROR", "Identity provider request failed: {} {}".format(method, path),
                             extra_data={"error": str(e)})
            raise AuthError("identity provider unreachable", kind="provider_unreachable") from e

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "DEBUG", "Identity provider {} {} → {}".format(method, path, response.status_code),
                         extra_data={"duration_ms": round(duration_ms, 2)})

        if response.status_code >= 400:
            raise self._error_from(response)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_from(response: httpx.Response) -> AuthError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = (body.get("msg") or body.get("error_description")
                   or body.get("message") or body.get("error")
                   or "authentication failed")
        code = str(body.get("error_code") or body.get("code") or "")
        if code in ("user_already_exists", "email_exists") or "already registered" in message.lower():
            return AuthError(message, kind="duplicate")
        if response.status_code in (400, 401) and "invalid" in message.lower():
            return AuthError(message, kind="invalid_credentials")
        return AuthError(message)

    @staticmethod
    def _principal_from(user: dict, expires_at: datetime = None) -> Principal:
        if not user or not user.get("id"):
            raise AuthError("identity provider returned no user")
        return Principal(id=str(user["id"]), email=user.get("email", ""), expires_at=expires_at)

    def _tokens_from(self, body: dict) -> AuthTokens:
        expires_at = None
        if body.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(body["expires_at"]), tz=timezone.utc)
        elif body.get("expires_in"):
            expires_at = datetime.fromtimestamp(time.time() + int(body["expires_in"]), tz=timezone.utc)
        return AuthTokens(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            principal=self._principal_from(body.get("user"), expires_at),
        )

    def sign_up(self, email: str, password: str) -> Principal:
        body = self._request("POST", "/signup", json={"email": email, "password": password})
        # With email confirmation off the provider answers with a session
        user = body.get("user") if "access_token" in body or "user" in body else body
        return self._principal_from(user)

    def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        body = self._request("POST", "/token", params={"grant_type": "password"},
                             json={"email": email, "password": password})
        return self._tokens_from(body)

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "/logout", access_token=access_token)

    def get_user(self, access_token: str) -> Principal:
        return self._principal_from(self._request("GET", "/user", access_token=access_token))

    def refresh_session(self, refresh_token: str) -> AuthTokens:
        body = self._request("POST", "/token", params={"grant_type": "refresh_token"},
                             json={"refresh_token": refresh_token})
        return self._tokens_from(body)
