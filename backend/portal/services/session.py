"""
Session object and the identity adapter that drives it.

An AuthSession is the explicit, per-connection holder of "who is calling":
the current principal, its tokens, its lifecycle state and the cached
admin flag. It is created by the HTTP layer for each request and passed by
reference to whatever needs it. There is no module-level current user.

State machine:
    LOADING ──(first notification)──► AUTHENTICATED | UNAUTHENTICATED
    AUTHENTICATED ◄──► UNAUTHENTICATED  (sign-in / sign-out / expiry)

LOADING means "not known yet" and is never treated as signed out.
"""

import enum
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.errors import AuthError
from portal.models.student import Student
from portal.services.identity import IdentityProvider, Principal, AuthTokens
from portal.logging_config import get_logger, log_with_context

logger = get_logger("auth")
db_logger = get_logger("db")


class SessionState(str, enum.Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class SessionEvent(str, enum.Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


SessionListener = Callable[["AuthSession", SessionEvent, Optional[Principal]], None]


class AuthSession:
    """Current principal, tokens and cached role for one connection."""

    def __init__(self):
        self.state = SessionState.LOADING
        self.principal: Optional[Principal] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.is_admin = False
        self._listeners: List[SessionListener] = []

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.LOADING

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for session changes. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, event: SessionEvent, principal: Optional[Principal],
              tokens: Optional[AuthTokens] = None):
        """
        Move the session to a new principal (or none) and notify listeners.

        The admin flag belongs to the previous principal, so it is dropped
        whenever the principal changes or goes away.
        """
        previous_id = self.principal.id if self.principal else None
        new_id = principal.id if principal else None
        if previous_id != new_id or principal is None:
            self.is_admin = False

        self.principal = principal
        self.access_token = tokens.access_token if tokens else (self.access_token if principal else None)
        self.refresh_token = tokens.refresh_token if tokens else (self.refresh_token if principal else None)

        for listener in list(self._listeners):
            listener(self, event, principal)

        self.state = SessionState.AUTHENTICATED if principal else SessionState.UNAUTHENTICATED

    def require_principal(self) -> Principal:
        """Return the signed-in principal or raise AuthError."""
        if self.state == SessionState.LOADING:
            raise AuthError("session is still loading", kind="session_loading")
        if self.principal is None:
            raise AuthError("not authenticated", kind="not_authenticated")
        if self.principal.is_expired():
            raise AuthError("session expired", kind="session_expired")
        return self.principal


class IdentityAdapter:
    """
    Register/sign-in/sign-out on top of the identity provider, keeping an
    AuthSession in step with the results.
    """

    def __init__(self, provider: IdentityProvider, db: Session, session: AuthSession):
        self.provider = provider
        self.db = db
        self.session = session

    def register(self, email: str, password: str, full_name: str, phone: str) -> Principal:
        """
        Create the credential, then the linked student profile.

        If the profile insert fails the credential stays at the identity
        provider and the caller still gets an AuthError.
        """
        principal = self.provider.sign_up(email, password)
        log_with_context(logger, "INFO", "Credential created for {}".format(email),
                         context={"principal_id": principal.id})

        try:
            student = Student(id=principal.id, full_name=full_name, email=email, phone=phone)
            self.db.add(student)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(db_logger, "ERROR",
                             "Student profile insert failed after credential creation",
                             context={"principal_id": principal.id},
                             extra_data={"error": str(e)})
            raise AuthError("registration failed: could not create student profile",
                            kind="profile_failed") from e

        log_with_context(db_logger, "INFO", "Created student profile: {}".format(full_name),
                         context={"principal_id": principal.id})
        return principal

    def sign_in(self, email: str, password: str) -> AuthTokens:
        tokens = self.provider.sign_in_with_password(email, password)
        self.session.apply(SessionEvent.SIGNED_IN, tokens.principal, tokens)
        log_with_context(logger, "INFO", "Principal signed in",
                         context={"principal_id": tokens.principal.id})
        return tokens

    def sign_out(self):
        """Revoke the token at the provider and clear the local session."""
        principal_id = self.session.principal.id if self.session.principal else None
        access_token = self.session.access_token
        try:
            if access_token:
                self.provider.sign_out(access_token)
        except AuthError as e:
            log_with_context(logger, "WARNING", "Provider sign-out failed: {}".format(e.message),
                             context={"principal_id": principal_id})
        finally:
            self.session.apply(SessionEvent.SIGNED_OUT, None)
        log_with_context(logger, "INFO", "Principal signed out", context={"principal_id": principal_id})

    def restore(self, access_token: Optional[str]):
        """
        Resolve the initial session from a bearer token.

        A missing, rejected or expired token leaves the session
        UNAUTHENTICATED rather than raising. An unreachable provider is
        re-raised and the session stays LOADING.
        """
        principal = None
        if access_token:
            try:
                principal = self.provider.get_user(access_token)
            except AuthError as e:
                if e.kind == "provider_unreachable":
                    log_with_context(logger, "ERROR", "Could not verify access token: {}".format(e.message),
                                     extra_data={"kind": e.kind})
                    raise
                log_with_context(logger, "WARNING", "Access token rejected: {}".format(e.message),
                                 extra_data={"kind": e.kind})
            if principal is not None and principal.is_expired():
                principal = None

        tokens = AuthTokens(access_token, None, principal) if principal else None
        self.session.apply(SessionEvent.INITIAL_SESSION, principal, tokens)

    def refresh(self, refresh_token: str) -> AuthTokens:
        tokens = self.provider.refresh_session(refresh_token)
        self.session.apply(SessionEvent.TOKEN_REFRESHED, tokens.principal, tokens)
        return tokens
