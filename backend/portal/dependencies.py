"""
FastAPI dependencies: external collaborators and the per-request session.

The identity provider and blob store are built once per process; the
AuthSession, identity adapter and lifecycle manager are built per request
around that request's database session.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from portal.config import BLOB_BACKEND
from portal.database import get_db
from portal.services.documents import BlobStore, DocumentStore, HttpBlobStore, LocalBlobStore
from portal.services.identity import GoTrueIdentityProvider, IdentityProvider
from portal.services.lifecycle import ApplicationLifecycle, SubmissionPipeline
from portal.services.roles import RoleResolver
from portal.services.session import AuthSession, IdentityAdapter


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    return GoTrueIdentityProvider()


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    if BLOB_BACKEND == "http":
        return HttpBlobStore()
    return LocalBlobStore()


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_identity_adapter(
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> IdentityAdapter:
    session = AuthSession()
    RoleResolver(db).attach(session)
    return IdentityAdapter(provider, db, session)


def get_auth_session(
    token: Optional[str] = Depends(bearer_token),
    adapter: IdentityAdapter = Depends(get_identity_adapter),
) -> AuthSession:
    """The caller's session, resolved from the bearer token (may be unauthenticated)."""
    adapter.restore(token)
    return adapter.session


def get_lifecycle(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
) -> ApplicationLifecycle:
    return ApplicationLifecycle(db, session)


def get_submission_pipeline(
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
    blob_store: BlobStore = Depends(get_blob_store),
) -> SubmissionPipeline:
    return SubmissionPipeline(lifecycle, DocumentStore(blob_store))
