"""
Shared fixtures: in-memory database, fake identity provider and blob
store, signed-in sessions, and an HTTP client wired to all of them.
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BLOB_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="portal-uploads-")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.database import Base, set_sqlite_pragma
from portal.errors import AuthError, UploadError
from portal.models import Admin, Application, ApplicationStatus, Student
from portal.services.documents import BlobStore, DocumentFile
from portal.services.identity import AuthTokens, IdentityProvider, Principal
from portal.services.roles import RoleResolver
from portal.services.session import AuthSession, SessionEvent


class FakeIdentityProvider(IdentityProvider):
    """In-process stand-in for the hosted identity provider."""

    def __init__(self):
        self.passwords = {}
        self.principals = {}
        self.access_tokens = {}
        self.refresh_tokens = {}
        self.revoked = []

    def sign_up(self, email, password):
        if email in self.principals:
            raise AuthError("User already registered", kind="duplicate")
        principal = Principal(id=str(uuid.uuid4()), email=email)
        self.principals[email] = principal
        self.passwords[email] = password
        return principal

    def _issue(self, principal):
        tokens = AuthTokens(access_token="access-" + uuid.uuid4().hex,
                            refresh_token="refresh-" + uuid.uuid4().hex,
                            principal=principal)
        self.access_tokens[tokens.access_token] = principal
        self.refresh_tokens[tokens.refresh_token] = principal
        return tokens

    def sign_in_with_password(self, email, password):
        if self.passwords.get(email) != password:
            raise AuthError("Invalid login credentials", kind="invalid_credentials")
        return self._issue(self.principals[email])

    def sign_out(self, access_token):
        self.revoked.append(access_token)
        self.access_tokens.pop(access_token, None)

    def get_user(self, access_token):
        if access_token not in self.access_tokens:
            raise AuthError("invalid JWT", kind="invalid_credentials")
        return self.access_tokens[access_token]

    def refresh_session(self, refresh_token):
        principal = self.refresh_tokens.pop(refresh_token, None)
        if principal is None:
            raise AuthError("Invalid Refresh Token", kind="invalid_credentials")
        return self._issue(principal)


class FakeBlobStore(BlobStore):
    """Records uploads in memory; can be told to fail for one category."""

    def __init__(self):
        self.objects = {}
        self.upload_calls = []
        self.deleted = []
        self.fail_category = None

    def upload(self, path, data, content_type):
        self.upload_calls.append(path)
        if self.fail_category and f"/{self.fail_category}_" in path:
            raise UploadError("storage rejected upload: bucket full", kind="store_failure")
        self.objects[path] = (data, content_type)

    def get_public_url(self, path):
        return f"https://blobs.test/public/applications/{path}"

    def delete(self, path):
        self.deleted.append(path)
        self.objects.pop(path, None)


def make_pdf(name="document.pdf", size=2048):
    return DocumentFile(filename=name, content_type="application/pdf", data=b"%PDF-1.4\n" + b"0" * size)


def signed_in(db, principal):
    """An AuthSession for principal with its role already resolved."""
    session = AuthSession()
    RoleResolver(db).attach(session)
    session.apply(SessionEvent.SIGNED_IN, principal)
    return session


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    event.listen(engine, "connect", set_sqlite_pragma)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def make_student(db):
    def _make(full_name="Amina Uwase", email=None, phone="+250700000000"):
        principal = Principal(id=str(uuid.uuid4()), email=email or f"{uuid.uuid4().hex[:8]}@x.com")
        db.add(Student(id=principal.id, full_name=full_name, email=principal.email, phone=phone))
        db.commit()
        return principal
    return _make


@pytest.fixture
def make_admin(db):
    def _make(email="admin@portal.test"):
        principal = Principal(id=str(uuid.uuid4()), email=email)
        db.add(Admin(id=principal.id, email=email, full_name="Portal Admin"))
        db.commit()
        return principal
    return _make


@pytest.fixture
def make_application(db):
    """Insert an application row directly, bypassing the lifecycle manager."""
    def _make(student_id, status=ApplicationStatus.PENDING, created_at=None, **overrides):
        created_at = created_at or datetime.now(timezone.utc)
        values = dict(
            student_id=student_id,
            desired_country="Canada",
            desired_institution="UBC",
            education_level="Bachelor's Degree",
            field_of_study="Engineering",
            passport_url="https://blobs.test/p.pdf",
            transcripts_url="https://blobs.test/t.pdf",
            motivation_letter_url="https://blobs.test/m.pdf",
            status=status,
            created_at=created_at,
            updated_at=created_at,
        )
        values.update(overrides)
        application = Application(**values)
        db.add(application)
        db.commit()
        return application
    return _make


@pytest.fixture
def client(db, identity, blobs):
    from fastapi.testclient import TestClient
    from portal.database import get_db
    from portal.dependencies import get_blob_store, get_identity_provider
    from portal.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_blob_store] = lambda: blobs
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def an_hour_ago():
    return datetime.now(timezone.utc) - timedelta(hours=1)
