"""
Tests for the admin allow-list operator script
"""
import pytest
from sqlalchemy.orm import sessionmaker

import grant_admin
from portal.models import Admin


@pytest.fixture(autouse=True)
def test_database(engine, monkeypatch):
    monkeypatch.setattr(grant_admin, "SessionLocal", sessionmaker(bind=engine))
    monkeypatch.setattr(grant_admin, "create_tables", lambda: None)


def test_grant_then_revoke(db):
    assert grant_admin.grant("p-1", "admin@portal.test", "Portal Admin") is True
    assert grant_admin.grant("p-1", "admin@portal.test", "Portal Admin") is False
    assert db.get(Admin, "p-1").role == "admin"

    assert grant_admin.revoke("p-1") is True
    assert grant_admin.revoke("p-1") is False
    db.expire_all()
    assert db.get(Admin, "p-1") is None


def test_main_grants_with_role(db, capsys):
    assert grant_admin.main(["p-2", "ops@portal.test", "Ops Lead", "--role", "superadmin"]) == 0
    assert "Granted admin to: p-2" in capsys.readouterr().out
    assert db.get(Admin, "p-2").role == "superadmin"


def test_main_requires_email_when_granting():
    with pytest.raises(SystemExit):
        grant_admin.main(["p-3"])


def test_main_revoke(db):
    grant_admin.grant("p-4", "a@x.com", "A")
    assert grant_admin.main(["--revoke", "p-4"]) == 0
    db.expire_all()
    assert db.get(Admin, "p-4") is None
