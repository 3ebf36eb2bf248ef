"""
Role Resolver - decides whether a principal is an administrator.

There are exactly two roles: admin and ordinary. A principal is an admin
if and only if its id is present in the admins table. Any failure while
checking resolves to "not admin".
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.models.admin import Admin
from portal.services.identity import Principal
from portal.services.session import AuthSession, SessionEvent
from portal.logging_config import get_logger, log_with_context

logger = get_logger("auth")


class RoleResolver:

    def __init__(self, db: Session):
        self.db = db

    def resolve_role(self, principal_id: str) -> bool:
        """Return True if principal_id is in the admin allow-list."""
        try:
            found = self.db.query(Admin.id).filter(Admin.id == principal_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(logger, "WARNING", "Admin lookup failed, defaulting to non-admin",
                             context={"principal_id": principal_id},
                             extra_data={"error": str(e)})
            return False
        return found is not None

    def attach(self, session: AuthSession):
        """Keep session.is_admin in step with the session's principal."""
        return session.subscribe(self._on_session_change)

    def _on_session_change(self, session: AuthSession, event: SessionEvent,
                           principal: Optional[Principal]):
        if principal is None:
            session.is_admin = False
            return
        session.is_admin = self.resolve_role(principal.id)
        log_with_context(logger, "DEBUG", "Role resolved on {}".format(event.value),
                         context={"principal_id": principal.id},
                         extra_data={"is_admin": session.is_admin})
