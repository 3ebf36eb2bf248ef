"""
Admin model - the allow-list of principals with administrator privilege.

Presence of a principal id in this table is the only thing that makes a
user an administrator. The remaining columns are descriptive.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, String
from portal.database import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(String(36), primary_key=True,
                doc="Principal id from the identity provider")
    email = Column(Text, nullable=False,
                   doc="Administrator email")
    full_name = Column(Text, nullable=False,
                       doc="Administrator display name")
    role = Column(Text, nullable=False, default="admin",
                  doc="Descriptive role label; not used for authorization")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        doc="When the principal was granted admin")

    def __repr__(self):
        return f"<Admin(id={self.id}, email='{self.email}')>"
