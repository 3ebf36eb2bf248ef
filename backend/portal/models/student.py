"""
Student model - the profile linked one-to-one with an identity-provider
principal.

The row's primary key is the principal id handed out by the identity
provider, so the student record and the authenticated user share an id.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, String
from sqlalchemy.orm import relationship
from portal.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    Created at registration right after the credential is created at the
    identity provider.
    """
    __tablename__ = "students"

    id = Column(String(36), primary_key=True,
                doc="Principal id from the identity provider")
    full_name = Column(Text, nullable=False,
                       doc="Student's full name as entered at registration")
    email = Column(Text, nullable=False,
                   doc="Contact email (same as the login email)")
    phone = Column(Text, nullable=False,
                   doc="Contact phone number")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        doc="Timestamp when the profile was created")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc),
                        doc="Timestamp of the last contact-detail change")

    # Relationship: one student has many applications
    applications = relationship("Application", back_populates="student")

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.full_name}', email='{self.email}')>"
