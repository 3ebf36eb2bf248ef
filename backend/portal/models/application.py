"""
Application model - a scholarship submission and its review status.

This is the central entity of the portal. Each application holds:
- The four descriptive fields chosen on the application form
- Locators of the three uploaded documents
- The review status, changed only by administrators
"""

import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, String, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from portal.database import Base


class ApplicationStatus(str, enum.Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


STATUS_VALUES = [s.value for s in ApplicationStatus]


class Application(Base):
    """
    SQLAlchemy model for the applications table.

    Review statuses:
    - Pending: Just submitted, nobody has looked at it
    - Reviewed: An administrator has gone through the documents
    - Accepted / Rejected: Decision taken (conventionally final)
    """
    __tablename__ = "applications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique application identifier")
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False,
                        doc="Reference to the student who submitted this application")
    desired_country = Column(Text, nullable=False,
                             doc="Country the student wants to study in")
    desired_institution = Column(Text, nullable=False,
                                 doc="College or university the student is applying to")
    education_level = Column(Text, nullable=False,
                             doc="Highest education level reached")
    field_of_study = Column(Text, nullable=False,
                            doc="Intended field of study")
    passport_url = Column(Text, nullable=False,
                          doc="Locator of the uploaded passport/ID document")
    transcripts_url = Column(Text, nullable=False,
                             doc="Locator of the uploaded transcripts")
    motivation_letter_url = Column(Text, nullable=False,
                                   doc="Locator of the uploaded motivation letter")
    status = Column(Enum(ApplicationStatus, name="application_status", native_enum=False,
                         values_callable=lambda e: [s.value for s in e], validate_strings=True,
                         create_constraint=False),
                    nullable=False, default=ApplicationStatus.PENDING,
                    doc="Review status: Pending | Reviewed | Accepted | Rejected")
    admin_notes = Column(Text, nullable=True,
                         doc="Free-text note left by the reviewing administrator")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        doc="When the application was submitted")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        doc="When the application was last changed")

    student = relationship("Student", back_populates="applications")

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Reviewed', 'Accepted', 'Rejected')",
            name="ck_applications_status",
        ),
        Index("ix_applications_student_id", "student_id"),
        Index("ix_applications_status", "status"),
        Index("ix_applications_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Application(id={self.id}, student={self.student_id}, status='{self.status.value}')>"
