"""
Application Lifecycle Manager - creation, reads and status changes.

Every operation takes the caller's AuthSession and checks it before the
database is touched:
- submit / list_for_student / get_profile: caller must be the student
- list_all / update_status: caller must be an administrator

Status graph (permissive by default):

    Pending ──► Reviewed ──► Accepted
       │                └──► Rejected
       └──────────────────► Accepted / Rejected

Administrators may set any status from any status, including moving
backwards. Which moves are allowed is decided by a TransitionPolicy so a
stricter graph can be configured without touching callers.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from portal.config import STATUS_TRANSITION_POLICY, CLEANUP_ORPHANED_UPLOADS
from portal.errors import AuthorizationError, PortalError, StoreLookupError, SubmitError, UpdateError, UploadError
from portal.models.application import Application, ApplicationStatus
from portal.models.student import Student
from portal.services.documents import DOCUMENT_CATEGORIES, DocumentFile, DocumentStore, validate_document
from portal.services.handoff import build_handoff_url
from portal.services.identity import Principal
from portal.services.session import AuthSession
from portal.logging_config import get_logger, log_with_context

logger = get_logger("lifecycle")
storage_logger = get_logger("storage")


@dataclass
class ApplicationFields:
    """The four descriptive fields of the application form."""
    desired_country: str
    desired_institution: str
    education_level: str
    field_of_study: str


@dataclass
class DocumentLocators:
    """Locators of the three uploaded documents."""
    passport_url: str
    transcripts_url: str
    motivation_letter_url: str


# ── Transition policies ──────────────────────────────────────

class TransitionPolicy(ABC):
    """Decides whether an administrator may move an application between statuses"""

    name = "base"

    @abstractmethod
    def allows(self, current: ApplicationStatus, new: ApplicationStatus) -> bool:
        pass

    def check(self, current: ApplicationStatus, new: ApplicationStatus):
        if not self.allows(current, new):
            raise UpdateError("cannot change status from {} to {}".format(current.value, new.value),
                              kind="invalid_transition")


class PermissiveTransitionPolicy(TransitionPolicy):
    """Any status may be set from any status."""

    name = "permissive"

    def allows(self, current: ApplicationStatus, new: ApplicationStatus) -> bool:
        return True


class ForwardOnlyTransitionPolicy(TransitionPolicy):
    """Pending → Reviewed → Accepted/Rejected; decisions are final."""

    name = "forward_only"

    ALLOWED = {
        ApplicationStatus.PENDING: {ApplicationStatus.REVIEWED, ApplicationStatus.ACCEPTED,
                                    ApplicationStatus.REJECTED},
        ApplicationStatus.REVIEWED: {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED},
        ApplicationStatus.ACCEPTED: set(),
        ApplicationStatus.REJECTED: set(),
    }

    def allows(self, current: ApplicationStatus, new: ApplicationStatus) -> bool:
        return current == new or new in self.ALLOWED[current]


TRANSITION_POLICIES = {
    PermissiveTransitionPolicy.name: PermissiveTransitionPolicy,
    ForwardOnlyTransitionPolicy.name: ForwardOnlyTransitionPolicy,
}


def policy_from_name(name: str = None) -> TransitionPolicy:
    name = name or STATUS_TRANSITION_POLICY
    try:
        return TRANSITION_POLICIES[name]()
    except KeyError:
        raise ValueError("unknown status transition policy: {}".format(name))


def parse_status(value) -> ApplicationStatus:
    """Accept an ApplicationStatus or its exact string value."""
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise UpdateError("invalid status: {}".format(value), kind="invalid_status")


# ── Lifecycle manager ────────────────────────────────────────

class ApplicationLifecycle:

    def __init__(self, db: Session, session: AuthSession, policy: TransitionPolicy = None):
        self.db = db
        self.session = session
        self.policy = policy or policy_from_name()

    def _require_self(self, student_id: str) -> Principal:
        principal = self.session.require_principal()
        if principal.id != student_id:
            log_with_context(logger, "WARNING", "Rejected access to another student's data",
                             context={"principal_id": principal.id, "student_id": student_id})
            raise AuthorizationError("you may only access your own applications")
        return principal

    def _require_admin(self) -> Principal:
        principal = self.session.require_principal()
        if not self.session.is_admin:
            log_with_context(logger, "WARNING", "Rejected admin operation from non-admin",
                             context={"principal_id": principal.id})
            raise AuthorizationError("administrator privileges required")
        return principal

    def submit(self, student_id: str, fields: ApplicationFields, documents: DocumentLocators) -> str:
        """
        Create a Pending application for student_id.

        All four fields and all three locators must be non-empty. Nothing
        is written if any check or the insert fails.
        """
        self._require_self(student_id)
        validate_fields(fields)
        for name, value in asdict(documents).items():
            if not isinstance(value, str) or not value.strip():
                raise SubmitError(name, "Please upload all required documents")

        try:
            if self.db.get(Student, student_id) is None:
                raise SubmitError("student_profile", "no student profile exists for this account")

            now = datetime.now(timezone.utc)
            application = Application(
                student_id=student_id,
                status=ApplicationStatus.PENDING,
                created_at=now,
                updated_at=now,
                **{k: v.strip() for k, v in asdict(fields).items()},
                **asdict(documents),
            )
            self.db.add(application)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(logger, "ERROR", "Failed to insert application",
                             context={"student_id": student_id}, extra_data={"error": str(e)})
            raise StoreLookupError("could not save application") from e

        log_with_context(logger, "INFO", "Application submitted",
                         context={"student_id": student_id, "application_id": application.id},
                         extra_data={"country": application.desired_country,
                                     "institution": application.desired_institution})
        return application.id

    def list_for_student(self, student_id: str) -> List[Application]:
        """The student's own applications, newest first."""
        self._require_self(student_id)
        try:
            return (self.db.query(Application)
                    .filter(Application.student_id == student_id)
                    .order_by(Application.created_at.desc(), Application.id.desc())
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(logger, "ERROR", "Failed to list applications",
                             context={"student_id": student_id}, extra_data={"error": str(e)})
            raise StoreLookupError("could not load applications") from e

    def list_all(self) -> List[Application]:
        """Every application with its student loaded, newest first. Admin only."""
        self._require_admin()
        start_time = time.time()
        try:
            applications = (self.db.query(Application)
                            .options(joinedload(Application.student))
                            .order_by(Application.created_at.desc(), Application.id.desc())
                            .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(logger, "ERROR", "Failed to list all applications",
                             extra_data={"error": str(e)})
            raise StoreLookupError("could not load applications") from e

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "INFO", "Listed {} applications".format(len(applications)),
                         extra_data={"duration_ms": round(duration_ms, 2)})
        return applications

    def update_status(self, application_id: str, new_status, admin_notes: Optional[str] = None) -> Application:
        """Set the status (and optionally the admin notes) of an application. Admin only."""
        principal = self._require_admin()
        status = parse_status(new_status)

        try:
            application = self.db.get(Application, application_id)
            if application is None:
                raise UpdateError("application not found: {}".format(application_id), kind="not_found")

            previous = application.status
            self.policy.check(previous, status)

            application.status = status
            if admin_notes is not None:
                application.admin_notes = admin_notes
            application.updated_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(application)
        except SQLAlchemyError as e:
            self.db.rollback()
            log_with_context(logger, "ERROR", "Failed to update application status",
                             context={"application_id": application_id}, extra_data={"error": str(e)})
            raise UpdateError("could not update application", kind="store_failure") from e

        log_with_context(logger, "INFO", "Status changed {} → {}".format(previous.value, status.value),
                         context={"application_id": application_id, "admin_id": principal.id},
                         extra_data={"policy": self.policy.name})
        return application

    def get_profile(self, student_id: str) -> Optional[Student]:
        self._require_self(student_id)
        try:
            return self.db.get(Student, student_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreLookupError("could not load student profile") from e


def validate_fields(fields: ApplicationFields):
    for name, value in asdict(fields).items():
        if not isinstance(value, str) or not value.strip():
            raise SubmitError(name)


# ── Submission pipeline ──────────────────────────────────────

@dataclass
class SubmissionResult:
    application_id: str
    handoff_url: str
    locators: Dict[str, str] = field(default_factory=dict)


class SubmissionPipeline:
    """
    Upload the three documents one after another, then create the
    application.

    A failure at any stage aborts the rest and no application row is
    written. Documents uploaded before the failing stage stay in the blob
    store unless cleanup_orphans is set, in which case deletion is
    attempted.
    """

    def __init__(self, lifecycle: ApplicationLifecycle, documents: DocumentStore,
                 cleanup_orphans: bool = None):
        self.lifecycle = lifecycle
        self.documents = documents
        self.cleanup_orphans = CLEANUP_ORPHANED_UPLOADS if cleanup_orphans is None else cleanup_orphans

    def run(self, fields: ApplicationFields, files: Dict[str, Optional[DocumentFile]]) -> SubmissionResult:
        principal = self.lifecycle.session.require_principal()

        # Everything that can be checked locally is checked before the first upload
        for category in DOCUMENT_CATEGORIES:
            if files.get(category) is None:
                raise SubmitError(category, "Please upload all required documents")
        validate_fields(fields)
        for category in DOCUMENT_CATEGORIES:
            validate_document(category, files[category], self.documents.max_bytes)
        if self.lifecycle.get_profile(principal.id) is None:
            raise SubmitError("student_profile", "no student profile exists for this account")

        uploaded = []
        try:
            for category in DOCUMENT_CATEGORIES:
                uploaded.append(self.documents.upload(principal.id, category, files[category]))
            locators = DocumentLocators(*uploaded)
            application_id = self.lifecycle.submit(principal.id, fields, locators)
        except PortalError as e:
            log_with_context(logger, "WARNING", "Submission aborted: {}".format(e.message),
                             context={"principal_id": principal.id},
                             extra_data={"stage": DOCUMENT_CATEGORIES[len(uploaded)]
                                         if len(uploaded) < len(DOCUMENT_CATEGORIES) else "insert"})
            self._handle_orphans(principal.id, uploaded)
            raise

        return SubmissionResult(
            application_id=application_id,
            handoff_url=build_handoff_url(),
            locators=dict(zip(DOCUMENT_CATEGORIES, uploaded)),
        )

    def _handle_orphans(self, principal_id: str, locators: List[str]):
        if not locators:
            return
        if not self.cleanup_orphans:
            log_with_context(storage_logger, "WARNING",
                             "{} uploaded document(s) left without an application".format(len(locators)),
                             context={"principal_id": principal_id},
                             extra_data={"locators": locators})
            return
        for locator in locators:
            try:
                self.documents.discard(locator)
            except UploadError as e:
                log_with_context(storage_logger, "WARNING", "Orphan cleanup failed: {}".format(e.message),
                                 context={"principal_id": principal_id}, extra_data={"locator": locator})
