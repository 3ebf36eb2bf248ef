"""
Student application routes - submit an application and track its status.

Provides endpoints for:
- Submitting the application form with its three documents (multipart)
- Listing the caller's own applications, newest first
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile

from portal.config import MAX_UPLOAD_BYTES
from portal.dependencies import get_lifecycle, get_submission_pipeline
from portal.models.application import Application
from portal.services.documents import DocumentFile
from portal.services.lifecycle import ApplicationFields, ApplicationLifecycle, SubmissionPipeline
from portal.logging_config import get_logger

router = APIRouter()
logger = get_logger("http")


def serialize_application(application: Application, include_student: bool = False) -> dict:
    """Serialize an Application ORM object to a dict for API response."""
    result = {
        "id": str(application.id),
        "student_id": str(application.student_id),
        "desired_country": application.desired_country,
        "desired_institution": application.desired_institution,
        "education_level": application.education_level,
        "field_of_study": application.field_of_study,
        "passport_url": application.passport_url,
        "transcripts_url": application.transcripts_url,
        "motivation_letter_url": application.motivation_letter_url,
        "status": application.status.value,
        "admin_notes": application.admin_notes,
        "created_at": application.created_at.isoformat() if application.created_at else None,
        "updated_at": application.updated_at.isoformat() if application.updated_at else None,
    }
    if include_student:
        result["student"] = {
            "id": str(application.student.id),
            "full_name": application.student.full_name,
            "email": application.student.email,
            "phone": application.student.phone
        } if application.student else None
    return result


def _document(upload: Optional[UploadFile]) -> Optional[DocumentFile]:
    """Read an uploaded part, never more than one byte past the size limit."""
    if upload is None or not upload.filename:
        return None
    data = upload.file.read(MAX_UPLOAD_BYTES + 1)
    return DocumentFile(filename=upload.filename, content_type=upload.content_type or "", data=data)


@router.post("/api/applications", status_code=201)
def submit_application(
    desired_country: str = Form(""),
    desired_institution: str = Form(""),
    education_level: str = Form(""),
    field_of_study: str = Form(""),
    passport: Optional[UploadFile] = File(None),
    transcripts: Optional[UploadFile] = File(None),
    motivation_letter: Optional[UploadFile] = File(None),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    """
    Upload passport, transcripts and motivation letter, then create the
    application. Returns the new id and the messaging handoff URL.
    """
    fields = ApplicationFields(
        desired_country=desired_country,
        desired_institution=desired_institution,
        education_level=education_level,
        field_of_study=field_of_study,
    )
    files = {
        "passport": _document(passport),
        "transcripts": _document(transcripts),
        "motivation_letter": _document(motivation_letter),
    }
    result = pipeline.run(fields, files)
    return {
        "id": result.application_id,
        "status": "Pending",
        "handoff_url": result.handoff_url,
        "documents": result.locators,
    }


@router.get("/api/applications/mine")
def list_my_applications(lifecycle: ApplicationLifecycle = Depends(get_lifecycle)):
    """The caller's applications (newest first) and their student profile."""
    principal = lifecycle.session.require_principal()
    applications = lifecycle.list_for_student(principal.id)
    student = lifecycle.get_profile(principal.id)
    return {
        "student": {"full_name": student.full_name} if student else None,
        "data": [serialize_application(a) for a in applications],
    }
