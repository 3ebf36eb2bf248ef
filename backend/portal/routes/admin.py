"""
Admin API routes - review all applications and change their status.

Both endpoints are refused with 403 unless the caller's principal is in
the admins allow-list.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from portal.dependencies import get_lifecycle
from portal.routes.applications import serialize_application
from portal.services.lifecycle import ApplicationLifecycle
from portal.services.listing import ALL_STATUSES, filter_applications, status_counts
from portal.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


class StatusUpdateRequest(BaseModel):
    """Schema for changing an application's status."""
    status: str
    admin_notes: Optional[str] = None


@router.get("/api/admin/applications")
def list_applications(
    search: str = Query("", description="Search student name, country or institution"),
    status: str = Query(ALL_STATUSES, description="'all' or an exact status"),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    """All applications joined with their student, filtered, newest first."""
    applications = lifecycle.list_all()
    filtered = filter_applications(applications, search, status)

    log_with_context(logger, "INFO",
        "Admin listing: {} of {} applications match".format(len(filtered), len(applications)),
        extra_data={"search": search, "status": status})

    return {
        "data": [serialize_application(a, include_student=True) for a in filtered],
        "counts": status_counts(applications),
        "total": len(applications),
    }


@router.patch("/api/admin/applications/{application_id}/status")
def update_application_status(
    application_id: str,
    request: StatusUpdateRequest,
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    application = lifecycle.update_status(application_id, request.status, request.admin_notes)
    return serialize_application(application)
