from portal.models.student import Student
from portal.models.application import Application, ApplicationStatus
from portal.models.admin import Admin

__all__ = ["Student", "Application", "ApplicationStatus", "Admin"]
