"""
Error taxonomy for the portal.

Services raise these; main.py maps them to HTTP responses. Each error
carries a short machine-readable ``kind`` next to its human-readable
message so callers can tell a duplicate registration from bad credentials
without parsing text.
"""


class PortalError(Exception):
    """Base class for all portal errors"""

    kind = "error"

    def __init__(self, message: str, kind: str = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)


class AuthError(PortalError):
    """Bad credentials, duplicate registration, or no valid session"""

    kind = "authentication"


class AuthorizationError(PortalError):
    """Principal is authenticated but not allowed to perform the operation"""

    kind = "forbidden"


class UploadError(PortalError):
    """Document rejected before upload, or the blob store failed"""

    kind = "upload_failed"


class SubmitError(PortalError):
    """A required field or document is missing from a submission"""

    kind = "incomplete_submission"

    def __init__(self, field: str, message: str = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class UpdateError(PortalError):
    """Status update could not be applied"""

    kind = "update_failed"


class StoreLookupError(PortalError):
    """Relational store unreachable or failed during a read"""

    kind = "store_unavailable"
