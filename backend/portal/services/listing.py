"""
Listing/Filtering View - search and status filter over loaded applications.

Works on an in-memory collection (usually the result of list_all) and
never touches the database. Matching rules:
1. search_term: case-insensitive substring of the student's full name,
   the desired country, or the desired institution (any of the three)
2. status_filter: "all", or an exact status value
Both conditions must hold. Order of the input is preserved.
"""

from collections import Counter
from typing import Dict, Iterable, List

from portal.models.application import STATUS_VALUES

ALL_STATUSES = "all"


def _status_value(application) -> str:
    status = application.status
    return getattr(status, "value", status)


def matches_search(application, search_term: str) -> bool:
    term = (search_term or "").lower()
    if not term:
        return True
    student = application.student
    haystacks = (
        student.full_name if student else "",
        application.desired_country,
        application.desired_institution,
    )
    return any(term in (h or "").lower() for h in haystacks)


def filter_applications(collection: Iterable, search_term: str = "",
                        status_filter: str = ALL_STATUSES) -> List:
    status_filter = status_filter or ALL_STATUSES
    return [
        app for app in collection
        if matches_search(app, search_term)
        and (status_filter == ALL_STATUSES or _status_value(app) == status_filter)
    ]


def status_counts(collection: Iterable) -> Dict[str, int]:
    """Number of applications per status, every status present (zero if none)."""
    counts = Counter(_status_value(app) for app in collection)
    return {status: counts.get(status, 0) for status in STATUS_VALUES}
