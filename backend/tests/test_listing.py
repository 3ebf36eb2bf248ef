"""
Tests for the admin listing filter
"""
from types import SimpleNamespace

import pytest

from portal.models import ApplicationStatus
from portal.services.listing import filter_applications, status_counts


def _app(name, country, institution, status):
    return SimpleNamespace(
        student=SimpleNamespace(full_name=name),
        desired_country=country,
        desired_institution=institution,
        status=status,
    )


@pytest.fixture
def collection():
    return [
        _app("Grace Harvard", "Kenya", "University of Nairobi", ApplicationStatus.PENDING),
        _app("Jean Bosco", "United States", "Harvard University", ApplicationStatus.ACCEPTED),
        _app("Aline Mukamana", "Canada", "UBC", ApplicationStatus.ACCEPTED),
        _app("Eric Niyonzima", "harvardia", "Some College", ApplicationStatus.REJECTED),
        _app("Diane Uwera", "Germany", "TU Munich", ApplicationStatus.REVIEWED),
    ]


def test_search_matches_name_country_or_institution(collection):
    result = filter_applications(collection, "Harvard", "all")
    assert [a.student.full_name for a in result] == ["Grace Harvard", "Jean Bosco", "Eric Niyonzima"]


def test_search_is_case_insensitive(collection):
    assert filter_applications(collection, "ubc", "all") == [collection[2]]
    assert filter_applications(collection, "GERMANY", "all") == [collection[4]]


def test_status_filter_alone(collection):
    result = filter_applications(collection, "", "Accepted")
    assert result == [collection[1], collection[2]]


def test_search_and_status_combine(collection):
    assert filter_applications(collection, "harvard", "Accepted") == [collection[1]]
    assert filter_applications(collection, "harvard", "Reviewed") == []


def test_empty_search_and_all_returns_everything_in_order(collection):
    assert filter_applications(collection, "", "all") == collection


def test_does_not_mutate_input(collection):
    snapshot = list(collection)
    filter_applications(collection, "x", "Pending")
    assert collection == snapshot


def test_status_counts(collection):
    assert status_counts(collection) == {"Pending": 1, "Reviewed": 1, "Accepted": 2, "Rejected": 1}
    assert status_counts([]) == {"Pending": 0, "Reviewed": 0, "Accepted": 0, "Rejected": 0}
