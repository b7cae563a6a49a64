from __future__ import annotations

from alertreceiver.matcher import find_match
from alertreceiver.models import TrackedIssue


def _issues() -> list[TrackedIssue]:
    return [
        TrackedIssue(number=1, title="DiskRunningFull"),
        TrackedIssue(number=2, title="HighLatency"),
        TrackedIssue(number=3, title="DiskRunningFull"),
    ]


def test_find_match_returns_first_in_tracker_order():
    match = find_match("DiskRunningFull", _issues())
    assert match is not None
    assert match.number == 1


def test_find_match_is_exact():
    assert find_match("diskrunningfull", _issues()) is None
    assert find_match("DiskRunningFull ", _issues()) is None
    assert find_match("Disk", _issues()) is None


def test_find_match_on_empty_list():
    assert find_match("anything", []) is None
