"""Tests for request deadlines."""

import pytest

from roomtrack.utils.deadline import Deadline
from roomtrack.utils.exceptions import DeadlineExceededError


@pytest.mark.parametrize("header, expected", [(None, 10.0), ("", 10.0), ("2.5", 2.5), ("soon", 10.0), ("-3", 10.0)])
def test_from_header(header, expected):
    assert Deadline.from_header(header, 10.0).seconds == expected


def test_check_passes_within_budget():
    deadline = Deadline(60)
    deadline.check()
    assert not deadline.expired()
    assert 0 < deadline.remaining() <= 60


def test_check_raises_once_expired():
    deadline = Deadline(0)

    assert deadline.expired()
    assert deadline.remaining() == 0
    with pytest.raises(DeadlineExceededError):
        deadline.check()
