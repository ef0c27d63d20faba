"""Tests for the transition detector"""

import pytest

from rideops.v1.rides.models import RideStatus
from rideops.v1.rides.transitions import TransitionDetector

COMPLETED = RideStatus.COMPLETED.value


@pytest.fixture
def detector() -> TransitionDetector:
    return TransitionDetector(COMPLETED)


@pytest.mark.parametrize(
    "previous",
    [
        RideStatus.SCHEDULED.value,
        RideStatus.ACTIVE.value,
        RideStatus.IN_PROGRESS.value,
        RideStatus.CANCELLED.value,
    ],
)
def test_fires_on_entering_target(detector, previous):
    assert detector.should_fire(previous, COMPLETED) is True


def test_fires_on_insert_directly_in_target(detector):
    """A row created in the target status has no previous status."""
    assert detector.should_fire(None, COMPLETED) is True


def test_does_not_fire_on_same_status_write(detector):
    assert detector.should_fire(COMPLETED, COMPLETED) is False


def test_does_not_fire_when_leaving_target(detector):
    assert detector.should_fire(COMPLETED, RideStatus.CANCELLED.value) is False


def test_does_not_fire_for_other_transitions(detector):
    assert detector.should_fire(RideStatus.SCHEDULED.value, RideStatus.ACTIVE.value) is False
    assert detector.should_fire(None, RideStatus.SCHEDULED.value) is False
