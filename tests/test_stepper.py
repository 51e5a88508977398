import pytest

from attendcheck.stepper import (
    ACTIVE,
    BLOCKED,
    COMPLETE,
    CONSUMER_LABELS,
    PENDING,
    PRODUCER_LABELS,
    consumer_steps,
    producer_steps,
)
from attendcheck.verification import VerifierState


def statuses(steps):
    return [step.status for step in steps]


@pytest.mark.parametrize('state, verified, expected', [
    (VerifierState.LOADING, False, [PENDING, PENDING, PENDING]),
    (VerifierState.AWAITING_LOCATION, False, [ACTIVE, PENDING, PENDING]),
    (VerifierState.CAPTURING, True, [COMPLETE, ACTIVE, PENDING]),
    (VerifierState.SUCCESS, True, [COMPLETE, COMPLETE, COMPLETE]),
    (VerifierState.EXPIRED, False, [BLOCKED, BLOCKED, BLOCKED]),
    (VerifierState.EXPIRED, True, [COMPLETE, BLOCKED, BLOCKED]),
    (VerifierState.INVALID, False, [BLOCKED, BLOCKED, BLOCKED]),
])
def test_consumer_steps(state, verified, expected):
    steps = consumer_steps(state, verified)
    assert statuses(steps) == expected
    assert [step.label for step in steps] == list(CONSUMER_LABELS)


def test_consumer_steps_accept_plain_strings():
    assert statuses(consumer_steps('capturing')) == [COMPLETE, ACTIVE, PENDING]


def test_producer_steps():
    assert statuses(producer_steps()) == [ACTIVE, PENDING, PENDING]
    assert statuses(producer_steps(has_period=True)) == [COMPLETE, ACTIVE, PENDING]
    assert statuses(producer_steps(has_period=True, expired=True)) == [COMPLETE, COMPLETE, COMPLETE]
    assert statuses(producer_steps(has_period=True, confirming=True)) == [ACTIVE, ACTIVE, PENDING]
    assert [step.label for step in producer_steps()] == list(PRODUCER_LABELS)
