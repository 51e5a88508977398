"""Step indicators derived from controller state. Holds no state of its own."""
from dataclasses import dataclass

PENDING = 'pending'
ACTIVE = 'active'
COMPLETE = 'complete'
BLOCKED = 'blocked'

CONSUMER_LABELS = ('Verify Location', 'Face Recognition', 'Attendance Marked')
PRODUCER_LABELS = ('Class Details', 'QR Active', 'Session Closed')


@dataclass(frozen=True)
class Step:
    label: str
    status: str


def _steps(labels, statuses):
    return [Step(label, status) for label, status in zip(labels, statuses)]


def consumer_steps(state, location_verified=False):
    state = getattr(state, 'value', state)
    if state == 'awaiting_location':
        statuses = (ACTIVE, PENDING, PENDING)
    elif state == 'capturing':
        statuses = (COMPLETE, ACTIVE, PENDING)
    elif state == 'success':
        statuses = (COMPLETE, COMPLETE, COMPLETE)
    elif state == 'expired':
        if location_verified:
            statuses = (COMPLETE, BLOCKED, BLOCKED)
        else:
            statuses = (BLOCKED, BLOCKED, BLOCKED)
    elif state == 'invalid':
        statuses = (BLOCKED, BLOCKED, BLOCKED)
    else:
        statuses = (PENDING, PENDING, PENDING)
    return _steps(CONSUMER_LABELS, statuses)


def producer_steps(has_period=False, expired=False, confirming=False):
    if not has_period:
        statuses = (ACTIVE, PENDING, PENDING)
    elif expired:
        statuses = (COMPLETE, COMPLETE, COMPLETE)
    else:
        statuses = (COMPLETE, ACTIVE, PENDING)
    if confirming:
        # A new period is being prepared on top of the current one
        statuses = (ACTIVE,) + statuses[1:]
    return _steps(PRODUCER_LABELS, statuses)
