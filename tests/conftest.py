from datetime import datetime, timedelta

import pytest
import pytz

from attendcheck.errors import CameraError

START = datetime(2024, 1, 15, 10, 0, 0, tzinfo=pytz.utc)


def iso(moment):
    return moment.astimezone(pytz.utc).strftime('%Y-%m-%dT%H:%M:%S.000Z')


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeScheduler:
    """Manual stand-in for Tk's after/after_cancel, driven by advance()."""

    def __init__(self, clock):
        self.clock = clock
        self.now_ms = 0
        self._jobs = {}
        self._seq = 0

    def after(self, ms, callback):
        self._seq += 1
        job = f'after#{self._seq}'
        self._jobs[job] = (self.now_ms + int(ms), self._seq, callback)
        return job

    def after_cancel(self, job):
        self._jobs.pop(job, None)

    @property
    def pending(self):
        return len(self._jobs)

    def advance(self, ms):
        target = self.now_ms + ms
        while True:
            due = [(when, seq, job) for job, (when, seq, _) in self._jobs.items() if when <= target]
            if not due:
                break
            when, _, job = min(due)
            _, _, callback = self._jobs.pop(job)
            self._move_to(when)
            callback()
        self._move_to(target)

    def _move_to(self, when):
        if when > self.now_ms:
            self.clock.advance(milliseconds=when - self.now_ms)
            self.now_ms = when


class InlineDispatcher:
    def submit(self, work, on_success, on_error):
        try:
            result = work()
        except Exception as exc:
            on_error(exc)
            return
        on_success(result)


class DeferredDispatcher:
    """Queues work until the test resolves it, to observe in-flight behaviour."""

    def __init__(self):
        self.queue = []

    def submit(self, work, on_success, on_error):
        self.queue.append((work, on_success, on_error))

    def resolve_next(self):
        work, on_success, on_error = self.queue.pop(0)
        InlineDispatcher().submit(work, on_success, on_error)


class FakeCamera:
    def __init__(self, open_error=None):
        self.open_error = open_error
        self.is_open = False
        self.opened = 0
        self.released = 0
        self.captures = 0
        self.last_frame = None

    @property
    def live_tracks(self):
        return 1 if self.is_open else 0

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.is_open = True
        self.opened += 1

    def capture_jpeg(self, quality=None):
        if not self.is_open:
            raise CameraError('The camera is not running.')
        self.captures += 1
        return b'\xff\xd8jpeg'

    def release(self):
        if self.is_open:
            self.is_open = False
            self.released += 1


def _answer(value):
    if isinstance(value, Exception):
        raise value
    return value


class FakeAPI:
    """Scripted backend. Exceptions placed in a response slot are raised."""

    def __init__(self):
        self.calls = []
        self.period = None
        self.latest = {}
        self.location = {'status': 'success', 'message': 'Location verified'}
        self.recognitions = [{'status': 'No face found'}]
        self.mark = {'status': 'success', 'rollNumber': '21CS001', 'message': 'Attendance marked'}
        self.saved = []
        self.save_result = {'message': 'Period saved'}
        self.history_items = []
        self.delete_result = {'message': 'deleted'}

    def period_by_token(self, token):
        self.calls.append(('period_by_token', token))
        return _answer(self.period)

    def verify_location(self, latitude, longitude, block, room, token):
        self.calls.append(('verify_location', latitude, longitude, block, room, token))
        return _answer(self.location)

    def recognize_face(self, image, token):
        self.calls.append(('recognize_face', token))
        value = self.recognitions.pop(0) if len(self.recognitions) > 1 else self.recognitions[0]
        return _answer(value)

    def mark_attendance(self, roll_number, token):
        self.calls.append(('mark_attendance', roll_number, token))
        return _answer(self.mark)

    def save_period(self, metadata):
        self.calls.append(('save_period', metadata))
        self.saved.append(metadata)
        return _answer(self.save_result)

    def latest_period(self):
        self.calls.append(('latest_period',))
        return _answer(self.latest)

    def history(self, faculty_name):
        self.calls.append(('history', faculty_name))
        return _answer(self.history_items)

    def delete_history(self, token):
        self.calls.append(('delete_history', token))
        result = _answer(self.delete_result)
        self.history_items = [item for item in self.history_items if item.get('token') != token]
        return result

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


def period_payload(timestamp, **overrides):
    payload = {
        'token': 'tok-123',
        'year': '3',
        'semester': '3-1',
        'department': 'CSE',
        'section': 'A',
        'subject': 'Computer Networks',
        'block': 'Block-C',
        'room': '301',
        'period': '2',
        'facultyName': 'Dr. Rao',
        'timestamp': iso(timestamp) if isinstance(timestamp, datetime) else timestamp,
        'status': 'active',
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture
def dispatcher():
    return InlineDispatcher()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def api():
    return FakeAPI()
