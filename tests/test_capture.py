import pytest
from conftest import DeferredDispatcher, FakeCamera

from attendcheck.capture import CaptureLoop
from attendcheck.errors import BusinessRuleError, CameraError, TransientError
from attendcheck.messages import ERROR, INFO, WARNING
from attendcheck.scheduling import ExpirySignal

INTERVAL = 1500


@pytest.fixture
def messages():
    return []


def make_loop(scheduler, dispatcher, camera, api, messages, **kwargs):
    return CaptureLoop(
        scheduler, dispatcher, camera, api, 'tok-123', ExpirySignal(),
        interval_ms=INTERVAL,
        on_message=lambda text, level: messages.append((text, level)),
        **kwargs
    )


def test_one_submission_in_flight(scheduler, camera, api, messages):
    dispatcher = DeferredDispatcher()
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()

    scheduler.advance(INTERVAL)
    assert loop.in_flight
    assert loop.submissions == 1

    scheduler.advance(INTERVAL * 3)
    assert loop.submissions == 1
    assert loop.skipped == 3
    assert len(dispatcher.queue) == 1

    dispatcher.resolve_next()
    assert not loop.in_flight
    scheduler.advance(INTERVAL)
    assert loop.submissions == 2
    assert len(dispatcher.queue) == 1


def test_match_marks_attendance_and_stops(scheduler, dispatcher, camera, api, messages):
    api.recognitions = [{'status': 'Attendance marked', 'rollNumber': '21CS001'}]
    reports = []
    loop = make_loop(scheduler, dispatcher, camera, api, messages, on_success=reports.append)
    loop.start()
    scheduler.advance(INTERVAL)

    assert loop.succeeded
    assert reports[0].confirmation['rollNumber'] == '21CS001'
    assert ('mark_attendance', '21CS001', 'tok-123') in api.calls
    assert camera.live_tracks == 0
    assert loop.live_timers == 0
    assert scheduler.pending == 0


def test_spoof_keeps_loop_running(scheduler, dispatcher, camera, api, messages):
    api.recognitions = [{'status': 'Spoof attempt detected'}]
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    scheduler.advance(INTERVAL)

    assert messages == [('⚠ Spoof attempt detected!', WARNING)]
    assert loop.running
    assert camera.live_tracks == 1
    assert api.count('mark_attendance') == 0


@pytest.mark.parametrize('status', ['No face found', 'Unknown face', 'Multiple faces detected'])
def test_retry_statuses(scheduler, dispatcher, camera, api, messages, status):
    api.recognitions = [{'status': status}]
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    scheduler.advance(INTERVAL * 2)
    assert messages == [(f'Face Recognition: {status}', INFO)] * 2
    assert loop.running


def test_rejected_attendance_keeps_capturing(scheduler, dispatcher, camera, api, messages):
    api.recognitions = [{'status': 'Attendance marked', 'rollNumber': '21CS001'}]
    api.mark = BusinessRuleError('Attendance already marked for this period', 200,
                                 {'status': 'error', 'error_type': 'duplicate'})
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    scheduler.advance(INTERVAL)

    assert messages == [('🚫 Attendance already marked for this period', ERROR)]
    assert not loop.succeeded
    assert loop.running


def test_backend_error_retries(scheduler, dispatcher, camera, api, messages):
    api.recognitions = [TransientError('Could not connect'), {'status': 'No face found'}]
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    scheduler.advance(INTERVAL)
    assert messages[-1] == ('🚫 Backend error! Retrying...', ERROR)
    assert not loop.in_flight
    scheduler.advance(INTERVAL)
    assert messages[-1] == ('Face Recognition: No face found', INFO)


def test_camera_open_failure_propagates(scheduler, dispatcher, api, messages):
    camera = FakeCamera(open_error=CameraError('No camera found', reason='not_found'))
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    with pytest.raises(CameraError):
        loop.start()
    assert not loop.running


def test_stop_is_idempotent(scheduler, dispatcher, camera, api, messages):
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    loop.stop()
    loop.stop()
    assert loop.live_timers == 0
    assert camera.live_tracks == 0
    assert camera.released == 1
    assert scheduler.pending == 0


def test_expiry_signal_stops_loop(scheduler, camera, api, messages):
    dispatcher = DeferredDispatcher()
    loop = make_loop(scheduler, dispatcher, camera, api, messages)
    loop.start()
    scheduler.advance(INTERVAL)
    loop.signal.set()

    assert loop.stopped
    assert camera.live_tracks == 0
    # A late recognition result is dropped
    dispatcher.resolve_next()
    assert messages == []
    assert not loop.in_flight


def test_stopped_loop_leaves_signal(scheduler, dispatcher, camera, api, messages):
    signal = ExpirySignal()
    for _ in range(3):
        loop = CaptureLoop(scheduler, dispatcher, camera, api, 'tok-123', signal, interval_ms=INTERVAL)
        loop.start()
        loop.stop()
    assert signal._listeners == []
