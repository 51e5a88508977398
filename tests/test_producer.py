import pytest
from conftest import START, DeferredDispatcher, period_payload

from attendcheck.errors import BusinessRuleError, TransientError
from attendcheck.messages import ERROR, SUCCESS
from attendcheck.producer import PublisherState, QRSessionPublisher, describe_fetch_error
from attendcheck.stepper import ACTIVE, COMPLETE, PENDING

CLASS_DETAILS = {
    'year': '3',
    'semester': '3-1',
    'department': 'CSE',
    'section': 'A',
    'subject': 'Computer Networks',
    'block': 'Block-C',
    'room': '301',
    'period': '2',
}
LINK = 'http://portal.test/verf?token=tok-123'


@pytest.fixture
def publisher(api, scheduler, dispatcher, clock):
    return QRSessionPublisher(
        api, scheduler,
        faculty_name='Dr. Rao',
        dispatcher=dispatcher,
        clock=clock,
        base_url='http://portal.test',
        renderer=lambda data: ('qr', data),
    )


def test_refresh_shows_active_session(publisher, api):
    api.latest = period_payload(START)
    publisher.refresh()

    assert publisher.state == PublisherState.ACTIVE
    assert publisher.share_link == LINK
    assert publisher.qr_image == ('qr', LINK)
    assert publisher.remaining == 300
    assert [step.status for step in publisher.steps] == [COMPLETE, ACTIVE, PENDING]


def test_session_expires_after_ttl(publisher, api, scheduler):
    api.latest = period_payload(START)
    publisher.refresh()
    scheduler.advance(300 * 1000)

    assert publisher.expired
    assert publisher.error == 'QR Code has expired! Please ask the faculty to regenerate.'
    assert all(step.status == COMPLETE for step in publisher.steps)
    assert publisher.copy_link() is None
    assert publisher.feedback.transient.text == 'Cannot copy: QR code has expired.'


def test_server_marked_expired(publisher, api):
    api.latest = period_payload(START, status='expired')
    publisher.refresh()
    assert publisher.expired
    assert publisher.error == 'QR Code is already marked as expired.'


def test_missing_timestamp(publisher, api):
    api.latest = period_payload(None)
    publisher.refresh()
    assert publisher.expired
    assert publisher.error == 'Timestamp missing in period data, cannot start timer.'


def test_empty_latest_period(publisher, api):
    api.latest = {}
    publisher.refresh()
    assert publisher.state == PublisherState.EMPTY
    assert publisher.period is None
    assert [step.status for step in publisher.steps][0] == ACTIVE


def test_fetch_error_message(publisher, api):
    api.latest = BusinessRuleError('Server returned 404', 404, {'message': 'No attendance data saved yet'})
    publisher.refresh()
    assert publisher.state == PublisherState.EMPTY
    assert publisher.error == 'No QR code generated yet. Please ask the faculty to generate one.'


@pytest.mark.parametrize('exc, expected', [
    (BusinessRuleError('x', 500, {'error': 'Data file is malformed'}), 'Error: Corrupt data file on server. Please contact support.'),
    (BusinessRuleError('x', 400, {'message': 'Token required'}), 'Token required'),
    (TransientError('Could not connect'), 'Failed to load period data due to a network error.'),
    (RuntimeError('boom'), 'Failed to load period data due to a network error.'),
])
def test_describe_fetch_error(exc, expected):
    assert describe_fetch_error(exc) == expected


def test_prepare_requires_every_field(publisher, api):
    assert publisher.prepare(dict(CLASS_DETAILS, room='')) is None
    assert publisher.feedback.transient.text == 'Please fill in all fields before generating QR code.'
    assert not publisher.confirming
    assert api.saved == []


def test_prepare_rejects_inconsistent_choice(publisher):
    assert publisher.prepare(dict(CLASS_DETAILS, room='101')) is None
    assert publisher.feedback.transient.text == 'Select a valid room.'


def test_prepare_without_faculty_name(api, scheduler, dispatcher, clock):
    publisher = QRSessionPublisher(api, scheduler, dispatcher=dispatcher, clock=clock,
                                   renderer=lambda data: data)
    assert publisher.prepare(CLASS_DETAILS) is None
    assert publisher.feedback.transient.text == 'Faculty name not found. Please sign in again.'


def test_confirm_saves_and_displays(publisher, api):
    api.latest = period_payload(START)
    metadata = publisher.prepare(CLASS_DETAILS)
    assert metadata.facultyName == 'Dr. Rao'
    assert publisher.confirming
    assert publisher.steps[0].status == ACTIVE

    assert publisher.confirm()
    assert api.saved == [dict(CLASS_DETAILS, facultyName='Dr. Rao')]
    assert not publisher.confirming
    assert publisher.state == PublisherState.ACTIVE
    assert publisher.feedback.transient.text == 'QR code generated and attendance updated successfully!'
    assert publisher.feedback.transient.level == SUCCESS


def test_cancel_confirmation(publisher, api):
    publisher.prepare(CLASS_DETAILS)
    publisher.cancel_confirmation()
    assert not publisher.confirm()
    assert api.saved == []


def test_save_failure(publisher, api):
    api.save_result = TransientError('Could not connect')
    publisher.prepare(CLASS_DETAILS)
    publisher.confirm()
    assert not publisher.confirming
    assert not publisher.busy
    assert publisher.feedback.transient.text == 'Something went wrong while saving period info. Please try again.'
    assert api.count('latest_period') == 0


def test_refresh_ignored_while_busy(api, scheduler, clock):
    dispatcher = DeferredDispatcher()
    publisher = QRSessionPublisher(api, scheduler, faculty_name='Dr. Rao', dispatcher=dispatcher,
                                   clock=clock, renderer=lambda data: data)
    assert publisher.refresh()
    assert not publisher.refresh()
    assert len(dispatcher.queue) == 1


def test_copy_link_uses_clipboard(publisher, api):
    api.latest = period_payload(START)
    publisher.refresh()
    copied = []
    assert publisher.copy_link(clipboard=copied.append) == LINK
    assert copied == [LINK]
    assert publisher.feedback.transient.text == 'Link copied to clipboard!'


def test_feedback_dismisses(publisher, scheduler):
    publisher.prepare({})
    assert publisher.feedback.transient.level == ERROR
    scheduler.advance(2500)
    assert publisher.feedback.transient is None


def test_teardown_cancels_timers(publisher, api, scheduler):
    api.latest = period_payload(START)
    publisher.refresh()
    publisher.copy_link()
    publisher.teardown()
    assert scheduler.pending == 0


@pytest.mark.parametrize('start', ['refresh', 'confirm'])
def test_reply_after_teardown_is_dropped(api, scheduler, clock, start):
    api.latest = period_payload(START)
    dispatcher = DeferredDispatcher()
    renders = []
    publisher = QRSessionPublisher(api, scheduler, faculty_name='Dr. Rao', dispatcher=dispatcher,
                                   clock=clock, on_change=lambda: renders.append(1),
                                   renderer=lambda data: data)
    if start == 'confirm':
        publisher.prepare(CLASS_DETAILS)
        assert publisher.confirm()
    else:
        assert publisher.refresh()
    publisher.teardown()
    renders.clear()

    dispatcher.resolve_next()
    scheduler.advance(10_000)

    assert publisher.countdown is None
    assert publisher.period is None
    assert scheduler.pending == 0
    assert renders == []


def test_failed_reply_after_teardown_is_dropped(api, scheduler, clock):
    api.latest = TransientError('Could not connect')
    dispatcher = DeferredDispatcher()
    publisher = QRSessionPublisher(api, scheduler, faculty_name='Dr. Rao', dispatcher=dispatcher,
                                   clock=clock, renderer=lambda data: data)
    publisher.refresh()
    publisher.teardown()
    dispatcher.resolve_next()

    assert publisher.error is None
    assert scheduler.pending == 0
