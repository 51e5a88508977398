"""Faculty-side publishing of an attendance session as a QR code."""
import logging
from datetime import datetime
from enum import Enum

import pytz

from .api import error_message
from .config import Config
from .countdown import SessionCountdown
from .errors import ApiError, AttendCheckError, SessionError
from .forms import PeriodForm, first_error
from .messages import ERROR, SUCCESS, MessageBoard
from .period import STATUS_EXPIRED, ClassMetadata, Period, build_share_link
from .qr import render_qr
from .scheduling import ExpirySignal, ThreadDispatcher
from .stepper import producer_steps

logger = logging.getLogger(__name__)


class PublisherState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    ACTIVE = 'active'
    EXPIRED = 'expired'
    EMPTY = 'empty'


def describe_fetch_error(exc):
    """Map a failed latest-period fetch to the message shown to faculty."""
    backend_message = error_message(exc.payload) if isinstance(exc, ApiError) else None
    if backend_message and 'No attendance data saved yet' in backend_message:
        return 'No QR code generated yet. Please ask the faculty to generate one.'
    if backend_message and 'malformed' in backend_message:
        return 'Error: Corrupt data file on server. Please contact support.'
    return backend_message or 'Failed to load period data due to a network error.'


class QRSessionPublisher:
    def __init__(self, api, scheduler, faculty_name='', dispatcher=None, clock=None,
                 on_change=None, base_url=None, renderer=None):
        self.api = api
        self.scheduler = scheduler
        self.faculty_name = faculty_name or ''
        self.dispatcher = dispatcher or ThreadDispatcher(scheduler)
        self.clock = clock or (lambda: datetime.now(pytz.utc))
        self.on_change = on_change
        self.base_url = base_url or Config.PUBLIC_BASE_URL
        self.renderer = renderer or render_qr

        self.state = PublisherState.IDLE
        self.pending = None
        self.form_errors = {}
        self.period = None
        self.share_link = None
        self.qr_image = None
        self.error = None
        self.busy = False
        self.countdown = None
        self._torn_down = False
        self.countdown = None
        self.feedback = MessageBoard(scheduler, Config.FEEDBACK_DISMISS_MS, on_change=self._changed)

    def _changed(self):
        if self.on_change and not self._torn_down:
            self.on_change()

    @property
    def confirming(self):
        return self.pending is not None

    @property
    def expired(self):
        return self.state == PublisherState.EXPIRED

    @property
    def remaining(self):
        return self.countdown.remaining if self.countdown else 0

    @property
    def steps(self):
        return producer_steps(self.period is not None, self.expired, self.confirming)

    # --- class details --------------------------------------------------

    def prepare(self, form_data):
        """Validate class details and enter confirmation. Returns the metadata or None."""
        form = PeriodForm(data=form_data)
        if not form.validate():
            self.form_errors = form.errors
            missing = [field.name for field in form if not field.data]
            if missing:
                self.feedback.flash('Please fill in all fields before generating QR code.', ERROR)
            else:
                self.feedback.flash(first_error(form), ERROR)
            return None

        self.form_errors = {}
        metadata = ClassMetadata.from_payload(dict(form.data, facultyName=self.faculty_name))
        if metadata.missing_fields():
            self.feedback.flash('Faculty name not found. Please sign in again.', ERROR)
            return None
        self.pending = metadata
        self._changed()
        return metadata

    def cancel_confirmation(self):
        self.pending = None
        self._changed()

    def confirm(self):
        if self.pending is None or self.busy:
            return False
        metadata = self.pending
        self.busy = True
        self._changed()

        def work():
            self.api.save_period(metadata.to_payload())
            try:
                return self.api.latest_period(), None
            except AttendCheckError as exc:
                return None, exc

        self.dispatcher.submit(work, self._confirmed, self._confirm_failed)
        return True

    def _confirmed(self, outcome):
        if self._torn_down:
            return
        payload, fetch_error = outcome
        self.pending = None
        self.busy = False
        self.feedback.flash('QR code generated and attendance updated successfully!', SUCCESS)
        if fetch_error is not None:
            self._fetch_failed(fetch_error)
        else:
            self._show(payload)

    def _confirm_failed(self, exc):
        if self._torn_down:
            return
        self.pending = None
        self.busy = False
        if isinstance(exc, AttendCheckError):
            logger.warning('Failed to save period data: %s', exc.message)
        else:
            logger.error('Failed to save period data', exc_info=exc)
        self.feedback.flash('Something went wrong while saving period info. Please try again.', ERROR)
        self._changed()

    # --- display --------------------------------------------------------

    def refresh(self):
        if self.busy:
            return False
        self.busy = True
        self.state = PublisherState.LOADING
        self._changed()
        self.dispatcher.submit(self.api.latest_period, self._refreshed, self._refresh_failed)
        return True

    def _refreshed(self, payload):
        if self._torn_down:
            return
        self.busy = False
        self._show(payload)

    def _refresh_failed(self, exc):
        if self._torn_down:
            return
        self.busy = False
        self._fetch_failed(exc)

    def _fetch_failed(self, exc):
        if not isinstance(exc, AttendCheckError):
            logger.error('Failed to fetch period data', exc_info=exc)
        else:
            logger.warning('Failed to fetch period data: %s', exc.message)
        self._clear_period()
        self.state = PublisherState.EMPTY
        self.error = describe_fetch_error(exc)
        self.feedback.flash('Failed to load period data.', ERROR)
        self._changed()

    def _show(self, payload):
        if self._torn_down:
            return
        self._clear_period()
        if not payload:
            self.state = PublisherState.EMPTY
            self.error = 'No period data available. Faculty needs to generate one.'
            self._changed()
            return
        try:
            period = Period.from_payload(payload, loaded_at=self.clock())
        except SessionError as exc:
            self.state = PublisherState.EMPTY
            self.error = exc.message
            self._changed()
            return

        self.period = period
        self.share_link = build_share_link(period.token, self.base_url)
        self.qr_image = self.renderer(self.share_link)
        self.error = None
        self.state = PublisherState.ACTIVE

        if period.timestamp is None and period.status != STATUS_EXPIRED:
            self.state = PublisherState.EXPIRED
            self.error = 'Timestamp missing in period data, cannot start timer.'
            self._changed()
            return

        signal = ExpirySignal()
        signal.subscribe(self._on_expired)
        self.countdown = SessionCountdown(self.scheduler, signal, clock=self.clock,
                                          on_tick=lambda remaining: self._changed())
        self.countdown.follow(period)
        logger.info('Showing QR for session %s', period.token)
        self._changed()

    def _on_expired(self):
        self.state = PublisherState.EXPIRED
        if self.period is not None and self.period.status == STATUS_EXPIRED:
            self.error = 'QR Code is already marked as expired.'
        else:
            self.error = 'QR Code has expired! Please ask the faculty to regenerate.'
        self._changed()

    def _clear_period(self):
        if self.countdown is not None:
            self.countdown.cancel()
        self.countdown = None
        self.period = None
        self.share_link = None
        self.qr_image = None

    def copy_link(self, clipboard=None):
        """Copy the share link through ``clipboard`` unless the session is over."""
        if self.period is None or self.expired:
            self.feedback.flash('Cannot copy: QR code has expired.', ERROR)
            return None
        if clipboard is not None:
            clipboard(self.share_link)
        self.feedback.flash('Link copied to clipboard!', SUCCESS)
        return self.share_link

    def teardown(self):
        self._torn_down = True
        if self.countdown is not None:
            self.countdown.cancel()
        self.feedback.clear()
