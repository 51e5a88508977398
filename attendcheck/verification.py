"""Student-side attendance verification for one scanned session token.

The verifier loads the period, runs the location gate and then the face
capture loop, and keeps a local countdown so it stops as soon as the session
expires. All callbacks run on the UI thread; blocking calls go through the
dispatcher.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import pytz

from .api import error_message
from .camera import Camera
from .capture import CaptureLoop
from .config import Config
from .countdown import SessionCountdown
from .errors import ApiError, AttendCheckError, CameraError, LocationError, SessionError
from .location import LocationGate
from .messages import ERROR, INFO, SUCCESS, MessageBoard
from .period import Period
from .scheduling import ExpirySignal, ThreadDispatcher
from .stepper import consumer_steps

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = 'No token provided in the URL. Please use a valid QR code link.'
LOAD_FAILED_MESSAGE = 'Failed to load period data. Please try again.'
EXPIRED_ON_LOAD_MESSAGE = 'This QR Code has expired. Please ask the faculty to regenerate a new one.'
EXPIRED_MESSAGE = 'This QR Code has just expired! Please ask the faculty to regenerate.'


class VerifierState(str, Enum):
    LOADING = 'loading'
    AWAITING_LOCATION = 'awaiting_location'
    CAPTURING = 'capturing'
    SUCCESS = 'success'
    EXPIRED = 'expired'
    INVALID = 'invalid'


@dataclass
class VerificationAttempt:
    location_verified: bool = False
    face_result: Optional[dict] = None
    confirmation: Optional[dict] = None


class AttendanceVerifier:
    def __init__(self, token, api, scheduler, dispatcher=None, camera=None, location_provider=None,
                 clock=None, on_change=None, capture_interval_ms=None):
        self.token = (token or '').strip()
        self.api = api
        self.scheduler = scheduler
        self.dispatcher = dispatcher or ThreadDispatcher(scheduler)
        self.camera = camera or Camera()
        self.clock = clock or (lambda: datetime.now(pytz.utc))
        self.on_change = on_change
        self.capture_interval_ms = capture_interval_ms

        self.state = VerifierState.LOADING
        self.period = None
        self.attempt = None
        self.checking_location = False
        self.capture = None
        self._expired_on_load = False
        self._torn_down = False

        self.signal = ExpirySignal()
        self.signal.subscribe(self._on_expired)
        self.messages = MessageBoard(scheduler, Config.MESSAGE_DISMISS_MS, on_change=self._changed)
        self.countdown = SessionCountdown(scheduler, self.signal, clock=self.clock,
                                          on_tick=lambda remaining: self._changed())
        self.gate = LocationGate(api, location_provider)

    # --- derived view state ---------------------------------------------

    @property
    def steps(self):
        location_verified = bool(self.attempt and self.attempt.location_verified)
        return consumer_steps(self.state, location_verified)

    @property
    def error(self):
        """Text of the blocking message, if any."""
        blocking = self.messages.blocking
        return blocking.text if blocking else None

    @property
    def remaining(self):
        return self.countdown.remaining

    @property
    def live_tracks(self):
        return self.camera.live_tracks

    @property
    def live_timers(self):
        timers = 1 if self.countdown.running else 0
        if self.capture is not None:
            timers += self.capture.live_timers
        return timers

    def _changed(self):
        if self.on_change and not self._torn_down:
            self.on_change()

    # --- loading --------------------------------------------------------

    def load(self):
        if not self.token:
            self._invalidate(NO_TOKEN_MESSAGE)
            return
        self.state = VerifierState.LOADING
        self.messages.unblock()
        self._changed()
        self.dispatcher.submit(lambda: self.api.period_by_token(self.token), self._loaded, self._load_failed)

    def _loaded(self, payload):
        if self._torn_down:
            return
        try:
            period = Period.from_payload(payload, loaded_at=self.clock())
        except SessionError as exc:
            self._invalidate(exc.message)
            return

        self.period = period
        self.attempt = VerificationAttempt()
        self.state = VerifierState.AWAITING_LOCATION
        self._expired_on_load = period.is_expired(self.clock())
        logger.info('Loaded session %s (%s)', period.token, period.metadata.subject or 'no subject')
        self.countdown.follow(period)
        self._changed()

    def _load_failed(self, exc):
        if self._torn_down:
            return
        message = None
        if isinstance(exc, ApiError):
            message = error_message(exc.payload)
            logger.warning('Error fetching period data: %s', exc.message)
        else:
            logger.error('Error fetching period data', exc_info=exc)
        self._invalidate(message or LOAD_FAILED_MESSAGE)

    def _invalidate(self, message):
        self.state = VerifierState.INVALID
        self.messages.block(message)
        self.countdown.cancel()
        self._changed()

    # --- location gate --------------------------------------------------

    def verify_location(self):
        if self.state == VerifierState.EXPIRED:
            self.messages.flash('Cannot verify location: QR Code has expired.', ERROR)
            return False
        if self.state != VerifierState.AWAITING_LOCATION or self.checking_location:
            return False
        self.checking_location = True
        self.messages.flash('Verifying location...', INFO)
        self.dispatcher.submit(lambda: self.gate.check(self.period), self._location_verified, self._location_failed)
        return True

    def _location_verified(self, _result):
        self.checking_location = False
        if self._torn_down or self.state != VerifierState.AWAITING_LOCATION:
            return
        self.attempt.location_verified = True
        self.state = VerifierState.CAPTURING
        self.messages.flash('📍 Location verified successfully!', SUCCESS)
        self.start_camera()
        self._changed()

    def _location_failed(self, exc):
        self.checking_location = False
        if self._torn_down or self.state != VerifierState.AWAITING_LOCATION:
            return
        if isinstance(exc, LocationError):
            logger.info('Location check failed (%s): %s', exc.reason, exc.message)
            self.messages.flash(f'🚫 {exc.message}', ERROR)
        elif isinstance(exc, AttendCheckError):
            logger.warning('Backend location verification error: %s', exc.message)
            self.messages.flash('🚫 Verification error. Please try again.', ERROR)
        else:
            logger.error('Location verification crashed', exc_info=exc)
            self.messages.flash('🚫 Verification error. Please try again.', ERROR)
        self._changed()

    # --- face capture ---------------------------------------------------

    def start_camera(self):
        """Start (or restart after a camera error) the capture loop."""
        if self.state != VerifierState.CAPTURING:
            return False
        if self.capture is not None and not self.capture.stopped:
            return True

        self.capture = CaptureLoop(
            self.scheduler,
            self.dispatcher,
            self.camera,
            self.api,
            self.period.token,
            self.signal,
            interval_ms=self.capture_interval_ms,
            on_result=self._face_result,
            on_success=self._face_verified,
            on_message=self.messages.flash,
        )
        try:
            self.capture.start()
        except CameraError as exc:
            logger.error('Camera error: %s', exc.message)
            self.capture.stop()
            self.messages.block(exc.message)
            self._changed()
            return False
        self.messages.unblock()
        self._changed()
        return True

    def _face_result(self, result):
        self.attempt.face_result = result
        self._changed()

    def _face_verified(self, report):
        self.attempt.confirmation = report.confirmation
        self.state = VerifierState.SUCCESS
        self.messages.unblock()
        self.countdown.cancel()
        self.messages.flash('😊 Attendance marked successfully!', SUCCESS)
        logger.info('Attendance marked for %s', report.confirmation.get('rollNumber') or report.result.get('rollNumber'))
        self._changed()

    # --- termination ----------------------------------------------------

    def _on_expired(self):
        if self.state in (VerifierState.SUCCESS, VerifierState.INVALID):
            return
        self.state = VerifierState.EXPIRED
        self.messages.block(EXPIRED_ON_LOAD_MESSAGE if self._expired_on_load else EXPIRED_MESSAGE)
        if self.capture is not None:
            self.capture.stop()
        self.camera.release()
        self._changed()

    def teardown(self):
        self._torn_down = True
        self.countdown.cancel()
        if self.capture is not None:
            self.capture.stop()
        self.camera.release()
        self.messages.clear()

    @property
    def confirmation(self):
        return self.attempt.confirmation if self.attempt else None
