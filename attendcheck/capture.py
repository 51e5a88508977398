"""Capture-and-verify polling loop for face recognition.

Each tick grabs one frame, submits it to the recognition service and, when a
student is identified, marks attendance in the same worker. At most one
submission is in flight: a tick that fires while one is pending is skipped.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .config import Config
from .errors import AttendCheckError, BusinessRuleError, CameraError
from .messages import ERROR, INFO, WARNING
from .scheduling import RepeatingTimer

logger = logging.getLogger(__name__)

MATCH_STATUS = 'Attendance marked'
SPOOF_STATUS = 'Spoof attempt detected'
RETRY_STATUSES = ('No face found', 'Unknown face', 'Multiple faces detected')


@dataclass
class CaptureReport:
    result: dict
    confirmation: Optional[dict] = None
    rejection: Optional[BusinessRuleError] = None


class CaptureLoop:
    def __init__(self, scheduler, dispatcher, camera, api, token, signal,
                 interval_ms=None, quality=None, on_result=None, on_success=None, on_message=None):
        self.dispatcher = dispatcher
        self.camera = camera
        self.api = api
        self.token = token
        self.signal = signal
        self.quality = Config.JPEG_QUALITY if quality is None else quality
        self.on_result = on_result
        self.on_success = on_success
        self.on_message = on_message
        self.in_flight = False
        self.stopped = False
        self.succeeded = False
        self.submissions = 0
        self.skipped = 0
        self._timer = RepeatingTimer(scheduler, interval_ms or Config.CAPTURE_INTERVAL_MS, self._tick)
        signal.subscribe(self.stop)

    @property
    def running(self):
        return self._timer.active

    @property
    def live_timers(self):
        return 1 if self._timer.active else 0

    def start(self):
        """Open the camera and begin ticking. Raises CameraError if the device is unusable."""
        if self.stopped or self.signal.is_set:
            return
        self.camera.open()
        self._timer.start()

    def _tick(self):
        if self.stopped or self.signal.is_set:
            return
        if self.in_flight:
            self.skipped += 1
            return
        try:
            image = self.camera.capture_jpeg(self.quality)
        except CameraError as exc:
            logger.warning('Frame capture failed: %s', exc.message)
            self._message(exc.message, ERROR)
            return

        self.in_flight = True
        self.submissions += 1
        self.dispatcher.submit(lambda: self._submit(image), self._resolved, self._failed)

    def _submit(self, image):
        # Runs on the worker thread
        result = self.api.recognize_face(image, self.token)
        if not isinstance(result, dict):
            result = {}
        report = CaptureReport(result)
        roll_number = result.get('rollNumber')
        if result.get('status') == MATCH_STATUS and roll_number:
            logger.info('Face recognized: %s, marking attendance', roll_number)
            try:
                report.confirmation = self.api.mark_attendance(roll_number, self.token)
            except BusinessRuleError as exc:
                report.rejection = exc
        return report

    def _resolved(self, report):
        self.in_flight = False
        if self.stopped:
            return
        if self.on_result:
            self.on_result(report.result)

        if report.confirmation is not None:
            self.succeeded = True
            self.stop()
            if self.on_success:
                self.on_success(report)
            return

        if report.rejection is not None:
            logger.info('Attendance rejected: %s', report.rejection.message)
            self._message(f'🚫 {report.rejection.message}', ERROR)
            return

        status = report.result.get('status')
        if status == SPOOF_STATUS:
            logger.warning('Spoof attempt detected for session %s', self.token)
            self._message('⚠ Spoof attempt detected!', WARNING)
        elif status in RETRY_STATUSES:
            self._message(f'Face Recognition: {status}', INFO)
        elif status == MATCH_STATUS:
            self._message('Face matched but no roll number was returned. Please try again.', ERROR)
        else:
            logger.warning('Unexpected recognition status: %r', status)

    def _failed(self, exc):
        self.in_flight = False
        if self.stopped:
            return
        if isinstance(exc, AttendCheckError):
            logger.warning('Recognition request failed: %s', exc.message)
        else:
            logger.error('Recognition request crashed', exc_info=exc)
        self._message('🚫 Backend error! Retrying...', ERROR)

    def _message(self, text, level):
        if self.on_message:
            self.on_message(text, level)

    def stop(self):
        self.stopped = True
        self._timer.cancel()
        self.camera.release()
        self.signal.unsubscribe(self.stop)
