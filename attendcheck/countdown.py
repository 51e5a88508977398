import logging
import math
from datetime import datetime, timedelta

import pytz

from .config import Config
from .period import STATUS_EXPIRED, parse_timestamp
from .scheduling import ExpirySignal, RepeatingTimer

logger = logging.getLogger(__name__)


def format_remaining(seconds):
    """Render a remaining-seconds value as ``MM:SS``."""
    seconds = max(0, int(seconds or 0))
    minutes, seconds = divmod(seconds, 60)
    return f'{minutes:02d}:{seconds:02d}'


class SessionCountdown:
    """Local mirror of a session's server-side expiry.

    Ticks once a second and flips the shared :class:`ExpirySignal` exactly
    once when the deadline passes. Expiry is permanent.
    """

    def __init__(self, scheduler, signal=None, clock=None, interval_ms=None,
                 on_tick=None, on_expire=None):
        self.signal = signal or ExpirySignal()
        self.clock = clock or (lambda: datetime.now(pytz.utc))
        self.on_tick = on_tick
        self.on_expire = on_expire
        self.remaining = 0
        self.deadline = None
        self._timer = RepeatingTimer(scheduler, interval_ms or Config.COUNTDOWN_INTERVAL_MS, self._tick)
        self.signal.subscribe(self._halt)

    @property
    def expired(self):
        return self.signal.is_set

    @property
    def running(self):
        return self._timer.active

    def start(self, timestamp, status=None, deadline=None):
        """Begin counting down from ``timestamp + TTL``.

        ``deadline`` is the server-reported end of the session, when known;
        the earlier of the two wins.
        """
        if self.expired:
            return
        if status == STATUS_EXPIRED:
            self._expire()
            return

        candidates = []
        created = parse_timestamp(timestamp)
        if created is not None:
            candidates.append(created + timedelta(seconds=Config.SESSION_TTL_SECONDS))
        if deadline is not None:
            candidates.append(deadline)
        if not candidates:
            logger.warning('Session has no usable expiry anchor, treating it as expired')
            self._expire()
            return

        self.deadline = min(candidates)
        self._tick()
        if not self.expired:
            self._timer.start()

    def follow(self, period):
        """Start the countdown for a loaded :class:`~attendcheck.period.Period`."""
        server_deadline = None
        if period.time_left_seconds is not None and period.loaded_at is not None:
            server_deadline = period.loaded_at + timedelta(seconds=max(period.time_left_seconds, 0))
        self.start(period.timestamp, period.status, server_deadline)

    def _tick(self):
        if self.expired or self.deadline is None:
            return
        left = (self.deadline - self.clock()).total_seconds()
        if left <= 0:
            self._expire()
            return
        self.remaining = int(math.ceil(left))
        if self.on_tick:
            self.on_tick(self.remaining)

    def mark_expired(self):
        """End the session early, e.g. when the server reports it closed."""
        self._expire()

    def _halt(self):
        self.remaining = 0
        self._timer.cancel()

    def _expire(self):
        self._halt()
        if self.signal.set():
            logger.info('⏱️ Attendance session expired')
            if self.on_expire:
                self.on_expire()

    def cancel(self):
        self._timer.cancel()

    @property
    def display(self):
        return format_remaining(self.remaining)
