"""Timer and threading helpers built on Tk's ``after``/``after_cancel``.

Anything exposing ``after(ms, callback)`` and ``after_cancel(job)`` works as a
scheduler; in the desktop client that is the root window.
"""
import logging
import threading

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Fixed-delay repeating trigger.

    The next tick is armed after the callback returns, so a slow callback
    delays the cadence instead of stacking ticks.
    """

    def __init__(self, scheduler, interval_ms, callback):
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.callback = callback
        self._job = None
        self._active = False

    @property
    def active(self):
        return self._active

    def start(self):
        if self._active:
            return
        self._active = True
        self._arm()

    def _arm(self):
        self._job = self.scheduler.after(self.interval_ms, self._tick)

    def _tick(self):
        self._job = None
        if not self._active:
            return
        try:
            self.callback()
        except Exception:
            logger.exception('Timer callback failed')
        if self._active:
            self._arm()

    def cancel(self):
        self._active = False
        if self._job is not None:
            try:
                self.scheduler.after_cancel(self._job)
            except Exception as exc:
                logger.debug('after_cancel ignored: %s', exc)
            self._job = None


class ThreadDispatcher:
    """Run blocking work off the UI thread and deliver the outcome back onto it."""

    def __init__(self, scheduler):
        self.scheduler = scheduler

    def submit(self, work, on_success, on_error):
        def runner():
            try:
                result = work()
            except Exception as exc:
                self.scheduler.after(0, lambda error=exc: on_error(error))
                return
            self.scheduler.after(0, lambda: on_success(result))

        thread = threading.Thread(target=runner, daemon=True)
        thread.start()
        return thread


class ExpirySignal:
    """One-way "session expired" flag shared by the countdown and the capture loop."""

    def __init__(self):
        self._expired = False
        self._listeners = []

    @property
    def is_set(self):
        return self._expired

    def subscribe(self, listener):
        self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set(self):
        if self._expired:
            return False
        self._expired = True
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception('Expiry listener failed')
        return True
