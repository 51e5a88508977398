import logging
from dataclasses import dataclass

from .config import Config

logger = logging.getLogger(__name__)

INFO = 'info'
SUCCESS = 'success'
WARNING = 'warning'
ERROR = 'error'


@dataclass(frozen=True)
class Message:
    text: str
    level: str = ERROR


class MessageBoard:
    """Holds the on-screen messages of one view.

    A transient message replaces the previous one and clears itself after
    ``dismiss_ms``; a blocking message stays until it is explicitly cleared.
    """

    def __init__(self, scheduler, dismiss_ms=None, on_change=None):
        self.scheduler = scheduler
        self.dismiss_ms = Config.MESSAGE_DISMISS_MS if dismiss_ms is None else dismiss_ms
        self.on_change = on_change
        self.transient = None
        self.blocking = None
        self._job = None

    def flash(self, text, level=ERROR):
        self._cancel_dismiss()
        self.transient = Message(text, level)
        self._job = self.scheduler.after(self.dismiss_ms, self._dismiss)
        self._notify()

    def _dismiss(self):
        self._job = None
        self.transient = None
        self._notify()

    def _cancel_dismiss(self):
        if self._job is not None:
            try:
                self.scheduler.after_cancel(self._job)
            except Exception as exc:
                logger.debug('after_cancel ignored: %s', exc)
            self._job = None

    def block(self, text, level=ERROR):
        self.blocking = Message(text, level)
        self._notify()

    def unblock(self):
        if self.blocking is not None:
            self.blocking = None
            self._notify()

    def clear(self):
        self._cancel_dismiss()
        self.transient = None
        self.blocking = None
        self._notify()

    def _notify(self):
        if self.on_change:
            self.on_change()
