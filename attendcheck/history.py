import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz

from .config import Config
from .errors import AttendCheckError
from .messages import ERROR, SUCCESS, Message, MessageBoard
from .period import ClassMetadata, parse_timestamp, to_display_time
from .scheduling import ThreadDispatcher

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=pytz.utc)


@dataclass
class HistoryEntry:
    token: str
    metadata: ClassMetadata
    timestamp: Optional[datetime]
    status: str

    @classmethod
    def from_payload(cls, payload):
        return cls(
            token=str(payload.get('token') or ''),
            metadata=ClassMetadata.from_payload(payload),
            timestamp=parse_timestamp(payload.get('timestamp')),
            status=str(payload.get('status') or 'expired'),
        )

    @property
    def display_time(self):
        return to_display_time(self.timestamp)


class SessionHistory:
    """Past sessions of one faculty member, newest first."""

    def __init__(self, api, faculty_name, scheduler, dispatcher=None, on_change=None):
        self.api = api
        self.faculty_name = faculty_name
        self.dispatcher = dispatcher or ThreadDispatcher(scheduler)
        self.on_change = on_change
        self.entries = []
        self.error = None
        self.loading = False
        self._torn_down = False
        self.feedback = MessageBoard(scheduler, Config.MESSAGE_DISMISS_MS, on_change=self._changed)

    @property
    def status_message(self):
        """The transient feedback if one is showing, else the load error."""
        if self.feedback.transient is not None:
            return self.feedback.transient
        return Message(self.error, ERROR) if self.error else None

    def _changed(self):
        if self.on_change and not self._torn_down:
            self.on_change()

    def refresh(self):
        if not self.faculty_name:
            self.entries = []
            self.error = 'Faculty name not found in authentication context. Cannot fetch history.'
            self._changed()
            return
        self.loading = True
        self.error = None
        self._changed()
        self.dispatcher.submit(lambda: self.api.history(self.faculty_name), self._loaded, self._load_failed)

    def _loaded(self, items):
        if self._torn_down:
            return
        self.loading = False
        entries = [HistoryEntry.from_payload(item) for item in items if isinstance(item, dict)]
        entries.sort(key=lambda entry: entry.timestamp or _OLDEST, reverse=True)
        self.entries = entries
        self._changed()

    def _load_failed(self, exc):
        if self._torn_down:
            return
        self.loading = False
        if isinstance(exc, AttendCheckError):
            logger.warning('Error fetching history: %s', exc.message)
        else:
            logger.error('Error fetching history', exc_info=exc)
        self.entries = []
        self.error = 'Failed to fetch attendance history. Please ensure you are logged in or try again.'
        self._changed()

    def delete(self, token, confirm):
        """Delete one entry after ``confirm()`` returns True, then refetch."""
        if not token or not confirm():
            return False
        self.dispatcher.submit(lambda: self.api.delete_history(token), self._deleted, self._delete_failed)
        return True

    def _deleted(self, _payload):
        if self._torn_down:
            return
        self.feedback.flash('Period entry deleted successfully!', SUCCESS)
        self.refresh()

    def _delete_failed(self, exc):
        if self._torn_down:
            return
        if isinstance(exc, AttendCheckError):
            logger.warning('Error deleting history entry: %s', exc.message)
        else:
            logger.error('Error deleting history entry', exc_info=exc)
        self.feedback.flash('Failed to delete entry. Please try again.', ERROR)

    def teardown(self):
        self._torn_down = True
        self.feedback.clear()
