"""Session (period) descriptors as returned by the backend."""
import json
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

import pytz

from .config import Config
from .errors import SessionError

logger = logging.getLogger(__name__)

STATUS_ACTIVE = 'active'
STATUS_EXPIRED = 'expired'

SHARE_PATH = '/verf'


def parse_timestamp(value):
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    A trailing ``Z`` is accepted and naive values are taken as UTC.
    Returns ``None`` when the value is missing or unparseable.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning('Unparseable period timestamp: %r', value)
            return None
    if parsed.tzinfo is None:
        return pytz.utc.localize(parsed)
    return parsed.astimezone(pytz.utc)


def to_display_time(value, zone=None):
    moment = parse_timestamp(value)
    if moment is None:
        return ''
    tz = pytz.timezone(zone or Config.DISPLAY_TIMEZONE)
    return moment.astimezone(tz).strftime('%d %b %Y, %I:%M %p')


@dataclass
class ClassMetadata:
    year: str = ''
    semester: str = ''
    department: str = ''
    section: str = ''
    subject: str = ''
    block: str = ''
    room: str = ''
    period: str = ''
    facultyName: str = ''

    @classmethod
    def from_payload(cls, payload):
        payload = payload or {}
        values = {}
        for item in fields(cls):
            raw = payload.get(item.name)
            values[item.name] = '' if raw is None else str(raw).strip()
        return cls(**values)

    def to_payload(self):
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def missing_fields(self):
        return [item.name for item in fields(self) if not getattr(self, item.name)]

    @property
    def is_complete(self):
        return not self.missing_fields()


@dataclass
class Period:
    token: str
    metadata: ClassMetadata
    timestamp: Optional[datetime] = None
    status: str = STATUS_ACTIVE
    time_left_seconds: Optional[float] = None
    loaded_at: Optional[datetime] = None
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload, loaded_at=None):
        if not isinstance(payload, dict) or not payload:
            raise SessionError('No period data available.')
        token = str(payload.get('token') or '').strip()
        if not token:
            raise SessionError('Period data is missing its token.')

        time_left = payload.get('timeLeftSeconds')
        try:
            time_left = float(time_left) if time_left is not None else None
        except (TypeError, ValueError):
            time_left = None

        status = str(payload.get('status') or STATUS_ACTIVE).strip().lower()
        return cls(
            token=token,
            metadata=ClassMetadata.from_payload(payload),
            timestamp=parse_timestamp(payload.get('timestamp')),
            status=status,
            time_left_seconds=time_left,
            loaded_at=loaded_at or datetime.now(pytz.utc),
            raw=dict(payload),
        )

    @property
    def expires_at(self):
        """Earliest known deadline, or ``None`` when nothing anchors the expiry."""
        candidates = []
        if self.timestamp is not None:
            candidates.append(self.timestamp + timedelta(seconds=Config.SESSION_TTL_SECONDS))
        if self.time_left_seconds is not None and self.loaded_at is not None:
            candidates.append(self.loaded_at + timedelta(seconds=max(self.time_left_seconds, 0)))
        return min(candidates) if candidates else None

    def is_expired(self, now=None):
        if self.status == STATUS_EXPIRED:
            return True
        deadline = self.expires_at
        if deadline is None:
            return True
        now = now or datetime.now(pytz.utc)
        return now >= deadline

    def remaining_seconds(self, now=None):
        deadline = self.expires_at
        if self.status == STATUS_EXPIRED or deadline is None:
            return 0
        now = now or datetime.now(pytz.utc)
        return max(0, int(round((deadline - now).total_seconds())))


def build_share_link(token, base_url=None):
    base = (base_url or Config.PUBLIC_BASE_URL).rstrip('/')
    return f'{base}{SHARE_PATH}?{urlencode({"token": token})}'


def extract_token(text):
    """Pull a session token out of scanned or pasted text.

    Accepts a share link (``...?token=``), a JSON payload carrying a
    ``token`` key, or a bare token.
    """
    if text is None:
        raise SessionError('No token provided in the URL. Please use a valid QR code link.')
    value = str(text).strip()
    if not value:
        raise SessionError('No token provided in the URL. Please use a valid QR code link.')

    if value.startswith('{'):
        try:
            payload = json.loads(value)
        except ValueError as exc:
            raise SessionError('The scanned QR code is malformed.') from exc
        token = str(payload.get('token') or '').strip() if isinstance(payload, dict) else ''
        if not token:
            raise SessionError('The scanned QR code does not contain a session token.')
        return token

    parsed = urlparse(value)
    if parsed.scheme or parsed.query or '?' in value:
        tokens = parse_qs(parsed.query).get('token')
        if not tokens or not tokens[0].strip():
            raise SessionError('No token provided in the URL. Please use a valid QR code link.')
        return tokens[0].strip()

    if any(ch.isspace() for ch in value):
        raise SessionError('The scanned QR code does not contain a session token.')
    return value
