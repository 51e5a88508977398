"""Login state for the desktop client.

The signed-in user and bearer token live in an explicit :class:`AuthSession`
that is persisted to a JSON file, so a restart keeps the user logged in.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Optional

from .config import Config
from .errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

ROLES = ('faculty', 'student', 'admin')
ROLE_LABELS = {'faculty': 'a faculty member', 'student': 'a student', 'admin': 'an administrator'}


@dataclass
class User:
    id: str
    name: str
    email: str = ''
    role: str = 'student'
    department: Optional[str] = None
    rollNumber: Optional[str] = None
    facultyId: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise AuthenticationError('Login response did not include a user.')
        role = str(data.get('role') or '').lower()
        if role not in ROLES:
            raise AuthenticationError(f'Unknown user role: {role or "missing"}')
        return cls(
            id=str(data.get('id') or data.get('empId') or data.get('email') or ''),
            name=str(data.get('name') or ''),
            email=str(data.get('email') or ''),
            role=role,
            department=data.get('department'),
            rollNumber=data.get('rollNumber'),
            facultyId=data.get('facultyId') or data.get('empId'),
        )

    def to_dict(self):
        return asdict(self)


@dataclass
class LoginResult:
    user: User
    token: str
    redirect_url: str = '/'


class SessionStore:
    """JSON file holding the persisted login."""

    def __init__(self, path=None):
        self.path = path or Config.SESSION_FILE

    def load(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning('Discarding unreadable session file %s: %s', self.path, exc)
            self.clear()
            return None

    def save(self, data):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f'{self.path}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def clear(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


class AuthSession:
    def __init__(self, store=None):
        self.store = store or SessionStore()
        self.user = None
        self.token = None

    @property
    def is_logged_in(self):
        return self.user is not None and bool(self.token)

    def load(self):
        data = self.store.load()
        if not data:
            return False
        try:
            user = User.from_payload(data.get('user'))
            token = data['token']
        except (AuthenticationError, AttributeError, KeyError, TypeError) as exc:
            logger.warning('Error parsing saved user: %s', exc)
            self.clear()
            return False
        if not token:
            self.clear()
            return False
        self.user, self.token = user, token
        return True

    def save(self, user, token):
        self.user, self.token = user, token
        self.store.save({'user': user.to_dict(), 'token': token})

    def clear(self):
        self.user = None
        self.token = None
        self.store.clear()

    def require_role(self, *roles):
        if not self.is_logged_in:
            raise AuthenticationError('Please log in to continue.')
        if roles and self.user.role not in roles:
            label = ROLE_LABELS.get(roles[0], roles[0])
            raise AuthorizationError(f'You do not have permission to view this page. Please log in as {label}.')
        return self.user


def resolve_home_view(role, redirect_url=None):
    """Map a backend redirect URL (``/faculty/dashboard``) or a role to a view name."""
    if redirect_url:
        head = redirect_url.strip('/').split('/', 1)[0].lower()
        if head in ROLES:
            return head
    return role if role in ROLES else 'login'


class AuthService:
    def __init__(self, api, session):
        self.api = api
        self.session = session

    def login(self, identifier, password, role):
        payload = self.api.login(identifier.strip(), password, role)
        user = User.from_payload(payload.get('user'))
        token = payload.get('token')
        if not token:
            raise AuthenticationError('Login response did not include a token.', payload=payload)
        self.session.save(user, token)
        logger.info('Logged in as %s (%s)', user.name, user.role)
        return LoginResult(user, token, payload.get('redirectUrl') or '/')

    def logout(self):
        self.session.clear()

    def home_view(self, result=None):
        if result is not None:
            return resolve_home_view(result.user.role, result.redirect_url)
        role = self.session.user.role if self.session.user else None
        return resolve_home_view(role)
