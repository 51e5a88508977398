from unittest import mock

import pytest

from attendcheck.auth import AuthService, AuthSession, SessionStore, User, resolve_home_view
from attendcheck.errors import AuthenticationError, AuthorizationError

FACULTY = {'name': 'Dr. Rao', 'email': 'rao@college.edu', 'role': 'faculty', 'empId': 'EMP01'}


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / 'state' / 'session.json'))


def test_user_from_payload():
    user = User.from_payload(FACULTY)
    assert user.id == 'EMP01'
    assert user.facultyId == 'EMP01'
    assert user.role == 'faculty'

    with pytest.raises(AuthenticationError):
        User.from_payload({'name': 'x', 'role': 'janitor'})
    with pytest.raises(AuthenticationError):
        User.from_payload(None)


def test_session_persists_across_instances(store):
    session = AuthSession(store)
    session.save(User.from_payload(FACULTY), 'token-1')

    restored = AuthSession(store)
    assert restored.load()
    assert restored.is_logged_in
    assert restored.user.name == 'Dr. Rao'
    assert restored.token == 'token-1'

    restored.clear()
    assert not AuthSession(store).load()


def test_corrupt_session_file_is_discarded(store):
    store.save({'user': FACULTY, 'token': 'x'})
    with open(store.path, 'w', encoding='utf-8') as f:
        f.write('{not json')
    session = AuthSession(store)
    assert not session.load()
    assert store.load() is None


def test_saved_user_without_token_is_cleared(store):
    store.save({'user': FACULTY, 'token': ''})
    assert not AuthSession(store).load()


def test_require_role(store):
    session = AuthSession(store)
    with pytest.raises(AuthenticationError):
        session.require_role('faculty')

    session.save(User.from_payload(FACULTY), 't')
    assert session.require_role('faculty').name == 'Dr. Rao'
    with pytest.raises(AuthorizationError) as info:
        session.require_role('admin')
    assert 'an administrator' in info.value.message


@pytest.mark.parametrize('role, redirect, expected', [
    ('faculty', '/faculty/dashboard', 'faculty'),
    ('student', None, 'student'),
    ('admin', '/admin', 'admin'),
    ('student', '/unknown', 'student'),
    (None, None, 'login'),
])
def test_resolve_home_view(role, redirect, expected):
    assert resolve_home_view(role, redirect) == expected


def test_service_login_saves_session(store):
    api = mock.Mock()
    api.login.return_value = {'success': True, 'user': FACULTY, 'token': 'tok', 'redirectUrl': '/faculty/dashboard'}
    session = AuthSession(store)
    service = AuthService(api, session)

    result = service.login('  EMP01 ', 'secret', 'faculty')
    api.login.assert_called_once_with('EMP01', 'secret', 'faculty')
    assert result.token == 'tok'
    assert session.is_logged_in
    assert service.home_view(result) == 'faculty'
    assert service.home_view() == 'faculty'

    service.logout()
    assert not session.is_logged_in
    assert service.home_view() == 'login'


def test_service_login_requires_token(store):
    api = mock.Mock()
    api.login.return_value = {'success': True, 'user': FACULTY}
    session = AuthSession(store)
    with pytest.raises(AuthenticationError):
        AuthService(api, session).login('EMP01', 'secret', 'faculty')
    assert not session.is_logged_in
