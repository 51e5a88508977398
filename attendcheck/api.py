"""HTTP client for the attendance backend and the face recognition service."""
import logging
from urllib.parse import quote

import requests

from .config import Config
from .errors import ApiError, AuthenticationError, BusinessRuleError, TransientError

logger = logging.getLogger(__name__)

MARK_SUCCESS_STATUS = 'success'


def _decode(response):
    try:
        return response.json()
    except ValueError:
        text = (response.text or '').strip()
        return {'message': text} if text else {}


def error_message(payload):
    if isinstance(payload, dict):
        return payload.get('message') or payload.get('error')
    return None


class AttendanceAPI:
    """Thin wrapper over the REST contracts the client depends on.

    Every method either returns the decoded JSON body or raises one of the
    :mod:`attendcheck.errors` classes; ``requests`` exceptions never escape.
    """

    def __init__(self, base_url=None, recognition_url=None, account_url=None, auth=None,
                 timeout=None, upload_timeout=None, verify=None, session=None):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip('/')
        self.recognition_url = (recognition_url or Config.RECOGNITION_URL).rstrip('/')
        self.account_url = (account_url or Config.ACCOUNT_URL).rstrip('/')
        self.auth = auth
        self.timeout = timeout or Config.REQUEST_TIMEOUT
        self.upload_timeout = upload_timeout or Config.UPLOAD_TIMEOUT
        self.verify = Config.VERIFY_SSL if verify is None else verify
        self.http = session or requests.Session()

    def close(self):
        self.http.close()

    def _headers(self):
        headers = {'Accept': 'application/json'}
        token = getattr(self.auth, 'token', None)
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    def _request(self, method, url, timeout=None, **kwargs):
        try:
            response = self.http.request(
                method,
                url,
                headers=self._headers(),
                timeout=timeout or self.timeout,
                verify=self.verify,
                **kwargs,
            )
        except requests.exceptions.Timeout as exc:
            logger.warning('⏰ %s %s timed out', method, url)
            raise TransientError('The server took too long to respond. Please try again.') from exc
        except requests.exceptions.ConnectionError as exc:
            logger.warning('🔌 Could not connect to %s', url)
            raise TransientError('Could not connect to the attendance server.') from exc
        except requests.exceptions.RequestException as exc:
            logger.warning('%s %s failed: %s', method, url, exc)
            raise TransientError(f'Request failed: {exc}') from exc

        payload = _decode(response)
        status = response.status_code
        if 200 <= status < 300:
            return payload

        message = error_message(payload) or f'Server returned {status}'
        logger.warning('%s %s returned %s: %s', method, url, status, message)
        if status == 401:
            raise AuthenticationError(message, status, payload)
        if status >= 500:
            raise TransientError(message, status, payload)
        raise BusinessRuleError(message, status, payload)

    def _api(self, path):
        return f'{self.base_url}{path}'

    # --- authentication -------------------------------------------------

    def login(self, identifier, password, role):
        # Faculty and admins sign in with their employee id, students with email
        key = 'email' if role == 'student' else 'empId'
        body = {key: identifier, 'password': password, 'role': role}
        try:
            payload = self._request('POST', self._api('/api/login'), json=body)
        except BusinessRuleError as exc:
            raise AuthenticationError(exc.message, exc.status_code, exc.payload) from exc
        if not isinstance(payload, dict) or not payload.get('success') or not payload.get('user'):
            message = error_message(payload) or 'Invalid credentials'
            raise AuthenticationError(message, payload=payload)
        return payload

    def forgot_password(self, email):
        return self._request('POST', f'{self.account_url}/api/forgotPassword', json={'email': email})

    def reset_password(self, email, token, new_password, confirm_password):
        body = {
            'email': email,
            'new_password': new_password,
            'confirm_password': confirm_password,
            'token': token,
        }
        return self._request('POST', f'{self.account_url}/api/reset-password', json=body)

    # --- periods --------------------------------------------------------

    def save_period(self, metadata):
        return self._request('POST', self._api('/api/save-period-and-update-attendance'), json=metadata)

    def latest_period(self):
        payload = self._request('GET', self._api('/api/period/latest'))
        return payload if isinstance(payload, dict) else {}

    def period_by_token(self, token):
        return self._request('GET', self._api('/api/period'), params={'token': token})

    def history(self, faculty_name):
        payload = self._request('GET', self._api('/api/history'), params={'facultyName': faculty_name})
        return payload if isinstance(payload, list) else []

    def delete_history(self, token):
        return self._request('DELETE', self._api(f"/api/history/{quote(token, safe='')}"))

    # --- verification ---------------------------------------------------

    def verify_location(self, latitude, longitude, block, room, token):
        body = {
            'studentLatitude': latitude,
            'studentLongitude': longitude,
            'block': block,
            'room': room,
            'token': token,
        }
        return self._request('POST', self._api('/api/verify-location'), json=body)

    def recognize_face(self, image_bytes, token):
        files = {'image': ('frame.jpg', image_bytes, 'image/jpeg')}
        data = {'token': token}
        return self._request(
            'POST',
            f'{self.recognition_url}/recognize',
            files=files,
            data=data,
            timeout=self.upload_timeout,
        )

    def mark_attendance(self, roll_number, token):
        payload = self._request(
            'POST',
            self._api('/api/mark-attendance'),
            json={'rollNumber': roll_number, 'token': token},
        )
        if not isinstance(payload, dict):
            raise ApiError('Unexpected response while marking attendance.', payload=payload)
        if payload.get('status') != MARK_SUCCESS_STATUS:
            message = payload.get('message') or 'Attendance could not be marked.'
            raise BusinessRuleError(message, 200, payload)
        return payload

    # --- students -------------------------------------------------------

    def students(self):
        payload = self._request('GET', self._api('/api/students'))
        return payload if isinstance(payload, list) else []

    def update_student(self, student_id, changes):
        return self._request('PUT', self._api(f"/api/students/{quote(str(student_id), safe='')}"), json=changes)

    def delete_student(self, student_id):
        return self._request('DELETE', self._api(f"/api/students/{quote(str(student_id), safe='')}"))

    def register_student(self, details):
        return self._request('POST', self._api('/api/register-student'), json=details)

    def register_face(self, roll_number, images):
        files = [
            ('images', (f'face_image_{index}.jpg', image, 'image/jpeg'))
            for index, image in enumerate(images, start=1)
        ]
        return self._request(
            'POST',
            f'{self.recognition_url}/register-face',
            files=files,
            data={'rollNumber': roll_number},
            timeout=self.upload_timeout,
        )

    def student_lookup(self, roll_number):
        return self._request('GET', self._api(f"/api/student/{quote(roll_number.strip(), safe='')}"))

    def student_signup(self, roll_number, password, confirm_password):
        body = {
            'rollNumber': roll_number.strip(),
            'password': password,
            'confirmPassword': confirm_password,
        }
        return self._request('POST', self._api('/api/student/register'), json=body)

    def student_dashboard(self):
        return self._request('GET', self._api('/api/student/dashboard'))

    def student_report(self, roll_number):
        return self._request('GET', self._api(f"/api/view/dashboard/student/{quote(roll_number, safe='')}"))
