import os
import warnings

from dotenv import load_dotenv
from urllib3.exceptions import InsecureRequestWarning

load_dotenv()


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name, default):
    value = os.environ.get(name)
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


def _env_float(name, default=None):
    value = os.environ.get(name)
    try:
        return float(value) if value not in (None, "") else default
    except ValueError:
        return default


class Config:
    # Backend services
    API_BASE_URL = os.environ.get('ATTENDCHECK_API_URL', 'http://localhost:5000').rstrip('/')
    RECOGNITION_URL = os.environ.get('ATTENDCHECK_RECOGNITION_URL', 'http://localhost:8000').rstrip('/')
    ACCOUNT_URL = os.environ.get('ATTENDCHECK_ACCOUNT_URL', RECOGNITION_URL).rstrip('/')
    # Base URL students open when following a shared attendance link
    PUBLIC_BASE_URL = os.environ.get('ATTENDCHECK_PUBLIC_URL', 'http://localhost:5173').rstrip('/')
    VERIFY_SSL = _env_bool('ATTENDCHECK_VERIFY_SSL', True)
    REQUEST_TIMEOUT = _env_int('ATTENDCHECK_TIMEOUT', 10)
    UPLOAD_TIMEOUT = 30

    # Session lifecycle
    SESSION_TTL_SECONDS = 300
    COUNTDOWN_INTERVAL_MS = 1000
    CAPTURE_INTERVAL_MS = 1500
    JPEG_QUALITY = 80
    MESSAGE_DISMISS_MS = 3000
    FEEDBACK_DISMISS_MS = 2500

    # Devices
    CAMERA_INDEX = _env_int('ATTENDCHECK_CAMERA_INDEX', 0)
    CAMERA_WIDTH = 640
    CAMERA_HEIGHT = 480
    GEOLOCATION_TIMEOUT = 7  # seconds
    LOCATION_SOURCE = os.environ.get('ATTENDCHECK_LOCATION_SOURCE', 'static').strip().lower()
    LATITUDE = _env_float('ATTENDCHECK_LATITUDE')
    LONGITUDE = _env_float('ATTENDCHECK_LONGITUDE')
    IP_LOCATION_URL = os.environ.get('ATTENDCHECK_IP_LOCATION_URL', 'https://ipinfo.io/json')

    # Registration
    MIN_FACE_IMAGES = 3
    DEFAULT_STUDENT_PASSWORD = os.environ.get('ATTENDCHECK_DEFAULT_STUDENT_PASSWORD', '12345678')

    # Local state
    CACHE_DIR = os.path.abspath(os.path.expanduser(os.environ.get('ATTENDCHECK_CACHE_DIR', '~/.attendcheck')))
    SESSION_FILE = os.path.join(CACHE_DIR, 'session.json')
    DISPLAY_TIMEZONE = os.environ.get('ATTENDCHECK_TIMEZONE', 'Asia/Kolkata')

    # Logging
    LOG_LEVEL = os.environ.get('ATTENDCHECK_LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


if not Config.VERIFY_SSL:
    # Self-signed campus certificates
    warnings.simplefilter('ignore', InsecureRequestWarning)
