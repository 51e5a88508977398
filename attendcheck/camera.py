import logging
import threading

import cv2
from PIL import Image

from .config import Config
from .errors import CameraError

logger = logging.getLogger(__name__)


def encode_jpeg(frame, quality=None):
    """Encode a BGR frame as a single JPEG still."""
    quality = Config.JPEG_QUALITY if quality is None else int(quality)
    ok, buffer = cv2.imencode('.jpg', frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise CameraError('Could not encode the captured frame.', reason='encode')
    return buffer.tobytes()


def frame_to_image(frame, size=(640, 480)):
    """Convert a BGR frame to a Pillow image sized for on-screen preview."""
    frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    img = Image.fromarray(frame_rgb)
    img.thumbnail(size)
    return img


class Camera:
    """Exclusive handle on one local capture device.

    ``live_tracks`` is 1 while the device is open and 0 after ``release``.
    """

    def __init__(self, index=None, width=None, height=None, capture_factory=None):
        self.index = Config.CAMERA_INDEX if index is None else index
        self.width = width or Config.CAMERA_WIDTH
        self.height = height or Config.CAMERA_HEIGHT
        self._factory = capture_factory or cv2.VideoCapture
        self._lock = threading.Lock()
        self.cap = None
        self.last_frame = None

    @property
    def is_open(self):
        return self.cap is not None

    @property
    def live_tracks(self):
        return 1 if self.is_open else 0

    def open(self):
        with self._lock:
            if self.cap is not None:
                return
            cap = self._factory(self.index)
            if cap is None or not cap.isOpened():
                if cap is not None:
                    cap.release()
                logger.error('Could not open camera device %s', self.index)
                raise CameraError(
                    'No camera found: Make sure you have a camera connected and enabled.',
                    reason='not_found',
                )
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap = cap
            logger.info('📷 Camera %s opened', self.index)

    def read(self):
        with self._lock:
            if self.cap is None:
                raise CameraError('The camera is not running.', reason='unavailable')
            ok, frame = self.cap.read()
        if not ok or frame is None:
            raise CameraError(
                'Camera is in use: Another application might be using your camera.',
                reason='busy',
            )
        self.last_frame = frame
        return frame

    def capture_jpeg(self, quality=None):
        return encode_jpeg(self.read(), quality)

    def release(self):
        with self._lock:
            cap, self.cap = self.cap, None
        if cap is not None:
            cap.release()
            logger.info('📷 Camera %s released', self.index)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
