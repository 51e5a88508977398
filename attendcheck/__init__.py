"""Desktop client for QR-code and face-recognition classroom attendance."""

__version__ = '1.0.0'
