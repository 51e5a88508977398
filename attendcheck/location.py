"""Location gate for the student verification flow.

The device position is obtained through a provider and then confirmed by the
backend against the classroom of the session. Only the backend decides
whether the student is in the right room.
"""
import logging
from dataclasses import dataclass

import requests

from .config import Config
from .errors import BusinessRuleError, LocationError

logger = logging.getLogger(__name__)

VERIFIED_STATUS = 'success'


@dataclass
class Position:
    latitude: float
    longitude: float


class StaticLocationProvider:
    """Fixed coordinates from configuration, for classroom kiosks."""

    def __init__(self, latitude=None, longitude=None):
        self.latitude = Config.LATITUDE if latitude is None else latitude
        self.longitude = Config.LONGITUDE if longitude is None else longitude

    def current_position(self, timeout=None):
        if self.latitude is None or self.longitude is None:
            raise LocationError(
                'Your location is unavailable. Ask an administrator to configure this device.',
                reason='unavailable',
            )
        return Position(float(self.latitude), float(self.longitude))


class IPLocationProvider:
    """Approximate position from an IP geolocation service."""

    def __init__(self, url=None, session=None):
        self.url = url or Config.IP_LOCATION_URL
        self.http = session or requests.Session()

    def current_position(self, timeout=None):
        try:
            response = self.http.get(self.url, timeout=timeout or Config.GEOLOCATION_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as exc:
            raise LocationError('Timed out while getting your location. Please try again.', reason='timeout') from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.warning('IP location lookup failed: %s', exc)
            raise LocationError('Your location is unavailable right now. Please try again.', reason='unavailable') from exc
        return self._parse(data)

    @staticmethod
    def _parse(data):
        if not isinstance(data, dict):
            raise LocationError('Your location is unavailable right now. Please try again.', reason='unavailable')
        try:
            if data.get('loc'):
                latitude, longitude = (float(part) for part in str(data['loc']).split(','))
            else:
                latitude, longitude = float(data['latitude']), float(data['longitude'])
        except (KeyError, TypeError, ValueError) as exc:
            raise LocationError('Your location is unavailable right now. Please try again.', reason='unavailable') from exc
        return Position(latitude, longitude)


class DisabledLocationProvider:
    def current_position(self, timeout=None):
        raise LocationError(
            'Location access is turned off on this device. Enable it to verify your classroom.',
            reason='permission',
        )


def provider_from_config(source=None):
    source = (source or Config.LOCATION_SOURCE or 'static').lower()
    if source == 'ip':
        return IPLocationProvider()
    if source in ('off', 'disabled', 'none'):
        return DisabledLocationProvider()
    return StaticLocationProvider()


class LocationGate:
    """One-shot location check; once passed it is never re-entered."""

    def __init__(self, api, provider=None, timeout=None):
        self.api = api
        self.provider = provider or provider_from_config()
        self.timeout = timeout or Config.GEOLOCATION_TIMEOUT
        self.verified = False

    def check(self, period):
        if self.verified:
            return True

        metadata = period.metadata
        if not metadata.block or not metadata.room:
            raise LocationError(
                'Period data (block or room) is missing. Contact faculty.',
                reason='missing_room',
            )

        position = self.provider.current_position(timeout=self.timeout)
        logger.info('Student location: %.5f, %.5f', position.latitude, position.longitude)

        try:
            payload = self.api.verify_location(
                position.latitude,
                position.longitude,
                metadata.block,
                metadata.room,
                period.token,
            )
        except BusinessRuleError as exc:
            if exc.status_code == 403 or 'location mismatch' in (exc.message or '').lower():
                raise LocationError('Please go to your classroom to mark attendance.', reason='wrong_room') from exc
            raise

        if not isinstance(payload, dict) or payload.get('status') != VERIFIED_STATUS:
            message = payload.get('message') if isinstance(payload, dict) else None
            raise LocationError(message or 'Location verification failed!', reason='wrong_room')

        self.verified = True
        return True
