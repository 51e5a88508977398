from unittest import mock

import pytest
import requests
from conftest import START, period_payload

from attendcheck.errors import BusinessRuleError, LocationError
from attendcheck.location import (
    DisabledLocationProvider,
    IPLocationProvider,
    LocationGate,
    StaticLocationProvider,
    provider_from_config,
)
from attendcheck.period import Period


def make_period(**overrides):
    return Period.from_payload(period_payload(START, **overrides), loaded_at=START)


def test_gate_sends_position_and_room(api):
    gate = LocationGate(api, StaticLocationProvider(17.5, 78.25))
    assert gate.check(make_period())
    assert api.calls == [('verify_location', 17.5, 78.25, 'Block-C', '301', 'tok-123')]
    assert gate.verified

    # Already verified: no second round trip
    gate.check(make_period())
    assert api.count('verify_location') == 1


def test_missing_room_fails_before_locating(api):
    provider = mock.Mock()
    gate = LocationGate(api, provider)
    with pytest.raises(LocationError) as info:
        gate.check(make_period(room=''))
    assert info.value.reason == 'missing_room'
    provider.current_position.assert_not_called()


def test_backend_refusal_is_wrong_room(api):
    api.location = BusinessRuleError('Location mismatch', 403)
    gate = LocationGate(api, StaticLocationProvider(1.0, 2.0))
    with pytest.raises(LocationError) as info:
        gate.check(make_period())
    assert info.value.reason == 'wrong_room'
    assert not gate.verified


def test_other_business_errors_propagate(api):
    api.location = BusinessRuleError('Invalid token', 400)
    gate = LocationGate(api, StaticLocationProvider(1.0, 2.0))
    with pytest.raises(BusinessRuleError):
        gate.check(make_period())


def test_non_success_status(api):
    api.location = {'status': 'fail', 'message': 'Too far from Block-C'}
    with pytest.raises(LocationError) as info:
        LocationGate(api, StaticLocationProvider(1.0, 2.0)).check(make_period())
    assert info.value.message == 'Too far from Block-C'


def test_unconfigured_static_provider():
    with pytest.raises(LocationError):
        StaticLocationProvider(None, None).current_position()


def test_disabled_provider_reports_permission():
    with pytest.raises(LocationError) as info:
        DisabledLocationProvider().current_position()
    assert info.value.reason == 'permission'


def test_ip_provider_parses_loc():
    http = mock.Mock()
    http.get.return_value.json.return_value = {'loc': '17.3850,78.4867'}
    position = IPLocationProvider(url='http://geo.test', session=http).current_position(timeout=3)
    assert (position.latitude, position.longitude) == (17.385, 78.4867)
    http.get.assert_called_once_with('http://geo.test', timeout=3)


def test_ip_provider_timeout():
    http = mock.Mock()
    http.get.side_effect = requests.exceptions.Timeout()
    with pytest.raises(LocationError) as info:
        IPLocationProvider(url='http://geo.test', session=http).current_position()
    assert info.value.reason == 'timeout'


def test_provider_from_config():
    assert isinstance(provider_from_config('off'), DisabledLocationProvider)
    assert isinstance(provider_from_config('ip'), IPLocationProvider)
    assert isinstance(provider_from_config('static'), StaticLocationProvider)
