from datetime import datetime, timedelta

import pytest
from conftest import START, period_payload

from attendcheck.errors import SessionError
from attendcheck.period import (
    ClassMetadata,
    Period,
    build_share_link,
    extract_token,
    parse_timestamp,
    to_display_time,
)


def test_parse_timestamp_variants():
    assert parse_timestamp('2024-01-15T10:00:00.000Z') == START
    assert parse_timestamp('2024-01-15T10:00:00') == START
    assert parse_timestamp('2024-01-15T15:30:00+05:30') == START
    assert parse_timestamp(datetime(2024, 1, 15, 10, 0)) == START
    assert parse_timestamp('yesterday') is None
    assert parse_timestamp('') is None
    assert parse_timestamp(None) is None


def test_to_display_time():
    assert to_display_time('2024-01-15T10:00:00Z', 'Asia/Kolkata') == '15 Jan 2024, 03:30 PM'
    assert to_display_time(None) == ''


def test_period_from_payload():
    period = Period.from_payload(period_payload(START, status='ACTIVE'), loaded_at=START)
    assert period.token == 'tok-123'
    assert period.status == 'active'
    assert period.metadata.room == '301'
    assert period.timestamp == START
    assert period.expires_at == START + timedelta(minutes=5)


@pytest.mark.parametrize('payload', [None, {}, [], {'subject': 'DSA'}, {'token': '   '}])
def test_period_requires_token(payload):
    with pytest.raises(SessionError):
        Period.from_payload(payload)


def test_period_expiry_anchors():
    payload = period_payload(START, timeLeftSeconds='30')
    period = Period.from_payload(payload, loaded_at=START)
    assert period.expires_at == START + timedelta(seconds=30)
    assert period.remaining_seconds(START) == 30
    assert not period.is_expired(START + timedelta(seconds=29))
    assert period.is_expired(START + timedelta(seconds=30))


def test_period_without_anchor_is_expired():
    period = Period.from_payload(period_payload(None), loaded_at=START)
    assert period.expires_at is None
    assert period.is_expired(START)
    assert period.remaining_seconds(START) == 0


def test_expired_status_wins():
    period = Period.from_payload(period_payload(START, status='expired'), loaded_at=START)
    assert period.is_expired(START)
    assert period.remaining_seconds(START) == 0


def test_class_metadata_missing_fields():
    metadata = ClassMetadata.from_payload({'year': 3, 'semester': ' 3-1 ', 'room': None})
    assert metadata.year == '3'
    assert metadata.semester == '3-1'
    assert 'room' in metadata.missing_fields()
    assert not metadata.is_complete


def test_build_share_link():
    assert build_share_link('tok 1', 'http://portal.test/') == 'http://portal.test/verf?token=tok+1'


@pytest.mark.parametrize('text, token', [
    ('http://portal.test/verf?token=abc123', 'abc123'),
    ('  abc123 ', 'abc123'),
    ('{"token": "abc123", "subject": "DSA"}', 'abc123'),
    ('/verf?token=abc%20123', 'abc 123'),
])
def test_extract_token(text, token):
    assert extract_token(text) == token


@pytest.mark.parametrize('text', [None, '', 'http://portal.test/verf', '{"subject": "DSA"}', '{broken', 'two words'])
def test_extract_token_rejects(text):
    with pytest.raises(SessionError):
        extract_token(text)


def test_naive_values_are_utc():
    assert parse_timestamp('2024-01-15T10:00:00').tzinfo is not None
    assert parse_timestamp('2024-01-15T10:00:00').utcoffset() == timedelta(0)
