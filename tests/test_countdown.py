from datetime import timedelta

from conftest import START, iso

from attendcheck.countdown import SessionCountdown, format_remaining
from attendcheck.scheduling import ExpirySignal


def make_countdown(scheduler, clock, **kwargs):
    return SessionCountdown(scheduler, ExpirySignal(), clock=clock, **kwargs)


def test_format_remaining():
    assert format_remaining(0) == '00:00'
    assert format_remaining(65) == '01:05'
    assert format_remaining(-3) == '00:00'
    assert format_remaining(None) == '00:00'


def test_counts_down_every_second(scheduler, clock):
    ticks = []
    countdown = make_countdown(scheduler, clock, on_tick=ticks.append)
    countdown.start(iso(START))

    assert countdown.remaining == 300
    assert countdown.display == '05:00'
    scheduler.advance(1000)
    assert countdown.remaining == 299
    scheduler.advance(2000)
    assert ticks[-1] == 297
    assert countdown.running


def test_expiry_fires_once_and_is_permanent(scheduler, clock):
    expirations = []
    countdown = make_countdown(scheduler, clock, on_expire=lambda: expirations.append(1))
    countdown.start(iso(START - timedelta(minutes=4)))

    scheduler.advance(61 * 1000)
    assert countdown.expired
    assert countdown.remaining == 0
    assert not countdown.running

    # A fresh anchor does not revive an expired session
    countdown.start(iso(clock()))
    scheduler.advance(5000)
    assert countdown.expired
    assert countdown.remaining == 0
    assert expirations == [1]
    assert scheduler.pending == 0


def test_past_deadline_expires_without_a_tick(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(iso(START - timedelta(minutes=6)))
    assert countdown.expired
    assert scheduler.pending == 0


def test_server_status_expired(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(iso(START), status='expired')
    assert countdown.expired


def test_missing_timestamp_is_expired(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(None)
    assert countdown.expired


def test_earlier_server_deadline_wins(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(iso(START), deadline=START + timedelta(seconds=42))
    assert countdown.remaining == 42


def test_remaining_rounds_up(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(START - timedelta(milliseconds=500))
    assert countdown.remaining == 300


def test_mark_expired_and_cancel(scheduler, clock):
    countdown = make_countdown(scheduler, clock)
    countdown.start(iso(START))
    countdown.cancel()
    assert not countdown.running
    assert not countdown.expired

    countdown.mark_expired()
    countdown.mark_expired()
    assert countdown.expired
    assert countdown.signal.is_set


def test_shared_signal_halts_countdown(scheduler, clock):
    signal = ExpirySignal()
    countdown = SessionCountdown(scheduler, signal, clock=clock)
    countdown.start(iso(START))
    signal.set()
    assert not countdown.running
    assert countdown.remaining == 0
