from __future__ import annotations

import allure

from conftest import FakeClock
from news_monitor.pacing import CancellationToken, Pacer

pytestmark = [
    allure.epic("Pipeline Operations"),
    allure.feature("Pacing"),
]


def _pacer(clock: FakeClock) -> Pacer:
    return Pacer(clock=clock, sleeper=clock.sleep)


def test_first_call_never_waits(fake_clock: FakeClock) -> None:
    pacer = _pacer(fake_clock)

    assert pacer.wait("resolver", 3.0, CancellationToken()) is True
    assert fake_clock.sleeps == []


def test_waits_only_remaining_interval(fake_clock: FakeClock) -> None:
    pacer = _pacer(fake_clock)
    pacer.record_call("resolver", 0.0)
    fake_clock.now = 1.25

    assert pacer.wait("resolver", 3.0, CancellationToken()) is True
    assert fake_clock.sleeps == [1.75]
    assert fake_clock.now == 3.0


def test_no_wait_when_call_outlasted_interval(fake_clock: FakeClock) -> None:
    pacer = _pacer(fake_clock)
    pacer.record_call("resolver", 0.0)
    fake_clock.now = 5.0

    assert pacer.wait("resolver", 3.0, CancellationToken()) is True
    assert fake_clock.sleeps == []


def test_dependencies_are_paced_independently(fake_clock: FakeClock) -> None:
    pacer = _pacer(fake_clock)
    pacer.record_call("resolver", 0.0)

    assert pacer.wait("inference", 0.5, CancellationToken()) is True
    assert fake_clock.sleeps == []


def test_cancelled_token_short_circuits(fake_clock: FakeClock) -> None:
    pacer = _pacer(fake_clock)
    pacer.record_call("resolver", 0.0)
    token = CancellationToken()
    token.cancel()

    assert pacer.wait("resolver", 3.0, token) is False
    assert fake_clock.sleeps == []


def test_cancellation_during_sleep_is_reported(fake_clock: FakeClock) -> None:
    token = CancellationToken()

    def sleeper(seconds: float, sleeping_token: CancellationToken) -> bool:
        sleeping_token.cancel()
        return True

    pacer = Pacer(clock=fake_clock, sleeper=sleeper)
    pacer.record_call("resolver", 0.0)

    assert pacer.wait("resolver", 3.0, token) is False
    assert token.cancelled


def test_cancellation_token_wait() -> None:
    token = CancellationToken()

    assert token.wait(0) is False
    assert token.wait(0.01) is False
    token.cancel()
    assert token.wait(10.0) is True
    assert token.cancelled
