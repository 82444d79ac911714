from datetime import datetime, timedelta, timezone

from freezegun import freeze_time

from timequest.models import Timer, TimerStatus
from timequest.services.timers import current_elapsed_ms, minutes_for, utc_now

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_timer(status: TimerStatus, elapsed_ms: int = 0, started_at: datetime = T0) -> Timer:
    return Timer(status=status, elapsed_ms=elapsed_ms, started_at=started_at)


def test_running_timer_includes_open_interval() -> None:
    timer = make_timer(TimerStatus.RUNNING, elapsed_ms=1_000)
    assert current_elapsed_ms(timer, T0 + timedelta(seconds=2)) == 3_000


def test_paused_and_finished_timers_are_frozen() -> None:
    later = T0 + timedelta(hours=5)
    for status in (TimerStatus.PAUSED, TimerStatus.COMPLETED, TimerStatus.CANCELED):
        assert current_elapsed_ms(make_timer(status, elapsed_ms=42_000), later) == 42_000


def test_clock_skew_never_goes_negative() -> None:
    timer = make_timer(TimerStatus.RUNNING, elapsed_ms=500)
    assert current_elapsed_ms(timer, T0 - timedelta(seconds=30)) == 500


def test_minutes_round_up() -> None:
    assert minutes_for(0) == 0
    assert minutes_for(1) == 1
    assert minutes_for(60_000) == 1
    assert minutes_for(60_001) == 2
    assert minutes_for(90_000) == 2


def test_utc_now_is_timezone_aware() -> None:
    with freeze_time("2024-03-10 08:30:00"):
        now = utc_now()
    assert now == datetime(2024, 3, 10, 8, 30, tzinfo=timezone.utc)
    assert now.tzinfo is not None


def test_current_elapsed_against_wall_clock() -> None:
    with freeze_time(T0 + timedelta(minutes=4)):
        timer = make_timer(TimerStatus.RUNNING)
        assert current_elapsed_ms(timer, utc_now()) == 240_000
