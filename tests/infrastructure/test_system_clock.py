from datetime import UTC, datetime, timedelta, timezone

from kb_retrieval.infrastructure.time.system_clock import SystemClock


def test_now_is_timezone_aware_utc() -> None:
    before = datetime.now(UTC)
    now = SystemClock().now()

    assert now.tzinfo is UTC
    assert before <= now <= datetime.now(UTC)


def test_custom_zone_survives_isoformat_round_trip() -> None:
    tz = timezone(timedelta(hours=3))
    now = SystemClock(tz=tz).now()

    assert datetime.fromisoformat(now.isoformat()) == now
    assert now.utcoffset() == timedelta(hours=3)
