from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from readquest.core.errors import InvalidSessionData
from readquest.features.streaks.date_index import SessionDateIndex
from readquest.models.streak import ReadingSession


def _session(when, pages=5, user_id="u1"):
    return ReadingSession(user_id=user_id, session_date=when, pages_read=pages)


def test_empty_history_gives_empty_index():
    index = SessionDateIndex().build([])
    assert index.dates == []
    assert index.rejected == []
    assert index.last_date is None


def test_dates_are_unique_and_sorted():
    sessions = [
        _session(datetime(2024, 1, 3, 20, 0, tzinfo=timezone.utc)),
        _session(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)),
        _session(datetime(2024, 1, 3, 7, 0, tzinfo=timezone.utc)),
        _session(datetime(2024, 1, 2, 23, 59, tzinfo=timezone.utc)),
    ]

    index = SessionDateIndex().build(sessions)

    assert index.iso_dates() == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert len(index) == 3


def test_zero_page_sessions_do_not_count():
    sessions = [
        _session(datetime(2024, 1, 1, tzinfo=timezone.utc), pages=0),
        _session(datetime(2024, 1, 2, tzinfo=timezone.utc), pages=-3),
        _session(datetime(2024, 1, 3, tzinfo=timezone.utc), pages=1),
    ]

    index = SessionDateIndex().build(sessions)

    assert index.dates == [date(2024, 1, 3)]
    assert index.rejected == []


def test_unparseable_dates_are_rejected_not_fatal():
    good = _session("2024-01-05T10:00:00Z")
    bad = _session("yesterday-ish")

    index = SessionDateIndex().build([good, bad])

    assert index.dates == [date(2024, 1, 5)]
    assert len(index.rejected) == 1
    assert isinstance(index.rejected[0], InvalidSessionData)
    assert index.rejected[0].session is bad


def test_non_integer_pages_are_rejected():
    index = SessionDateIndex().build([_session("2024-01-05", pages="12")])
    assert index.dates == []
    assert index.rejected[0].code == "invalid_session_data"


def test_naive_datetimes_are_treated_as_utc():
    tz = ZoneInfo("America/Sao_Paulo")  # UTC-3, no DST in 2024
    index = SessionDateIndex(tz).build([_session(datetime(2024, 1, 2, 1, 0))])
    assert index.dates == [date(2024, 1, 1)]


def test_reference_timezone_decides_the_calendar_day():
    moment = datetime(2024, 1, 2, 1, 30, tzinfo=timezone.utc)

    assert SessionDateIndex().build([_session(moment)]).dates == [date(2024, 1, 2)]
    assert SessionDateIndex(ZoneInfo("America/Sao_Paulo")).build([_session(moment)]).dates == [date(2024, 1, 1)]


def test_bare_dates_are_not_shifted_by_timezone():
    tz = ZoneInfo("Pacific/Auckland")
    index = SessionDateIndex(tz).build([_session("2024-06-01"), _session(date(2024, 6, 2))])
    assert index.dates == [date(2024, 6, 1), date(2024, 6, 2)]


def test_calendar_days_not_24h_windows():
    start = datetime(2024, 1, 1, 2, 0, tzinfo=timezone.utc)
    # 20 hours apart across midnight: two days
    across = SessionDateIndex().build([_session(start + timedelta(hours=2)), _session(start + timedelta(hours=22))])
    assert len(across) == 2

    # Same calendar day: one day regardless of spacing
    same = SessionDateIndex().build([_session(start), _session(start + timedelta(hours=21))])
    assert len(same) == 1


def test_offset_timestamps_are_converted():
    index = SessionDateIndex().build([_session("2024-01-01T23:30:00-05:00")])
    assert index.dates == [date(2024, 1, 2)]


def test_fractional_seconds_of_any_precision():
    index = SessionDateIndex().build(
        [
            _session("2024-01-05T23:30:00.12345+00:00"),
            _session("2024-01-06T07:00:00.5Z"),
        ]
    )
    assert index.dates == [date(2024, 1, 5), date(2024, 1, 6)]
    assert index.rejected == []
