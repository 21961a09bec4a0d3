import json
from datetime import date, datetime, timedelta, timezone

from readquest.features.streaks.persistence import SqlProfileStore, SqlSessionStore
from readquest.models.streak import ReadingSession
from readquest.workers import recalculate_streaks


TODAY = date(2024, 3, 10)


def _log(user_id, day):
    SqlSessionStore.add_session(
        ReadingSession(
            user_id=user_id,
            session_date=datetime(day.year, day.month, day.day, 6, 45, tzinfo=timezone.utc),
            pages_read=8,
        )
    )


def test_nightly_run_breaks_stale_streaks(sqlite_db, capsys):
    profiles = SqlProfileStore()
    for uid in ("active", "lapsed"):
        profiles.create_profile(uid)
    _log("active", TODAY - timedelta(days=1))
    _log("active", TODAY)
    for n in range(4, 8):
        _log("lapsed", TODAY - timedelta(days=n))

    exit_code = recalculate_streaks.main(["--today", TODAY.isoformat()])

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert report["processed"] == 2
    assert report["failed"] == {}
    assert profiles.get_streak_state("active").current_streak == 2
    lapsed = profiles.get_streak_state("lapsed")
    assert lapsed.current_streak == 0
    assert lapsed.longest_streak == 4


def test_selected_users_only(sqlite_db):
    profiles = SqlProfileStore()
    for uid in ("one", "two"):
        profiles.create_profile(uid)
        _log(uid, TODAY)

    report = recalculate_streaks.recalculate(["two"], today=TODAY)

    assert report["processed"] == 1
    assert report["updated"] == ["two"]
    assert profiles.get_streak_state("one").current_streak == 0
