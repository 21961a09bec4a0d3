"""
Session date index.

Turns an unordered reading-session history into the ascending list of
unique calendar days that carry at least one qualifying session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable, List, Optional

from readquest.core.errors import InvalidSessionData
from readquest.models.streak import ReadingSession, SessionDateValue


@dataclass
class DateIndex:
    dates: List[date] = field(default_factory=list)
    rejected: List[InvalidSessionData] = field(default_factory=list)

    def iso_dates(self) -> List[str]:
        return [d.isoformat() for d in self.dates]

    @property
    def last_date(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None

    def __len__(self) -> int:
        return len(self.dates)


class SessionDateIndex:
    """Normalize session timestamps to calendar days in one reference timezone."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self._tz = tz

    def build(self, sessions: Iterable[ReadingSession]) -> DateIndex:
        days = set()
        rejected: List[InvalidSessionData] = []

        for session in sessions:
            try:
                pages = _coerce_pages(session)
                if pages <= 0:
                    continue
                days.add(self.to_day(session.session_date))
            except InvalidSessionData as exc:
                exc.session = session
                rejected.append(exc)

        return DateIndex(dates=sorted(days), rejected=rejected)

    def to_day(self, value: SessionDateValue) -> date:
        """Calendar day of a session timestamp in the reference timezone."""
        if isinstance(value, datetime):
            return self._localize(value).date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return self._parse(value)
        raise InvalidSessionData(f"unsupported session_date type: {type(value).__name__}")

    def _parse(self, raw: str) -> date:
        text = raw.strip()
        if not text:
            raise InvalidSessionData("empty session_date")
        # Bare calendar dates are already days; do not shift them through a timezone
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError:
                raise InvalidSessionData(f"unparseable session_date: {raw!r}") from None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidSessionData(f"unparseable session_date: {raw!r}") from None
        return self._localize(moment).date()

    def _localize(self, moment: datetime) -> datetime:
        aware = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
        return aware.astimezone(self._tz)


def _coerce_pages(session: ReadingSession) -> int:
    pages = session.pages_read
    if isinstance(pages, bool) or not isinstance(pages, int):
        raise InvalidSessionData(f"pages_read must be an integer, got {pages!r}")
    return pages
