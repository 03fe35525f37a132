from __future__ import annotations
from datetime import date, datetime, timedelta, timezone as dt_tz
from zoneinfo import ZoneInfo

from challengers.config import settings
from challengers.models.challenge import Challenge

DAYS_PER_WEEK = 7


def today_local(tz_name: str | None = None, now_utc: datetime | None = None) -> date:
    """Calendar date in the challenge timezone (defaults to settings.challenge_timezone)."""
    now = now_utc or datetime.now(dt_tz.utc)
    return now.astimezone(ZoneInfo(tz_name or settings.challenge_timezone)).date()


def monday_of(d: date) -> date:
    return d - timedelta(days=d.weekday())


def initial_status(start_date: date, today: date) -> tuple[str, int]:
    """(status, round) for a freshly created challenge."""
    if start_date > today:
        return "ready", 0
    return "in_progress", 1


def days_left_in_period(frequency: str, today: date) -> int:
    """
    Whole days left before the next period boundary, today not counted.

    Weekly periods end at the next Monday boundary:
        >>> days_left_in_period("every_week", date(2025, 1, 6))   # Monday
        6
        >>> days_left_in_period("every_week", date(2025, 1, 11))  # Saturday
        1
    """
    if frequency == "every_week":
        return DAYS_PER_WEEK - 1 - today.weekday()
    return 0


def can_join(challenge: Challenge, today: date, done_this_period: int = 0) -> bool:
    """
    False when a newcomer could not finish the current period's quota before
    the period boundary, or when the challenge no longer accepts participants.
    """
    if challenge.status == "ready":
        return True
    if challenge.status != "in_progress":
        return False
    if challenge.check_frequency != "every_week":
        # a daily round's checks all fit into the day itself
        return True
    outstanding = max(0, challenge.check_times_per_round - done_this_period)
    return days_left_in_period(challenge.check_frequency, today) >= outstanding


def max_progress(challenge: Challenge) -> int:
    """Checks a fully compliant participant has made by the current round (0 before start)."""
    return int(challenge.round or 0) * int(challenge.check_times_per_round or 0)


def round_for(frequency: str, start_date: date, today: date) -> int:
    """
    1-based round containing `today`, or 0 before `start_date`.
    Daily rounds are calendar days; weekly rounds are Monday-anchored weeks,
    so a challenge starting on a Thursday has a short first round.
    """
    if today < start_date:
        return 0
    if frequency == "every_week":
        return (monday_of(today) - monday_of(start_date)).days // DAYS_PER_WEEK + 1
    return (today - start_date).days + 1


def total_rounds(frequency: str, start_date: date, end_date: date) -> int:
    """Rounds spanned by [start_date, end_date], both ends inclusive."""
    if end_date < start_date:
        return 0
    return round_for(frequency, start_date, end_date)


def total_checks(challenge: Challenge) -> int:
    return total_rounds(challenge.check_frequency, challenge.start_date, challenge.end_date) * int(challenge.check_times_per_round or 0)


def failed_point_per_check(challenge: Challenge) -> int:
    """Share of the deposit forfeited by one rejected check."""
    checks = total_checks(challenge)
    if checks <= 0:
        return 0
    return int(challenge.deposit_point or 0) // checks
