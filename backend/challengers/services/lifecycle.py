"""Challenge lifecycle state machine.

States: ready -> in_progress -> validate -> finish (terminal).
Transitions are explicit commands issued by the facade or the lifecycle tick;
nothing here looks at the clock. A rejected command leaves the challenge
untouched.
"""
from __future__ import annotations

from challengers.errors import InvalidTransition
from challengers.models.challenge import Challenge
from challengers.services import rating

VALID_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "ready": ("in_progress",),
    "in_progress": ("validate",),
    "validate": ("finish",),
    "finish": (),
}


def can_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, ())


def _transition(ch: Challenge, target: str) -> None:
    if not can_transition(ch.status, target):
        raise InvalidTransition(f"Cannot move challenge from '{ch.status}' to '{target}'")
    ch.status = target


def to_in_progress(ch: Challenge) -> None:
    _transition(ch, "in_progress")
    # round 0 is reserved for ready challenges
    ch.round = 1


def to_validate(ch: Challenge) -> None:
    _transition(ch, "validate")


def to_finish(ch: Challenge) -> None:
    _transition(ch, "finish")


def advance_round(ch: Challenge) -> None:
    if ch.status != "in_progress":
        raise InvalidTransition(f"Rounds only advance while in progress (status={ch.status})")
    ch.round += 1


def add_failed_point(ch: Challenge, amount: int) -> None:
    if amount < 0:
        raise InvalidTransition("Failed points cannot decrease")
    ch.failed_point = int(ch.failed_point or 0) + int(amount)


def _refresh_star_rating(ch: Challenge) -> None:
    ch.star_rating = rating.star_mean(ch.total_star_rating, ch.review_count)


def add_review_relation(ch: Challenge, star_rating: float) -> None:
    ch.total_star_rating, ch.review_count = rating.add_rating(ch.total_star_rating or 0.0, ch.review_count or 0, star_rating)
    _refresh_star_rating(ch)


def delete_review_relation(ch: Challenge, star_rating: float) -> None:
    ch.total_star_rating, ch.review_count = rating.remove_rating(ch.total_star_rating or 0.0, ch.review_count or 0, star_rating)
    _refresh_star_rating(ch)


def update_review_relation(ch: Challenge, star_rating: float, new_star_rating: float) -> None:
    ch.total_star_rating = rating.replace_rating(ch.total_star_rating or 0.0, ch.review_count or 0, star_rating, new_star_rating)
    _refresh_star_rating(ch)
