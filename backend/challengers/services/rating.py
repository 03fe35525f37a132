"""Incremental star-rating aggregate.

Only the running sum and the count are authoritative; the mean is always
derived from them so repeated add/remove/replace cannot drift.
"""
from __future__ import annotations
import math

from challengers.errors import InvalidTransition


def star_mean(total: float, count: int) -> float:
    """Mean rounded half-up to one decimal; 0 for an empty aggregate."""
    if count == 0:
        return 0.0
    return math.floor(total / count * 10 + 0.5) / 10


def add_rating(total: float, count: int, rating: float) -> tuple[float, int]:
    return total + rating, count + 1


def remove_rating(total: float, count: int, rating: float) -> tuple[float, int]:
    if count <= 0:
        raise InvalidTransition("No rating to remove")
    count -= 1
    # the last removal resets the sum exactly instead of leaving float residue
    return (total - rating if count else 0.0), count


def replace_rating(total: float, count: int, old: float, new: float) -> float:
    if count <= 0:
        raise InvalidTransition("No rating to replace")
    return total - old + new
