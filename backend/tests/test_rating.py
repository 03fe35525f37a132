from __future__ import annotations
import pytest
from challengers.errors import InvalidTransition
from challengers.services.rating import add_rating, remove_rating, replace_rating, star_mean


def test_empty_aggregate_has_zero_mean():
    assert star_mean(0.0, 0) == 0.0


def test_mean_rounds_half_up_to_one_decimal():
    assert star_mean(9.5, 2) == 4.8    # 4.75
    assert star_mean(13.0, 3) == 4.3   # 4.333...
    assert star_mean(5.0, 3) == 1.7    # 1.666...


def test_removing_last_rating_yields_zero():
    total, count = add_rating(0.0, 0, 3.5)
    total, count = remove_rating(total, count, 3.5)
    assert (total, count) == (0.0, 0)
    assert star_mean(total, count) == 0.0


def test_incremental_mean_matches_direct_recomputation():
    ratings: list[float] = []
    total, count = 0.0, 0
    for r in [5.0, 4.5, 3.0, 1.5, 0.5]:
        total, count = add_rating(total, count, r)
        ratings.append(r)
        assert star_mean(total, count) == star_mean(sum(ratings), len(ratings))

    total, count = remove_rating(total, count, 3.0)
    ratings.remove(3.0)
    assert star_mean(total, count) == star_mean(sum(ratings), len(ratings))

    total = replace_rating(total, count, 4.5, 2.0)
    ratings[ratings.index(4.5)] = 2.0
    assert count == len(ratings)
    assert star_mean(total, count) == star_mean(sum(ratings), len(ratings))


def test_remove_or_replace_on_empty_aggregate_rejected():
    with pytest.raises(InvalidTransition):
        remove_rating(0.0, 0, 4.0)
    with pytest.raises(InvalidTransition):
        replace_rating(0.0, 0, 4.0, 5.0)
