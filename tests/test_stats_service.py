"""Tests for profile statistics."""

from __future__ import annotations

import pytest

from rumori.services.stats_service import helpful_percentage
from tests.fakes import seed_feedback, seed_project


@pytest.mark.asyncio
async def test_user_stats(services, fake, user_id):
    seed_project(fake, user_id, "one")
    seed_project(fake, user_id, "two")
    theirs = seed_project(fake, "bob-id", "theirs")
    for rating in (1, 1, -1, None):
        seed_feedback(fake, theirs["id"], user_id, helpful_rating=rating)
    seed_feedback(fake, theirs["id"], "carol-id", helpful_rating=1)

    stats = await services.stats.get_user_stats()

    assert stats.project_count == 2
    assert stats.reviewed_count == 4
    assert stats.helpful_percentage == 66


@pytest.mark.asyncio
async def test_no_ratings(services, user_id):
    stats = await services.stats.get_user_stats()
    assert stats.project_count == 0
    assert stats.reviewed_count == 0
    assert stats.helpful_percentage is None


@pytest.mark.parametrize("ratings, expected", [
    ([], None),
    ([None, None], None),
    ([1], 100),
    ([1, 0, -1], 33),
    ([0, 0], 0),
])
def test_helpful_percentage(ratings, expected):
    assert helpful_percentage(ratings) == expected
