"""Tests for the activity feed."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from rumori.models import NotificationItem
from rumori.services.notification_service import _finalize
from tests.fakes import network_error, seed_feedback, seed_profile, seed_project


class TestNotifications:

    @pytest.mark.asyncio
    async def test_upload_items(self, services, fake, user_id):
        seed_project(fake, user_id, "Beat", minutes=1, image_path=f"{user_id}/project_1.jpg")

        [item] = await services.notifications.get_project_upload_notifications()
        assert (item.user_name, item.action, item.project_name) == ("You", "uploaded", "Beat")
        assert item.project_image.endswith(f"/project_files/{user_id}/project_1.jpg")

    @pytest.mark.asyncio
    async def test_feedback_items_use_author_profile(self, services, fake, user_id):
        project = seed_project(fake, user_id, "Beat")
        seed_profile(fake, "bob-id", "bob", avatar_url="https://cdn.example/bob.png")
        seed_feedback(fake, project["id"], "bob-id")

        [item] = await services.notifications.get_feedback_notifications()
        assert (item.user_name, item.action, item.project_name) == ("bob", "just reviewed", "Beat")
        assert item.project_image == "https://cdn.example/bob.png"

    @pytest.mark.asyncio
    async def test_merged_feed_is_sorted_by_time(self, services, fake, user_id):
        first = seed_project(fake, user_id, "First", minutes=0)
        seed_project(fake, user_id, "Second", minutes=30)
        seed_profile(fake, "bob-id", "bob")
        seed_feedback(fake, first["id"], "bob-id", minutes=10)
        seed_feedback(fake, first["id"], "bob-id", minutes=24 * 60)

        items = await services.notifications.get_notifications()

        assert [(i.action, i.project_name) for i in items] == [
            ("just reviewed", "First"),
            ("uploaded", "Second"),
            ("just reviewed", "First"),
            ("uploaded", "First"),
        ]
        times = [i.occurred_at for i in items]
        assert times == sorted(times, reverse=True)

    @pytest.mark.asyncio
    async def test_merged_feed_reads_projects_once(self, services, fake, user_id):
        project = seed_project(fake, user_id, "Beat")
        seed_profile(fake, "bob-id", "bob")
        seed_feedback(fake, project["id"], "bob-id")
        notifications = services.notifications

        with patch.object(notifications, "_own_projects", wraps=notifications._own_projects) as own:
            items = await notifications.get_notifications()

        own.assert_awaited_once_with(user_id)
        assert sorted(i.action for i in items) == ["just reviewed", "uploaded"]

    @pytest.mark.asyncio
    async def test_failing_author_lookup_degrades(self, services, fake, user_id):
        project = seed_project(fake, user_id, "Beat")
        fake.fail("profiles", "select", network_error(), times=None,
                  when=lambda query: query.filter_value("id") == "bob-id")
        seed_feedback(fake, project["id"], "bob-id")

        [item] = await services.notifications.get_feedback_notifications()
        assert item.user_name == "User"
        assert item.project_image is None

    @pytest.mark.asyncio
    async def test_no_projects_no_feedback_items(self, services, user_id):
        assert await services.notifications.get_notifications() == []


def test_finalize_orders_by_absolute_time():
    """'1d ago' must sort after '5h ago' even though it compares lower as text."""
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    day_old = NotificationItem(user_name="You", action="uploaded", project_name="a",
                               occurred_at=now - timedelta(days=1), time_ago="")
    hours_old = NotificationItem(user_name="You", action="uploaded", project_name="b",
                                 occurred_at=now - timedelta(hours=5), time_ago="")

    items = _finalize([day_old, hours_old], now)
    assert [i.time_ago for i in items] == ["5h ago", "1d ago"]
