"""
Profile statistics derived on demand.
"""
from typing import Optional

from rumori.backend import Backend
from rumori.logger import get_logger
from rumori.models import UserStats
from rumori.session import SessionProvider

logger = get_logger("stats_service")


def helpful_percentage(ratings) -> Optional[int]:
    """Floored share of rated feedback marked helpful; None when nothing is rated."""
    rated = [r for r in ratings if r is not None]
    if not rated:
        return None
    helpful = sum(1 for r in rated if r == 1)
    return (helpful * 100) // len(rated)


class StatsService:
    def __init__(self, backend: Backend, session: SessionProvider):
        self.backend = backend
        self.session = session

    async def get_user_stats(self, user_id: Optional[str] = None) -> UserStats:
        user_id = user_id or self.session.require_user_id()
        projects = await self.backend.read(
            lambda: self.backend.table("projects").select("id").eq("user_id", user_id).execute(),
            name="count_projects",
        )
        reviews = await self.backend.read(
            lambda: self.backend.table("feedback").select("id, helpful_rating")
            .eq("author_id", user_id)
            .execute(),
            name="count_reviews",
        )
        review_rows = reviews.data or []
        stats = UserStats(
            project_count=len(projects.data or []),
            reviewed_count=len(review_rows),
            helpful_percentage=helpful_percentage(row.get("helpful_rating") for row in review_rows),
        )
        logger.debug(f"Stats for {user_id}: {stats}")
        return stats
