"""
Favorites: per-user bookmarks of projects.
"""
from typing import List, Set

from rumori.backend import Backend, decode_many
from rumori.exceptions import ConflictError, OperationInProgressError
from rumori.logger import get_logger
from rumori.models import Project
from rumori.session import SessionProvider

logger = get_logger("favorite_service")


class FavoriteService:
    """Wraps the ``favorites`` table."""

    def __init__(self, backend: Backend, session: SessionProvider):
        self.backend = backend
        self.session = session
        self._in_flight: Set[str] = set()

    async def _existing_ids(self, user_id: str, project_id: str) -> List[str]:
        response = await self.backend.read(
            lambda: self.backend.table("favorites").select("id")
            .eq("user_id", user_id)
            .eq("project_id", project_id)
            .execute(),
            name="check_favorite",
        )
        return [row["id"] for row in (response.data or [])]

    async def is_project_favorited(self, project_id: str) -> bool:
        user_id = self.session.require_user_id()
        return bool(await self._existing_ids(user_id, project_id))

    async def toggle_favorite(self, project_id: str) -> bool:
        """
        Flip the favorite state of a project for the caller.

        Check then write, so two toggles of the same project must not
        overlap: a second call while one is running raises
        ``OperationInProgressError``.

        Returns:
            True if the project is now favorited, False otherwise
        """
        user_id = self.session.require_user_id()
        if project_id in self._in_flight:
            raise OperationInProgressError("Favorite update already in progress")

        self._in_flight.add(project_id)
        try:
            existing = await self._existing_ids(user_id, project_id)
            if existing:
                await self.backend.write(
                    lambda: self.backend.table("favorites").delete()
                    .eq("user_id", user_id)
                    .eq("project_id", project_id)
                    .execute(),
                    name="remove_favorite",
                )
                logger.info(f"Project {project_id} removed from favorites")
                return False

            try:
                await self.backend.write(
                    lambda: self.backend.table("favorites").insert(
                        {"user_id": user_id, "project_id": project_id}
                    ).execute(),
                    name="add_favorite",
                )
            except ConflictError:
                logger.warning(f"Project {project_id} was already favorited elsewhere")
            logger.info(f"Project {project_id} added to favorites")
            return True
        finally:
            self._in_flight.discard(project_id)

    async def get_favorite_projects(self) -> List[Project]:
        """Projects the caller has favorited, newest first."""
        user_id = self.session.require_user_id()
        response = await self.backend.read(
            lambda: self.backend.table("favorites").select("project_id").eq("user_id", user_id).execute(),
            name="get_favorites",
        )
        project_ids = [row["project_id"] for row in (response.data or [])]
        if not project_ids:
            return []
        projects_response = await self.backend.read(
            lambda: self.backend.table("projects").select("*")
            .in_("id", project_ids)
            .order("created_at", desc=True)
            .execute(),
            name="get_favorite_projects",
        )
        return decode_many(Project, projects_response.data)
