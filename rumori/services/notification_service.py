"""
Activity feed built from the caller's uploads and the feedback they received.
"""
import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from rumori.backend import Backend, decode_many
from rumori.enrichment import enrich_each
from rumori.exceptions import NotFoundError
from rumori.logger import get_logger
from rumori.models import Feedback, NotificationItem, Profile, Project
from rumori.services.project_service import ProjectService
from rumori.session import SessionProvider
from rumori.utils import format_time_ago, utc_now

logger = get_logger("notification_service")

UPLOAD_ACTION = "uploaded"
FEEDBACK_ACTION = "just reviewed"
SELF_NAME = "You"
DEFAULT_AUTHOR_NAME = "User"


def _finalize(items: List[NotificationItem], now: Optional[datetime] = None) -> List[NotificationItem]:
    """Sort newest first by absolute time and fill in relative time strings."""
    now = now or utc_now()
    ordered = sorted(items, key=lambda item: item.occurred_at, reverse=True)
    return [
        item.model_copy(update={"time_ago": format_time_ago(item.occurred_at, now)})
        for item in ordered
    ]


class NotificationService:
    def __init__(self, backend: Backend, session: SessionProvider, projects: ProjectService):
        self.backend = backend
        self.session = session
        self.projects = projects

    async def _own_projects(self, user_id: str) -> List[Project]:
        response = await self.backend.read(
            lambda: self.backend.table("projects").select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute(),
            name="get_notification_projects",
        )
        return decode_many(Project, response.data)

    async def _upload_items(self, user_id: str,
                            projects: Optional[List[Project]] = None) -> List[NotificationItem]:
        if projects is None:
            projects = await self._own_projects(user_id)
        return [
            NotificationItem(
                user_name=SELF_NAME,
                action=UPLOAD_ACTION,
                project_name=project.title,
                project_image=self.projects.get_public_url(project.image_path),
                occurred_at=project.created_at,
                time_ago="",
            )
            for project in projects
        ]

    async def _feedback_items(self, user_id: str,
                              own: Optional[List[Project]] = None) -> List[NotificationItem]:
        if own is None:
            own = await self._own_projects(user_id)
        projects = {p.id: p for p in own}
        if not projects:
            return []
        response = await self.backend.read(
            lambda: self.backend.table("feedback").select("*")
            .in_("project_id", list(projects))
            .order("created_at", desc=True)
            .execute(),
            name="get_notification_feedback",
        )
        feedback = decode_many(Feedback, response.data)
        authors: Dict[str, Profile] = {}

        async def with_author(item: Feedback) -> NotificationItem:
            if item.author_id not in authors:
                profile = await self.session.fetch_profile(item.author_id)
                if profile is None:
                    raise NotFoundError(f"No profile for author {item.author_id}")
                authors[item.author_id] = profile
            author = authors[item.author_id]
            return NotificationItem(
                user_name=author.username or DEFAULT_AUTHOR_NAME,
                action=FEEDBACK_ACTION,
                project_name=projects[item.project_id].title,
                project_image=author.avatar_url,
                occurred_at=item.created_at,
                time_ago="",
            )

        def anonymous(item: Feedback) -> NotificationItem:
            return NotificationItem(
                user_name=DEFAULT_AUTHOR_NAME,
                action=FEEDBACK_ACTION,
                project_name=projects[item.project_id].title,
                occurred_at=item.created_at,
                time_ago="",
            )

        return await enrich_each(feedback, with_author, anonymous, label="feedback notification")

    async def get_project_upload_notifications(self) -> List[NotificationItem]:
        """'You uploaded <title>' for each of the caller's projects."""
        user_id = self.session.require_user_id()
        return _finalize(await self._upload_items(user_id))

    async def get_feedback_notifications(self) -> List[NotificationItem]:
        """'<author> just reviewed <title>' for feedback on the caller's projects."""
        user_id = self.session.require_user_id()
        return _finalize(await self._feedback_items(user_id))

    async def get_notifications(self) -> List[NotificationItem]:
        """Both feeds built concurrently from one project fetch, merged newest first."""
        user_id = self.session.require_user_id()
        projects = await self._own_projects(user_id)
        uploads, feedback = await asyncio.gather(
            self._upload_items(user_id, projects),
            self._feedback_items(user_id, projects),
        )
        items = _finalize(uploads + feedback)
        logger.info(f"Built {len(items)} notifications for user: {user_id}")
        return items
