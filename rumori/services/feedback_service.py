"""
Feedback and rating: submission, per-project listing, seen tracking,
helpful ratings and the unread counter.
"""
from typing import Dict, List, Optional

from rumori.backend import Backend, decode_many, decode_one, first_row
from rumori.config import Settings, get_settings
from rumori.enrichment import enrich_each
from rumori.exceptions import (
    NotAuthorizedError, NotFoundError, RumoriError, ValidationError,
)
from rumori.logger import get_logger
from rumori.models import Feedback
from rumori.services.coin_service import CoinService
from rumori.services.project_service import ProjectService
from rumori.session import SessionProvider
from rumori.state import UNREAD_FEEDBACK_COUNT, StateStore
from rumori.utils import isoformat

logger = get_logger("feedback_service")

DEFAULT_AUTHOR_NAME = "User"
FEEDBACK_COLUMNS = "id, project_id, author_id, comment, created_at, seen_at, helpful_rating"
HELPFUL_RATINGS = (-1, 0, 1)


class FeedbackService:
    """Wraps the ``feedback`` table."""

    def __init__(
        self,
        backend: Backend,
        session: SessionProvider,
        projects: ProjectService,
        coins: CoinService,
        state: StateStore,
        settings: Optional[Settings] = None,
    ):
        self.backend = backend
        self.session = session
        self.projects = projects
        self.coins = coins
        self.state = state
        self.settings = settings or get_settings()

    @property
    def unread_count(self) -> int:
        return self.state.get(UNREAD_FEEDBACK_COUNT, 0)

    def validate_comment(self, comment: str) -> str:
        comment = (comment or "").strip()
        minimum = self.settings.min_feedback_length
        if len(comment) < minimum:
            raise ValidationError(
                f"Feedback must be at least {minimum} characters ({len(comment)} so far)"
            )
        return comment

    async def submit_feedback(self, project_id: str, comment: str) -> Feedback:
        """Leave a review on someone else's project and collect the reward."""
        user_id = self.session.require_user_id()
        comment = self.validate_comment(comment)
        project = await self.projects.get_project(project_id)
        if project.user_id == user_id:
            raise NotAuthorizedError("You cannot review your own project")

        response = await self.backend.write(
            lambda: self.backend.table("feedback").insert({
                "project_id": project_id,
                "author_id": user_id,
                "comment": comment,
                "created_at": isoformat(),
            }).execute(),
            name="submit_feedback",
        )
        feedback = decode_one(Feedback, first_row(response))
        profile = self.session.current_profile
        if profile is not None and profile.username:
            feedback = feedback.model_copy(update={"author_name": profile.username})
        logger.info(f"Feedback {feedback.id} submitted on project {project_id}")

        reward = self.settings.feedback_reward_coins
        if reward > 0:
            try:
                await self.coins.earn_coins(reward, project_id, "Earned for reviewing a project")
            except RumoriError as e:
                logger.error(f"Feedback saved but coin reward failed: {e.message}")
        return feedback

    async def _author_name(self, author_id: str) -> str:
        profile = await self.session.fetch_profile(author_id)
        if profile is None or not profile.username:
            raise NotFoundError(f"No username for author {author_id}")
        return profile.username

    async def get_feedback_for_project(self, project_id: str) -> List[Feedback]:
        """Feedback on a project, newest first, with author names resolved."""
        logger.info(f"Fetching feedback for project: {project_id}")
        response = await self.backend.read(
            lambda: self.backend.table("feedback").select(FEEDBACK_COLUMNS)
            .eq("project_id", project_id)
            .order("created_at", desc=True)
            .execute(),
            name="get_feedback_for_project",
        )
        items = decode_many(Feedback, response.data)
        names: Dict[str, str] = {}

        async def with_author(item: Feedback) -> Feedback:
            if item.author_id not in names:
                names[item.author_id] = await self._author_name(item.author_id)
            return item.model_copy(update={"author_name": names[item.author_id]})

        feedback = await enrich_each(
            items,
            with_author,
            lambda item: item.model_copy(update={"author_name": DEFAULT_AUTHOR_NAME}),
            label="feedback",
        )
        logger.info(f"Found {len(feedback)} feedback items")
        await self._refresh_unread_quietly()
        return feedback

    async def get_feedback_by_user(self, user_id: Optional[str] = None) -> List[Feedback]:
        """Feedback written by ``user_id`` (default: the caller), newest first."""
        user_id = user_id or self.session.require_user_id()
        response = await self.backend.read(
            lambda: self.backend.table("feedback").select(FEEDBACK_COLUMNS)
            .eq("author_id", user_id)
            .order("created_at", desc=True)
            .execute(),
            name="get_feedback_by_user",
        )
        return decode_many(Feedback, response.data)

    async def get_feedback(self, feedback_id: str) -> Feedback:
        response = await self.backend.read(
            lambda: self.backend.table("feedback").select(FEEDBACK_COLUMNS)
            .eq("id", feedback_id)
            .execute(),
            name="get_feedback",
        )
        row = first_row(response)
        if row is None:
            raise NotFoundError(f"Feedback {feedback_id} not found")
        return decode_one(Feedback, row)

    async def mark_feedback_as_seen(self, feedback_id: str) -> None:
        """Stamp ``seen_at`` once; already seen items keep their timestamp."""
        await self.backend.write(
            lambda: self.backend.table("feedback").update({"seen_at": isoformat()})
            .eq("id", feedback_id)
            .is_("seen_at", "null")
            .execute(),
            name="mark_feedback_as_seen",
        )
        await self._refresh_unread_quietly()

    async def mark_project_feedback_seen(self, project_id: str) -> int:
        """Owner opened the project: mark each unseen item once."""
        await self.projects.get_owned_project(project_id)
        response = await self.backend.read(
            lambda: self.backend.table("feedback").select("id")
            .eq("project_id", project_id)
            .is_("seen_at", "null")
            .execute(),
            name="get_unseen_feedback",
        )
        unseen = [row["id"] for row in (response.data or [])]
        for feedback_id in unseen:
            await self.backend.write(
                lambda fid=feedback_id: self.backend.table("feedback")
                .update({"seen_at": isoformat()})
                .eq("id", fid)
                .is_("seen_at", "null")
                .execute(),
                name="mark_feedback_as_seen",
            )
        if unseen:
            logger.info(f"Marked {len(unseen)} feedback item(s) as seen on project {project_id}")
        await self._refresh_unread_quietly()
        return len(unseen)

    async def _check_rating_actor(self, feedback: Feedback, user_id: str) -> None:
        actor = self.settings.helpful_rating_actor
        if actor in ("author", "any") and feedback.author_id == user_id:
            return
        if actor in ("owner", "any"):
            project = await self.projects.get_project(feedback.project_id)
            if project.user_id == user_id:
                return
        raise NotAuthorizedError("You cannot rate this feedback")

    async def update_helpful_rating(self, feedback_id: str, rating: int) -> Feedback:
        """Set how helpful a review was: -1, 0 or 1."""
        if isinstance(rating, bool) or rating not in HELPFUL_RATINGS:
            raise ValidationError("Helpful rating must be -1, 0 or 1")
        user_id = self.session.require_user_id()
        feedback = await self.get_feedback(feedback_id)
        await self._check_rating_actor(feedback, user_id)

        response = await self.backend.write(
            lambda: self.backend.table("feedback").update({"helpful_rating": rating})
            .eq("id", feedback_id)
            .execute(),
            name="update_helpful_rating",
        )
        row = first_row(response)
        return decode_one(Feedback, row) if row else await self.get_feedback(feedback_id)

    async def get_unread_feedback_count(self) -> int:
        """Unseen feedback across the caller's projects; always recomputed."""
        user_id = self.session.require_user_id()
        projects_response = await self.backend.read(
            lambda: self.backend.table("projects").select("id").eq("user_id", user_id).execute(),
            name="get_owned_project_ids",
        )
        project_ids = [row["id"] for row in (projects_response.data or [])]
        count = 0
        if project_ids:
            feedback_response = await self.backend.read(
                lambda: self.backend.table("feedback").select("id")
                .in_("project_id", project_ids)
                .is_("seen_at", "null")
                .execute(),
                name="get_unread_feedback",
            )
            count = len(feedback_response.data or [])
        self.state.set(UNREAD_FEEDBACK_COUNT, count)
        logger.debug(f"Unread feedback for {user_id}: {count}")
        return count

    async def _refresh_unread_quietly(self) -> None:
        if not self.session.is_authenticated:
            return
        try:
            await self.get_unread_feedback_count()
        except RumoriError as e:
            logger.warning(f"Could not refresh unread feedback count: {e.message}")
