"""
Project lifecycle: two-phase upload, listing, owner mutations and deletion.
"""
import asyncio
import mimetypes
from dataclasses import dataclass
from typing import List, Optional, Union

from rumori.backend import Backend, decode_many, decode_one, first_row
from rumori.config import Settings, get_settings
from rumori.exceptions import (
    NotAuthorizedError, NotFoundError, RumoriError, ValidationError,
)
from rumori.logger import get_logger
from rumori.models import Project, ProjectStatus
from rumori.scope import run_to_completion
from rumori.services.media_service import MediaService
from rumori.services.storage_service import AUDIO, IMAGE, StorageService
from rumori.session import SessionProvider
from rumori.utils import isoformat

logger = get_logger("project_service")

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 2000


@dataclass
class MediaUpload:
    """A file picked for upload."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    def guessed_content_type(self) -> str:
        return self.content_type or mimetypes.guess_type(self.filename)[0] or "application/octet-stream"


def validate_title(title: str) -> str:
    if not title or not title.strip():
        raise ValidationError("Title is required and cannot be empty")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def validate_description(description: Optional[str]) -> Optional[str]:
    description = description.strip() if description else None
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return description or None


class ProjectService:
    """Wraps the ``projects`` table and the project storage bucket."""

    def __init__(
        self,
        backend: Backend,
        session: SessionProvider,
        storage: StorageService,
        media: MediaService,
        settings: Optional[Settings] = None,
    ):
        self.backend = backend
        self.session = session
        self.storage = storage
        self.media = media
        self.settings = settings or get_settings()

    @property
    def bucket(self) -> str:
        return self.settings.project_bucket

    async def upload_project(
        self,
        title: str,
        description: Optional[str] = None,
        image: Optional[MediaUpload] = None,
        audio: Optional[MediaUpload] = None,
    ) -> Project:
        """
        Upload media then insert the project record.

        Phase 1 stores the optional image and audio objects under the
        caller's folder; phase 2 inserts the record pointing at them. If
        anything after the first stored object fails, the stored objects
        are removed before the error propagates.
        """
        user_id = self.session.require_user_id()
        title = validate_title(title)
        description = validate_description(description)
        if image is None and audio is None:
            raise ValidationError("A project needs an image or an audio file")

        # Validate and prepare everything before touching storage
        prepared = []
        if image is not None:
            self.storage.validate_file(image.filename, image.data, IMAGE)
            image_bytes = await self.media.compress_image(image.data)
            prepared.append(("image_path", "project", ".jpg", image_bytes, "image/jpeg"))
        if audio is not None:
            audio_ext = self.storage.validate_file(audio.filename, audio.data, AUDIO)
            prepared.append(("audio_path", "audio", audio_ext, audio.data, audio.guessed_content_type()))

        logger.info(f"Uploading project '{title}' for user: {user_id}")
        uploaded: List[str] = []
        stored_rows: List[dict] = []
        try:
            paths = {"image_path": None, "audio_path": None}
            for field, prefix, ext, data, content_type in prepared:
                path = self.storage.build_path(user_id, prefix, ext)
                # Tracked before the call so a cancelled upload is still removed
                uploaded.append(path)
                await run_to_completion(self.storage.upload(self.bucket, path, data, content_type))
                paths[field] = path

            now = isoformat()
            record = {
                "user_id": user_id,
                "title": title,
                "description": description,
                "image_path": paths["image_path"],
                "audio_path": paths["audio_path"],
                "status": ProjectStatus.ACTIVE.value,
                "created_at": now,
                "updated_at": now,
            }

            async def insert_record():
                response = await self.backend.write(
                    lambda: self.backend.table("projects").insert(record).execute(),
                    name="insert_project",
                )
                stored_rows.append(first_row(response))

            await run_to_completion(insert_record())
            project = decode_one(Project, stored_rows[0])

        except asyncio.CancelledError:
            if stored_rows:
                logger.warning(f"Upload of '{title}' cancelled after its record was stored, keeping it")
            else:
                logger.warning(f"Upload of '{title}' cancelled, removing stored objects")
                await self._rollback_uploads(uploaded)
            raise
        except RumoriError as e:
            logger.error(f"Project upload failed: {e.message}")
            await self._rollback_uploads(uploaded)
            raise

        logger.info(f"Successfully created project with ID: {project.id}")
        return project

    async def _rollback_uploads(self, paths: List[str]) -> None:
        if not paths:
            return
        try:
            await self.storage.remove(self.bucket, paths)
            logger.info(f"Rolled back {len(paths)} uploaded object(s)")
        except RumoriError as e:
            logger.error(f"Rollback failed, orphaned storage objects {paths}: {e.message}")

    async def get_projects(self) -> List[Project]:
        """The caller's own projects, newest first."""
        user_id = self.session.require_user_id()
        response = await self.backend.read(
            lambda: self.backend.table("projects").select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute(),
            name="get_projects",
        )
        projects = decode_many(Project, response.data)
        logger.info(f"Retrieved {len(projects)} projects for user: {user_id}")
        return projects

    async def get_projects_for_review(self) -> List[Project]:
        """Other users' projects, newest first; never the caller's own."""
        user_id = self.session.require_user_id()
        response = await self.backend.read(
            lambda: self.backend.table("projects").select("*")
            .neq("user_id", user_id)
            .order("created_at", desc=True)
            .execute(),
            name="get_projects_for_review",
        )
        projects = decode_many(Project, response.data)
        others = [p for p in projects if p.user_id != user_id]
        if len(others) != len(projects):
            logger.warning(
                f"Review list contained {len(projects) - len(others)} of the caller's own projects"
            )
        return others

    async def get_project(self, project_id: str) -> Project:
        response = await self.backend.read(
            lambda: self.backend.table("projects").select("*").eq("id", project_id).execute(),
            name="get_project",
        )
        row = first_row(response)
        if row is None:
            raise NotFoundError(f"Project {project_id} not found")
        return decode_one(Project, row)

    async def get_owned_project(self, project_id: str) -> Project:
        """Load a project and check that the caller owns it."""
        user_id = self.session.require_user_id()
        project = await self.get_project(project_id)
        if project.user_id != user_id:
            logger.warning(f"User {user_id} attempted to modify project {project_id} owned by another user")
            raise NotAuthorizedError("You can only change your own projects")
        return project

    async def _update(self, project_id: str, values: dict, name: str) -> Project:
        await self.get_owned_project(project_id)
        values = {**values, "updated_at": isoformat()}
        response = await self.backend.write(
            lambda: self.backend.table("projects").update(values).eq("id", project_id).execute(),
            name=name,
        )
        row = first_row(response)
        return decode_one(Project, row) if row else await self.get_project(project_id)

    async def update_project_title(self, project_id: str, title: str) -> Project:
        return await self._update(project_id, {"title": validate_title(title)}, "update_project_title")

    async def update_project_description(self, project_id: str, description: Optional[str]) -> Project:
        return await self._update(
            project_id, {"description": validate_description(description)}, "update_project_description"
        )

    async def update_project_status(self, project_id: str, status: Union[ProjectStatus, str]) -> Project:
        try:
            status = ProjectStatus.parse(status)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return await self._update(project_id, {"status": status.value}, "update_project_status")

    async def delete_project(self, project_id: str) -> bool:
        """Delete the record, then its stored files.

        A storage failure after the record is gone is logged and does not
        fail the call.
        """
        project = await self.get_owned_project(project_id)
        logger.info(f"Deleting project {project_id}")
        await self.backend.write(
            lambda: self.backend.table("projects").delete().eq("id", project_id).execute(),
            name="delete_project",
        )
        try:
            await self.storage.remove(self.bucket, project.storage_paths)
        except RumoriError as e:
            logger.error(
                f"Project {project_id} deleted but storage objects "
                f"{project.storage_paths} were orphaned: {e.message}"
            )
        logger.info(f"Successfully deleted project with ID: {project_id}")
        return True

    def get_public_url(self, path: Optional[str]) -> Optional[str]:
        return self.storage.public_url(self.bucket, path)
