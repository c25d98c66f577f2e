"""
Blob storage access: path-addressed upload, public URLs and removal.
All object paths are scoped under the owning user's id.
"""
import time
import uuid
from typing import Iterable, List, Optional

from rumori.backend import Backend
from rumori.config import Settings, get_settings
from rumori.exceptions import FileUploadError, NetworkError
from rumori.logger import get_logger

logger = get_logger("storage_service")

AUDIO = "audio"
IMAGE = "image"


class StorageService:
    """Wraps the storage buckets used by projects and profile pictures."""

    def __init__(self, backend: Backend, settings: Optional[Settings] = None):
        self.backend = backend
        self.settings = settings or get_settings()

    def validate_file(self, filename: str, data: bytes, kind: str) -> str:
        """Validate a file before upload and return its normalised extension."""
        if not filename or not data:
            raise FileUploadError("No file provided or file is empty")

        file_ext = "." + filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
        allowed = (
            self.settings.allowed_audio_formats if kind == AUDIO
            else self.settings.allowed_image_formats
        )
        if file_ext not in allowed:
            raise FileUploadError(
                f"Invalid {kind} format: {file_ext or 'none'}. "
                f"Allowed formats: {', '.join(allowed)}"
            )

        if len(data) > self.settings.max_file_size:
            raise FileUploadError(
                f"File too large: {len(data)} bytes. "
                f"Maximum allowed: {self.settings.max_file_size} bytes"
            )
        return file_ext

    @staticmethod
    def build_path(owner_id: str, prefix: str, extension: str) -> str:
        """Unique object path under the owner's folder."""
        extension = extension if extension.startswith(".") else f".{extension}"
        return f"{owner_id}/{prefix}_{int(time.time())}_{uuid.uuid4().hex[:8]}{extension}"

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str,
                     upsert: bool = False) -> str:
        """Upload ``data`` to ``bucket`` at ``path`` and return the path."""
        logger.info(f"Uploading {len(data)} bytes to {bucket}/{path}")
        file_options = {"content-type": content_type}
        if upsert:
            file_options["upsert"] = "true"
        try:
            await self.backend.write(
                lambda: self.backend.storage.from_(bucket).upload(
                    path=path, file=data, file_options=file_options
                ),
                name="storage_upload",
            )
        except NetworkError:
            raise
        except Exception as e:
            logger.error(f"Error uploading {bucket}/{path}: {e}")
            raise FileUploadError(f"Failed to upload file: {path}", str(e)) from e
        logger.info(f"Successfully uploaded {bucket}/{path}")
        return path

    def public_url(self, bucket: str, path: Optional[str]) -> Optional[str]:
        """Public URL for an object, or ``None`` when there is no path."""
        if not path:
            return None
        try:
            url = self.backend.storage.from_(bucket).get_public_url(path)
        except Exception as e:
            logger.error(f"Error building public URL for {bucket}/{path}: {e}")
            raise FileUploadError("Failed to build public URL", str(e)) from e
        return url.rstrip("?")

    async def remove(self, bucket: str, paths: Iterable[str]) -> List[str]:
        """Delete objects by path; returns the paths that were requested."""
        paths = [p for p in paths if p]
        if not paths:
            return []
        logger.info(f"Removing {len(paths)} object(s) from {bucket}")
        try:
            await self.backend.write(
                lambda: self.backend.storage.from_(bucket).remove(paths),
                name="storage_remove",
            )
        except Exception as e:
            logger.error(f"Error removing {paths} from {bucket}: {e}")
            raise FileUploadError("Failed to remove stored files", str(e)) from e
        return paths
