"""
Data models for the Rumori client.
These correspond to the backend tables and the derived display records.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ProjectStatus(str, Enum):
    """Lifecycle state of a project, stored in its display form."""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"

    @classmethod
    def parse(cls, value) -> "ProjectStatus":
        if isinstance(value, cls):
            return value
        for status in cls:
            if str(value).strip().lower() == status.value.lower():
                return status
        raise ValueError(f"Unknown project status: {value}")


class User(BaseModel):
    """Authenticated identity as issued by the auth service."""
    id: str
    email: str = ""
    username: Optional[str] = None
    created_at: Optional[datetime] = None


class Profile(BaseModel):
    """Public-facing identity, one per user (``profiles`` table)."""
    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Project(BaseModel):
    """An uploaded creative work (``projects`` table)."""
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    image_path: Optional[str] = None
    audio_path: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        if v is None:
            return ProjectStatus.ACTIVE
        return ProjectStatus.parse(v)

    @property
    def file_type(self) -> str:
        """Displayed file type; an audio upload wins over its cover image."""
        if self.audio_path:
            return "audio"
        if self.image_path:
            return "image"
        return "unknown"

    @property
    def storage_paths(self) -> list[str]:
        return [p for p in (self.image_path, self.audio_path) if p]


class Feedback(BaseModel):
    """A review left on a project (``feedback`` table) plus its author's name."""
    id: str
    project_id: str
    author_id: str
    comment: str
    created_at: datetime
    seen_at: Optional[datetime] = None
    helpful_rating: Optional[int] = None
    author_name: str = "User"

    @field_validator("helpful_rating")
    @classmethod
    def validate_helpful_rating(cls, v):
        if v is not None and v not in (-1, 0, 1):
            raise ValueError("helpful_rating must be -1, 0 or 1")
        return v

    @property
    def is_seen(self) -> bool:
        return self.seen_at is not None


class Favorite(BaseModel):
    """A user's bookmark of a project (``favorites`` table)."""
    id: Optional[str] = None
    user_id: str
    project_id: str


class CoinBalance(BaseModel):
    """Spendable currency (``user_coins`` table)."""
    user_id: Optional[str] = None
    balance: int = Field(0, ge=0)


class NotificationItem(BaseModel):
    """Derived activity entry; never persisted by the client."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_name: str
    action: str
    project_name: str
    project_image: Optional[str] = None
    occurred_at: datetime
    time_ago: str


class UserStats(BaseModel):
    """Profile statistics derived on demand."""
    project_count: int = 0
    reviewed_count: int = 0
    helpful_percentage: Optional[int] = None
