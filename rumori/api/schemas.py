from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from rumori.models import ProjectStatus


# Authentication Schemas
class SignInRequest(BaseModel):
    """Schema for email/password sign-in."""
    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=1, description="Account password")


class SignUpRequest(SignInRequest):
    """Schema for account registration."""
    password: str = Field(..., min_length=6, description="Account password")
    username: str = Field(..., min_length=3, max_length=30, description="Public username")


class PasswordResetRequest(BaseModel):
    email: EmailStr


class AuthStateResponse(BaseModel):
    state: str = Field(..., description="unauthenticated, pending_verification or authenticated")
    user_id: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Schema for profile edits; omitted fields are left alone."""
    username: Optional[str] = Field(None, min_length=3, max_length=30)
    bio: Optional[str] = Field(None, max_length=500)


class UsernameAvailability(BaseModel):
    username: str
    available: bool


# Project Schemas
class ProjectUpdate(BaseModel):
    """Schema for owner edits to a project."""
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[ProjectStatus] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty or whitespace only")
        return v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return ProjectStatus.parse(v) if v is not None else None


# Feedback Schemas
class FeedbackCreate(BaseModel):
    project_id: str = Field(..., description="Project being reviewed")
    comment: str = Field(..., description="Review text")


class HelpfulRatingUpdate(BaseModel):
    rating: int = Field(..., ge=-1, le=1, description="-1 unhelpful, 0 neutral, 1 helpful")


class UnreadCountResponse(BaseModel):
    unread: int


class SeenResponse(BaseModel):
    marked: int
    unread: int


# Coin Schemas
class CoinTransaction(BaseModel):
    amount: int = Field(..., gt=0, description="Whole number of coins")
    project_id: str
    description: str = Field(..., min_length=1, max_length=255)


class BalanceResponse(BaseModel):
    balance: Optional[int] = None


# Favorite Schemas
class FavoriteStatus(BaseModel):
    project_id: str
    favorited: bool
