"""User-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProfileResponse(BaseModel):
    """Schema for a profile as seen by admins."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    full_name: str | None
    username: str | None
    email: str | None
    city: str | None
    avatar_url: str | None
    hourly_rate: int | None
    is_verified: bool
    is_online: bool
    is_active: bool
    created_at: datetime


class ProfilePublicResponse(BaseModel):
    """Schema for a profile shown to other users."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    full_name: str | None
    username: str | None
    avatar_url: str | None
    city: str | None
    interests: list[str] | None
    hourly_rate: int | None
    is_verified: bool
    is_online: bool


class RecommendedProfile(ProfilePublicResponse):
    """Profile with its recommendation score."""

    score: int


class AdminUserListResponse(BaseModel):
    """Users split by role for the admin back-office."""

    renters: list[ProfileResponse]
    companions: list[ProfileResponse]
