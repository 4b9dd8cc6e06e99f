from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

DEFAULT_LEARNER_LEVEL = "초급자"


class UserProfile(BaseModel):
    display_name: str | None = None
    avatar: str | None = None
    level: str = DEFAULT_LEARNER_LEVEL
    study_streak: int = Field(default=0, ge=0)
    total_words_learned: int = Field(default=0, ge=0)
    mastered_words: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)


class UserPreferences(BaseModel):
    study_reminder: bool = True
    voice_enabled: bool = True
    difficulty: str = "mixed"


class User(BaseModel):
    """Public view of an account; the password hash never leaves the store."""

    id: str
    username: str
    email: str
    profile: UserProfile = Field(default_factory=UserProfile)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=3, max_length=20)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)
    password: str = Field(min_length=6, max_length=128)
    display_name: str | None = Field(
        default=None, validation_alias=AliasChoices("display_name", "displayName")
    )


class LoginRequest(BaseModel):
    """Credentials; ``login`` is either the username or the email address."""

    model_config = ConfigDict(populate_by_name=True)

    login: str = Field(
        min_length=1, validation_alias=AliasChoices("login", "username", "email")
    )
    password: str = Field(min_length=1)


class AuthResponse(BaseModel):
    user: User
    token: str


class ProfileUpdateRequest(BaseModel):
    display_name: str | None = None
    avatar: str | None = None
    level: str | None = None
    preferences: UserPreferences | None = None
