"""Pydantic models for database entities."""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class DBModel(BaseModel):
    """Base model for database entities with extra fields ignored."""
    model_config = ConfigDict(extra='ignore')


class Profile(DBModel):
    """User profile created during onboarding."""
    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    industry: Optional[str] = None
    timezone: Optional[str] = "UTC"
    subscription_tier: str = "free"
    onboarding_completed: bool = False
    preferences: Dict[str, Any] = Field(default_factory=dict)


class VoiceProfile(DBModel):
    """Writing-style attributes used to prompt for consistent content."""
    id: Optional[UUID] = None
    user_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    writing_samples: List[str] = Field(default_factory=list)
    tone_attributes: Dict[str, Any] = Field(default_factory=dict)
    vocabulary_preferences: Dict[str, Any] = Field(default_factory=dict)
    sentence_structure: Dict[str, Any] = Field(default_factory=dict)
    emoji_usage: Dict[str, Any] = Field(default_factory=dict)
    hashtag_style: Dict[str, Any] = Field(default_factory=dict)
    key_messages: List[str] = Field(default_factory=list)
    brand_personality: Dict[str, Any] = Field(default_factory=dict)
    training_version: int = 1
    last_trained_at: Optional[datetime] = None


class ContentPost(DBModel):
    """Generated or user-written content."""
    id: Optional[UUID] = None
    user_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    content_type: str = "post"  # post, article, thread, carousel
    platform: str = "linkedin"  # linkedin, twitter
    status: str = "draft"  # draft, scheduled, published, failed
    content: Dict[str, Any] = Field(default_factory=dict)
    ai_generated: bool = False
    ai_confidence_score: Optional[float] = Field(default=None, ge=0, le=1)
    generation_prompt: Optional[str] = None
    voice_profile_version: Optional[int] = None
    scheduled_for: Optional[datetime] = None
    published_at: Optional[datetime] = None
    platform_data: Dict[str, Any] = Field(default_factory=dict)
    performance_metrics: Dict[str, Any] = Field(default_factory=dict)


class LinkedInAccount(DBModel):
    """Connected LinkedIn account with stored OAuth tokens."""
    id: Optional[UUID] = None
    user_id: UUID
    account_id: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    profile_data: Optional[Dict[str, Any]] = None
    is_active: bool = True
    connected_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the access token has expired."""
        if not self.expires_at:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


class LinkedInPostRecord(DBModel):
    """Row of the linkedin_posts table tracking publishing state."""
    id: Optional[UUID] = None
    user_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    content_post_id: Optional[UUID] = None
    linkedin_post_id: Optional[str] = None
    linkedin_activity_id: Optional[str] = None
    content: str
    status: str = "draft"  # draft, scheduled, published, failed
    scheduled_for: Optional[datetime] = None
    published_at: Optional[datetime] = None
    linkedin_url: Optional[str] = None
    performance_data: Optional[Dict[str, Any]] = None


class OAuthState(DBModel):
    """Pending OAuth state; only cleaned up on account reset."""
    id: Optional[UUID] = None
    state: str
    user_id: UUID
    provider: str
    expires_at: datetime
    created_at: Optional[datetime] = None


class SystemAlert(DBModel):
    """Emergency or health alert raised by the autonomous scheduler."""
    id: Optional[UUID] = None
    type: str
    severity: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuthUser(DBModel):
    """Authenticated Supabase user resolved from a bearer token."""
    id: UUID
    email: Optional[str] = None


class LinkedInEngagement(DBModel):
    """Like or comment the engagement agent left on someone else's post."""
    id: Optional[UUID] = None
    user_id: UUID
    linkedin_post_id: str
    linkedin_post_author_id: Optional[str] = None
    engagement_type: str  # like, comment
    our_content: Optional[str] = None
    engagement_id: Optional[str] = None
    status: str = "completed"  # completed, failed
    engaged_at: Optional[datetime] = None
    response_data: Dict[str, Any] = Field(default_factory=dict)
    ai_generated: bool = True
    created_at: Optional[datetime] = None
