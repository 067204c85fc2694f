"""Supabase database client."""
import asyncio
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from uuid import UUID
from supabase import create_client, Client
from loguru import logger

from authority_pilot.config import settings
from authority_pilot.database.models import (
    Profile, VoiceProfile, ContentPost, LinkedInAccount,
    LinkedInPostRecord, LinkedInEngagement, SystemAlert, AuthUser
)

# Tables holding per-user rows that an account reset wipes
USER_DATA_TABLES = [
    "voice_profiles",
    "linkedin_accounts",
    "linkedin_posts",
    "linkedin_engagements",
    "content_posts",
    "oauth_states",
]


class DatabaseClient:
    """Supabase database client wrapper."""

    def __init__(self):
        """Prepare client; the connection is created on first use."""
        self._client: Optional[Client] = None
        self._admin_client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Supabase client using the anon key."""
        if self._client is None:
            self._client = create_client(settings.supabase_url, settings.supabase_key)
            logger.info("Supabase client initialized")
        return self._client

    @property
    def admin_client(self) -> Client:
        """Supabase client using the service role key (falls back to anon key)."""
        if self._admin_client is None:
            key = settings.supabase_service_role_key or settings.supabase_key
            if not settings.supabase_service_role_key:
                logger.warning("No service role key configured, admin calls use the anon key")
            self._admin_client = create_client(settings.supabase_url, key)
        return self._admin_client

    # ==================== PROFILES ====================

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        """Get profile by user ID."""
        result = await asyncio.to_thread(
            lambda: self.client.table("profiles").select("*").eq("id", str(user_id)).execute()
        )
        if result.data:
            return Profile(**result.data[0])
        return None

    async def list_profiles(self, limit: int = 100) -> List[Profile]:
        """List profiles (used to build scheduler user activity)."""
        result = await asyncio.to_thread(
            lambda: self.client.table("profiles").select("*").limit(limit).execute()
        )
        return [Profile(**item) for item in result.data]

    async def reset_profile(self, user_id: UUID) -> None:
        """Reset onboarding state for a profile."""
        updates = {
            "onboarding_completed": False,
            "full_name": None,
            "company": None,
            "role": None,
            "industry": None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        await asyncio.to_thread(
            lambda: self.admin_client.table("profiles").update(updates).eq("id", str(user_id)).execute()
        )
        logger.info(f"Reset profile for user: {user_id}")

    # ==================== VOICE PROFILES ====================

    async def get_voice_profile(self, user_id: UUID) -> Optional[VoiceProfile]:
        """Get voice profile for user."""
        result = await asyncio.to_thread(
            lambda: self.client.table("voice_profiles").select("*").eq(
                "user_id", str(user_id)
            ).execute()
        )
        if result.data:
            return VoiceProfile(**result.data[0])
        return None

    async def save_voice_profile(self, profile: VoiceProfile) -> VoiceProfile:
        """Save or update the voice profile (one per user)."""
        data = profile.model_dump(mode="json", exclude={"id", "created_at"}, exclude_none=True)

        existing = await asyncio.to_thread(
            lambda: self.client.table("voice_profiles").select("id").eq(
                "user_id", str(profile.user_id)
            ).execute()
        )

        if existing.data:
            result = await asyncio.to_thread(
                lambda: self.client.table("voice_profiles").update(data).eq(
                    "user_id", str(profile.user_id)
                ).execute()
            )
        else:
            result = await asyncio.to_thread(
                lambda: self.client.table("voice_profiles").insert(data).execute()
            )

        logger.info(f"Saved voice profile for user: {profile.user_id} (v{profile.training_version})")
        return VoiceProfile(**result.data[0])

    # ==================== CONTENT POSTS ====================

    async def create_content_post(self, post: ContentPost) -> ContentPost:
        """Create a content post."""
        data = post.model_dump(mode="json", exclude={"id", "created_at", "updated_at"}, exclude_none=True)
        result = await asyncio.to_thread(
            lambda: self.client.table("content_posts").insert(data).execute()
        )
        logger.info(f"Created content post: {result.data[0]['id']}")
        return ContentPost(**result.data[0])

    async def update_content_post(self, post_id: UUID, updates: Dict[str, Any]) -> Optional[ContentPost]:
        """Update fields of a content post."""
        updates = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        result = await asyncio.to_thread(
            lambda: self.client.table("content_posts").update(updates).eq("id", str(post_id)).execute()
        )
        if result.data:
            return ContentPost(**result.data[0])
        return None

    async def list_content_posts(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        limit: int = 20
    ) -> List[ContentPost]:
        """List content posts for user, newest first."""
        def query():
            q = self.client.table("content_posts").select("*").eq("user_id", str(user_id))
            if status:
                q = q.eq("status", status)
            return q.order("created_at", desc=True).limit(limit).execute()

        result = await asyncio.to_thread(query)
        return [ContentPost(**item) for item in result.data]

    # ==================== LINKEDIN ACCOUNTS ====================

    async def get_active_linkedin_account(self, user_id: UUID) -> Optional[LinkedInAccount]:
        """Get the most recently connected active LinkedIn account."""
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_accounts").select("*").eq(
                "user_id", str(user_id)
            ).eq("is_active", True).order("connected_at", desc=True).limit(1).execute()
        )
        if result.data:
            return LinkedInAccount(**result.data[0])
        return None

    async def update_linkedin_account(self, account_id: UUID, updates: Dict[str, Any]) -> Optional[LinkedInAccount]:
        """Update fields of a linkedin_accounts row."""
        updates = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_accounts").update(updates).eq("id", str(account_id)).execute()
        )
        if result.data:
            return LinkedInAccount(**result.data[0])
        return None

    # ==================== LINKEDIN POSTS ====================

    async def create_linkedin_post(self, post: LinkedInPostRecord) -> LinkedInPostRecord:
        """Insert a linkedin_posts row."""
        data = post.model_dump(mode="json", exclude={"id", "created_at", "updated_at"}, exclude_none=True)
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_posts").insert(data).execute()
        )
        logger.info(f"Created LinkedIn post record ({post.status}): {result.data[0]['id']}")
        return LinkedInPostRecord(**result.data[0])

    async def update_linkedin_post(self, post_id: UUID, updates: Dict[str, Any]) -> Optional[LinkedInPostRecord]:
        """Update fields of a linkedin_posts row."""
        updates = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_posts").update(updates).eq("id", str(post_id)).execute()
        )
        if result.data:
            return LinkedInPostRecord(**result.data[0])
        return None

    async def list_linkedin_posts(
        self,
        user_id: UUID,
        limit: int = 20,
        status: Optional[str] = None
    ) -> List[LinkedInPostRecord]:
        """List LinkedIn posts for user, newest first."""
        def query():
            q = self.client.table("linkedin_posts").select("*").eq("user_id", str(user_id))
            if status:
                q = q.eq("status", status)
            return q.order("created_at", desc=True).limit(limit).execute()

        result = await asyncio.to_thread(query)
        return [LinkedInPostRecord(**item) for item in result.data]

    async def get_due_scheduled_posts(self, now: datetime) -> List[LinkedInPostRecord]:
        """Get scheduled posts whose publish time has passed."""
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_posts").select("*").eq(
                "status", "scheduled"
            ).lte("scheduled_for", now.isoformat()).order("scheduled_for").execute()
        )
        return [LinkedInPostRecord(**item) for item in result.data]

    async def list_published_linkedin_posts(self, limit: int = 50) -> List[LinkedInPostRecord]:
        """Get recently published posts across all users."""
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_posts").select("*").eq(
                "status", "published"
            ).order("published_at", desc=True).limit(limit).execute()
        )
        return [LinkedInPostRecord(**item) for item in result.data]

    # ==================== LINKEDIN ENGAGEMENTS ====================

    async def create_linkedin_engagement(self, engagement: LinkedInEngagement) -> LinkedInEngagement:
        """Insert a linkedin_engagements row."""
        data = engagement.model_dump(mode="json", exclude={"id", "created_at"}, exclude_none=True)
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_engagements").insert(data).execute()
        )
        logger.info(f"Recorded LinkedIn {engagement.engagement_type} on {engagement.linkedin_post_id}")
        return LinkedInEngagement(**result.data[0])

    async def list_engaged_post_ids(self, user_id: UUID, limit: int = 200) -> List[str]:
        """LinkedIn post ids the user already engaged with, newest first."""
        result = await asyncio.to_thread(
            lambda: self.client.table("linkedin_engagements").select("linkedin_post_id").eq(
                "user_id", str(user_id)
            ).order("created_at", desc=True).limit(limit).execute()
        )
        return [item["linkedin_post_id"] for item in result.data]

    # ==================== SYSTEM ALERTS ====================

    async def create_system_alert(self, alert: SystemAlert) -> None:
        """Insert a system alert."""
        data = alert.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        await asyncio.to_thread(
            lambda: self.client.table("system_alerts").insert(data).execute()
        )
        logger.info(f"Stored system alert: {alert.message}")

    # ==================== TABLE CHECKS ====================

    async def check_table(self, table: str) -> bool:
        """Probe a table with a single-row select."""
        try:
            await asyncio.to_thread(
                lambda: self.client.table(table).select("*").limit(1).execute()
            )
            return True
        except Exception as e:
            logger.warning(f"Table check failed for {table}: {e}")
            return False

    # ==================== ACCOUNT RESET ====================

    async def delete_user_rows(self, table: str, user_id: UUID) -> None:
        """Delete every row owned by user in the given table."""
        await asyncio.to_thread(
            lambda: self.admin_client.table(table).delete().eq("user_id", str(user_id)).execute()
        )
        logger.info(f"Deleted {table} rows for user: {user_id}")

    async def find_auth_user_by_email(self, email: str) -> Optional[AuthUser]:
        """Find a Supabase auth user by email (admin API)."""
        users = await asyncio.to_thread(
            lambda: self.admin_client.auth.admin.list_users()
        )
        for user in users:
            if user.email and user.email.lower() == email.lower():
                return AuthUser(id=user.id, email=user.email)
        return None

    # ==================== AUTH ====================

    async def get_user_from_token(self, access_token: str) -> Optional[AuthUser]:
        """Resolve the user owning a Supabase access token."""
        user_response = await asyncio.to_thread(
            lambda: self.client.auth.get_user(access_token)
        )
        if not user_response or not user_response.user:
            return None
        user = user_response.user
        return AuthUser(id=user.id, email=user.email)


# Global database client instance
db = DatabaseClient()
