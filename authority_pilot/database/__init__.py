"""Database module."""
from authority_pilot.database.client import DatabaseClient, db, USER_DATA_TABLES
from authority_pilot.database.models import (
    Profile,
    VoiceProfile,
    ContentPost,
    LinkedInAccount,
    LinkedInPostRecord,
    LinkedInEngagement,
    OAuthState,
    SystemAlert,
    AuthUser,
)

__all__ = [
    "DatabaseClient",
    "db",
    "USER_DATA_TABLES",
    "Profile",
    "VoiceProfile",
    "ContentPost",
    "LinkedInAccount",
    "LinkedInPostRecord",
    "LinkedInEngagement",
    "OAuthState",
    "SystemAlert",
    "AuthUser",
]
