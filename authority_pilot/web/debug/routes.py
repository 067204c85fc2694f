"""Debug routes for inspecting and resetting an account."""
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from loguru import logger

from authority_pilot.config import settings
from authority_pilot.database import db, AuthUser, USER_DATA_TABLES
from authority_pilot.errors import APIError
from authority_pilot.web.auth import get_current_user

SCHEMA_TABLES = ["profiles"] + USER_DATA_TABLES


async def require_debug_enabled():
    """Dependency hiding the debug routes unless enabled in settings."""
    if not settings.debug_routes_enabled:
        raise APIError(404, "Not found")


# Router for debug APIs
debug_router = APIRouter(
    prefix="/api/debug",
    tags=["debug"],
    dependencies=[Depends(require_debug_enabled), Depends(get_current_user)]
)


class ResetAccountRequest(BaseModel):
    email: str


def can_reset(user: AuthUser, email: str) -> bool:
    """Users may reset their own account; admins may reset any."""
    caller = (user.email or "").lower()
    if not caller:
        return False
    return caller == email.strip().lower() or caller in {e.lower() for e in settings.admin_emails}


@debug_router.get("")
async def debug_account(user: AuthUser = Depends(get_current_user)):
    """Snapshot of the current user's stored state and a per-table schema check."""
    profile = await db.get_profile(user.id)
    voice_profile = await db.get_voice_profile(user.id)
    account = await db.get_active_linkedin_account(user.id)

    schema: Dict[str, str] = {}
    for table in SCHEMA_TABLES:
        schema[table] = "ok" if await db.check_table(table) else "error"

    return {
        "user": {"id": user.id, "email": user.email},
        "profile": {"exists": profile is not None, "data": profile},
        "voiceProfile": {"exists": voice_profile is not None},
        "linkedinAccount": {
            "exists": account is not None,
            "expired": account.is_expired() if account else None,
        },
        "schema": schema,
    }


@debug_router.post("/reset-account")
async def reset_account(body: ResetAccountRequest, user: AuthUser = Depends(get_current_user)):
    """Wipe a user's data so onboarding can start over."""
    if not can_reset(user, body.email):
        logger.warning(f"User {user.id} tried to reset the account of {body.email}")
        raise APIError(403, "Forbidden")

    target = await db.find_auth_user_by_email(body.email)
    if not target:
        raise APIError(404, "User not found")

    logger.warning(f"Resetting account {target.id} ({body.email})")
    await db.reset_profile(target.id)

    cleaned: Dict[str, str] = {}
    for table in USER_DATA_TABLES:
        try:
            await db.delete_user_rows(table, target.id)
            cleaned[table] = "ok"
        except Exception as e:
            logger.error(f"Reset of {table} failed for {target.id}: {e}")
            cleaned[table] = "error"

    return {
        "success": True,
        "message": "Account reset successfully. User can now go through onboarding again.",
        "userId": target.id,
        "cleaned": cleaned,
    }
