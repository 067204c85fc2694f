"""Content generation, voice training and LinkedIn posting routes (bearer-token protected)."""
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends
from pydantic import Field
from loguru import logger

from authority_pilot.agents import APIModel, voice_trainer
from authority_pilot.content import extract_hashtags, extract_mentions, generate_topic_prompt
from authority_pilot.database import db, AuthUser, ContentPost, LinkedInPostRecord, VoiceProfile
from authority_pilot.errors import APIError, AuthorityPilotError, LinkedInAPIError, TokenExpiredError
from authority_pilot.linkedin import create_linkedin_api, mark_content_published
from authority_pilot.web.auth import get_current_user

# Router for content APIs
content_router = APIRouter(prefix="/api", tags=["content"])

VOICE_FIELDS = (
    "tone_attributes", "vocabulary_preferences", "sentence_structure",
    "emoji_usage", "hashtag_style", "key_messages", "brand_personality",
)


class GenerateContentRequest(APIModel):
    topic: Optional[str] = None
    content_type: Literal["post", "article", "thread"] = "post"
    platform: Literal["linkedin", "twitter"] = "linkedin"
    custom_prompt: Optional[str] = None


class VoiceTrainingRequest(APIModel):
    writing_samples: List[Annotated[str, Field(min_length=10)]] = Field(min_length=3, max_length=10)


class LinkedInPostRequest(APIModel):
    content_post_id: Optional[UUID] = None
    text: str = Field(min_length=1, max_length=3000)
    visibility: Literal["PUBLIC", "CONNECTIONS", "LOGGED_IN_MEMBERS"] = "PUBLIC"
    scheduled_for: Optional[datetime] = None


# ==================== CONTENT ====================

@content_router.post("/content/generate")
async def generate_content(body: GenerateContentRequest, user: AuthUser = Depends(get_current_user)):
    """Generate a draft in the user's voice and store it."""
    voice_profile = await db.get_voice_profile(user.id)
    if not voice_profile:
        raise APIError(400, "Voice profile not found. Please complete voice training first.")

    prompt = body.custom_prompt or body.topic
    if not prompt:
        prompt = generate_topic_prompt(await db.get_profile(user.id))

    try:
        result = await voice_trainer.generate_content(prompt, voice_profile, body.content_type, body.platform)
    except AuthorityPilotError as e:
        logger.error(f"Content generation failed for user {user.id}: {e}")
        raise APIError(500, "Failed to generate content")
    text = result["content"]

    post = await db.create_content_post(ContentPost(
        user_id=user.id,
        content_type=body.content_type,
        platform=body.platform,
        status="draft",
        content={"text": text, "hashtags": extract_hashtags(text), "mentions": extract_mentions(text)},
        ai_generated=True,
        ai_confidence_score=result["confidence"],
        generation_prompt=prompt,
        voice_profile_version=voice_profile.training_version
    ))

    logger.info(f"Generated {body.content_type} for user {user.id}: {post.id}")
    return {
        "success": True,
        "data": {
            "content": text,
            "confidence": result["confidence"],
            "contentId": post.id,
            "platform": body.platform,
            "contentType": body.content_type,
        },
    }


# ==================== VOICE ====================

@content_router.post("/voice/train")
async def train_voice(body: VoiceTrainingRequest, user: AuthUser = Depends(get_current_user)):
    """Analyze writing samples and store the resulting voice profile."""
    analysis = await voice_trainer.analyze_writing_samples(body.writing_samples)
    existing = await db.get_voice_profile(user.id)

    voice_profile = await db.save_voice_profile(VoiceProfile(
        user_id=user.id,
        writing_samples=body.writing_samples,
        training_version=existing.training_version + 1 if existing else 1,
        last_trained_at=datetime.now(timezone.utc),
        **{field: analysis[field] for field in VOICE_FIELDS if field in analysis}
    ))
    return {
        "success": True,
        "data": {
            "voiceProfile": voice_profile,
            "message": "Voice profile updated successfully" if existing else "Voice profile created successfully",
        },
    }


@content_router.get("/voice/train")
async def get_voice_profile(user: AuthUser = Depends(get_current_user)):
    voice_profile = await db.get_voice_profile(user.id)
    if not voice_profile:
        return {"success": True, "data": None, "message": "No voice profile found"}
    return {"success": True, "data": voice_profile}


# ==================== LINKEDIN ====================

@content_router.post("/linkedin/post")
async def post_to_linkedin(body: LinkedInPostRequest, user: AuthUser = Depends(get_current_user)):
    """Publish now, or schedule when scheduledFor is in the future."""
    account = await db.get_active_linkedin_account(user.id)
    if not account:
        raise APIError(400, "LinkedIn account not connected")
    if account.is_expired():
        raise APIError(401, "LinkedIn token expired. Please reconnect your account.")

    now = datetime.now(timezone.utc)
    scheduled_for = body.scheduled_for
    if scheduled_for and scheduled_for.tzinfo is None:
        scheduled_for = scheduled_for.replace(tzinfo=timezone.utc)

    if scheduled_for and scheduled_for > now:
        post = await db.create_linkedin_post(LinkedInPostRecord(
            user_id=user.id,
            content_post_id=body.content_post_id,
            content=body.text,
            status="scheduled",
            scheduled_for=scheduled_for
        ))
        logger.info(f"Scheduled LinkedIn post {post.id} for {scheduled_for.isoformat()}")
        return {
            "success": True,
            "message": "Post scheduled successfully",
            "postId": post.id,
            "scheduledFor": scheduled_for,
        }

    try:
        result = await create_linkedin_api(account).create_post(body.text, body.visibility)
    except TokenExpiredError:
        raise APIError(401, "LinkedIn token expired. Please reconnect your account.")
    except (LinkedInAPIError, httpx.HTTPError) as e:
        logger.error(f"LinkedIn posting failed for user {user.id}: {e}")
        await db.create_linkedin_post(LinkedInPostRecord(
            user_id=user.id,
            content_post_id=body.content_post_id,
            content=body.text,
            status="failed",
            scheduled_for=scheduled_for
        ))
        raise APIError(500, "Failed to post to LinkedIn", details=str(e))

    published_at = datetime.now(timezone.utc)
    post_id = None
    try:
        post = await db.create_linkedin_post(LinkedInPostRecord(
            user_id=user.id,
            content_post_id=body.content_post_id,
            linkedin_post_id=result["id"],
            linkedin_activity_id=result["activity"],
            content=body.text,
            status="published",
            published_at=published_at,
            linkedin_url=result["share_url"]
        ))
        post_id = post.id
    except Exception as e:
        # The post is live on LinkedIn at this point
        logger.error(f"Published {result['id']} but failed to save the post record: {e}")

    if body.content_post_id:
        await mark_content_published(body.content_post_id, result, published_at)

    return {
        "success": True,
        "message": "Post published successfully",
        "linkedin": {"postId": result["id"], "url": result["share_url"]},
        "postId": post_id,
    }


@content_router.get("/linkedin/post")
async def list_linkedin_posts(limit: int = 20, status: Optional[str] = None,
                              user: AuthUser = Depends(get_current_user)):
    posts = await db.list_linkedin_posts(user.id, limit=limit, status=status)
    return {"success": True, "posts": posts}
