"""Engagement agent: likes and comments on relevant posts from the user's industry."""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Set

from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent, get_current_context
from authority_pilot.agents.learning_engine import Experience, learning_engine, word_similarity
from authority_pilot.database import db, LinkedInAccount, LinkedInEngagement, LinkedInPostRecord, Profile, VoiceProfile
from authority_pilot.linkedin.api import create_linkedin_api

FALLBACK_COMMENT = "Great insights! Thanks for sharing your perspective on this."
MAX_OPPORTUNITIES = 10
ENGAGEMENTS_PER_RUN = 3
COMMENT_THRESHOLD = 0.6


class EngagementOpportunity(APIModel):
    post_id: str
    author_id: str
    content: str
    relevance: float
    strategic_value: float
    authority_gain: float

    @property
    def score(self) -> float:
        return self.strategic_value + self.relevance + self.authority_gain / 10


def predict_engagement_outcome(opportunity: EngagementOpportunity, response: Dict[str, Any]) -> float:
    """Expected value of commenting; below the threshold a like is enough."""
    base = 0.8 if response.get("value_added") else 0.4
    return (base + opportunity.relevance * opportunity.strategic_value) / 2


class EngagementAgent(BaseAgent):
    """Finds posts worth engaging with and answers them in the user's voice."""

    def __init__(self):
        super().__init__("EngagementAgent")

    async def process(self, profile: Profile, voice_profile: VoiceProfile, account: LinkedInAccount,
                      posts: List[LinkedInPostRecord], profiles: Dict[str, Profile]) -> Dict[str, Any]:
        return await self.engage_for_user(profile, voice_profile, account, posts, profiles)

    def find_opportunities(self, profile: Profile, voice_profile: VoiceProfile,
                           posts: Iterable[LinkedInPostRecord], profiles: Dict[str, Profile],
                           already_engaged: Set[str]) -> List[EngagementOpportunity]:
        """Score other users' published posts and keep the best ten."""
        interests = " ".join(voice_profile.key_messages + (profile.preferences or {}).get("topics", []))
        opportunities = []
        for post in posts:
            if not post.linkedin_post_id or str(post.user_id) == str(profile.id):
                continue
            if post.linkedin_post_id in already_engaged:
                continue
            author = profiles.get(str(post.user_id))
            same_industry = bool(author and profile.industry and author.industry == profile.industry)
            metrics = post.performance_data or {}
            interactions = metrics.get("likes", 0) + 2 * metrics.get("comments", 0) + 3 * metrics.get("shares", 0)
            opportunities.append(EngagementOpportunity(
                post_id=post.linkedin_post_id,
                author_id=str(post.user_id),
                content=post.content,
                relevance=min(1.0, word_similarity(interests, post.content) * 5) if interests else 0.3,
                strategic_value=0.8 if same_industry else 0.4,
                authority_gain=min(10.0, interactions / 10)
            ))
        opportunities.sort(key=lambda o: o.score, reverse=True)
        return opportunities[:MAX_OPPORTUNITIES]

    async def craft_engagement_response(self, opportunity: EngagementOpportunity,
                                        voice_profile: VoiceProfile) -> Dict[str, Any]:
        context = get_current_context()
        default = {"comment": FALLBACK_COMMENT, "value_added": False}

        system_prompt = """You write thoughtful LinkedIn comments that add value to the conversation.
Match the commenter's voice. Never be salesy, keep it under 60 words.

Respond with JSON:
{"comment": "...", "value_added": true|false}"""

        user_prompt = f"""{context['context_prompt']}

Commenter's key messages: {', '.join(voice_profile.key_messages) or 'none'}
Commenter's tone: {voice_profile.tone_attributes}

Post:
{opportunity.content[:1500]}"""

        response = await self.call_openai_json(
            system_prompt, user_prompt, default=default, temperature=0.7, max_tokens=500
        )
        if not isinstance(response, dict) or not str(response.get("comment") or "").strip():
            return default
        return {"comment": response["comment"].strip(), "value_added": bool(response.get("value_added"))}

    async def engage_for_user(self, profile: Profile, voice_profile: VoiceProfile, account: LinkedInAccount,
                              posts: List[LinkedInPostRecord], profiles: Dict[str, Profile]) -> Dict[str, Any]:
        """
        Engage with the top opportunities for one user.

        Comments go out when the predicted value clears 0.6, likes otherwise.
        Every attempt is recorded in linkedin_engagements.
        """
        already_engaged = set(await db.list_engaged_post_ids(profile.id))
        opportunities = self.find_opportunities(profile, voice_profile, posts, profiles, already_engaged)
        if not opportunities:
            return {"opportunities": 0, "comments": 0, "likes": 0}

        api = create_linkedin_api(account)
        actor_id = account.account_id or (await api.get_profile())["id"]
        comments = likes = 0

        for opportunity in opportunities[:ENGAGEMENTS_PER_RUN]:
            response = await self.craft_engagement_response(opportunity, voice_profile)
            expected_value = predict_engagement_outcome(opportunity, response)

            if expected_value > COMMENT_THRESHOLD:
                engagement_type = "comment"
                done = await api.comment_on_post(opportunity.post_id, actor_id, response["comment"])
                comments += done
            else:
                engagement_type = "like"
                done = await api.like_post(opportunity.post_id, actor_id)
                likes += done

            await db.create_linkedin_engagement(LinkedInEngagement(
                user_id=profile.id,
                linkedin_post_id=opportunity.post_id,
                linkedin_post_author_id=opportunity.author_id,
                engagement_type=engagement_type,
                our_content=response["comment"] if engagement_type == "comment" else None,
                status="completed" if done else "failed",
                engaged_at=datetime.now(timezone.utc),
                response_data={"expectedValue": expected_value, "score": opportunity.score},
                ai_generated=engagement_type == "comment"
            ))
            await learning_engine.learn_from_experience("engagement_agent", Experience(
                category="engagement",
                objective="authority",
                action=f"{engagement_type} on industry post",
                context={"strategic_value": opportunity.strategic_value},
                results=[{"success": done, "value": expected_value}]
            ))

        logger.info(f"[{self.name}] {profile.id}: {comments} comments, {likes} likes from {len(opportunities)} opportunities")
        return {"opportunities": len(opportunities), "comments": comments, "likes": likes}


# Global engagement agent
engagement_agent = EngagementAgent()
