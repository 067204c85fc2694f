"""Strategy agent: picks a weekly content focus for a user."""
from typing import Any, Dict

from loguru import logger

from authority_pilot.agents.base import BaseAgent, get_current_context
from authority_pilot.database.models import Profile, VoiceProfile


class StrategyAgent(BaseAgent):
    """Plans the coming week's positioning from the profile and voice."""

    def __init__(self):
        super().__init__("StrategyPlanner")

    async def process(self, profile: Profile, voice_profile: VoiceProfile) -> Dict[str, Any]:
        return await self.plan_week(profile, voice_profile)

    async def plan_week(self, profile: Profile, voice_profile: VoiceProfile) -> Dict[str, Any]:
        """
        Plan a weekly focus.

        Args:
            profile: User profile from onboarding
            voice_profile: Trained voice profile

        Returns:
            Dictionary with focus, themes and confidence
        """
        context = get_current_context()
        key_messages = voice_profile.key_messages or []
        default = {
            "focus": key_messages[0] if key_messages else f"Thought leadership in {profile.industry or 'your industry'}",
            "themes": key_messages[:3],
            "confidence": 0.4,
        }

        system_prompt = """You are a LinkedIn personal-brand strategist planning one week of content.

Respond with JSON:
{"focus": "one sentence weekly focus", "themes": ["3 content themes"], "confidence": 0.0-1.0}"""

        user_prompt = f"""{context['context_prompt']}

Role: {profile.role or 'professional'} at {profile.company or 'their company'}
Industry: {profile.industry or 'unknown'}
Key messages: {', '.join(key_messages) or 'none yet'}
Topics of interest: {', '.join(profile.preferences.get('topics', [])) or 'none given'}

Choose the focus for the week starting {context['current_date']}."""

        plan = await self.call_openai_json(system_prompt, user_prompt, default=default, temperature=0.5)
        if not isinstance(plan, dict) or not plan.get("focus"):
            logger.warning(f"[{self.name}] Using default weekly focus for {profile.id}")
            return default
        return {
            "focus": plan["focus"],
            "themes": plan.get("themes") or [],
            "confidence": float(plan.get("confidence", 0.6)),
        }


# Global strategy agent
strategy_agent = StrategyAgent()
