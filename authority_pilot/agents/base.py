"""Base agent class."""
import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional
from openai import OpenAI
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from loguru import logger

from authority_pilot.config import settings


class APIModel(BaseModel):
    """In-memory agent record, serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def get_current_context(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the date-awareness context shared by every prompt."""
    now = now or datetime.now()
    year = now.year
    quarter = (now.month - 1) // 3 + 1
    context_prompt = (
        f"You are operating in {now.strftime('%B %Y')} (Q{quarter} {year}). When creating content:\n"
        f"- Refer to {year} as \"this year\" and to {year - 1} as \"last year\"\n"
        f"- Reference recent developments and the current business climate\n"
        f"- Project forward into {year + 1} where relevant\n"
        f"- Never sound like you are writing from {year - 1}"
    )
    return {
        "current_date": now.date().isoformat(),
        "current_year": year,
        "current_quarter": f"Q{quarter} {year}",
        "context_prompt": context_prompt,
    }


class BaseAgent(ABC):
    """Base class for all AI agents."""

    def __init__(self, name: str):
        """
        Initialize base agent.

        Args:
            name: Name of the agent
        """
        self.name = name
        self.openai_client = OpenAI(api_key=settings.openai_api_key)
        logger.info(f"Initialized {name} agent")

    @abstractmethod
    async def process(self, *args, **kwargs) -> Any:
        """Process the agent's task."""
        pass

    async def call_openai(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        response_format: Optional[Dict[str, str]] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Call OpenAI API.

        Args:
            system_prompt: System message
            user_prompt: User message
            model: Model to use (defaults to settings.openai_model)
            temperature: Temperature for sampling
            response_format: Optional response format (e.g., {"type": "json_object"})
            max_tokens: Optional completion token limit

        Returns:
            Assistant's response
        """
        model = model or settings.openai_model
        logger.info(f"[{self.name}] Calling OpenAI ({model})")

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": temperature
        }

        if response_format:
            kwargs["response_format"] = response_format
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        # Run synchronous OpenAI call in thread pool to avoid blocking event loop
        response = await asyncio.to_thread(
            self.openai_client.chat.completions.create,
            **kwargs
        )

        result = response.choices[0].message.content or ""
        logger.debug(f"[{self.name}] Received response (length: {len(result)})")

        return result

    async def call_openai_json(
        self,
        system_prompt: str,
        user_prompt: str,
        default: Any,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None
    ) -> Any:
        """
        Call OpenAI in JSON mode and parse the response.

        Args:
            system_prompt: System message
            user_prompt: User message
            default: Value returned when the call or parsing fails
            temperature: Temperature for sampling
            max_tokens: Optional completion token limit

        Returns:
            Parsed JSON object, or ``default``
        """
        try:
            response = await self.call_openai(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                response_format={"type": "json_object"},
                max_tokens=max_tokens
            )
            return json.loads(response)
        except json.JSONDecodeError as e:
            logger.warning(f"[{self.name}] Failed to parse JSON response: {e}")
        except Exception as e:
            logger.error(f"[{self.name}] OpenAI call failed: {e}", exc_info=True)
        return default
