"""In-process message bus between agents."""
import inspect
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel

BROADCAST = "broadcast"

MessageHandler = Callable[["AgentMessage"], Union[None, Awaitable[None]]]


class AgentMessage(APIModel):
    """Message exchanged between agents."""
    id: str = Field(default_factory=lambda: f"msg_{uuid4().hex[:12]}")
    from_agent: str
    to_agent: str = BROADCAST
    type: str
    priority: str = "medium"
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CommunicationBus:
    """Routes messages to subscribed agents and keeps a bounded history."""

    def __init__(self, history_size: int = 500):
        self._subscribers: Dict[str, List[MessageHandler]] = {}
        self._history: Deque[AgentMessage] = deque(maxlen=history_size)

    def subscribe(self, agent_id: str, handler: MessageHandler) -> None:
        """Register a handler (sync or async) for messages addressed to agent_id."""
        self._subscribers.setdefault(agent_id, []).append(handler)
        logger.debug(f"Agent {agent_id} subscribed to communication bus")

    def unsubscribe(self, agent_id: str) -> None:
        self._subscribers.pop(agent_id, None)

    async def send_message(self, message: AgentMessage) -> int:
        """
        Deliver a message.

        Args:
            message: Message to deliver; ``to_agent="broadcast"`` reaches everyone

        Returns:
            Number of handlers that received the message
        """
        self._history.append(message)

        if message.to_agent == BROADCAST:
            handlers = [h for hs in self._subscribers.values() for h in hs]
        else:
            handlers = list(self._subscribers.get(message.to_agent, []))

        delivered = 0
        for handler in handlers:
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"Handler failed for message {message.id} ({message.type}): {e}", exc_info=True)

        logger.debug(f"Message {message.type} from {message.from_agent} to {message.to_agent}: {delivered} handler(s)")
        return delivered

    def get_history(self, agent_id: Optional[str] = None, limit: int = 50) -> List[AgentMessage]:
        """Most recent messages, optionally filtered by sender or recipient."""
        messages = [
            m for m in self._history
            if agent_id is None or agent_id in (m.from_agent, m.to_agent)
        ]
        return messages[-limit:]


# Global communication bus
communication_bus = CommunicationBus()
