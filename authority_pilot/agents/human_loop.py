"""Human-in-the-loop: feedback requests, validation tasks and collaborative sessions."""
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator
from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent
from authority_pilot.agents.communication import AgentMessage, communication_bus
from authority_pilot.errors import InvalidRequestError, NotFoundError

HUMAN_LOOP_AGENT = "human_in_the_loop"
DECISIONS = {"approve": "approved", "modify": "modify", "reject": "rejected"}
TASK_TYPES = ("content_approval", "strategy_review", "learning_validation", "decision_confirmation")
SESSION_TYPES = ("content_creation", "strategy_planning", "problem_solving", "learning_review")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def is_quiet_time(start: str, end: str, tz_name: str, now: Optional[datetime] = None) -> bool:
    """Whether ``now`` falls in the [start, end) HH:MM window in tz_name; windows may wrap midnight."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name}, using UTC for quiet hours")
        tz = ZoneInfo("UTC")
    local = (now or _now()).astimezone(tz).time().replace(second=0, microsecond=0)
    start_t, end_t = _parse_hhmm(start), _parse_hhmm(end)
    if start_t <= end_t:
        return start_t <= local < end_t
    return local >= start_t or local < end_t


def default_feedback_content(target: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "question": f"Please review this {target.get('type', 'item')}: {target.get('description', '')}",
        "options": [
            {"id": "approve", "label": "Approve", "value": "approved", "description": "Proceed as proposed"},
            {"id": "reject", "label": "Reject", "value": "rejected", "description": "Do not proceed"},
        ],
        "freeformAllowed": True,
        "context": "Review requested",
        "rationale": "Human oversight required",
        "impact": {"scope": "immediate", "magnitude": "medium", "areas": [], "reversibility": "reversible"},
    }


class QuietHours(APIModel):
    enabled: bool = False
    start: str = "22:00"
    end: str = "07:00"
    timezone: str = "UTC"

    @field_validator("start", "end")
    @classmethod
    def check_hhmm(cls, value: str) -> str:
        try:
            _parse_hhmm(value)
        except ValueError:
            raise ValueError(f"Expected HH:MM, got {value!r}")
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value


class AutoApprove(APIModel):
    low_risk_actions: bool = False
    trusted_domains: List[str] = Field(default_factory=list)
    confidence_threshold: float = 0.9


class InterruptionPreferences(APIModel):
    """How and when a user may be interrupted."""
    user_id: str
    max_per_hour: int = 5
    max_per_day: int = 20
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    auto_approve: AutoApprove = Field(default_factory=AutoApprove)


class HumanResponse(APIModel):
    selected_option: Optional[str] = None
    freeform_input: Optional[str] = None
    confidence: float = 0.8
    reasoning: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)
    duration: float = 0.0


class HumanFeedback(APIModel):
    id: str = Field(default_factory=lambda: f"feedback_{uuid4().hex[:12]}")
    user_id: str
    agent_id: str
    type: str
    target: Dict[str, Any]
    feedback: Dict[str, Any]
    urgency: str = "medium"
    status: str = "pending"  # pending, acknowledged, applied, dismissed
    timestamp: datetime = Field(default_factory=_now)
    snoozed_until: Optional[datetime] = None
    response: Optional[HumanResponse] = None


class ValidationTask(APIModel):
    id: str = Field(default_factory=lambda: f"validation_{uuid4().hex[:12]}")
    type: str
    title: str
    description: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    required_by: datetime
    estimated_time: int = 15
    complexity: str = "moderate"
    assigned_to: str
    delegated_from: Optional[str] = None
    status: str = "pending"  # pending, in_progress, completed, expired
    created_at: datetime = Field(default_factory=_now)


class CollaborativeSession(APIModel):
    id: str = Field(default_factory=lambda: f"session_{uuid4().hex[:12]}")
    type: str
    objective: str
    humans: List[str] = Field(default_factory=list)
    agents: List[str] = Field(default_factory=list)
    status: str = "scheduled"
    outcomes: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)


class HumanInTheLoopSystem(BaseAgent):
    """Decides when to involve a human and routes their decisions back to agents."""

    def __init__(self):
        super().__init__("HumanInTheLoop")
        self.feedback_queue: Dict[str, List[HumanFeedback]] = {}
        self.validation_tasks: Dict[str, List[ValidationTask]] = {}
        self.sessions: Dict[str, CollaborativeSession] = {}
        self.preferences: Dict[str, InterruptionPreferences] = {}
        self.response_history: Dict[str, List[HumanResponse]] = {}

    async def process(self, user_id: str, agent_id: str, target: Dict[str, Any],
                      urgency: str = "medium") -> HumanFeedback:
        return await self.request_human_input(user_id, agent_id, target, urgency)

    def get_preferences(self, user_id: str) -> InterruptionPreferences:
        if user_id not in self.preferences:
            self.preferences[user_id] = InterruptionPreferences(user_id=user_id)
        return self.preferences[user_id]

    # ==================== INTERRUPTIONS ====================

    def is_low_risk(self, target: Dict[str, Any], prefs: InterruptionPreferences) -> bool:
        if target.get("type") in prefs.auto_approve.trusted_domains:
            return True
        confidence = target.get("confidence")
        return confidence is not None and float(confidence) >= prefs.auto_approve.confidence_threshold

    def should_interrupt(self, user_id: str, target: Dict[str, Any], urgency: str,
                         now: Optional[datetime] = None) -> bool:
        now = now or _now()
        prefs = self.get_preferences(user_id)
        quiet = prefs.quiet_hours
        if quiet.enabled and is_quiet_time(quiet.start, quiet.end, quiet.timezone, now):
            return urgency == "critical"

        asked = [f.timestamp for f in self.feedback_queue.get(user_id, []) if not f.id.startswith("auto_")]
        if sum(1 for t in asked if t >= now - timedelta(hours=1)) >= prefs.max_per_hour:
            return urgency == "critical"
        if sum(1 for t in asked if t >= now - timedelta(days=1)) >= prefs.max_per_day:
            return urgency == "critical"

        if prefs.auto_approve.low_risk_actions and self.is_low_risk(target, prefs):
            return False
        return True

    async def _notify_agent(self, feedback: HumanFeedback, decision: str, **extra: Any) -> None:
        await communication_bus.send_message(AgentMessage(
            from_agent=HUMAN_LOOP_AGENT,
            to_agent=feedback.agent_id,
            type="human_feedback",
            priority="high",
            payload={
                "feedbackId": feedback.id,
                "decision": decision,
                "target": feedback.target,
                "humanResponse": feedback.response.model_dump(by_alias=True, mode="json") if feedback.response else None,
                **extra,
            }
        ))

    async def request_human_input(self, user_id: str, agent_id: str, target: Dict[str, Any],
                                  urgency: str = "medium") -> HumanFeedback:
        """
        Ask a user to review something an agent wants to do.

        Args:
            user_id: User to ask
            agent_id: Agent waiting for the decision
            target: Dictionary with type, id, description and optional confidence
            urgency: low, medium, high or critical

        Returns:
            The queued feedback request, or an auto-approved one
        """
        logger.info(f"[{self.name}] Input requested from {user_id} for {target.get('type')}: {target.get('description')}")

        if not self.should_interrupt(user_id, target, urgency):
            feedback = HumanFeedback(
                id=f"auto_{uuid4().hex[:12]}",
                user_id=user_id,
                agent_id=agent_id,
                type="approval",
                target=target,
                feedback=default_feedback_content(target),
                urgency="low",
                status="applied",
                response=HumanResponse(selected_option="approve", confidence=0.9, duration=0)
            )
            await self._notify_agent(feedback, "approved")
            logger.info(f"[{self.name}] Auto-approved {target.get('type')} for {user_id}")
            return feedback

        feedback = HumanFeedback(
            user_id=user_id,
            agent_id=agent_id,
            type="approval" if target.get("type") == "content" else "validation",
            target=target,
            feedback=await self.generate_feedback_content(target, urgency),
            urgency=urgency
        )
        self.feedback_queue.setdefault(user_id, []).append(feedback)
        logger.info(f"[{self.name}] Feedback request {feedback.id} queued for {user_id}")
        return feedback

    async def generate_feedback_content(self, target: Dict[str, Any], urgency: str) -> Dict[str, Any]:
        default = default_feedback_content(target)
        system_prompt = """You are a human-AI collaboration expert. Write a clear, actionable feedback
request that lets a busy professional decide quickly.

Respond with JSON:
{
  "question": "...",
  "options": [{"id": "approve|modify|reject", "label": "...", "value": "...", "description": "..."}],
  "freeformAllowed": true,
  "context": "...",
  "rationale": "...",
  "impact": {"scope": "immediate|short_term|long_term", "magnitude": "low|medium|high|critical",
             "areas": ["..."], "reversibility": "reversible|partially_reversible|irreversible"}
}"""
        user_prompt = f"""Target type: {target.get('type')}
Description: {target.get('description')}
Current value: {target.get('current_value', target.get('currentValue', ''))}
Urgency: {urgency}"""

        content = await self.call_openai_json(system_prompt, user_prompt, default=None, temperature=0.3, max_tokens=1200)
        if not isinstance(content, dict):
            return default
        return {
            "question": content.get("question") or f"Please review this {target.get('type', 'item')}",
            "options": content.get("options") or default["options"],
            "freeformAllowed": content.get("freeformAllowed", True) is not False,
            "context": content.get("context", ""),
            "rationale": content.get("rationale", ""),
            "impact": content.get("impact") or default["impact"],
        }

    # ==================== RESPONSES ====================

    def _find_feedback(self, user_id: str, feedback_id: str) -> HumanFeedback:
        feedback = next((f for f in self.feedback_queue.get(user_id, []) if f.id == feedback_id), None)
        if not feedback:
            raise NotFoundError("Feedback not found")
        return feedback

    async def process_human_response(self, feedback_id: str, user_id: str,
                                     response: Dict[str, Any]) -> HumanFeedback:
        """Apply a user's answer to a pending feedback request."""
        feedback = self._find_feedback(user_id, feedback_id)
        now = _now()
        feedback.response = HumanResponse(
            selected_option=response.get("selected_option"),
            freeform_input=response.get("freeform_input"),
            confidence=response.get("confidence") or 0.8,
            reasoning=response.get("reasoning"),
            timestamp=now,
            duration=(now - feedback.timestamp).total_seconds()
        )
        feedback.status = "acknowledged"

        option = feedback.response.selected_option
        if option == "modify":
            await self._notify_agent(feedback, "modify", modifications=feedback.response.freeform_input or "")
        elif option == "reject":
            await self._notify_agent(feedback, "rejected", reasoning=feedback.response.reasoning)
        elif option in DECISIONS:
            await self._notify_agent(feedback, DECISIONS[option])
        else:
            logger.info(f"[{self.name}] Custom response recorded for {feedback.id}: {option}")

        feedback.status = "applied"
        self.response_history.setdefault(user_id, []).append(feedback.response)
        logger.info(f"[{self.name}] Response applied for {feedback.id} ({option})")
        return feedback

    async def snooze_feedback(self, user_id: str, feedback_id: str, until: datetime) -> HumanFeedback:
        feedback = self._find_feedback(user_id, feedback_id)
        feedback.snoozed_until = until
        return feedback

    async def get_feedback_queue(self, user_id: str) -> List[HumanFeedback]:
        now = _now()
        return [
            f for f in self.feedback_queue.get(user_id, [])
            if f.snoozed_until is None or f.snoozed_until <= now
        ]

    # ==================== TASKS & SESSIONS ====================

    def assess_complexity(self, task_type: str, data: Dict[str, Any]) -> str:
        if len(data) > 10 or task_type == "strategy_review":
            return "complex"
        if len(data) <= 3:
            return "simple"
        return "moderate"

    async def create_validation_task(self, user_id: str, type: str, title: str, data: Dict[str, Any],
                                     required_by: Optional[datetime] = None) -> ValidationTask:
        if type not in TASK_TYPES:
            raise InvalidRequestError(f"Invalid task type: {type}")
        task = ValidationTask(
            type=type,
            title=title,
            description=f"{type.replace('_', ' ').capitalize()}: {title}",
            data=data,
            required_by=required_by or _now() + timedelta(hours=24),
            complexity=self.assess_complexity(type, data),
            assigned_to=user_id
        )
        self.validation_tasks.setdefault(user_id, []).append(task)
        logger.info(f"[{self.name}] Validation task {task.id} created for {user_id}")
        return task

    async def get_validation_tasks(self, user_id: str) -> List[ValidationTask]:
        return list(self.validation_tasks.get(user_id, []))

    async def delegate_task(self, user_id: str, task_id: str, delegate_to: str) -> ValidationTask:
        """Move a task from one user's list to another's."""
        tasks = self.validation_tasks.get(user_id, [])
        task = next((t for t in tasks if t.id == task_id), None)
        if not task:
            raise NotFoundError("Task not found")
        tasks.remove(task)
        task.delegated_from = user_id
        task.assigned_to = delegate_to
        self.validation_tasks.setdefault(delegate_to, []).append(task)
        return task

    async def expire_overdue_tasks(self, now: Optional[datetime] = None) -> int:
        now = now or _now()
        expired = 0
        for tasks in self.validation_tasks.values():
            for task in tasks:
                if task.status == "pending" and task.required_by < now:
                    task.status = "expired"
                    expired += 1
        if expired:
            logger.info(f"[{self.name}] Expired {expired} overdue validation tasks")
        return expired

    async def start_collaborative_session(self, type: str, objective: str,
                                          participants: Dict[str, List[str]]) -> CollaborativeSession:
        if type not in SESSION_TYPES:
            raise InvalidRequestError(f"Invalid session type: {type}")
        session = CollaborativeSession(
            type=type,
            objective=objective,
            humans=list(participants.get("humans", [])),
            agents=list(participants.get("agents", []))
        )
        self.sessions[session.id] = session
        for agent_id in session.agents:
            await communication_bus.send_message(AgentMessage(
                from_agent=HUMAN_LOOP_AGENT,
                to_agent=agent_id,
                type="collaboration_invite",
                payload={"sessionId": session.id, "objective": objective}
            ))
        return session

    async def update_preferences(self, user_id: str, updates: Dict[str, Any]) -> InterruptionPreferences:
        current = self.get_preferences(user_id).model_dump()
        for key, value in updates.items():
            if isinstance(value, dict) and isinstance(current.get(key), dict):
                current[key] = {**current[key], **value}
            else:
                current[key] = value
        current["user_id"] = user_id
        try:
            prefs = InterruptionPreferences.model_validate(current)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid preferences: {e.errors()[0]['msg']}")
        self.preferences[user_id] = prefs
        return prefs

    async def get_user_dashboard(self, user_id: str) -> Dict[str, Any]:
        now = _now()
        feedback = self.feedback_queue.get(user_id, [])
        tasks = self.validation_tasks.get(user_id, [])
        sessions = [s for s in self.sessions.values() if user_id in s.humans]
        responses = self.response_history.get(user_id, [])
        approvals = sum(1 for r in responses if r.selected_option == "approve")

        activity = sorted(
            [{"type": "feedback", "id": f.id, "status": f.status, "timestamp": f.timestamp} for f in feedback]
            + [{"type": "task", "id": t.id, "status": t.status, "timestamp": t.created_at} for t in tasks],
            key=lambda item: item["timestamp"],
            reverse=True
        )[:10]

        return {
            "pendingFeedback": sum(1 for f in feedback if f.status == "pending"),
            "pendingTasks": sum(1 for t in tasks if t.status == "pending"),
            "activeSessions": sum(1 for s in sessions if s.status in ("scheduled", "active")),
            "recentActivity": activity,
            "upcomingDeadlines": [
                {"taskId": t.id, "title": t.title, "requiredBy": t.required_by}
                for t in sorted(tasks, key=lambda t: t.required_by)
                if t.status == "pending" and now <= t.required_by <= now + timedelta(hours=48)
            ],
            "preferences": self.get_preferences(user_id),
            "responseStats": {
                "totalResponses": len(responses),
                "averageResponseTime": sum(r.duration for r in responses) / len(responses) if responses else 0.0,
                "approvalRate": approvals / len(responses) if responses else 0.0,
            },
        }


# Global human-in-the-loop system
human_loop = HumanInTheLoopSystem()
