"""Automation engine: user-defined rules that chain agent actions."""
import asyncio
import copy
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import httpx
from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel
from authority_pilot.agents.communication import AgentMessage, communication_bus
from authority_pilot.agents.human_loop import human_loop
from authority_pilot.agents.voice_trainer import voice_trainer
from authority_pilot.database import db, ContentPost, LinkedInPostRecord
from authority_pilot.errors import InvalidRequestError, NotFoundError

AUTOMATION_AGENT = "automation_engine"
ACTION_TYPES = (
    "create_content", "send_message", "schedule_post", "trigger_workflow",
    "update_data", "send_notification", "api_call",
)
TRIGGER_TYPES = ("schedule", "event", "condition", "manual", "webhook")
OPERATORS = ("equals", "not_equals", "greater_than", "less_than", "contains", "in", "between")
MINUTES_SAVED_PER_EXECUTION = 5
MAX_WORKFLOW_DEPTH = 3
MIN_EXECUTIONS_FOR_OPTIMIZATION = 5
MAX_EXECUTION_HISTORY = 500
MAX_RULE_TIMEOUT = 600.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_field(path: str, *sources: Dict[str, Any]) -> Any:
    """Look up a dotted path in each source in turn; None when absent everywhere."""
    for source in sources:
        value: Any = source
        for part in path.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                break
        else:
            return value
    return None


def evaluate_condition(actual: Any, operator: str, expected: Any) -> bool:
    try:
        if operator == "equals":
            return actual == expected
        if operator == "not_equals":
            return actual != expected
        if operator == "greater_than":
            return actual is not None and actual > expected
        if operator == "less_than":
            return actual is not None and actual < expected
        if operator == "contains":
            return actual is not None and expected in actual
        if operator == "in":
            return actual in (expected or [])
        if operator == "between":
            low, high = expected
            return actual is not None and low <= actual <= high
    except (TypeError, ValueError) as e:
        logger.debug(f"Condition {operator} could not compare {actual!r} with {expected!r}: {e}")
        return False
    raise InvalidRequestError(f"Unknown condition operator: {operator}")


class RetryPolicy(APIModel):
    max_attempts: int = 3
    backoff_seconds: float = 5.0

    def total_backoff(self) -> float:
        """Seconds spent sleeping between attempts when every attempt fails."""
        return sum(self.backoff_seconds * attempt for attempt in range(1, max(1, self.max_attempts)))


class AutomationAction(APIModel):
    id: str = Field(default_factory=lambda: f"action_{uuid4().hex[:8]}")
    type: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)
    retry_policy: Optional[RetryPolicy] = None
    fallback_action: Optional["AutomationAction"] = None


class AutomationCondition(APIModel):
    field: str
    operator: str
    value: Any = None


class AutomationTrigger(APIModel):
    type: str = "manual"
    interval_minutes: Optional[int] = None
    event: Optional[str] = None


class AutomationConfig(APIModel):
    priority: str = "low"
    concurrency: int = 1
    timeout: float = 10.0  # seconds
    custom_metrics: List[str] = Field(default_factory=list)


class AutomationPerformance(APIModel):
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time: float = 0.0
    success_rate: float = 0.0
    last_executed: Optional[datetime] = None


class AutomationRule(APIModel):
    """Trigger, conditions and an ordered list of actions."""
    id: str = Field(default_factory=lambda: f"auto_{uuid4().hex[:12]}")
    user_id: str
    name: str
    description: str = ""
    category: str = "workflow"
    trigger: AutomationTrigger
    conditions: List[AutomationCondition] = Field(default_factory=list)
    actions: List[AutomationAction]
    config: AutomationConfig = Field(default_factory=AutomationConfig)
    performance: AutomationPerformance = Field(default_factory=AutomationPerformance)
    status: str = "draft"  # draft, active, paused, archived
    optimization_history: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ActionResult(APIModel):
    action_id: str
    action_type: str
    status: str  # success, failure, skipped
    output: Any = None
    attempts: int = 0
    notes: Optional[str] = None


class AutomationExecution(APIModel):
    id: str = Field(default_factory=lambda: f"exec_{uuid4().hex[:12]}")
    rule_id: str
    user_id: str
    status: str = "running"  # running, completed, failed, skipped
    dry_run: bool = False
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)
    results: List[ActionResult] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_now)
    ended_at: Optional[datetime] = None
    duration: Optional[float] = None


AUTOMATION_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "daily_linkedin_post",
        "name": "Daily LinkedIn Post",
        "description": "Write a post in your voice every day and schedule it for publishing.",
        "category": "content",
        "complexity": "simple",
        "customization": ["name", "topic", "interval_minutes", "delay_minutes"],
        "rule": {
            "name": "Daily LinkedIn Post",
            "category": "content",
            "trigger": {"type": "schedule", "interval_minutes": 1440},
            "actions": [
                {"id": "create_post", "type": "create_content",
                 "parameters": {"content_type": "post", "platform": "linkedin"}},
                {"id": "schedule_post", "type": "schedule_post", "depends_on": ["create_post"],
                 "parameters": {"delay_minutes": 60}},
            ],
        },
    },
    {
        "id": "content_approval_flow",
        "name": "Content With Approval",
        "description": "Draft a post and ask for approval before anything is scheduled.",
        "category": "content",
        "complexity": "intermediate",
        "customization": ["name", "topic"],
        "rule": {
            "name": "Content With Approval",
            "category": "content",
            "trigger": {"type": "manual"},
            "actions": [
                {"id": "create_post", "type": "create_content",
                 "parameters": {"content_type": "post", "platform": "linkedin"}},
                {"id": "request_approval", "type": "send_notification", "depends_on": ["create_post"],
                 "parameters": {"require_approval": True, "title": "Approve generated post"}},
            ],
        },
    },
    {
        "id": "weekly_engagement_digest",
        "name": "Weekly Engagement Digest",
        "description": "Remind the engagement agent to review your network once a week.",
        "category": "engagement",
        "complexity": "simple",
        "customization": ["name", "interval_minutes"],
        "rule": {
            "name": "Weekly Engagement Digest",
            "category": "engagement",
            "trigger": {"type": "schedule", "interval_minutes": 10080},
            "actions": [
                {"id": "notify_engagement", "type": "send_message",
                 "parameters": {"to": "engagement_agent", "message_type": "engagement_review"}},
            ],
        },
    },
]


class AdvancedAutomationEngine:
    """Creates, runs and tunes automation rules."""

    def __init__(self):
        self.rules: Dict[str, AutomationRule] = {}
        self.executions: Dict[str, AutomationExecution] = {}
        self.templates: Dict[str, Dict[str, Any]] = {t["id"]: t for t in AUTOMATION_TEMPLATES}
        logger.info("AdvancedAutomationEngine initialized")

    # ==================== RULES ====================

    def validate_rule_definition(self, definition: Dict[str, Any]) -> None:
        if not definition.get("name"):
            raise InvalidRequestError("Rule name is required")
        if not definition.get("trigger"):
            raise InvalidRequestError("Rule trigger is required")
        if not definition.get("actions"):
            raise InvalidRequestError("At least one action is required")

        trigger_type = definition["trigger"].get("type", "manual")
        if trigger_type not in TRIGGER_TYPES:
            raise InvalidRequestError(f"Invalid trigger type: {trigger_type}")
        for action in definition["actions"]:
            if action.get("type") not in ACTION_TYPES:
                raise InvalidRequestError(f"Invalid action type: {action.get('type')}")
        for condition in definition.get("conditions") or []:
            if condition.get("operator") not in OPERATORS:
                raise InvalidRequestError(f"Invalid condition operator: {condition.get('operator')}")

    def optimize_rule_configuration(self, rule: AutomationRule) -> AutomationConfig:
        action_count = len(rule.actions) or 1
        if action_count > 5 or len(rule.conditions) > 3:
            priority = "high"
        elif rule.trigger.type == "schedule" or action_count > 2:
            priority = "medium"
        else:
            priority = "low"

        metrics = ["execution_time", "success_rate"]
        if rule.category == "content":
            metrics += ["content_quality", "engagement_rate"]
        if rule.category == "engagement":
            metrics += ["response_rate", "relationship_building"]

        return AutomationConfig(
            priority=priority,
            concurrency=max(1, min(5, 10 // action_count)),
            timeout=float(max(10, min(120, action_count * 5))),
            custom_metrics=metrics
        )

    async def create_automation_rule(self, user_id: str, definition: Dict[str, Any]) -> AutomationRule:
        """
        Create a rule for a user.

        Args:
            user_id: Owner of the rule
            definition: name, trigger, actions, optional conditions, category,
                description and status ("active" to enable immediately)

        Returns:
            The created rule
        """
        self.validate_rule_definition(definition)

        rule = AutomationRule(
            user_id=user_id,
            name=definition["name"],
            description=definition.get("description", ""),
            category=definition.get("category", "workflow"),
            trigger=AutomationTrigger.model_validate(definition["trigger"]),
            conditions=[AutomationCondition.model_validate(c) for c in definition.get("conditions") or []],
            actions=[AutomationAction.model_validate(a) for a in definition["actions"]],
            status="active" if definition.get("status") == "active" else "draft"
        )
        rule.config = self.optimize_rule_configuration(rule)
        self.rules[rule.id] = rule

        logger.info(f"Automation rule created: {rule.id} ({rule.name}) for {user_id}")
        return rule

    def get_rule(self, rule_id: str) -> AutomationRule:
        rule = self.rules.get(rule_id)
        if not rule:
            raise NotFoundError(f"Automation rule {rule_id} not found")
        return rule

    async def set_rule_paused(self, rule_id: str, paused: bool) -> AutomationRule:
        rule = self.get_rule(rule_id)
        rule.status = "paused" if paused else "active"
        rule.updated_at = _now()
        logger.info(f"Automation rule {rule_id} {'paused' if paused else 'activated'}")
        return rule

    async def delete_rule(self, rule_id: str) -> None:
        self.get_rule(rule_id)
        del self.rules[rule_id]
        logger.info(f"Automation rule deleted: {rule_id}")

    # ==================== EXECUTION ====================

    async def execute_automation_rule(self, rule_id: str, trigger_data: Optional[Dict[str, Any]] = None,
                                      context: Optional[Dict[str, Any]] = None) -> str:
        """
        Run a rule once.

        ``trigger_data["dry_run"]`` simulates every action without side
        effects and is allowed on draft rules.

        Returns:
            Execution ID
        """
        trigger_data = trigger_data or {}
        context = context or {}
        rule = self.get_rule(rule_id)
        dry_run = bool(trigger_data.get("dry_run"))
        if rule.status != "active" and not (dry_run and rule.status == "draft"):
            raise InvalidRequestError(f"Automation rule {rule_id} is not active")

        execution = AutomationExecution(
            rule_id=rule_id,
            user_id=context.get("user_id") or rule.user_id,
            dry_run=dry_run,
            trigger_data=trigger_data
        )
        self._record_execution(execution)
        logger.info(f"Executing automation rule {rule_id} ({execution.id}{', dry run' if dry_run else ''})")

        started = time.monotonic()
        conditions_met = all(
            evaluate_condition(resolve_field(c.field, trigger_data, context), c.operator, c.value)
            for c in rule.conditions
        )

        if not conditions_met:
            execution.status = "skipped"
            logger.info(f"Automation rule conditions not met: {rule_id}")
        else:
            try:
                await asyncio.wait_for(
                    self._run_actions(rule, execution, context),
                    timeout=rule.config.timeout
                )
                failed = any(r.status == "failure" for r in execution.results)
                execution.status = "failed" if failed else "completed"
            except asyncio.TimeoutError:
                execution.status = "failed"
                execution.errors.append("timeout")
                logger.error(f"Automation rule {rule_id} timed out after {rule.config.timeout}s")

        execution.ended_at = _now()
        execution.duration = time.monotonic() - started

        if not dry_run and execution.status != "skipped":
            self._update_performance(rule, execution)
        return execution.id

    def _record_execution(self, execution: AutomationExecution) -> None:
        self.executions[execution.id] = execution
        while len(self.executions) > MAX_EXECUTION_HISTORY:
            del self.executions[next(iter(self.executions))]

    def get_execution(self, execution_id: str) -> AutomationExecution:
        execution = self.executions.get(execution_id)
        if not execution:
            raise NotFoundError(f"Execution {execution_id} not found")
        return execution

    async def _run_actions(self, rule: AutomationRule, execution: AutomationExecution,
                           context: Dict[str, Any]) -> None:
        completed = set()
        for action in rule.actions:
            missing = [d for d in action.depends_on if d not in completed]
            if missing:
                execution.results.append(ActionResult(
                    action_id=action.id, action_type=action.type, status="skipped",
                    notes=f"Dependencies not met: {', '.join(missing)}"
                ))
                continue

            result = await self._run_with_retry(action, execution, context)
            execution.results.append(result)
            if result.status == "success":
                completed.add(action.id)

    async def _run_with_retry(self, action: AutomationAction, execution: AutomationExecution,
                              context: Dict[str, Any]) -> ActionResult:
        policy = action.retry_policy or RetryPolicy(max_attempts=1, backoff_seconds=0)
        last_error = ""
        for attempt in range(1, max(1, policy.max_attempts) + 1):
            try:
                output = await self.execute_action(action, execution, context)
                return ActionResult(
                    action_id=action.id, action_type=action.type, status="success",
                    output=output, attempts=attempt
                )
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Action {action.id} ({action.type}) attempt {attempt} failed: {e}")
                if attempt < policy.max_attempts and policy.backoff_seconds:
                    await asyncio.sleep(policy.backoff_seconds * attempt)

        if action.fallback_action:
            try:
                output = await self.execute_action(action.fallback_action, execution, context)
                return ActionResult(
                    action_id=action.id, action_type=action.type, status="success",
                    output=output, attempts=policy.max_attempts, notes="Fallback action used"
                )
            except Exception as e:
                logger.error(f"Fallback for action {action.id} also failed: {e}", exc_info=True)
                last_error = str(e)

        execution.errors.append(f"{action.id}: {last_error}")
        return ActionResult(
            action_id=action.id, action_type=action.type, status="failure",
            attempts=policy.max_attempts, notes=last_error
        )

    async def execute_action(self, action: AutomationAction, execution: AutomationExecution,
                             context: Dict[str, Any]) -> Any:
        """Run one action and return its output."""
        if execution.dry_run:
            return {"simulated": True, "type": action.type, "parameters": action.parameters}

        params = action.parameters
        user_id = execution.user_id

        if action.type == "create_content":
            voice_profile = await db.get_voice_profile(user_id)
            if not voice_profile:
                raise InvalidRequestError("Voice profile not found")
            prompt = params.get("prompt") or params.get("topic") or execution.trigger_data.get("topic")
            if not prompt:
                raise InvalidRequestError("create_content needs a prompt or topic")
            content_type = params.get("content_type", "post")
            platform = params.get("platform", "linkedin")
            generated = await voice_trainer.generate_content(prompt, voice_profile, content_type, platform)
            post = await db.create_content_post(ContentPost(
                user_id=user_id,
                content_type=content_type,
                platform=platform,
                status="draft",
                content={"text": generated["content"]},
                ai_generated=True,
                ai_confidence_score=generated["confidence"],
                generation_prompt=prompt,
                voice_profile_version=voice_profile.training_version
            ))
            execution.variables["content"] = generated["content"]
            execution.variables["content_post_id"] = str(post.id) if post.id else None
            return {"contentId": execution.variables["content_post_id"], "confidence": generated["confidence"]}

        if action.type == "send_message":
            delivered = await communication_bus.send_message(AgentMessage(
                from_agent=AUTOMATION_AGENT,
                to_agent=params.get("to", "broadcast"),
                type=params.get("message_type", "automation"),
                priority=params.get("priority", "medium"),
                payload={**params.get("payload", {}), "ruleId": execution.rule_id, "executionId": execution.id}
            ))
            return {"delivered": delivered}

        if action.type == "schedule_post":
            text = params.get("content") or execution.variables.get("content")
            if not text:
                raise InvalidRequestError("schedule_post needs content")
            scheduled_for = _now() + timedelta(minutes=params.get("delay_minutes", 60))
            content_post_id = params.get("content_post_id") or execution.variables.get("content_post_id")
            post = await db.create_linkedin_post(LinkedInPostRecord(
                user_id=user_id,
                content_post_id=content_post_id,
                content=text,
                status="scheduled",
                scheduled_for=scheduled_for
            ))
            return {"postId": str(post.id) if post.id else None, "scheduledFor": scheduled_for.isoformat()}

        if action.type == "trigger_workflow":
            depth = context.get("depth", 0)
            if depth >= MAX_WORKFLOW_DEPTH:
                raise InvalidRequestError("Workflow nesting limit reached")
            target = params.get("rule_id")
            if not target:
                raise InvalidRequestError("trigger_workflow needs rule_id")
            execution_id = await self.execute_automation_rule(
                target, params.get("inputs", {}), {**context, "user_id": user_id, "depth": depth + 1}
            )
            return {"executionId": execution_id, "ruleId": target}

        if action.type == "update_data":
            execution.variables.update(params.get("values", {}))
            return {"variables": sorted(execution.variables)}

        if action.type == "send_notification":
            if params.get("require_approval"):
                task = await human_loop.create_validation_task(
                    user_id,
                    params.get("task_type", "content_approval"),
                    params.get("title", "Automation review"),
                    {"ruleId": execution.rule_id, **execution.variables}
                )
                return {"taskId": task.id}
            delivered = await communication_bus.send_message(AgentMessage(
                from_agent=AUTOMATION_AGENT,
                type="notification",
                payload={"userId": user_id, "message": params.get("message", ""), "ruleId": execution.rule_id}
            ))
            return {"delivered": delivered}

        if action.type == "api_call":
            async with httpx.AsyncClient(timeout=params.get("timeout", 30.0)) as client:
                response = await client.request(
                    params.get("method", "GET"),
                    params["url"],
                    json=params.get("body"),
                    headers=params.get("headers")
                )
                response.raise_for_status()
            try:
                body = response.json()
            except ValueError:
                body = response.text
            return {"statusCode": response.status_code, "body": body}

        raise InvalidRequestError(f"Unknown action type: {action.type}")

    def _update_performance(self, rule: AutomationRule, execution: AutomationExecution) -> None:
        perf = rule.performance
        previous = perf.total_executions
        perf.total_executions += 1
        if execution.status == "completed":
            perf.successful_executions += 1
        else:
            perf.failed_executions += 1
        perf.average_execution_time = (
            perf.average_execution_time * previous + (execution.duration or 0.0)
        ) / perf.total_executions
        perf.success_rate = perf.successful_executions / perf.total_executions
        perf.last_executed = execution.ended_at

    # ==================== OPTIMIZATION ====================

    async def optimize_automation_performance(self, rule_id: str) -> Dict[str, Any]:
        """Tune timeout, concurrency and retries from the last 50 executions."""
        rule = self.get_rule(rule_id)
        executions = [
            e for e in self.executions.values()
            if e.rule_id == rule_id and not e.dry_run and e.status != "skipped"
        ][-50:]
        if len(executions) < MIN_EXECUTIONS_FOR_OPTIMIZATION:
            return {"optimized": False, "reason": "Insufficient execution data", "executions": len(executions)}

        changes = []
        timeouts = sum(1 for e in executions if "timeout" in e.errors)
        failures = sum(1 for e in executions if e.status == "failed")
        success_rate = 1 - failures / len(executions)

        if timeouts:
            old = rule.config.timeout
            rule.config.timeout = min(MAX_RULE_TIMEOUT, old * 1.5)
            changes.append(f"timeout {old:.0f}s -> {rule.config.timeout:.0f}s")
        if failures and rule.config.concurrency > 1:
            rule.config.concurrency -= 1
            changes.append(f"concurrency -> {rule.config.concurrency}")
        if success_rate < 0.8:
            added = []
            for action in rule.actions:
                if not action.retry_policy:
                    # Backoff scales with the rule timeout so retries fit inside it
                    action.retry_policy = RetryPolicy(backoff_seconds=round(rule.config.timeout / 10, 2))
                    added.append(action.retry_policy)
                    changes.append(f"retry policy added to {action.id}")
            if added:
                old = rule.config.timeout
                needed = old + sum(p.total_backoff() for p in added)
                rule.config.timeout = min(MAX_RULE_TIMEOUT, needed)
                changes.append(f"timeout {old:.0f}s -> {rule.config.timeout:.0f}s for retries")

        rule.optimization_history.append({
            "timestamp": _now().isoformat(),
            "successRate": success_rate,
            "changes": changes,
        })
        rule.updated_at = _now()
        logger.info(f"Optimized automation rule {rule_id}: {changes or 'no changes'}")
        return {"optimized": bool(changes), "changes": changes, "successRate": success_rate}

    # ==================== QUERIES ====================

    async def get_automation_dashboard(self, user_id: str) -> Dict[str, Any]:
        rules = [r for r in self.rules.values() if r.user_id == user_id]
        rule_ids = {r.id for r in rules}
        executions = sorted(
            (e for e in self.executions.values() if e.rule_id in rule_ids),
            key=lambda e: e.started_at,
            reverse=True
        )
        week_ago = _now() - timedelta(days=7)
        executed = [r for r in rules if r.performance.total_executions]

        return {
            "summary": {
                "totalRules": len(rules),
                "activeRules": sum(1 for r in rules if r.status == "active"),
                "totalExecutions": len(executions),
                "averageSuccessRate": (
                    sum(r.performance.success_rate for r in executed) / len(executed) if executed else 0.0
                ),
                "timeSavedThisWeek": MINUTES_SAVED_PER_EXECUTION * sum(
                    1 for e in executions if e.status == "completed" and e.started_at >= week_ago and not e.dry_run
                ),
            },
            "activeRules": [r for r in rules if r.status == "active"][:10],
            "recentExecutions": executions[:10],
        }

    async def get_automation_templates(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        templates = list(self.templates.values())
        if category:
            templates = [t for t in templates if t["category"] == category]
        return templates

    async def create_from_template(self, template_id: str, user_id: str,
                                   customization: Optional[Dict[str, Any]] = None) -> AutomationRule:
        template = self.templates.get(template_id)
        if not template:
            raise NotFoundError(f"Template {template_id} not found")

        customization = customization or {}
        definition = copy.deepcopy(template["rule"])
        definition["description"] = template["description"]
        if customization.get("name"):
            definition["name"] = customization["name"]
        if customization.get("interval_minutes") and definition["trigger"]["type"] == "schedule":
            definition["trigger"]["interval_minutes"] = int(customization["interval_minutes"])
        for action in definition["actions"]:
            if action["type"] == "create_content" and customization.get("topic"):
                action["parameters"]["topic"] = customization["topic"]
            if action["type"] == "schedule_post" and customization.get("delay_minutes") is not None:
                action["parameters"]["delay_minutes"] = int(customization["delay_minutes"])
        if customization.get("status"):
            definition["status"] = customization["status"]

        return await self.create_automation_rule(user_id, definition)

    async def get_execution_logs(self, rule_id: Optional[str] = None, user_id: Optional[str] = None,
                                 limit: int = 50) -> List[AutomationExecution]:
        executions = [
            e for e in self.executions.values()
            if (rule_id is None or e.rule_id == rule_id) and (user_id is None or e.user_id == user_id)
        ]
        executions.sort(key=lambda e: e.started_at, reverse=True)
        return executions[:limit]

    async def export_rules(self, user_id: str) -> List[Dict[str, Any]]:
        return [
            r.model_dump(by_alias=True, mode="json")
            for r in self.rules.values()
            if r.user_id == user_id and r.status == "active"
        ]

    def get_due_scheduled_rules(self, now: Optional[datetime] = None) -> List[AutomationRule]:
        """Active schedule rules whose interval has elapsed since their last run."""
        now = now or _now()
        due = []
        for rule in self.rules.values():
            if rule.status != "active" or rule.trigger.type != "schedule" or not rule.trigger.interval_minutes:
                continue
            last = rule.performance.last_executed
            if last is None or now - last >= timedelta(minutes=rule.trigger.interval_minutes):
                due.append(rule)
        return due


# Global automation engine
automation_engine = AdvancedAutomationEngine()
