"""Collaborative workflows: multi-step processes shared between agents and a user."""
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.automation import evaluate_condition, resolve_field
from authority_pilot.agents.base import APIModel
from authority_pilot.agents.communication import AgentMessage, communication_bus
from authority_pilot.agents.human_loop import human_loop
from authority_pilot.agents.voice_trainer import voice_trainer
from authority_pilot.content import generate_topic_prompt
from authority_pilot.database import db
from authority_pilot.errors import AuthorityPilotError, InvalidRequestError, NotFoundError

WORKFLOW_AGENT = "workflow_system"
STEP_TYPES = ("human_task", "ai_task", "collaborative_task", "decision_point", "review_gate")
END = "end"
MAX_EXECUTIONS = 500


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStep(APIModel):
    id: str
    name: str
    type: str
    assignee: Optional[str] = None
    agents: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class WorkflowDefinition(APIModel):
    id: str
    name: str
    description: str = ""
    steps: List[WorkflowStep]
    max_duration: int = 120  # minutes
    priority: str = "medium"


class WorkflowExecution(APIModel):
    id: str
    workflow_id: str
    user_id: str
    status: str = "pending"  # pending, running, waiting, completed, failed, cancelled
    current_step: Optional[str] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    timeline: List[Dict[str, Any]] = Field(default_factory=list)
    waiting_for: Optional[str] = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=_now)
    completed_at: Optional[datetime] = None


def content_creation_workflow() -> WorkflowDefinition:
    return WorkflowDefinition(
        id="content_creation_workflow",
        name="Collaborative Content Creation",
        description="Agree an angle, draft it in the user's voice, then review and approve",
        steps=[
            WorkflowStep(id="ideation", name="Ideation", type="collaborative_task",
                         agents=["strategy_agent", "content_creator_agent"],
                         parameters={"objective": "Pick the angle for the next post"}),
            WorkflowStep(id="draft_creation", name="Draft creation", type="ai_task",
                         assignee="content_creator_agent"),
            WorkflowStep(id="human_review", name="Human review", type="human_task"),
            WorkflowStep(id="final_approval", name="Final approval", type="review_gate"),
        ],
        max_duration=120,
        priority="medium"
    )


StepRunner = Callable[[WorkflowExecution, WorkflowStep], Awaitable[Optional[Dict[str, Any]]]]


class CollaborativeWorkflowSystem:
    """
    Runs workflow executions step by step.

    A step either finishes immediately and the execution moves on, or it
    hands work to the user (feedback, collaborative session, validation
    task) and the execution waits until that step is completed.
    """

    def __init__(self):
        self.workflows: Dict[str, WorkflowDefinition] = {}
        self.executions: Dict[str, WorkflowExecution] = {}
        self.ai_handlers: Dict[str, StepRunner] = {"content_creator_agent": self.create_draft}
        self.register_workflow(content_creation_workflow())
        communication_bus.subscribe(WORKFLOW_AGENT, self.on_human_feedback)
        logger.info("CollaborativeWorkflowSystem initialized")

    def register_workflow(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        if not definition.steps:
            raise InvalidRequestError("A workflow needs at least one step")
        step_ids = {s.id for s in definition.steps}
        for step in definition.steps:
            if step.type not in STEP_TYPES:
                raise InvalidRequestError(f"Invalid step type: {step.type}")
            if step.type == "decision_point":
                for branch in ("on_true", "on_false"):
                    target = step.parameters.get(branch)
                    if target not in (None, END) and target not in step_ids:
                        raise InvalidRequestError(f"Unknown step {target} in {step.id}.{branch}")
        self.workflows[definition.id] = definition
        return definition

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self.workflows.get(workflow_id)
        if not workflow:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    def get_execution(self, execution_id: str, user_id: Optional[str] = None) -> WorkflowExecution:
        execution = self.executions.get(execution_id)
        if not execution or (user_id and execution.user_id != user_id):
            raise NotFoundError(f"Workflow execution {execution_id} not found")
        return execution

    # ==================== EXECUTION ====================

    async def execute_workflow(self, workflow_id: str, user_id: str,
                               inputs: Optional[Dict[str, Any]] = None) -> WorkflowExecution:
        workflow = self.get_workflow(workflow_id)
        execution = WorkflowExecution(
            id=f"exec_{int(_now().timestamp() * 1000)}_{workflow_id}_{uuid4().hex[:6]}",
            workflow_id=workflow_id,
            user_id=user_id,
            inputs=inputs or {},
            current_step=workflow.steps[0].id
        )
        self.executions[execution.id] = execution
        while len(self.executions) > MAX_EXECUTIONS:
            del self.executions[next(iter(self.executions))]

        logger.info(f"Starting workflow {workflow_id} for {user_id} ({execution.id})")
        await self._advance(execution)
        return execution

    def _log(self, execution: WorkflowExecution, step_id: str, event: str, **details: Any) -> None:
        execution.timeline.append({"step": step_id, "event": event, "timestamp": _now(), **details})

    def _next_step_id(self, workflow: WorkflowDefinition, step_id: str) -> Optional[str]:
        ids = [s.id for s in workflow.steps]
        index = ids.index(step_id) + 1
        return ids[index] if index < len(ids) else None

    async def _advance(self, execution: WorkflowExecution) -> None:
        workflow = self.get_workflow(execution.workflow_id)
        steps = {s.id: s for s in workflow.steps}
        execution.status = "running"

        while execution.current_step:
            step = steps[execution.current_step]
            self._log(execution, step.id, "started")
            try:
                output = await self.run_step(execution, step)
            except AuthorityPilotError as e:
                self._fail(execution, step.id, str(e))
                return

            if output is None:
                execution.status = "waiting"
                logger.info(f"Workflow {execution.id} waiting on {step.id}")
                return

            execution.outputs[step.id] = output
            self._log(execution, step.id, "completed")
            if step.type == "decision_point":
                branch = "on_true" if output["result"] else "on_false"
                target = step.parameters.get(branch) or self._next_step_id(workflow, step.id)
                execution.current_step = None if target == END else target
            else:
                execution.current_step = self._next_step_id(workflow, step.id)

        execution.status = "completed"
        execution.completed_at = _now()
        logger.info(f"Workflow {execution.id} completed")
        await communication_bus.send_message(AgentMessage(
            from_agent=WORKFLOW_AGENT,
            type="workflow_completed",
            payload={"executionId": execution.id, "workflowId": execution.workflow_id, "outputs": execution.outputs}
        ))

    def _fail(self, execution: WorkflowExecution, step_id: str, error: str) -> None:
        execution.status = "failed"
        execution.error = error
        execution.waiting_for = None
        execution.completed_at = _now()
        self._log(execution, step_id, "failed", error=error)
        logger.warning(f"Workflow {execution.id} failed at {step_id}: {error}")

    async def run_step(self, execution: WorkflowExecution, step: WorkflowStep) -> Optional[Dict[str, Any]]:
        """Run a step; None means the execution now waits on the user."""
        if step.type == "ai_task":
            handler = self.ai_handlers.get(step.assignee or "", self.dispatch_to_agent)
            return await handler(execution, step)

        if step.type == "decision_point":
            value = resolve_field(step.parameters.get("field", ""), execution.outputs, execution.inputs)
            result = evaluate_condition(value, step.parameters.get("operator", "equals"), step.parameters.get("value"))
            return {"result": result, "value": value}

        if step.type == "human_task":
            draft = execution.outputs.get("draft_creation", {})
            feedback = await human_loop.request_human_input(
                execution.user_id,
                WORKFLOW_AGENT,
                {
                    "type": "content" if draft else "workflow_step",
                    "id": execution.id,
                    "stepId": step.id,
                    "description": step.parameters.get("description") or f"{step.name}: {draft.get('content', '')[:120]}",
                    "confidence": draft.get("confidence"),
                },
                step.parameters.get("urgency", "medium")
            )
            if feedback.status == "applied":
                return {"decision": "approved", "feedbackId": feedback.id, "auto": True}
            execution.waiting_for = feedback.id
            return None

        if step.type == "collaborative_task":
            session = await human_loop.start_collaborative_session(
                step.parameters.get("session_type", "content_creation"),
                step.parameters.get("objective", step.name),
                {"humans": [execution.user_id], "agents": step.agents}
            )
            execution.waiting_for = session.id
            return None

        # review_gate
        task = await human_loop.create_validation_task(
            execution.user_id,
            step.parameters.get("task_type", "content_approval"),
            f"{self.get_workflow(execution.workflow_id).name}: {step.name}",
            {k: v for k, v in execution.outputs.items() if isinstance(v, dict)}
        )
        execution.waiting_for = task.id
        return None

    async def dispatch_to_agent(self, execution: WorkflowExecution, step: WorkflowStep) -> Dict[str, Any]:
        delivered = await communication_bus.send_message(AgentMessage(
            from_agent=WORKFLOW_AGENT,
            to_agent=step.assignee or "broadcast",
            type="workflow_task",
            payload={"executionId": execution.id, "stepId": step.id, "inputs": execution.inputs,
                     "outputs": execution.outputs}
        ))
        return {"dispatched": True, "delivered": delivered}

    async def create_draft(self, execution: WorkflowExecution, step: WorkflowStep) -> Dict[str, Any]:
        voice_profile = await db.get_voice_profile(execution.user_id)
        if not voice_profile:
            raise InvalidRequestError("Voice profile required to draft content")

        topic = execution.outputs.get("ideation", {}).get("topic") or execution.inputs.get("topic")
        if not topic:
            topic = generate_topic_prompt(await db.get_profile(execution.user_id))
        generated = await voice_trainer.generate_content(
            topic, voice_profile, execution.inputs.get("content_type", "post")
        )
        return {"topic": topic, "content": generated["content"], "confidence": generated["confidence"]}

    # ==================== HUMAN INPUT ====================

    async def complete_step(self, execution_id: str, user_id: str, step_id: str,
                            output: Optional[Dict[str, Any]] = None) -> WorkflowExecution:
        """
        Finish the step an execution is waiting on and carry on.

        A review gate completed with ``approved: false`` or a human task
        completed with ``decision: rejected`` fails the execution.
        """
        execution = self.get_execution(execution_id, user_id)
        if execution.status != "waiting" or execution.current_step != step_id:
            raise InvalidRequestError(f"Workflow {execution_id} is not waiting on step {step_id}")

        output = output or {}
        step = next(s for s in self.get_workflow(execution.workflow_id).steps if s.id == step_id)
        if step.type == "review_gate":
            for task in await human_loop.get_validation_tasks(user_id):
                if task.id == execution.waiting_for:
                    task.status = "completed"
            if output.get("approved") is False:
                self._fail(execution, step_id, output.get("reason") or "Rejected at review gate")
                return execution
        if output.get("decision") == "rejected":
            self._fail(execution, step_id, output.get("reason") or "Rejected by user")
            return execution

        execution.outputs[step_id] = output
        execution.waiting_for = None
        self._log(execution, step_id, "completed")
        execution.current_step = self._next_step_id(self.get_workflow(execution.workflow_id), step_id)
        await self._advance(execution)
        return execution

    async def complete_collaboration(self, execution_id: str, user_id: str,
                                     outcome: Dict[str, Any]) -> WorkflowExecution:
        """Record the outcome of a collaborative step's session and continue."""
        execution = self.get_execution(execution_id, user_id)
        session = human_loop.sessions.get(execution.waiting_for or "")
        if not session:
            raise InvalidRequestError(f"Workflow {execution_id} has no open collaboration")
        session.outcomes.append(outcome)
        session.status = "completed"
        return await self.complete_step(execution_id, user_id, execution.current_step, outcome)

    async def on_human_feedback(self, message: AgentMessage) -> None:
        """Resume executions waiting on a feedback request the user has answered."""
        if message.type != "human_feedback":
            return
        target = message.payload.get("target") or {}
        execution = self.executions.get(target.get("id", ""))
        if not execution or execution.waiting_for != message.payload.get("feedbackId"):
            return
        decision = message.payload.get("decision")
        output = {"decision": decision, "feedbackId": execution.waiting_for}
        if decision == "modify":
            output["modifications"] = message.payload.get("modifications", "")
        await self.complete_step(execution.id, execution.user_id, target.get("stepId"), output)

    async def cancel_execution(self, execution_id: str, user_id: str) -> WorkflowExecution:
        execution = self.get_execution(execution_id, user_id)
        if execution.status in ("completed", "failed", "cancelled"):
            raise InvalidRequestError(f"Workflow {execution_id} already finished")
        execution.status = "cancelled"
        execution.completed_at = _now()
        self._log(execution, execution.current_step or END, "cancelled")
        return execution

    # ==================== QUERIES ====================

    def get_workflow_status(self, execution_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        execution = self.get_execution(execution_id, user_id)
        workflow = self.get_workflow(execution.workflow_id)
        done = sum(1 for s in workflow.steps if s.id in execution.outputs)
        finished = execution.completed_at or _now()
        return {
            "execution": execution,
            "workflow": {"id": workflow.id, "name": workflow.name},
            "progress": 1.0 if execution.status == "completed" else done / len(workflow.steps),
            "currentStep": execution.current_step,
            "overdue": finished - execution.started_at > timedelta(minutes=workflow.max_duration),
        }

    def get_user_workflows(self, user_id: str) -> List[WorkflowExecution]:
        executions = [e for e in self.executions.values() if e.user_id == user_id]
        return sorted(executions, key=lambda e: e.started_at, reverse=True)


# Global workflow system
collaborative_workflows = CollaborativeWorkflowSystem()
