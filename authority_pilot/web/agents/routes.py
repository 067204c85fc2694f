"""Agent API routes: scheduler, learning, human-in-the-loop, automation, competitive intelligence and workflows."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_snake
from loguru import logger

from authority_pilot.agents import (
    APIModel,
    Experience,
    automation_engine,
    collaborative_workflows,
    collective_intelligence,
    competitive_intelligence,
    human_loop,
    knowledge_repository,
    learning_engine,
    predictive_intelligence,
)
from authority_pilot.errors import APIError, AuthorityPilotError
from authority_pilot.scheduler import scheduler

# Router for agent APIs
agents_router = APIRouter(prefix="/api/agents", tags=["agents"])


class ActionRequest(BaseModel):
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)


class AutonomousRequest(APIModel):
    action: str
    user_id: Optional[str] = None


def require(data: Dict[str, Any], key: str) -> Any:
    """Value of a required field in an action payload."""
    value = data.get(key)
    if value is None or value == "":
        raise APIError(400, f"{key} is required")
    return value


def snake_keys(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {to_snake(key): value for key, value in (data or {}).items()}


def parse_datetime(value: Any, field: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise APIError(400, f"{field} must be an ISO 8601 datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def invalid_action() -> APIError:
    return APIError(400, "Invalid action")


# ==================== AUTONOMOUS ====================

@agents_router.get("/autonomous")
async def get_autonomous_status():
    """Scheduler and loop health."""
    return {"success": True, "data": scheduler.get_status()}


@agents_router.post("/autonomous")
async def control_autonomous(body: AutonomousRequest):
    """Start, stop, initialize or optimize the scheduler."""
    if body.action == "start":
        await scheduler.start()
        return {"success": True, "message": "Autonomous operations started"}
    if body.action == "stop":
        await scheduler.stop()
        return {"success": True, "message": "Autonomous operations stopped"}
    if body.action == "initialize":
        await scheduler.initialize()
        return {"success": True, "message": "Scheduler initialized"}
    if body.action == "optimize":
        if not body.user_id:
            raise APIError(400, "User ID required")
        activity = await scheduler.optimize_for_user(body.user_id)
        return {"success": True, "message": f"Optimized for user {body.user_id}", "data": activity}
    raise invalid_action()


# ==================== LEARNING ====================

@agents_router.get("/learning")
async def get_learning(type: Optional[str] = None, agentId: Optional[str] = None, userId: Optional[str] = None):
    if type == "patterns":
        return {"success": True, "data": await learning_engine.get_pattern_insights(agentId)}
    if type == "predictions":
        if not userId:
            raise APIError(400, "User ID required for predictions")
        predictions = await predictive_intelligence.generate_predictions({"user_id": userId}, ["24h", "7d", "30d"])
        return {"success": True, "data": predictions}
    if type == "collective":
        return {"success": True, "data": await collective_intelligence.get_system_insights()}
    if type == "knowledge":
        return {"success": True, "data": await knowledge_repository.get_knowledge_insights()}
    if type == "learning_report":
        if not agentId:
            raise APIError(400, "Agent ID required for learning report")
        return {"success": True, "data": await learning_engine.generate_learning_report(agentId)}

    return {
        "success": True,
        "data": {
            "patterns": await learning_engine.get_pattern_insights(),
            "collective": await collective_intelligence.get_system_insights(),
            "knowledge": await knowledge_repository.get_knowledge_insights(),
            "timestamp": datetime.now(timezone.utc),
        }
    }


@agents_router.post("/learning")
async def learning_action(body: ActionRequest):
    data = body.data

    if body.action == "search_knowledge":
        query = require(data, "query")
        if isinstance(query, str):
            query = {"query": query}
        query = snake_keys(query)
        query["filters"] = snake_keys(query.get("filters"))
        return {"success": True, "data": await knowledge_repository.search_knowledge(query)}

    if body.action == "get_recommendations":
        recommendations = await knowledge_repository.get_recommendations(
            data.get("context") or {}, data.get("type"), int(data.get("limit") or 10)
        )
        return {"success": True, "data": recommendations}

    if body.action == "predict_content":
        prediction = await predictive_intelligence.predict_content_performance(
            data.get("contentType", "post"),
            require(data, "topic"),
            data.get("platform", "linkedin"),
            data.get("context")
        )
        return {"success": True, "data": prediction}

    if body.action == "detect_trends":
        opportunities = await predictive_intelligence.detect_trend_opportunities(
            require(data, "industry"),
            data.get("platforms") or ["linkedin", "twitter"],
            data.get("userId")
        )
        return {"success": True, "data": opportunities}

    if body.action == "share_knowledge":
        outcome = await collective_intelligence.share_knowledge(
            require(data, "sourceAgent"), require(data, "learning"), data.get("context") or {}
        )
        return {"success": True, "message": "Knowledge shared successfully", "data": outcome}

    if body.action == "request_knowledge":
        knowledge = await collective_intelligence.request_knowledge(
            require(data, "requestingAgent"),
            require(data, "query"),
            data.get("context"),
            data.get("urgency", "medium")
        )
        return {"success": True, "data": knowledge}

    if body.action == "participate_consensus":
        session = await collective_intelligence.participate(
            require(data, "sessionId"),
            require(data, "agentId"),
            require(data, "position"),
            data.get("reasoning", ""),
            float(data.get("confidence", 0.5))
        )
        return {"success": True, "data": session}

    if body.action == "record_experience":
        experience = Experience.model_validate(require(data, "experience"))
        pattern = await learning_engine.learn_from_experience(require(data, "agentId"), experience)
        return {"success": True, "data": pattern}

    if body.action == "get_opportunities":
        opportunities = await predictive_intelligence.get_opportunity_alert(
            require(data, "userId"), data.get("urgencyLevel", "medium")
        )
        return {"success": True, "data": opportunities}

    if body.action == "validate_predictions":
        return {"success": True, "data": await predictive_intelligence.validate_predictions()}

    if body.action == "store_knowledge":
        knowledge_id = await knowledge_repository.store_knowledge(
            require(data, "content"), require(data, "type"), require(data, "category"), data.get("metadata")
        )
        return {"success": True, "data": {"knowledgeId": knowledge_id}}

    raise invalid_action()


# ==================== HUMAN IN THE LOOP ====================

@agents_router.get("/human-loop")
async def get_human_loop(userId: Optional[str] = None, type: Optional[str] = None):
    if not userId:
        raise APIError(400, "User ID required")

    if type == "dashboard":
        return {"success": True, "data": await human_loop.get_user_dashboard(userId)}
    if type == "feedback":
        return {"success": True, "data": await human_loop.get_feedback_queue(userId)}
    if type == "tasks":
        return {"success": True, "data": await human_loop.get_validation_tasks(userId)}

    feedback = await human_loop.get_feedback_queue(userId)
    tasks = await human_loop.get_validation_tasks(userId)
    return {
        "success": True,
        "data": {
            "dashboard": await human_loop.get_user_dashboard(userId),
            "pendingFeedback": [f for f in feedback if f.status == "pending"],
            "pendingTasks": [t for t in tasks if t.status == "pending"],
            "recentFeedback": feedback[-5:],
            "recentTasks": tasks[-5:],
        }
    }


@agents_router.post("/human-loop")
async def human_loop_action(body: ActionRequest):
    data = body.data

    if body.action == "request_feedback":
        feedback = await human_loop.request_human_input(
            require(data, "userId"), require(data, "agentId"), require(data, "target"), data.get("urgency", "medium")
        )
        return {"success": True, "data": feedback}

    if body.action == "submit_response":
        feedback = await human_loop.process_human_response(
            require(data, "feedbackId"), require(data, "userId"), snake_keys(require(data, "response"))
        )
        return {"success": True, "message": "Response processed successfully", "data": feedback}

    if body.action == "create_task":
        required_by = parse_datetime(data["requiredBy"], "requiredBy") if data.get("requiredBy") else None
        task = await human_loop.create_validation_task(
            require(data, "userId"), require(data, "type"), require(data, "title"), data.get("data") or {}, required_by
        )
        return {"success": True, "data": {"taskId": task.id}}

    if body.action == "start_session":
        session = await human_loop.start_collaborative_session(
            require(data, "type"), require(data, "objective"), data.get("participants") or {}
        )
        return {"success": True, "data": {"sessionId": session.id}}

    if body.action == "bulk_approve":
        user_id = require(data, "userId")
        results = []
        for feedback_id in data.get("feedbackIds") or []:
            try:
                await human_loop.process_human_response(feedback_id, user_id, {
                    "selected_option": "approve",
                    "confidence": 0.8,
                    "reasoning": "Bulk approval",
                })
                results.append({"feedbackId": feedback_id, "status": "approved"})
            except AuthorityPilotError as e:
                results.append({"feedbackId": feedback_id, "status": "error", "error": str(e)})
        return {"success": True, "data": {"results": results}}

    if body.action == "snooze_feedback":
        until = parse_datetime(require(data, "snoozeUntil"), "snoozeUntil")
        feedback = await human_loop.snooze_feedback(require(data, "userId"), require(data, "feedbackId"), until)
        return {"success": True, "message": f"Feedback {feedback.id} snoozed until {until.isoformat()}"}

    if body.action == "delegate_task":
        task = await human_loop.delegate_task(
            require(data, "userId"), require(data, "taskId"), require(data, "delegateTo")
        )
        return {"success": True, "message": f"Task {task.id} delegated to {data['delegateTo']}"}

    if body.action == "update_preferences":
        preferences = await human_loop.update_preferences(
            require(data, "userId"), snake_keys(data.get("preferences"))
        )
        return {"success": True, "message": "Preferences updated successfully", "data": preferences}

    raise invalid_action()


# ==================== AUTOMATION ====================

@agents_router.get("/automation")
async def get_automation(userId: Optional[str] = None, type: Optional[str] = None, category: Optional[str] = None):
    if not userId:
        raise APIError(400, "User ID required")

    if type == "dashboard":
        return {"success": True, "data": await automation_engine.get_automation_dashboard(userId)}
    if type == "templates":
        return {"success": True, "data": await automation_engine.get_automation_templates(category)}

    dashboard = await automation_engine.get_automation_dashboard(userId)
    templates = await automation_engine.get_automation_templates()
    summary = dashboard["summary"]
    return {
        "success": True,
        "data": {
            "dashboard": dashboard,
            "templates": templates[:10],
            "summary": {
                "totalRules": summary["totalRules"],
                "activeRules": summary["activeRules"],
                "timeSavedThisWeek": summary["timeSavedThisWeek"],
                "averageSuccessRate": summary["averageSuccessRate"],
            },
        }
    }


@agents_router.post("/automation")
async def automation_action(body: ActionRequest):
    data = body.data

    if body.action == "create_rule":
        rule = await automation_engine.create_automation_rule(require(data, "userId"), require(data, "rule"))
        return {"success": True, "data": {"ruleId": rule.id}}

    if body.action == "execute_rule":
        context = snake_keys(data.get("context"))
        execution_id = await automation_engine.execute_automation_rule(
            require(data, "ruleId"), data.get("triggerData") or {}, context
        )
        return {"success": True, "data": {"executionId": execution_id}}

    if body.action == "create_from_template":
        rule = await automation_engine.create_from_template(
            require(data, "templateId"), require(data, "userId"), snake_keys(data.get("customization"))
        )
        return {"success": True, "data": {"ruleId": rule.id}}

    if body.action == "optimize_performance":
        result = await automation_engine.optimize_automation_performance(require(data, "ruleId"))
        return {"success": True, "message": "Performance optimization completed", "data": result}

    if body.action == "bulk_create_rules":
        user_id = require(data, "userId")
        results = []
        for definition in data.get("rules") or []:
            try:
                rule = await automation_engine.create_automation_rule(user_id, definition)
                results.append({**definition, "id": rule.id, "status": "success"})
            except AuthorityPilotError as e:
                results.append({**definition, "status": "error", "error": str(e)})
        return {"success": True, "data": {"results": results}}

    if body.action == "pause_rule":
        pause = bool(data.get("pause", True))
        rule = await automation_engine.set_rule_paused(require(data, "ruleId"), pause)
        return {"success": True, "message": f"Rule {rule.id} {'paused' if pause else 'resumed'}"}

    if body.action == "delete_rule":
        rule_id = require(data, "ruleId")
        await automation_engine.delete_rule(rule_id)
        return {"success": True, "message": f"Rule {rule_id} deleted"}

    if body.action == "test_rule":
        try:
            execution_id = await automation_engine.execute_automation_rule(
                require(data, "ruleId"),
                {**(data.get("testData") or {}), "dry_run": True},
                {"user_id": data.get("userId")}
            )
        except AuthorityPilotError as e:
            logger.warning(f"Automation test failed: {e}")
            return {"success": False, "error": f"Test failed: {e}"}
        return {
            "success": True,
            "data": {
                "testResult": automation_engine.get_execution(execution_id),
                "message": "Test completed successfully",
            }
        }

    if body.action == "get_execution_logs":
        logs = await automation_engine.get_execution_logs(
            data.get("ruleId"), data.get("userId"), int(data.get("limit") or 50)
        )
        return {"success": True, "data": {"logs": logs}}

    if body.action == "export_rules":
        rules = await automation_engine.export_rules(require(data, "userId"))
        return JSONResponse(
            content=jsonable_encoder({"success": True, "data": rules}),
            headers={"Content-Disposition": 'attachment; filename="automation-rules.json"'}
        )

    raise invalid_action()


# ==================== COMPETITIVE ====================

@agents_router.get("/competitive")
async def get_competitive(
    type: Optional[str] = None,
    competitorId: Optional[str] = None,
    industry: Optional[str] = None,
    severity: str = "warning",
    reportType: str = "summary"
):
    if type == "threats":
        return {"success": True, "data": await competitive_intelligence.detect_competitive_threats(competitorId)}
    if type == "opportunities":
        return {"success": True, "data": await competitive_intelligence.identify_competitive_opportunities(industry)}
    if type == "alerts":
        return {"success": True, "data": await competitive_intelligence.get_competitive_alerts(severity)}
    if type == "insights":
        if not competitorId:
            raise APIError(400, "Competitor ID required")
        return {"success": True, "data": await competitive_intelligence.get_competitor_insights(competitorId)}
    if type == "market":
        if not industry:
            raise APIError(400, "Industry required")
        intelligence = await competitive_intelligence.get_market_intelligence(industry)
        if intelligence is None:
            raise APIError(404, "Market intelligence not found")
        return {"success": True, "data": intelligence}
    if type == "report":
        report = await competitive_intelligence.generate_competitive_report(competitorId, reportType)
        return {"success": True, "data": report}

    threats = await competitive_intelligence.detect_competitive_threats()
    opportunities = await competitive_intelligence.identify_competitive_opportunities()
    alerts = await competitive_intelligence.get_competitive_alerts()
    return {
        "success": True,
        "data": {
            "threats": threats[:10],
            "opportunities": opportunities[:10],
            "alerts": alerts[:5],
            "summary": {
                "totalThreats": len(threats),
                "criticalThreats": sum(1 for t in threats if t.severity == "critical"),
                "totalOpportunities": len(opportunities),
                "highValueOpportunities": sum(1 for o in opportunities if o.value in ("high", "transformational")),
                "activeAlerts": len(alerts),
            },
        }
    }


@agents_router.post("/competitive")
async def competitive_action(body: ActionRequest):
    data = body.data

    if body.action == "add_competitor":
        competitor = await competitive_intelligence.add_competitor(
            require(data, "name"), require(data, "domain"), require(data, "industry"), data.get("tier", "direct")
        )
        return {"success": True, "data": {"competitorId": competitor.id, "competitor": competitor}}

    if body.action == "analyze_landscape":
        intelligence = await competitive_intelligence.analyze_competitive_landscape(
            require(data, "industry"), data.get("focusArea")
        )
        return {"success": True, "data": intelligence}

    if body.action == "detect_threats":
        return {"success": True, "data": await competitive_intelligence.detect_competitive_threats(data.get("competitorId"))}

    if body.action == "identify_opportunities":
        opportunities = await competitive_intelligence.identify_competitive_opportunities(
            data.get("industry"), data.get("timeframe", "6_months")
        )
        return {"success": True, "data": opportunities}

    if body.action == "generate_report":
        report = await competitive_intelligence.generate_competitive_report(
            data.get("competitorId"), data.get("reportType", "summary")
        )
        return {"success": True, "data": report}

    if body.action == "bulk_add_competitors":
        results = []
        for item in data.get("competitors") or []:
            try:
                competitor = await competitive_intelligence.add_competitor(
                    item.get("name"), item.get("domain"), item.get("industry"), item.get("tier", "direct")
                )
                results.append({"name": item.get("name"), "id": competitor.id, "status": "success"})
            except AuthorityPilotError as e:
                results.append({"name": item.get("name"), "status": "error", "error": str(e)})
        return {"success": True, "data": {"results": results}}

    if body.action == "export_intelligence":
        report = await competitive_intelligence.generate_competitive_report(data.get("competitorId"), "detailed")
        return JSONResponse(
            content=jsonable_encoder({"success": True, "data": report}),
            headers={"Content-Disposition": 'attachment; filename="competitive-intelligence.json"'}
        )

    raise invalid_action()


# ==================== WORKFLOWS ====================

@agents_router.get("/workflows")
async def get_workflows(userId: Optional[str] = None, executionId: Optional[str] = None):
    if not userId:
        raise APIError(400, "User ID required")
    if executionId:
        return {"success": True, "data": collaborative_workflows.get_workflow_status(executionId, userId)}
    return {
        "success": True,
        "data": {
            "workflows": list(collaborative_workflows.workflows.values()),
            "executions": collaborative_workflows.get_user_workflows(userId),
        }
    }


@agents_router.post("/workflows")
async def workflow_action(body: ActionRequest):
    data = body.data

    if body.action == "execute":
        execution = await collaborative_workflows.execute_workflow(
            require(data, "workflowId"), require(data, "userId"), snake_keys(data.get("inputs"))
        )
        return {"success": True, "data": execution}

    if body.action == "complete_step":
        execution = await collaborative_workflows.complete_step(
            require(data, "executionId"), require(data, "userId"), require(data, "stepId"), data.get("output") or {}
        )
        return {"success": True, "data": execution}

    if body.action == "complete_collaboration":
        execution = await collaborative_workflows.complete_collaboration(
            require(data, "executionId"), require(data, "userId"), require(data, "outcome")
        )
        return {"success": True, "data": execution}

    if body.action == "cancel":
        execution = await collaborative_workflows.cancel_execution(require(data, "executionId"), require(data, "userId"))
        return {"success": True, "message": f"Workflow {execution.id} cancelled"}

    raise invalid_action()
