"""Autonomous scheduler: the polling loops that keep the agents working."""
import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import Field
from loguru import logger

from authority_pilot.agents.automation import automation_engine
from authority_pilot.agents.base import APIModel
from authority_pilot.agents.collective import collective_intelligence
from authority_pilot.agents.communication import AgentMessage, communication_bus
from authority_pilot.agents.engagement import engagement_agent
from authority_pilot.agents.human_loop import human_loop
from authority_pilot.agents.learning_engine import Experience, learning_engine
from authority_pilot.agents.strategy import strategy_agent
from authority_pilot.agents.voice_trainer import voice_trainer
from authority_pilot.config import settings
from authority_pilot.content import extract_hashtags, extract_mentions, generate_topic_prompt
from authority_pilot.database import db, ContentPost, LinkedInAccount, Profile, SystemAlert
from authority_pilot.errors import AuthorityPilotError, LinkedInAPIError, NotFoundError
from authority_pilot.linkedin.api import create_linkedin_api, get_profile_picture_url
from authority_pilot.linkedin.publishing import publish_scheduled_post

LOOP_AGENT = "loop_controller"
MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

DEFAULT_PEAK_HOURS = [9, 12, 17, 20]
POSTS_PER_DAY = {"low": 1, "medium": 2, "high": 3}
MAX_POSTING_WINDOWS = 3
ACTIVITY_REFRESH_SECONDS = 30 * MINUTE
DRAFT_BACKLOG = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LoopConfig(APIModel):
    id: str
    name: str
    interval: float  # seconds
    priority: str  # low, medium, high, critical
    max_duration: float  # seconds
    dependencies: List[str] = Field(default_factory=list)
    adaptive: bool = True


class LoopStatus(APIModel):
    """Runtime state and rolling metrics of one loop."""
    id: str
    status: str = "idle"  # idle, running, failed, paused
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    average_duration: float = 0.0
    success_rate: float = 1.0
    performance_score: float = 1.0
    adaptive_multiplier: float = 1.0
    run_count: int = 0
    last_error: Optional[str] = None
    blocked_by: Optional[str] = None


class LoopAlert(APIModel):
    id: str = Field(default_factory=lambda: f"alert_{uuid4().hex[:12]}")
    severity: str  # info, warning, error, critical
    message: str
    source: str
    timestamp: datetime = Field(default_factory=_now)
    resolved: bool = False


def default_loops() -> List[LoopConfig]:
    return [
        LoopConfig(id="strategy", name="Strategy Review & Planning", interval=7 * DAY,
                   priority="high", max_duration=30 * MINUTE, dependencies=["analytics"]),
        LoopConfig(id="content", name="Content Creation & Optimization", interval=HOUR,
                   priority="high", max_duration=15 * MINUTE, dependencies=["strategy"]),
        LoopConfig(id="engagement", name="Engagement & Networking", interval=30 * MINUTE,
                   priority="medium", max_duration=10 * MINUTE),
        LoopConfig(id="publishing", name="Scheduled Post Publishing", interval=HOUR,
                   priority="high", max_duration=15 * MINUTE),
        LoopConfig(id="automation", name="Automation Rule Execution", interval=30 * MINUTE,
                   priority="medium", max_duration=10 * MINUTE),
        LoopConfig(id="analytics", name="Performance Analysis & Insights", interval=DAY,
                   priority="high", max_duration=20 * MINUTE),
        LoopConfig(id="orchestration", name="Agent Coordination & Health", interval=5 * MINUTE,
                   priority="critical", max_duration=5 * MINUTE, adaptive=False),
    ]


class LoopController:
    """Runs each loop on its own asyncio task and tracks how it performs."""

    def __init__(self):
        self.loops: Dict[str, LoopConfig] = {config.id: config for config in default_loops()}
        self.status: Dict[str, LoopStatus] = {loop_id: LoopStatus(id=loop_id) for loop_id in self.loops}
        self.handlers: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]] = {
            "strategy": self.run_strategy,
            "content": self.run_content,
            "engagement": self.run_engagement,
            "publishing": self.run_publishing,
            "automation": self.run_automation,
            "analytics": self.run_analytics,
            "orchestration": self.run_orchestration,
        }
        self.weekly_plans: Dict[str, Dict[str, Any]] = {}
        self.alerts: List[LoopAlert] = []
        self.is_running = False
        self._tasks: Dict[str, asyncio.Task] = {}

    def get_loop(self, loop_id: str) -> LoopConfig:
        config = self.loops.get(loop_id)
        if not config:
            raise NotFoundError(f"Loop not found: {loop_id}")
        return config

    # ==================== LIFECYCLE ====================

    async def start(self) -> None:
        if self.is_running:
            return
        logger.info("Starting autonomous loops")
        self.is_running = True
        now = _now()
        for loop_id, config in self.loops.items():
            status = self.status[loop_id]
            status.next_run = now + timedelta(seconds=config.interval / status.adaptive_multiplier)
            self._tasks[loop_id] = asyncio.create_task(self._run_forever(loop_id), name=f"loop:{loop_id}")
            logger.info(f"{config.name} scheduled every {config.interval / status.adaptive_multiplier:.0f}s")

    async def stop(self) -> None:
        if not self.is_running:
            return
        logger.info("Stopping autonomous loops")
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self.is_running = False

    async def _run_forever(self, loop_id: str) -> None:
        config = self.loops[loop_id]
        status = self.status[loop_id]
        while True:
            delay = (status.next_run - _now()).total_seconds() if status.next_run else 0
            await asyncio.sleep(max(0.0, delay))
            await self.execute_loop(loop_id)
            # Skipped runs leave next_run in the past
            if status.next_run is None or status.next_run <= _now():
                status.next_run = _now() + timedelta(seconds=config.interval / status.adaptive_multiplier)

    def pause_loop(self, loop_id: str) -> LoopStatus:
        self.get_loop(loop_id)
        status = self.status[loop_id]
        if status.status != "running":
            status.status = "paused"
        logger.info(f"Loop {loop_id} paused")
        return status

    def resume_loop(self, loop_id: str) -> LoopStatus:
        self.get_loop(loop_id)
        status = self.status[loop_id]
        if status.status in ("paused", "failed"):
            status.status = "idle"
            status.blocked_by = None
        logger.info(f"Loop {loop_id} resumed")
        return status

    # ==================== EXECUTION ====================

    async def execute_loop(self, loop_id: str) -> Optional[Dict[str, Any]]:
        """
        Run one iteration of a loop.

        Returns:
            The handler's summary, or None when the run was skipped or failed
        """
        config = self.get_loop(loop_id)
        status = self.status[loop_id]
        if status.status in ("running", "paused"):
            return None

        for dependency in config.dependencies:
            if self.status[dependency].status == "failed":
                status.status = "paused"
                status.blocked_by = dependency
                logger.warning(f"{config.name} paused: dependency {dependency} failed")
                return None

        status.status = "running"
        status.last_run = _now()
        started = time.monotonic()
        logger.info(f"Executing {config.name}")

        try:
            result = await asyncio.wait_for(self.handlers[loop_id](), timeout=config.max_duration)
        except asyncio.CancelledError:
            status.status = "idle"
            logger.warning(f"{config.name} cancelled mid-run")
            raise
        except Exception as e:
            error = str(e) or type(e).__name__
            self.update_metrics(loop_id, time.monotonic() - started, False)
            status.status = "failed"
            status.last_error = error
            self.alerts.append(LoopAlert(
                severity="error",
                message=f"Loop {config.name} failed: {error}",
                source=loop_id
            ))
            logger.error(f"{config.name} failed: {error}", exc_info=True)
            return None

        duration = time.monotonic() - started
        self.update_metrics(loop_id, duration, True)
        status.status = "idle"
        status.last_error = None
        logger.info(f"{config.name} completed in {duration:.1f}s")

        await communication_bus.send_message(AgentMessage(
            from_agent=LOOP_AGENT,
            type="loop_completed",
            priority="medium",
            payload={"loopId": loop_id, "summary": result}
        ))
        return result

    def update_metrics(self, loop_id: str, duration: float, success: bool) -> None:
        config = self.loops[loop_id]
        status = self.status[loop_id]
        status.run_count += 1
        status.average_duration = status.average_duration * 0.8 + duration * 0.2
        status.success_rate = status.success_rate * 0.9 + (0.1 if success else 0.0)

        duration_score = max(0.0, 1 - duration / config.max_duration)
        status.performance_score = duration_score * 0.3 + status.success_rate * 0.7

        if config.adaptive:
            if status.performance_score > 0.8:
                status.adaptive_multiplier = min(2.0, status.adaptive_multiplier * 1.1)
            elif status.performance_score < 0.5:
                status.adaptive_multiplier = max(0.5, status.adaptive_multiplier * 0.9)

        status.next_run = _now() + timedelta(seconds=config.interval / status.adaptive_multiplier)

    def get_system_status(self) -> Dict[str, Any]:
        statuses = list(self.status.values())
        unhealthy = sum(1 for s in statuses if s.status == "failed" or s.performance_score < 0.3)
        if unhealthy > 2:
            overall = "critical"
        elif unhealthy > 0:
            overall = "degraded"
        else:
            overall = "healthy"

        running = sum(1 for s in statuses if s.status == "running")
        return {
            "overall": overall,
            "isRunning": self.is_running,
            "loops": dict(self.status),
            "resources": {"loopUtilization": running / len(statuses) * 100 if statuses else 0.0},
            "alerts": self.alerts[-20:],
        }

    # ==================== EMERGENCY ACTIONS ====================

    def slow_down(self) -> None:
        """Halve the pace of every adaptive loop."""
        for loop_id, config in self.loops.items():
            if config.adaptive:
                status = self.status[loop_id]
                status.adaptive_multiplier = 0.5
                status.next_run = _now() + timedelta(seconds=config.interval / status.adaptive_multiplier)
        logger.warning("Adaptive loops slowed down")

    def pause_non_critical(self) -> List[str]:
        paused = [loop_id for loop_id, config in self.loops.items() if config.priority != "critical"]
        for loop_id in paused:
            self.pause_loop(loop_id)
        return paused

    async def restart(self) -> None:
        """Reset failed loops, restarting the tasks if they were running."""
        was_running = self.is_running
        await self.stop()
        for status in self.status.values():
            if status.status == "failed":
                self.resume_loop(status.id)
        if was_running:
            await self.start()
        logger.info("Loop controller restarted")

    def resume_unblocked(self) -> List[str]:
        """Resume loops paused by a dependency that has recovered."""
        resumed = []
        for status in self.status.values():
            if status.status == "paused" and status.blocked_by:
                if self.status[status.blocked_by].status != "failed":
                    self.resume_loop(status.id)
                    resumed.append(status.id)
        return resumed

    # ==================== LOOP WORK ====================

    async def run_strategy(self) -> Dict[str, Any]:
        """Plan a weekly focus for every user with a voice profile."""
        planned = 0
        for profile in await db.list_profiles():
            voice_profile = await db.get_voice_profile(profile.id)
            if not voice_profile:
                continue
            plan = await strategy_agent.plan_week(profile, voice_profile)
            self.weekly_plans[str(profile.id)] = plan
            await collective_intelligence.share_knowledge(
                "strategy_agent",
                {"insight": plan["focus"], "confidence": plan["confidence"], "evidence": plan["themes"]},
                {"industry": profile.industry, "user_id": str(profile.id)}
            )
            planned += 1
        return {"usersPlanned": planned}

    async def run_publishing(self) -> Dict[str, Any]:
        published = failed = 0
        for record in await db.get_due_scheduled_posts(_now()):
            account = await db.get_active_linkedin_account(record.user_id)
            updated = await publish_scheduled_post(record, account)
            if updated.status == "published":
                published += 1
            else:
                failed += 1
        return {"published": published, "failed": failed}

    async def run_automation(self) -> Dict[str, Any]:
        executed = []
        for rule in automation_engine.get_due_scheduled_rules():
            try:
                executed.append(await automation_engine.execute_automation_rule(
                    rule.id, {"trigger": "schedule"}, {"user_id": rule.user_id}
                ))
            except AuthorityPilotError as e:
                logger.warning(f"Scheduled automation {rule.id} not run: {e}")
        return {"executions": executed}

    async def run_content(self) -> Dict[str, Any]:
        """Keep a small backlog of drafts for every user with a voice profile."""
        drafted = 0
        for profile in await db.list_profiles():
            voice_profile = await db.get_voice_profile(profile.id)
            if not voice_profile:
                continue
            drafts = await db.list_content_posts(profile.id, status="draft", limit=DRAFT_BACKLOG)
            if len(drafts) >= DRAFT_BACKLOG:
                continue

            plan = self.weekly_plans.get(str(profile.id))
            topic = plan["focus"] if plan else generate_topic_prompt(profile)
            try:
                generated = await voice_trainer.generate_content(topic, voice_profile)
            except AuthorityPilotError as e:
                logger.warning(f"Draft not generated for {profile.id}: {e}")
                continue

            text = generated["content"]
            post = await db.create_content_post(ContentPost(
                user_id=profile.id,
                status="draft",
                content={"text": text, "hashtags": extract_hashtags(text), "mentions": extract_mentions(text)},
                ai_generated=True,
                ai_confidence_score=generated["confidence"],
                generation_prompt=topic,
                voice_profile_version=voice_profile.training_version
            ))
            await human_loop.request_human_input(
                str(profile.id),
                "content_creator_agent",
                {
                    "type": "content",
                    "id": str(post.id),
                    "description": f"New draft: {text[:120]}",
                    "confidence": generated["confidence"],
                },
                urgency="low"
            )
            drafted += 1
        return {"draftsCreated": drafted}

    async def run_engagement(self) -> Dict[str, Any]:
        """Like or comment on industry posts for every connected user."""
        profiles = await db.list_profiles()
        posts = await db.list_published_linkedin_posts()
        by_id = {str(p.id): p for p in profiles}
        comments = likes = 0
        for profile in profiles:
            account = await db.get_active_linkedin_account(profile.id)
            if not account or account.is_expired():
                continue
            voice_profile = await db.get_voice_profile(profile.id)
            if not voice_profile:
                continue
            try:
                result = await engagement_agent.engage_for_user(profile, voice_profile, account, posts, by_id)
            except (LinkedInAPIError, httpx.HTTPError) as e:
                logger.warning(f"Engagement skipped for {profile.id}: {e}")
                continue
            comments += result["comments"]
            likes += result["likes"]
        return {"comments": comments, "likes": likes}

    async def refresh_account_profile(self, account: LinkedInAccount) -> None:
        """Store the member's headline, picture and connection count on the account."""
        api = create_linkedin_api(account)
        try:
            member = await api.get_profile()
        except (LinkedInAPIError, httpx.HTTPError) as e:
            logger.warning(f"Profile refresh failed for account {account.id}: {e}")
            return
        network = await api.get_network_metrics()
        await db.update_linkedin_account(account.id, {"profile_data": {
            **(account.profile_data or {}),
            "id": member.get("id"),
            "headline": member.get("headline"),
            "pictureUrl": get_profile_picture_url(member),
            "connections": network["connections"],
            "refreshedAt": _now().isoformat(),
        }})

    async def run_analytics(self) -> Dict[str, Any]:
        """Refresh metrics of published posts and feed them to the learning engine."""
        updated = 0
        accounts: Dict[str, Any] = {}
        for record in await db.list_published_linkedin_posts():
            if not record.linkedin_post_id:
                continue
            key = str(record.user_id)
            if key not in accounts:
                account = await db.get_active_linkedin_account(record.user_id)
                if account and not account.is_expired():
                    await self.refresh_account_profile(account)
                accounts[key] = account
            account = accounts[key]
            if not account or account.is_expired():
                continue

            try:
                metrics = await create_linkedin_api(account).fetch_post_metrics(record.linkedin_post_id)
            except (LinkedInAPIError, httpx.HTTPError) as e:
                logger.warning(f"Metrics unavailable for {record.id}, keeping stored values: {e}")
                continue

            await db.update_linkedin_post(record.id, {"performance_data": metrics})
            engagement = metrics.get("likes", 0) + metrics.get("comments", 0) + metrics.get("shares", 0)
            await learning_engine.learn_from_experience("analytics_agent", Experience(
                category="content",
                objective="engagement",
                action="publish linkedin post",
                context={"length": len(record.content)},
                results=[{"success": engagement > 0, "value": engagement}]
            ))
            updated += 1
        return {"postsAnalyzed": updated}

    async def run_orchestration(self) -> Dict[str, Any]:
        expired = await human_loop.expire_overdue_tasks()
        resumed = self.resume_unblocked()
        return {
            "expiredTasks": expired,
            "resumedLoops": resumed,
            "overall": self.get_system_status()["overall"],
        }


class EmergencyThresholds(APIModel):
    failure_rate: float = 0.3
    response_time: float = 10.0  # seconds of average loop duration
    resource_usage: float = 85.0  # percent


class SchedulerConfig(APIModel):
    auto_start: bool = False
    health_check_interval: float = 5  # minutes
    emergency_thresholds: EmergencyThresholds = Field(default_factory=EmergencyThresholds)


class ContentPreferences(APIModel):
    frequency: str = "medium"
    platforms: List[str] = Field(default_factory=lambda: ["linkedin"])
    topics: List[str] = Field(default_factory=list)


class UserActivity(APIModel):
    user_id: str
    last_seen: Optional[datetime] = None
    timezone: str = "UTC"
    peak_hours: List[int] = Field(default_factory=lambda: list(DEFAULT_PEAK_HOURS))
    content_preferences: ContentPreferences = Field(default_factory=ContentPreferences)
    posting_windows: List[datetime] = Field(default_factory=list)


def activity_from_profile(profile: Profile) -> UserActivity:
    preferences = profile.preferences or {}
    return UserActivity(
        user_id=str(profile.id),
        last_seen=profile.updated_at,
        timezone=profile.timezone or "UTC",
        peak_hours=preferences.get("peak_hours") or list(DEFAULT_PEAK_HOURS),
        content_preferences=ContentPreferences(
            frequency=preferences.get("content_frequency") or "medium",
            platforms=preferences.get("platforms") or ["linkedin"],
            topics=preferences.get("topics") or []
        )
    )


def next_posting_windows(activity: UserActivity, now: Optional[datetime] = None) -> List[datetime]:
    """Upcoming peak hours in the user's timezone, capped per day by posting frequency."""
    try:
        tz = ZoneInfo(activity.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {activity.timezone}, using UTC for posting windows")
        tz = ZoneInfo("UTC")

    local_now = (now or _now()).astimezone(tz)
    per_day = POSTS_PER_DAY.get(activity.content_preferences.frequency, POSTS_PER_DAY["medium"])
    hours = sorted({h for h in activity.peak_hours if 0 <= h <= 23})

    windows: List[datetime] = []
    for day in range(3):
        date = (local_now + timedelta(days=day)).date()
        upcoming = [
            datetime(date.year, date.month, date.day, hour, tzinfo=tz)
            for hour in hours
        ]
        windows.extend([w for w in upcoming if w > local_now][:per_day])
        if len(windows) >= MAX_POSTING_WINDOWS:
            break
    return windows[:MAX_POSTING_WINDOWS]


class AutonomousScheduler:
    """Owns the loop controller, user activity patterns and emergency handling."""

    def __init__(self, config: Optional[SchedulerConfig] = None):
        self.config = config or SchedulerConfig(
            auto_start=settings.scheduler_auto_start,
            health_check_interval=settings.health_check_interval_minutes,
            emergency_thresholds=EmergencyThresholds(
                failure_rate=settings.emergency_failure_rate,
                response_time=settings.emergency_response_time,
                resource_usage=settings.emergency_resource_usage
            )
        )
        self.controller = LoopController()
        self.user_activities: Dict[str, UserActivity] = {}
        self.is_initialized = False
        self._monitor_task: Optional[asyncio.Task] = None

    async def _prepare(self) -> None:
        if self.is_initialized:
            return
        logger.info("Initializing autonomous scheduler")
        await self.load_user_activities()
        self.is_initialized = True

    async def initialize(self) -> None:
        await self._prepare()
        if self.config.auto_start:
            await self.start()

    async def start(self) -> None:
        await self._prepare()
        await self.controller.start()
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self._monitor(), name="scheduler:monitor")
        logger.info("Autonomous scheduler is operational")

    async def stop(self) -> None:
        logger.info("Stopping autonomous scheduler")
        if self._monitor_task:
            self._monitor_task.cancel()
            await asyncio.gather(self._monitor_task, return_exceptions=True)
            self._monitor_task = None
        await self.controller.stop()
        self.is_initialized = False

    async def _monitor(self) -> None:
        last_refresh = time.monotonic()
        while True:
            await asyncio.sleep(self.config.health_check_interval * 60)
            await self.check_emergency_conditions()
            if time.monotonic() - last_refresh >= ACTIVITY_REFRESH_SECONDS:
                await self.load_user_activities()
                last_refresh = time.monotonic()

    # ==================== USER ACTIVITY ====================

    async def load_user_activities(self) -> None:
        try:
            profiles = await db.list_profiles()
        except Exception as e:
            logger.error(f"Failed to load user activities: {e}")
            return
        for profile in profiles:
            activity = activity_from_profile(profile)
            previous = self.user_activities.get(activity.user_id)
            if previous:
                activity.posting_windows = previous.posting_windows
            self.user_activities[activity.user_id] = activity
        logger.info(f"Loaded activity patterns for {len(self.user_activities)} users")

    async def optimize_for_user(self, user_id: str, now: Optional[datetime] = None) -> UserActivity:
        """
        Recompute a user's activity and next posting windows.

        Raises:
            NotFoundError: When the user has no profile
        """
        profile = await db.get_profile(user_id)
        if profile:
            activity = activity_from_profile(profile)
        elif user_id in self.user_activities:
            activity = self.user_activities[user_id]
        else:
            raise NotFoundError(f"No activity data for user {user_id}")

        activity.posting_windows = next_posting_windows(activity, now)
        self.user_activities[activity.user_id] = activity
        logger.info(f"Optimized loops for user {user_id}: {len(activity.posting_windows)} posting windows")
        return activity

    # ==================== EMERGENCIES ====================

    async def check_emergency_conditions(self) -> List[str]:
        """Compare system health to the thresholds and react; returns the emergencies handled."""
        health = self.controller.get_system_status()
        thresholds = self.config.emergency_thresholds
        statuses = list(self.controller.status.values())
        triggered = []

        failed = sum(1 for s in statuses if s.status == "failed")
        failure_rate = failed / len(statuses) if statuses else 0.0
        if failure_rate > thresholds.failure_rate:
            triggered.append(("high_failure_rate", {"current": failure_rate, "threshold": thresholds.failure_rate}))

        usage = health["resources"]["loopUtilization"]
        if usage > thresholds.resource_usage:
            triggered.append(("resource_exhaustion", {"current": usage, "threshold": thresholds.resource_usage}))

        ran = [s.average_duration for s in statuses if s.run_count]
        average_duration = sum(ran) / len(ran) if ran else 0.0
        if average_duration > thresholds.response_time:
            triggered.append(("slow_response", {"current": average_duration, "threshold": thresholds.response_time}))

        if health["overall"] == "critical":
            triggered.append(("system_critical", {"overall": health["overall"]}))

        for emergency_type, data in triggered:
            await self.handle_emergency(emergency_type, data)
        return [emergency_type for emergency_type, _ in triggered]

    async def handle_emergency(self, emergency_type: str, data: Dict[str, Any]) -> None:
        logger.error(f"EMERGENCY: {emergency_type} {data}")
        if emergency_type in ("high_failure_rate", "slow_response"):
            self.controller.slow_down()
        elif emergency_type == "resource_exhaustion":
            paused = self.controller.pause_non_critical()
            logger.warning(f"Paused non-critical loops: {paused}")
        elif emergency_type == "system_critical":
            await self.controller.restart()

        try:
            await db.create_system_alert(SystemAlert(
                type="emergency",
                severity="critical",
                message=f"Emergency condition: {emergency_type}",
                data=data
            ))
        except Exception as e:
            logger.error(f"Could not store emergency alert: {e}")

    def get_status(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "systemHealth": self.controller.get_system_status(),
            "userCount": len(self.user_activities),
            "config": self.config,
        }


# Global scheduler
scheduler = AutonomousScheduler()
