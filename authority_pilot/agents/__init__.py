"""AI Agents module."""
from authority_pilot.agents.base import APIModel, BaseAgent, get_current_context
from authority_pilot.agents.voice_trainer import VoiceTrainerAgent, voice_trainer
from authority_pilot.agents.strategy import StrategyAgent, strategy_agent
from authority_pilot.agents.communication import AgentMessage, CommunicationBus, communication_bus
from authority_pilot.agents.learning_engine import Experience, LearningEngine, learning_engine
from authority_pilot.agents.collective import CollectiveIntelligence, collective_intelligence
from authority_pilot.agents.knowledge import KnowledgeRepository, knowledge_repository
from authority_pilot.agents.predictive import PredictiveIntelligenceAgent, predictive_intelligence
from authority_pilot.agents.human_loop import HumanInTheLoopSystem, human_loop
from authority_pilot.agents.automation import AdvancedAutomationEngine, automation_engine
from authority_pilot.agents.competitive import CompetitiveIntelligenceAgent, competitive_intelligence
from authority_pilot.agents.engagement import EngagementAgent, engagement_agent
from authority_pilot.agents.workflows import CollaborativeWorkflowSystem, collaborative_workflows

__all__ = [
    "APIModel",
    "BaseAgent",
    "get_current_context",
    "VoiceTrainerAgent",
    "voice_trainer",
    "StrategyAgent",
    "strategy_agent",
    "AgentMessage",
    "CommunicationBus",
    "communication_bus",
    "Experience",
    "LearningEngine",
    "learning_engine",
    "CollectiveIntelligence",
    "collective_intelligence",
    "KnowledgeRepository",
    "knowledge_repository",
    "PredictiveIntelligenceAgent",
    "predictive_intelligence",
    "HumanInTheLoopSystem",
    "human_loop",
    "AdvancedAutomationEngine",
    "automation_engine",
    "CompetitiveIntelligenceAgent",
    "competitive_intelligence",
    "EngagementAgent",
    "engagement_agent",
    "CollaborativeWorkflowSystem",
    "collaborative_workflows",
]
