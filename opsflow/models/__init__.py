# -*- coding: utf-8 -*-
from opsflow.infra.db import db

from .org import Organization
from .workflow import Workflow
from .workflow_execution import WorkflowExecution
from .agent import Agent
from .agent_execution import AgentExecution
from .agent_feedback import AgentFeedback, LearningInsight
from .agent_learning import AgentLearning
from .agent_tool import AgentTool, ToolInvocation
from .agent_monitor import AgentMonitor
from .integration import Integration
from .entity_record import EntityRecord

__all__ = [
    "db",
    "Organization",
    "Workflow",
    "WorkflowExecution",
    "Agent",
    "AgentExecution",
    "AgentFeedback",
    "LearningInsight",
    "AgentLearning",
    "AgentTool",
    "ToolInvocation",
    "AgentMonitor",
    "Integration",
    "EntityRecord",
]
