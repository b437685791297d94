"""
agentflow: streaming multi-agent runs and a manifest-driven workflow runner.
"""

from .models import EchoModelProvider, Model, ModelProvider, ModelSettings, MultiProvider
from .run_context import RunContext
from .tools import Tool, function_tool
from .agents import (
    Agent,
    AgentError,
    Handoff,
    InputGuardrail,
    ItemHelpers,
    OutputGuardrail,
    StopAtTools,
)
from .core import RunConfig, Runner, RunResult, RunResultStreaming
from .sessions import Session, create_session
from .workflow import RunnerService, WorkflowBuilder, load_workflow_request, new_default_builder
from .config import AgentflowConfig

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentError",
    "AgentflowConfig",
    "EchoModelProvider",
    "Handoff",
    "InputGuardrail",
    "ItemHelpers",
    "Model",
    "ModelProvider",
    "ModelSettings",
    "MultiProvider",
    "OutputGuardrail",
    "RunConfig",
    "RunContext",
    "RunResult",
    "RunResultStreaming",
    "Runner",
    "RunnerService",
    "Session",
    "StopAtTools",
    "Tool",
    "WorkflowBuilder",
    "create_session",
    "function_tool",
    "load_workflow_request",
    "new_default_builder",
]
