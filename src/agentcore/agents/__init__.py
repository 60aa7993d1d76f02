"""Caller-facing agents: the single ReAct agent and teams of agents."""

from agentcore.agents.protocols import (
    FINISH,
    Selection,
    SequentialProtocol,
    SupervisorProtocol,
    TeamProtocol,
    TeamState,
)
from agentcore.agents.react import ReActAgent
from agentcore.agents.team import TeamAgent

__all__ = [
    "FINISH",
    "ReActAgent",
    "Selection",
    "SequentialProtocol",
    "SupervisorProtocol",
    "TeamAgent",
    "TeamProtocol",
    "TeamState",
]
