"""
Unit tests for configuration, errors, events and tool descriptors.
"""

import pytest
from pydantic import BaseModel, ValidationError

from agentcore.config import AgentConfig, Settings, TeamConfig
from agentcore.core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ModelInvocationError,
    NoPendingTaskError,
    SessionBusyError,
    wrap_model_error,
)
from agentcore.core.events import HITLRequestedEvent, MemberStartEvent, ReasoningEvent
from agentcore.core.trace import Trace
from agentcore.core.types import TraceStatus
from agentcore.llm.types import ToolCall, Usage
from agentcore.tests.conftest import make_tool
from agentcore.tools.protocol import ToolDescriptor, ToolSet, collect_tools


class Summary(BaseModel):
    text: str


# ============================================================
# Test Settings
# ============================================================


@pytest.mark.unit
class TestSettings:
    """Test environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.session_max_messages == 50
        assert settings.log_level == "INFO"

    def test_env_override(self, monkeypatch):
        """Test AGENTCORE_ prefixed variables are read."""
        monkeypatch.setenv("AGENTCORE_SESSION_MAX_MESSAGES", "7")
        monkeypatch.setenv("AGENTCORE_LOG_LEVEL", " debug ")

        settings = Settings(_env_file=None)

        assert settings.session_max_messages == 7
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("AGENTCORE_LOG_LEVEL", "verbose")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


# ============================================================
# Test Agent Configuration
# ============================================================


@pytest.mark.unit
class TestAgentConfig:
    """Test construction-time validation."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": " "},
            {"max_steps": 0},
            {"max_plan_steps": 0},
            {"planning_threshold": 0},
            {"model_timeout": -1},
            {"tool_timeout": 0},
            {"max_context_messages": 3},
            {"max_context_tokens": 500},
        ],
    )
    def test_invalid_values(self, overrides):
        values = {"name": "assistant", **overrides}
        with pytest.raises(ConfigurationError):
            AgentConfig(**values)

    def test_output_schema_requires_key(self):
        """Test a schema without an output key is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            AgentConfig(name="writer", output_schema=Summary)
        assert exc_info.value.field == "output_key"

    def test_output_schema_must_be_model(self):
        with pytest.raises(ConfigurationError):
            AgentConfig(name="writer", output_key="x", output_schema=dict)

    def test_from_settings(self):
        """Test settings supply defaults and overrides win."""
        settings = Settings(_env_file=None, default_max_steps=7, model_timeout_seconds=12.5)

        config = AgentConfig.from_settings("assistant", settings, planning=True)

        assert config.max_steps == 7
        assert config.model_timeout == 12.5
        assert config.planning is True

    def test_team_config_defaults(self):
        config = TeamConfig(name="crew")
        assert config.max_turns == 10
        assert config.protocol == "sequential"


# ============================================================
# Test Errors
# ============================================================


@pytest.mark.unit
class TestErrors:
    """Test the error hierarchy."""

    def test_str_includes_context(self):
        error = ModelInvocationError("boom", context=ErrorContext(operation="reason", session_id="s1"))
        assert str(error) == "[MODEL] boom | operation=reason | session_id=s1"

    def test_to_dict(self):
        data = SessionBusyError("s1").to_dict()
        assert data["error_type"] == "SessionBusyError"
        assert data["category"] == "session"
        assert data["context"]["session_id"] == "s1"

    def test_no_pending_is_hitl_error(self):
        error = NoPendingTaskError("s1")
        assert error.category == ErrorCategory.HITL
        assert "no pending task" in error.message

    def test_wrap_timeout(self):
        """Test timeouts are flagged when wrapped."""
        wrapped = wrap_model_error(TimeoutError())
        assert wrapped.timeout is True
        assert wrapped.category == ErrorCategory.TIMEOUT
        assert wrap_model_error(wrapped) is wrapped

    def test_wrap_keeps_cause(self):
        cause = ConnectionError("refused")
        wrapped = wrap_model_error(cause)
        assert wrapped.cause is cause
        assert wrapped.message == "refused"


# ============================================================
# Test Events And Traces
# ============================================================


@pytest.mark.unit
class TestEvents:
    """Test event serialization."""

    def test_categories(self):
        assert HITLRequestedEvent(session_id="s1", task_id="t", tool_name="x").to_dict()["category"] == "hitl"
        assert MemberStartEvent(session_id="s1", team_name="t", member="m", turn=1).to_dict()["category"] == "team"

    def test_with_metadata_returns_copy(self):
        event = ReasoningEvent(session_id="s1", content="hi")
        tagged = event.with_metadata(member="writer")
        assert tagged.metadata == {"member": "writer"}
        assert event.metadata == {}
        assert tagged.is_terminal is False

    def test_trace_round_trip(self):
        """Test a paused trace survives serialization."""
        trace = Trace(agent_name="assistant", session_id="s1", status=TraceStatus.PAUSED, usage=Usage(total_tokens=3))
        trace.pending_calls = [ToolCall(id="c1", name="delete_file", arguments={"path": "a"})]
        trace.add_action(trace.pending_calls[0], 1)

        restored = Trace.from_dict(trace.to_dict())

        assert restored.is_pending
        assert restored.pending_calls == trace.pending_calls
        assert restored.actions()[0]["tool_name"] == "delete_file"
        assert restored.usage.total_tokens == 3


# ============================================================
# Test Tool Descriptors
# ============================================================


@pytest.mark.unit
class TestToolDescriptor:
    """Test descriptor validation and providers."""

    def test_invalid_name(self):
        with pytest.raises(ConfigurationError):
            ToolDescriptor(name="bad name!", description="x", execute=lambda: None)

    def test_body_must_be_callable(self):
        with pytest.raises(ConfigurationError):
            ToolDescriptor(name="x", description="x", execute="not callable")

    @pytest.mark.parametrize(
        "parameters",
        [
            {"type": "string"},
            {"type": "object", "properties": []},
            {"type": "object", "properties": {}, "required": ["missing"]},
        ],
    )
    def test_invalid_parameters(self, parameters):
        with pytest.raises(ConfigurationError):
            ToolDescriptor(name="x", description="x", execute=lambda: None, parameters=parameters)

    def test_duplicate_in_tool_set(self):
        with pytest.raises(ConfigurationError):
            ToolSet([make_tool("search"), make_tool("search")])

    def test_collect_tools_first_wins(self):
        first = ToolSet([make_tool("search", description="first")])
        second = ToolSet([make_tool("search", description="second"), make_tool("fetch")])

        tools = collect_tools([first, second])

        assert [(t.name, t.description) for t in tools] == [("search", "first"), ("fetch", "The fetch tool")]

    def test_openai_format(self):
        payload = make_tool("search").to_openai_format()
        assert payload["type"] == "function"
        assert payload["function"]["name"] == "search"
