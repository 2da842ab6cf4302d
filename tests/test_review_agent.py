"""Tests for the review agent loop."""

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from conftest import FakeAnalyzer, FakeDiff, ScriptedBackend, location, tool_reply
from llm_reviewer.agent import ReviewAgent, RetryPolicy, ToolDispatcher
from llm_reviewer.agent.prompts import DEFAULT_SYSTEM_PROMPT, FINAL_ROUND_REMINDER, NO_CHANGES
from llm_reviewer.agent.review_agent import message_text
from llm_reviewer.exceptions import (
    LoopLimitExceeded,
    ModelBackendError,
    RateLimitedError,
)
from llm_reviewer.models import LoopState, Role
from llm_reviewer.symbols import ASTResolver
from llm_reviewer.workspace import FSReader


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def dispatcher(project):
    root = project.resolve()
    return ToolDispatcher(
        root_path=root,
        analyzer=FakeAnalyzer([location(root / "pkg" / "service.py", 7, 15)]),
        reader=FSReader(root),
        differ=FakeDiff(""),
        resolver=ASTResolver(root),
    )


def make_agent(backend, dispatcher, sleep=None, **kwargs):
    return ReviewAgent(
        backend=backend,
        dispatcher=dispatcher,
        retry_policy=RetryPolicy(sleep=sleep or RecordingSleep()),
        **kwargs,
    )


def reminders_in(messages) -> int:
    return sum(
        1
        for message in messages
        if isinstance(message, HumanMessage) and message.content == FINAL_ROUND_REMINDER
    )


class TestReviewLoop:
    """Tests for the round loop."""

    @pytest.mark.asyncio
    async def test_immediate_answer(self, dispatcher):
        """Test a reply without tool calls ends the session in one round."""
        backend = ScriptedBackend([AIMessage(content="No issues found.")])
        agent = make_agent(backend, dispatcher)

        result = await agent.run("Review the project")

        assert result == "No issues found."
        assert len(backend.calls) == 1
        assert backend.system_instructions == [DEFAULT_SYSTEM_PROMPT]
        assert agent.session.state == LoopState.DONE
        assert agent.session.rounds == 1
        assert agent.session.conversation.roles == [Role.USER]

    @pytest.mark.asyncio
    async def test_one_tool_round(self, dispatcher):
        """Test tool results are fed back before the next model turn."""
        backend = ScriptedBackend(
            [
                tool_reply(("find-symbol", {"name": "helper"})),
                AIMessage(content="helper is defined once."),
            ]
        )
        agent = make_agent(backend, dispatcher, system_prompt="Persona prompt")

        result = await agent.run("Where is helper?")

        assert result == "helper is defined once."
        second_call = backend.calls[1]
        assert [type(m) for m in second_call] == [HumanMessage, AIMessage, ToolMessage]
        tool_result = second_call[2]
        assert tool_result.content == 'Found symbol "helper" at:\npkg/service.py:11:5'
        assert tool_result.tool_call_id == "call_0"
        assert tool_result.name == "find-symbol"
        assert backend.system_instructions == ["Persona prompt", "Persona prompt"]
        assert agent.session.conversation.roles == [Role.USER, Role.MODEL, Role.TOOL]

    @pytest.mark.asyncio
    async def test_tool_results_in_call_order(self, dispatcher):
        """Test several calls in one turn are answered in order."""
        backend = ScriptedBackend(
            [
                tool_reply(
                    ("find-references", {"file_path": "pkg/service.py", "line": 11, "character": 5}),
                    ("get-diff", {}),
                    ("read-file", {"file_path": "pkg/__init__.py"}),
                ),
                AIMessage(content="done"),
            ]
        )
        agent = make_agent(backend, dispatcher)

        await agent.run("Review")

        tool_messages = backend.calls[1][2:]
        assert [m.name for m in tool_messages] == ["find-references", "get-diff", "read-file"]
        assert [m.tool_call_id for m in tool_messages] == ["call_0", "call_1", "call_2"]
        assert tool_messages[0].content == "Found references:\npkg/service.py:8"
        assert tool_messages[1].content == NO_CHANGES

    @pytest.mark.asyncio
    async def test_tool_error_fed_back(self, dispatcher):
        """Test a failing tool becomes error text instead of ending the session."""
        backend = ScriptedBackend(
            [
                tool_reply(("read-file", {"file_path": "../../etc/passwd"})),
                AIMessage(content="Could not read that file."),
            ]
        )
        agent = make_agent(backend, dispatcher)

        result = await agent.run("Read passwd")

        assert result == "Could not read that file."
        tool_result = backend.calls[1][2]
        assert tool_result.content.startswith("Error:")
        assert tool_result.status == "error"

    @pytest.mark.asyncio
    async def test_malformed_tool_arguments_fed_back(self, dispatcher):
        """Test unparsable tool arguments are reported to the model, not taken as the answer."""
        backend = ScriptedBackend(
            [
                AIMessage(
                    content="",
                    invalid_tool_calls=[
                        {"name": "read-file", "args": "{bad json", "id": "c1", "error": "bad"}
                    ],
                ),
                AIMessage(content="final"),
            ]
        )
        agent = make_agent(backend, dispatcher)

        result = await agent.run("Review")

        assert result == "final"
        assert len(backend.calls) == 2
        tool_result = backend.calls[1][-1]
        assert isinstance(tool_result, ToolMessage)
        assert tool_result.tool_call_id == "c1"
        assert tool_result.status == "error"
        assert tool_result.content == "Error: malformed arguments for read-file: bad"
        assert agent.session.conversation.roles == [Role.USER, Role.MODEL, Role.TOOL]

    @pytest.mark.asyncio
    async def test_valid_and_malformed_calls_in_one_turn(self, dispatcher):
        """Test a turn mixing good and bad calls answers every call."""
        reply = AIMessage(
            content="",
            tool_calls=[{"name": "get-diff", "args": {}, "id": "call_0"}],
            invalid_tool_calls=[{"name": "find-symbol", "args": "{", "id": "c9", "error": None}],
        )
        backend = ScriptedBackend([reply, AIMessage(content="done")])
        agent = make_agent(backend, dispatcher)

        await agent.run("Review")

        tool_messages = backend.calls[1][2:]
        assert [m.tool_call_id for m in tool_messages] == ["call_0", "c9"]
        assert tool_messages[0].content == NO_CHANGES
        assert tool_messages[1].content.startswith("Error: malformed arguments for find-symbol")

    @pytest.mark.asyncio
    async def test_loop_limit(self, dispatcher):
        """Test a model that never stops calling tools fails after ten rounds."""
        backend = ScriptedBackend(default=tool_reply(("get-diff", {})))
        agent = make_agent(backend, dispatcher)

        with pytest.raises(LoopLimitExceeded, match=r"loop limit exceeded \(10 rounds\)"):
            await agent.run("Review forever")

        assert len(backend.calls) == 10
        assert agent.session.state == LoopState.FAILED
        assert isinstance(agent.session.error, LoopLimitExceeded)

    @pytest.mark.asyncio
    async def test_final_round_reminder(self, dispatcher):
        """Test the reminder is appended once and seen only by the last turn."""
        backend = ScriptedBackend(default=tool_reply(("get-diff", {})))
        agent = make_agent(backend, dispatcher)

        with pytest.raises(LoopLimitExceeded):
            await agent.run("Review forever")

        assert [reminders_in(messages) for messages in backend.calls] == [0] * 9 + [1]
        assert agent.session.reminders == 1
        last_turn = backend.calls[-1]
        assert last_turn[-1].content == FINAL_ROUND_REMINDER
        assert isinstance(last_turn[-2], ToolMessage)

    @pytest.mark.asyncio
    async def test_reminder_then_answer(self, dispatcher):
        """Test a model that answers after the reminder succeeds."""
        backend = ScriptedBackend(
            [tool_reply(("get-diff", {}))] * 9 + [AIMessage(content="Final review.")]
        )
        agent = make_agent(backend, dispatcher)

        assert await agent.run("Review") == "Final review."
        assert agent.session.rounds == 10
        assert agent.session.state == LoopState.DONE

    @pytest.mark.asyncio
    async def test_no_reminder_on_early_finish(self, dispatcher):
        """Test short sessions never see the reminder."""
        backend = ScriptedBackend(
            [tool_reply(("get-diff", {}))] * 3 + [AIMessage(content="ok")]
        )
        agent = make_agent(backend, dispatcher)

        await agent.run("Review")

        assert all(reminders_in(messages) == 0 for messages in backend.calls)
        assert agent.session.reminders == 0

    @pytest.mark.asyncio
    async def test_custom_round_budget(self, dispatcher):
        """Test the round budget is configurable."""
        backend = ScriptedBackend(default=tool_reply(("get-diff", {})))
        agent = make_agent(backend, dispatcher, max_rounds=3)

        with pytest.raises(LoopLimitExceeded, match="3 rounds"):
            await agent.run("Review")

        assert len(backend.calls) == 3
        assert [reminders_in(messages) for messages in backend.calls] == [0, 0, 1]


class TestRateLimits:
    """Tests for rate limit handling."""

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, dispatcher):
        """Test rate limited turns are retried after 30s and 60s."""
        sleep = RecordingSleep()
        backend = ScriptedBackend(
            [
                RateLimitedError("429"),
                RateLimitedError("429"),
                AIMessage(content="Recovered."),
            ]
        )
        agent = make_agent(backend, dispatcher, sleep=sleep)

        assert await agent.run("Review") == "Recovered."
        assert sleep.delays == [30.0, 60.0]
        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, dispatcher):
        """Test the session fails after three rate limited attempts."""
        sleep = RecordingSleep()
        backend = ScriptedBackend(default=RateLimitedError("429"))
        agent = make_agent(backend, dispatcher, sleep=sleep)

        with pytest.raises(RateLimitedError):
            await agent.run("Review")

        assert len(backend.calls) == 3
        assert sleep.delays == [30.0, 60.0]
        assert agent.session.state == LoopState.FAILED

    @pytest.mark.asyncio
    async def test_other_backend_errors_not_retried(self, dispatcher):
        """Test non rate limit failures end the session at once."""
        sleep = RecordingSleep()
        backend = ScriptedBackend([ModelBackendError("agent: generate content: bad request")])
        agent = make_agent(backend, dispatcher, sleep=sleep)

        with pytest.raises(ModelBackendError, match="bad request"):
            await agent.run("Review")

        assert len(backend.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self, dispatcher):
        """Test cancellation interrupts the backoff wait."""
        backend = ScriptedBackend(default=RateLimitedError("429"))

        async def hanging_sleep(delay):
            await asyncio.Event().wait()

        agent = make_agent(backend, dispatcher, sleep=hanging_sleep)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(agent.run("Review"), timeout=0.1)

        assert len(backend.calls) == 1
        assert agent.session.state == LoopState.FAILED


class TestMessageText:
    """Tests for extracting reply text."""

    def test_string_content(self):
        assert message_text(AIMessage(content="plain")) == "plain"

    def test_content_blocks(self):
        """Test text blocks are joined and other blocks skipped."""
        message = AIMessage(
            content=[
                {"type": "text", "text": "Part one. "},
                {"type": "tool_use", "id": "x", "name": "get-diff", "input": {}},
                {"type": "text", "text": "Part two."},
            ]
        )

        assert message_text(message) == "Part one. Part two."
