"""Review agent driving the model through bounded rounds of tool calls."""

import asyncio
from typing import Any, Iterable, Iterator

import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from ..exceptions import LoopLimitExceeded
from ..models import LoopState, Role, ToolCall, ToolResult
from .backend import ModelBackend
from .prompts import DEFAULT_SYSTEM_PROMPT, FINAL_ROUND_REMINDER
from .retry import RetryPolicy
from .tools import ToolDispatcher, tool_schemas

logger = structlog.get_logger(__name__)

MAX_ROUNDS = 10


def role_of(message: BaseMessage) -> Role:
    """Conversation role of a message."""
    if isinstance(message, ToolMessage):
        return Role.TOOL
    if isinstance(message, AIMessage):
        return Role.MODEL
    return Role.USER


def message_text(message: BaseMessage) -> str:
    """Plain text of a model reply, whatever content shape the provider used."""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def tool_calls_of(message: AIMessage) -> list[ToolCall]:
    return [
        ToolCall(name=call["name"], args=call.get("args") or {}, id=call.get("id"))
        for call in message.tool_calls
    ]


def malformed_call_results(message: AIMessage) -> list[ToolResult]:
    """Error results for tool calls whose arguments could not be parsed."""
    results = []
    for call in message.invalid_tool_calls:
        name = call.get("name") or "unknown"
        reason = call.get("error") or f"unparsable arguments {call.get('args')!r}"
        results.append(
            ToolResult(
                name=name,
                content=f"Error: malformed arguments for {name}: {reason}",
                call_id=call.get("id"),
                is_error=True,
            )
        )
    return results


def tool_message(result: ToolResult) -> ToolMessage:
    return ToolMessage(
        content=result.content,
        tool_call_id=result.call_id or result.name,
        name=result.name,
        status="error" if result.is_error else "success",
    )


class Conversation:
    """Append-only sequence of conversation turns."""

    def __init__(self, query: str):
        self._turns: list[BaseMessage] = [HumanMessage(content=query)]

    def append(self, turn: BaseMessage) -> None:
        self._turns.append(turn)

    def extend(self, turns: Iterable[BaseMessage]) -> None:
        self._turns.extend(turns)

    @property
    def turns(self) -> tuple[BaseMessage, ...]:
        return tuple(self._turns)

    @property
    def roles(self) -> list[Role]:
        return [role_of(turn) for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[BaseMessage]:
        return iter(self.turns)


class ReviewSession:
    """State of one review: its conversation and where the loop stands."""

    def __init__(self, query: str):
        self.query = query
        self.conversation = Conversation(query)
        self.state = LoopState.AWAITING_MODEL_TURN
        self.rounds = 0
        self.reminders = 0
        self.result: str | None = None
        self.error: BaseException | None = None

    def finish(self, text: str) -> None:
        self.state = LoopState.DONE
        self.result = text

    def fail(self, error: BaseException) -> None:
        self.state = LoopState.FAILED
        self.error = error


class ReviewAgent:
    """Agent running the think, call tool, observe loop for one review.

    Each round asks the model for a turn. A turn without tool calls is the
    final answer; otherwise every requested tool runs and its result is fed
    back. Before the last round the model is told to answer, and a session
    that still has no answer after `max_rounds` fails.
    """

    def __init__(
        self,
        backend: ModelBackend,
        dispatcher: ToolDispatcher,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_rounds: int = MAX_ROUNDS,
        retry_policy: RetryPolicy | None = None,
    ):
        self.backend = backend
        self.dispatcher = dispatcher
        self.system_prompt = system_prompt
        self.max_rounds = max_rounds
        self.retry_policy = retry_policy or RetryPolicy()
        self.tools = tool_schemas()
        self.session: ReviewSession | None = None
        self.logger = logger.bind(component="ReviewAgent")

    async def run(self, query: str) -> str:
        """Run a review session for `query` and return the final review text."""
        session = ReviewSession(query)
        self.session = session
        try:
            return await self._run_rounds(session)
        except (Exception, asyncio.CancelledError) as e:
            session.fail(e)
            self.logger.error("Review session failed", rounds=session.rounds, error=str(e) or type(e).__name__)
            raise

    async def _run_rounds(self, session: ReviewSession) -> str:
        for round_index in range(self.max_rounds):
            session.rounds = round_index + 1
            session.state = LoopState.AWAITING_MODEL_TURN
            self.logger.info("Thinking...", round=session.rounds, max_rounds=self.max_rounds)

            reply = await self._request_turn(session.conversation)
            calls = tool_calls_of(reply)
            malformed = malformed_call_results(reply)
            if not calls and not malformed:
                text = message_text(reply)
                session.finish(text)
                self.logger.info("Review finished", rounds=session.rounds, chars=len(text))
                return text

            session.conversation.append(reply)
            session.state = LoopState.EXECUTING_TOOLS
            if malformed:
                self.logger.warning("Malformed tool calls", tools=[r.name for r in malformed])
            results = await self.dispatcher.dispatch_all(calls) + malformed
            session.conversation.extend(tool_message(result) for result in results)

            if round_index == self.max_rounds - 2:
                session.conversation.append(HumanMessage(content=FINAL_ROUND_REMINDER))
                session.reminders += 1

        raise LoopLimitExceeded(self.max_rounds)

    async def _request_turn(self, conversation: Conversation) -> AIMessage:
        reply: Any = None
        async for attempt in self.retry_policy.retrying():
            with attempt:
                reply = await self.backend.generate(
                    conversation.turns, self.system_prompt, self.tools
                )
        return reply
