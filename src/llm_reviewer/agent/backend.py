"""Model back-end used by the review agent."""

from typing import Any, Protocol, Sequence

import structlog
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import Settings
from ..exceptions import ModelBackendError, RateLimitedError

logger = structlog.get_logger(__name__)


class ModelBackend(Protocol):
    """Produces the next model turn for a conversation."""

    async def generate(
        self,
        messages: Sequence[BaseMessage],
        system_instruction: str,
        tools: Sequence[dict[str, Any]],
    ) -> AIMessage: ...


def is_rate_limit_error(error: BaseException) -> bool:
    """Whether a provider error means the request was rate limited."""
    if getattr(error, "status_code", None) == 429:
        return True
    if type(error).__name__ == "RateLimitError":
        return True
    message = str(error)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


class LangChainBackend:
    """Model back-end on top of a LangChain chat model with tool calling."""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm
        self.logger = logger.bind(component="LangChainBackend")

    async def generate(
        self,
        messages: Sequence[BaseMessage],
        system_instruction: str,
        tools: Sequence[dict[str, Any]],
    ) -> AIMessage:
        model = self.llm.bind_tools(list(tools))
        try:
            reply = await model.ainvoke([SystemMessage(content=system_instruction), *messages])
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitedError(str(e)) from e
            self.logger.error("Model call failed", error=str(e))
            raise ModelBackendError(f"agent: generate content: {e}") from e
        return reply


def create_backend(config: Settings) -> LangChainBackend:
    """Build the chat model from configured API keys."""
    if not (config.anthropic_api_key or config.openai_api_key):
        raise ModelBackendError("No AI API key provided")

    try:
        if config.anthropic_api_key:
            llm = ChatAnthropic(
                model=config.anthropic_model,
                api_key=config.anthropic_api_key,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        else:
            llm = ChatOpenAI(
                model=config.default_model,
                api_key=config.openai_api_key,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
    except Exception as e:
        raise ModelBackendError(f"failed to create model client: {e}") from e

    logger.info("Model back-end ready", provider=type(llm).__name__)
    return LangChainBackend(llm)
