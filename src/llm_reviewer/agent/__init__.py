"""AI agent module for llm-reviewer.

This module contains the review loop and everything it drives:
- The model back-end adapter (LangChain chat models with tool calling)
- The review tools and their dispatcher
- The retry policy for rate limited model calls
"""

from .backend import LangChainBackend, ModelBackend, create_backend
from .retry import RetryPolicy
from .review_agent import Conversation, ReviewAgent, ReviewSession
from .tools import REVIEW_TOOLS, ToolDispatcher, tool_schemas

__all__ = [
    "ReviewAgent",
    "ReviewSession",
    "Conversation",
    "ModelBackend",
    "LangChainBackend",
    "create_backend",
    "RetryPolicy",
    "ToolDispatcher",
    "REVIEW_TOOLS",
    "tool_schemas",
]
