"""llm-reviewer - LLM agent for code review."""

__version__ = "0.1.0"

from .agent import ReviewAgent
from .config import Settings
from .exceptions import ReviewError
from .lsp import LanguageServerClient
from .services import ReviewService

__all__ = [
    "ReviewAgent",
    "ReviewService",
    "ReviewError",
    "LanguageServerClient",
    "Settings",
]
