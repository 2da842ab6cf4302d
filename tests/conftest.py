"""Pytest configuration and fixtures."""

import asyncio
import json
from pathlib import Path

import pytest
from langchain_core.messages import AIMessage

from llm_reviewer.config import Settings
from llm_reviewer.lsp.types import Location

PERSONA_DIR = Path(__file__).resolve().parents[1] / "configs" / "personas"


def decode_frames(data: bytes) -> list[dict]:
    """Split a byte string of Content-Length frames into messages."""
    messages = []
    while data:
        header, _, rest = data.partition(b"\r\n\r\n")
        length = int(header.split(b":", 1)[1])
        messages.append(json.loads(rest[:length]))
        data = rest[length:]
    return messages


async def settle(times: int = 20) -> None:
    """Let other tasks run until they block."""
    for _ in range(times):
        await asyncio.sleep(0)


class FakeWriter:
    """In-memory stand-in for asyncio.StreamWriter."""

    def __init__(self):
        self.buffer = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass

    @property
    def messages(self) -> list[dict]:
        return decode_frames(bytes(self.buffer))


class FakeAnalyzer:
    """Language server double returning canned locations."""

    def __init__(self, locations: list[Location] | None = None, error: Exception | None = None):
        self.locations = locations or []
        self.error = error
        self.calls = []
        self.closed = False

    async def references(self, file_path, line, character):
        self.calls.append((Path(file_path), line, character))
        if self.error:
            raise self.error
        return list(self.locations)

    async def close(self):
        self.closed = True


class FakeDiff:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error

    def diff(self) -> str:
        if self.error:
            raise self.error
        return self.text


class FakeResolver:
    def __init__(self, symbols: dict | None = None):
        self.symbols = symbols or {}

    def find_symbol(self, name):
        return list(self.symbols.get(name, []))


class ScriptedBackend:
    """Model back-end double replaying queued replies or errors."""

    def __init__(self, replies=None, default=None):
        self.replies = list(replies or [])
        self.default = default
        self.calls = []
        self.system_instructions = []

    async def generate(self, messages, system_instruction, tools):
        self.calls.append(list(messages))
        self.system_instructions.append(system_instruction)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        return reply


def tool_reply(*calls: tuple[str, dict]) -> AIMessage:
    """A model turn requesting the given (name, args) tool calls."""
    return AIMessage(
        content="",
        tool_calls=[
            {"name": name, "args": args, "id": f"call_{index}"}
            for index, (name, args) in enumerate(calls)
        ],
    )


def location(path: Path, line: int, character: int = 0) -> Location:
    """A wire-format (0-based) location."""
    position = {"line": line, "character": character}
    return Location.model_validate(
        {"uri": path.as_uri(), "range": {"start": position, "end": position}}
    )


@pytest.fixture
def mock_settings(tmp_path):
    """Settings for testing."""
    return Settings(
        openai_api_key="test-key",
        persona_dir=str(PERSONA_DIR),
        review_timeout=5,
        rate_limit_backoff=0.0,
    )


@pytest.fixture
def project(tmp_path):
    """A small project tree."""
    root = tmp_path / "project"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "__init__.py").write_text("")
    (root / "pkg" / "service.py").write_text(
        "import os\n"
        "\n"
        "TIMEOUT = 30\n"
        "\n"
        "\n"
        "class Service:\n"
        "    def run(self):\n"
        "        return helper()\n"
        "\n"
        "\n"
        "def helper():\n"
        "    return TIMEOUT\n"
    )
    return root


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Keep real provider keys out of tests."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
