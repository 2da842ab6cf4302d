"""Review tools the model may call, and the dispatcher that runs them."""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import PathOutsideRootError
from ..lsp.client import CodeAnalyzer
from ..lsp.types import Location
from ..models import ReferenceLocation, ToolCall, ToolResult
from ..symbols import SymbolResolver
from ..workspace import DiffProvider, FileReader
from . import prompts

logger = structlog.get_logger(__name__)

FIND_REFERENCES = "find-references"
READ_FILE = "read-file"
GET_DIFF = "get-diff"
FIND_SYMBOL = "find-symbol"


class FindReferencesInput(BaseModel):
    """Input for find-references tool."""

    file_path: str = Field(description="File path relative to the project root")
    line: int = Field(ge=1, description="Line number (1-based, as shown to humans)")
    character: int = Field(ge=1, description="Character column (1-based)")


class ReadFileInput(BaseModel):
    """Input for read-file tool."""

    file_path: str = Field(description="File path relative to the project root")


class GetDiffInput(BaseModel):
    """Input for get-diff tool."""


class FindSymbolInput(BaseModel):
    """Input for find-symbol tool."""

    name: str = Field(min_length=1, description="Symbol name to look up (e.g. ReviewAgent, load_persona)")


class ToolSpec(BaseModel):
    """A tool declared to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    args_schema: type[BaseModel]

    def to_schema(self) -> dict[str, Any]:
        """Function-calling declaration of the tool."""
        parameters = self.args_schema.model_json_schema()
        parameters.pop("title", None)
        parameters.pop("description", None)
        parameters.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


REVIEW_TOOLS = (
    ToolSpec(
        name=FIND_REFERENCES,
        description=prompts.FIND_REFERENCES_DESCRIPTION,
        args_schema=FindReferencesInput,
    ),
    ToolSpec(name=READ_FILE, description=prompts.READ_FILE_DESCRIPTION, args_schema=ReadFileInput),
    ToolSpec(name=GET_DIFF, description=prompts.GET_DIFF_DESCRIPTION, args_schema=GetDiffInput),
    ToolSpec(
        name=FIND_SYMBOL,
        description=prompts.FIND_SYMBOL_DESCRIPTION,
        args_schema=FindSymbolInput,
    ),
)

TOOLS_BY_NAME = {spec.name: spec for spec in REVIEW_TOOLS}


def tool_schemas() -> list[dict[str, Any]]:
    """Declarations of every review tool."""
    return [spec.to_schema() for spec in REVIEW_TOOLS]


class ToolDispatcher:
    """Executes tool calls against the project's collaborators.

    Dispatch never raises for a failing tool: the error is turned into the
    result text so the model can see it and adapt.
    """

    def __init__(
        self,
        root_path: Path,
        analyzer: CodeAnalyzer,
        reader: FileReader,
        differ: DiffProvider,
        resolver: SymbolResolver,
    ):
        self.root_path = Path(root_path).resolve()
        self.analyzer = analyzer
        self.reader = reader
        self.differ = differ
        self.resolver = resolver
        self.logger = logger.bind(component="ToolDispatcher")
        self._handlers: dict[str, Callable[[Any], Awaitable[str]]] = {
            FIND_REFERENCES: self._find_references,
            READ_FILE: self._read_file,
            GET_DIFF: self._get_diff,
            FIND_SYMBOL: self._find_symbol,
        }

    async def dispatch(self, call: ToolCall) -> ToolResult:
        """Run one tool call and return its result text."""
        spec = TOOLS_BY_NAME.get(call.name)
        if spec is None:
            self.logger.warning("Unknown tool requested", tool=call.name)
            return ToolResult(
                name=call.name,
                content=f'Error: unknown tool "{call.name}"',
                call_id=call.id,
                is_error=True,
            )

        try:
            args = spec.args_schema.model_validate(call.args)
            content = await self._handlers[spec.name](args)
        except Exception as e:
            self.logger.warning("Tool call failed", tool=call.name, error=str(e))
            return ToolResult(name=call.name, content=f"Error: {e}", call_id=call.id, is_error=True)

        return ToolResult(name=call.name, content=content, call_id=call.id)

    async def dispatch_all(self, calls: list[ToolCall]) -> list[ToolResult]:
        """Run tool calls concurrently; results keep the order of `calls`."""
        return list(await asyncio.gather(*(self.dispatch(call) for call in calls)))

    async def _find_references(self, args: FindReferencesInput) -> str:
        # The language server counts lines and characters from zero.
        line, character = args.line - 1, args.character - 1
        self.logger.info(
            "Tool: find-references", file_path=args.file_path, line=args.line, character=args.character
        )

        locations = await self.analyzer.references(self._project_file(args.file_path), line, character)
        references = [self._to_reference(location) for location in locations]
        if not references:
            return prompts.NO_REFERENCES

        self.logger.debug("Found references", count=len(references))
        return "Found references:\n" + "\n".join(str(ref) for ref in references)

    async def _read_file(self, args: ReadFileInput) -> str:
        self.logger.info("Tool: read-file", file_path=args.file_path)
        return await asyncio.to_thread(self.reader.read, args.file_path)

    async def _get_diff(self, args: GetDiffInput) -> str:
        self.logger.info("Tool: get-diff")
        diff = await asyncio.to_thread(self.differ.diff)
        if not diff.strip():
            return prompts.NO_CHANGES
        return diff

    async def _find_symbol(self, args: FindSymbolInput) -> str:
        self.logger.info("Tool: find-symbol", name=args.name)
        locations = await asyncio.to_thread(self.resolver.find_symbol, args.name)
        if not locations:
            return f'Symbol "{args.name}" not found.'

        output = f'Found symbol "{args.name}" at:\n' + "\n".join(str(loc) for loc in locations)
        self.logger.debug("Found symbol", name=args.name, count=len(locations))
        return output

    def _project_file(self, file_path: str) -> Path:
        resolved = (self.root_path / file_path).resolve()
        if not resolved.is_relative_to(self.root_path):
            raise PathOutsideRootError(file_path)
        return resolved

    def _to_reference(self, location: Location) -> ReferenceLocation:
        path = location.path.resolve()
        try:
            file_path = path.relative_to(self.root_path).as_posix()
        except ValueError:
            file_path = str(path)
        return ReferenceLocation(
            file_path=file_path,
            line=location.range.start.line + 1,
            character=location.range.start.character + 1,
        )
