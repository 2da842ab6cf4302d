"""Review processing service."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

import structlog

from ..agent import ModelBackend, RetryPolicy, ReviewAgent, ToolDispatcher, create_backend
from ..config import Settings, settings
from ..exceptions import ReviewCancelled
from ..lsp import CodeAnalyzer, LanguageServerClient
from ..persona import load_persona
from ..symbols import ASTResolver
from ..workspace import FSReader, GitDiff

logger = structlog.get_logger(__name__)

AnalyzerFactory = Callable[[Path], Awaitable[CodeAnalyzer]]
BackendFactory = Callable[[Settings], ModelBackend]


class ReviewService:
    """Runs review sessions.

    Every session builds its own component graph: model back-end, language
    server, workspace collaborators and agent. Nothing is shared between
    sessions, and the language server is stopped however the session ends.
    """

    def __init__(
        self,
        config: Settings | None = None,
        backend_factory: BackendFactory = create_backend,
        analyzer_factory: AnalyzerFactory | None = None,
    ):
        self.config = config or settings
        self.backend_factory = backend_factory
        self.analyzer_factory = analyzer_factory or self._start_language_server
        self.logger = logger.bind(component="ReviewService")

    async def review(self, project_path: str | Path, query: str, persona: str | None = None) -> str:
        """Review a project and return the review text.

        Raises a ReviewError subclass when the session fails; the whole
        session is bounded by `review_timeout` seconds.
        """
        root = Path(project_path).resolve()
        persona_name = persona or self.config.default_persona
        timeout = self.config.review_timeout

        self.logger.info("Starting review", project=str(root), persona=persona_name)
        try:
            result = await asyncio.wait_for(
                self._run_session(root, query, persona_name), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            self.logger.error("Review timed out", project=str(root), timeout=timeout)
            raise ReviewCancelled(f"review cancelled: deadline of {timeout}s exceeded") from e

        self.logger.info("Review completed", project=str(root), chars=len(result))
        return result

    async def _run_session(self, root: Path, query: str, persona_name: str) -> str:
        persona = load_persona(Path(self.config.persona_dir).resolve(), persona_name)
        backend = self.backend_factory(self.config)

        analyzer = await self.analyzer_factory(root)
        try:
            dispatcher = ToolDispatcher(
                root_path=root,
                analyzer=analyzer,
                reader=FSReader(root),
                differ=GitDiff(root),
                resolver=ASTResolver(root),
            )
            agent = ReviewAgent(
                backend=backend,
                dispatcher=dispatcher,
                system_prompt=persona.system_prompt,
                max_rounds=self.config.max_rounds,
                retry_policy=RetryPolicy(
                    retries=self.config.rate_limit_retries,
                    backoff=self.config.rate_limit_backoff,
                ),
            )
            return await agent.run(query)
        finally:
            await analyzer.close()

    async def _start_language_server(self, root: Path) -> CodeAnalyzer:
        return await LanguageServerClient.start(
            root, self.config.lsp_command, self.config.lsp_request_timeout
        )
