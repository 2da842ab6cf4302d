"""Language server client answering cross-reference queries."""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Protocol

import structlog

from ..exceptions import HandshakeError, LanguageServerNotFound, ReviewError
from .transport import JsonRpcTransport
from .types import Location, path_to_uri

logger = structlog.get_logger(__name__)


class CodeAnalyzer(Protocol):
    """Cross-reference queries over a project (0-based coordinates)."""

    async def references(self, file_path: Path, line: int, character: int) -> list[Location]: ...

    async def close(self) -> None: ...


class LanguageServerClient:
    """Client of one language server child process.

    The client must be initialized before use; `start` spawns the process and
    runs the handshake. Closing the client kills the process without the
    shutdown/exit exchange of the protocol.
    """

    def __init__(
        self,
        transport: JsonRpcTransport,
        process: asyncio.subprocess.Process | None = None,
    ):
        self.transport = transport
        self.process = process
        self.initialized = False
        self.logger = logger.bind(component="LanguageServerClient")

    @classmethod
    async def start(
        cls,
        root_path: Path,
        command: list[str],
        request_timeout: float | None = None,
    ) -> "LanguageServerClient":
        """Spawn the language server and complete the initialize handshake."""
        if not command:
            raise HandshakeError("empty language server command")
        binary = shutil.which(command[0])
        if binary is None:
            raise LanguageServerNotFound(command[0])

        root = Path(root_path).resolve()
        log = logger.bind(component="LanguageServerClient", root=str(root))
        log.info("Starting language server", command=" ".join(command))

        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *command[1:],
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                cwd=str(root),
            )
        except OSError as e:
            raise HandshakeError(f"failed to start {command[0]}: {e}") from e

        transport = JsonRpcTransport(process.stdout, process.stdin, request_timeout)
        client = cls(transport, process)
        try:
            await client.initialize(root)
        except BaseException:
            await client.close()
            raise
        return client

    async def initialize(self, root_path: Path) -> None:
        """Run the initialize request and send the initialized notification."""
        params = {
            "processId": os.getpid(),
            "rootUri": path_to_uri(root_path),
            "capabilities": {},
        }
        try:
            await self.transport.send("initialize", params)
            await self.transport.notify("initialized", {})
        except ReviewError as e:
            raise HandshakeError(f"failed to initialize: {e}") from e

        self.initialized = True
        self.logger.info("Language server initialized", root=str(root_path))

    async def references(self, file_path: Path, line: int, character: int) -> list[Location]:
        """Find references of the symbol at a 0-based position."""
        if not self.initialized:
            raise HandshakeError("language server client is not initialized")

        params = {
            "textDocument": {"uri": path_to_uri(Path(file_path))},
            "position": {"line": line, "character": character},
            "context": {"includeDeclaration": True},
        }
        result = await self.transport.send("textDocument/references", params)
        if not result:
            return []
        return [Location.model_validate(item) for item in result]

    async def close(self) -> None:
        """Terminate the language server process."""
        await self.transport.close()
        if self.process is None or self.process.returncode is not None:
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            pass
        await self.process.wait()
        self.logger.info("Language server stopped", returncode=self.process.returncode)

    async def __aenter__(self) -> "LanguageServerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
