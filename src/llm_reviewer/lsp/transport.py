"""JSON-RPC 2.0 transport over a Content-Length framed byte stream.

Every message, in both directions, looks like::

    Content-Length: 52\\r\\n
    \\r\\n
    {"jsonrpc":"2.0","id":1,"method":"initialize","params":{}}

The transport is the client side of such a stream. It writes one request,
then reads frames until the response carrying the same id, or an error
response with a null id, shows up.
Notifications are read and dropped, and requests initiated by the server are
answered with a null result so the server never waits on us.
"""

import asyncio
import json
from typing import Any, Protocol

import structlog

from ..exceptions import FramingError, JsonRpcError, TransportError

logger = structlog.get_logger(__name__)

JSONRPC_VERSION = "2.0"


class StreamWriter(Protocol):
    """Subset of asyncio.StreamWriter the transport writes through."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...

    async def wait_closed(self) -> None: ...


def encode_message(message: dict[str, Any]) -> bytes:
    """Encode a JSON-RPC message into one Content-Length frame."""
    body = json.dumps(message, separators=(",", ":")).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


async def read_message(reader: asyncio.StreamReader) -> dict[str, Any]:
    """Read exactly one framed JSON-RPC message from the stream.

    Raises FramingError when the header is malformed or the body is
    truncated, and TransportError when the stream closes between frames.
    """
    content_length: int | None = None

    while True:
        try:
            line = await reader.readline()
        except (OSError, ValueError) as e:
            raise TransportError(f"read failed: {e}") from e

        if not line:
            raise TransportError("language server closed the stream")
        if not line.endswith(b"\n"):
            raise FramingError("stream ended inside a frame header")

        header = line.decode("ascii", errors="replace").strip()
        if not header:
            break

        name, sep, value = header.partition(":")
        if not sep:
            raise FramingError(f"malformed header line: {header!r}")
        if name.strip().lower() == "content-length":
            try:
                content_length = int(value.strip())
            except ValueError as e:
                raise FramingError(f"invalid Content-Length: {value.strip()!r}") from e
            if content_length < 0:
                raise FramingError(f"invalid Content-Length: {content_length}")

    if content_length is None:
        raise FramingError("frame without Content-Length header")

    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError as e:
        raise FramingError(
            f"truncated body: expected {content_length} bytes, got {len(e.partial)}"
        ) from e
    except OSError as e:
        raise TransportError(f"read failed: {e}") from e

    try:
        message = json.loads(body)
    except ValueError as e:
        raise FramingError(f"invalid JSON body: {e}") from e

    if not isinstance(message, dict):
        raise FramingError("JSON-RPC message is not an object")
    return message


class JsonRpcTransport:
    """Serialized request/response cycles over one framed byte stream.

    A single stream cannot interleave two in-flight requests, so every
    write-then-read cycle holds the transport lock. Callers in other tasks
    block until the lock is free.

    Once a cycle fails part way (stream error, bad frame, timeout or
    cancellation) the framing position is unknown and the transport refuses
    further work.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: StreamWriter,
        request_timeout: float | None = None,
    ):
        self._reader = reader
        self._writer = writer
        self._request_timeout = request_timeout or None
        self._lock = asyncio.Lock()
        self._next_id = 0
        self._broken: str | None = None
        self._closed = False
        self.logger = logger.bind(component="JsonRpcTransport")

    @property
    def usable(self) -> bool:
        """Whether the transport can still carry requests."""
        return not self._closed and self._broken is None

    async def send(self, method: str, params: Any = None) -> Any:
        """Send a request and return the `result` of its response."""
        async with self._lock:
            self._ensure_usable()

            self._next_id += 1
            request_id = self._next_id
            message: dict[str, Any] = {
                "jsonrpc": JSONRPC_VERSION,
                "id": request_id,
                "method": method,
            }
            if params is not None:
                message["params"] = params

            self.logger.debug("-> request", id=request_id, method=method)
            try:
                await self._write(message)
                if self._request_timeout:
                    response = await asyncio.wait_for(
                        self._read_response(request_id), self._request_timeout
                    )
                else:
                    response = await self._read_response(request_id)
            except asyncio.TimeoutError as e:
                self._mark_broken(f"{method} timed out")
                raise TransportError(
                    f"no response to {method} (id={request_id}) "
                    f"within {self._request_timeout}s"
                ) from e
            except TransportError as e:
                self._mark_broken(str(e))
                raise
            except asyncio.CancelledError:
                self._mark_broken(f"{method} was cancelled mid-request")
                raise

        error = response.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise JsonRpcError(
                    error.get("code", -1), error.get("message", "unknown error"), error.get("data")
                )
            raise JsonRpcError(-1, str(error))

        self.logger.debug("<- response", id=request_id)
        return response.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        """Send a notification; no response is expected."""
        async with self._lock:
            self._ensure_usable()
            message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
            if params is not None:
                message["params"] = params
            try:
                await self._write(message)
            except TransportError as e:
                self._mark_broken(str(e))
                raise
            self.logger.debug("-> notification", method=method)

    async def close(self) -> None:
        """Close the write side of the stream."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            self.logger.debug("Stream already gone on close", error=str(e))

    def _ensure_usable(self) -> None:
        if self._closed:
            raise TransportError("transport is closed")
        if self._broken is not None:
            raise TransportError(f"transport is unusable: {self._broken}")

    def _mark_broken(self, reason: str) -> None:
        if self._broken is None:
            self._broken = reason
            self.logger.error("Transport failed", reason=reason)

    async def _write(self, message: dict[str, Any]) -> None:
        try:
            self._writer.write(encode_message(message))
            await self._writer.drain()
        except OSError as e:
            raise TransportError(f"write failed: {e}") from e

    async def _read_response(self, request_id: int) -> dict[str, Any]:
        while True:
            message = await read_message(self._reader)

            if "method" in message:
                if message.get("id") is not None:
                    await self._answer_server_request(message)
                else:
                    self.logger.debug("<- notification", method=message["method"])
                continue

            response_id = message.get("id")
            if response_id is None:
                if message.get("error") is not None:
                    # Parse errors and invalid requests are answered with a null id.
                    self.logger.warning("Error response without id", expected=request_id)
                    return message
                # A null-result frame without id is never a reply to us.
                self.logger.debug("Discarding frame without id")
                continue
            if response_id != request_id:
                self.logger.warning(
                    "Discarding response for unexpected id",
                    expected=request_id,
                    received=response_id,
                )
                continue
            return message

    async def _answer_server_request(self, message: dict[str, Any]) -> None:
        """Reply to a server-initiated request with an empty result."""
        method = message["method"]
        result: Any = None
        if method == "workspace/configuration":
            items = (message.get("params") or {}).get("items", [])
            result = [{}] * len(items)

        self.logger.debug("<- server request", id=message["id"], method=method)
        await self._write({"jsonrpc": JSONRPC_VERSION, "id": message["id"], "result": result})
