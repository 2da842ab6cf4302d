"""Exception hierarchy for llm-reviewer."""


class ReviewError(Exception):
    """Base class for errors that end a review session."""


class ModelBackendError(ReviewError):
    """The model back-end could not be built or failed to answer."""


class RateLimitedError(ModelBackendError):
    """The model back-end rejected the request with a rate limit."""


class LoopLimitExceeded(ReviewError):
    """The agent used its whole round budget without a final answer."""

    def __init__(self, max_rounds: int):
        super().__init__(f"agent: loop limit exceeded ({max_rounds} rounds)")
        self.max_rounds = max_rounds


class ReviewCancelled(ReviewError):
    """The session deadline expired or the session was cancelled."""


class PersonaNotFoundError(ReviewError):
    """The requested persona definition does not exist or is invalid."""


class PathOutsideRootError(ValueError):
    """A relative path resolved to a location outside the project root."""

    def __init__(self, path: str):
        super().__init__(f"path {path!r} is outside project root")
        self.path = path


class TransportError(ReviewError):
    """The JSON-RPC byte stream failed and cannot be used any more."""


class FramingError(TransportError):
    """A frame had a malformed header or a truncated body."""


class JsonRpcError(ReviewError):
    """Error reported by the language server in a well-formed response."""

    def __init__(self, code: int, message: str, data=None):
        super().__init__(f"lsp error {code}: {message}")
        self.code = code
        self.error_message = message
        self.data = data


class HandshakeError(ReviewError):
    """The language server did not complete the initialize handshake."""


class LanguageServerNotFound(HandshakeError):
    """The language server executable is not on PATH."""

    def __init__(self, binary: str):
        super().__init__(f"{binary} not found on PATH")
        self.binary = binary
