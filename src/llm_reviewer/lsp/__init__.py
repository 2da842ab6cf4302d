"""Language server access for cross-reference queries."""

from .client import CodeAnalyzer, LanguageServerClient
from .transport import JsonRpcTransport, encode_message, read_message
from .types import Location, Position, Range, path_to_uri, uri_to_path

__all__ = [
    "CodeAnalyzer",
    "LanguageServerClient",
    "JsonRpcTransport",
    "encode_message",
    "read_message",
    "Location",
    "Position",
    "Range",
    "path_to_uri",
    "uri_to_path",
]
