"""Language server protocol shapes used by the client (0-based positions)."""

from pathlib import Path
from urllib.parse import unquote, urlparse

from pydantic import BaseModel


class Position(BaseModel):
    """Zero-based line and character offset."""

    line: int
    character: int


class Range(BaseModel):
    start: Position
    end: Position


class Location(BaseModel):
    """A range inside a document identified by URI."""

    uri: str
    range: Range

    @property
    def path(self) -> Path:
        """The document URI stripped to a filesystem path."""
        return uri_to_path(self.uri)


def path_to_uri(path: Path) -> str:
    """Convert a filesystem path to a file:// URI."""
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> Path:
    """Convert a file:// URI back to a filesystem path."""
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)
