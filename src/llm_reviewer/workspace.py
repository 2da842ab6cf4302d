"""Project workspace access: source files and the working tree diff."""

from pathlib import Path
from typing import Protocol

import git
import structlog

from .exceptions import PathOutsideRootError

logger = structlog.get_logger(__name__)


class FileReader(Protocol):
    """Reads source files relative to the project root."""

    def read(self, path: str) -> str: ...


class DiffProvider(Protocol):
    """Produces the diff of the working tree; empty means no changes."""

    def diff(self) -> str: ...


class FSReader:
    """Reads files from the local filesystem, confined to the project root."""

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path).resolve()
        self.logger = logger.bind(component="FSReader", root=str(self.root_path))

    def resolve(self, path: str) -> Path:
        """Resolve a relative path, rejecting anything outside the root."""
        resolved = (self.root_path / path).resolve()
        if not resolved.is_relative_to(self.root_path):
            self.logger.warning("Rejected path outside project root", path=path)
            raise PathOutsideRootError(path)
        return resolved

    def read(self, path: str) -> str:
        """Return the text of a file inside the project."""
        return self.resolve(path).read_text(encoding="utf-8", errors="replace")


class GitDiff:
    """Working tree diff against HEAD of a local git repository."""

    def __init__(self, repo_path: Path):
        self.repo_path = Path(repo_path)
        self.logger = logger.bind(component="GitDiff", path=str(repo_path))

    def diff(self) -> str:
        """Get `git diff HEAD` output for the repository."""
        try:
            repo = git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise ValueError(f"Not a git repository: {self.repo_path}")

        output = repo.git.diff("HEAD")
        self.logger.info("Collected diff", chars=len(output))
        return output
