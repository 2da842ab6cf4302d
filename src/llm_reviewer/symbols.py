"""Symbol definition lookup over Python sources."""

import ast
import os
from pathlib import Path
from typing import Protocol

import structlog

from .models import SymbolLocation

logger = structlog.get_logger(__name__)

SKIPPED_DIRS = {".git", ".venv", "venv", "node_modules", "__pycache__", ".tox"}


class SymbolResolver(Protocol):
    """Finds where a symbol name is defined."""

    def find_symbol(self, name: str) -> list[SymbolLocation]: ...


def _is_test_file(filename: str) -> bool:
    return filename.startswith("test_") or filename.endswith("_test.py")


def _identifier_column(line_text: str, name: str, col_offset: int) -> int:
    """1-based column of `name` at or after `col_offset` on a line."""
    index = line_text.find(name, col_offset)
    return (index if index >= 0 else col_offset) + 1


class ASTResolver:
    """Resolves symbol names to definitions using the `ast` module.

    Functions, classes and assignment targets count as definitions. Test
    modules and unparsable files are ignored.
    """

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path).resolve()
        self.logger = logger.bind(component="ASTResolver")

    def find_symbol(self, name: str) -> list[SymbolLocation]:
        results = []
        for path in self._source_files():
            try:
                source = path.read_text(encoding="utf-8")
                tree = ast.parse(source, filename=str(path))
            except (OSError, SyntaxError, ValueError):
                continue

            lines = source.splitlines()
            relative = path.relative_to(self.root_path).as_posix()
            for lineno, col_offset in self._definitions(tree, name):
                line_text = lines[lineno - 1] if lineno <= len(lines) else ""
                results.append(
                    SymbolLocation(
                        file_path=relative,
                        line=lineno,
                        character=_identifier_column(line_text, name, col_offset),
                    )
                )

        self.logger.debug("Symbol lookup finished", name=name, matches=len(results))
        return results

    def _source_files(self):
        for dirpath, dirnames, filenames in os.walk(self.root_path):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
            for filename in sorted(filenames):
                if filename.endswith(".py") and not _is_test_file(filename):
                    yield Path(dirpath) / filename

    def _definitions(self, tree: ast.AST, name: str):
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                if node.name == name:
                    yield node.lineno, node.col_offset
            elif isinstance(node, ast.Assign):
                for target in node.targets:
                    yield from self._named_targets(target, name)
            elif isinstance(node, ast.AnnAssign):
                yield from self._named_targets(node.target, name)

    def _named_targets(self, target: ast.AST, name: str):
        if isinstance(target, ast.Name) and target.id == name:
            yield target.lineno, target.col_offset
        elif isinstance(target, (ast.Tuple, ast.List)):
            for element in target.elts:
                yield from self._named_targets(element, name)
