"""Source code map used to attach surrounding lines to stack frames."""

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class SourceCodeMap:
    """In-memory map of source files, keyed by path relative to a root.

    Lookups accept either a relative path or an absolute path below one of
    the roots the map was loaded from.
    """

    def __init__(self, files: dict[str, list[str]], roots: Iterable[str] = ()):
        self._files = files
        self._roots = [Path(root).resolve() for root in roots]

    def __len__(self) -> int:
        return len(self._files)

    def _lookup(self, file: str) -> list[str] | None:
        if file in self._files:
            return self._files[file]

        path = Path(file)
        if not path.is_absolute():
            return None

        for root in self._roots:
            try:
                relative = path.resolve().relative_to(root).as_posix()
            except ValueError:
                continue
            if relative in self._files:
                return self._files[relative]
        return None

    def get_source_context(
        self, file: str, line: int, context_lines: int = 3
    ) -> tuple[list[str], str | None, list[str]]:
        """Return ``(pre_context, context_line, post_context)`` for a location.

        Unknown files or out-of-range lines yield ``([], None, [])``.
        """
        lines = self._lookup(file)
        if lines is None or not 1 <= line <= len(lines):
            return [], None, []

        index = line - 1
        pre = lines[max(index - context_lines, 0) : index]
        post = lines[index + 1 : index + 1 + context_lines]
        return pre, lines[index], post


def load_source_code_map(
    root_paths: Iterable[str],
    pattern: str = "**/*.py",
    exclude_patterns: Iterable[str] = (),
) -> SourceCodeMap:
    """Read every file matching ``pattern`` under each root.

    Files that cannot be decoded as UTF-8 are skipped with a debug log.
    """
    roots = list(root_paths)
    excludes = list(exclude_patterns)
    files: dict[str, list[str]] = {}

    for root in roots:
        root_path = Path(root)
        for path in root_path.glob(pattern):
            absolute = path.resolve().as_posix()
            if not path.is_file() or any(fnmatch.fnmatch(absolute, p) for p in excludes):
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping source file {path}: {e}")
                continue
            files[path.relative_to(root_path).as_posix()] = text.splitlines()

    logger.info(f"Loaded source code map with {len(files)} files")
    return SourceCodeMap(files, roots)


_source_code_map: SourceCodeMap | None = None


def set_source_code_map(source_map: SourceCodeMap | None) -> None:
    global _source_code_map
    _source_code_map = source_map


def get_source_code_map() -> SourceCodeMap | None:
    return _source_code_map
