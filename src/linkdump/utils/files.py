# ABOUTME: Resolves command-line paths into the markdown documents to import
# ABOUTME: Explicit files are taken as given, directories are walked for *.md

from collections.abc import Iterable
from pathlib import Path


def find_markdown_files(paths: Iterable[Path | str]) -> list[Path]:
    """Expand directories into the ``.md`` files below them.

    Paths that do not exist are skipped. Files named explicitly are kept
    whatever their extension.
    """
    found: list[Path] = []
    for path in map(Path, paths):
        if path.is_dir():
            found.extend(sorted(p for p in path.rglob("*.md") if p.is_file()))
        elif path.is_file():
            found.append(path)
    return found
