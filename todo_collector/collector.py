"""
Collection Engine

Walks the configured target directories, scans each note once for tagged
lines and returns the new output lines plus the rewritten text of every note
that has to be marked with the `add_todo` sentinel.

The engine is pure: it takes document texts and returns results. Reading
and writing notes is left to TodoManager.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from .metadata_manager import SENTINEL_KEY, parse_frontmatter, decode_value, set_key
from .models import is_todo_line, render_todo_line
from .settings_store import Settings
from .tag_scanner import scan

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """A note as seen by the collector"""
    path: str       # vault-relative, "/" separated
    basename: str   # file name without extension
    text: str


@dataclass
class CollectionResult:
    new_lines: List[str] = field(default_factory=list)
    mutations: Dict[str, str] = field(default_factory=dict)  # path -> new note text
    scanned: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def normalize_path(path: str) -> str:
    return path.strip().replace('\\', '/')


def matches_directory(path: str, directory: str) -> bool:
    """Case-insensitive "is `path` inside `directory`" check.

    `"foo"` matches `"foo/bar.md"` but not `"foobar.md"`.
    """
    directory = normalize_path(directory)
    if not directory or directory == '/':
        return False
    if not directory.endswith('/'):
        directory += '/'
    return normalize_path(path).lower().startswith(directory.lower())


def select_candidates(documents: Iterable[Document], settings: Settings) -> List[Document]:
    """Documents under any target directory, output note excluded, each once.

    Order follows the target directory list, then document order.
    """
    documents = list(documents)
    output_path = normalize_path(settings.output_path)
    selected: List[Document] = []
    seen: Set[str] = set()

    for directory in settings.target_directories:
        matched = [doc for doc in documents if matches_directory(doc.path, directory)]
        if not matched:
            logger.info("No notes found under target directory %r", directory)
        for doc in matched:
            path = normalize_path(doc.path)
            if path == output_path or path in seen:
                continue
            seen.add(path)
            selected.append(doc)
    return selected


def existing_todo_lines(output_text: str) -> List[str]:
    """Checkbox lines already present in the output note"""
    return [line for line in output_text.split('\n') if is_todo_line(line)]


def collect(documents: Iterable[Document], settings: Settings, existing_output: str = "") -> CollectionResult:
    """Run one collection pass.

    Args:
        documents: every note in the vault (non-candidates are ignored)
        settings: target directories, tags and output path
        existing_output: current text of the output note, used to seed
            duplicate suppression

    Returns:
        CollectionResult with new lines in discovery order and the
        sentinel-marked text of each note that contributed at least one match
    """
    result = CollectionResult()
    seen_lines: Set[str] = set(existing_todo_lines(existing_output))

    for doc in select_candidates(documents, settings):
        parsed = parse_frontmatter(doc.text)
        if decode_value(parsed.mapping.get(SENTINEL_KEY, '')) is True:
            result.skipped.append(doc.path)
            continue

        result.scanned.append(doc.path)
        body = doc.text[parsed.body_start:]
        found = False
        for match in scan(body, settings.todo_tags):
            if not match.text.strip():
                continue
            found = True
            line = render_todo_line(match.text, doc.basename)
            if line in seen_lines:
                logger.debug("Duplicate TODO dropped: %s", line)
                continue
            seen_lines.add(line)
            result.new_lines.append(line)

        if found:
            result.mutations[doc.path] = set_key(doc.text, SENTINEL_KEY, True)

    logger.info(
        "Collected %d new TODOs from %d notes (%d already harvested)",
        len(result.new_lines), len(result.scanned), len(result.skipped),
    )
    return result
