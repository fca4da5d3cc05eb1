"""
Reconciliation Engine

Merges a classification result into an existing grouped output note:

    ## Shopping

    - [ ] buy milk (daily-note)

    ## Work

    - [x] send invoice (inbox)

The classifier may answer with JSON (`{"groups": {name: [{text, completed,
source}, ...]}}`) or with Markdown using `#`/`##` headers and checkbox lines.
Whatever it returns, items already in the output note are never lost: a bad
or empty answer puts the new items into the catch-all group instead.
"""

import json
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from .classification.models import ClassifiedTodo
from .models import is_todo_line

logger = logging.getLogger(__name__)

Groups = Dict[str, List[str]]

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*?)\n?```\s*$", re.DOTALL)


@dataclass
class Structured:
    """Classifier answered with JSON; groups already rendered to lines"""
    groups: Groups


@dataclass
class Freeform:
    """Classifier answered with Markdown text"""
    text: str


ClassificationResult = Union[Structured, Freeform]


def _header_name(stripped: str, allow_h1: bool) -> Optional[str]:
    if stripped.startswith('## '):
        return stripped[3:].strip()
    if allow_h1 and stripped.startswith('# '):
        return stripped[2:].strip()
    return None


def parse_groups(text: str, catch_all: str, allow_h1: bool = False) -> Groups:
    """Split a grouped note into `{group: [item lines]}`.

    Item lines before any header go to `catch_all`. Groups keep the order
    they first appear in; unknown names are kept as they are.
    """
    groups: Groups = OrderedDict()
    current = None
    for line in text.split('\n'):
        stripped = line.strip()
        name = _header_name(stripped, allow_h1)
        if name is not None:
            # "## " with nothing after it doesn't open a group
            current = name or None
            if current:
                groups.setdefault(current, [])
            continue
        if is_todo_line(stripped):
            groups.setdefault(current or catch_all, []).append(line)
    return groups


def _strip_code_fence(raw: str) -> str:
    match = CODE_FENCE_RE.match(raw.strip())
    return match.group(1) if match else raw


def _structured_groups(payload: dict) -> Groups:
    groups: Groups = OrderedDict()
    for name, entries in payload.items():
        name = str(name).strip()
        if not name or not isinstance(entries, list):
            logger.warning("Ignoring malformed classifier group %r", name)
            continue
        lines = groups.setdefault(name, [])
        for entry in entries:
            if isinstance(entry, str):
                entry = {"text": entry}
            try:
                todo = ClassifiedTodo.model_validate(entry)
            except ValidationError as e:
                logger.warning("Skipping malformed classifier item in %r: %s", name, e.errors())
                continue
            lines.append(todo.render())
    return groups


def decode_classification(raw: Optional[str]) -> ClassificationResult:
    """Decide which of the two answer formats the classifier used.

    Valid JSON with a `groups` mapping is Structured, anything else is
    Freeform. Never raises.
    """
    if not raw:
        return Freeform('')
    candidate = _strip_code_fence(raw)
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return Freeform(raw)
    if isinstance(payload, dict) and isinstance(payload.get('groups'), dict):
        return Structured(_structured_groups(payload['groups']))
    return Freeform(raw)


def classified_groups(result: ClassificationResult, catch_all: str) -> Groups:
    if isinstance(result, Structured):
        return result.groups
    return parse_groups(result.text, catch_all, allow_h1=True)


def render_groups(groups: Groups) -> str:
    """`## name`, blank line, items, blank line for every non-empty group"""
    result: List[str] = []
    for name, lines in groups.items():
        if not lines:
            continue
        result.append(f"## {name}")
        result.append("")
        result.extend(lines)
        result.append("")
    return '\n'.join(result)


def _dedupe_groups(groups: Groups) -> Groups:
    """Drop exact duplicate item lines across all groups, first one wins."""
    seen = set()
    deduped: Groups = OrderedDict()
    for name, lines in groups.items():
        kept = []
        for line in lines:
            key = line.strip()
            if key in seen:
                continue
            seen.add(key)
            kept.append(line)
        deduped[name] = kept
    return deduped


def merge_groups(existing: Groups, new: Groups, canonical_groups: Sequence[str]) -> Groups:
    """Canonical groups first (existing items before new ones), then every
    other group in the order it was first seen."""
    merged: Groups = OrderedDict()
    for name in canonical_groups:
        merged[name] = [*existing.get(name, []), *new.get(name, [])]
    for source in (existing, new):
        for name in source:
            if name not in merged:
                merged[name] = [*existing.get(name, []), *new.get(name, [])]
    return _dedupe_groups(merged)


def rename_groups(groups: Groups, aliases: Optional[Dict[str, str]]) -> Groups:
    """Map group names through `aliases`; groups that end up with the same name are joined."""
    if not aliases:
        return groups
    renamed: Groups = OrderedDict()
    for name, lines in groups.items():
        renamed.setdefault(aliases.get(name, name), []).extend(lines)
    return renamed


def place_missing(groups: Groups, new_lines: Iterable[str], catch_all: str) -> Groups:
    """Append every new line that ended up in no group to the catch-all group."""
    placed = {line.strip() for lines in groups.values() for line in lines}
    missing = []
    for line in new_lines:
        if line.strip() in placed:
            continue
        placed.add(line.strip())
        missing.append(line)
    if missing:
        logger.warning("Classifier left out %d new TODOs, adding them to %r", len(missing), catch_all)
        groups.setdefault(catch_all, []).extend(missing)
    return groups


def fallback(
    existing_text: str,
    new_lines: Iterable[str],
    canonical_groups: Sequence[str],
    catch_all: str,
    aliases: Optional[Dict[str, str]] = None,
) -> str:
    """Existing groups untouched, all new items appended to the catch-all group."""
    existing = rename_groups(parse_groups(existing_text, catch_all), aliases)
    new: Groups = OrderedDict([(catch_all, list(new_lines))])
    return render_groups(merge_groups(existing, new, canonical_groups))


def reconcile_classification(
    existing_text: str,
    classification: Union[ClassificationResult, str, None],
    new_lines: Iterable[str],
    canonical_groups: Sequence[str],
    catch_all: str,
    aliases: Optional[Dict[str, str]] = None,
) -> tuple[str, bool]:
    """Merge a classification result into the existing grouped note.

    Args:
        existing_text: current output note
        classification: decoded result, or the raw classifier text
        new_lines: the new item lines that were sent for classification
        canonical_groups: fixed group order for the output
        catch_all: group for anything that can't be attributed
        aliases: classifier group name -> local group name

    Returns:
        (merged_text, used_fallback)
    """
    new_lines = list(new_lines)
    if not isinstance(classification, (Structured, Freeform)):
        classification = decode_classification(classification)

    new = rename_groups(classified_groups(classification, catch_all), aliases)
    if not any(new.values()):
        logger.warning("Classification result contained no items, falling back to %r", catch_all)
        return fallback(existing_text, new_lines, canonical_groups, catch_all, aliases), True

    existing = rename_groups(parse_groups(existing_text, catch_all), aliases)
    merged_groups = place_missing(merge_groups(existing, new, canonical_groups), new_lines, catch_all)
    merged = render_groups(merged_groups)
    if not merged.strip():
        return fallback(existing_text, new_lines, canonical_groups, catch_all, aliases), True
    return merged, False


def reconcile(
    existing_text: str,
    classification: Union[ClassificationResult, str, None],
    new_lines: Iterable[str],
    canonical_groups: Sequence[str],
    catch_all: str,
    aliases: Optional[Dict[str, str]] = None,
) -> str:
    """Merged grouped note; see reconcile_classification."""
    merged, _ = reconcile_classification(existing_text, classification, new_lines, canonical_groups, catch_all, aliases)
    return merged
