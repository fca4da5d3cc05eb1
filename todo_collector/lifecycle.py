"""
Completed-Item Lifecycle

Tracks when output lines get checked off and applies the retention policy:

- immediate: checked lines are dropped on the next rewrite
- delayed:   checked lines stay until `auto_delete_hours` after completion
- keep:      checked lines stay forever
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .collector import normalize_path
from .metadata_manager import SENTINEL_KEY, set_key
from .models import CompletedTodo, RetentionPolicy, is_checked, is_todo_line, is_unchecked, line_key
from .settings_store import Settings

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    text: str
    records: List[CompletedTodo] = field(default_factory=list)

    def changed(self, original: str) -> bool:
        return self.text != original


def record_completions(lines: Iterable[str], records: Sequence[CompletedTodo], now_ms: int) -> List[CompletedTodo]:
    """Add a record for every checked line that has none yet.

    Existing records are never touched.
    """
    updated = list(records)
    known = {record.text for record in records}
    for line in lines:
        if not is_checked(line):
            continue
        key = line_key(line)
        if key not in known:
            updated.append(CompletedTodo(text=key, completed_at=now_ms))
            known.add(key)
    return updated


def _retention_horizon(policy: RetentionPolicy, retention_ms: int) -> int:
    # keep never expires; immediate expires at once
    if policy == RetentionPolicy.IMMEDIATE:
        return 0
    return retention_ms


def is_expired(record: CompletedTodo, now_ms: int, retention_ms: int) -> bool:
    return now_ms - record.completed_at >= retention_ms


def prune_records(records: Sequence[CompletedTodo], policy: RetentionPolicy, now_ms: int, retention_ms: int) -> List[CompletedTodo]:
    """Filter out expired records. Records are kept forever under `keep`."""
    if policy == RetentionPolicy.KEEP:
        return list(records)
    horizon = _retention_horizon(policy, retention_ms)
    return [record for record in records if not is_expired(record, now_ms, horizon)]


def keep_checked_line(line: str, policy: RetentionPolicy, records: Dict[str, CompletedTodo],
                      now_ms: int, retention_ms: int) -> bool:
    if policy == RetentionPolicy.KEEP:
        return True
    if policy == RetentionPolicy.IMMEDIATE:
        return False
    record = records.get(line_key(line))
    return record is not None and not is_expired(record, now_ms, retention_ms)


def _unique(lines: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for line in lines:
        if line in seen:
            continue
        seen.add(line)
        result.append(line)
    return result


def rebuild_output(
    existing_lines: Sequence[str],
    new_lines: Sequence[str],
    completed_records: Sequence[CompletedTodo],
    policy: RetentionPolicy,
    now_ms: int,
    retention_hours: int,
) -> tuple[List[str], List[CompletedTodo]]:
    """Rebuild a flat output note from its current lines and the new TODOs.

    Order is kept checked lines, then unchecked lines, then new lines, each
    group in input order. Non-checkbox lines are dropped. Exact duplicate
    lines are collapsed (first wins).

    Returns:
        (final_lines, updated_records)
    """
    policy = RetentionPolicy(policy)
    retention_ms = retention_hours * 3600 * 1000
    existing = [line for line in existing_lines if is_todo_line(line)]

    records = record_completions(existing, completed_records, now_ms)
    by_text = {record.text: record for record in records}

    checked = [
        line for line in existing
        if is_checked(line) and keep_checked_line(line, policy, by_text, now_ms, retention_ms)
    ]
    unchecked = [line for line in existing if is_unchecked(line)]
    dropped = sum(1 for line in existing if is_checked(line)) - len(checked)
    if dropped:
        logger.info("Removed %d completed TODOs (%s)", dropped, policy.value)

    final_lines = _unique([*checked, *unchecked, *new_lines])
    return final_lines, prune_records(records, policy, now_ms, retention_ms)


def sweep_document(text: str, path: str, settings: Settings, now_ms: int) -> SweepResult:
    """Apply the retention policy to a note after it was saved.

    For the output note: record new completions and drop checked lines the
    policy no longer retains. For a source note with checked lines: mark it
    harvested and, under `immediate`, drop the checked lines.

    Headers and every other line are left alone. Applying the sweep to its
    own output changes nothing.
    """
    records = list(settings.completed_todos)
    lines = text.split('\n')
    if not any(is_checked(line) for line in lines):
        return SweepResult(text, records)

    policy = settings.completed_todo_handling
    is_output = normalize_path(path) == normalize_path(settings.output_path)

    if is_output:
        records = record_completions(lines, records, now_ms)
        by_text = {record.text: record for record in records}
        lines = [
            line for line in lines
            if not is_checked(line)
            or keep_checked_line(line, policy, by_text, now_ms, settings.retention_ms)
        ]
        records = prune_records(records, policy, now_ms, settings.retention_ms)
        return SweepResult('\n'.join(lines), records)

    if policy == RetentionPolicy.IMMEDIATE:
        lines = [line for line in lines if not is_checked(line)]
    return SweepResult(set_key('\n'.join(lines), SENTINEL_KEY, True), records)
