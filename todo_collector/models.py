"""
Pydantic models and line formats for collected TODOs
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


UNCHECKED_PREFIX = "- [ ]"
CHECKED_PREFIX = "- [x]"

# Trailing "(source)" token on a rendered line
SOURCE_SUFFIX_RE = re.compile(r"\(([^)]+)\)$")


class RetentionPolicy(str, Enum):
    """How long checked TODOs stay in the output note"""
    IMMEDIATE = "immediate"
    DELAYED = "delayed"
    KEEP = "keep"


class TodoItem(BaseModel):
    """A single TODO as it appears in the output note"""
    text: str
    source: Optional[str] = None
    completed: bool = False
    group: Optional[str] = None

    @field_validator('text')
    @classmethod
    def text_must_not_be_blank(cls, v: str) -> str:
        # No normalisation: the rendered line is the identity
        if not v.strip():
            raise ValueError('text must not be empty')
        return v

    def render(self) -> str:
        """Render as a checkbox line. This string is the item's identity."""
        checkbox = CHECKED_PREFIX if self.completed else UNCHECKED_PREFIX
        source_info = f" ({self.source})" if self.source else ""
        return f"{checkbox} {self.text}{source_info}"


class CompletedTodo(BaseModel):
    """Completion record for a checked line, keyed by the line minus its checkbox"""
    text: str
    completed_at: int  # epoch millis


def is_todo_line(line: str) -> bool:
    return line.startswith(UNCHECKED_PREFIX) or line.startswith(CHECKED_PREFIX)


def is_checked(line: str) -> bool:
    return line.startswith(CHECKED_PREFIX)


def is_unchecked(line: str) -> bool:
    return line.startswith(UNCHECKED_PREFIX)


def line_key(line: str) -> str:
    """Text after the "- [x] " prefix, used to match completion records"""
    return line[len(CHECKED_PREFIX) + 1:]


def render_todo(item: TodoItem) -> str:
    return item.render()


def render_todo_line(text: str, source: Optional[str]) -> str:
    """Render a freshly collected (unchecked) TODO line"""
    return render_todo(TodoItem(text=text, source=source))


def parse_todo_line(line: str, group: Optional[str] = None) -> Optional[TodoItem]:
    """Rebuild a structured item from a rendered checkbox line.

    The source is taken from a trailing "(name)" token. Returns None for
    lines that are not checkbox lines or carry no text.
    """
    stripped = line.strip()
    if not is_todo_line(stripped):
        return None

    completed = is_checked(stripped)
    text = stripped[len(CHECKED_PREFIX):].strip()
    source = None
    match = SOURCE_SUFFIX_RE.search(text)
    if match:
        source = match.group(1)
        text = text[:match.start()].strip()

    if not text:
        return None
    return TodoItem(text=text, source=source, completed=completed, group=group)
