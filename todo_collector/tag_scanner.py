"""
Tag Scanner

Finds tag-marked lines such as `#TODO buy milk` in a note body.
"""

import re
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Pattern


@dataclass(frozen=True)
class TagMatch:
    tag: str
    text: str
    line_no: int  # 0-based, relative to the scanned body


def compile_tag_patterns(tags: Sequence[str]) -> List[tuple[str, Pattern]]:
    """Build one `^\\s*<tag>\\s+(.+)$` pattern per tag, in list order.

    Tags are matched literally; blank tags are ignored.
    """
    patterns = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        patterns.append((tag, re.compile(rf"^\s*{re.escape(tag)}\s+(.+)$")))
    return patterns


class TagScan:
    """Lazy, restartable scan of a body for tagged lines.

    Iterating yields one TagMatch per matching line. Tags are tried in
    order and the first one that matches wins, so a line never yields two
    items even when tags overlap as prefixes.
    """

    def __init__(self, body: str, tags: Sequence[str]):
        self.body = body
        self.patterns = compile_tag_patterns(tags)

    def __iter__(self) -> Iterator[TagMatch]:
        if not self.patterns:
            return
        for line_no, line in enumerate(self.body.splitlines()):
            for tag, pattern in self.patterns:
                match = pattern.match(line)
                if match:
                    yield TagMatch(tag=tag, text=match.group(1), line_no=line_no)
                    break


def scan(body: str, tags: Sequence[str]) -> TagScan:
    """Scan a note body for lines starting with any of `tags`."""
    return TagScan(body, tags)
