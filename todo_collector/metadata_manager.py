#!/usr/bin/env python3
"""
Metadata Manager for Obsidian Notes

Reads and rewrites the frontmatter block at the top of a note as a flat,
ordered key-value mapping. Unknown keys and their raw values are kept
verbatim so a rewrite never loses what the note owner added. Creates the
frontmatter block if it doesn't exist.

The collector uses the `add_todo: true` key as a sentinel meaning "this note
has already contributed its TODOs".
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional

import click
import yaml
from rich.console import Console

console = Console()
logger = logging.getLogger(__name__)

MARKER = '---'
SENTINEL_KEY = 'add_todo'


@dataclass
class FrontmatterParse:
    """Result of parsing a note's frontmatter.

    Attributes:
        mapping: ordered key -> raw value (text after "key: ")
        body_start: offset of the first character after the closing marker line
        has_frontmatter: False when no well-formed block was found
        block_start: offset of the opening marker line
        heads: key -> original "key:" text including the spacing after the colon
    """
    mapping: Dict[str, str] = field(default_factory=dict)
    body_start: int = 0
    has_frontmatter: bool = False
    block_start: int = 0
    heads: Dict[str, str] = field(default_factory=dict)


def _split_key_value(line: str) -> Optional[tuple[str, str, str]]:
    """Split a top-level "key: value" line into (key, head, raw).

    `head` is the line up to the value, so `head + raw == line`. Returns None
    for anything that is not a key line.
    """
    if not line or line[0].isspace() or line[0] in '-#':
        return None
    if ':' not in line:
        return None
    key, rest = line.split(':', 1)
    key = key.rstrip()
    if not key:
        return None
    raw = rest.lstrip(' \t')
    return key, line[:len(line) - len(raw)], raw


def parse_frontmatter(content: str) -> FrontmatterParse:
    """Parse the leading frontmatter block of a note.

    A block is recognised iff the first non-blank line is `---`, followed by
    `key: value` lines (indented lines continue the previous value) and a
    closing `---` line. Never raises: an unterminated or malformed block is
    reported as "no frontmatter" and the whole note is body text.
    """
    lines = content.splitlines(keepends=True)
    offset = 0
    idx = 0

    while idx < len(lines) and not lines[idx].strip():
        offset += len(lines[idx])
        idx += 1

    if idx >= len(lines) or lines[idx].strip() != MARKER:
        return FrontmatterParse()

    block_start = offset
    offset += len(lines[idx])
    idx += 1

    mapping: Dict[str, str] = {}
    heads: Dict[str, str] = {}
    current_key = None
    while idx < len(lines):
        line = lines[idx]
        offset += len(line)
        idx += 1
        text = line.rstrip('\r\n')

        if text.strip() == MARKER:
            return FrontmatterParse(mapping, offset, True, block_start, heads)

        pair = _split_key_value(text)
        if pair:
            current_key, head, raw = pair
            mapping[current_key] = raw
            heads[current_key] = head
        elif current_key is not None:
            mapping[current_key] += '\n' + text
        elif not text.strip():
            continue
        else:
            logger.warning("Malformed frontmatter line %r, treating note as having no frontmatter", text)
            return FrontmatterParse()

    logger.debug("Unterminated frontmatter block, treating note as having no frontmatter")
    return FrontmatterParse()


def format_value(value: Any) -> str:
    """Format a value the way it is written after "key: " """
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return ''
    return str(value)


def decode_value(raw: str) -> Any:
    """Decode a raw frontmatter value into a scalar (true -> True, 3 -> 3)."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def render_frontmatter(mapping: Dict[str, Any], heads: Optional[Dict[str, str]] = None) -> str:
    """Render a mapping as a frontmatter block, one `key: value` per line.

    Keys found in `heads` are written with their original "key:" text, so
    lines that were parsed and not changed come back byte-identical.
    """
    heads = heads or {}
    lines = [MARKER]
    for key, value in mapping.items():
        raw = format_value(value)
        if key in heads:
            lines.append(heads[key] + raw)
        elif raw and not raw.startswith('\n'):
            lines.append(f"{key}: {raw}")
        else:
            lines.append(f"{key}:{raw}")
    lines.append(MARKER)
    return '\n'.join(lines) + '\n'


def _splice(content: str, parsed: FrontmatterParse, block: str) -> str:
    """Replace the original block, keeping the text around it byte-identical."""
    if block and not content[:parsed.body_start].endswith('\n'):
        block = block[:-1]
    return content[:parsed.block_start] + block + content[parsed.body_start:]


def set_key(content: str, key: str, value: Any) -> str:
    """Set one frontmatter key, creating the block if the note has none.

    All other keys keep their order and raw values. Setting a key to the value
    it already has returns identical text.
    """
    parsed = parse_frontmatter(content)
    if not parsed.has_frontmatter:
        return render_frontmatter({key: value}) + content

    raw = format_value(value)
    if parsed.mapping.get(key) == raw:
        return content

    mapping = dict(parsed.mapping)
    mapping[key] = raw
    heads = dict(parsed.heads)
    # "key:" with no space only stays valid for an empty or block value
    if key in heads and raw and not raw.startswith('\n') and not heads[key][-1].isspace():
        del heads[key]
    return _splice(content, parsed, render_frontmatter(mapping, heads))


def remove_key(content: str, key: str) -> str:
    """Remove one frontmatter key. The block is dropped when it becomes empty."""
    parsed = parse_frontmatter(content)
    if key not in parsed.mapping:
        return content

    mapping = dict(parsed.mapping)
    del mapping[key]
    block = render_frontmatter(mapping, parsed.heads) if mapping else ''
    return _splice(content, parsed, block)


def get_value(content: str, key: str) -> Any:
    """Decoded value of a frontmatter key, or None if absent."""
    parsed = parse_frontmatter(content)
    if key not in parsed.mapping:
        return None
    return decode_value(parsed.mapping[key])


def is_harvested(content: str) -> bool:
    """True if the note carries `add_todo: true`."""
    return get_value(content, SENTINEL_KEY) is True


def get_body(content: str) -> str:
    """Note text after the frontmatter block."""
    return content[parse_frontmatter(content).body_start:]


# ==================== File helpers ====================

def add_metadata(note_path: Path, key: str, value: Any) -> bool:
    """Add or update a key-value pair in note's frontmatter.

    Args:
        note_path: Path to the markdown file
        key: Metadata key to add/update
        value: Value to set

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        content = note_path.read_text(encoding='utf-8')
        note_path.write_text(set_key(content, key, value), encoding='utf-8')
        console.print(f"[green]✓ Added {key}: {format_value(value)} to {note_path.name}[/green]")
        return True
    except OSError as e:
        console.print(f"[red]Error adding metadata to {note_path.name}: {e}[/red]")
        return False


def remove_metadata(note_path: Path, key: str) -> bool:
    """Remove a key from note's frontmatter.

    Returns:
        bool: True if the key was removed, False otherwise
    """
    try:
        content = note_path.read_text(encoding='utf-8')
        if key not in parse_frontmatter(content).mapping:
            console.print(f"[yellow]Key '{key}' not found in {note_path.name}[/yellow]")
            return False
        note_path.write_text(remove_key(content, key), encoding='utf-8')
        console.print(f"[green]✓ Removed {key} from {note_path.name}[/green]")
        return True
    except OSError as e:
        console.print(f"[red]Error removing metadata from {note_path.name}: {e}[/red]")
        return False


def get_metadata(note_path: Path, key: Optional[str] = None) -> Any:
    """Get metadata value(s) from note.

    Args:
        note_path: Path to the markdown file
        key: Specific key to get (None for all metadata, as raw strings)

    Returns:
        Value for specific key or the entire frontmatter mapping
    """
    try:
        content = note_path.read_text(encoding='utf-8')
    except OSError as e:
        console.print(f"[red]Error reading metadata from {note_path.name}: {e}[/red]")
        return None

    if key is None:
        return parse_frontmatter(content).mapping
    return get_value(content, key)


# ==================== CLI ====================

@click.group('metadata')
def metadata_cli():
    """Inspect or edit note frontmatter (e.g. reset the add_todo sentinel)"""
    pass


@metadata_cli.command()
@click.argument('note_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('key')
@click.argument('value')
def add(note_path: Path, key: str, value: str):
    """Add or update a key-value pair in note's frontmatter"""
    if not add_metadata(note_path, key, value):
        raise SystemExit(1)


@metadata_cli.command()
@click.argument('note_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('key')
def remove(note_path: Path, key: str):
    """Remove a key from note's frontmatter"""
    remove_metadata(note_path, key)


@metadata_cli.command()
@click.argument('note_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--key', '-k', help='Specific key to show (show all if not specified)')
def show(note_path: Path, key: Optional[str] = None):
    """Show metadata from note"""
    result = get_metadata(note_path, key)
    if key is not None:
        if result is None:
            console.print(f"[yellow]Key '{key}' not found[/yellow]")
        else:
            console.print(f"[cyan]{key}:[/cyan] {format_value(result)}")
        return

    if result:
        console.print("[cyan]Metadata:[/cyan]")
        for k, v in result.items():
            console.print(f"  {k}: {v}")
    elif result is not None:
        console.print("[yellow]No metadata found[/yellow]")
