"""Apply single style edits to both the style graph and the source text.

The graph is edited in memory, re-serialized as a whole, and written back
over the ``--- style`` block body. Each patch reports how many lines it
added or removed (``line_delta``) and the last line that kept its number
(``shift_after_line``) so callers can keep cursor and selection lines valid:
any held line greater than ``shift_after_line`` moves by ``line_delta``.
"""

import logging
import re
from typing import NamedTuple, Optional

from source_lines import (
    SPECIAL_TYPES,
    is_block_boundary,
    is_single_line,
    join_lines,
    parse_header,
    split_lines,
)
from style_graph import (
    StyleGraph,
    merge_rule,
    remove_rule,
    remove_variable,
    set_variable,
)
from style_parser import STYLE_HEADER, find_style_block, parse_source_style_graph
from style_serializer import serialize_style_graph

logger = logging.getLogger(__name__)

# Single-line directives that make up a document preamble
_DIRECTIVE_TYPES = frozenset({"use", "theme", "preset"})
# Labels a "type:label" selector line can hold
STYLE_LABEL_PATTERN = r"^[\w-]+$"
STYLE_LABEL_RE = re.compile(STYLE_LABEL_PATTERN)


class StylePatchResult(NamedTuple):
    source: str
    graph: StyleGraph
    line_delta: int
    shift_after_line: int


class _BlockPatch(NamedTuple):
    source: str
    line_delta: int
    shift_after_line: int


def adjust_line_for_style_patch(line: int, line_delta: int, shift_after_line: int) -> int:
    """Move a previously held 1-based line number across a style patch."""
    if line > shift_after_line:
        return line + line_delta
    return line


def _style_body(serialized: str) -> list[str]:
    """Canonical body lines written under the ``--- style`` header."""
    if not serialized:
        return [""]
    return ["", *serialized.split("\n"), ""]


def _find_insertion_index(lines: list[str]) -> int:
    """Index of the line a new style block goes after (-1 = document start).

    Prefers the last preamble directive (``--- use:`` and friends), then the
    end of a leading ``--- meta`` block.
    """
    last_directive = -1
    for i, line in enumerate(lines):
        header = parse_header(line)
        if header is None:
            continue
        if header.type in _DIRECTIVE_TYPES:
            last_directive = i
        elif last_directive != -1:
            break
    if last_directive != -1:
        return last_directive

    for i, line in enumerate(lines):
        if not line.strip() or line.strip().startswith("//"):
            continue
        header = parse_header(line)
        if header is None or header.type != "meta":
            return -1
        for j in range(i + 1, len(lines)):
            if is_block_boundary(lines[j]):
                # Step back over the blank lines separating meta from the next block
                end = j - 1
                while end > i and not lines[end].strip():
                    end -= 1
                return end
        return len(lines) - 1
    return -1


def _patch_style_block(source: str, serialized: str) -> _BlockPatch:
    """Write ``serialized`` into the source's style block, creating it if needed."""
    lines = split_lines(source)
    old_count = len(lines)
    body = _style_body(serialized)

    span = find_style_block(lines)
    if span is not None:
        header, end = span
        new_lines = [*lines[:header + 1], *body, *lines[end:]]
        return _BlockPatch(join_lines(new_lines), len(new_lines) - old_count, header + 1)

    insert_after = _find_insertion_index(lines)
    block = [STYLE_HEADER, *body]
    if insert_after >= 0 and lines[insert_after].strip():
        block.insert(0, "")
    following = insert_after + 1
    # An existing blank line after the insertion point doubles as the separator
    if following < len(lines) and not lines[following].strip() and block[-1] == "":
        block.pop()

    new_lines = [*lines[:insert_after + 1], *block, *lines[insert_after + 1:]]
    logger.debug("Inserted style block after line %d", insert_after + 1)
    return _BlockPatch(join_lines(new_lines), len(new_lines) - old_count, insert_after + 1)


def patch_style(
    source: str,
    graph: Optional[StyleGraph],
    block_type: str,
    target: str,
    prop: str,
    value: str,
    label: Optional[str] = None,
) -> StylePatchResult:
    """Set (or, with an empty value, remove) one style property.

    ``graph`` is the caller's cached style graph for ``source``; it is not
    modified. When it is None the style block in ``source`` is parsed.
    Returns the new source, the new graph and the line bookkeeping.

    Raises ValueError for multi-line inputs and for labels that a
    ``type:label`` selector line cannot hold.
    """
    if not all(is_single_line(part) for part in (block_type, target, prop, value)):
        raise ValueError("Style selector, property and value must be a single line")
    if label and not STYLE_LABEL_RE.match(label):
        raise ValueError(f"Label {label!r} cannot be used in a style selector")

    base = graph if graph is not None else parse_source_style_graph(source)
    if value == "":
        new_graph = remove_rule(base, block_type, target, prop, label)
    else:
        new_graph = merge_rule(base, block_type, target, prop, value, label)

    patched = _patch_style_block(source, serialize_style_graph(new_graph))
    return StylePatchResult(
        source=patched.source,
        graph=new_graph,
        line_delta=patched.line_delta,
        shift_after_line=patched.shift_after_line,
    )


def patch_style_variable(
    source: str,
    graph: Optional[StyleGraph],
    name: str,
    value: str,
) -> StylePatchResult:
    """Set (or, with an empty value, remove) one style variable."""
    if not is_single_line(name) or not is_single_line(value):
        raise ValueError("Variable name and value must be a single line")

    base = graph if graph is not None else parse_source_style_graph(source)
    value = value.strip()
    if value == "":
        new_graph = remove_variable(base, name)
    else:
        new_graph = set_variable(base, name, value)

    patched = _patch_style_block(source, serialize_style_graph(new_graph))
    return StylePatchResult(
        source=patched.source,
        graph=new_graph,
        line_delta=patched.line_delta,
        shift_after_line=patched.shift_after_line,
    )


def is_style_target_type(block_type: Optional[str]) -> bool:
    """Reserved pseudo-blocks and the style block itself cannot be styled."""
    return bool(block_type) and block_type not in SPECIAL_TYPES and block_type != "style"
