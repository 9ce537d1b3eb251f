"""Locate the block enclosing a cursor line and extract its properties.

Works directly on the source text: no parse tree is kept between calls, so
every lookup re-scans the lines it needs.
"""

from typing import Optional

from pydantic import BaseModel, Field

from source_lines import (
    PROPERTY_RE,
    SPECIAL_TYPES,
    STYLE_TYPE,
    is_block_boundary,
    parse_header,
    split_lines,
)


class CursorBlock(BaseModel):
    """The block under the cursor. Line numbers are 1-based.

    ``start_line`` is the first line after the header; ``end_line`` is the
    next delimiter line (or one past the last line), so the body is
    ``[start_line, end_line)``.
    """

    type: str
    start_line: int
    end_line: int
    properties: dict[str, str] = Field(default_factory=dict)
    is_special: bool = False
    label: Optional[str] = None

    @property
    def header_line(self) -> int:
        return self.start_line - 1


def locate_block(text: str, cursor_line: int) -> Optional[CursorBlock]:
    """Find the block containing ``cursor_line``.

    Returns None for an empty document, a cursor before line 1, a cursor
    with no header above it, or a cursor inside the ``--- style`` block
    (style edits go through the style graph instead).
    """
    if not text:
        return None

    lines = split_lines(text)
    block_type: Optional[str] = None
    label: Optional[str] = None
    body_start = -1

    for i in range(min(cursor_line - 1, len(lines) - 1), -1, -1):
        header = parse_header(lines[i])
        if header is None:
            continue
        if header.type == STYLE_TYPE:
            return None
        block_type = header.type
        label = header.label
        body_start = i + 1
        break

    if block_type is None:
        return None

    body_end = len(lines)
    for i in range(max(cursor_line, body_start), len(lines)):
        if is_block_boundary(lines[i]):
            body_end = i
            break

    properties: dict[str, str] = {}
    for line in lines[body_start:body_end]:
        match = PROPERTY_RE.match(line)
        if match:
            properties[match.group(1)] = match.group(2)

    return CursorBlock(
        type=block_type,
        start_line=body_start + 1,
        end_line=body_end + 1,
        properties=properties,
        is_special=block_type in SPECIAL_TYPES,
        label=label,
    )


def resolve_block_line(
    cursor_line: int, text: str
) -> tuple[Optional[int], Optional[str]]:
    """Return ``(header_line, block_type)`` of the content block at the cursor.

    Special pseudo-blocks and the style block resolve to ``(None, None)``.
    """
    lines = split_lines(text)
    for i in range(min(cursor_line - 1, len(lines) - 1), -1, -1):
        header = parse_header(lines[i])
        if header is None:
            continue
        if header.type in SPECIAL_TYPES or header.type == STYLE_TYPE:
            return None, None
        return i + 1, header.type
    return None, None
