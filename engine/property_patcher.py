"""Deterministic source editor for single block property lines."""

import logging
from typing import Optional

from block_locator import locate_block
from source_lines import (
    is_property_line,
    is_single_line,
    join_lines,
    property_key,
    split_lines,
)

logger = logging.getLogger(__name__)


def patch_property(
    text: str,
    start_line: int,
    end_line: int,
    key: str,
    value: str,
) -> str:
    """Add, update or remove one ``key: value`` line inside a block body.

    Only lines in ``[start_line, end_line)`` (1-based) are read or rewritten.
    An empty ``value`` deletes the line; deleting a key that is not present
    returns the text unchanged. Raises ValueError when ``key`` or ``value``
    spans more than one line.
    """
    if not is_single_line(key) or not is_single_line(value):
        raise ValueError("Property key and value must be a single line")

    lines = split_lines(text)
    block_start = max(start_line - 1, 0)
    block_end = min(end_line - 1, len(lines))

    for i in range(block_start, block_end):
        if property_key(lines[i]) != key:
            continue
        if value == "":
            del lines[i]
        else:
            lines[i] = f"{key}: {value}"
        return join_lines(lines)

    if value == "":
        return text

    # New properties join the leading property cluster, ahead of body content
    insert_at = block_start
    for i in range(block_start, block_end):
        if not is_property_line(lines[i]):
            break
        insert_at = i + 1

    lines.insert(insert_at, f"{key}: {value}")

    # The line that now follows used to sit at insert_at; only inspect it if
    # it belongs to this block.
    if insert_at < block_end:
        following = lines[insert_at + 1]
        if following.strip() and not is_property_line(following):
            lines.insert(insert_at + 1, "")

    return join_lines(lines)


def patch_block_property(
    text: str, cursor_line: int, key: str, value: str
) -> Optional[str]:
    """Patch a property on whichever block encloses ``cursor_line``.

    Returns None when there is no editable block at the cursor.
    """
    block = locate_block(text, cursor_line)
    if block is None:
        logger.debug("No block at line %d, property %r not patched", cursor_line, key)
        return None
    return patch_property(text, block.start_line, block.end_line, key, value)
