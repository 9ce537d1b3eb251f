"""Line-level helpers shared by every mkly source operation.

The document is always handled as a list of lines split on ``\\n``; line
numbers exposed to callers are 1-based.
"""

import re
from enum import Enum
from typing import NamedTuple, Optional

# Reserved pseudo-block types that never carry a style target
SPECIAL_TYPES = frozenset({"use", "meta", "theme", "preset"})
STYLE_TYPE = "style"

# --- core/card: hero   /   --- use: newsletter
HEADER_RE = re.compile(
    r'^---\s+([\w.-]+(?:/[\w.-]+)*)(?::\s*([^"]+?))?(?:\s+"[^"]*")?\s*$'
)
CLOSE_TAG_RE = re.compile(r"^---\s+/([\w.-]+(?:/[\w.-]+)*)\s*$")
# Any opening or closing delimiter ends the current block
BOUNDARY_RE = re.compile(r"^---\s+[\w/]")

PROPERTY_RE = re.compile(r"^(@?[\w./:+-]+):\s(.*)$")
PROPERTY_KEY_RE = re.compile(r"^(@?[\w./:+-]+):\s")
COMMENT_RE = re.compile(r"^\s*//")


class LineKind(str, Enum):
    HEADER = "header"
    CLOSE_TAG = "close_tag"
    PROPERTY = "property"
    COMMENT = "comment"
    BLANK = "blank"
    CONTENT = "content"


class HeaderInfo(NamedTuple):
    type: str
    label: Optional[str]


def split_lines(text: str) -> list[str]:
    """Split text into lines (an empty document is a single empty line)."""
    return text.split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)


def classify_line(line: str) -> LineKind:
    """Classify one source line. Total: every string maps to exactly one kind."""
    trimmed = line.strip()
    if not trimmed:
        return LineKind.BLANK
    if CLOSE_TAG_RE.match(trimmed):
        return LineKind.CLOSE_TAG
    if HEADER_RE.match(trimmed):
        return LineKind.HEADER
    if COMMENT_RE.match(trimmed):
        return LineKind.COMMENT
    if PROPERTY_RE.match(line):
        return LineKind.PROPERTY
    return LineKind.CONTENT


def parse_header(line: str) -> Optional[HeaderInfo]:
    """Return the type and optional label of a block header, or None."""
    trimmed = line.strip()
    if CLOSE_TAG_RE.match(trimmed):
        return None
    match = HEADER_RE.match(trimmed)
    if not match:
        return None
    label = match.group(2)
    return HeaderInfo(type=match.group(1), label=label.strip() if label else None)


def is_block_boundary(line: str) -> bool:
    """True for any ``--- type`` or ``--- /type`` delimiter line."""
    return bool(BOUNDARY_RE.match(line.strip()))


def is_property_line(line: str) -> bool:
    return bool(PROPERTY_KEY_RE.match(line))


def property_key(line: str) -> Optional[str]:
    match = PROPERTY_KEY_RE.match(line)
    return match.group(1) if match else None


def is_content_line(line: str) -> bool:
    """True when the line carries renderable content (not blank, a delimiter or a comment)."""
    return classify_line(line) not in (
        LineKind.BLANK,
        LineKind.HEADER,
        LineKind.CLOSE_TAG,
        LineKind.COMMENT,
    )


def is_single_line(text: str) -> bool:
    """True when ``text`` cannot split into more than one source line."""
    return "\n" not in text and "\r" not in text


def clamp_line(line: int, text: str) -> int:
    """Clamp a 1-based line number into the document's range."""
    total = len(split_lines(text))
    return max(1, min(line, total))
