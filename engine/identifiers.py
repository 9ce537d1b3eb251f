"""Stable ``sN`` identifiers for style classes and block labels.

Labels (``--- core/card: s1``) and style classes (``{.s2}`` annotations or
``class="s2"`` in verbatim HTML) share one namespace per document. The next
identifier is always derived from the current text rather than a counter, so
it stays correct after undo/redo rewinds the document.
"""

import re
from typing import Optional

from source_lines import (
    SPECIAL_TYPES,
    STYLE_TYPE,
    is_content_line,
    join_lines,
    parse_header,
    split_lines,
)

# {.s1}  >.s2  core/card:s3  --- core/card: s4  class="lead s5"
_ANNOTATION_ID_RE = re.compile(r"\.s(\d+)\b")
_LABEL_ID_RE = re.compile(r":\s*s(\d+)\b")
_CLASS_ATTR_RE = re.compile(r"""\bclass\s*=\s*(["'])(.*?)\1""")
_CLASS_TOKEN_RE = re.compile(r"^s(\d+)$")

LINE_CLASS_RE = re.compile(r"\s\{((?:\.[A-Za-z0-9_-]+\s*)+)\}\s*$")
_HEADER_TYPE_RE = re.compile(r"^\s*---\s+[\w.-]+(?:/[\w.-]+)*")
_OPEN_TAG_RE = re.compile(r"<([a-zA-Z][\w:-]*)((?:\s[^<>]*?)?)(/?)>")


def _used_numbers(source: str) -> set[int]:
    numbers = {int(n) for n in _ANNOTATION_ID_RE.findall(source)}
    numbers.update(int(n) for n in _LABEL_ID_RE.findall(source))
    for _quote, classes in _CLASS_ATTR_RE.findall(source):
        for token in classes.split():
            match = _CLASS_TOKEN_RE.match(token)
            if match:
                numbers.add(int(match.group(1)))
    return numbers


def next_identifier(source: str) -> str:
    """Return ``s<max+1>`` over every ``sN`` already used in the document."""
    used = _used_numbers(source)
    return f"s{max(used, default=0) + 1}"


def generate_style_class(source: str) -> str:
    return next_identifier(source)


def generate_block_label(source: str) -> str:
    return next_identifier(source)


def _nearest_content_index(lines: list[str], line: int) -> Optional[int]:
    """Scan backward from a 1-based line to the closest content-bearing line."""
    if line < 1 or line > len(lines):
        return None
    for i in range(line - 1, -1, -1):
        if is_content_line(lines[i]):
            return i
    return None


def inject_class_annotation(source: str, line: int, class_name: str) -> Optional[str]:
    """Append ``{.class_name}`` to a content line.

    Blank and header lines are skipped by scanning upward. Returns None when
    the line is out of range, no content line is found, or the line already
    carries a class annotation.
    """
    lines = split_lines(source)
    index = _nearest_content_index(lines, line)
    if index is None:
        return None
    if LINE_CLASS_RE.search(lines[index]):
        return None
    lines[index] = f"{lines[index].rstrip()} {{.{class_name}}}"
    return join_lines(lines)


def inject_html_class_attribute(source: str, line: int, class_name: str) -> Optional[str]:
    """Add ``class_name`` to the first opening tag on a verbatim HTML line.

    Returns None when there is no tag on the line (after the same upward scan
    as :func:`inject_class_annotation`) or the tag already has an ``sN`` class.
    """
    lines = split_lines(source)
    index = _nearest_content_index(lines, line)
    if index is None:
        return None

    text = lines[index]
    tag = _OPEN_TAG_RE.search(text)
    if not tag:
        return None

    attrs = tag.group(2)
    class_attr = _CLASS_ATTR_RE.search(attrs)
    if class_attr:
        existing = class_attr.group(2).split()
        if any(_CLASS_TOKEN_RE.match(c) for c in existing):
            return None
        merged = f'class="{" ".join([*existing, class_name])}"'
        attrs = attrs[:class_attr.start()] + merged + attrs[class_attr.end():]
    else:
        attrs = f'{attrs} class="{class_name}"'

    rebuilt = f"<{tag.group(1)}{attrs}{tag.group(3)}>"
    lines[index] = text[:tag.start()] + rebuilt + text[tag.end():]
    return join_lines(lines)


def inject_block_label(source: str, header_line: int, label: str) -> Optional[str]:
    """Append ``: label`` to a content block header line.

    Returns None for out-of-range lines, non-header lines, closing tags,
    reserved pseudo-blocks, and headers that already have a label.
    """
    lines = split_lines(source)
    if header_line < 1 or header_line > len(lines):
        return None

    text = lines[header_line - 1]
    header = parse_header(text)
    if header is None or header.label is not None:
        return None
    if header.type in SPECIAL_TYPES or header.type == STYLE_TYPE:
        return None

    # The label goes right after the type, ahead of any quoted title
    type_end = _HEADER_TYPE_RE.match(text).end()
    lines[header_line - 1] = f"{text[:type_end]}: {label}{text[type_end:].rstrip()}"
    return join_lines(lines)
