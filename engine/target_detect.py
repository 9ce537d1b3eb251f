"""Resolve which part of a rendered block a click landed on.

Operates on the compiled HTML (BeautifulSoup tags), not on mkly source.
Block roots carry ``data-mkly-id="<type>:<n>"`` and ``data-mkly-line``; kit
sub-elements carry BEM classes such as ``mkly-core-card__link``; injected
style classes look like ``s3``.
"""

import logging
import re
from typing import NamedTuple, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

SELF_TARGET = "self"

# Formatting tags resolved through to their block-level container
INLINE_TAGS = frozenset({
    "a", "abbr", "b", "cite", "code", "em", "i", "kbd", "mark",
    "q", "s", "small", "span", "strong", "sub", "sup", "u",
})

# Structural wrappers that stand for the block itself
WRAPPER_TAGS = frozenset({"div", "section", "article", "main"})

BLOCK_ID_ATTR = "data-mkly-id"
LINE_ATTR = "data-mkly-line"

_STYLE_CLASS_RE = re.compile(r"^s\d+$")


class SourceLineHit(NamedTuple):
    line: int
    element: Tag


class ClickTarget(NamedTuple):
    target: str
    block_type: Optional[str]
    block_line: Optional[int]
    target_line: Optional[int]
    target_tag: Optional[str]


def _classes(el: Tag) -> list[str]:
    classes = el.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


def _parent_tag(el: Tag) -> Optional[Tag]:
    parent = el.parent
    return parent if isinstance(parent, Tag) else None


def block_base_class(root: Tag) -> Optional[str]:
    """The block's own ``mkly-<kit>-<type>`` class (no ``__`` or ``--`` suffix)."""
    for cls in _classes(root):
        if cls.startswith("mkly-") and "__" not in cls and "--" not in cls:
            return cls
    return None


def resolve_inline_element(el: Tag, root: Tag) -> Tag:
    """Walk up from an inline formatting element to its block-level container.

    Block-level elements are returned as-is; reaching ``root`` returns ``root``.
    """
    current: Optional[Tag] = el
    while current is not None and current is not root and current.name in INLINE_TAGS:
        current = _parent_tag(current)
    return current if current is not None else root


def _style_class_on_chain(el: Tag, resolved: Tag, root: Tag) -> Optional[str]:
    """Nearest injected ``sN`` class from ``el`` up to ``resolved`` (root excluded)."""
    current: Optional[Tag] = el
    while current is not None and current is not root:
        for cls in _classes(current):
            if _STYLE_CLASS_RE.match(cls):
                return cls
        if current is resolved:
            break
        current = _parent_tag(current)
    return None


def _bem_name(el: Tag, root: Tag) -> Optional[str]:
    base = block_base_class(root)
    if not base:
        return None
    prefix = f"{base}__"
    current: Optional[Tag] = el
    while current is not None and current is not root:
        for cls in _classes(current):
            if cls.startswith(prefix):
                return cls[len(prefix):]
        current = _parent_tag(current)
    return None


def _nth_of_type(el: Tag) -> Optional[int]:
    parent = _parent_tag(el)
    if parent is None:
        return None
    same = parent.find_all(el.name, recursive=False)
    if len(same) < 2:
        return None
    for position, child in enumerate(same, start=1):
        if child is el:
            return position
    return None


def detect_target(clicked: Tag, root: Tag, positional: bool = False) -> str:
    """Classify a click inside a rendered block as a style target.

    Precedence: block root -> ``self``; injected ``sN`` class -> ``>.sN``;
    kit BEM sub-element -> its name; generic wrapper or the root itself ->
    ``self``; otherwise ``>tag`` (``>tag:nth-of-type(k)`` when ``positional``
    and the element has same-tag siblings).
    """
    if clicked is root:
        return SELF_TARGET

    resolved = resolve_inline_element(clicked, root)

    style_class = _style_class_on_chain(clicked, resolved, root)
    if style_class:
        return f">.{style_class}"

    bem = _bem_name(clicked, root)
    if bem:
        return bem

    if resolved is root or resolved.name in WRAPPER_TAGS:
        return SELF_TARGET

    if positional:
        position = _nth_of_type(resolved)
        if position is not None:
            return f">{resolved.name}:nth-of-type({position})"
    return f">{resolved.name}"


def find_source_line(el: Tag, stop_at: Tag) -> Optional[SourceLineHit]:
    """Nearest ``data-mkly-line`` from ``el`` up to and including ``stop_at``."""
    current: Optional[Tag] = el
    while current is not None:
        raw = current.get(LINE_ATTR)
        if raw is not None:
            try:
                return SourceLineHit(int(raw), current)
            except ValueError:
                logger.warning("Ignoring non-numeric %s=%r", LINE_ATTR, raw)
        if current is stop_at:
            break
        current = _parent_tag(current)
    return None


def extract_block_type(el: Tag) -> Optional[str]:
    """``data-mkly-id="core/card:5"`` -> ``"core/card"``."""
    block_id = el.get(BLOCK_ID_ATTR)
    if not block_id:
        return None
    return block_id.split(":")[0]


def find_block_root(el: Tag) -> Optional[Tag]:
    current: Optional[Tag] = el
    while current is not None:
        if current.get(BLOCK_ID_ATTR):
            return current
        current = _parent_tag(current)
    return None


def locate_click(html: str, selector: str, positional: bool = False) -> Optional[ClickTarget]:
    """Resolve a click given the rendered HTML and a CSS selector for the element.

    Returns None when the selector matches nothing or the element is not
    inside a rendered block.
    """
    soup = BeautifulSoup(html, "lxml")
    clicked = soup.select_one(selector)
    if clicked is None:
        return None

    root = find_block_root(clicked)
    if root is None:
        logger.debug("Clicked element %r is outside any block", selector)
        return None

    target = detect_target(clicked, root, positional=positional)
    block_hit = find_source_line(root, root)
    target_hit = find_source_line(clicked, root) if target != SELF_TARGET else None
    target_tag = None
    if target.startswith(">"):
        target_tag = resolve_inline_element(clicked, root).name

    return ClickTarget(
        target=target,
        block_type=extract_block_type(root),
        block_line=block_hit.line if block_hit else None,
        target_line=target_hit.line if target_hit else None,
        target_tag=target_tag,
    )
