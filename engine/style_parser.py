"""Parser for the indentation-based ``--- style`` sub-language.

Syntax example::

    accent: #e2725b

    core/card:hero
      backgroundColor: $accent
      .link
        color: #1d4ed8
      :hover
        opacity: 0.9
      >p
        margin: 0

Each line is classified once (see :class:`StyleLineKind`) and the parse loop
dispatches on the kind. Selector lines the grammar does not recognise are
kept verbatim as ``__raw`` rules so hand-written CSS survives a round trip.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import NamedTuple, Optional

from source_lines import COMMENT_RE, is_block_boundary, split_lines
from style_graph import (
    RAW_BLOCK_TYPE,
    SELF_TARGET,
    StyleGraph,
    StyleRule,
    StyleVariable,
    empty_style_graph,
)

logger = logging.getLogger(__name__)

__all__ = [
    "StyleLineKind",
    "classify_style_line",
    "find_style_block",
    "parse_source_style_graph",
    "parse_style_graph",
]

STYLE_HEADER = "--- style"

_BLOCK_TYPE = r"[\w-]+(?:/[\w-]+)+"
_IDENT = r"[\w][\w-]*"
_PSEUDO = r"::?[\w-]+(?:\([^)]*\))?"

_VARIABLE_RE = re.compile(r"^([\w-]+)\s*:\s+(.+)$")
_BLOCK_SELECTOR_RE = re.compile(rf"^({_BLOCK_TYPE})$")
_LABEL_SELECTOR_RE = re.compile(rf"^({_BLOCK_TYPE}):([\w-]+)$")
# Legacy compact dialect: core/card.link, core/card:hover, core/card:hero.link
_COMPACT_SELECTOR_RE = re.compile(
    rf"^({_BLOCK_TYPE})(?::([\w-]+))?(?:\.({_IDENT}))?({_PSEUDO})?$"
)
_SUB_ELEMENT_RE = re.compile(rf"^\.({_IDENT})$")
_PSEUDO_RE = re.compile(rf"^({_PSEUDO})$")
_SUB_PSEUDO_RE = re.compile(rf"^\.({_IDENT})({_PSEUDO})$")
_DESCENDANT_RE = re.compile(r"^>(.+)$")
_PROPERTY_RE = re.compile(r"^([\w-]+)\s*:\s*(.+)$")


class StyleLineKind(str, Enum):
    BLANK = "blank"
    COMMENT = "comment"
    VARIABLE = "variable"
    BLOCK_SELECTOR = "block_selector"
    LABEL_SELECTOR = "label_selector"
    COMPACT_SELECTOR = "compact_selector"
    RAW_SELECTOR = "raw_selector"
    SUB_ELEMENT = "sub_element"
    PSEUDO = "pseudo"
    SUB_PSEUDO = "sub_pseudo"
    DESCENDANT = "descendant"
    PROPERTY = "property"
    UNKNOWN = "unknown"


class StyleLine(NamedTuple):
    kind: StyleLineKind
    indent: int
    groups: tuple[Optional[str], ...] = ()
    text: str = ""


def _indent_width(line: str) -> int:
    width = 0
    for ch in line:
        if ch == " ":
            width += 1
        elif ch == "\t":
            width += 2
        else:
            break
    return width


def classify_style_line(line: str) -> StyleLine:
    """Classify one line of a style block body."""
    trimmed = line.strip()
    if not trimmed:
        return StyleLine(StyleLineKind.BLANK, 0)
    if COMMENT_RE.match(trimmed):
        return StyleLine(StyleLineKind.COMMENT, 0, text=trimmed)

    indent = _indent_width(line)
    if indent == 0:
        checks = (
            (StyleLineKind.VARIABLE, _VARIABLE_RE),
            (StyleLineKind.LABEL_SELECTOR, _LABEL_SELECTOR_RE),
            (StyleLineKind.BLOCK_SELECTOR, _BLOCK_SELECTOR_RE),
            (StyleLineKind.COMPACT_SELECTOR, _COMPACT_SELECTOR_RE),
        )
        fallback = StyleLineKind.RAW_SELECTOR
    else:
        checks = (
            (StyleLineKind.SUB_PSEUDO, _SUB_PSEUDO_RE),
            (StyleLineKind.SUB_ELEMENT, _SUB_ELEMENT_RE),
            (StyleLineKind.PSEUDO, _PSEUDO_RE),
            (StyleLineKind.DESCENDANT, _DESCENDANT_RE),
            (StyleLineKind.PROPERTY, _PROPERTY_RE),
        )
        fallback = StyleLineKind.UNKNOWN

    for kind, pattern in checks:
        match = pattern.match(trimmed)
        if match:
            return StyleLine(kind, indent, match.groups(), trimmed)
    return StyleLine(fallback, indent, (), trimmed)


class _RuleBuilder:
    """Accumulates properties for the currently open selector."""

    def __init__(self) -> None:
        self.rules: list[StyleRule] = []
        self.variables: list[StyleVariable] = []
        self.block_type: Optional[str] = None
        self.target = SELF_TARGET
        self.label: Optional[str] = None
        self.props: dict[str, str] = {}

    def open(self, block_type: Optional[str], target: str, label: Optional[str] = None) -> None:
        self.flush()
        self.block_type = block_type
        self.target = target
        self.label = label

    def retarget(self, target: str) -> None:
        self.flush()
        self.target = target

    def flush(self) -> None:
        if self.block_type and self.props:
            self._merge(StyleRule(
                block_type=self.block_type,
                target=self.target,
                label=self.label,
                properties=dict(self.props),
            ))
        self.props = {}

    def add_variable(self, name: str, value: str) -> None:
        for i, variable in enumerate(self.variables):
            if variable.name == name:
                self.variables[i] = StyleVariable(name=name, value=value)
                return
        self.variables.append(StyleVariable(name=name, value=value))

    def _merge(self, rule: StyleRule) -> None:
        # One rule per (block_type, target, label): later declarations win.
        for i, existing in enumerate(self.rules):
            if existing.key() == rule.key():
                self.rules[i] = existing.model_copy(
                    update={"properties": {**existing.properties, **rule.properties}}
                )
                return
        self.rules.append(rule)


def _decompose_compact(groups: tuple[Optional[str], ...]) -> tuple[str, str, Optional[str]]:
    block_type, label, sub, pseudo = groups
    if sub and sub != SELF_TARGET:
        target = f"{sub}{pseudo or ''}"
    elif pseudo:
        target = f"{SELF_TARGET}{pseudo}"
    else:
        target = SELF_TARGET
    return block_type, target, label


def parse_style_graph(text: str) -> StyleGraph:
    """Parse the body of a ``--- style`` block into a :class:`StyleGraph`."""
    if not text.strip():
        return empty_style_graph()

    builder = _RuleBuilder()
    in_raw = False

    for line in split_lines(text):
        parsed = classify_style_line(line)
        kind = parsed.kind

        if kind in (StyleLineKind.BLANK, StyleLineKind.COMMENT):
            continue

        if parsed.indent == 0:
            in_raw = False
            if kind == StyleLineKind.VARIABLE:
                builder.open(None, SELF_TARGET)
                builder.add_variable(parsed.groups[0], parsed.groups[1].strip())
            elif kind == StyleLineKind.LABEL_SELECTOR:
                builder.open(parsed.groups[0], SELF_TARGET, parsed.groups[1])
            elif kind == StyleLineKind.BLOCK_SELECTOR:
                builder.open(parsed.groups[0], SELF_TARGET)
            elif kind == StyleLineKind.COMPACT_SELECTOR:
                block_type, target, label = _decompose_compact(parsed.groups)
                builder.open(block_type, target, label)
            else:
                logger.debug("Keeping unrecognised style selector as raw CSS: %r", parsed.text)
                builder.open(RAW_BLOCK_TYPE, parsed.text)
                in_raw = True
            continue

        if builder.block_type is None:
            # Indented declarations under a variable-only context are variables
            if kind == StyleLineKind.PROPERTY:
                builder.add_variable(parsed.groups[0], parsed.groups[1].strip())
            continue

        if in_raw:
            if kind == StyleLineKind.PROPERTY:
                builder.props[parsed.groups[0]] = parsed.groups[1].strip()
            continue

        if kind == StyleLineKind.SUB_PSEUDO:
            sub, pseudo = parsed.groups
            builder.retarget(f"{SELF_TARGET}{pseudo}" if sub == SELF_TARGET else f"{sub}{pseudo}")
        elif kind == StyleLineKind.SUB_ELEMENT:
            builder.retarget(parsed.groups[0])
        elif kind == StyleLineKind.PSEUDO:
            builder.retarget(f"{SELF_TARGET}{parsed.groups[0]}")
        elif kind == StyleLineKind.DESCENDANT:
            builder.retarget(f">{parsed.groups[0].strip()}")
        elif kind == StyleLineKind.PROPERTY:
            builder.props[parsed.groups[0]] = parsed.groups[1].strip()
        else:
            logger.debug("Ignoring unrecognised style line: %r", parsed.text)

    builder.flush()
    return StyleGraph(variables=builder.variables, rules=builder.rules)


def find_style_block(lines: list[str]) -> Optional[tuple[int, int]]:
    """Locate the ``--- style`` block as ``(header_index, end_index)`` (0-based).

    ``end_index`` is the next delimiter line or ``len(lines)``.
    """
    for i, line in enumerate(lines):
        if line.strip() != STYLE_HEADER:
            continue
        for j in range(i + 1, len(lines)):
            if is_block_boundary(lines[j]):
                return i, j
        return i, len(lines)
    return None


def parse_source_style_graph(source: str) -> StyleGraph:
    """Parse the style graph straight from a whole document.

    Useful for reading the current style state without a compile; returns
    an empty graph when the document has no style block.
    """
    lines = split_lines(source)
    span = find_style_block(lines)
    if span is None:
        return empty_style_graph()
    header, end = span
    return parse_style_graph("\n".join(lines[header + 1:end]))
