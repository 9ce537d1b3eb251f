"""Apply a style change picked from the preview to the source.

A pick names a block (by header line), a target inside it and optionally the
source line of the clicked element. Plain tag targets are too broad to style
directly, so the first change mints an ``sN`` class, annotates the clicked
line and retargets the rule to that class. Block-level targets get a label
instead, so the rule only applies to this block instance.
"""

import logging
import re
from typing import NamedTuple, Optional

from pydantic import BaseModel

from identifiers import (
    generate_block_label,
    generate_style_class,
    inject_block_label,
    inject_class_annotation,
    inject_html_class_attribute,
)
from source_lines import clamp_line
from style_graph import StyleGraph
from style_patcher import (
    STYLE_LABEL_RE,
    adjust_line_for_style_patch,
    is_style_target_type,
    patch_style,
)

logger = logging.getLogger(__name__)

_TAG_TARGET_RE = re.compile(r"^>[a-z]")
_NTH_OF_TYPE_RE = re.compile(r":nth-of-type\(\d+\)$")


class StyleSelection(BaseModel):
    """What the user picked. ``block_line`` is the block's header line."""

    block_type: str
    target: str
    block_line: int
    label: Optional[str] = None
    target_line: Optional[int] = None
    target_tag: Optional[str] = None


class StylePickResult(NamedTuple):
    source: str
    graph: StyleGraph
    line_delta: int
    shift_after_line: int
    selection: StyleSelection


def _retarget_to_class(
    source: str, selection: StyleSelection, verbatim: bool
) -> Optional[tuple[str, StyleSelection]]:
    class_name = generate_style_class(source)
    if verbatim:
        injected = inject_html_class_attribute(source, selection.target_line, class_name)
    else:
        injected = inject_class_annotation(source, selection.target_line, class_name)
    if injected is None:
        # Line already carries a class; style the tag target as-is
        return None
    raw_tag = _NTH_OF_TYPE_RE.sub("", selection.target[1:])
    return injected, selection.model_copy(
        update={"target": f">.{class_name}", "target_tag": raw_tag}
    )


def _label_block(source: str, selection: StyleSelection) -> Optional[tuple[str, StyleSelection]]:
    label = generate_block_label(source)
    labeled = inject_block_label(source, selection.block_line, label)
    if labeled is None:
        return None
    return labeled, selection.model_copy(update={"label": label})


def apply_style_pick(
    source: str,
    graph: Optional[StyleGraph],
    selection: StyleSelection,
    prop: str,
    value: str,
    verbatim: bool = False,
) -> Optional[StylePickResult]:
    """Set ``prop`` on the picked target, annotating the source as needed.

    ``verbatim`` selects HTML ``class`` attributes over ``{.sN}`` annotations
    for blocks whose body is raw HTML. Returns None when the block or its label
    cannot be styled, and when a tag target arrives without the line it was
    clicked on.
    """
    if not is_style_target_type(selection.block_type):
        return None
    if selection.label and not STYLE_LABEL_RE.match(selection.label):
        logger.warning("Block label %r cannot be styled; skipping", selection.label)
        return None

    working_source = source
    working = selection

    if _TAG_TARGET_RE.match(working.target):
        if working.target_line is None:
            logger.warning("No target line for tag selector %s; skipping", working.target)
            return None
        retargeted = _retarget_to_class(working_source, working, verbatim)
        if retargeted is not None:
            working_source, working = retargeted

    if not working.label and not working.target.startswith(">."):
        labeled = _label_block(working_source, working)
        if labeled is not None:
            working_source, working = labeled

    patched = patch_style(
        working_source,
        graph,
        working.block_type,
        working.target,
        prop,
        value,
        working.label,
    )

    def _follow(line: int) -> int:
        moved = adjust_line_for_style_patch(line, patched.line_delta, patched.shift_after_line)
        return clamp_line(moved, patched.source)

    updates = {"block_line": _follow(working.block_line)}
    if working.target_line is not None:
        updates["target_line"] = _follow(working.target_line)

    return StylePickResult(
        source=patched.source,
        graph=patched.graph,
        line_delta=patched.line_delta,
        shift_after_line=patched.shift_after_line,
        selection=working.model_copy(update=updates),
    )
