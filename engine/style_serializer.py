"""Serialize a StyleGraph back into ``--- style`` block text."""

from style_graph import (
    RAW_BLOCK_TYPE,
    SELF_TARGET,
    StyleGraph,
    StyleRule,
    is_descendant_target,
    split_target,
)

INDENT = "  "


def _group_key(rule: StyleRule) -> str:
    return f"{rule.block_type}:{rule.label}" if rule.label else rule.block_type


def _sub_selector(target: str) -> str:
    """Render a non-self target as its indented selector line text."""
    if is_descendant_target(target):
        return target
    sub, pseudo = split_target(target)
    if sub and pseudo:
        return f".{sub}{pseudo}"
    if sub:
        return f".{sub}"
    return pseudo or ""


def _property_lines(properties: dict[str, str], depth: int) -> list[str]:
    return [f"{INDENT * depth}{prop}: {value}" for prop, value in properties.items()]


def serialize_style_graph(graph: StyleGraph) -> str:
    """Render the graph as style-block text.

    Variables come first, then one selector group per ``(block_type, label)``
    in first-appearance order (``self`` properties before nested targets),
    then raw CSS rules. Groups are separated by a blank line.
    """
    lines: list[str] = [f"{v.name}: {v.value}" for v in graph.variables]

    groups: dict[str, list[StyleRule]] = {}
    raw_rules: list[StyleRule] = []
    for rule in graph.rules:
        if not rule.properties:
            continue
        if rule.block_type == RAW_BLOCK_TYPE:
            raw_rules.append(rule)
        else:
            groups.setdefault(_group_key(rule), []).append(rule)

    for selector, rules in groups.items():
        if lines:
            lines.append("")
        lines.append(selector)

        for rule in rules:
            if rule.target == SELF_TARGET:
                lines.extend(_property_lines(rule.properties, 1))

        for rule in rules:
            if rule.target == SELF_TARGET:
                continue
            lines.append(f"{INDENT}{_sub_selector(rule.target)}")
            lines.extend(_property_lines(rule.properties, 2))

    for rule in raw_rules:
        if lines:
            lines.append("")
        lines.append(rule.target)
        lines.extend(_property_lines(rule.properties, 1))

    return "\n".join(lines)
