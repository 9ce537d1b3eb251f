"""Style graph model: variables plus rules keyed by block type, target and label.

Every helper returns a new graph; the graph passed in is never mutated.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

RAW_BLOCK_TYPE = "__raw"
SELF_TARGET = "self"


class StyleVariable(BaseModel):
    name: str
    value: str


class StyleRule(BaseModel):
    """Properties applied to one target of one block type.

    ``target`` is ``self``, ``self:<pseudo>``, a kit sub-element name
    (optionally with a pseudo, ``link:hover``), or a descendant selector
    starting with ``>``. For ``__raw`` rules it holds the verbatim selector.
    """

    model_config = ConfigDict(populate_by_name=True)

    block_type: str = Field(alias="blockType")
    target: str = SELF_TARGET
    label: Optional[str] = None
    properties: dict[str, str] = Field(default_factory=dict)

    def key(self) -> tuple[str, str, Optional[str]]:
        return (self.block_type, self.target, self.label)


class StyleGraph(BaseModel):
    variables: list[StyleVariable] = Field(default_factory=list)
    rules: list[StyleRule] = Field(default_factory=list)


def empty_style_graph() -> StyleGraph:
    return StyleGraph()


def _normalize_label(label: Optional[str]) -> Optional[str]:
    return label or None


def find_rule(
    graph: StyleGraph,
    block_type: str,
    target: str,
    label: Optional[str] = None,
) -> Optional[StyleRule]:
    """Return the single rule for ``(block_type, target, label)``, if any."""
    wanted = (block_type, target, _normalize_label(label))
    for rule in graph.rules:
        if rule.key() == wanted:
            return rule
    return None


def merge_rule(
    graph: StyleGraph,
    block_type: str,
    target: str,
    prop: str,
    value: str,
    label: Optional[str] = None,
) -> StyleGraph:
    """Set ``prop`` on the matching rule, creating the rule if needed."""
    wanted = (block_type, target, _normalize_label(label))
    rules: list[StyleRule] = []
    merged = False
    for rule in graph.rules:
        if not merged and rule.key() == wanted:
            rules.append(
                rule.model_copy(update={"properties": {**rule.properties, prop: value}})
            )
            merged = True
        else:
            rules.append(rule)

    if not merged:
        rules.append(
            StyleRule(
                block_type=block_type,
                target=target,
                label=_normalize_label(label),
                properties={prop: value},
            )
        )
    return graph.model_copy(update={"rules": rules})


def remove_rule(
    graph: StyleGraph,
    block_type: str,
    target: str,
    prop: str,
    label: Optional[str] = None,
) -> StyleGraph:
    """Delete ``prop`` from the matching rule; drop the rule once it is empty."""
    wanted = (block_type, target, _normalize_label(label))
    rules: list[StyleRule] = []
    for rule in graph.rules:
        if rule.key() != wanted:
            rules.append(rule)
            continue
        remaining = {k: v for k, v in rule.properties.items() if k != prop}
        if remaining:
            rules.append(rule.model_copy(update={"properties": remaining}))
    return graph.model_copy(update={"rules": rules})


def get_variable_value(graph: Optional[StyleGraph], name: str) -> Optional[str]:
    if graph is None:
        return None
    for variable in graph.variables:
        if variable.name == name:
            return variable.value
    return None


def set_variable(graph: StyleGraph, name: str, value: str) -> StyleGraph:
    variables = [
        StyleVariable(name=v.name, value=value) if v.name == name else v
        for v in graph.variables
    ]
    if get_variable_value(graph, name) is None:
        variables.append(StyleVariable(name=name, value=value))
    return graph.model_copy(update={"variables": variables})


def remove_variable(graph: StyleGraph, name: str) -> StyleGraph:
    variables = [v for v in graph.variables if v.name != name]
    return graph.model_copy(update={"variables": variables})


def split_target(target: str) -> tuple[Optional[str], Optional[str]]:
    """Split a non-descendant target into ``(sub_element, pseudo)``.

    ``self`` -> (None, None); ``self:hover`` -> (None, ":hover");
    ``link`` -> ("link", None); ``link:hover`` -> ("link", ":hover").
    """
    if target == SELF_TARGET:
        return None, None
    if target.startswith(SELF_TARGET + ":"):
        return None, target[len(SELF_TARGET):]
    colon = target.find(":")
    if colon != -1:
        return target[:colon], target[colon:]
    return target, None


def is_descendant_target(target: str) -> bool:
    return target.startswith(">")
