"""Post-compile HTML patching for descendant style targets.

The mkly compiler does not understand ``>tag`` / ``>.sN`` targets or the
``{.sN}`` line annotations the editor injects. This module translates them:
descendant rules become real CSS scoped to the block's class, and annotated
lines get their classes applied to the rendered element.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, NavigableString

from identifiers import LINE_CLASS_RE
from source_lines import split_lines
from style_graph import StyleGraph, is_descendant_target

logger = logging.getLogger(__name__)

COMPAT_STYLE_ATTR = "data-mkly-compat"

# Shorthand keys accepted in style blocks
STYLE_ALIASES = {
    "bg": "background",
    "fg": "color",
    "rounded": "border-radius",
}

VARIABLE_TO_CSS = {
    "accent": "--mkly-accent",
    "accentHover": "--mkly-accent-hover",
    "bg": "--mkly-bg",
    "text": "--mkly-text",
    "muted": "--mkly-muted",
    "border": "--mkly-border",
    "fontBody": "--mkly-font-body",
    "fontHeading": "--mkly-font-heading",
    "fontMono": "--mkly-font-mono",
    "radius": "--mkly-radius",
    "spacing": "--mkly-spacing",
    "bgSubtle": "--mkly-bg-subtle",
    "gapScale": "--mkly-gap-scale",
}

_TRAILING_CLASS_RE = re.compile(r"\s\{(?:\.[A-Za-z0-9_-]+\s*)+\}\s*$")
_VARIABLE_REF_RE = re.compile(r"\$(\w+)")


def camel_to_kebab(name: str) -> str:
    """Convert camelCase CSS property to kebab-case."""
    return re.sub(r"([A-Z])", r"-\1", name).lower()


def css_property(key: str) -> str:
    if key in STYLE_ALIASES:
        return STYLE_ALIASES[key]
    if "-" in key:
        return key
    return camel_to_kebab(key)


def resolve_variable_name(name: str) -> str:
    return VARIABLE_TO_CSS.get(name, f"--mkly-{camel_to_kebab(name)}")


def resolve_value(value: str) -> str:
    """Expand ``$name`` references and keep the value safe inside <style>."""
    expanded = _VARIABLE_REF_RE.sub(
        lambda m: f"var({resolve_variable_name(m.group(1))})", value
    )
    return re.sub(r"</", r"<\\/", expanded, flags=re.IGNORECASE)


def block_type_to_css_class(block_type: str) -> str:
    """``core/card`` -> ``mkly-core-card``."""
    return f"mkly-{block_type.replace('/', '-', 1)}"


def resolve_descendant_selector(
    block_type: str, target: str, label: Optional[str] = None
) -> Optional[str]:
    """CSS selector for a ``>...`` target, scoped to the (labelled) block class."""
    if not is_descendant_target(target):
        return None
    base = block_type_to_css_class(block_type)
    label_suffix = f"--{label}" if label else ""
    descendant = target[1:].strip()
    if not descendant:
        return f".{base}{label_suffix}"
    return f".{base}{label_suffix} {descendant}"


def build_descendant_css(graph: StyleGraph) -> str:
    css_rules: list[str] = []
    for rule in graph.rules:
        selector = resolve_descendant_selector(rule.block_type, rule.target, rule.label)
        if not selector or not rule.properties:
            continue
        declarations = "\n".join(
            f"  {css_property(key)}: {resolve_value(value)};"
            for key, value in rule.properties.items()
        )
        css_rules.append(f"{selector} {{\n{declarations}\n}}")
    return "\n".join(css_rules)


def extract_line_class_map(source: str) -> dict[int, list[str]]:
    """Map 1-based source lines to the classes in their trailing ``{.a .b}``."""
    class_map: dict[int, list[str]] = {}
    for number, line in enumerate(split_lines(source), start=1):
        match = LINE_CLASS_RE.search(line)
        if not match:
            continue
        classes = [part.lstrip(".") for part in match.group(1).split() if part.lstrip(".")]
        if classes:
            class_map[number] = classes
    return class_map


def apply_line_classes_to_html(html: str, source: str) -> str:
    """Add annotated classes to rendered elements and strip the ``{.sN}`` markers."""
    class_map = extract_line_class_map(source)
    if not class_map:
        return html

    soup = BeautifulSoup(html, "lxml")
    for line, classes in class_map.items():
        tags = soup.find_all(attrs={"data-mkly-line": str(line)})
        if not tags:
            logger.debug("No rendered element for annotated line %d", line)
        for tag in tags:
            existing = list(tag.get("class") or [])
            for class_name in classes:
                if class_name not in existing:
                    existing.append(class_name)
            tag["class"] = existing

            strings = tag.find_all(string=True)
            if strings:
                last = strings[-1]
                stripped = _TRAILING_CLASS_RE.sub("", str(last))
                if stripped != str(last):
                    last.replace_with(NavigableString(stripped))

    return _render(soup, html)


def _render(soup: BeautifulSoup, source_html: str) -> str:
    """Serialize without the <html><body> shell lxml adds around fragments."""
    if re.search(r"<html[\s>]", source_html, re.IGNORECASE) or soup.body is None:
        return str(soup)
    return "".join(str(node) for node in soup.body.contents)


def inject_compat_css(html: str, css: str) -> str:
    """Insert the compatibility stylesheet before ``</head>`` (or after ``<body>``)."""
    if not css.strip():
        return html
    tag = f'<style {COMPAT_STYLE_ATTR}="descendant-targets">\n{css}\n</style>'

    if "</head>" in html.lower():
        pattern = re.compile(r"</head>", re.IGNORECASE)
        return pattern.sub(lambda _m: f"{tag}</head>", html, count=1)

    body_open = re.search(r"<body[^>]*>", html, re.IGNORECASE)
    if body_open:
        return html[:body_open.end()] + tag + html[body_open.end():]

    return tag + html


def apply_compile_compat(source: str, html: str, graph: StyleGraph) -> str:
    with_line_classes = apply_line_classes_to_html(html, source)
    return inject_compat_css(with_line_classes, build_descendant_css(graph))
