from bs4 import BeautifulSoup

from compile_compat import (
    apply_compile_compat,
    apply_line_classes_to_html,
    block_type_to_css_class,
    build_descendant_css,
    css_property,
    extract_line_class_map,
    inject_compat_css,
    resolve_descendant_selector,
    resolve_value,
)
from style_graph import StyleGraph, StyleRule, empty_style_graph

TIP_SOURCE = "\n".join([
    "--- newsletter/tipOfTheDay: s1",
    "- Item one {.s2}",
])


class TestSelectors:
    def test_block_class(self):
        assert block_type_to_css_class("core/card") == "mkly-core-card"
        assert block_type_to_css_class("newsletter/tipOfTheDay") == "mkly-newsletter-tipOfTheDay"

    def test_labelled_descendant(self):
        selector = resolve_descendant_selector("newsletter/tipOfTheDay", ">.s2", "s1")
        assert selector == ".mkly-newsletter-tipOfTheDay--s1 .s2"

    def test_unlabelled_descendant(self):
        assert resolve_descendant_selector("core/list", ">li") == ".mkly-core-list li"

    def test_non_descendant_target(self):
        assert resolve_descendant_selector("core/card", "self") is None
        assert resolve_descendant_selector("core/card", "link") is None


class TestDeclarations:
    def test_css_property(self):
        assert css_property("bg") == "background"
        assert css_property("fg") == "color"
        assert css_property("backgroundColor") == "background-color"
        assert css_property("font-size") == "font-size"

    def test_variable_references(self):
        assert resolve_value("$accent") == "var(--mkly-accent)"
        assert resolve_value("1px solid $border") == "1px solid var(--mkly-border)"
        assert resolve_value("$customTone") == "var(--mkly-custom-tone)"

    def test_closing_tags_escaped(self):
        assert "</" not in resolve_value("</style><script>")


class TestBuildDescendantCss:
    def test_only_descendant_rules(self):
        graph = StyleGraph(rules=[
            StyleRule(block_type="core/list", target="self", properties={"color": "red"}),
            StyleRule(block_type="core/list", target=">li", properties={"marginBottom": "$spacing"}),
        ])
        assert build_descendant_css(graph) == ".mkly-core-list li {\n  margin-bottom: var(--mkly-spacing);\n}"

    def test_empty_graph(self):
        assert build_descendant_css(empty_style_graph()) == ""


class TestLineClasses:
    def test_extract_line_class_map(self):
        source = "--- core/list\n- Item one {.s1}\n- Two {.s2 .s3}\nPlain"
        assert extract_line_class_map(source) == {2: ["s1"], 3: ["s2", "s3"]}

    def test_applies_classes_and_strips_marker(self):
        html = '<ul><li data-mkly-line="2">Item one {.s1}</li></ul>'
        result = apply_line_classes_to_html(html, "--- core/list\n- Item one {.s1}")
        item = BeautifulSoup(result, "lxml").select_one("li")
        assert item["class"] == ["s1"]
        assert item.get_text() == "Item one"
        assert "<html>" not in result

    def test_keeps_existing_classes(self):
        html = '<p class="lead" data-mkly-line="2">Hi</p>'
        result = apply_line_classes_to_html(html, "--- core/text\nHi {.s1}")
        paragraph = BeautifulSoup(result, "lxml").select_one("p")
        assert paragraph["class"] == ["lead", "s1"]

    def test_no_annotations_returns_html_unchanged(self):
        html = "<p data-mkly-line='2'>Hi</p>"
        assert apply_line_classes_to_html(html, "--- core/text\nHi") == html


class TestInjectCompatCss:
    def test_before_head_close(self):
        result = inject_compat_css("<html><head></head><body></body></html>", "p {}")
        assert '<style data-mkly-compat="descendant-targets">\np {}\n</style></head>' in result

    def test_after_body_open(self):
        result = inject_compat_css('<body class="x"><p>Hi</p></body>', "p {}")
        assert result.startswith('<body class="x"><style data-mkly-compat')

    def test_fragment(self):
        assert inject_compat_css("<p>Hi</p>", "p {}").startswith("<style")

    def test_empty_css(self):
        assert inject_compat_css("<p>Hi</p>", "  ") == "<p>Hi</p>"


class TestApplyCompileCompat:
    def test_tip_of_the_day(self):
        html = (
            '<div class="mkly-newsletter-tipOfTheDay mkly-newsletter-tipOfTheDay--s1"'
            ' data-mkly-id="newsletter/tipOfTheDay:1" data-mkly-line="1">'
            '<ul><li data-mkly-line="2">Item one {.s2}</li></ul></div>'
        )
        graph = StyleGraph(rules=[
            StyleRule(block_type="newsletter/tipOfTheDay", target=">.s2", label="s1",
                      properties={"fg": "red"}),
        ])
        result = apply_compile_compat(TIP_SOURCE, html, graph)
        assert ".mkly-newsletter-tipOfTheDay--s1 .s2 {\n  color: red;\n}" in result
        item = BeautifulSoup(result, "lxml").select_one("li")
        assert item["class"] == ["s2"]
        assert item.get_text() == "Item one"
