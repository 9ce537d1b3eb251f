from source_lines import split_lines
from style_graph import find_rule
from style_pick import StyleSelection, apply_style_pick

LIST_DOC = "--- use: core\n\n--- core/list\n- Item one\n- Item two"


def _line(source, number):
    return split_lines(source)[number - 1]


class TestTagTargets:
    def test_mints_class_and_retargets(self):
        selection = StyleSelection(block_type="core/list", target=">li", block_line=3, target_line=5)
        result = apply_style_pick(LIST_DOC, None, selection, "color", "red")

        assert result.selection.target == ">.s1"
        assert result.selection.target_tag == "li"
        assert result.selection.label is None
        assert find_rule(result.graph, "core/list", ">.s1").properties == {"color": "red"}
        assert result.line_delta == 6
        assert result.shift_after_line == 1

    def test_selection_lines_follow_the_text(self):
        selection = StyleSelection(block_type="core/list", target=">li", block_line=3, target_line=5)
        result = apply_style_pick(LIST_DOC, None, selection, "color", "red")

        assert _line(result.source, result.selection.block_line) == "--- core/list"
        assert _line(result.source, result.selection.target_line) == "- Item two {.s1}"

    def test_positional_suffix_dropped_from_tag(self):
        selection = StyleSelection(
            block_type="core/list", target=">li:nth-of-type(2)", block_line=3, target_line=5
        )
        result = apply_style_pick(LIST_DOC, None, selection, "color", "red")
        assert result.selection.target_tag == "li"

    def test_verbatim_blocks_get_class_attribute(self):
        source = "--- core/html\n<p>Hi</p>"
        selection = StyleSelection(block_type="core/html", target=">p", block_line=1, target_line=2)
        result = apply_style_pick(source, None, selection, "color", "red", verbatim=True)

        assert _line(result.source, result.selection.target_line) == '<p class="s1">Hi</p>'
        assert _line(result.source, result.selection.block_line) == "--- core/html"

    def test_missing_target_line(self):
        selection = StyleSelection(block_type="core/list", target=">li", block_line=3)
        assert apply_style_pick(LIST_DOC, None, selection, "color", "red") is None


class TestBlockTargets:
    def test_unlabelled_block_gets_label(self):
        selection = StyleSelection(block_type="core/list", target="self", block_line=3)
        result = apply_style_pick(LIST_DOC, None, selection, "padding", "4px")

        assert result.selection.label == "s1"
        assert _line(result.source, result.selection.block_line) == "--- core/list: s1"
        assert find_rule(result.graph, "core/list", "self", "s1").properties == {"padding": "4px"}

    def test_existing_label_is_reused(self):
        source = "--- core/card: hero\nBody"
        selection = StyleSelection(block_type="core/card", target="link", block_line=1, label="hero")
        result = apply_style_pick(source, None, selection, "color", "red")

        assert "--- core/card: hero" in result.source
        assert find_rule(result.graph, "core/card", "link", "hero") is not None

    def test_second_pick_reuses_identifiers(self):
        selection = StyleSelection(block_type="core/list", target="self", block_line=3)
        first = apply_style_pick(LIST_DOC, None, selection, "padding", "4px")
        second = apply_style_pick(first.source, first.graph, first.selection, "margin", "0")

        assert second.selection.label == "s1"
        assert len(second.graph.rules) == 1
        assert _line(second.source, second.selection.block_line) == "--- core/list: s1"

    def test_reserved_block(self):
        selection = StyleSelection(block_type="meta", target="self", block_line=1)
        assert apply_style_pick("--- meta\ntitle: X", None, selection, "color", "red") is None

    def test_label_outside_selector_grammar(self):
        source = "--- core/card: hero banner\nBody"
        selection = StyleSelection(block_type="core/card", target="self", block_line=1, label="hero banner")
        assert apply_style_pick(source, None, selection, "color", "red") is None
