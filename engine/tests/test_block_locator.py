from block_locator import locate_block, resolve_block_line

DOC = "\n".join([
    "--- use: core",
    "",
    "--- core/card: hero",
    "title: Hello",
    "image: a.png",
    "",
    "Body text here",
    "",
    "--- core/text",
    "Plain",
])


class TestLocateBlock:
    def test_cursor_in_body(self):
        block = locate_block(DOC, 7)
        assert block.type == "core/card"
        assert block.label == "hero"
        assert block.header_line == 3
        assert block.start_line == 4
        assert block.end_line == 9
        assert block.properties == {"title": "Hello", "image": "a.png"}
        assert block.is_special is False

    def test_cursor_on_header(self):
        block = locate_block(DOC, 3)
        assert block.type == "core/card"
        assert block.end_line == 9

    def test_last_block_runs_to_end(self):
        block = locate_block(DOC, 10)
        assert block.type == "core/text"
        assert block.start_line == 10
        assert block.end_line == 11
        assert block.properties == {}

    def test_special_block(self):
        block = locate_block(DOC, 1)
        assert block.type == "use"
        assert block.is_special is True
        assert block.end_line == 3

    def test_style_block_is_not_editable(self):
        text = "--- style\ncore/card\n  color: red\n--- core/card\nBody"
        assert locate_block(text, 2) is None
        assert locate_block(text, 5).type == "core/card"

    def test_no_header_above_cursor(self):
        assert locate_block("Hello\n--- core/text\nHi", 1) is None

    def test_empty_document(self):
        assert locate_block("", 1) is None

    def test_cursor_past_end_uses_last_block(self):
        block = locate_block(DOC, 50)
        assert block.type == "core/text"


class TestResolveBlockLine:
    def test_content_block(self):
        assert resolve_block_line(7, DOC) == (3, "core/card")

    def test_special_block(self):
        assert resolve_block_line(1, DOC) == (None, None)

    def test_style_block(self):
        text = "--- style\ncore/card\n  color: red"
        assert resolve_block_line(3, text) == (None, None)

    def test_before_first_header(self):
        assert resolve_block_line(1, "intro\n--- core/text") == (None, None)
