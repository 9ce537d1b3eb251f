from source_lines import (
    HeaderInfo,
    LineKind,
    clamp_line,
    classify_line,
    is_block_boundary,
    is_content_line,
    is_single_line,
    parse_header,
    property_key,
    split_lines,
)


class TestClassifyLine:
    def test_header(self):
        assert classify_line("--- core/card: hero") == LineKind.HEADER

    def test_close_tag(self):
        assert classify_line("--- /core/card") == LineKind.CLOSE_TAG

    def test_property(self):
        assert classify_line("title: Hello") == LineKind.PROPERTY

    def test_url_is_content(self):
        assert classify_line("https://example.com") == LineKind.CONTENT

    def test_comment(self):
        assert classify_line("  // editor note") == LineKind.COMMENT

    def test_blank(self):
        assert classify_line("   ") == LineKind.BLANK

    def test_plain_text(self):
        assert classify_line("- Item one") == LineKind.CONTENT


class TestParseHeader:
    def test_type_only(self):
        assert parse_header("--- core/heading") == HeaderInfo("core/heading", None)

    def test_type_and_label(self):
        assert parse_header("--- core/card: hero") == HeaderInfo("core/card", "hero")

    def test_title_is_not_a_label(self):
        assert parse_header('--- core/card "Featured"') == HeaderInfo("core/card", None)

    def test_label_before_title(self):
        assert parse_header('--- core/card: s1 "Featured"') == HeaderInfo("core/card", "s1")

    def test_directive(self):
        assert parse_header("--- use: newsletter") == HeaderInfo("use", "newsletter")

    def test_close_tag_is_not_a_header(self):
        assert parse_header("--- /core/card") is None

    def test_content_is_not_a_header(self):
        assert parse_header("Hello") is None


class TestHelpers:
    def test_boundaries(self):
        assert is_block_boundary("--- core/text")
        assert is_block_boundary("--- /core/text")
        assert not is_block_boundary("---")
        assert not is_block_boundary("text --- core/text")

    def test_property_key(self):
        assert property_key("image: a.png") == "image"
        assert property_key("@class: wide") == "@class"
        assert property_key("no colon here") is None

    def test_content_lines(self):
        assert is_content_line("Hello")
        assert is_content_line("title: Hello")
        assert not is_content_line("")
        assert not is_content_line("--- core/text")
        assert not is_content_line("  // editor note")

    def test_single_line(self):
        assert is_single_line("color: red")
        assert not is_single_line("red\n--- core/evil")
        assert not is_single_line("red\r")

    def test_split_empty_document(self):
        assert split_lines("") == [""]

    def test_clamp_line(self):
        text = "a\nb\nc"
        assert clamp_line(0, text) == 1
        assert clamp_line(2, text) == 2
        assert clamp_line(10, text) == 3
