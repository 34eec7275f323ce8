"""Tests for vicoa_bridge.shared.text."""

from vicoa_bridge.shared.text import (
    normalize_message,
    preview,
    strip_tool_results,
    truncate_text,
)


class TestNormalizeMessage:
    def test_crlf_and_surrounding_whitespace(self):
        assert normalize_message("  hello\r\nworld \n") == "hello\nworld"

    def test_inner_whitespace_is_kept(self):
        assert normalize_message("a  b\n\nc") == "a  b\n\nc"

    def test_none_becomes_empty(self):
        assert normalize_message(None) == ""


class TestStripToolResults:
    def test_plain_prompt_untouched(self):
        assert strip_tool_results("fix the bug in @app.py") == "fix the bug in @app.py"

    def test_tool_header_and_everything_after(self):
        text = (
            "explain this\n"
            'Called the Read tool with the following input: {"filePath": "a.py"}\n'
            "<file>\n00001| print('hi')\n</file>"
        )
        assert strip_tool_results(text).strip() == "explain this"

    def test_closed_file_block(self):
        text = "before <file>content</file> after"
        assert strip_tool_results(text) == "before  after"

    def test_unclosed_file_tag(self):
        assert strip_tool_results("look <file>\nstuff without end") == "look "

    def test_directory_listing(self):
        text = "summarize\n/home/ada/project/\n  a.py\n  b.py\n"
        assert strip_tool_results(text).strip() == "summarize"


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate_text("abc", 5) == "abc"

    def test_exact_length_unchanged(self):
        assert truncate_text("abcde", 5) == "abcde"

    def test_long_text_marked(self):
        assert truncate_text("abcdef", 5) == "abcde..."

    def test_preview_default_limit(self):
        assert preview("x" * 100) == "x" * 80 + "..."
