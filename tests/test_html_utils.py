"""Tests for the rich-text helpers."""

import pytest

from docgen_skins.exceptions import DegradedDataWarning
from docgen_skins.html_utils import clean_html, html_to_plain_text


class TestCleanHtml:
    def test_empty_wrappers_become_breaks(self):
        assert clean_html("<div><br></div>text<BR>") == "<br/>text<br/>"

    def test_trim_additional_spacing(self):
        assert clean_html("a&nbsp;&nbsp; b<br><br/>c", trim_additional_spacing=True) == "a b<br/>c"

    def test_empty(self):
        assert clean_html(None) == ""


class TestHtmlToPlainText:
    def test_blocks_become_lines(self):
        assert html_to_plain_text("<p>one</p><p>two &amp; three</p>") == "one\ntwo & three"

    def test_single_line(self):
        assert html_to_plain_text("<div>a</div><div>b</div>", preserve_line_breaks=False) == "a b"

    def test_whitespace_only(self):
        assert html_to_plain_text("<div>&nbsp;</div>") == ""

    def test_unterminated_tag(self):
        with pytest.raises(DegradedDataWarning):
            html_to_plain_text("text <span")
