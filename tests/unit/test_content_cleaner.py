"""
Unit Tests for Content Cleaner
=============================

Tests for HTML stripping, size and length limits, and speech normalization.
"""

import pytest

from feedtape.ingestion.content_cleaner import ContentCleaner


@pytest.fixture
def cleaner(test_settings):
    return ContentCleaner(settings=test_settings)


class TestContentLimits:
    """Size ceiling and minimum length rejection."""

    def test_oversized_body_rejected(self, cleaner):
        raw_html = "<p>" + "a" * 600_000 + "</p>"
        assert cleaner.clean_content(raw_html) is None

    def test_ceiling_counts_utf8_bytes(self, test_settings):
        cleaner = ContentCleaner(max_content_length=1000, settings=test_settings)
        # 600 characters but 1200 bytes
        assert cleaner.clean_content("é" * 600) is None

    def test_short_result_rejected(self, cleaner):
        assert cleaner.clean_content("<p>Short one</p>") is None

    def test_markup_only_body_rejected(self, cleaner):
        assert cleaner.clean_content("<div><img src='x.png'><script>var a = 1;</script></div>") is None

    def test_none_input(self, cleaner):
        assert cleaner.clean_content(None) is None

    def test_custom_minimum(self, test_settings):
        cleaner = ContentCleaner(min_content_length=5, settings=test_settings)
        assert cleaner.clean_content("<p>Hello there</p>") == "Hello there"


class TestHtmlToText:
    """Markup removal and structure preservation."""

    def test_script_and_style_dropped(self, cleaner):
        raw_html = (
            "<style>p { color: red; }</style>"
            "<script>alert('tracking');</script>"
            "<p>The library reopened this week after a long renovation project downtown.</p>"
        )
        result = cleaner.clean_content(raw_html)

        assert result == "The library reopened this week after a long renovation project downtown."

    def test_paragraphs_become_pause_breaks(self, cleaner):
        raw_html = (
            "<p>The first paragraph talks about the morning weather report.</p>"
            "<p>The second paragraph covers the evening traffic update.</p>"
        )
        result = cleaner.clean_content(raw_html)

        assert result == (
            "The first paragraph talks about the morning weather report.\n\n"
            "The second paragraph covers the evening traffic update."
        )

    def test_anchor_text_kept_href_dropped(self, cleaner):
        raw_html = (
            '<p>Read the <a href="https://example.com/report">full annual report</a> '
            "published by the museum board this spring.</p>"
        )
        result = cleaner.clean_content(raw_html)

        assert "full annual report" in result
        assert "example.com" not in result

    def test_double_encoded_entities_decoded(self, cleaner):
        raw_html = "<p>Tom &amp;amp; Jerry return for another season of cartoon chaos on Saturday.</p>"
        result = cleaner.clean_content(raw_html)

        assert result.startswith("Tom and Jerry return")

    def test_control_and_invisible_characters_removed(self, cleaner):
        raw_html = "<p>Zero\u200bwidth and control\x07 characters vanish from this sentence entirely.</p>"
        result = cleaner.clean_content(raw_html)

        assert "\u200b" not in result
        assert "\x07" not in result
        assert "Zerowidth" in result


class TestSpeechNormalization:
    """Rules that rewrite text for listening."""

    def test_mixed_rules(self, cleaner):
        raw_html = (
            "<p>Prices rose 20% to $1,500 for Dr. Smith &amp; friends, e.g. at 30°C. "
            "Read more at https://example.com/x [1]</p>"
        )
        result = cleaner.clean_content(raw_html)

        assert "20 percent" in result
        assert "1,500 dollars" in result
        assert "Doctor Smith and friends" in result
        assert "for example" in result
        assert "30 degrees Celsius" in result
        assert "https" not in result
        assert "[1]" not in result

    def test_symbols_and_magnitudes(self, cleaner):
        raw_html = "<p>Follow #python @ the meetup where 5k people and a 3m budget were announced.</p>"
        result = cleaner.clean_content(raw_html)

        assert "hashtag python" in result
        assert " at the meetup" in result
        assert "5 thousand people" in result
        assert "3 million budget" in result

    def test_ellipsis_and_citations(self, cleaner):
        raw_html = "<p>The story continues... as historians argue [citation needed] about the dates [source].</p>"
        result = cleaner.clean_content(raw_html)

        assert "..." not in result
        assert "[citation needed]" not in result
        assert "[source]" not in result
        assert "The story continues. as historians argue about the dates." == result


class TestCleanTitle:

    def test_entities_and_whitespace(self, cleaner):
        assert cleaner.clean_title("Tom &amp; Jerry\n   return") == "Tom & Jerry return"

    def test_empty_title(self, cleaner):
        assert cleaner.clean_title("") == ""
