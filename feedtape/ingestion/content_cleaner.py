"""
Content Cleaner
===============

Turns an entry's raw HTML body into plain text tuned for speech synthesis.

This module provides:
- Size ceiling check before any parsing work
- HTML to text conversion that keeps paragraph breaks as pause hints
- Entity decoding and control character removal
- Speech normalization (abbreviations, currency, percentages, URLs, citations)
- Minimum-length rejection of degenerate results
"""

import re
import html
from typing import List, Optional, Pattern, Tuple

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, Declaration, Doctype, ProcessingInstruction

from ..config.settings import FeedTapeSettings, get_settings
from ..utils.logging import get_logger_for_component


class ContentCleaner:
    """
    HTML to speech-ready text converter.

    ``clean_content`` never raises for input under the size ceiling; any
    failure is logged and reported as ``None`` so one malformed entry cannot
    abort its caller.
    """

    # Elements removed together with their content
    SKIPPED_ELEMENTS = [
        "script",
        "style",
        "noscript",
        "template",
        "iframe",
        "embed",
        "object",
        "applet",
        "canvas",
        "svg",
        "img",
        "picture",
        "video",
        "audio",
        "form",
        "button",
        "select",
        "textarea",
        "head",
        "meta",
        "link",
    ]

    # Elements that start a new paragraph
    BLOCK_ELEMENTS = [
        "p",
        "div",
        "section",
        "article",
        "header",
        "footer",
        "aside",
        "blockquote",
        "pre",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "ul",
        "ol",
        "dl",
        "table",
        "figure",
        "hr",
    ]

    # Elements that start a new line inside a paragraph
    LINE_ELEMENTS = ["li", "dt", "dd", "tr", "figcaption"]

    CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    INVISIBLE_CHARS_PATTERN = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
    INLINE_WHITESPACE_PATTERN = re.compile(r"[^\S\n]+")
    MULTIPLE_NEWLINES_PATTERN = re.compile(r"\n{3,}")
    SPACE_BEFORE_PUNCTUATION_PATTERN = re.compile(r" +([,.;:!?])")

    _NUMBER = r"(\d+(?:[.,]\d+)*)"

    # Applied in order; URLs go first so their dots never look like abbreviations
    SPEECH_RULES: List[Tuple[Pattern, str]] = [
        # Raw URLs
        (re.compile(r"https?://\S+", re.IGNORECASE), ""),
        (re.compile(r"\bwww\.\S+", re.IGNORECASE), ""),
        # Common abbreviations
        (re.compile(r"\betc\.", re.IGNORECASE), "etcetera"),
        (re.compile(r"\be\.g\.", re.IGNORECASE), "for example"),
        (re.compile(r"\bi\.e\.", re.IGNORECASE), "that is"),
        (re.compile(r"\bvs\.", re.IGNORECASE), "versus"),
        (re.compile(r"\bMrs\.", re.IGNORECASE), "Missus"),
        (re.compile(r"\bMr\.", re.IGNORECASE), "Mister"),
        (re.compile(r"\bDr\.", re.IGNORECASE), "Doctor"),
        (re.compile(r"\bProf\.", re.IGNORECASE), "Professor"),
        (re.compile(r"\bSt\.", re.IGNORECASE), "Saint"),
        # Money
        (re.compile(r"\$\s?" + _NUMBER), r"\1 dollars"),
        (re.compile(r"€\s?" + _NUMBER), r"\1 euros"),
        (re.compile(r"£\s?" + _NUMBER), r"\1 pounds"),
        # Percentages
        (re.compile(_NUMBER + r"\s?%"), r"\1 percent"),
        # Temperatures and angles
        (re.compile(_NUMBER + r"\s?°\s?F\b"), r"\1 degrees Fahrenheit"),
        (re.compile(_NUMBER + r"\s?°\s?C\b"), r"\1 degrees Celsius"),
        (re.compile(_NUMBER + r"\s?°"), r"\1 degrees"),
        # Symbols
        (re.compile(r"&"), " and "),
        (re.compile(r"@"), " at "),
        (re.compile(r"#([A-Za-z]\w*)"), r"hashtag \1"),
        # Magnitudes
        (re.compile(r"\b(\d+(?:\.\d+)?)k\b", re.IGNORECASE), r"\1 thousand"),
        (re.compile(r"\b(\d+(?:\.\d+)?)m\b", re.IGNORECASE), r"\1 million"),
        (re.compile(r"\b(\d+(?:\.\d+)?)b\b", re.IGNORECASE), r"\1 billion"),
        # Citations and references
        (re.compile(r"\[\d+\]"), ""),
        (re.compile(r"\[source\]", re.IGNORECASE), ""),
        (re.compile(r"\[citation needed\]", re.IGNORECASE), ""),
        # Ellipses
        (re.compile(r"\.{3,}|…"), "."),
    ]

    def __init__(
        self,
        min_content_length: Optional[int] = None,
        max_content_length: Optional[int] = None,
        settings: Optional[FeedTapeSettings] = None,
    ):
        """Initialize content cleaner.

        Args:
            min_content_length: Shortest acceptable cleaned text (default from config)
            max_content_length: Raw body byte ceiling (default from config)
            settings: Settings override
        """
        settings = settings or get_settings()
        self.min_content_length = (
            min_content_length if min_content_length is not None
            else settings.limits.min_content_length
        )
        self.max_content_length = max_content_length or settings.limits.max_content_length
        self.logger = get_logger_for_component("content_cleaner")

        self.parser = "html.parser"  # Built-in parser, no external deps

    def clean_content(self, raw_html: Optional[str]) -> Optional[str]:
        """
        Convert raw HTML into speech-ready text.

        Args:
            raw_html: Entry body as found in the feed document

        Returns:
            Cleaned text, or None when the input is oversized or the result is
            too short to be worth speaking
        """
        if raw_html is None:
            return None

        size = len(raw_html.encode("utf-8", errors="replace"))
        if size > self.max_content_length:
            self.logger.warning(
                f"Content too large: {size} bytes (max: {self.max_content_length})"
            )
            return None

        try:
            text = self._html_to_text(raw_html)
            text = self._remove_junk(text)
            text = self._normalize_for_speech(text)
        except Exception as e:
            self.logger.error(f"Error during content cleaning: {e}", exc_info=True)
            return None

        if len(text) < self.min_content_length:
            self.logger.debug(f"Content too short after processing: {len(text)} chars")
            return None

        self.logger.debug(f"Cleaned content: {len(raw_html)} -> {len(text)} chars")
        return text

    def clean_title(self, raw_title: str) -> str:
        """Decode entities and collapse whitespace in an entry title."""
        try:
            title = html.unescape(raw_title or "")
            return self.INLINE_WHITESPACE_PATTERN.sub(" ", title.replace("\n", " ")).strip()
        except Exception as e:
            self.logger.error(f"Error cleaning title: {e}")
            return raw_title

    def _html_to_text(self, raw_html: str) -> str:
        soup = BeautifulSoup(raw_html, self.parser)

        for element in soup.find_all(self.SKIPPED_ELEMENTS):
            element.decompose()

        for node in soup.find_all(
            string=lambda text: isinstance(
                text, (Comment, CData, ProcessingInstruction, Declaration, Doctype)
            )
        ):
            node.extract()

        for br in soup.find_all("br"):
            br.replace_with("\n")

        for element in soup.find_all(self.LINE_ELEMENTS):
            element.insert_before("\n")
            element.insert_after("\n")

        for element in soup.find_all(self.BLOCK_ELEMENTS):
            element.insert_before("\n\n")
            element.insert_after("\n\n")

        # Anchor text stays, hrefs are attributes and never reach get_text
        return soup.get_text()

    def _remove_junk(self, text: str) -> str:
        # Feeds often double-encode entities (&amp;lt;), decode the second level
        text = html.unescape(text)
        text = text.replace("\xa0", " ")
        text = self.INVISIBLE_CHARS_PATTERN.sub("", text)
        return self.CONTROL_CHARS_PATTERN.sub("", text)

    def _normalize_for_speech(self, text: str) -> str:
        for pattern, replacement in self.SPEECH_RULES:
            text = pattern.sub(replacement, text)

        lines = [
            self.INLINE_WHITESPACE_PATTERN.sub(" ", line).strip()
            for line in text.split("\n")
        ]
        text = "\n".join(lines)
        text = self.MULTIPLE_NEWLINES_PATTERN.sub("\n\n", text)
        text = self.SPACE_BEFORE_PUNCTUATION_PATTERN.sub(r"\1", text)
        return text.strip()


def clean_html_text(raw_html: str) -> Optional[str]:
    """Quick function to clean one HTML body with default settings."""
    return ContentCleaner().clean_content(raw_html)
