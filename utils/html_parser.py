"""
HTML parsing utilities for turning search snippets into plain text.
"""
import re
from bs4 import BeautifulSoup


class HTMLParser:
    """Strips markup from short HTML fragments such as search result snippets."""

    _whitespace_pattern: re.Pattern = re.compile(r'\s+')

    @staticmethod
    def strip_tags(html: str | None) -> str:
        """
        Convert an HTML fragment to plain text.

        Args:
            html: Fragment that may contain tags (e.g. <strong>) and entities

        Returns:
            Plain text with whitespace collapsed
        """
        if not html:
            return ""
        if '<' not in html and '&' not in html:
            return HTMLParser._whitespace_pattern.sub(' ', html).strip()

        soup = BeautifulSoup(html, 'html.parser')
        text = soup.get_text(separator='')
        return HTMLParser._whitespace_pattern.sub(' ', text).strip()
