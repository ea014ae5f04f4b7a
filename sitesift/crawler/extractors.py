"""Page content extraction for SiteSift."""
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from lxml import etree
from lxml import html as lxml_html

from ..config import (
    CrawlerConfig,
    DEFAULT_DESCRIPTION_SELECTORS,
    DEFAULT_TITLE_SELECTORS,
)
from ..models.site import (
    DEFAULT_CONTENT_XPATH,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    Page,
)
from .http import FETCH_ERRORS, HttpClient
from .text import normalize_whitespace, truncate

logger = logging.getLogger(__name__)

# Elements whose text never belongs to the readable body.
NON_CONTENT_TAGS = ("script", "style", "noscript", "template")

_XML_DECLARATION_RE = re.compile(r"^\ufeff?\s*<\?xml[^>]*\?>")


class PageFetchError(Exception):
    """Raised when a page cannot be downloaded."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Cannot download HTML from {url}: {message}")


@dataclass
class PageContent:
    """Normalized content extracted from a page."""

    title: str
    "Single-line title, at most 1000 characters"

    description: str
    "Single-line description, at most 1000 characters"

    text: str
    "Multi-line body text"


def _node_value(node) -> Optional[str]:
    """Read the value of an XPath result item.

    Elements yield their ``content`` attribute when present, their text
    otherwise. String results are returned as they are.
    """
    if isinstance(node, str):
        return str(node)
    if not isinstance(node, etree._Element):
        return None
    content = node.get("content")
    if content is not None:
        return content
    return _inner_text(node)


def _inner_text(element: etree._Element) -> str:
    """Text of ``element`` without script-like descendants."""
    element = copy.deepcopy(element)
    for child in list(element.iter(*NON_CONTENT_TAGS)):
        if child is element:
            continue
        parent = child.getparent()
        if parent is None:
            continue
        # Keep the text following the dropped element.
        if child.tail:
            previous = child.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or "") + child.tail
            else:
                parent.text = (parent.text or "") + child.tail
        parent.remove(child)
    return element.xpath("string()")


def _xpath_values(document: etree._Element, xpath: etree.XPath) -> List[str]:
    result = xpath(document)
    if not isinstance(result, list):
        result = [result]
    values = []
    for node in result:
        value = _node_value(node)
        if value is not None:
            values.append(value)
    return values


class PageContentExtractor:
    """Downloads pages and extracts their title, description and body text.

    Title and description are found by probing ordered lists of XPath
    expressions; the first non-empty value wins.
    """

    def __init__(
        self,
        http: HttpClient,
        title_selectors: Optional[Sequence[str]] = None,
        description_selectors: Optional[Sequence[str]] = None,
    ):
        """Initialize the extractor.

        Args:
            http: Shared pooled HTTP client.
            title_selectors: XPath expressions tried for the title.
            description_selectors: XPath expressions tried for the description.

        Raises:
            lxml.etree.XPathSyntaxError: If a selector is not a valid XPath expression.
        """
        self.http = http
        self.title_selectors = list(title_selectors or DEFAULT_TITLE_SELECTORS)
        self.description_selectors = list(description_selectors or DEFAULT_DESCRIPTION_SELECTORS)
        self._title_xpaths = [etree.XPath(s) for s in self.title_selectors]
        self._description_xpaths = [etree.XPath(s) for s in self.description_selectors]

    @classmethod
    def from_config(cls, http: HttpClient, config: CrawlerConfig) -> PageContentExtractor:
        """Create an extractor from crawler configuration."""
        return cls(
            http,
            title_selectors=config.title_selectors,
            description_selectors=config.description_selectors,
        )

    async def extract(self, page: Page, content_xpath: Optional[str] = None) -> PageContent:
        """Download a page and extract its content.

        Args:
            page: Page to download.
            content_xpath: XPath of the body node; defaults to ``//main``.

        Returns:
            Extracted content.

        Raises:
            PageFetchError: If the page cannot be downloaded.
            lxml.etree.XPathError: If ``content_xpath`` is not a valid XPath expression.
        """
        try:
            html = await self.http.get_text(page.url)
        except FETCH_ERRORS as e:
            raise PageFetchError(page.url, str(e) or type(e).__name__) from e

        content = self.extract_from_html(html, page.url, content_xpath)
        if not content.text:
            logger.warning(f"The page {page.id} ({page.url}) has null or empty content node")
        return content

    def extract_from_html(
        self,
        html: str,
        url: str,
        content_xpath: Optional[str] = None,
    ) -> PageContent:
        """Extract content from an HTML document.

        Args:
            html: HTML markup.
            url: URL of the page, used as the last-resort title.
            content_xpath: XPath of the body node; defaults to ``//main``.

        Returns:
            Extracted content.
        """
        document = self._parse(html, url)

        title = self._first_value(document, self._title_xpaths, MAX_TITLE_LENGTH)
        if title is None:
            title = truncate(normalize_whitespace(url, multi_line=False), MAX_TITLE_LENGTH)

        description = self._first_value(document, self._description_xpaths, MAX_DESCRIPTION_LENGTH)
        if description is None:
            description = truncate(title, MAX_DESCRIPTION_LENGTH)

        text = ""
        if document is not None:
            body_nodes = document.xpath(content_xpath or DEFAULT_CONTENT_XPATH)
            if not isinstance(body_nodes, list):
                body_nodes = [body_nodes]
            if body_nodes:
                node = body_nodes[0]
                if isinstance(node, etree._Element):
                    text = normalize_whitespace(_inner_text(node))
                elif isinstance(node, str):
                    text = normalize_whitespace(node)

        return PageContent(title=title, description=description, text=text)

    @staticmethod
    def _parse(html: str, url: str) -> Optional[etree._Element]:
        if not html or not html.strip():
            return None
        try:
            try:
                return lxml_html.document_fromstring(html)
            except ValueError:
                # The text is already decoded; its encoding declaration no longer applies.
                return lxml_html.document_fromstring(_XML_DECLARATION_RE.sub("", html, count=1))
        except (etree.ParserError, etree.XMLSyntaxError) as e:
            logger.warning(f"Cannot parse HTML of {url}: {e}")
            return None

    @staticmethod
    def _first_value(
        document: Optional[etree._Element],
        xpaths: Iterable[etree.XPath],
        max_length: int,
    ) -> Optional[str]:
        if document is None:
            return None
        for xpath in xpaths:
            for value in _xpath_values(document, xpath):
                value = normalize_whitespace(value, multi_line=False)
                if value:
                    return truncate(value, max_length)
        return None
