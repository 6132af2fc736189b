"""CSS selector and XPath text selection over HTML."""

from __future__ import annotations

import re
from itertools import islice
from typing import TYPE_CHECKING, Any

from cssselect import SelectorError
from lxml import etree, html

if TYPE_CHECKING:
    from collections.abc import Iterator

MARKUP_ERRORS = (etree.ParserError, etree.XPathError, SelectorError, re.error, ValueError)


def parse_document(content: str | bytes) -> html.HtmlElement:
    """Parse HTML, raising ``lxml.etree.ParserError`` for empty documents."""

    return html.fromstring(content)


def _node_text(node: Any) -> str | None:
    if isinstance(node, etree._Element):
        return node.text_content() if isinstance(node, html.HtmlElement) else "".join(node.itertext())
    if isinstance(node, str):
        return str(node)
    return None


def _select(document: html.HtmlElement, selector: str | None, xpath: str | None) -> list[Any]:
    if selector:
        return document.cssselect(selector)
    if xpath:
        result = document.xpath(xpath)
        return result if isinstance(result, list) else [result]
    raise ValueError("a CSS selector or an XPath expression is required")


def refine(text: str, pattern: re.Pattern[str] | None) -> str:
    """Apply an optional refining pattern; unmatched text is kept unchanged."""

    if pattern is None:
        return text
    match = pattern.search(text)
    if match is None:
        return text
    value = match.group(1) if pattern.groups else match.group(0)
    return value.strip() or text


def iter_texts(
    content: str | bytes,
    *,
    selector: str | None = None,
    xpath: str | None = None,
    pattern: str | None = None,
) -> Iterator[str]:
    """Trimmed, non-empty texts of the selected nodes in document order."""

    document = parse_document(content)
    compiled = re.compile(pattern) if pattern else None
    for node in _select(document, selector, xpath):
        text = _node_text(node)
        if text is None:
            continue
        text = text.strip()
        if text:
            yield refine(text, compiled)


def select_texts(
    content: str | bytes,
    *,
    selector: str | None = None,
    xpath: str | None = None,
    pattern: str | None = None,
    limit: int | None = None,
) -> list[str]:
    return list(islice(iter_texts(content, selector=selector, xpath=xpath, pattern=pattern), limit))
