# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Page content extraction for GhostChat context.

Two pure, total functions turn raw HTML into context text:
- extract_content(): headings (h1-h3) and paragraphs in document order
- extract_faq(): "Q: / A:" pairs from headings followed by an answer,
  falling back to extract_content() when the page has no FAQ structure

Neither function raises; unusable input yields an empty string.

Markup is parsed with html5lib so unclosed ``p``, ``dt`` and ``dd``
elements end where a browser would end them.
"""

from typing import List, Optional, Union
import logging

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

CONTENT_TAGS = ["h1", "h2", "h3", "p"]
QUESTION_TAGS = ["h2", "h3", "h4", "dt"]
ANSWER_TAGS = ("p", "dd")

Markup = Union[str, bytes, None]


def parse_markup(markup: Markup) -> Optional[BeautifulSoup]:
    """Parse markup into a document tree, or None if it cannot be parsed."""
    if not markup:
        return None
    try:
        return BeautifulSoup(markup, "html5lib")
    except Exception as e:
        logger.warning(f"Could not parse markup: {e}")
        return None


def _text(element: Tag) -> str:
    return element.get_text().strip()


def content_from_tree(soup: Optional[BeautifulSoup]) -> str:
    """Extract headings and paragraphs from an already parsed document."""
    if soup is None:
        return ""

    parts: List[str] = []
    for element in soup.find_all(CONTENT_TAGS):
        text = _text(element)
        if text:
            parts.append(text + "\n\n")
    return "".join(parts)


def extract_content(markup: Markup) -> str:
    """
    Extract the main readable content of a page.

    Every h1, h2, h3 and p element contributes its trimmed text followed
    by a blank line, in document order. Empty elements contribute nothing.

    Args:
        markup: Raw HTML

    Returns:
        Extracted text, or "" when nothing matches
    """
    return content_from_tree(parse_markup(markup))


def extract_faq(markup: Markup) -> str:
    """
    Extract question/answer pairs from a page.

    A heading (h2-h4) or definition term whose next sibling element is a
    paragraph or definition description becomes one pair:

        Q: <heading text>
        A: <sibling text>

    Pages without any such pair fall back to extract_content().

    Args:
        markup: Raw HTML

    Returns:
        Q/A text, the page's plain content, or ""
    """
    soup = parse_markup(markup)
    if soup is None:
        return ""

    pairs: List[str] = []
    for heading in soup.find_all(QUESTION_TAGS):
        answer = heading.find_next_sibling()
        if answer is None or answer.name not in ANSWER_TAGS:
            continue
        pairs.append(f"Q: {_text(heading)}\nA: {_text(answer)}\n\n")

    if pairs:
        return "".join(pairs)
    return content_from_tree(soup)
