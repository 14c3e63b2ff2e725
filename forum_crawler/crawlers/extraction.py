"""
CSS-selector extraction over fetched markup.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from forum_crawler.utils.errors import ExtractionError


Markup = Union[str, BeautifulSoup]


@dataclass(frozen=True)
class SelectedNode:
    """Text and attributes of one matched element."""
    text: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


class HtmlExtractor:
    """Evaluates CSS selectors against HTML with BeautifulSoup."""

    def __init__(self, parser: str = "lxml"):
        self.parser = parser

    def parse(self, markup: Markup) -> BeautifulSoup:
        if isinstance(markup, BeautifulSoup):
            return markup
        return BeautifulSoup(markup or "", self.parser)

    def _select(self, markup: Markup, selector: str) -> List[Tag]:
        soup = self.parse(markup)
        try:
            return soup.select(selector)
        except Exception as e:
            # soupsieve raises SelectorSyntaxError for malformed selectors
            raise ExtractionError(
                f"Invalid selector: {selector}",
                {"selector": selector, "error": str(e)}
            ) from e

    def select(self, markup: Markup, selector: str) -> List[SelectedNode]:
        """
        Return every element matching ``selector``, in document order.

        Raises:
            ExtractionError: If the selector is invalid
        """
        return [
            SelectedNode(text=tag.get_text(), attributes=self._attributes(tag))
            for tag in self._select(markup, selector)
        ]

    def first_text(self, markup: Markup, selector: str) -> str:
        """Untrimmed text of the first match, or an empty string."""
        matches = self._select(markup, selector)
        return matches[0].get_text() if matches else ""

    def first_attribute(self, markup: Markup, selector: str, attribute: str) -> Optional[str]:
        """Attribute value of the first match, or None."""
        matches = self._select(markup, selector)
        if not matches:
            return None
        return self._attributes(matches[0]).get(attribute)

    @staticmethod
    def _attributes(tag: Tag) -> Dict[str, str]:
        attributes = {}
        for name, value in tag.attrs.items():
            # Multi-valued attributes such as class come back as lists
            attributes[name] = " ".join(value) if isinstance(value, list) else value
        return attributes
