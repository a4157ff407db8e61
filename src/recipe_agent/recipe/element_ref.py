"""
Element references handed from the interpreter to the page driver.

A reference is either a plain CSS selector or the n-th match of a selector
(a list item, for instance). Action handlers never inspect which one they
hold; the driver resolves both.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Selector:
    """The first element matching a CSS selector."""
    selector: str

    def describe(self) -> str:
        return self.selector


@dataclass(frozen=True)
class IndexedElement:
    """The index-th (0-based) element matching a CSS selector."""
    selector: str
    index: int

    def describe(self) -> str:
        return f"{self.selector}[{self.index}]"


ElementRef = Union[Selector, IndexedElement]
