
from dataclasses import dataclass, field
from typing import List, Union

# Block variants of a Jira rich-text (Atlassian Document Format) document.
# Each inline run is already reduced to its text.


@dataclass(frozen=True)
class Paragraph:
    runs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Heading:
    runs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ListBlock:
    ordered: bool = False
    # one entry per rendered line, each a sequence of inline runs
    items: List[List[str]] = field(default_factory=list)


@dataclass(frozen=True)
class OtherBlock:
    type: str = ""


Block = Union[Paragraph, Heading, ListBlock, OtherBlock]
