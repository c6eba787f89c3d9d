"""Markdown-to-HTML rendering for AI budget recommendations.

Supports the small markdown subset the recommendation prompt asks for:
headings (``#`` to ``####``), paragraphs, bullet lists (``-`` or ``*``) and
inline bold, italic, code and links. Text is HTML-escaped before any inline
substitution so the input can never inject markup of its own.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

_LINE_SPLIT = re.compile(r"\r?\n")
# Edge whitespace, including a byte-order mark.
_EDGE_SPACE = re.compile(r"^[\s\ufeff]+|[\s\ufeff]+$")

# Most specific heading first.
_HEADINGS = (
    (4, re.compile(r"^####\s+(.+)$")),
    (3, re.compile(r"^###\s+(.+)$")),
    (2, re.compile(r"^##\s+(.+)$")),
    (1, re.compile(r"^#\s+(.+)$")),
)
_BULLET = re.compile(r"^[-*]\s+(.+)$")

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(.+?)\*")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_CODE = re.compile(r"`([^`]+)`")


@dataclass
class Heading:
    level: int
    text: str


@dataclass
class Paragraph:
    text: str


@dataclass
class BulletList:
    items: List[str] = field(default_factory=list)


Block = Union[Heading, Paragraph, BulletList]


class _State(enum.Enum):
    NONE = "none"
    PARAGRAPH = "in-paragraph"
    LIST = "in-list"


class _BlockParser:
    """Line classifier. Each line lands in exactly one block."""

    def __init__(self) -> None:
        self.blocks: List[Block] = []
        self.state = _State.NONE
        self._lines: List[str] = []

    def _close(self) -> None:
        if self.state is _State.PARAGRAPH:
            self.blocks.append(Paragraph(" ".join(self._lines)))
            self._lines = []
        self.state = _State.NONE

    def feed(self, raw: str) -> None:
        line = _EDGE_SPACE.sub("", raw)
        if not line:
            self._close()
            return
        for level, pattern in _HEADINGS:
            m = pattern.match(line)
            if m:
                self._close()
                self.blocks.append(Heading(level, m.group(1)))
                return
        m = _BULLET.match(line)
        if m:
            if self.state is not _State.LIST:
                self._close()
                self.blocks.append(BulletList())
                self.state = _State.LIST
            self.blocks[-1].items.append(m.group(1))
            return
        if self.state is not _State.PARAGRAPH:
            self._close()
            self.state = _State.PARAGRAPH
        self._lines.append(line)

    def finish(self) -> List[Block]:
        self._close()
        return self.blocks


def parse_blocks(markdown: str) -> List[Block]:
    parser = _BlockParser()
    if markdown:
        for raw in _LINE_SPLIT.split(markdown):
            parser.feed(raw)
    return parser.finish()


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _link(match: re.Match) -> str:
    text, url = match.group(1), match.group(2)
    # Both groups were escaped with the rest of the block. The URL also sits
    # inside a quoted attribute, so quotes must not survive.
    href = url.replace('"', "&quot;")
    return f'<a href="{href}" target="_blank" rel="noopener noreferrer">{text}</a>'


def render_inline(escaped: str) -> str:
    """Apply inline spans to already-escaped text.

    Order matters: bold runs before italic so ``**x**`` is not read as two
    italic markers.
    """
    s = _BOLD.sub(r"<strong>\1</strong>", escaped)
    s = _ITALIC.sub(r"<em>\1</em>", s)
    s = _LINK.sub(_link, s)
    s = _CODE.sub(r"<code>\1</code>", s)
    return s


def _span(text: str) -> str:
    return render_inline(escape_html(text))


def render_block(block: Block) -> str:
    if isinstance(block, Heading):
        return f"<h{block.level}>{_span(block.text)}</h{block.level}>"
    if isinstance(block, BulletList):
        return "<ul>" + "".join(f"<li>{_span(item)}</li>" for item in block.items) + "</ul>"
    return f"<p>{_span(block.text)}</p>"


def render_markdown(markdown: str) -> str:
    """Convert a markdown-subset string to HTML. Never raises."""
    return "".join(render_block(b) for b in parse_blocks(markdown))


def looks_like_html(text: str) -> bool:
    return text.lstrip().startswith("<")


def render_recommendation(text: Optional[str]) -> str:
    """Render a recommendation for display.

    Text starting with ``<`` is assumed to be pre-rendered HTML from the
    server side and is returned untouched. That content is trusted as-is.
    """
    if not text:
        return ""
    if looks_like_html(text):
        return text
    return render_markdown(text)
