"""
Markdown document model and section locator.

An idea document is markdown text. It is held as a list of lines; ATX headings
outside fenced code blocks are the heading nodes and a heading's position is
its line index. Sections synthesized by the editor carry an HTML comment
marker on the line above the heading so they can be located by id.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

logger = logging.getLogger(__name__)

HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
FENCE_RE = re.compile(r"^[ \t]{0,3}(```|~~~)")
MARKER_RE = re.compile(r"^<!--\s*section:([\w-]+)\s*-->$")
INLINE_MARKUP_RE = re.compile(r"[*_`]")

# Headings at or above this level delimit sections
SECTION_LEVEL = 2
# Lowest level a heading inside inserted content may have
INSERTED_HEADING_MIN_LEVEL = 3
SOURCE_LABEL_MAX_LENGTH = 80

MARKDOWN_HINTS = ("**", "*", "#", "```")

STRATEGY_MARKER = "marker"
STRATEGY_EXACT = "exact"
STRATEGY_PREFIX = "prefix"
STRATEGY_WORD = "word"


@dataclass
class Heading:
    position: int
    text: str
    level: int
    marker: Optional[str] = None
    # First line of the heading block (the marker line when there is one)
    anchor: int = -1

    def __post_init__(self):
        if self.anchor < 0:
            self.anchor = self.position


@dataclass
class Location:
    start: Optional[int]
    headings: List[Heading] = field(default_factory=list)
    heading: Optional[Heading] = None
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.start is not None


class MarkdownDocument:
    """Mutable line-based view of a markdown document."""

    def __init__(self, text: str = ""):
        self.lines: List[str] = text.split("\n") if text else []

    @property
    def end(self) -> int:
        return len(self.lines)

    def serialize(self) -> str:
        return "\n".join(self.lines)

    def headings(self) -> List[Heading]:
        return collect_headings(self)

    def insert_block(self, position: int, block: List[str]) -> int:
        """
        Insert ``block`` at ``position`` keeping one blank line on either side.
        Returns the line index where the block itself starts.
        """
        position = max(0, min(position, self.end))
        before = self.lines[:position]
        after = self.lines[position:]

        lead = [""] if before and before[-1].strip() else []
        trail = [""] if after and after[0].strip() else []

        self.lines = before + lead + list(block) + trail + after
        return position + len(lead)

    def __str__(self):
        return self.serialize()


def clean_heading_text(raw: str) -> str:
    return INLINE_MARKUP_RE.sub("", raw).strip()


def collect_headings(document: MarkdownDocument) -> List[Heading]:
    """Every heading in document order, skipping fenced code blocks."""
    headings = []
    in_fence = False
    fence_token = None

    for index, line in enumerate(document.lines):
        fence = FENCE_RE.match(line)
        if fence:
            token = fence.group(1)
            if not in_fence:
                in_fence, fence_token = True, token
            elif token == fence_token:
                in_fence, fence_token = False, None
            continue
        if in_fence:
            continue

        match = HEADING_RE.match(line)
        if not match:
            continue

        marker = None
        anchor = index
        if index > 0:
            marker_match = MARKER_RE.match(document.lines[index - 1].strip())
            if marker_match:
                marker = marker_match.group(1)
                anchor = index - 1

        headings.append(Heading(
            position=index,
            text=clean_heading_text(match.group(2)),
            level=len(match.group(1)),
            marker=marker,
            anchor=anchor,
        ))
    return headings


def match_strategy(heading: Heading, title: str) -> Optional[str]:
    """Which title strategy, if any, this heading satisfies."""
    text = heading.text.lower()
    wanted = title.strip().lower()
    if not wanted:
        return None
    if text == wanted:
        return STRATEGY_EXACT
    if heading.level > SECTION_LEVEL:
        return None
    if text.startswith(wanted):
        return STRATEGY_PREFIX
    if re.search(r"(?<!\w)" + re.escape(wanted) + r"(?!\w)", text):
        return STRATEGY_WORD
    return None


def locate(document: MarkdownDocument, title: str, section_id: Optional[str] = None) -> Location:
    """
    Find where a section begins.

    A heading carrying ``section_id``'s marker wins outright. Otherwise the
    first heading in document order that matches the title by any strategy
    (exact, prefix at level <= 2, whole word at level <= 2) is the start.
    """
    headings = collect_headings(document)

    if section_id:
        for heading in headings:
            if heading.marker == section_id:
                return Location(start=heading.position, headings=headings,
                                heading=heading, strategy=STRATEGY_MARKER)

    for heading in headings:
        strategy = match_strategy(heading, title)
        if strategy:
            return Location(start=heading.position, headings=headings,
                            heading=heading, strategy=strategy)

    return Location(start=None, headings=headings)


def section_end(location: Location, document_end: int) -> int:
    """Anchor of the next heading at level <= 2 after the start, else end of document."""
    if location.start is None:
        return document_end
    for heading in location.headings:
        if heading.position > location.start and heading.level <= SECTION_LEVEL:
            return heading.anchor
    return document_end


def looks_like_markdown(content: str) -> bool:
    return any(hint in content for hint in MARKDOWN_HINTS)


def _demote_headings(content: str) -> str:
    lines = content.split("\n")
    in_fence = False
    levels = []
    for line in lines:
        if FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if not in_fence:
            match = HEADING_RE.match(line)
            if match:
                levels.append(len(match.group(1)))

    if not levels or min(levels) >= INSERTED_HEADING_MIN_LEVEL:
        return content

    shift = INSERTED_HEADING_MIN_LEVEL - min(levels)
    result = []
    in_fence = False
    for line in lines:
        if FENCE_RE.match(line):
            in_fence = not in_fence
            result.append(line)
            continue
        match = None if in_fence else HEADING_RE.match(line)
        if match:
            level = min(len(match.group(1)) + shift, 6)
            result.append(f"{'#' * level} {match.group(2)}")
        else:
            result.append(line)
    return "\n".join(result)


def to_native(content: str) -> str:
    """
    Normalize incoming content so it can live inside a section.

    Only content that looks like markdown is touched: its headings are demoted
    below section level and stray section markers are dropped. Anything else
    is returned unchanged.
    """
    if not looks_like_markdown(content):
        return content
    try:
        converted = _demote_headings(content)
        return "\n".join(
            line for line in converted.split("\n") if not MARKER_RE.match(line.strip())
        )
    except Exception as e:
        logger.warning(f"Markdown conversion failed, inserting raw content: {e}")
        return content


def clean_source_label(label: Optional[str]) -> str:
    """Single-line label, safe inside an HTML comment attribute."""
    if not label:
        return ""
    label = re.sub(r"[<>#]", "", label.replace("\"", "'"))
    label = re.sub(r"-{2,}", "-", label)
    return " ".join(label.split())[:SOURCE_LABEL_MAX_LENGTH].strip()


def wrap_insertion(content: str, source_label: Optional[str] = None,
                   timestamp: Optional[datetime] = None) -> List[str]:
    """Lines of an insertion container around ``content``."""
    moment = timestamp or datetime.now()
    when = moment.strftime("%Y-%m-%d %H:%M")
    source_label = clean_source_label(source_label)
    source = f" ({source_label})" if source_label else ""
    attrs = f' source="{source_label}"' if source_label else ""
    attrs += f' at="{moment.isoformat(timespec="seconds")}"'
    return [
        f"<!-- ai-insert:start{attrs} -->",
        f"**AI Generated Content{source}** *({when})*",
        "",
        *content.strip("\n").split("\n"),
        "",
        "---",
        "<!-- ai-insert:end -->",
    ]


def extract_section(document: MarkdownDocument, title: str, section_id: Optional[str] = None) -> str:
    """Text between a section's heading and the next section, or '' when absent."""
    location = locate(document, title, section_id)
    if not location.found:
        return ""
    end = section_end(location, document.end)
    return "\n".join(document.lines[location.start + 1:end]).strip()
