# Section registry for idea documents
# The order here decides where newly created sections are placed

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    placeholder: str


DOCUMENT_SECTIONS: Tuple[Section, ...] = (
    Section(
        id="problem",
        title="Problem",
        placeholder="What problem are you solving? Who experiences this problem and how painful is it?",
    ),
    Section(
        id="users",
        title="Target Users",
        placeholder="Who are your target users? What are their characteristics, needs, and behaviors?",
    ),
    Section(
        id="solution",
        title="Solution",
        placeholder="How does your solution address the problem? What makes it unique?",
    ),
    Section(
        id="features",
        title="Key Features",
        placeholder="What are the core features that deliver value to users?",
    ),
    Section(
        id="research",
        title="Research & Validation",
        placeholder="Market research, competitor analysis, and validation findings will appear here.",
    ),
    Section(
        id="mvp",
        title="MVP Plan",
        placeholder="Minimum viable product features and development roadmap will be generated here.",
    ),
    Section(
        id="tech",
        title="Tech Stack",
        placeholder="Technology recommendations and implementation details will be added here.",
    ),
    Section(
        id="spec",
        title="Specification",
        placeholder="Final specification and export-ready documentation will be compiled here.",
    ),
)

_BY_ID = {section.id: section for section in DOCUMENT_SECTIONS}


def list_sections() -> Tuple[Section, ...]:
    return DOCUMENT_SECTIONS


def find_section(section_id: str) -> Optional[Section]:
    return _BY_ID.get(section_id)


def sections_after(section_id: str) -> Tuple[Section, ...]:
    """Sections that follow ``section_id`` in registry order."""
    ids = [section.id for section in DOCUMENT_SECTIONS]
    if section_id not in ids:
        return ()
    return DOCUMENT_SECTIONS[ids.index(section_id) + 1:]


def section_marker(section_id: str) -> str:
    """Invisible marker emitted above a section heading so it can be found by id."""
    return f"<!-- section:{section_id} -->"


def initial_document(title: Optional[str] = None) -> str:
    """Starter markdown document: one heading plus placeholder per section."""
    parts = [f"# {title or 'Idea Documentation'}"]
    for section in DOCUMENT_SECTIONS:
        parts.append(f"{section_marker(section.id)}\n## {section.title}")
        parts.append(section.placeholder)
    return "\n\n".join(parts) + "\n"
