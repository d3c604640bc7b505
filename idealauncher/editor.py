# Document editor sessions, section-aware insertion and version snapshots
# Editors register per idea while open; other components resolve them from the
# registry instead of assuming one is available.

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from idealauncher.config import OUTBOX_BACKOFF_SECONDS, OUTBOX_MAX_ATTEMPTS
from idealauncher.document import (
    MarkdownDocument,
    locate,
    section_end,
    to_native,
    wrap_insertion,
)
from idealauncher.sections import Section, find_section, section_marker, sections_after

logger = logging.getLogger(__name__)

CHANGE_MANUAL = "manual"
CHANGE_AI_INSERT = "ai_insert"


class UnknownSectionError(ValueError):
    def __init__(self, section_id: str):
        super().__init__(f"Unknown section: {section_id}")
        self.section_id = section_id


@dataclass
class VersionSnapshot:
    user_id: str
    idea_id: str
    content: str
    change_type: str = CHANGE_MANUAL
    summary: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "change_type": self.change_type,
            "summary": self.summary,
        }


@dataclass
class InsertionResult:
    section_id: str
    section_title: str
    created_section: bool
    # Line range of the inserted block, end exclusive
    cursor: Tuple[int, int]
    content: str


@dataclass
class InsertOutcome:
    available: bool
    result: Optional[InsertionResult] = None


class DocumentEditor:
    """Owns the live markdown document for one idea."""

    def __init__(self, user_id: str, idea_id: str, content: str = "",
                 version_sink: Optional[Callable[[VersionSnapshot], None]] = None):
        self.user_id = user_id
        self.idea_id = idea_id
        self.document = MarkdownDocument(content)
        self.version_sink = version_sink
        self.cursor: Optional[Tuple[int, int]] = None

    @property
    def content(self) -> str:
        return self.document.serialize()

    def _creation_point(self, section: Section) -> int:
        # Before the first later section that already exists, else at the end
        for later in sections_after(section.id):
            location = locate(self.document, later.title, later.id)
            if location.found:
                return location.heading.anchor
        return self.document.end

    def _append_point(self, start: int, end: int) -> int:
        # Right after the last non-blank line of the section body
        position = end
        while position - 1 > start and not self.document.lines[position - 1].strip():
            position -= 1
        return position

    def insert(self, section_id: str, content: str, source_label: Optional[str] = None) -> InsertionResult:
        section = find_section(section_id)
        if section is None:
            raise UnknownSectionError(section_id)

        block = wrap_insertion(to_native(content), source_label)
        location = locate(self.document, section.title, section.id)

        if location.found:
            end = section_end(location, self.document.end)
            position = self._append_point(location.start, end)
            start = self.document.insert_block(position, block)
            created = False
        else:
            position = self._creation_point(section)
            heading = [section_marker(section.id), f"## {section.title}", ""]
            start = self.document.insert_block(position, heading + block) + len(heading)
            created = True

        self.cursor = (start, start + len(block))
        logger.info(f"Inserted {len(content)} chars into '{section.title}' of idea {self.idea_id}"
                    f"{' (new section)' if created else ''}")

        self._record_version(section)
        return InsertionResult(
            section_id=section.id,
            section_title=section.title,
            created_section=created,
            cursor=self.cursor,
            content=self.content,
        )

    def _record_version(self, section: Section) -> None:
        if self.version_sink is None:
            return
        snapshot = VersionSnapshot(
            user_id=self.user_id,
            idea_id=self.idea_id,
            content=self.content,
            change_type=CHANGE_AI_INSERT,
            summary=f"Inserted AI content into {section.title} section",
        )
        try:
            self.version_sink(snapshot)
        except Exception as e:
            # The edit stays; it will be versioned by the next successful save
            logger.warning(f"Failed to queue version for idea {self.idea_id}: {e}")


class EditorRegistry:
    """Open editors keyed by idea id."""

    def __init__(self):
        self._editors: Dict[str, DocumentEditor] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, idea_id: str) -> asyncio.Lock:
        """Lock serializing document read-modify-write for one idea in this process."""
        if idea_id not in self._locks:
            self._locks[idea_id] = asyncio.Lock()
        return self._locks[idea_id]

    def register(self, editor: DocumentEditor) -> None:
        self._editors[editor.idea_id] = editor

    def unregister(self, idea_id: str, editor: Optional[DocumentEditor] = None) -> None:
        current = self._editors.get(idea_id)
        if current is not None and (editor is None or current is editor):
            del self._editors[idea_id]

    def resolve(self, idea_id: str) -> Optional[DocumentEditor]:
        return self._editors.get(idea_id)

    @contextmanager
    def mount(self, editor: DocumentEditor):
        self.register(editor)
        try:
            yield editor
        finally:
            self.unregister(editor.idea_id, editor)

    def insert_into_section(self, idea_id: str, section_id: str, content: str,
                            source_label: Optional[str] = None) -> InsertOutcome:
        editor = self.resolve(idea_id)
        if editor is None:
            logger.warning(f"No open editor for idea {idea_id}; insertion skipped")
            return InsertOutcome(available=False)
        return InsertOutcome(available=True, result=editor.insert(section_id, content, source_label))


class VersionOutbox:
    """
    Best-effort delivery of version snapshots.

    Each snapshot is saved in its own task with exponential backoff. Snapshots
    that exhaust their attempts are kept as failed and can be retried.
    """

    def __init__(self, save: Callable[[VersionSnapshot], Awaitable[object]],
                 max_attempts: int = OUTBOX_MAX_ATTEMPTS,
                 backoff: float = OUTBOX_BACKOFF_SECONDS):
        self._save = save
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._tasks: Set[asyncio.Task] = set()
        self._pending: Dict[str, int] = {}
        self._failed: Dict[str, List[VersionSnapshot]] = {}

    def enqueue(self, snapshot: VersionSnapshot) -> asyncio.Task:
        # Needs a running loop; callers treat a RuntimeError as a failed enqueue
        loop = asyncio.get_running_loop()
        self._pending[snapshot.idea_id] = self._pending.get(snapshot.idea_id, 0) + 1
        task = loop.create_task(self._deliver(snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, snapshot: VersionSnapshot) -> bool:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff, max=60),
                reraise=True,
            ):
                with attempt:
                    await self._save(snapshot)
            return True
        except Exception as e:
            logger.error(f"Version save for idea {snapshot.idea_id} failed after "
                         f"{self.max_attempts} attempts: {e}")
            self._failed.setdefault(snapshot.idea_id, []).append(snapshot)
            return False
        finally:
            remaining = self._pending.get(snapshot.idea_id, 1) - 1
            if remaining > 0:
                self._pending[snapshot.idea_id] = remaining
            else:
                self._pending.pop(snapshot.idea_id, None)

    def retry_failed(self, idea_id: str) -> int:
        failed = self._failed.pop(idea_id, [])
        for snapshot in failed:
            self.enqueue(snapshot)
        return len(failed)

    def status(self, idea_id: str) -> dict:
        return {
            "pending": self._pending.get(idea_id, 0),
            "failed": len(self._failed.get(idea_id, [])),
        }

    async def flush(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
