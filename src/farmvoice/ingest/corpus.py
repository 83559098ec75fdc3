"""Knowledge corpus loading and header-based partitioning."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from importlib import resources
from pathlib import Path
from types import MappingProxyType

logger = logging.getLogger(__name__)

_HEADER_PATTERN = re.compile(r"^===\s*(.+?)\s*===[ \t]*$", flags=re.MULTILINE)

NO_KNOWLEDGE_TITLE = "NO KNOWLEDGE"
NO_KNOWLEDGE_TEXT = "No knowledge base available."


def partition(corpus_text: str) -> dict[str, str]:
    """Split a corpus into sections keyed by uppercase header title.

    Each section body runs from its `=== TITLE ===` line up to, but not
    including, the next header line, trimmed of surrounding whitespace. The
    header line itself stays in the body so concatenated sections remain
    self-describing when handed to a model. Text before the first header is
    ignored; a repeated title keeps the last body.
    """

    sections: dict[str, str] = {}
    matches = list(_HEADER_PATTERN.finditer(corpus_text))
    for idx, match in enumerate(matches):
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(corpus_text)
        title = match.group(1).strip().upper()
        sections[title] = corpus_text[match.start() : end].strip()
    return sections


class KnowledgeIndex:
    """Read-only view over the partitioned corpus, shared by all requests."""

    def __init__(self, sections: Mapping[str, str], full_text: str) -> None:
        self._sections = MappingProxyType(dict(sections))
        self._full_text = full_text

    @classmethod
    def from_text(cls, corpus_text: str) -> "KnowledgeIndex":
        if not corpus_text.strip():
            return cls.unavailable()
        sections = partition(corpus_text)
        logger.info(
            "knowledge corpus loaded: %d chars, %d sections (%s)",
            len(corpus_text),
            len(sections),
            ", ".join(sections),
        )
        return cls(sections, corpus_text)

    @classmethod
    def from_path(cls, path: str | Path | None = None) -> "KnowledgeIndex":
        """Load from `path`, or the bundled corpus when no path is given.

        A missing or unreadable corpus yields the sentinel index instead of
        raising, so retrieval never has to handle an absent index.
        """
        try:
            if path is None:
                text = (
                    resources.files("farmvoice")
                    .joinpath("data/knowledge.txt")
                    .read_text(encoding="utf-8")
                )
            else:
                text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("could not load knowledge corpus from %s: %s", path or "package data", exc)
            return cls.unavailable()
        return cls.from_text(text)

    @classmethod
    def unavailable(cls) -> "KnowledgeIndex":
        return cls({NO_KNOWLEDGE_TITLE: NO_KNOWLEDGE_TEXT}, NO_KNOWLEDGE_TEXT)

    @property
    def sections(self) -> Mapping[str, str]:
        return self._sections

    @property
    def full_text(self) -> str:
        return self._full_text

    @property
    def is_available(self) -> bool:
        return NO_KNOWLEDGE_TITLE not in self._sections

    def get(self, title: str) -> str | None:
        return self._sections.get(title.upper())

    def titles(self) -> list[str]:
        return list(self._sections)

    def __contains__(self, title: object) -> bool:
        return isinstance(title, str) and title.upper() in self._sections

    def __iter__(self) -> Iterator[str]:
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)
