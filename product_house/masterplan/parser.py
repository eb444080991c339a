"""
Section parser: Markdown-style headed text -> ordered MasterplanSection list.
"""

from __future__ import annotations

import re

from product_house.core.constants import SECTION_ID_PREFIX
from product_house.domain.masterplan import MasterplanSection

HEADING_PATTERN = re.compile(r"^(#+) (.*)$")


def _lines(raw_content: str) -> list[str]:
    # Only "\n" (and "\r\n") end a line; other Unicode separators stay in the body
    text = raw_content.replace("\r\n", "\n")
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def parse_sections(raw_content: str) -> list[MasterplanSection]:
    """
    Split raw text into sections at ``#``-style headings.

    A heading line closes the open section and opens a new one whose level is
    the number of leading ``#`` characters. Body lines accumulate into the
    open section; lines before the first heading have no section to go to and
    are dropped.

    Ids are assigned sequentially (``section-1``, ``section-2``, ...). Callers
    that need ids preserved across a re-parse correlate by position or title
    themselves.

    Args:
        raw_content: Text produced by the completion service or an editor

    Returns:
        Sections in source order; empty when the text has no headings
    """
    sections: list[MasterplanSection] = []
    current: tuple[str, int] | None = None
    buffer: list[str] = []

    def flush() -> None:
        if current is None:
            return
        title, level = current
        sections.append(
            MasterplanSection(
                id=f"{SECTION_ID_PREFIX}{len(sections) + 1}",
                title=title,
                level=level,
                content="\n".join(buffer),
            )
        )

    for line in _lines(raw_content):
        match = HEADING_PATTERN.match(line)
        if match:
            flush()
            buffer = []
            current = (match.group(2).rstrip(), len(match.group(1)))
        elif current is not None:
            buffer.append(line)

    flush()
    return sections


def heading_outline(raw_content: str) -> list[tuple[str, int]]:
    """Return the ``(title, level)`` pairs of every heading, in order."""
    return [(s.title, s.level) for s in parse_sections(raw_content)]

