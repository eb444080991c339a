"""
Review-suggestion parsing for bulk AI review responses.

The model is asked to answer with zero or more blocks of the form::

    SECTION_ID: <id>
    SECTION_TITLE: <title>
    SUGGESTED_CONTENT:
    <multi-line content>
    END_SECTION
"""

from __future__ import annotations

import re
from typing import Sequence

from product_house.core.logging import get_logger
from product_house.domain.masterplan import Masterplan, MasterplanSection
from product_house.domain.review import ReviewSuggestion

logger = get_logger(__name__)

SUGGESTION_PATTERN = re.compile(
    r"^[ \t]*SECTION_ID:[ \t]*(?P<id>[^\n]*?)[ \t]*\n\s*"
    r"SECTION_TITLE:[ \t]*(?P<title>[^\n]*?)[ \t]*\n\s*"
    r"SUGGESTED_CONTENT:[ \t]*\n"
    r"(?P<content>.*?)"
    r"^[ \t]*END_SECTION[ \t]*$",
    re.MULTILINE | re.DOTALL,
)


def parse_review_suggestions(
    response_text: str,
    sections: Sequence[MasterplanSection],
) -> list[ReviewSuggestion]:
    """
    Extract one suggestion per block in ``response_text``.

    Blocks may come in any order. Suggestions for ids that match no current
    section are dropped; the model sometimes invents ids. An empty list is a
    valid result, not an error.

    Args:
        response_text: Raw completion text
        sections: Current masterplan sections, for original content lookup

    Returns:
        Suggestions in response order, all selected
    """
    by_id = {s.id: s for s in sections}
    text = response_text.replace("\r\n", "\n")
    suggestions: list[ReviewSuggestion] = []

    for match in SUGGESTION_PATTERN.finditer(text):
        section_id = match.group("id").strip()
        original = by_id.get(section_id)
        if original is None:
            logger.debug("Dropping suggestion for unknown section", section_id=section_id)
            continue

        suggestions.append(
            ReviewSuggestion(
                section_id=section_id,
                section_title=match.group("title").strip() or original.title,
                original_content=original.content,
                suggested_content=match.group("content").strip(),
                selected=True,
            )
        )

    return suggestions


def render_for_review(masterplan: Masterplan) -> str:
    """Masterplan text handed to the model, each section tagged with its id."""
    return "\n\n".join(
        f"[{s.id}]\n{'#' * max(s.level, 2)} {s.title}\n\n{s.content}"
        for s in masterplan.sections
    )


def build_review_request(masterplan: Masterplan, prompt: str) -> str:
    """User message for a bulk review."""
    return (
        f"Here is the current masterplan:\n\n{render_for_review(masterplan)}\n\n"
        f"Request for modifications: {prompt}"
    )
