"""
Review session model: suggestions parsed from a bulk AI review, pending
user selection.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from product_house.core.exceptions import ValidationError
from product_house.domain.masterplan import MasterplanSection


class ReviewSuggestion(BaseModel):
    """A proposed rewrite of one section."""

    section_id: str
    section_title: str
    original_content: str
    suggested_content: str
    selected: bool = True


class ReviewSession(BaseModel):
    """
    Serializable state of one interactive review.

    The caller receives the session, toggles selections, and hands it back to
    be applied; nothing about the session lives server-side.
    """

    id: str = Field(..., description="Review session identifier")
    masterplan_id: str
    base_version: str = Field(..., description="Masterplan version the suggestions were made against")
    prompt: str = Field(default="", description="User request that produced the suggestions")
    suggestions: list[ReviewSuggestion] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not self.suggestions

    def toggle(self, index: int) -> ReviewSuggestion:
        """Flip the selection of the suggestion at ``index``."""
        if index < 0 or index >= len(self.suggestions):
            raise ValidationError(
                f"Suggestion index {index} out of range",
                field="index",
            )
        suggestion = self.suggestions[index]
        suggestion.selected = not suggestion.selected
        return suggestion

    def select_all(self) -> None:
        for suggestion in self.suggestions:
            suggestion.selected = True

    def select_none(self) -> None:
        for suggestion in self.suggestions:
            suggestion.selected = False

    def selected_suggestions(self) -> list[ReviewSuggestion]:
        return [s for s in self.suggestions if s.selected]

    def apply_to(self, sections: list[MasterplanSection]) -> list[MasterplanSection]:
        """
        Return a copy of ``sections`` with every selected suggestion applied.

        Suggestions whose section no longer exists are ignored.
        """
        replacements = {s.section_id: s.suggested_content for s in self.selected_suggestions()}
        return [
            section.model_copy(update={"content": replacements[section.id]})
            if section.id in replacements
            else section.model_copy()
            for section in sections
        ]
