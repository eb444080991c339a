"""
Masterplan domain model: sections, rendered formats and the version ledger.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from product_house.core.constants import INITIAL_VERSION, ChangeKind, MasterplanFormat
from product_house.domain.comment import MasterplanComment

VERSION_PATTERN = r"^\d+\.\d+$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MasterplanSection(BaseModel):
    """A titled, leveled block of masterplan content.

    Order is the position in the owning list; parent/child relations are
    implied by level deltas.
    """

    id: str = Field(..., min_length=1, description="Section identifier, unique per masterplan")
    title: str = Field(..., description="Heading text")
    level: int = Field(..., ge=1, description="Heading depth, 1-based")
    content: str = Field(default="", description="Raw body text")


class Masterplan(BaseModel):
    """Structured, versioned product planning document."""

    id: str = Field(..., description="Unique masterplan identifier")
    conversation_id: str = Field(..., description="Conversation the masterplan came from")
    title: str = Field(..., description="Document title")
    version: str = Field(default=INITIAL_VERSION, pattern=VERSION_PATTERN)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    sections: list[MasterplanSection] = Field(default_factory=list)
    formats: dict[MasterplanFormat, str] = Field(default_factory=dict)
    comments: Optional[list[MasterplanComment]] = Field(default=None)

    owner_id: Optional[str] = Field(default=None, description="User who created the masterplan")

    @model_validator(mode="after")
    def _check_unique_section_ids(self) -> "Masterplan":
        seen: set[str] = set()
        for section in self.sections:
            if section.id in seen:
                raise ValueError(f"duplicate section id: {section.id}")
            seen.add(section.id)
        return self

    def get_section(self, section_id: str) -> Optional[MasterplanSection]:
        """Return the section with the given id, if any."""
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    @property
    def section_ids(self) -> list[str]:
        return [s.id for s in self.sections]


class SectionChange(BaseModel):
    """One section-level change recorded in a version."""

    model_config = ConfigDict(frozen=True)

    section_id: str
    old_content: Optional[str] = Field(default=None, description="Absent for added sections")
    new_content: str
    kind: ChangeKind = Field(default=ChangeKind.MODIFIED)

    # Only recorded for added sections so history replay can rebuild them
    title: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=1)


class MasterplanVersion(BaseModel):
    """Immutable record of one "save as new version" operation."""

    model_config = ConfigDict(frozen=True)

    id: str
    masterplan_id: str
    version: str = Field(..., pattern=VERSION_PATTERN)
    created_at: datetime = Field(default_factory=_utcnow)
    user_id: str
    user_name: str = ""
    changes: tuple[SectionChange, ...] = Field(default_factory=tuple)
    summary: Optional[str] = None

    @property
    def changed_section_ids(self) -> list[str]:
        return [c.section_id for c in self.changes]


class ExportFile(BaseModel):
    """A rendered format ready to be handed to a save-as-file utility."""

    filename: str
    mime_type: str
    extension: str
    content: str
