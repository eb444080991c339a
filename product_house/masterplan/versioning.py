"""
Version & collaboration engine.

Mutates a masterplan's sections under an append-only version ledger. The
engine is pure: it returns new masterplan objects and version records and
leaves persisting them (atomically, as one unit) to the repository layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Sequence

from product_house.core.constants import ChangeKind, SectionMatchStrategy
from product_house.core.exceptions import NotFoundError, ValidationError, VersionNotFoundError
from product_house.core.logging import get_logger
from product_house.core.security import generate_version_id
from product_house.domain.context import User
from product_house.domain.masterplan import (
    Masterplan,
    MasterplanSection,
    MasterplanVersion,
    SectionChange,
)
from product_house.masterplan.generator import MasterplanGenerator

logger = get_logger(__name__)


@dataclass
class VersionResult:
    """Outcome of a save: the updated masterplan and the record to append.

    ``version`` is None when an empty save was suppressed.
    """

    masterplan: Masterplan
    version: Optional[MasterplanVersion]

    @property
    def recorded(self) -> bool:
        return self.version is not None

    def __iter__(self) -> Iterator[Any]:
        # Allows ``masterplan, version = engine.create_version(...)``
        return iter((self.masterplan, self.version))


# =============================================================================
# Version numbers
# =============================================================================


def parse_version(version: str) -> tuple[int, int]:
    """
    Split a dotted ``major.minor`` version string.

    Raises:
        ValidationError: If the string is not two dot-separated integers
    """
    parts = version.split(".")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValidationError(f"Malformed version string: {version!r}", field="version")
    return int(parts[0]), int(parts[1])


def bump_version(version: str) -> str:
    """Increment the minor component: ``"1.9"`` -> ``"1.10"``."""
    major, minor = parse_version(version)
    return f"{major}.{minor + 1}"


def latest_version(versions: Iterable[str]) -> Optional[str]:
    """Highest version string by numeric comparison."""
    return max(versions, key=parse_version, default=None)


# =============================================================================
# Diffing
# =============================================================================


def _check_unique_ids(sections: Sequence[MasterplanSection]) -> None:
    seen: set[str] = set()
    for section in sections:
        if section.id in seen:
            raise ValidationError(f"Duplicate section id: {section.id}", field="sections")
        seen.add(section.id)


def _added(section: MasterplanSection) -> SectionChange:
    return SectionChange(
        section_id=section.id,
        new_content=section.content,
        kind=ChangeKind.ADDED,
        title=section.title,
        level=section.level,
    )


def _removed(section: MasterplanSection) -> SectionChange:
    return SectionChange(
        section_id=section.id,
        old_content=section.content,
        new_content="",
        kind=ChangeKind.REMOVED,
    )


def diff_sections(
    old: Sequence[MasterplanSection],
    new: Sequence[MasterplanSection],
    match_by: SectionMatchStrategy = SectionMatchStrategy.ID,
) -> list[SectionChange]:
    """
    Compute section-level changes between two section lists.

    With ``ID`` matching, sections are paired by id: differing content is a
    modification, an id only in ``new`` is an addition and an id only in
    ``old`` a removal. With ``POSITION`` matching, sections are paired by
    index and the change carries the old section's id; surplus sections on
    either side become additions or removals.

    Changes follow the order of ``new``; removals come last, in the order of
    ``old``.
    """
    changes: list[SectionChange] = []

    if match_by == SectionMatchStrategy.POSITION:
        for index, section in enumerate(new):
            if index >= len(old):
                changes.append(_added(section))
                continue
            previous = old[index]
            if previous.content != section.content:
                changes.append(
                    SectionChange(
                        section_id=previous.id,
                        old_content=previous.content,
                        new_content=section.content,
                    )
                )
        changes.extend(_removed(s) for s in old[len(new):])
        return changes

    old_by_id = {s.id: s for s in old}
    new_ids = {s.id for s in new}
    for section in new:
        previous = old_by_id.get(section.id)
        if previous is None:
            changes.append(_added(section))
        elif previous.content != section.content:
            changes.append(
                SectionChange(
                    section_id=section.id,
                    old_content=previous.content,
                    new_content=section.content,
                )
            )
    changes.extend(_removed(s) for s in old if s.id not in new_ids)
    return changes


def apply_changes(
    sections: Sequence[MasterplanSection],
    changes: Iterable[SectionChange],
) -> list[MasterplanSection]:
    """
    Apply recorded changes forward onto a copy of ``sections``.

    Modified and added sections take ``new_content``; an added section that
    is missing is appended. Removed sections are dropped. Modifications of
    sections that no longer exist are skipped.
    """
    result = [s.model_copy() for s in sections]
    for change in changes:
        index = next((i for i, s in enumerate(result) if s.id == change.section_id), None)

        if change.kind == ChangeKind.REMOVED:
            if index is not None:
                del result[index]
            continue

        if index is not None:
            result[index] = result[index].model_copy(update={"content": change.new_content})
        elif change.kind == ChangeKind.ADDED:
            result.append(
                MasterplanSection(
                    id=change.section_id,
                    title=change.title or change.section_id,
                    level=change.level or 1,
                    content=change.new_content,
                )
            )
    return result


# =============================================================================
# History lookup
# =============================================================================


def find_version(versions: Iterable[MasterplanVersion], version_id: str) -> MasterplanVersion:
    """
    Look up a version record by id.

    Raises:
        VersionNotFoundError: If the id is absent from the history
    """
    for version in versions:
        if version.id == version_id:
            return version
    raise VersionNotFoundError(version_id)


def replay_history(
    versions: Sequence[MasterplanVersion],
    upto_version_id: Optional[str] = None,
) -> list[MasterplanSection]:
    """
    Rebuild section state by replaying version records forward from empty.

    ``versions`` must be in commit order and start with the initial record
    (which lists every original section as added). When ``upto_version_id``
    is given, replay stops after that record.
    """
    if upto_version_id is not None:
        find_version(versions, upto_version_id)

    sections: list[MasterplanSection] = []
    for version in versions:
        sections = apply_changes(sections, version.changes)
        if version.id == upto_version_id:
            break
    return sections


# =============================================================================
# Engine
# =============================================================================


class VersioningEngine:
    """
    Section edits as immutable version records.

    Args:
        generator: Used to regenerate rendered formats after every change
        match_by: How updated sections are correlated with current ones
        record_empty_versions: Whether a save that changes nothing still
            appends a version record
    """

    def __init__(
        self,
        generator: Optional[MasterplanGenerator] = None,
        match_by: SectionMatchStrategy = SectionMatchStrategy.ID,
        record_empty_versions: bool = True,
    ) -> None:
        self.generator = generator or MasterplanGenerator()
        self.match_by = match_by
        self.record_empty_versions = record_empty_versions

    def _with_sections(
        self,
        masterplan: Masterplan,
        sections: list[MasterplanSection],
        version: str,
    ) -> Masterplan:
        updated = masterplan.model_copy(
            update={
                "sections": sections,
                "version": version,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        # Formats are regenerated in full, never patched
        updated.formats = self.generator.render_formats(updated, list(masterplan.formats))
        return updated

    def initial_version(self, masterplan: Masterplan, user: User) -> MasterplanVersion:
        """Record for a freshly generated masterplan: every section added."""
        return MasterplanVersion(
            id=generate_version_id(),
            masterplan_id=masterplan.id,
            version=masterplan.version,
            created_at=masterplan.created_at,
            user_id=user.id,
            user_name=user.name,
            changes=tuple(_added(s) for s in masterplan.sections),
            summary="Initial version",
        )

    def create_version(
        self,
        masterplan: Masterplan,
        updated_sections: Sequence[MasterplanSection],
        user: User,
        summary: Optional[str] = None,
        history_head: Optional[str] = None,
    ) -> VersionResult:
        """
        Diff ``updated_sections`` against the current ones and record a version.

        The new version number bumps the minor component of the higher of the
        masterplan's version and ``history_head`` (the latest recorded version),
        so numbers keep increasing after a restore.

        Args:
            masterplan: Current masterplan (not mutated)
            updated_sections: Full edited section list
            user: Acting user, recorded on the version
            summary: Optional changelog text
            history_head: Latest version string already in the ledger

        Returns:
            VersionResult with the updated masterplan and the new record

        Raises:
            ValidationError: On duplicate section ids or a malformed version
        """
        _check_unique_ids(updated_sections)
        changes = diff_sections(masterplan.sections, updated_sections, self.match_by)

        if not changes and not self.record_empty_versions:
            logger.info(
                "Empty save suppressed",
                masterplan_id=masterplan.id,
                version=masterplan.version,
            )
            return VersionResult(masterplan=masterplan, version=None)

        base = latest_version([masterplan.version, history_head or masterplan.version])
        new_version = bump_version(base)
        updated = self._with_sections(
            masterplan,
            [s.model_copy() for s in updated_sections],
            new_version,
        )

        record = MasterplanVersion(
            id=generate_version_id(),
            masterplan_id=masterplan.id,
            version=new_version,
            created_at=updated.updated_at,
            user_id=user.id,
            user_name=user.name,
            changes=tuple(changes),
            summary=summary,
        )

        logger.info(
            "Version created",
            masterplan_id=masterplan.id,
            previous_version=masterplan.version,
            version=new_version,
            changed_sections=len(changes),
        )
        return VersionResult(masterplan=updated, version=record)

    def restore_version(self, masterplan: Masterplan, version: MasterplanVersion) -> Masterplan:
        """
        Reapply a past version's ``new_content`` values to the live sections.

        Restores "the state right after that version was saved" for the
        sections it touched and sets the masterplan's version to the record's
        version string. No new version record is produced.
        """
        if version.masterplan_id != masterplan.id:
            raise ValidationError(
                f"Version {version.id} belongs to masterplan {version.masterplan_id}",
                field="version_id",
            )
        sections = apply_changes(masterplan.sections, version.changes)
        restored = self._with_sections(masterplan, sections, version.version)

        logger.info(
            "Version restored",
            masterplan_id=masterplan.id,
            from_version=masterplan.version,
            to_version=version.version,
        )
        return restored

    def apply_ai_refinement(
        self,
        masterplan: Masterplan,
        section_id: str,
        new_content: str,
        user: User,
        history_head: Optional[str] = None,
    ) -> VersionResult:
        """
        Replace one section's content and record it as a full version.

        Raises:
            NotFoundError: If the section does not exist
        """
        if masterplan.get_section(section_id) is None:
            raise NotFoundError(resource_type="Section", resource_id=section_id)

        updated_sections = [
            s.model_copy(update={"content": new_content}) if s.id == section_id else s
            for s in masterplan.sections
        ]
        return self.create_version(
            masterplan,
            updated_sections,
            user,
            summary=f"AI refinement of {section_id}",
            history_head=history_head,
        )
