"""
Masterplan repository for managing masterplans and their version ledger.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_house.core.constants import ChangeKind, MasterplanFormat
from product_house.core.exceptions import ConflictError, MasterplanNotFoundError, ValidationError
from product_house.core.logging import get_logger
from product_house.database.models import (
    MasterplanDB,
    MasterplanFormatDB,
    MasterplanSectionDB,
    MasterplanVersionDB,
)
from product_house.domain.masterplan import (
    Masterplan,
    MasterplanSection,
    MasterplanVersion,
    SectionChange,
)
from product_house.repositories.base import MasterplanRepository

logger = get_logger(__name__)


def _apply_filters(masterplans: list[Masterplan], filters: Optional[dict[str, Any]]) -> list[Masterplan]:
    if not filters:
        return masterplans
    if "owner_id" in filters:
        masterplans = [m for m in masterplans if m.owner_id == filters["owner_id"]]
    if "conversation_id" in filters:
        masterplans = [m for m in masterplans if m.conversation_id == filters["conversation_id"]]
    return masterplans


def _check_expected(current: str, expected_version: Optional[str], masterplan_id: str) -> None:
    if expected_version is not None and current != expected_version:
        logger.warning(
            "Version conflict",
            masterplan_id=masterplan_id,
            expected_version=expected_version,
            actual_version=current,
        )
        raise ConflictError(
            f"Masterplan {masterplan_id} is at version {current}, not {expected_version}",
            expected_version=expected_version,
            actual_version=current,
        )


class InMemoryMasterplanRepository(MasterplanRepository):
    """
    In-memory masterplan repository for development/testing.

    Stores deep copies, so callers never hold references into the store.
    Writes go through one lock: the compare-and-swap on the version string
    and the ledger append happen together.
    """

    def __init__(self) -> None:
        self._masterplans: dict[str, Masterplan] = {}
        self._versions: dict[str, list[MasterplanVersion]] = {}
        self._lock = asyncio.Lock()

    async def get(self, id: str) -> Optional[Masterplan]:
        """Get a masterplan by ID."""
        masterplan = self._masterplans.get(id)
        return masterplan.model_copy(deep=True) if masterplan else None

    async def create(self, masterplan: Masterplan, initial_version: MasterplanVersion) -> Masterplan:
        """Insert a new masterplan and its first version record."""
        if initial_version.masterplan_id != masterplan.id:
            raise ValidationError("Initial version belongs to another masterplan", field="masterplan_id")

        async with self._lock:
            if masterplan.id in self._masterplans:
                raise ConflictError(f"Masterplan {masterplan.id} already exists")
            self._masterplans[masterplan.id] = masterplan.model_copy(deep=True)
            self._versions[masterplan.id] = [initial_version]

        logger.debug("Masterplan created", masterplan_id=masterplan.id, sections=len(masterplan.sections))
        return masterplan

    async def save(self, entity: Masterplan) -> Masterplan:
        """Save a masterplan without touching its ledger."""
        async with self._lock:
            self._masterplans[entity.id] = entity.model_copy(deep=True)
            self._versions.setdefault(entity.id, [])
        logger.debug("Masterplan saved", masterplan_id=entity.id, version=entity.version)
        return entity

    async def commit_version(
        self,
        masterplan: Masterplan,
        version: Optional[MasterplanVersion],
        expected_version: Optional[str] = None,
    ) -> Masterplan:
        """Replace the stored masterplan and append ``version`` in one unit."""
        async with self._lock:
            current = self._masterplans.get(masterplan.id)
            if current is None:
                raise MasterplanNotFoundError(masterplan.id)
            _check_expected(current.version, expected_version, masterplan.id)

            # Build the new ledger before swapping anything in
            ledger = list(self._versions.get(masterplan.id, []))
            if version is not None:
                ledger.append(version)

            self._masterplans[masterplan.id] = masterplan.model_copy(deep=True)
            self._versions[masterplan.id] = ledger

        logger.debug(
            "Masterplan committed",
            masterplan_id=masterplan.id,
            version=masterplan.version,
            recorded=version is not None,
        )
        return masterplan

    async def delete(self, id: str) -> bool:
        """Delete a masterplan and its ledger."""
        async with self._lock:
            if id not in self._masterplans:
                return False
            del self._masterplans[id]
            self._versions.pop(id, None)
        logger.debug("Masterplan deleted", masterplan_id=id)
        return True

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Masterplan]:
        """List masterplans with optional filters, newest first."""
        masterplans = _apply_filters(list(self._masterplans.values()), filters)

        # Sort by created_at descending
        masterplans.sort(key=lambda m: m.created_at, reverse=True)

        return [m.model_copy(deep=True) for m in masterplans[offset : offset + limit]]

    async def exists(self, id: str) -> bool:
        """Check if a masterplan exists."""
        return id in self._masterplans

    async def list_versions(self, masterplan_id: str) -> list[MasterplanVersion]:
        """Version records in commit order."""
        return list(self._versions.get(masterplan_id, []))

    async def get_version(self, masterplan_id: str, version_id: str) -> Optional[MasterplanVersion]:
        """Get one version record."""
        for version in self._versions.get(masterplan_id, []):
            if version.id == version_id:
                return version
        return None


# =============================================================================
# SQLAlchemy
# =============================================================================


def change_to_json(change: SectionChange) -> dict[str, Any]:
    """Serialize a section change for the ledger's JSON column."""
    return change.model_dump(mode="json")


def change_from_json(data: dict[str, Any]) -> SectionChange:
    return SectionChange(
        section_id=data["section_id"],
        old_content=data.get("old_content"),
        new_content=data.get("new_content", ""),
        kind=ChangeKind(data.get("kind", ChangeKind.MODIFIED.value)),
        title=data.get("title"),
        level=data.get("level"),
    )


def version_to_row(version: MasterplanVersion, sequence: int) -> MasterplanVersionDB:
    return MasterplanVersionDB(
        id=version.id,
        masterplan_id=version.masterplan_id,
        version=version.version,
        user_id=version.user_id,
        user_name=version.user_name,
        changes=[change_to_json(c) for c in version.changes],
        summary=version.summary,
        sequence=sequence,
        created_at=version.created_at,
    )


def version_from_row(row: MasterplanVersionDB) -> MasterplanVersion:
    return MasterplanVersion(
        id=row.id,
        masterplan_id=row.masterplan_id,
        version=row.version,
        created_at=row.created_at,
        user_id=row.user_id,
        user_name=row.user_name or "",
        changes=tuple(change_from_json(c) for c in row.changes or []),
        summary=row.summary,
    )


def section_rows(masterplan: Masterplan) -> list[MasterplanSectionDB]:
    """Section rows for a masterplan, positions following list order."""
    return [
        MasterplanSectionDB(
            masterplan_id=masterplan.id,
            id=section.id,
            position=position,
            title=section.title,
            level=section.level,
            content=section.content,
        )
        for position, section in enumerate(masterplan.sections)
    ]


def format_rows(masterplan: Masterplan) -> list[MasterplanFormatDB]:
    return [
        MasterplanFormatDB(masterplan_id=masterplan.id, format=fmt, content=content)
        for fmt, content in masterplan.formats.items()
    ]


def masterplan_from_rows(
    row: MasterplanDB,
    sections: list[MasterplanSectionDB],
    formats: list[MasterplanFormatDB],
) -> Masterplan:
    """Assemble a domain masterplan from its header, section and format rows."""
    ordered = sorted(sections, key=lambda s: s.position)
    return Masterplan(
        id=row.id,
        conversation_id=row.conversation_id,
        title=row.title,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        sections=[
            MasterplanSection(id=s.id, title=s.title, level=s.level, content=s.content or "")
            for s in ordered
        ],
        formats={MasterplanFormat(f.format): f.content for f in formats},
        owner_id=row.owner_id,
    )


class SQLMasterplanRepository(MasterplanRepository):
    """
    PostgreSQL masterplan repository for production.

    Every write runs in one transaction. ``commit_version`` locks the header
    row, checks the version string, then rewrites sections and formats and
    appends the ledger row; any failure rolls the whole unit back.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        """
        Initialize with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory (defaults to
                the application's)
        """
        if session_factory is None:
            from product_house.database.config import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    async def _load(self, session: AsyncSession, row: MasterplanDB) -> Masterplan:
        sections = (
            await session.execute(
                select(MasterplanSectionDB)
                .where(MasterplanSectionDB.masterplan_id == row.id)
                .order_by(MasterplanSectionDB.position)
            )
        ).scalars().all()
        formats = (
            await session.execute(
                select(MasterplanFormatDB).where(MasterplanFormatDB.masterplan_id == row.id)
            )
        ).scalars().all()
        return masterplan_from_rows(row, list(sections), list(formats))

    async def _replace_children(self, session: AsyncSession, masterplan: Masterplan) -> None:
        await session.execute(
            delete(MasterplanSectionDB).where(MasterplanSectionDB.masterplan_id == masterplan.id)
        )
        await session.execute(
            delete(MasterplanFormatDB).where(MasterplanFormatDB.masterplan_id == masterplan.id)
        )
        session.add_all(section_rows(masterplan))
        session.add_all(format_rows(masterplan))

    async def _next_sequence(self, session: AsyncSession, masterplan_id: str) -> int:
        current = await session.scalar(
            select(func.max(MasterplanVersionDB.sequence)).where(
                MasterplanVersionDB.masterplan_id == masterplan_id
            )
        )
        return (current or 0) + 1

    async def get(self, id: str) -> Optional[Masterplan]:
        """Get a masterplan by ID."""
        async with self._session_factory() as session:
            row = await session.get(MasterplanDB, id)
            if row is None:
                return None
            return await self._load(session, row)

    async def create(self, masterplan: Masterplan, initial_version: MasterplanVersion) -> Masterplan:
        """Insert a new masterplan and its first version record."""
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    MasterplanDB(
                        id=masterplan.id,
                        conversation_id=masterplan.conversation_id,
                        title=masterplan.title,
                        version=masterplan.version,
                        owner_id=masterplan.owner_id,
                        created_at=masterplan.created_at,
                        updated_at=masterplan.updated_at,
                    )
                )
                # Header must exist before child rows reference it
                await session.flush()
                session.add_all(section_rows(masterplan))
                session.add_all(format_rows(masterplan))
                session.add(version_to_row(initial_version, sequence=1))

        logger.debug("Masterplan created", masterplan_id=masterplan.id)
        return masterplan

    async def save(self, entity: Masterplan) -> Masterplan:
        """Save a masterplan without touching its ledger."""
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(MasterplanDB, entity.id, with_for_update=True)
                if row is None:
                    row = MasterplanDB(id=entity.id, created_at=entity.created_at)
                    session.add(row)
                row.conversation_id = entity.conversation_id
                row.title = entity.title
                row.version = entity.version
                row.owner_id = entity.owner_id
                row.updated_at = entity.updated_at
                await session.flush()
                await self._replace_children(session, entity)
        return entity

    async def commit_version(
        self,
        masterplan: Masterplan,
        version: Optional[MasterplanVersion],
        expected_version: Optional[str] = None,
    ) -> Masterplan:
        """Replace the stored masterplan and append ``version`` in one transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(MasterplanDB, masterplan.id, with_for_update=True)
                if row is None:
                    raise MasterplanNotFoundError(masterplan.id)
                _check_expected(row.version, expected_version, masterplan.id)

                row.title = masterplan.title
                row.version = masterplan.version
                row.updated_at = masterplan.updated_at
                await self._replace_children(session, masterplan)

                if version is not None:
                    sequence = await self._next_sequence(session, masterplan.id)
                    session.add(version_to_row(version, sequence))

        logger.debug(
            "Masterplan committed",
            masterplan_id=masterplan.id,
            version=masterplan.version,
            recorded=version is not None,
        )
        return masterplan

    async def delete(self, id: str) -> bool:
        """Delete a masterplan; child rows cascade."""
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(MasterplanDB, id)
                if row is None:
                    return False
                for model in (MasterplanSectionDB, MasterplanFormatDB, MasterplanVersionDB):
                    await session.execute(delete(model).where(model.masterplan_id == id))
                await session.delete(row)
        return True

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Masterplan]:
        """List masterplans with optional filters, newest first."""
        query = select(MasterplanDB)
        if filters:
            if "owner_id" in filters:
                query = query.where(MasterplanDB.owner_id == filters["owner_id"])
            if "conversation_id" in filters:
                query = query.where(MasterplanDB.conversation_id == filters["conversation_id"])
        query = query.order_by(MasterplanDB.created_at.desc()).limit(limit).offset(offset)

        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            return [await self._load(session, row) for row in rows]

    async def exists(self, id: str) -> bool:
        """Check if a masterplan exists."""
        async with self._session_factory() as session:
            result = await session.scalar(select(exists().where(MasterplanDB.id == id)))
            return bool(result)

    async def list_versions(self, masterplan_id: str) -> list[MasterplanVersion]:
        """Version records in commit order."""
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(MasterplanVersionDB)
                    .where(MasterplanVersionDB.masterplan_id == masterplan_id)
                    .order_by(MasterplanVersionDB.sequence)
                )
            ).scalars().all()
            return [version_from_row(row) for row in rows]

    async def get_version(self, masterplan_id: str, version_id: str) -> Optional[MasterplanVersion]:
        """Get one version record."""
        async with self._session_factory() as session:
            row = await session.get(MasterplanVersionDB, version_id)
            if row is None or row.masterplan_id != masterplan_id:
                return None
            return version_from_row(row)
