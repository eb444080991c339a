"""
Masterplan generator: raw completion text -> fully formatted Masterplan.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from product_house.core.constants import DEFAULT_FORMATS, DEFAULT_MASTERPLAN_TITLE, INITIAL_VERSION, MasterplanFormat
from product_house.core.logging import get_logger
from product_house.core.security import generate_masterplan_id
from product_house.domain.masterplan import Masterplan
from product_house.masterplan import formatter
from product_house.masterplan.parser import parse_sections

logger = get_logger(__name__)

FormatName = Union[MasterplanFormat, str]


class MasterplanGenerator:
    """
    Builds masterplan entities from Markdown produced by the completion service.

    Does not persist anything; the caller hands the result to a repository.
    """

    def generate_from_markdown(
        self,
        raw_content: str,
        conversation_id: str,
        title: str = DEFAULT_MASTERPLAN_TITLE,
        formats: Iterable[FormatName] = DEFAULT_FORMATS,
        owner_id: Optional[str] = None,
    ) -> Masterplan:
        """
        Parse ``raw_content`` and render every requested format.

        Args:
            raw_content: Markdown-style text with ``#`` headings
            conversation_id: Conversation the content was generated from
            title: Document title
            formats: Formats to render; empty gives an empty mapping
            owner_id: Creating user, if known

        Returns:
            A new masterplan at version 1.0

        Raises:
            UnsupportedFormatError: If a requested format is unknown
        """
        sections = parse_sections(raw_content)
        now = datetime.now(timezone.utc)

        masterplan = Masterplan(
            id=generate_masterplan_id(),
            conversation_id=conversation_id,
            title=title,
            version=INITIAL_VERSION,
            created_at=now,
            updated_at=now,
            sections=sections,
            formats={},
            owner_id=owner_id,
        )
        masterplan.formats = self.render_formats(masterplan, formats)

        if not sections:
            logger.warning(
                "Generated masterplan has no sections",
                masterplan_id=masterplan.id,
                conversation_id=conversation_id,
            )

        logger.info(
            "Masterplan generated",
            masterplan_id=masterplan.id,
            sections=len(sections),
            formats=[f.value for f in masterplan.formats],
        )
        return masterplan

    def render_formats(
        self,
        masterplan: Masterplan,
        formats: Iterable[FormatName],
    ) -> dict[MasterplanFormat, str]:
        """Render each format from scratch against the current sections."""
        rendered: dict[MasterplanFormat, str] = {}
        for fmt in formats:
            key = formatter.coerce_format(fmt)
            rendered[key] = formatter.render(masterplan, key)
        return rendered
