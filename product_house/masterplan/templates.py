"""
Masterplan templates: preset section lists and the generation prompts for them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from product_house.core.constants import DEFAULT_TEMPLATE_ID
from product_house.core.exceptions import TemplateNotFoundError
from product_house.masterplan.prompts import (
    DEFAULT_MASTERPLAN_SECTIONS,
    DEFAULT_MASTERPLAN_SYSTEM_PROMPT,
    build_masterplan_prompt,
)


class MasterplanTemplate(BaseModel):
    """A named generation preset."""

    id: str
    name: str
    description: str
    system_prompt: str
    sections: list[str] = Field(default_factory=list)


TECHNICAL_SECTIONS = [
    "Project Overview",
    "System Architecture",
    "Data Model",
    "API Design",
    "Technical Components",
    "Infrastructure Requirements",
    "Security Architecture",
    "Integration Points",
    "Scalability Considerations",
    "Implementation Roadmap",
]

MVP_SECTIONS = [
    "Core Problem & Solution",
    "Target Users",
    "Essential Features (MVP only)",
    "Out of Scope Features",
    "Technical Approach",
    "MVP Timeline",
    "Success Criteria",
    "Future Iterations",
]

MASTERPLAN_TEMPLATES: list[MasterplanTemplate] = [
    MasterplanTemplate(
        id=DEFAULT_TEMPLATE_ID,
        name="Standard Masterplan",
        description="A comprehensive product development masterplan with all standard sections.",
        system_prompt=DEFAULT_MASTERPLAN_SYSTEM_PROMPT,
        sections=DEFAULT_MASTERPLAN_SECTIONS,
    ),
    MasterplanTemplate(
        id="technical",
        name="Technical Deep Dive",
        description="A technical-focused masterplan with emphasis on architecture and implementation details.",
        system_prompt=build_masterplan_prompt(
            "technical masterplans",
            TECHNICAL_SECTIONS,
            "Be specific, detailed, and technically precise while remaining clear and understandable.",
        ),
        sections=TECHNICAL_SECTIONS,
    ),
    MasterplanTemplate(
        id="mvp",
        name="Minimum Viable Product",
        description="A concise masterplan focused on defining and building an MVP quickly.",
        system_prompt=build_masterplan_prompt(
            "MVP masterplans",
            MVP_SECTIONS,
            "Focus on defining the minimum feature set needed to validate the core value proposition.\n"
            "Be concise, practical, and focused on rapid delivery.",
        ),
        sections=MVP_SECTIONS,
    ),
]


def list_templates() -> list[MasterplanTemplate]:
    return list(MASTERPLAN_TEMPLATES)


def get_template(template_id: str) -> MasterplanTemplate:
    """
    Look up a template by id.

    Raises:
        TemplateNotFoundError: If no template has that id
    """
    for template in MASTERPLAN_TEMPLATES:
        if template.id == template_id:
            return template
    raise TemplateNotFoundError(template_id)
