"""
Format renderer: projects a masterplan's section tree into textual formats.

Every renderer is a pure function of the masterplan. Output depends only on
the masterplan's fields (dates come from ``updated_at``), and the input is
never mutated.

The Jira renderer is lossy and generative: it lifts bullet points out of the
features section and wraps each in template epics, stories and Gherkin
scenarios. Its output is a starting point for a backlog, not a transcription
of the document, and it cannot be parsed back into sections.
"""

from __future__ import annotations

import html
import re
from typing import Callable, Union

from product_house.core.constants import JIRA_TECHNICAL_TASKS, MasterplanFormat
from product_house.core.exceptions import UnsupportedFormatError
from product_house.domain.masterplan import Masterplan, MasterplanSection

FEATURE_TITLE_KEYWORDS = ("feature", "functionality")
BULLET_PATTERN = re.compile(r"^\s*[-*+]\s*(.*)$")

PDF_STYLES = """
    body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; color: #222; }
    h1 { color: #333; }
    .metadata { color: #666; font-style: italic; margin-bottom: 20px; }
    .toc { background-color: #f5f5f5; padding: 15px; margin-bottom: 30px; }
    .toc ul { list-style: none; padding-left: 0; }
    .section { margin-bottom: 30px; }
    .section-title { border-bottom: 1px solid #ddd; padding-bottom: 5px; }
"""


def slugify(title: str) -> str:
    """Anchor slug for a heading: lowercase, punctuation dropped, spaces to dashes."""
    slug = re.sub(r"[^\w\s-]", "", title.lower()).strip()
    return re.sub(r"\s+", "-", slug)


def _updated_date(masterplan: Masterplan) -> str:
    return masterplan.updated_at.strftime("%Y-%m-%d")


def _metadata_line(masterplan: Masterplan) -> str:
    return f"Version {masterplan.version} - Updated: {_updated_date(masterplan)}"


def format_markdown(masterplan: Masterplan) -> str:
    """
    Render as Markdown with a linked, nested table of contents.

    The document title and the table-of-contents label are bold lines rather
    than headings, so re-parsing the output yields exactly the masterplan's
    sections.
    """
    lines = [
        f"**{masterplan.title}**",
        "",
        f"*{_metadata_line(masterplan)}*",
        "",
        "**Table of Contents**",
        "",
    ]
    for section in masterplan.sections:
        indent = "  " * (section.level - 1)
        lines.append(f"{indent}- [{section.title}](#{slugify(section.title)})")
    lines.append("")

    for section in masterplan.sections:
        lines.append(f"{'#' * section.level} {section.title}")
        lines.append("")
        lines.append(section.content)
        lines.append("")

    return "\n".join(lines)


def format_pdf(masterplan: Masterplan) -> str:
    """Render a self-contained HTML document intended for PDF conversion."""
    title = html.escape(masterplan.title)
    toc_items = "\n".join(
        f'        <li>{"&nbsp;&nbsp;" * (s.level - 1)}'
        f'<a href="#{html.escape(s.id, quote=True)}">{html.escape(s.title)}</a></li>'
        for s in masterplan.sections
    )
    sections = "\n".join(_pdf_section(s) for s in masterplan.sections)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{title}</title>
  <style>{PDF_STYLES}  </style>
</head>
<body>
  <h1>{title}</h1>
  <div class="metadata">{html.escape(_metadata_line(masterplan))}</div>
  <div class="toc">
    <h2>Table of Contents</h2>
    <ul>
{toc_items}
    </ul>
  </div>
{sections}
</body>
</html>
"""


def _pdf_section(section: MasterplanSection) -> str:
    # h1 is taken by the document title
    tag = f"h{min(section.level + 1, 6)}"
    body = html.escape(section.content).replace("\n", "<br>\n")
    return (
        f'  <div class="section">\n'
        f'    <{tag} id="{html.escape(section.id, quote=True)}" class="section-title">'
        f"{html.escape(section.title)}</{tag}>\n"
        f'    <div class="section-content">\n{body}\n    </div>\n'
        f"  </div>"
    )


def format_confluence(masterplan: Masterplan) -> str:
    """Render as Confluence wiki markup."""
    parts = [
        f"h1. {masterplan.title}",
        "",
        f"_{_metadata_line(masterplan)}_",
        "",
        "{toc}",
        "",
    ]
    for section in masterplan.sections:
        parts.append(f"h{min(section.level + 1, 6)}. {section.title}")
        parts.append("")
        parts.append(section.content)
        parts.append("")
    return "\n".join(parts)


def find_features_section(masterplan: Masterplan) -> MasterplanSection | None:
    """First section whose title mentions features or functionality."""
    for section in masterplan.sections:
        lowered = section.title.lower()
        if any(keyword in lowered for keyword in FEATURE_TITLE_KEYWORDS):
            return section
    return None


def extract_features(section: MasterplanSection) -> list[str]:
    """Bulleted lines of a section, bullet markers stripped."""
    features = []
    for line in section.content.splitlines():
        match = BULLET_PATTERN.match(line)
        if match and match.group(1).strip():
            features.append(match.group(1).strip())
    return features


def format_jira(masterplan: Masterplan) -> str:
    """
    Render epics, user stories and Gherkin scenarios for each listed feature.

    Returns an empty string when the masterplan has no features section.
    """
    features_section = find_features_section(masterplan)
    if features_section is None:
        return ""

    parts = [f"# Epics and User Stories for {masterplan.title}", ""]
    for feature in extract_features(features_section):
        lowered = feature.lower()
        parts.extend(
            [
                f"## Epic: {feature}",
                "",
                "### User Stories:",
                "",
                f"* As a user, I want to {lowered}, so that I can improve my workflow",
                f"* As an admin, I want to manage {lowered}, so that I can ensure quality",
                "",
                "### Acceptance Criteria (Example):",
                "",
                "```gherkin",
                f"Feature: {feature}",
                "",
                "  Scenario: Basic functionality",
                "    Given I am logged in as a user",
                f"    When I access the {lowered} feature",
                "    Then I should be able to perform basic operations",
                "",
                "  Scenario: Advanced usage",
                "    Given I am logged in as an admin",
                f"    When I configure the {lowered} feature",
                "    Then I should see advanced options available",
                "```",
                "",
            ]
        )

    parts.extend(["## Technical Tasks", ""])
    parts.extend(f"* {task.format(title=masterplan.title)}" for task in JIRA_TECHNICAL_TASKS)
    parts.append("")
    return "\n".join(parts)


RENDERERS: dict[MasterplanFormat, Callable[[Masterplan], str]] = {
    MasterplanFormat.MARKDOWN: format_markdown,
    MasterplanFormat.PDF: format_pdf,
    MasterplanFormat.CONFLUENCE: format_confluence,
    MasterplanFormat.JIRA: format_jira,
}


def coerce_format(fmt: Union[MasterplanFormat, str]) -> MasterplanFormat:
    """
    Normalize a format name.

    Raises:
        UnsupportedFormatError: If the name is not a supported format
    """
    if isinstance(fmt, MasterplanFormat):
        return fmt
    try:
        return MasterplanFormat(str(fmt).lower())
    except ValueError:
        raise UnsupportedFormatError(str(fmt)) from None


def render(masterplan: Masterplan, fmt: Union[MasterplanFormat, str]) -> str:
    """
    Render ``masterplan`` in ``fmt``.

    Raises:
        UnsupportedFormatError: If ``fmt`` names no supported format
    """
    return RENDERERS[coerce_format(fmt)](masterplan)
