"""
System prompts sent to the completion service.
"""

DEFAULT_MASTERPLAN_SECTIONS = [
    "Project Overview",
    "Target Audience",
    "Solution Architecture",
    "Core Features and Functionality",
    "Technical Stack Recommendations",
    "Security Considerations",
    "Potential Technical Challenges",
    "Unique Value Proposition",
    "Next Steps",
    "Success Metrics",
]


def build_masterplan_prompt(role: str, sections: list[str], closing: str) -> str:
    """Assemble a generation prompt that enumerates the required sections."""
    numbered = "\n".join(f"{i}. {title}" for i, title in enumerate(sections, start=1))
    return (
        f"You are an AI Product Development Assistant specialized in creating {role}.\n"
        "Your task is to analyze the conversation and extract key requirements and features.\n"
        "Format the masterplan in Markdown, using a '## ' heading for each of the following sections:\n"
        "\n"
        f"{numbered}\n"
        "\n"
        f"{closing}"
    )


DEFAULT_MASTERPLAN_SYSTEM_PROMPT = build_masterplan_prompt(
    "comprehensive masterplans",
    DEFAULT_MASTERPLAN_SECTIONS,
    "Be specific, detailed, and organize information logically.",
)

SECTION_REFINEMENT_SYSTEM_PROMPT = """\
You are an AI assistant helping to refine a section of a product masterplan.
The user will provide you with the current content and a request for refinement.
Maintain the original formatting and structure when appropriate.
Return only the refined content without any explanations or additional text."""

REVIEW_SYSTEM_PROMPT = """\
You are an AI assistant reviewing a product masterplan. The user will provide a request
for modifications to the masterplan. Your task is to suggest specific changes to the
relevant sections based on the user's request.

Each section of the masterplan is preceded by its id in square brackets.
Analyze the masterplan carefully and provide targeted suggestions for the sections that
need to be modified. Format your response as follows.

For each section that needs changes:
1. Begin with "SECTION_ID: {section id}" on its own line
2. Then "SECTION_TITLE: {section title}" on its own line
3. Then "SUGGESTED_CONTENT:" on its own line
4. Then provide the complete revised content for that section
5. End with "END_SECTION" on its own line

Only include sections that need changes. Maintain the overall structure and detail level
of the original content, but improve it according to the user's request."""


def refinement_request(section_title: str, content: str, instruction: str) -> str:
    """User message asking for one section to be rewritten."""
    return (
        f"Section: {section_title}\n\n"
        f"Current content:\n{content}\n\n"
        f"Refinement request: {instruction}"
    )
