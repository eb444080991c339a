"""
System-wide constants for the Product House masterplan service.
"""

from enum import Enum


# =============================================================================
# Enums
# =============================================================================


class MessageRole(str, Enum):
    """Message roles in a conversation transcript."""

    USER = "user"
    ASSISTANT = "assistant"


class MasterplanFormat(str, Enum):
    """Output formats a masterplan can be rendered into."""

    MARKDOWN = "markdown"
    PDF = "pdf"
    CONFLUENCE = "confluence"
    JIRA = "jira"


class CommentCategory(str, Enum):
    """Closed set of comment categories."""

    CLARIFICATION = "clarification"
    RISK = "risk"
    MODIFICATION = "modification"
    TECHNICAL = "technical"


class ChangeKind(str, Enum):
    """Kind of a section-level change recorded in a version."""

    MODIFIED = "modified"
    ADDED = "added"
    REMOVED = "removed"


class SectionMatchStrategy(str, Enum):
    """How edited sections are correlated with the current ones."""

    ID = "id"
    POSITION = "position"


class UserRole(str, Enum):
    """Roles supplied by the identity provider."""

    USER = "user"
    ADMIN = "admin"


class Theme(str, Enum):
    """UI theme preference carried in the request context."""

    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class StorageBackend(str, Enum):
    """Persistence backends the service can run on."""

    MEMORY = "memory"
    DATABASE = "database"


# =============================================================================
# API Constants
# =============================================================================

API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# =============================================================================
# Masterplan Constants
# =============================================================================

INITIAL_VERSION = "1.0"
DEFAULT_MASTERPLAN_TITLE = "Product Masterplan"
DEFAULT_FORMATS = (MasterplanFormat.MARKDOWN,)
DEFAULT_TEMPLATE_ID = "default"

SECTION_ID_PREFIX = "section-"
MASTERPLAN_ID_PREFIX = "mp-"

# =============================================================================
# Conversation Constants
# =============================================================================

DEFAULT_CONVERSATION_TITLE = "New Conversation"
CONVERSATION_ID_PREFIX = "conv_"
MESSAGE_ID_PREFIX = "msg_"

# Export surface: format -> (mime type, file extension)
EXPORT_TYPES: dict[MasterplanFormat, tuple[str, str]] = {
    MasterplanFormat.MARKDOWN: ("text/markdown", ".md"),
    MasterplanFormat.PDF: ("text/html", ".html"),
    MasterplanFormat.CONFLUENCE: ("text/plain", ".confluence"),
    MasterplanFormat.JIRA: ("text/plain", ".jira"),
}

# =============================================================================
# Completion Service Constants
# =============================================================================

DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.7
REFINEMENT_TEMPERATURE = 0.5
MASTERPLAN_MAX_TOKENS = 8000

# Jira export boilerplate
JIRA_TECHNICAL_TASKS = [
    "Set up project structure for {title}",
    "Create database schema",
    "Implement authentication",
    "Create API endpoints",
    "Develop frontend UI components",
    "Implement integration tests",
]
