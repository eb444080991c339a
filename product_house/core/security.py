"""
Identifier generation and identity resolution.

Authentication is delegated to an upstream identity provider; this module
only turns the identity it forwards into a ``RequestContext``.
"""

import secrets
from enum import Enum
from typing import Mapping, Optional, TypeVar

from product_house.core.config import settings
from product_house.core.constants import (
    CONVERSATION_ID_PREFIX,
    MASTERPLAN_ID_PREFIX,
    MESSAGE_ID_PREFIX,
    Theme,
    UserRole,
)
from product_house.core.exceptions import AuthorizationError
from product_house.domain.context import RequestContext, User

E = TypeVar("E", bound=Enum)


def generate_masterplan_id() -> str:
    """
    Generate a unique masterplan ID.

    Returns:
        A random 12-byte hex string prefixed with 'mp-'
    """
    return f"{MASTERPLAN_ID_PREFIX}{secrets.token_hex(12)}"


def generate_version_id() -> str:
    """Generate a unique version record ID prefixed with 'ver_'."""
    return f"ver_{secrets.token_hex(12)}"


def generate_comment_id() -> str:
    """Generate a unique comment ID prefixed with 'cmt_'."""
    return f"cmt_{secrets.token_hex(12)}"


def generate_conversation_id() -> str:
    """Generate a unique conversation ID prefixed with 'conv_'."""
    return f"{CONVERSATION_ID_PREFIX}{secrets.token_hex(12)}"


def generate_message_id() -> str:
    """Generate a unique message ID prefixed with 'msg_'."""
    return f"{MESSAGE_ID_PREFIX}{secrets.token_hex(12)}"


def generate_review_id() -> str:
    """Generate a unique review session ID prefixed with 'rev_'."""
    return f"rev_{secrets.token_hex(8)}"


def generate_request_id() -> str:
    """
    Generate a unique request ID for tracing.

    Returns:
        A random 8-byte hex string prefixed with 'req_'
    """
    return f"req_{secrets.token_hex(8)}"


def resolve_request_context(
    headers: Mapping[str, str],
    request_id: Optional[str] = None,
) -> RequestContext:
    """
    Build a request context from identity headers.

    The identity provider is trusted verbatim: a present user id header yields
    a user, anything else yields an anonymous context. Unknown roles and
    themes fall back to the defaults instead of failing the request.

    Args:
        headers: Case-insensitive header mapping
        request_id: Optional tracing id

    Returns:
        RequestContext for the call
    """
    sec = settings.security
    user: Optional[User] = None

    user_id = (headers.get(sec.user_id_header) or "").strip()
    if user_id:
        role = _parse_enum(UserRole, headers.get(sec.user_role_header), UserRole.USER)
        user = User(
            id=user_id,
            name=headers.get(sec.user_name_header) or user_id,
            email=headers.get(sec.user_email_header) or "",
            role=role,
        )

    theme = _parse_enum(Theme, headers.get(sec.theme_header), Theme.SYSTEM)

    return RequestContext(
        user=user,
        theme=theme,
        request_id=request_id or generate_request_id(),
    )


def require_user(context: RequestContext, action: str = "perform this action") -> User:
    """
    Return the acting user or fail.

    Raises:
        AuthorizationError: If the context carries no user
    """
    if context.user is None:
        raise AuthorizationError(f"You must be signed in to {action}")
    return context.user


def _parse_enum(enum_cls: type[E], raw: Optional[str], default: E) -> E:
    if not raw:
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        return default
