"""
Custom exception hierarchy for the Product House service.
Provides structured error handling with proper HTTP status codes.
"""

from typing import Any, Optional


class ProductHouseError(Exception):
    """Base exception for all Product House errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ProductHouseError):
    """Error in application configuration."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details,
            status_code=500,
        )


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(ProductHouseError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details=details,
            status_code=400,
        )


class UnsupportedFormatError(ProductHouseError):
    """Requested output format is not supported by the renderer."""

    def __init__(self, format_name: str) -> None:
        super().__init__(
            message=f"Unsupported format: {format_name}",
            code="UNSUPPORTED_FORMAT",
            details={"format": format_name},
            status_code=400,
        )
        self.format_name = format_name


# =============================================================================
# Authentication/Authorization Errors (401, 403)
# =============================================================================


class AuthenticationError(ProductHouseError):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            message=message,
            code="AUTHENTICATION_REQUIRED",
            status_code=401,
        )


class AuthorizationError(ProductHouseError):
    """Action attempted without a resolved or sufficiently privileged user."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(
            message=message,
            code="AUTHORIZATION_FAILED",
            status_code=403,
        )


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(ProductHouseError):
    """Requested resource not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )
        self.resource_id = resource_id


class MasterplanNotFoundError(NotFoundError):
    """Masterplan not found."""

    def __init__(self, masterplan_id: str) -> None:
        super().__init__(resource_type="Masterplan", resource_id=masterplan_id)
        self.code = "MASTERPLAN_NOT_FOUND"


class VersionNotFoundError(NotFoundError):
    """Masterplan version not found."""

    def __init__(self, version_id: str) -> None:
        super().__init__(resource_type="Version", resource_id=version_id)
        self.code = "VERSION_NOT_FOUND"


class CommentNotFoundError(NotFoundError):
    """Comment not found."""

    def __init__(self, comment_id: str) -> None:
        super().__init__(resource_type="Comment", resource_id=comment_id)
        self.code = "COMMENT_NOT_FOUND"


class ConversationNotFoundError(NotFoundError):
    """Conversation not found."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(resource_type="Conversation", resource_id=conversation_id)
        self.code = "CONVERSATION_NOT_FOUND"


class TemplateNotFoundError(NotFoundError):
    """Masterplan template not found."""

    def __init__(self, template_id: str) -> None:
        super().__init__(resource_type="Template", resource_id=template_id)
        self.code = "TEMPLATE_NOT_FOUND"


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(ProductHouseError):
    """Write rejected because the stored state moved on."""

    def __init__(
        self,
        message: str,
        expected_version: Optional[str] = None,
        actual_version: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            code="VERSION_CONFLICT",
            details={
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            status_code=409,
        )


# =============================================================================
# External Service Errors (502, 503)
# =============================================================================


class ExternalServiceError(ProductHouseError):
    """Error communicating with external service."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=f"{service_name} error: {message}",
            code="EXTERNAL_SERVICE_ERROR",
            details={"service": service_name, **(details or {})},
            status_code=502,
        )


class UpstreamServiceError(ExternalServiceError):
    """Completion service call failed."""

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            service_name="Completion service",
            message=message,
            details={"provider_status": provider_status, **(details or {})},
        )
        self.code = "UPSTREAM_SERVICE_ERROR"
        self.provider_status = provider_status


class DatabaseError(ExternalServiceError):
    """Error communicating with database."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="Database", message=message, details=details)
        self.code = "DATABASE_ERROR"
