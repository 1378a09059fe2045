"""
Custom exceptions for SiteAuditor
Provides structured error handling across all domains
"""
from typing import Any, Dict, Optional


class SiteAuditError(Exception):
    """Base exception for all SiteAuditor errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logs and CLI output"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SiteAuditError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field, **details} if field else details,
        )


class NotFoundError(SiteAuditError):
    """Raised when a resource is not found"""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": str(identifier)},
        )


class ExternalAPIError(SiteAuditError):
    """Raised when an external API call fails"""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **details,
    ):
        super().__init__(
            message=f"{provider} API error: {message}",
            error_code="EXTERNAL_API_ERROR",
            details={
                "provider": provider,
                "api_status_code": status_code,
                "response_body": response_body,
                **details,
            },
        )
        self.provider = provider
        self.status_code = status_code


class RateLimitError(ExternalAPIError):
    """Raised when hitting rate limits"""

    def __init__(self, provider: str, retry_after: Optional[int] = None):
        message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after} seconds"

        super().__init__(
            provider=provider,
            message=message,
            status_code=429,
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class ConfigurationError(SiteAuditError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {},
        )


class DatabaseError(SiteAuditError):
    """Raised when database operations fail"""

    def __init__(self, message: str, operation: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            details={"operation": operation, **details} if operation else details,
        )


class RunImmutableError(DatabaseError):
    """Raised when a terminal audit run is written to"""

    def __init__(self, run_id: Any, status: str):
        super().__init__(
            message=f"Audit run {run_id} is {status} and can no longer be modified",
            operation="update_run",
            run_id=str(run_id),
            status=status,
        )
