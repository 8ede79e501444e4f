"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors, e.g. no SLA policy for a severity."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ActionExecutionException(DomainException):
    """An escalation action could not be carried out."""

    def __init__(
        self,
        action_type: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.action_type = action_type
        super().__init__(
            f"{action_type}: {message}",
            details or {"action_type": action_type}
        )


class ActionTimeoutException(ActionExecutionException):
    """An escalation action handler did not finish within its time budget."""

    def __init__(self, action_type: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            action_type,
            f"timed out after {timeout_seconds:g}s",
            {"action_type": action_type, "timeout_seconds": timeout_seconds}
        )
