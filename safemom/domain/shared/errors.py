"""
Domain exceptions.

Typed exceptions for explicit error handling.
HTTP failures are NOT exceptions: the request orchestrator returns them
as RequestOutcome values. These types cover programming and usage errors.
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All domain-specific exceptions inherit from this.
    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# WIZARD EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class WizardError(DomainError):
    """Base exception for the analysis wizard."""

    pass


class ActionUnavailableError(WizardError):
    """
    Wizard action invoked while disabled.

    Raised when:
    - Action belongs to a different step
    - A request is already in flight
    - Client reports itself offline
    - No image has been loaded

    Example:
        >>> raise ActionUnavailableError(
        ...     "find_ingredients is not available on step IDENTIFY"
        ... )
    """

    pass


# ═══════════════════════════════════════════════════════════
# VALIDATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ValidationError(DomainError):
    """
    Input validation failed.

    Raised when:
    - Saving a result without safety report or ingredients
    - Invalid capacity for a bounded store

    Example:
        >>> raise ValidationError("Nothing to save: analysis not finished")
    """

    pass


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class InfrastructureError(DomainError):
    """
    Infrastructure layer error.

    Base class for storage errors.
    """

    pass


class StorageError(InfrastructureError):
    """
    Local storage operation failed.

    Raised when:
    - Storage file cannot be written
    - Storage directory cannot be created

    Example:
        >>> raise StorageError("Cannot write ~/.safemom/saved_searches.json")
    """

    pass
