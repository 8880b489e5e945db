# Overview: Domain error kinds shared by services, routes, and CLI.

"""
Error kinds raised by the inventory core.

Every service operation either returns its result or raises exactly one of
these. Routes translate them with `status_code`; messages of caller-correctable
kinds (not found, conflict, validation, unauthorized) are safe to return
verbatim. StorageError carries the internal detail only in its `detail`
attribute, its message is generic.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all errors surfaced by the core."""
    kind = "error"
    status_code = 400


class NotFoundError(DomainError):
    """Missing store, product, stock record, order, display, staff or intent."""
    kind = "not_found"
    status_code = 404


class ConflictError(DomainError):
    """Double receive, double fulfillment, reused verification token, duplicates."""
    kind = "conflict"
    status_code = 409


class ValidationError(DomainError):
    """Negative or over-drawn quantities, bad transitions, malformed input."""
    kind = "validation_error"
    status_code = 400


class UnauthorizedError(DomainError):
    """Caller lacks rights over the target store or organization."""
    kind = "unauthorized"
    status_code = 403


class StorageError(DomainError):
    """Transaction or commit failure. Public message never leaks internals."""
    kind = "storage_error"
    status_code = 500

    PUBLIC_MESSAGE = "Storage failure, the operation was not applied"

    def __init__(self, detail: str | None = None):
        super().__init__(self.PUBLIC_MESSAGE)
        self.detail = detail
