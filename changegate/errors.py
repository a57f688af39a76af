"""
Error taxonomy for change-order operations.

Every error subclasses ChangeGateError. Most also subclass the closest
builtin so callers can catch ValueError / LookupError / PermissionError
without importing this module.
"""

from __future__ import annotations


class ChangeGateError(Exception):
    """Base class for all changegate errors."""


class ValidationError(ChangeGateError, ValueError):
    """Input failed validation."""

    def __init__(self, message: str, *, field: str | None = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class NotFoundError(ChangeGateError, LookupError):
    """A referenced resource does not exist."""

    def __init__(self, resource: str, resource_id: str, message: str | None = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} with ID {resource_id} not found")


class UnknownApproverError(NotFoundError):
    """The reviewing user is not on the change order's approver list."""

    def __init__(self, change_order_id: str, approver_id: str):
        self.change_order_id = change_order_id
        self.approver_id = approver_id
        super().__init__(
            "Approver",
            approver_id,
            f"User {approver_id} is not an approver for change order {change_order_id}",
        )


class AccessError(ChangeGateError, PermissionError):
    """The caller's access policy refused the operation."""

    def __init__(self, actor: str, action: str, change_order_id: str | None = None):
        self.actor = actor
        self.action = action
        self.change_order_id = change_order_id
        target = f" on {change_order_id}" if change_order_id else ""
        super().__init__(f"Access denied: {actor} may not {action}{target}")


class InvalidTransitionError(ChangeGateError, ValueError):
    """The requested lifecycle edge is not allowed from the current status."""

    def __init__(self, message: str, *, from_status: str | None = None, to_status: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)


class MissingApproversError(InvalidTransitionError):
    """Submission attempted with an empty approver list."""


class BomCycleError(ChangeGateError, ValueError):
    """A BOM structure contains (or would contain) a cycle."""

    def __init__(self, message: str, *, part_id: str | None = None):
        self.part_id = part_id
        super().__init__(message)


class InvalidRevisionCodeError(ChangeGateError, ValueError):
    """A revision code is not a non-empty string over A-Z."""

    def __init__(self, code: object):
        self.code = code
        super().__init__(f"Invalid revision code: {code!r}")


class ConflictError(ChangeGateError):
    """A write raced with another write to the same change order."""
