"""Exception hierarchy for the scheduling engine.

Every error the engine raises on purpose derives from SchedulingError so callers
can catch engine failures in one place while still telling them apart.
"""

from __future__ import annotations

from typing import Iterable, Optional


class SchedulingError(Exception):
    """Base exception for all scheduling engine errors."""


class MissingOrganizationError(SchedulingError):
    """An operation was invoked without an organization id.

    Raised when:
    - organization_id is None or an empty/blank string

    This is a programming error in the caller, never defaulted.
    """

    def __init__(self, message: str = "No organization selected. Cannot perform this operation."):
        super().__init__(message)


class EventValidationError(SchedulingError):
    """An event draft failed validation before any store call was made.

    Attributes:
        messages: Human-readable problems, in the order they were detected
    """

    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "Invalid event")


class EventNotFoundError(SchedulingError):
    """A referenced event does not exist in the organization."""

    def __init__(self, event_id: str, organization_id: Optional[str] = None):
        self.event_id = event_id
        self.organization_id = organization_id
        message = f"Event not found: {event_id}"
        if organization_id:
            message += f" (organization {organization_id})"
        super().__init__(message)


class StoreError(SchedulingError):
    """A store operation failed.

    Raised by the bundled stores when:
    - an update targets a record id that does not exist
    - the underlying database driver fails (original error chained)

    The engine propagates these unchanged and never retries them.
    """


def require_organization(organization_id: Optional[str]) -> str:
    """Return organization_id or raise MissingOrganizationError."""
    if not organization_id or not str(organization_id).strip():
        raise MissingOrganizationError()
    return organization_id
