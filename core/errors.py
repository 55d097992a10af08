"""Exception types raised at the controller's synchronous boundaries."""

from __future__ import annotations


class Tag2DirError(Exception):
    """Base class for all errors raised by the session core."""


class InvalidInputError(Tag2DirError):
    """A required directory was missing; the operation was not attempted."""


class MissingTargetError(InvalidInputError):
    """A move was requested without a target directory."""


class EmptyBatchError(Tag2DirError):
    """No selected image is ready to move.

    Attributes:
        unassigned_count: Selected images that still lack a person.
    """

    def __init__(self, unassigned_count: int = 0) -> None:
        super().__init__(
            f"No selected image has a person assigned ({unassigned_count} unassigned)"
        )
        self.unassigned_count = unassigned_count


class SessionBusyError(Tag2DirError):
    """Another scan, move or undo is still running."""


class SessionFatalError(Tag2DirError):
    """The worker reported that a whole session failed."""


class InvariantViolation(Tag2DirError):
    """A programming error such as appending a duplicate image id."""
