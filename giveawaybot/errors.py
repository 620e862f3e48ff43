"""Errors raised by giveaway lifecycle operations."""

from __future__ import annotations


class GiveawayError(RuntimeError):
    """Base class for user-facing giveaway failures."""


class InvalidInput(GiveawayError):
    """Raised when a title, prize, duration or winner count is unusable."""


class NotFound(GiveawayError):
    """Raised when a giveaway (or its channel) does not exist."""


class AlreadyEnded(GiveawayError):
    """Raised when an operation requires an active giveaway."""


class NotYetEnded(GiveawayError):
    """Raised when an operation requires a settled giveaway."""


class NoParticipants(GiveawayError):
    """Raised when a draw is requested over an empty participant pool."""
