"""Engine exceptions."""

from __future__ import annotations


class ReliefwatchError(Exception):
    """Base class for engine errors."""


class SignalNotFoundError(ReliefwatchError):
    def __init__(self, signal_id: int) -> None:
        super().__init__(f"SOS signal {signal_id} not found")
        self.signal_id = signal_id


class SignalValidationError(ReliefwatchError):
    """Signal is malformed (e.g. missing location) and cannot be processed."""


class ConcurrentSignalUpdateError(ReliefwatchError):
    """The signal changed since it was read; the save was rejected."""

    def __init__(self, signal_id: int | None) -> None:
        super().__init__(f"SOS signal {signal_id} was modified concurrently")
        self.signal_id = signal_id


class InvalidTransitionError(ReliefwatchError):
    """Requested change would violate a signal lifecycle rule."""
