# artisan/exceptions.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Exceptions shared across artisan."""


class ArtisanError(Exception):
    """Base class for all artisan errors."""
    pass


class ConfigurationError(ArtisanError):
    """Raised for fatal configuration problems.

    Covers a missing API token outside of test mode, an invalid character
    name, and unknown cycle presets. The process should abort.
    """
    pass


class StateMachineError(ArtisanError):
    """Raised when a task transition is not allowed.

    This includes leaving a terminal state and creating a second live task
    for a character that already has one.
    """
    pass


class TaskNotFoundError(ArtisanError):
    """Raised when a task id does not exist in the store."""
    pass
