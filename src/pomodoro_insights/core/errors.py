"""Exceptions raised by the analytics core."""


class InsightsError(RuntimeError):
    """Base class for analytics failures. Never fatal to the timer."""


class StorageError(InsightsError):
    """The session log could not be created, written or read."""


class BackendNotInitializedError(InsightsError):
    """A boundary call arrived before the analytics backend was started."""
