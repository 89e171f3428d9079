"""
Exception hierarchy for taglite.
"""


class TagliteError(Exception):
    """Base exception for taglite errors."""
    pass


class CannotOpen(TagliteError, OSError):
    """Raised when the tag engine cannot establish a valid handle."""
    pass


class InvalidKey(TagliteError, ValueError):
    """Raised when an identifier is not a tag field, audio field or property name."""
    pass


class InvalidValueType(TagliteError, TypeError):
    """Raised when a value cannot be staged for the given key."""
    pass


class NotWritable(TagliteError, OSError):
    """Raised when writing to or saving a read-only or closed store."""
    pass


class ReadOnlyField(NotWritable):
    """Raised when writing to an audio property."""
    pass


class KeyNotFound(TagliteError, KeyError):
    """Raised when a key is not found and no default was given."""

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"key not found: {self.key!r}"


class SaveError(TagliteError, OSError):
    """Raised when the tag engine fails to persist changes."""
    pass
