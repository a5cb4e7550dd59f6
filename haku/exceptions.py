"""
Exception hierarchy for Haku.

Import failures carry the fixed, user-facing message the UI layer matches on.
These strings are a stable contract and must not change without updating
every consumer.
"""


class HakuError(Exception):
    """Base class for all Haku errors."""


class StorageError(HakuError):
    """The durable key-value storage rejected an operation."""


class StorageQuotaExceededError(StorageError):
    """A value is larger than the storage quota allows."""

    def __init__(self, key: str, size: int, limit: int):
        super().__init__(f"Value for '{key}' is {size} bytes, quota is {limit} bytes")
        self.key = key
        self.size = size
        self.limit = limit


class ImportFailure(HakuError):
    """Base class for import pipeline failures."""

    user_message = "Import failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class FileTypeError(ImportFailure):
    """The selected file is not a JSON file."""

    user_message = "Please select a JSON file"


class FileReadError(ImportFailure):
    """The selected file could not be read as text."""

    user_message = "Failed to read file"


class ParseError(ImportFailure):
    """The input text is not valid JSON."""

    user_message = "Invalid JSON format"


class SchemaError(ImportFailure):
    """Valid JSON, but an unknown version or an invalid shape."""

    user_message = "Invalid or incompatible backup file"


class PersistenceError(ImportFailure):
    """The durable write failed; nothing was changed."""

    user_message = "Failed to save to localStorage"


class HydrationError(ImportFailure):
    """The in-memory store refused the validated state after a durable write."""

    user_message = "Failed to update app state"
