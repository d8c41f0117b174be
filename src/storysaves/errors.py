class SaveError(Exception):
    """Base exception for save/load errors."""


class SaveValidationError(SaveError):
    """Raised when persisted save data does not have the expected shape."""


class ImportValidationError(SaveValidationError):
    """Raised when an exported save document is rejected on import."""


class PersistenceError(SaveError):
    """Raised when the backing key-value store cannot be read or written."""
