class PrivacyError(Exception):
    """Base exception for all privacy-layer errors."""


class MappingRestoreError(PrivacyError):
    """Raised when a mapping snapshot cannot be applied to a tokenizer."""


class PersistenceError(PrivacyError):
    """Base exception for mapping artifact storage failures."""


class MappingNotFoundError(PersistenceError):
    """Raised when no mapping artifact exists for a run id."""


class MappingFormatError(PersistenceError):
    """Raised when a mapping artifact exists but cannot be parsed or validated."""


class MappingWriteError(PersistenceError):
    """Raised when a mapping artifact cannot be written to disk."""
