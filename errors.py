"""Exception hierarchy for the events API."""


class AppError(Exception):
    """Base exception for all application errors."""


# --- Configuration ---
class ConfigurationError(AppError):
    """Required configuration is missing or invalid."""


# --- Validation ---
class RecordValidationError(AppError, ValueError):
    """A record failed normalization before being written."""


class SlugGenerationError(RecordValidationError):
    """Title has no characters a slug can be built from."""


class InvalidDateError(RecordValidationError):
    """Date value could not be parsed."""


class InvalidTimeFormatError(RecordValidationError):
    """Time value does not look like H:MM or HH:MM."""


class InvalidTimeValueError(RecordValidationError):
    """Time value has an hour or minute out of range."""


class ReferentialIntegrityError(AppError):
    """A record references a document that does not exist."""


# --- Storage ---
class DuplicateSlugError(AppError):
    """Another event already uses this slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"An event with slug '{slug}' already exists")
        self.slug = slug


class RecordNotFoundError(AppError):
    """Requested document does not exist."""


class DatabaseNotConnectedError(AppError):
    """Database was used before a connection was established."""
