"""Domain exceptions."""

from enum import Enum
from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so handlers can show it to the user
    # without parsing str(exception). Never raise this directly - always use a specific
    # subclass so callers can catch precisely (the pipeline treats extraction and catalog
    # failures very differently!).
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Example:
        raise ValidationError("Unknown callback action: 'foo'")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Example:
        raise ConfigurationError("Missing required configuration: PLEX_TOKEN")
    """

    pass


# =============================================================================
# Pipeline failures - one exception per stage, each with a `kind` discriminant.
# =============================================================================


class AcquisitionErrorKind(str, Enum):
    """Why a file could not be obtained."""

    NETWORK = "network"
    FILESYSTEM = "filesystem"


class ExtractionErrorKind(str, Enum):
    """Why an archive could not be unpacked."""

    UNSUPPORTED_FORMAT = "unsupported_format"
    CODEC_FAILURE = "codec_failure"


class CatalogErrorKind(str, Enum):
    """Why a catalog (Plex) call failed."""

    UPSTREAM = "upstream"
    NOT_FOUND = "not_found"
    INVALID_RESPONSE = "invalid_response"


class PublishErrorKind(str, Enum):
    """Why a message could not be delivered."""

    TRANSPORT_FAILURE = "transport_failure"


class AcquisitionError(DomainException):
    """Download of a remote file or chat attachment failed.

    The partially written file is already gone when this is raised.
    """

    def __init__(
        self, message: str, kind: AcquisitionErrorKind, path: Any = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


class ExtractionError(DomainException):
    """Archive extraction failed or the format has no extractor."""

    def __init__(
        self, message: str, kind: ExtractionErrorKind, path: Any = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


class CatalogError(DomainException):
    """The media catalog returned an error or an unusable response."""

    # Yo, stale browse buttons end up here too: the token references an entity that
    # was deleted/renamed in Plex, the fetch 404s and that's a NOT_FOUND, not a bug.
    def __init__(
        self,
        message: str,
        kind: CatalogErrorKind = CatalogErrorKind.UPSTREAM,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.http_status = http_status


class PublishError(DomainException):
    """Sending a message, photo, document or media group failed."""

    def __init__(
        self,
        message: str,
        kind: PublishErrorKind = PublishErrorKind.TRANSPORT_FAILURE,
        sent_batches: int = 0,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.sent_batches = sent_batches


__all__ = [
    "AcquisitionError",
    "AcquisitionErrorKind",
    "CatalogError",
    "CatalogErrorKind",
    "ConfigurationError",
    "DomainException",
    "ExtractionError",
    "ExtractionErrorKind",
    "PublishError",
    "PublishErrorKind",
    "ValidationError",
]
