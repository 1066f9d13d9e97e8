"""Error taxonomy for ingest, analysis and persistence."""


class DocTruyenError(Exception):
    """Base class for all errors raised by doc-truyen."""


class ConfigurationError(DocTruyenError):
    """Required configuration is missing, e.g. no API key for the analysis service.

    Raised before a task is created; nothing is enqueued.
    """


class ServiceError(DocTruyenError):
    """The remote analysis/translation service failed.

    Covers network errors, quota errors and responses that cannot be parsed.
    The message is shown to the user as-is.
    """


class ValidationError(DocTruyenError):
    """User input was rejected before any state was created."""
