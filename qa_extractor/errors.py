"""Exception hierarchy shared by the pipelines, providers and API."""


class QAExtractorError(Exception):
    """Base class for all project errors."""

    pass


class ConfigurationError(QAExtractorError):
    """A required credential, endpoint or external tool is missing.

    Raised before any per-item work starts, so the whole job fails.
    """

    pass


class ProviderError(QAExtractorError):
    """LLM provider call failed after every credential was tried."""

    pass


class ProviderHTTPError(ProviderError):
    """Single provider response with a non-success status."""

    def __init__(self, status: int, body: str = "", retry_after: str | None = None):
        self.status = status
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"Provider request failed ({status}): {body[:300]}")


class ItemProcessingError(QAExtractorError):
    """One input item could not be processed; the run continues."""

    pass


class ContentFetchError(ItemProcessingError):
    """An assignment link could not be fetched or decoded."""

    pass


class PipelineError(QAExtractorError):
    """A run produced zero output rows from a non-empty input."""

    pass


class JobCancelledError(QAExtractorError):
    """Raised by a job's control handle once cancellation was requested."""

    def __init__(self, message: str = "Cancelled by user."):
        super().__init__(message)
