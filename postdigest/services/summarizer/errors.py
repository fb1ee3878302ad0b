from __future__ import annotations


class SummarizerError(Exception):
    """A summarization attempt failed; the attempt may be retried."""

    reason = "service_error"


class SummarizerRateLimitError(SummarizerError):
    """The generation service returned 429."""

    reason = "rate_limited"


class SummarizerServiceError(SummarizerError):
    """Network failure or a non-429 error status from the service."""

    reason = "service_error"


class SummarizerMalformedResponseError(SummarizerError):
    """The reply was not a JSON object with both title and summary."""

    reason = "malformed_response"
