from __future__ import annotations


class FeedExtractionError(Exception):
    """Extraction for one identity could not complete."""


class SessionError(FeedExtractionError):
    """No valid authenticated browser session is available."""


class RenderTimeout(FeedExtractionError):
    """The feed container never became visible within the wait window."""
