"""Typed errors raised by the extraction pipeline and transport layer."""

from typing import Any, Optional


class UpkeepError(Exception):
    """Base exception for all upkeep errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def hint(self) -> str:
        """Human-readable remediation shown to the user."""
        return self.message

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(UpkeepError):
    """Required settings or credentials are missing; the job never starts."""


class UpstreamError(UpkeepError):
    """A capability (search, completion, extraction) failed or returned non-2xx."""

    def __init__(self, capability: str, status: Optional[int], message: str) -> None:
        super().__init__(
            f"{capability} failed ({status if status is not None else 'no response'}): {message}",
            {"capability": capability, "status": status},
        )
        self.capability = capability
        self.status = status


class InfrastructureChallenge(UpkeepError):
    """An HTML challenge page was returned instead of JSON, even after warm-up."""

    def __init__(self, url: str) -> None:
        super().__init__(
            f"Infrastructure challenge persisted for {url}",
            {"url": url},
        )
        self.url = url

    @property
    def hint(self) -> str:
        return (
            f"The network returned a browser check instead of data. Open {self.url} "
            "once in a browser to establish a session, then retry the import."
        )


class MalformedOutput(UpkeepError):
    """A capability returned output that is not JSON or fails schema validation."""

    def __init__(self, capability: str, message: str) -> None:
        super().__init__(f"{capability} returned malformed output: {message}", {"capability": capability})
        self.capability = capability


class EmptyDocument(UpkeepError):
    """The extracted document has no usable text."""


class JobInProgress(UpkeepError):
    """A job was started while another one is still running."""


class ExtractionCancelled(UpkeepError):
    """The caller cancelled the running job."""
