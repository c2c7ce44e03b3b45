# citenet/errors.py

from __future__ import annotations

from typing import Optional


class CitenetError(RuntimeError):
    """
    Base class for every failure the engine reports.

    `identifier` carries the offending id or query when it is known so that
    user-facing messages can name it.
    """

    def __init__(self, message: str, *, identifier: Optional[str] = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class InvalidIdentifier(CitenetError):
    """A seed or list entry is not a usable identifier for the active provider."""


class NotFound(CitenetError):
    """The provider has no record for the requested id."""


class NoReferenceData(CitenetError):
    """The seed resolved but has an empty reference list, so there is nothing to build."""


class MalformedUpstreamRecord(CitenetError):
    """A single record in an otherwise valid response could not be parsed."""


class ProviderRequestFailed(CitenetError):
    """
    Batch-level failure: network error, rate limit, auth failure or a rejected query.
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: Optional[str] = None,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message, identifier=identifier)
        self.status_code = status_code
        self.url = url


class SessionError(CitenetError):
    """A session index or handle does not refer to an open session."""
