"""Error taxonomy shared by the fetch, dedup, notify, and ingest paths."""

from __future__ import annotations


class QwestyError(Exception):
    """Base class for all qwesty errors."""


class AuthError(QwestyError):
    """A credential was missing or rejected."""


class UpstreamError(QwestyError):
    """The quest API could not be queried or returned an unusable response."""


class TransientError(UpstreamError):
    """Network failure, rate limit, or 5xx. The next scheduled tick retries."""


class UpstreamAuthError(UpstreamError, AuthError):
    """The upstream token was rejected. Fatal for the whole process."""


class StorageError(QwestyError):
    """The seen-set could not be loaded or persisted. Fatal."""


class MalformedRequestError(QwestyError):
    """An ingest body failed structural validation."""


class ForwardError(QwestyError):
    """An agent could not hand a batch to the collector."""


class DeliveryError(QwestyError):
    """A single (record, sink) webhook delivery failed."""

    def __init__(self, message: str, *, sink=None, record=None) -> None:
        super().__init__(message)
        self.sink = sink
        self.record = record
