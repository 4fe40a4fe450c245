"""Error types raised inside the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class UpstreamTransportError(RelayError):
    """The upstream stream connection failed. Always followed by a reconnect."""


class FrameDecodeError(RelayError):
    """A frame could not be decoded as JSON. The frame is still forwarded."""


class DownstreamSendError(RelayError):
    """A send to one subscriber failed. Only that subscriber is dropped."""

    def __init__(self, remote: str, cause: BaseException | None = None) -> None:
        self.remote = remote
        self.cause = cause
        super().__init__(f"send to {remote} failed: {cause!r}")


class UpstreamQueryError(RelayError):
    """A REST call to the exchange failed or returned an unparseable body."""

    def __init__(self, message: str, *, endpoint: str, parse_failure: bool = False) -> None:
        self.endpoint = endpoint
        self.parse_failure = parse_failure
        super().__init__(message)


class QueryValidationError(RelayError):
    """A required query parameter is missing."""
