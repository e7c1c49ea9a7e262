from __future__ import annotations


class HNError(Exception):
    """Base class for errors raised by the reader."""


class TransportError(HNError):
    """A request failed: network error, timeout, bad status or undecodable body."""


class MalformedItemError(TransportError):
    """The API answered, but the payload is not a usable item."""


class Cancelled(HNError):
    """The request was superseded before it finished. Not a user-facing error."""
