from __future__ import annotations


class TermstoryError(Exception):
    """Base class for errors raised by this package."""


class ProtocolError(TermstoryError):
    """A frame from the backend could not be decoded.

    The message is what gets rendered as the error line; the connection stays open.
    """

