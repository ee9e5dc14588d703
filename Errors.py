"""Exceptions raised by the FarmSmart host."""


class FarmSmartError(Exception):
    """Base error for the FarmSmart host."""


class ParseFailure(FarmSmartError):
    """Payload could not be interpreted in the expected shape."""


class NotConnected(FarmSmartError):
    """A command was issued while the message bus is down."""


class TransportError(FarmSmartError):
    """The message bus refused or failed an operation."""


class DatabaseUnavailable(FarmSmartError):
    """The database could not be opened."""
