from __future__ import annotations


class SupervisorError(RuntimeError):
    """Base class for every error raised by the supervisor."""


class ConstructionError(SupervisorError):
    """Invalid layer shape or activation; aborts startup."""


class RestoreError(SupervisorError):
    """Corrupt or unreadable snapshot; aborts startup."""


class DataLoadError(SupervisorError):
    """Unreadable or malformed training data."""


class RequestParseError(SupervisorError):
    """Malformed interactive request. Recoverable: the serve loop keeps going."""


class MissingInputError(RequestParseError):
    """Request carried no input vector."""


class ExportError(SupervisorError):
    """Final state could not be serialized or written."""
