"""Errors raised by the assignment engine and their HTTP status codes."""


class AssignmentError(Exception):
    """Base class for all assignment engine errors."""

    status_code = 500


class DecodeError(AssignmentError):
    """Inbound JSON or multipart payload could not be decoded."""

    status_code = 400


class InvalidConfiguration(AssignmentError):
    """A split was requested with an unusable configuration."""

    status_code = 400


class NotFound(AssignmentError):
    """No assignment or submission exists for an identity."""

    status_code = 404


class PersistenceError(AssignmentError):
    """A record could not be written to or read from storage."""

    status_code = 500
