"""
pgBackRest check exceptions

Errors raised by the probe. Fatal errors carry the process exit status used
by the entry point; validation failures are never raised, they are reported
as a CheckResult.
"""


class ProbeError(Exception):
    """Base exception for all probe errors"""
    exit_status = 3


class ArgumentError(ProbeError):
    """Raised when configuration is invalid or a required value is missing"""
    exit_status = 64


class ExternalToolError(ProbeError):
    """Raised when pgbackrest fails or returns unparsable data"""
    exit_status = 69


class ConnectionError(ProbeError):
    """Raised when a remote session cannot be established or fails"""
    exit_status = 74


class NotFoundError(ProbeError):
    """Raised when no archive or history file can be found"""
    pass


class ParseError(ProbeError):
    """Raised when a WAL filename or history line is malformed"""
    pass
