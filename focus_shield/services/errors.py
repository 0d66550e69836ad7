"""Common error handling for the focus session engine"""

class ServiceError(Exception):
    """Base exception for all service errors"""
    pass

class ConfigError(ServiceError):
    """Base exception for configuration errors"""
    pass

class SessionError(ServiceError):
    """Base exception for session engine errors"""
    pass

class UsageError(SessionError):
    """Raised synchronously when a caller misuses the engine.

    Nothing is mutated before a usage error is raised.
    """
    pass

class SessionAlreadyActiveError(UsageError):
    """Exception raised when starting while another session is active"""
    pass

class InvalidDurationError(UsageError):
    """Exception raised when a duration is outside the allowed set"""
    pass

class MonitorNotArmedError(UsageError):
    """Exception raised when acting on a disarmed shield monitor"""
    pass

class SequencingError(SessionError):
    """An event arrived in a state where it can never legitimately occur.

    This points at an ordering bug, so it is raised rather than absorbed.
    """
    pass
