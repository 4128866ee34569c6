"""
Custom exceptions for the stream recorder.
"""


class RecorderError(Exception):
    """Base exception for all recorder errors."""
    pass


class ConfigurationError(RecorderError):
    """Raised when configuration is invalid or missing."""
    pass


class StartupError(RecorderError):
    """Raised when the recorder cannot prepare its working directories."""
    pass


class SiteError(RecorderError):
    """Raised when talking to the streaming site fails."""
    pass


class LoginError(SiteError):
    """Raised when the site rejects our credentials."""
    pass


class NegotiationError(RecorderError):
    """Raised when stream negotiation for a target fails."""

    def __init__(self, message: str, target: str = ''):
        super().__init__(message)
        self.target = target


class ParameterNotFound(NegotiationError):
    """Raised when an expected marker is missing from a model page."""

    def __init__(self, parameter: str, target: str = ''):
        super().__init__(f"{parameter} is unavailable", target)
        self.parameter = parameter


class TargetOfflineError(NegotiationError):
    """Raised when the stream server reports the model as offline."""
    pass


class AlreadyJoinedError(NegotiationError):
    """Raised when another session for the model already exists."""
    pass


class NegotiationTimeout(NegotiationError):
    """Raised when negotiation does not finish in time."""
    pass


class CaptureError(RecorderError):
    """Raised when capture process operations fail."""
    pass


class SpawnError(CaptureError):
    """Raised when the capture process cannot be started."""
    pass
