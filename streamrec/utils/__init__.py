"""
Utilities module for the stream recorder.
"""

from .config import load_config, Config
from .logger import setup_logging, get_logger, get_process_logger
from .exceptions import (
    RecorderError,
    ConfigurationError,
    StartupError,
    SiteError,
    LoginError,
    NegotiationError,
    ParameterNotFound,
    TargetOfflineError,
    AlreadyJoinedError,
    NegotiationTimeout,
    CaptureError,
    SpawnError,
)

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'get_logger',
    'get_process_logger',
    'RecorderError',
    'ConfigurationError',
    'StartupError',
    'SiteError',
    'LoginError',
    'NegotiationError',
    'ParameterNotFound',
    'TargetOfflineError',
    'AlreadyJoinedError',
    'NegotiationTimeout',
    'CaptureError',
    'SpawnError',
]
