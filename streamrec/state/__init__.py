"""
State management module for the stream recorder.
"""

from .models import (
    CaptureDescriptor,
    CaptureRecord,
    CheckResult,
    CycleStats,
    FinalizeOutcome,
    OnlineTarget,
)
from .registry import CaptureRegistry

__all__ = [
    'CaptureDescriptor',
    'CaptureRecord',
    'CheckResult',
    'CycleStats',
    'FinalizeOutcome',
    'OnlineTarget',
    'CaptureRegistry',
]
