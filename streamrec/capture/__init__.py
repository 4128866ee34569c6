"""
Capture module for the stream recorder.

Handles rtmpdump workers, health monitoring and capture supervision.
"""

from .worker import CaptureWorker, build_rtmpdump_command, spawn_worker
from .health_check import HealthChecker, create_health_checker
from .supervisor import CaptureSupervisor, create_supervisor

__all__ = [
    'CaptureWorker',
    'build_rtmpdump_command',
    'spawn_worker',
    'HealthChecker',
    'create_health_checker',
    'CaptureSupervisor',
    'create_supervisor',
]
