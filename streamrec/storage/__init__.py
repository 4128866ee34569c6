"""
Storage module for the stream recorder.

Handles post-processing of finished captures.
"""

from .finalizer import ArtifactFinalizer, create_finalizer, destination_for, finalize

__all__ = [
    'ArtifactFinalizer',
    'create_finalizer',
    'destination_for',
    'finalize',
]
