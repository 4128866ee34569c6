"""
In-memory registry of active captures.

Single source of truth for which models are currently being recorded.
"""

import threading
from typing import Iterator, Optional

from .models import CaptureRecord
from ..utils.logger import get_logger


logger = get_logger(__name__)


class CaptureRegistry:
    """
    Thread-safe mapping of model name to its active capture.

    At most one record exists per model. Every mutation happens under a
    single lock so exit handlers and health checks never interleave.
    """

    def __init__(self):
        self._records: dict[str, CaptureRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, target: str) -> bool:
        with self._lock:
            return target in self._records

    def __iter__(self) -> Iterator[CaptureRecord]:
        return iter(self.snapshot())

    def get(self, target: str) -> Optional[CaptureRecord]:
        with self._lock:
            return self._records.get(target)

    def add(self, record: CaptureRecord) -> bool:
        """
        Register a new capture.

        Args:
            record: Record with a running worker

        Returns:
            False if the model already has an active capture
        """
        with self._lock:
            if record.target in self._records:
                return False
            self._records[record.target] = record
            return True

    def remove(self, record: CaptureRecord) -> bool:
        """
        Remove a capture if it is still the one registered for its model.

        Returns:
            True if the record was removed
        """
        with self._lock:
            current = self._records.get(record.target)
            if current is not record:
                return False
            del self._records[record.target]
            return True

    def is_registered(self, record: CaptureRecord) -> bool:
        with self._lock:
            return self._records.get(record.target) is record

    def snapshot(self) -> list[CaptureRecord]:
        """Copy of the current records, safe to iterate."""
        with self._lock:
            return list(self._records.values())

    def targets(self) -> set[str]:
        with self._lock:
            return set(self._records)
