"""
Health checking for active captures.

Decides whether a capture is still alive by sampling the size of its output.
"""

import time
from typing import Callable, Optional

from ..utils.config import Config
from ..utils.logger import get_logger
from ..state.models import CaptureRecord, CheckResult


logger = get_logger(__name__)


class HealthChecker:
    """
    Two-tier file growth policy for capture processes.

    A capture is first sampled shortly after start to catch early failures,
    then at a coarser interval so bursty writes are not mistaken for a
    stall. No growth between two samples means the process is terminated;
    the record itself is left for the exit handler to remove.
    """

    def __init__(
        self,
        first_check_delay: float = 60,
        check_interval: float = 600,
        kill_grace: float = 30,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize health checker.

        Args:
            first_check_delay: Seconds from start until the first sample
            check_interval: Seconds between samples once output grows
            kill_grace: Seconds after SIGTERM before sending SIGKILL
            clock: Monotonic time source
        """
        self.first_check_delay = first_check_delay
        self.check_interval = check_interval
        self.kill_grace = kill_grace
        self.clock = clock

    def now(self) -> float:
        return self.clock()

    def schedule_first(self, record: CaptureRecord, now: Optional[float] = None) -> None:
        """Arm the first check of a freshly started capture."""
        now = self.now() if now is None else now
        record.started_at = now
        record.last_observed_size = 0
        record.next_check_at = now + self.first_check_delay

    def check(self, record: CaptureRecord, now: Optional[float] = None) -> CheckResult:
        """
        Sample a capture and act on the result.

        Args:
            record: Capture to check
            now: Current monotonic time

        Returns:
            CheckResult describing what was observed
        """
        now = self.now() if now is None else now

        if record.terminate_sent_at is not None:
            return self._escalate(record, now)

        if not record.is_due(now):
            logger.debug(f"{record.target} - OK")
            return CheckResult.NOT_DUE

        logger.debug(f"{record.target} should be checked")

        try:
            size = record.output_path.stat().st_size
        except FileNotFoundError:
            # The exit handler owns cleanup of captures without output
            logger.debug(f"{record.target} - {record.filename} does not exist yet")
            return CheckResult.MISSING
        except OSError as e:
            logger.error(f"[{record.target}] {e}")
            return CheckResult.ERROR

        if size > record.last_observed_size:
            logger.debug(f"{record.target} - OK ({size} bytes)")
            record.mark_growing(size, now, self.check_interval)
            return CheckResult.GROWING

        logger.error(f"[{record.target}] Process is dead")
        record.worker.terminate()
        record.mark_terminating(now)
        return CheckResult.STALLED

    def _escalate(self, record: CaptureRecord, now: float) -> CheckResult:
        if now - record.terminate_sent_at < self.kill_grace:
            return CheckResult.STALLED

        logger.warning(f"[{record.target}] Process ignored termination, killing")
        record.worker.kill()
        return CheckResult.KILLED


def create_health_checker(config: Config, clock: Callable[[], float] = time.monotonic) -> HealthChecker:
    """
    Factory function to create health checker.

    Args:
        config: Recorder configuration
        clock: Monotonic time source

    Returns:
        HealthChecker instance
    """
    health_config = config.get_health_config()
    return HealthChecker(
        first_check_delay=health_config.get('first_check_delay', 60),
        check_interval=health_config.get('check_interval', 600),
        kill_grace=health_config.get('kill_grace', 30),
        clock=clock,
    )
