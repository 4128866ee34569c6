"""
Capture supervisor.

Owns the registry of active captures: starts one capture per online model,
health-checks running captures and finalizes their output when they exit.
"""

import asyncio
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Union

from ..utils.config import Config
from ..utils.exceptions import RecorderError, SpawnError
from ..utils.logger import get_logger
from ..state.models import CaptureDescriptor, CaptureRecord, CheckResult, FinalizeOutcome, OnlineTarget
from ..state.registry import CaptureRegistry
from ..storage.finalizer import ArtifactFinalizer, create_finalizer
from .health_check import HealthChecker, create_health_checker
from .worker import build_rtmpdump_command, spawn_worker


logger = get_logger(__name__)


Negotiate = Callable[[str], Awaitable[CaptureDescriptor]]
Spawn = Callable[..., Awaitable]
CommandBuilder = Callable[[str, CaptureDescriptor, Path], list[str]]


class CaptureSupervisor:
    """
    Manages the lifecycle of every capture process.

    Registry membership mirrors running processes: a record is added only
    once its process has a PID, and removed only by that process's exit
    handler. Health checks may signal a process but never remove its record.
    """

    def __init__(
        self,
        capture_dir: Path,
        negotiate: Negotiate,
        build_command: CommandBuilder,
        finalizer: ArtifactFinalizer,
        health_checker: Optional[HealthChecker] = None,
        spawn: Spawn = spawn_worker,
        timestamp_format: str = '%Y-%m-%dT%H%M%S',
        file_extension: str = 'flv',
        wall_clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize supervisor.

        Args:
            capture_dir: Directory in-progress captures are written to
            negotiate: Coroutine returning a CaptureDescriptor for a model
            build_command: Builds the capture argv from model, descriptor and output path
            finalizer: Post-processes finished captures
            health_checker: File growth policy
            spawn: Coroutine starting a worker, called as spawn(target, command, on_exit)
            timestamp_format: strftime format used in capture file names
            file_extension: Capture file extension
            wall_clock: Source of capture start timestamps
        """
        self.capture_dir = Path(capture_dir)
        self.negotiate = negotiate
        self.build_command = build_command
        self.finalizer = finalizer
        self.health_checker = health_checker or HealthChecker()
        self.spawn = spawn
        self.timestamp_format = timestamp_format
        self.file_extension = file_extension
        self.wall_clock = wall_clock

        self.registry = CaptureRegistry()

        # Models whose negotiation or spawn is in flight
        self._pending: set[str] = set()
        self._finalizing: set[asyncio.Future] = set()

    def __len__(self) -> int:
        return len(self.registry)

    def is_capturing(self, target: str) -> bool:
        return target in self.registry

    def snapshot(self) -> list[CaptureRecord]:
        return self.registry.snapshot()

    def output_path_for(self, target: str, started: Optional[datetime] = None) -> Path:
        """
        Build the in-progress capture path for a model.

        Args:
            target: Model name
            started: Capture start time (defaults to now)

        Returns:
            Path inside the capture directory that does not exist yet
        """
        started = started or self.wall_clock()
        stem = f"{target}_{started.strftime(self.timestamp_format)}"
        path = self.capture_dir / f"{stem}.{self.file_extension}"

        # A previous capture of the same model may still be awaiting finalization
        suffix = 1
        while path.exists():
            path = self.capture_dir / f"{stem}-{suffix}.{self.file_extension}"
            suffix += 1

        return path

    async def reconcile(self, candidates: Iterable[Union[str, OnlineTarget]]) -> list[CaptureRecord]:
        """
        Start captures for online models that are not being recorded.

        Negotiations run concurrently; a failure for one model is logged and
        does not affect the others.

        Args:
            candidates: Models eligible for capture

        Returns:
            Records created during this call
        """
        new_targets = []
        for entry in candidates:
            target = entry if isinstance(entry, OnlineTarget) else OnlineTarget(str(entry))

            if target.name in self.registry or target.name in self._pending:
                logger.debug(f"{target.name} is already capturing")
                continue

            self._pending.add(target.name)
            new_targets.append(target)

        if not new_targets:
            return []

        results = await asyncio.gather(
            *(self._start_capture(target) for target in new_targets),
            return_exceptions=True
        )

        started = []
        for target, result in zip(new_targets, results):
            if isinstance(result, BaseException):
                logger.error(f"[{target.name}] {result}")
            elif result is not None:
                started.append(result)

        return started

    async def _start_capture(self, target: OnlineTarget) -> Optional[CaptureRecord]:
        try:
            return await self._negotiate_and_spawn(target)
        except RecorderError as e:
            logger.error(f"[{target.name}] {e}")
        except Exception as e:
            logger.exception(f"[{target.name}] Unexpected error starting capture: {e}")
        finally:
            self._pending.discard(target.name)
        return None

    async def _negotiate_and_spawn(self, target: OnlineTarget) -> Optional[CaptureRecord]:
        descriptor = target.descriptor
        if descriptor is None:
            descriptor = await self.negotiate(target.name)

        logger.info(f"{target.name} is now online, starting capture process")

        self.capture_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_path_for(target.name)
        command = self.build_command(target.name, descriptor, output_path)

        worker = await self.spawn(
            target.name,
            command,
            partial(self._handle_exit, target.name, output_path)
        )

        if worker is None or worker.pid is None:
            raise SpawnError("Capture process did not start")

        record = CaptureRecord(target=target.name, output_path=output_path, worker=worker)
        self.health_checker.schedule_first(record)

        if not self.registry.add(record):
            # Cannot happen while _pending guards the model; do not leak the process
            logger.error(f"[{target.name}] Duplicate capture detected, stopping new process")
            worker.terminate()
            return None

        logger.debug(f"[{target.name}] Capturing to {output_path.name} (PID: {worker.pid})")
        return record

    def health_check(self) -> dict[str, CheckResult]:
        """
        Sample every registered capture once.

        Returns:
            Mapping of model name to check outcome
        """
        results = {}
        now = self.health_checker.now()

        for record in self.registry.snapshot():
            if not self.registry.is_registered(record):
                continue
            try:
                results[record.target] = self.health_checker.check(record, now)
            except Exception as e:
                logger.exception(f"[{record.target}] Health check failed: {e}")
                results[record.target] = CheckResult.ERROR

        return results

    def _handle_exit(self, target: str, output_path: Path, worker) -> None:
        """Exit callback wired into each worker."""
        record = self.registry.get(target)

        if record is not None and record.worker is worker:
            self.on_worker_exit(record)
        else:
            logger.info(f"{target} stopped streaming")
            self._schedule_finalize(target, output_path)

    def on_worker_exit(self, record: CaptureRecord) -> None:
        """
        Drop a finished capture from the registry and finalize its output.

        Removal happens before any file I/O so the next reconcile can start
        a fresh capture of the same model right away.
        """
        self.registry.remove(record)
        logger.info(f"{record.target} stopped streaming")
        self._schedule_finalize(record.target, record.output_path)

    def _schedule_finalize(self, target: str, output_path: Path) -> None:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self.finalizer.finalize_capture, target, output_path)
        self._finalizing.add(future)
        future.add_done_callback(partial(self._finalize_done, target))

    def _finalize_done(self, target: str, future: asyncio.Future) -> None:
        self._finalizing.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"[{target}] Finalize failed: {error}")
        elif future.result() is FinalizeOutcome.FAILED:
            logger.warning(f"[{target}] Capture left in {self.capture_dir}")

    async def wait_finalized(self) -> None:
        """Wait for every scheduled finalization to complete."""
        while self._finalizing:
            await asyncio.gather(*list(self._finalizing), return_exceptions=True)

    def dump(self) -> None:
        """Log active captures at debug level."""
        for record in self.registry.snapshot():
            logger.debug(f"{record.pid}\t{record.next_check_at}\t{record.filename}")

    async def shutdown(self, timeout: float = 10) -> None:
        """
        Stop every capture and wait for finalization.

        Args:
            timeout: Seconds to wait for processes after SIGTERM before SIGKILL
        """
        records = self.registry.snapshot()
        if records:
            logger.info(f"Stopping {len(records)} capture(s)...")

        for record in records:
            record.worker.terminate()

        finished = await asyncio.gather(*(record.worker.wait(timeout) for record in records))

        for record, done in zip(records, finished):
            if not done:
                logger.warning(f"[{record.target}] Capture process not responding, force killing...")
                record.worker.kill()
                await record.worker.wait(timeout)

        await self.wait_finalized()


def create_supervisor(
    config: Config,
    negotiate: Negotiate,
    finalizer: Optional[ArtifactFinalizer] = None,
    health_checker: Optional[HealthChecker] = None
) -> CaptureSupervisor:
    """
    Factory function to create a supervisor from configuration.

    Args:
        config: Recorder configuration
        negotiate: Negotiation coroutine
        finalizer: Optional finalizer override
        health_checker: Optional health policy override

    Returns:
        CaptureSupervisor instance
    """
    base_url = config.get('site.base_url', 'http://showup.tv').rstrip('/')
    swf_url = config.get('site.swf_url', f"{base_url}/flash/suStreamer.swf")
    binary = config.get('capture.rtmpdump_path', 'rtmpdump')
    verbose = bool(config.get('capture.rtmp_debug', False))

    def build_command(target: str, descriptor: CaptureDescriptor, output_path: Path) -> list[str]:
        return build_rtmpdump_command(
            descriptor,
            output_path,
            page_url=f"{base_url}/{target}",
            swf_url=swf_url,
            binary=binary,
            verbose=verbose,
        )

    return CaptureSupervisor(
        capture_dir=config.get_capture_directory(),
        negotiate=negotiate,
        build_command=build_command,
        finalizer=finalizer or create_finalizer(config),
        health_checker=health_checker or create_health_checker(config),
        timestamp_format=config.get_timestamp_format(),
        file_extension=config.get('capture.file_extension', 'flv'),
    )
