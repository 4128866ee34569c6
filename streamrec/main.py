"""
Main entry point for the stream recorder.

Runs the scan loop: discover online models, start captures, health-check
running captures, sleep, repeat.
"""

import asyncio
import signal
import sys
from typing import Awaitable, Callable, Iterable, Optional

import click

from .utils.config import Config, load_config
from .utils.logger import setup_from_config, get_logger
from .utils.exceptions import ConfigurationError, StartupError
from .state.models import CheckResult, CycleStats
from .capture.supervisor import CaptureSupervisor, create_supervisor
from .site.client import create_session, create_site_client
from .site.negotiator import create_negotiator
from .site.resolver import resolve_targets


logger = get_logger(__name__)


ListOnline = Callable[[], Awaitable[Iterable]]


def ensure_directories(config: Config) -> None:
    """
    Create the capture and complete directories.

    Raises:
        StartupError: If a directory cannot be created
    """
    for directory in (config.get_capture_directory(), config.get_complete_directory()):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StartupError(f"Cannot create directory {directory}: {e}")


class ScanLoop:
    """
    Periodic driver of the supervisor.

    Each cycle lists online models, reconciles captures and runs a health
    check. A failing cycle is logged and the loop carries on.
    """

    def __init__(
        self,
        supervisor: CaptureSupervisor,
        list_online: ListOnline,
        allow_list: Optional[Iterable[str]] = None,
        interval: float = 30
    ):
        """
        Initialize scan loop.

        Args:
            supervisor: Capture supervisor
            list_online: Coroutine returning the current online listing
            allow_list: Models to record (empty = all)
            interval: Seconds between cycles
        """
        self.supervisor = supervisor
        self.list_online = list_online
        self.allow_list = list(allow_list or [])
        self.interval = interval

        self._stop_event = asyncio.Event()
        self.cycles = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    async def run_cycle(self) -> CycleStats:
        """Run one discovery, reconcile and health-check pass."""
        stats = CycleStats()
        logger.debug("Start searching for new models")

        try:
            listing = await self.list_online()
            targets = resolve_targets(listing, self.allow_list)
            stats.online = len(targets)

            new_targets = [t for t in targets if not self.supervisor.is_capturing(t.name)]
            stats.skipped = stats.online - len(new_targets)

            started = await self.supervisor.reconcile(new_targets)
            stats.started = len(started)
            stats.failed = len(new_targets) - stats.started
        except Exception as e:
            logger.error(f"Scan failed: {e}")

        # Runs even when discovery failed so stalled captures are still caught
        try:
            results = self.supervisor.health_check()
            stats.checked = sum(1 for r in results.values() if r is not CheckResult.NOT_DUE)
            stats.stalled = sum(1 for r in results.values() if r in (CheckResult.STALLED, CheckResult.KILLED))
        except Exception as e:
            logger.exception(f"Health check error: {e}")

        stats.active = len(self.supervisor)
        self.cycles += 1

        self.supervisor.dump()
        logger.debug(f"Cycle stats: {stats.to_dict()}")

        return stats

    async def run(self) -> None:
        """Run cycles until stop() is called."""
        while not self.stopped:
            await self.run_cycle()

            if self.stopped:
                break

            logger.info(f"Done, will search for new models in {self.interval} second(s).")

            try:
                await asyncio.wait_for(self._stop_event.wait(), self.interval)
            except asyncio.TimeoutError:
                pass


class Recorder:
    """
    Top-level orchestrator.

    Wires the site client, negotiator, supervisor and scan loop together
    and owns their lifecycle.
    """

    def __init__(self, config: Config):
        """
        Initialize recorder with configuration.

        Args:
            config: Recorder configuration
        """
        self.config = config
        self.scan_loop: Optional[ScanLoop] = None
        self.supervisor: Optional[CaptureSupervisor] = None

    def _setup_signals(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            signame = signal.Signals(signum).name
            logger.info(f"Received {signame}, initiating shutdown...")
            if self.scan_loop:
                self.scan_loop.stop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Windows event loops
                signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(signal_handler, s))

    async def run(self) -> None:
        """Main run loop."""
        logger.info("=" * 50)
        logger.info("Starting stream recorder")
        logger.info("=" * 50)
        logger.info(f"Capture directory: {self.config.get_capture_directory()}")
        logger.info(f"Complete directory: {self.config.get_complete_directory()}")

        async with create_session(self.config) as session:
            site = create_site_client(self.config, session)
            negotiator = create_negotiator(self.config, session)
            self.supervisor = create_supervisor(self.config, negotiator.negotiate)

            async def list_online():
                await site.login()
                return await site.get_favourites()

            self.scan_loop = ScanLoop(
                self.supervisor,
                list_online,
                allow_list=self.config.get_allow_list(),
                interval=self.config.get_scan_interval(),
            )

            self._setup_signals()

            try:
                await self.scan_loop.run()
            finally:
                await self.supervisor.shutdown()

        logger.info("Recorder stopped")


@click.command()
@click.option(
    '--config', '-c',
    default='config.yaml',
    help='Path to configuration file'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug logging'
)
def main(config: str, debug: bool):
    """
    Stream recorder

    Records favourite models with rtmpdump while they are online.
    """
    try:
        cfg = load_config(config)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    logging_config = cfg.get_logging_config()
    if debug:
        logging_config = {**logging_config, 'debug': True}
    setup_from_config(logging_config)

    try:
        ensure_directories(cfg)
    except StartupError as e:
        logger.error(str(e))
        sys.exit(1)

    recorder = Recorder(cfg)

    try:
        asyncio.run(recorder.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Recorder error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
