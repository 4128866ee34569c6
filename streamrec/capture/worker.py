"""
rtmpdump capture worker.

Runs one rtmpdump process per model and reports when it exits.
"""

import asyncio
import os
import re
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from ..utils.exceptions import SpawnError
from ..utils.logger import get_logger, get_process_logger
from ..state.models import CaptureDescriptor


logger = get_logger(__name__)
output_logger = get_process_logger()


ExitCallback = Callable[['CaptureWorker'], Union[None, Awaitable[None]]]

OUTPUT_CHUNK_SIZE = 4096
MAX_LINE_LENGTH = 65536
LINE_BREAK = re.compile(rb'\r\n|\r|\n')


def build_rtmpdump_command(
    descriptor: CaptureDescriptor,
    output_path: Path,
    page_url: str,
    swf_url: str,
    binary: str = 'rtmpdump',
    app: str = 'liveedge',
    verbose: bool = False
) -> list[str]:
    """
    Build the rtmpdump argument list for a live capture.

    Args:
        descriptor: Negotiated server address and play path
        output_path: FLV file to write
        page_url: Model page URL sent as --pageUrl
        swf_url: Player SWF URL sent as -s
        binary: rtmpdump executable
        app: RTMP application name
        verbose: Keep rtmpdump output instead of passing --quiet

    Returns:
        Command list suitable for exec
    """
    cmd = [binary, '--live', '-a', app]

    if not verbose:
        cmd.append('--quiet')

    cmd.extend([
        '-s', swf_url,
        '--rtmp', f"rtmp://{descriptor.server_address}/{app}",
        '--pageUrl', page_url,
        '--playpath', descriptor.play_path,
        '--flv', str(output_path),
    ])

    return cmd


class CaptureWorker:
    """
    Wraps a single capture subprocess.

    Output lines are forwarded to the process output logger. The exit callback fires
    exactly once, after the process has exited and its pipes are drained;
    the exit code is logged but carries no meaning for the recorder.
    """

    def __init__(self, target: str, command: list[str], on_exit: Optional[ExitCallback] = None):
        """
        Initialize worker.

        Args:
            target: Model name, used as log prefix
            command: Full argv of the capture process
            on_exit: Called with this worker once the process is gone
        """
        self.target = target
        self.command = command
        self.on_exit = on_exit

        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        """
        Start the capture process.

        Raises:
            SpawnError: If already started or the binary cannot be executed
        """
        if self._process is not None:
            raise SpawnError(f"Worker for {self.target} already started")

        if not shutil.which(self.command[0]):
            logger.warning(f"{self.command[0]} not found in PATH")

        logger.debug(f"[{self.target}] Starting: {' '.join(self.command)}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Own session so a Ctrl+C on the daemon does not reach workers
                start_new_session=os.name != 'nt'
            )
        except FileNotFoundError:
            raise SpawnError(f"{self.command[0]} not found")
        except OSError as e:
            raise SpawnError(f"Failed to start {self.command[0]}: {e}")

        logger.debug(f"[{self.target}] Capture process started (PID: {self._process.pid})")

        self._watcher = asyncio.create_task(
            self._watch(),
            name=f"capture-{self.target}"
        )

    async def _pump(self, stream: Optional[asyncio.StreamReader]) -> None:
        """
        Forward process output to the log until EOF.

        rtmpdump redraws its progress with bare carriage returns, so output
        is read in chunks and split on both line breaks rather than with
        readline(), which fails on long runs without a newline.
        """
        if stream is None:
            return
        pending = b''
        while True:
            chunk = await stream.read(OUTPUT_CHUNK_SIZE)
            if not chunk:
                break
            *lines, pending = LINE_BREAK.split(pending + chunk)
            if len(pending) > MAX_LINE_LENGTH:
                lines.append(pending)
                pending = b''
            for line in lines:
                self._log_output(line)
        self._log_output(pending)

    def _log_output(self, line: bytes) -> None:
        text = line.decode('utf-8', errors='replace').strip()
        if text:
            output_logger.info(f"[{self.target}] {text}")

    async def _watch(self) -> None:
        """Drain output, wait for exit and notify."""
        process = self._process
        results = await asyncio.gather(
            self._pump(process.stdout),
            self._pump(process.stderr),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"[{self.target}] Failed to read process output: {result}")

        # The exit handler must never run while the process still writes
        code = await process.wait()
        logger.debug(f"[{self.target}] Capture process {process.pid} exited with code {code}")
        await self._notify()

    async def _notify(self) -> None:
        if self.on_exit is None:
            return
        try:
            result = self.on_exit(self)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.exception(f"[{self.target}] Exit handler failed: {e}")

    def terminate(self) -> bool:
        """
        Send SIGTERM to the capture process.

        Returns:
            False if the process was already gone
        """
        return self._signal('terminate')

    def kill(self) -> bool:
        """Send SIGKILL to the capture process."""
        return self._signal('kill')

    def _signal(self, method: str) -> bool:
        if not self.is_running:
            return False
        try:
            getattr(self._process, method)()
            return True
        except ProcessLookupError:
            # Process already dead
            return False

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the exit callback has run.

        Returns:
            True if the worker finished within timeout
        """
        if self._watcher is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self._watcher), timeout)
            return True
        except asyncio.TimeoutError:
            return False


async def spawn_worker(target: str, command: list[str], on_exit: Optional[ExitCallback] = None) -> CaptureWorker:
    """
    Factory coroutine: create and start a capture worker.

    Args:
        target: Model name
        command: Capture process argv
        on_exit: Exit callback

    Returns:
        Started CaptureWorker
    """
    worker = CaptureWorker(target, command, on_exit)
    await worker.start()
    return worker
