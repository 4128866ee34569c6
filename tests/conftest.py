"""
Shared fixtures and fakes for recorder tests.
"""

import asyncio
from datetime import datetime
from itertools import count

import pytest

from streamrec.capture.health_check import HealthChecker
from streamrec.capture.supervisor import CaptureSupervisor
from streamrec.state.models import CaptureDescriptor
from streamrec.storage.finalizer import ArtifactFinalizer


_pids = count(1000)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWorker:
    """Stands in for a capture process; exits only when told to."""

    def __init__(self, target, command, on_exit, pid=None):
        self.target = target
        self.command = command
        self.on_exit = on_exit
        self.pid = next(_pids) if pid is None else pid
        self.running = True
        self.terminate_calls = 0
        self.kill_calls = 0

    @property
    def is_running(self):
        return self.running

    def terminate(self):
        self.terminate_calls += 1
        return self.running

    def kill(self):
        self.kill_calls += 1
        return self.running

    def exit(self):
        if self.running:
            self.running = False
            self.on_exit(self)

    async def wait(self, timeout=None):
        if self.terminate_calls or self.kill_calls:
            self.exit()
        return not self.running


class FakeSpawner:
    """Records spawned workers; can be told to fail for some models."""

    def __init__(self):
        self.workers = []
        self.fail_for = set()
        self.no_pid_for = set()

    async def __call__(self, target, command, on_exit):
        if target in self.fail_for:
            from streamrec.utils.exceptions import SpawnError
            raise SpawnError("rtmpdump not found")
        worker = FakeWorker(target, command, on_exit)
        if target in self.no_pid_for:
            worker.pid = None
        self.workers.append(worker)
        return worker

    def for_target(self, target):
        return [w for w in self.workers if w.target == target]


class FakeNegotiator:
    """Returns canned descriptors or raises canned errors per model."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    async def __call__(self, target):
        self.calls.append(target)
        await asyncio.sleep(0)
        result = self.results.get(target)
        if isinstance(result, Exception):
            raise result
        return result or CaptureDescriptor(server_address='10.0.0.1:1935', play_path=f"{target}-pp")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def negotiator():
    return FakeNegotiator()


@pytest.fixture
def dirs(tmp_path):
    capture_dir = tmp_path / "capture"
    complete_dir = tmp_path / "complete"
    capture_dir.mkdir()
    return capture_dir, complete_dir


@pytest.fixture
def supervisor(dirs, clock, spawner, negotiator):
    capture_dir, complete_dir = dirs
    return CaptureSupervisor(
        capture_dir=capture_dir,
        negotiate=negotiator,
        build_command=lambda target, descriptor, path: ['rtmpdump', '--playpath', descriptor.play_path, '--flv', str(path)],
        finalizer=ArtifactFinalizer(complete_dir, min_size_bytes=10),
        health_checker=HealthChecker(first_check_delay=60, check_interval=600, kill_grace=30, clock=clock),
        spawn=spawner,
        wall_clock=lambda: datetime(2024, 1, 2, 3, 4, 5),
    )
