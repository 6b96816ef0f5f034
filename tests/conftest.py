from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


BUILD_SUCCESS = 0
BUILD_ERROR = -2


class FakeError(Exception):
    pass


class FakeMemoryObjectHolder:
    pass


class FakeBuffer(FakeMemoryObjectHolder):
    pass


class FakeSampler:
    pass


class FakeLocalMemory:
    def __init__(self, size):
        self.size = size


class FakeDevice:
    def __init__(self, name="fake device"):
        self.name = name


class FakeEvent:
    def __init__(self):
        self.waited = False

    def wait(self):
        self.waited = True


class FakeQueue:
    def __init__(self):
        self.finished = False

    def finish(self):
        self.finished = True


class FakeProgram:
    def __init__(self, context, source):
        self.context = context
        self.source = source
        self.options = None
        self.devices = None
        self.log = str()

    def build(self, options=None, devices=None):
        self.options = options
        self.devices = devices
        if "#error" in self.source:
            self.log = "<kernel>:1:1: error: #error directive"
            raise FakeError("build program failure")
        return self

    def get_build_info(self, device, param):
        if param == "log":
            return self.log
        if param == "status":
            return BUILD_ERROR if self.log else BUILD_SUCCESS
        raise FakeError(f"unknown build info {param}")


class FakeKernel:
    def __init__(self, program, name):
        self.program = program
        self.name = name
        self.args = dict()

    def set_arg(self, index, value):
        self.args[index] = value


def make_fake_cl():
    launches = list()

    def enqueue_nd_range_kernel(queue, kernel, global_size, local_size, wait_for=None):
        event = FakeEvent()
        launches.append(
            SimpleNamespace(
                queue=queue,
                kernel=kernel,
                global_size=global_size,
                local_size=local_size,
                wait_for=wait_for,
                event=event,
            )
        )
        return event

    return SimpleNamespace(
        Error=FakeError,
        Program=FakeProgram,
        Kernel=FakeKernel,
        LocalMemory=FakeLocalMemory,
        MemoryObjectHolder=FakeMemoryObjectHolder,
        Buffer=FakeBuffer,
        Sampler=FakeSampler,
        Device=FakeDevice,
        CommandQueue=FakeQueue,
        Event=FakeEvent,
        program_build_info=SimpleNamespace(LOG="log", STATUS="status"),
        build_status=SimpleNamespace(SUCCESS=BUILD_SUCCESS, ERROR=BUILD_ERROR),
        enqueue_nd_range_kernel=enqueue_nd_range_kernel,
        launches=launches,
    )


@pytest.fixture
def fake_cl(monkeypatch):
    """
    Replace pyopencl in the wrapper runtime with an in-memory fake.
    """
    from clwrap.kernel import library

    cl = make_fake_cl()
    monkeypatch.setattr(library, "cl", cl)
    return cl
