import copy
import random

import pytest

from graph_explorer.config import DEFAULT_GRAPH_CONFIG
from graph_explorer.errors import LayoutUnavailable
from graph_explorer.graph_store import GraphStore
from graph_explorer.surface import CameraState


class FakeCamera:
    def __init__(self):
        self.enabled = True
        self.animations = []

    def animate(self, state: CameraState, duration: int) -> None:
        self.animations.append((state, duration))

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False


class FakeScheduler:
    """Frames only run when the test calls run_frame()."""

    def __init__(self):
        self.pending = {}
        self._next = 1

    def request_frame(self, callback):
        handle = self._next
        self._next += 1
        self.pending[handle] = callback
        return handle

    def cancel_frame(self, handle):
        self.pending.pop(handle, None)

    def run_frame(self):
        callbacks = list(self.pending.values())
        self.pending.clear()
        for callback in callbacks:
            callback()
        return len(callbacks)


class FakeSurface:
    def __init__(self, width=1000, height=800):
        self.camera = FakeCamera()
        self.scheduler = FakeScheduler()
        self.size = (width, height)
        self.refreshes = 0

    def dimensions(self):
        return self.size

    def refresh(self):
        self.refreshes += 1


class FailingLayered:
    """Layered layout collaborator that is never available."""

    def __init__(self):
        self.calls = 0

    async def __call__(self, request):
        self.calls += 1
        raise LayoutUnavailable("not installed")


@pytest.fixture
def config():
    return copy.deepcopy(DEFAULT_GRAPH_CONFIG)


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def failing_layered():
    return FailingLayered()
