"""
NiceGUI render surface: draws the GraphStore on a ui.echart element and
implements the camera and frame scheduler on top of it.

The camera is emulated with the graph series' center/zoom options; there
is no native camera animation in ECharts, so animate() interpolates over
frames from the scheduler.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from nicegui import ui

from graph_explorer.chart_builder import build_echart_options, camera_to_view, data_extent
from graph_explorer.graph_store import GraphStore
from graph_explorer.surface import CameraState

logger = logging.getLogger(__name__)


def ease_quadratic_in_out(t: float) -> float:
    if t < 0.5:
        return 2 * t * t
    return -1 + (4 - 2 * t) * t


class TimerFrameScheduler:
    """Per-frame callbacks as one-shot ui.timer instances parented to an element."""

    def __init__(self, parent: ui.element, interval: float = 1 / 60):
        self.parent = parent
        self.interval = interval

    def request_frame(self, callback: Callable[[], None]) -> Any:
        with self.parent:
            return ui.timer(self.interval, callback, once=True)

    def cancel_frame(self, handle: Any) -> None:
        if handle is None:
            return
        handle.cancel()


class EChartCamera:
    def __init__(self, surface: 'EChartSurface'):
        self.surface = surface
        self.state = CameraState()
        self._enabled = True
        self._animation: Any = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        if not self._enabled:
            self._enabled = True
            self.surface.refresh()

    def disable(self) -> None:
        if self._enabled:
            self._enabled = False
            self.surface.refresh()

    def animate(self, state: CameraState, duration: int) -> None:
        scheduler = self.surface.scheduler
        scheduler.cancel_frame(self._animation)
        self._animation = None
        if duration <= 0:
            self.state = CameraState(state.x, state.y, state.ratio)
            self.surface.refresh()
            return

        start = CameraState(self.state.x, self.state.y, self.state.ratio)
        started_at = time.monotonic()

        def step():
            t = min((time.monotonic() - started_at) * 1000 / duration, 1.0)
            k = ease_quadratic_in_out(t)
            self.state = CameraState(
                x=start.x + (state.x - start.x) * k,
                y=start.y + (state.y - start.y) * k,
                ratio=start.ratio + (state.ratio - start.ratio) * k,
            )
            self.surface.refresh()
            self._animation = scheduler.request_frame(step) if t < 1.0 else None

        self._animation = scheduler.request_frame(step)


class EChartSurface:
    """RenderSurface implementation backed by a NiceGUI ui.echart element."""

    def __init__(
        self,
        chart: ui.echart,
        store: GraphStore,
        config: Dict,
        dimensions: Tuple[float, float] = (1280, 800),
    ):
        self.chart = chart
        self.store = store
        self.config = config
        self._dimensions = dimensions
        self._scheduler = TimerFrameScheduler(chart, config['animations']['frame_interval'])
        self._camera = EChartCamera(self)

    @property
    def camera(self) -> EChartCamera:
        return self._camera

    @property
    def scheduler(self) -> TimerFrameScheduler:
        return self._scheduler

    def dimensions(self) -> Tuple[float, float]:
        return self._dimensions

    def set_dimensions(self, width: float, height: float) -> None:
        if width > 0 and height > 0:
            self._dimensions = (float(width), float(height))
        else:
            logger.debug(f"Ignoring viewport size {width}x{height}")

    def screen_to_graph(self, x: float, y: float) -> Tuple[float, float]:
        """Viewport pixel -> graph coordinates under the current camera."""
        width, height = self._dimensions
        cam = self._camera.state
        return cam.x + (x - width / 2) * cam.ratio, cam.y + (y - height / 2) * cam.ratio

    def refresh(self) -> None:
        view = camera_to_view(self._camera.state, data_extent(self.store), self._dimensions)
        options = build_echart_options(self.store, self.config, roam=self._camera.enabled, view=view)
        self.chart.options.clear()
        self.chart.options.update(options)
        self.chart.update()
