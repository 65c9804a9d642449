"""
Render surface protocol definitions.

The view model never paints anything itself. It talks to a surface that
draws the live GraphStore, owns a camera and offers a per-frame
scheduling primitive. echart_surface.EChartSurface implements these on a
NiceGUI ECharts element; tests use small in-memory fakes.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Tuple, runtime_checkable


@dataclass
class CameraState:
    """
    Camera target in graph coordinates.

    x, y: the graph point placed at the centre of the viewport
    ratio: graph units per screen pixel (larger = zoomed out)
    """
    x: float = 0.0
    y: float = 0.0
    ratio: float = 1.0


@runtime_checkable
class Camera(Protocol):
    """Animated pan/zoom plus enable/disable of interactive panning."""

    @property
    def enabled(self) -> bool:
        ...

    def animate(self, state: CameraState, duration: int) -> None:
        """Move to state over duration milliseconds."""
        ...

    def enable(self) -> None:
        ...

    def disable(self) -> None:
        ...


@runtime_checkable
class FrameScheduler(Protocol):
    """Per-frame callback scheduling (requestAnimationFrame equivalent)."""

    def request_frame(self, callback: Callable[[], None]) -> Any:
        """Schedule callback for the next frame and return a handle."""
        ...

    def cancel_frame(self, handle: Any) -> None:
        """Cancel a previously scheduled callback. Unknown handles are ignored."""
        ...


@runtime_checkable
class RenderSurface(Protocol):
    """A surface that draws the live graph."""

    @property
    def camera(self) -> Camera:
        ...

    @property
    def scheduler(self) -> FrameScheduler:
        ...

    def dimensions(self) -> Tuple[float, float]:
        """Viewport (width, height) in pixels."""
        ...

    def refresh(self) -> None:
        """Redraw from the current store state."""
        ...
