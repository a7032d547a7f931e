# File: lexigraph_app/modules/graph/engine/viewport.py
"""
Viewport Framing
================
Computes a camera target that keeps a set of nodes visible beside an
occluding overlay (the floating study card).

The overlay splits the viewport horizontally: an overlay in the left half
leaves a free band to its right, otherwise the band is to its left. Nodes are
fitted into that band and the camera is shifted so the bounding-box centre
lands on the band centre rather than on the viewport centre.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from lexigraph_app.core.defaults import EngineSettings

from ..schemas import CameraTarget, Rect

Point = Tuple[float, float]


class ViewportFramer:
    def __init__(self, settings: Optional[EngineSettings] = None, overlay: Optional[Rect] = None):
        self.settings = settings or EngineSettings()
        self.overlay = overlay

    def overlay_moved(self, overlay: Optional[Rect]) -> None:
        """Remember the overlay's latest on-screen rectangle (None when hidden)."""
        self.overlay = overlay

    @staticmethod
    def free_band(viewport_width: float, overlay: Optional[Rect]) -> Tuple[float, float]:
        """The unoccluded horizontal span ``(start, end)`` in screen pixels."""
        if overlay is None or overlay.width <= 0:
            return 0.0, viewport_width

        if overlay.center_x < viewport_width / 2:
            start = min(max(overlay.x + overlay.width, 0.0), viewport_width)
            return start, viewport_width

        end = min(max(overlay.x, 0.0), viewport_width)
        return 0.0, end

    def frame(
        self,
        positions: Iterable[Point],
        viewport: Tuple[float, float],
        overlay: Optional[Rect] = None,
        padding: Optional[float] = None,
    ) -> Optional[CameraTarget]:
        """
        Camera target for ``positions`` in a ``(width, height)`` viewport.

        ``overlay`` overrides the stored overlay for this call (live drag
        state). Returns None when no position is finite.
        """
        points = [
            (float(x), float(y)) for x, y in positions
            if x is not None and y is not None and _finite(x) and _finite(y)
        ]
        if not points:
            return None

        s = self.settings
        width, height = viewport
        padding = s.frame_padding if padding is None else padding
        overlay = overlay if overlay is not None else self.overlay

        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        min_x, max_x, min_y, max_y = min(xs), max(xs), min(ys), max(ys)
        bbox_w, bbox_h = max_x - min_x, max_y - min_y
        center_x, center_y = (min_x + max_x) / 2, (min_y + max_y) / 2

        band_start, band_end = self.free_band(width, overlay)
        available_w = (band_end - band_start) - padding * 2
        available_h = height - padding * 2

        if len(points) == 1:
            zoom = s.single_node_zoom
        else:
            # Stacked nodes have zero extent; treat it as one unit.
            zoom = min(available_w / max(bbox_w, 1.0), available_h / max(bbox_h, 1.0))
        zoom = min(max(zoom, s.zoom_min), s.zoom_max)

        band_center = band_start + (band_end - band_start) / 2
        offset = band_center - width / 2
        return CameraTarget(x=center_x - offset / zoom, y=center_y, zoom=zoom)

    def pan_to_anchor(
        self,
        anchor: Point,
        overlay: Rect,
        viewport: Tuple[float, float],
        zoom: float,
    ) -> CameraTarget:
        """
        Keep ``zoom`` and shift the camera so ``anchor`` sits in the band left
        free by a dragged overlay.
        """
        width = viewport[0]
        band_start, band_end = self.free_band(width, overlay)
        band_center = band_start + (band_end - band_start) / 2
        offset = band_center - width / 2
        zoom = zoom or 1.0
        return CameraTarget(x=anchor[0] - offset / zoom, y=anchor[1], zoom=zoom)


def _finite(value) -> bool:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return False
    return v == v and v not in (float('inf'), float('-inf'))
