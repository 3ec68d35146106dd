"""
Frame Capture — snapshots the upstream source on every render callback.

Renders the source into a BGRA target, stages it into host memory, copies
the rows out (skipping the row padding of the staging surface) and hands
the owned copy to the FrameBuffer. All GPU work and the buffer swap happen
inside the host's graphics scope, which close() also takes.
"""
from typing import Any, Optional, Tuple

import numpy as np

from detect_filter.core.events import Frame
from detect_filter.core.frame_buffer import FrameBuffer
from detect_filter.core.protocols import GraphicsContext, RenderSurface
from detect_filter.utils.failures import CaptureUnavailable, FailureManager
from detect_filter.utils.logger import Logger


def copy_strided_rows(buffer, width: int, height: int, row_stride: int) -> Tuple[np.ndarray, int]:
    """
    Copy a mapped image out of a (possibly padded) staging buffer.

    Args:
        buffer: Mapped bytes (anything supporting the buffer protocol).
        width: Image width in pixels.
        height: Image height in pixels.
        row_stride: Bytes between the starts of consecutive rows.

    Returns:
        (pixels, bytes_per_pixel) with pixels a new flat uint8 array of
        exactly width * height * bytes_per_pixel bytes.

    Raises:
        CaptureUnavailable: If the stride or buffer size is inconsistent.
    """
    bytes_per_pixel = row_stride // width
    if bytes_per_pixel <= 0:
        raise CaptureUnavailable(f"row stride {row_stride} too small for width {width}")

    flat = np.frombuffer(buffer, dtype=np.uint8)
    row_bytes = width * bytes_per_pixel
    needed = (height - 1) * row_stride + row_bytes
    if flat.size < needed:
        raise CaptureUnavailable(
            f"mapped buffer holds {flat.size} bytes, need {needed} "
            f"for {width}x{height} at stride {row_stride}"
        )

    rows = np.lib.stride_tricks.as_strided(
        flat, shape=(height, row_bytes), strides=(row_stride, 1), writeable=False
    )
    return rows.copy().reshape(-1), bytes_per_pixel


class FrameCapture:
    """
    Render-callback side of the filter.

    Owns the GPU render target exclusively; recreates it when the source
    size changes and destroys it in close().
    """

    def __init__(
        self,
        surface: RenderSurface,
        graphics: GraphicsContext,
        frame_buffer: FrameBuffer,
        failures: Optional[FailureManager] = None,
    ):
        """
        Args:
            surface: The upstream source (render-surface collaborator).
            graphics: Host graphics context guarding GPU resources.
            frame_buffer: Destination of every successful capture.
            failures: Optional shared failure tracker.
        """
        self.surface = surface
        self.graphics = graphics
        self.frame_buffer = frame_buffer
        self.failures = failures
        self.logger = Logger("FrameCapture")

        self._target: Any = None
        self._target_size: Tuple[int, int] = (0, 0)
        self._closed = False

    def capture(self) -> Optional[Frame]:
        """
        Snapshot the source into the FrameBuffer.

        Returns:
            The held Frame (read-only pixels), or None if nothing was
            captured this tick (the FrameBuffer keeps its previous frame).
        """
        try:
            return self._capture_into_buffer()
        except CaptureUnavailable as e:
            self.logger.debug(f"Capture unavailable: {e.message}")
            if self.failures is not None:
                self.failures.record_failure(e)
            return None

    def _capture_into_buffer(self) -> Frame:
        if not self.surface.is_enabled():
            raise CaptureUnavailable("source disabled")

        width, height = self.surface.get_base_size()
        if width <= 0 or height <= 0:
            raise CaptureUnavailable(f"source has no size ({width}x{height})")

        with self.graphics.scope():
            # close() may have run while this render was outside the scope
            if self._closed:
                raise CaptureUnavailable("capture closed")

            target = self._ensure_target(width, height)

            if not self.surface.render_into(target):
                raise CaptureUnavailable("render into target failed")

            mapped = self.surface.map_for_read(target)
            if mapped is None:
                raise CaptureUnavailable("staging surface map failed")

            buffer, row_stride = mapped
            try:
                pixels, bytes_per_pixel = copy_strided_rows(buffer, width, height, row_stride)
            finally:
                self.surface.unmap(target)

            # Still inside the scope, so a concurrent close() cannot slip in
            # between this write and its own teardown
            return self.frame_buffer.write_owned(pixels, width, height, bytes_per_pixel)

    def _ensure_target(self, width: int, height: int) -> Any:
        """Return a render target of the given size. Caller holds the graphics scope."""
        if self._target is not None and self._target_size != (width, height):
            self.logger.debug(
                f"Source resized {self._target_size[0]}x{self._target_size[1]} "
                f"-> {width}x{height}, recreating render target"
            )
            self.surface.destroy_target(self._target)
            self._target = None

        if self._target is None:
            self._target = self.surface.create_target(width, height)
            self._target_size = (width, height)
            if self._target is None:
                raise CaptureUnavailable(f"could not create {width}x{height} render target")

        return self._target

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Destroy the render target inside the graphics scope; later captures are refused."""
        with self.graphics.scope():
            self._closed = True
            if self._target is None:
                return
            self.surface.destroy_target(self._target)
            self._target = None
            self._target_size = (0, 0)
        self.logger.debug("Render target destroyed")
