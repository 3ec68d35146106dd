"""Video Surface Handler - plays a video file as the filter's upstream source.

Implements the RenderSurface protocol for the standalone host driver: each
render decodes the next frame into a BGRA "texture", and map_for_read()
stages it into a row-padded buffer the way a GPU staging surface would.
"""
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from detect_filter.utils.constants import STRIDE_ALIGNMENT
from detect_filter.utils.logger import Logger


def aligned_stride(width: int, bytes_per_pixel: int = 4, alignment: int = STRIDE_ALIGNMENT) -> int:
    """Row pitch of a staging surface: width * bpp rounded up to alignment."""
    row = width * bytes_per_pixel
    return (row + alignment - 1) // alignment * alignment


class HostGraphicsContext:
    """Process-wide graphics lock standing in for the host's enter/leave graphics."""

    def __init__(self):
        self._lock = threading.RLock()

    @contextmanager
    def scope(self):
        with self._lock:
            yield


@dataclass
class VideoTarget:
    """Render target plus its staging surface."""
    width: int
    height: int
    stride: int
    texture: np.ndarray = field(repr=False)
    staging: np.ndarray = field(repr=False)
    mapped: bool = False


class VideoSurfaceHandler:
    """Handles video file input as a render surface.

    Implements the RenderSurface protocol:
        is_enabled() / get_base_size()
        create_target() / destroy_target()
        render_into() / map_for_read() / unmap()
    """

    def __init__(self, video_path: str, loop_video: bool = True):
        """
        Args:
            video_path: Path to the video file.
            loop_video: Restart from the first frame on EOF instead of disabling.
        """
        self.video_path = video_path
        self.loop_video = loop_video
        self.logger = Logger("VideoSurfaceHandler")
        self.cap: Optional[cv2.VideoCapture] = None
        self.finished = threading.Event()
        self._enabled = False
        self._size: Tuple[int, int] = (0, 0)
        self.fps = 0.0

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> bool:
        """Open the video file for reading."""
        if not Path(self.video_path).exists():
            self.logger.error(f"Video file not found: {self.video_path}")
            return False

        self.cap = cv2.VideoCapture(self.video_path)
        if not self.cap.isOpened():
            self.logger.error(f"Failed to open video file: {self.video_path}")
            return False

        self._size = (
            int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )
        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 0.0
        self._enabled = True
        self.finished.clear()
        self.logger.info(
            f"Video file opened: {self.video_path} "
            f"({self._size[0]}x{self._size[1]} @ {self.fps:.1f} FPS)"
        )
        return True

    def stop(self) -> None:
        """Release the video capture resources."""
        self._enabled = False
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self.logger.info("Video capture released")

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    # ── RenderSurface protocol ────────────────────────────────────────

    def is_enabled(self) -> bool:
        return self._enabled and self.cap is not None

    def get_base_size(self) -> Tuple[int, int]:
        return self._size

    def create_target(self, width: int, height: int) -> VideoTarget:
        stride = aligned_stride(width)
        return VideoTarget(
            width=width,
            height=height,
            stride=stride,
            texture=np.zeros((height, width, 4), dtype=np.uint8),
            staging=np.zeros((height, stride), dtype=np.uint8),
        )

    def destroy_target(self, target: VideoTarget) -> None:
        target.texture = None
        target.staging = None

    def render_into(self, target: VideoTarget) -> bool:
        """Decode the next frame and draw it into the target texture as BGRA."""
        frame = self._next_frame()
        if frame is None:
            return False

        if frame.shape[1] != target.width or frame.shape[0] != target.height:
            frame = cv2.resize(frame, (target.width, target.height))
        cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA, dst=target.texture)
        return True

    def map_for_read(self, target: VideoTarget) -> Optional[Tuple[memoryview, int]]:
        """Stage the texture into the padded buffer and expose it read-only."""
        if target.texture is None or target.mapped:
            return None
        row_bytes = target.width * 4
        target.staging[:, :row_bytes] = target.texture.reshape(target.height, row_bytes)
        target.mapped = True
        return memoryview(target.staging).cast("B").toreadonly(), target.stride

    def unmap(self, target: VideoTarget) -> None:
        target.mapped = False

    # ── Internals ─────────────────────────────────────────────────────

    def _next_frame(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None

        ret, frame = self.cap.read()
        if ret:
            return frame

        if self.loop_video:
            self.logger.info("Video ended — looping back to start")
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self.cap.read()
            if ret:
                return frame

        self.logger.info("Video playback finished")
        self._enabled = False
        self.finished.set()
        return None
