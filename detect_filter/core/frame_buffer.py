"""
Frame Buffer — holds the most recent captured frame.

Written by the render callback, read by the tick callback. A single lock
guards the swap and the copy; the expensive conversion of incoming pixels
happens before the lock is taken.
"""
from threading import Lock
from typing import Optional

import numpy as np

from detect_filter.core.events import Frame


class FrameBuffer:
    """
    Thread-safe holder of the latest Frame.

    The held Frame is never handed out: readers always get an independent
    copy, so the producer can replace it at any time.
    """

    def __init__(self):
        self._frame: Optional[Frame] = None
        self._lock = Lock()

    def write(self, pixels, width: int, height: int, bytes_per_pixel: int) -> None:
        """
        Replace the held frame.

        Args:
            pixels: Anything numpy can view as uint8 bytes; copied here.
            width: Frame width in pixels.
            height: Frame height in pixels.
            bytes_per_pixel: Bytes per pixel (4 for BGRA).

        Raises:
            ValueError: If the byte count does not match the geometry.
        """
        if isinstance(pixels, (bytes, bytearray, memoryview)):
            owned = np.frombuffer(pixels, dtype=np.uint8).copy()
        else:
            owned = np.array(pixels, dtype=np.uint8, copy=True).reshape(-1)
        self.write_owned(owned, width, height, bytes_per_pixel)

    def write_owned(self, pixels: np.ndarray, width: int, height: int,
                    bytes_per_pixel: int) -> Frame:
        """
        Replace the held frame with an array the caller gives up.

        The array is frozen read-only and kept without copying; the caller
        must not hold another writable view of it.

        Returns:
            The held Frame (read-only pixels).
        """
        pixels.flags.writeable = False
        frame = Frame(width=width, height=height,
                      bytes_per_pixel=bytes_per_pixel, pixels=pixels)

        with self._lock:
            self._frame = frame
        return frame

    def read_copy(self) -> Optional[Frame]:
        """Return a copy of the latest frame, or None if nothing was captured yet."""
        with self._lock:
            if self._frame is None:
                return None
            return self._frame.copy()

    @property
    def has_frame(self) -> bool:
        with self._lock:
            return self._frame is not None

    def clear(self) -> None:
        """Drop the held frame (filter teardown)."""
        with self._lock:
            self._frame = None
