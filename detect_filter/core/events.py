"""
Typed messages for the detect filter.

Pipeline values (Frame, InferenceResult) cross the render/tick boundary;
bus events (ConditionDetected, ModelStatusChanged) are low-frequency
notifications for whoever embeds the filter.
"""
from dataclasses import dataclass, field
import time
import numpy as np

from detect_filter.utils.constants import NOT_READY


# ─── Pipeline Values ─────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class Frame:
    """A captured video frame: raw pixel bytes plus geometry.

    ``pixels`` is a flat uint8 array of exactly
    ``width * height * bytes_per_pixel`` bytes, with no row padding.
    """
    width: int
    height: int
    bytes_per_pixel: int
    pixels: np.ndarray
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        expected = self.width * self.height * self.bytes_per_pixel
        if self.pixels.dtype != np.uint8 or self.pixels.ndim != 1:
            raise ValueError("Frame pixels must be a flat uint8 array")
        if self.pixels.size != expected:
            raise ValueError(
                f"Frame pixel buffer holds {self.pixels.size} bytes, expected "
                f"{expected} ({self.width}x{self.height}x{self.bytes_per_pixel})"
            )

    def copy(self) -> "Frame":
        """Return a Frame that owns an independent copy of the pixels."""
        return Frame(
            width=self.width,
            height=self.height,
            bytes_per_pixel=self.bytes_per_pixel,
            pixels=self.pixels.copy(),
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class InferenceResult:
    """Score produced by one tick, or the NOT_READY sentinel."""
    score: float = NOT_READY
    timestamp: float = field(default_factory=time.time)

    @property
    def ready(self) -> bool:
        return self.score != NOT_READY

    @classmethod
    def not_ready(cls) -> "InferenceResult":
        return cls(score=NOT_READY)


# ─── Event Bus Events ────────────────────────────────────────────────────

@dataclass
class ConditionDetected:
    """Published when a tick's score reaches the confidence threshold."""
    score: float
    threshold: float
    model_path: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class ModelStatusChanged:
    """Published after every model load, failed load or unload."""
    path: str = ""
    loaded: bool = False
    device: str = ""
    error: str = ""
    timestamp: float = field(default_factory=time.time)
