"""
Preprocessor — turns a captured BGRA Frame into the model input tensor.

Two explicit variants are supported, selected by configuration:

    color      [1, 4, H, W] float32, channels B,G,R,A, values in [0, 1]
    laplacian  [1, 1, H, W] float32, Laplacian of the luminance image

Both are pure functions of the frame bytes. Height always precedes width.
"""
from enum import Enum

import cv2
import numpy as np
import torch

from detect_filter.core.events import Frame
from detect_filter.utils.constants import LUMA_WEIGHTS
from detect_filter.utils.failures import ConfigError, FrameFormatError

BGRA_CHANNELS = 4

LAPLACIAN_KERNEL = np.array(
    [[0, 1, 0],
     [1, -4, 1],
     [0, 1, 0]],
    dtype=np.float32,
)


class PreprocessVariant(str, Enum):
    COLOR = "color"
    LAPLACIAN = "laplacian"

    @classmethod
    def from_name(cls, name) -> "PreprocessVariant":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ConfigError(f"Unknown preprocess variant '{name}' (expected one of: {valid})")


def to_hwc(frame: Frame) -> np.ndarray:
    """View the frame bytes as an [H, W, 4] BGRA image (no copy)."""
    if frame.bytes_per_pixel != BGRA_CHANNELS:
        raise FrameFormatError(
            f"Expected {BGRA_CHANNELS} bytes per pixel (BGRA), got {frame.bytes_per_pixel}"
        )
    return frame.pixels.reshape(frame.height, frame.width, BGRA_CHANNELS)


def scale_unit(image: np.ndarray) -> np.ndarray:
    """uint8 [0, 255] -> float32 [0, 1]."""
    return image.astype(np.float32) / 255.0


def luminance(bgra: np.ndarray) -> np.ndarray:
    """Weighted R,G,B sum of a float [H, W, 4] BGRA image -> [H, W]."""
    r_weight, g_weight, b_weight = LUMA_WEIGHTS
    return (
        r_weight * bgra[..., 2]
        + g_weight * bgra[..., 1]
        + b_weight * bgra[..., 0]
    ).astype(np.float32)


def laplacian(gray: np.ndarray) -> np.ndarray:
    """3x3 discrete Laplacian with a zero border."""
    return cv2.filter2D(gray, cv2.CV_32F, LAPLACIAN_KERNEL, borderType=cv2.BORDER_CONSTANT)


class Preprocessor:
    """Frame -> tensor conversion for one configured variant."""

    def __init__(self, variant=PreprocessVariant.COLOR):
        self.variant = PreprocessVariant.from_name(variant)

    def normalize(self, frame: Frame) -> torch.Tensor:
        """
        Convert a frame into a batched float32 tensor.

        Args:
            frame: A BGRA Frame. It is not modified.

        Returns:
            [1, 4, H, W] for the color variant, [1, 1, H, W] for laplacian.

        Raises:
            FrameFormatError: If the frame is not 4 bytes per pixel.
        """
        image = scale_unit(to_hwc(frame))

        if self.variant is PreprocessVariant.LAPLACIAN:
            edges = laplacian(luminance(image))
            return torch.from_numpy(np.ascontiguousarray(edges))[None, None]

        # HWC -> CHW, then add the batch axis
        chw = np.ascontiguousarray(image.transpose(2, 0, 1))
        return torch.from_numpy(chw).unsqueeze(0)
