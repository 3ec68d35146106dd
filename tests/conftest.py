"""
Pytest configuration and fixtures.

Fakes for the host collaborators: a render surface backed by a numpy
image, a graphics context that tracks scope depth, and a model backend
that hands out small torch modules and counts loads.
"""
from contextlib import contextmanager

import numpy as np
import pytest
import torch
from torch import nn

from detect_filter.core.inference import InferenceEngine


# ─── Host fakes ──────────────────────────────────────────────────────────

class FakeGraphics:
    """Graphics context that records whether callers are inside scope()."""

    def __init__(self):
        self.depth = 0
        self.entered = 0

    @property
    def active(self) -> bool:
        return self.depth > 0

    @contextmanager
    def scope(self):
        self.depth += 1
        self.entered += 1
        try:
            yield
        finally:
            self.depth -= 1


class FakeSurface:
    """RenderSurface serving a fixed BGRA image through a padded staging buffer."""

    PAD_BYTE = 0xEE

    def __init__(self, graphics: FakeGraphics, image: np.ndarray, padding: int = 0):
        self.graphics = graphics
        self.image = image
        self.padding = padding
        self.enabled = True
        self.render_ok = True
        self.map_ok = True
        self.created = 0
        self.destroyed = 0
        self.unmapped = 0
        self.outside_scope = []

    def _check_scope(self, name):
        if not self.graphics.active:
            self.outside_scope.append(name)

    def is_enabled(self):
        return self.enabled

    def get_base_size(self):
        if self.image is None:
            return 0, 0
        return self.image.shape[1], self.image.shape[0]

    def create_target(self, width, height):
        self._check_scope("create_target")
        self.created += 1
        return {"width": width, "height": height, "texture": None}

    def destroy_target(self, target):
        self._check_scope("destroy_target")
        self.destroyed += 1

    def render_into(self, target):
        self._check_scope("render_into")
        if not self.render_ok:
            return False
        target["texture"] = self.image.copy()
        return True

    def map_for_read(self, target):
        self._check_scope("map_for_read")
        if not self.map_ok:
            return None
        height, width = target["height"], target["width"]
        row_bytes = width * 4
        stride = row_bytes + self.padding
        staging = np.full((height, stride), self.PAD_BYTE, dtype=np.uint8)
        staging[:, :row_bytes] = target["texture"].reshape(height, row_bytes)
        return staging.tobytes(), stride

    def unmap(self, target):
        self._check_scope("unmap")
        self.unmapped += 1


def solid_bgra(width: int, height: int, value: int, alpha: int = 255) -> np.ndarray:
    image = np.full((height, width, 4), value, dtype=np.uint8)
    image[..., 3] = alpha
    return image


def gradient_bgra(width: int, height: int) -> np.ndarray:
    values = np.arange(width * height * 4, dtype=np.uint32) % 251
    return values.astype(np.uint8).reshape(height, width, 4)


# ─── Model fakes ─────────────────────────────────────────────────────────

class MeanModel(nn.Module):
    """Single logit: mean of the B,G,R input channels."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x[:, :3].mean().reshape(1)


class FixedLogitsModel(nn.Module):
    def __init__(self, logits):
        super().__init__()
        self.register_buffer("logits", torch.tensor([logits], dtype=torch.float32))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.logits.expand(x.shape[0], -1)


class RecordingModel(MeanModel):
    """MeanModel that keeps its inputs and the autograd state it ran under."""

    def __init__(self):
        super().__init__()
        self.inputs = []
        self.grad_enabled = []

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        self.inputs.append(x)
        self.grad_enabled.append(torch.is_grad_enabled())
        return super().forward(x)


class StubBackend:
    """ModelBackend returning prepared modules by path; unknown paths fail."""

    def __init__(self, models=None):
        self.models = dict(models or {})
        self.loads = []

    def load(self, path, device):
        self.loads.append((path, device))
        if path not in self.models:
            raise RuntimeError(f"cannot open {path}")
        return self.models[path]


# ─── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def graphics():
    return FakeGraphics()


@pytest.fixture
def surface(graphics):
    return FakeSurface(graphics, gradient_bgra(24, 4), padding=16)


@pytest.fixture
def backend():
    return StubBackend({
        "mean.pt": MeanModel(),
        "two_class.pt": FixedLogitsModel([2.0, 0.0]),
    })


@pytest.fixture
def engine(backend):
    return InferenceEngine(backend=backend, device_selector=lambda: torch.device("cpu"))
