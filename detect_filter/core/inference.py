"""
Inference Engine — owns the single loaded model.

Load is synchronous and cheap to repeat: asking for the model that is
already loaded does nothing. Device placement is decided once per load and
stored on the ModelHandle; infer() never re-checks it.
"""
from dataclasses import dataclass
import math
from pathlib import Path
from typing import Any, Callable, Optional

import torch

from detect_filter.core.protocols import ModelBackend
from detect_filter.utils.constants import NOT_READY, TARGET_CLASS_INDEX
from detect_filter.utils.failures import FailureManager, ModelLoadFailure
from detect_filter.utils.logger import Logger


def select_device() -> torch.device:
    """Accelerator if one is available, CPU otherwise."""
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


@dataclass(frozen=True)
class ModelHandle:
    """Identity and placement of the engine's current model."""
    path: str
    loaded: bool
    device: torch.device


class TorchScriptBackend:
    """Loads TorchScript archives (``*.pt``) saved with torch.jit.save."""

    def load(self, path: str, device: torch.device) -> Any:
        if not Path(path).is_file():
            raise FileNotFoundError(f"Model file not found: {path}")
        return torch.jit.load(path, map_location=device)


class InferenceEngine:
    """
    Single-model inference with explicit lifecycle.

    Not thread-safe by itself: the FilterController serializes load() and
    infer() so a model is never swapped under a running forward pass.
    """

    def __init__(
        self,
        backend: Optional[ModelBackend] = None,
        device_selector: Callable[[], torch.device] = select_device,
        failures: Optional[FailureManager] = None,
    ):
        """
        Args:
            backend: Model-format backend (defaults to TorchScript).
            device_selector: Called once per load to pick the device.
            failures: Optional shared failure tracker.
        """
        self.backend = backend or TorchScriptBackend()
        self.device_selector = device_selector
        self.failures = failures
        self.logger = Logger("InferenceEngine")

        self._model: Any = None
        self._handle: Optional[ModelHandle] = None
        self.load_count = 0

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def handle(self) -> Optional[ModelHandle]:
        return self._handle

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None and self._handle.loaded

    @property
    def device(self) -> Optional[torch.device]:
        return self._handle.device if self._handle else None

    def load(self, path: str) -> bool:
        """
        Load the model at path, replacing the current one.

        Returns:
            True if the model at path is loaded afterwards. Never raises:
            on failure the engine is left unloaded and the error is logged.
        """
        path = path or ""
        if self.is_loaded and self._handle.path == path:
            return True

        self.unload()
        if not path:
            self.logger.info("No model path configured, engine unloaded")
            return False

        device = self.device_selector()
        self.logger.info(f"Loading model from {path} on {device}")

        try:
            model = self._load_model(path, device)
        except ModelLoadFailure as e:
            self.logger.error(f"Error loading the model: {e.message}")
            if self.failures is not None:
                self.failures.record_failure(e)
            self._handle = ModelHandle(path=path, loaded=False, device=device)
            return False

        self._model = model
        self._handle = ModelHandle(path=path, loaded=True, device=device)
        self.logger.info(f"Model loaded successfully on {device}: {path}")
        return True

    def _load_model(self, path: str, device: torch.device) -> Any:
        self.load_count += 1
        try:
            model = self.backend.load(path, device)
            model.to(device)
            model.eval()
        except Exception as e:
            raise ModelLoadFailure(path, str(e)) from e
        return model

    def unload(self) -> None:
        """Drop the current model (if any)."""
        if self._handle is not None and self._handle.loaded:
            self.logger.info(f"Model unloaded: {self._handle.path}")
        self._model = None
        self._handle = None

    # ── Inference ────────────────────────────────────────────────────

    def infer(self, tensor: torch.Tensor) -> float:
        """
        Run one forward pass.

        Args:
            tensor: Batched input from the Preprocessor.

        Returns:
            Score in [0, 1], or NOT_READY if no model is loaded, the
            forward pass failed or it produced NaN/inf.
        """
        if not self.is_loaded:
            return NOT_READY

        try:
            with torch.no_grad():
                output = self._model(tensor.to(self._handle.device))
            return self._to_score(output)
        except Exception as e:
            self.logger.error(f"Inference error: {e}")
            if self.failures is not None:
                self.failures.record_failure(e)
            return NOT_READY

    @staticmethod
    def _to_score(output: Any) -> float:
        """Reduce the model output to the target-class probability."""
        if isinstance(output, (tuple, list)):
            output = output[0]

        logits = output.detach().to("cpu", torch.float32).reshape(-1)
        if logits.numel() == 0:
            raise RuntimeError("model produced an empty output")

        if logits.numel() == 1:
            score = logits[0].item()
        else:
            score = torch.softmax(logits, dim=0)[TARGET_CLASS_INDEX].item()

        if not math.isfinite(score):
            raise RuntimeError(f"model produced a non-finite score ({score})")
        return min(max(score, 0.0), 1.0)
