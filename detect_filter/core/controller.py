"""
Filter Controller — one detect filter instance attached to a source.

Exposes the two host callbacks and the settings hook:

    video_render()   render thread  -> FrameCapture -> FrameBuffer
    video_tick(s)    tick thread    -> FrameBuffer copy -> Preprocessor -> InferenceEngine
    update(...)      config thread  -> InferenceEngine.load() when the path changed

Ticks and model (re)loads share one lock, so a model is never replaced
while a forward pass is running. The render path never takes that lock.
"""
from threading import RLock
from typing import Optional

from detect_filter.core.bus import EventBus
from detect_filter.core.capture import FrameCapture
from detect_filter.core.events import InferenceResult, ConditionDetected, ModelStatusChanged
from detect_filter.core.frame_buffer import FrameBuffer
from detect_filter.core.inference import InferenceEngine
from detect_filter.core.preprocessor import Preprocessor
from detect_filter.core.protocols import GraphicsContext, RenderSurface
from detect_filter.core.settings import FilterSettings
from detect_filter.utils.failures import FailureManager, FrameFormatError
from detect_filter.utils.logger import Logger


class FilterController:
    """Orchestrates capture, preprocessing and inference for one filter."""

    def __init__(
        self,
        surface: RenderSurface,
        graphics: GraphicsContext,
        settings: Optional[FilterSettings] = None,
        engine: Optional[InferenceEngine] = None,
        bus: Optional[EventBus] = None,
        failures: Optional[FailureManager] = None,
    ):
        self.logger = Logger("FilterController")
        self.failures = failures or FailureManager()
        self.bus = bus or EventBus(self.failures)

        self.frame_buffer = FrameBuffer()
        self.capture = FrameCapture(surface, graphics, self.frame_buffer, self.failures)
        self.engine = engine or InferenceEngine(failures=self.failures)
        if self.engine.failures is None:
            self.engine.failures = self.failures

        self._lock = RLock()
        self._settings = FilterSettings()
        self._preprocessor = Preprocessor(self._settings.preprocess)
        self._destroyed = False

        self.update(settings or FilterSettings())

    @property
    def settings(self) -> FilterSettings:
        return self._settings

    # ── Settings hook ────────────────────────────────────────────────

    def update(self, settings: FilterSettings) -> None:
        """Apply new settings; reloads the model only if its path changed."""
        with self._lock:
            if settings.preprocess != self._preprocessor.variant:
                self._preprocessor = Preprocessor(settings.preprocess)
                self.logger.info(f"Preprocessing variant: {settings.preprocess.value}")

            handle = self.engine.handle
            current_path = handle.path if handle else ""
            path_changed = settings.model_path != current_path
            if path_changed or (settings.model_path and not self.engine.is_loaded):
                self._load_model(settings.model_path)

            self._settings = settings

    def update_config(self, model_path: str, threshold: float, log: bool,
                      preprocess=None) -> None:
        """Keyword-free variant of update() for hosts passing raw values."""
        changes = {"model_path": model_path, "confidence_threshold": threshold, "log": log}
        if preprocess is not None:
            changes["preprocess"] = preprocess
        self.update(self._settings.with_changes(**changes))

    def _load_model(self, path: str) -> None:
        loaded = self.engine.load(path)
        handle = self.engine.handle
        self.bus.publish(ModelStatusChanged(
            path=path,
            loaded=loaded,
            device=str(handle.device) if handle else "",
            error="" if loaded or not path else "load failed",
        ))

    # ── Host callbacks ───────────────────────────────────────────────

    def video_render(self) -> bool:
        """Render callback: snapshot the source. Returns True if a frame was captured."""
        if self._destroyed:
            return False
        return self.capture.capture() is not None

    def video_tick(self, seconds: float = 0.0) -> InferenceResult:
        """
        Tick callback: score the latest captured frame.

        Args:
            seconds: Time since the previous tick (unused; ticks are stateless).

        Returns:
            The score, or a NOT_READY result when there is no frame yet,
            no model, or the frame could not be preprocessed.
        """
        frame = self.frame_buffer.read_copy()
        if frame is None:
            return InferenceResult.not_ready()

        with self._lock:
            if self._destroyed or not self.engine.is_loaded:
                return InferenceResult.not_ready()
            settings = self._settings

            try:
                tensor = self._preprocessor.normalize(frame)
            except FrameFormatError as e:
                self.logger.error(f"Cannot preprocess frame: {e.message}")
                self.failures.record_failure(e)
                return InferenceResult.not_ready()

            result = InferenceResult(score=self.engine.infer(tensor))

        if not result.ready:
            return result

        if settings.log:
            self.logger.info(f"confidence: {result.score:f}")
        else:
            self.logger.debug(f"confidence: {result.score:f}")

        if result.score >= settings.confidence_threshold:
            self.bus.publish(ConditionDetected(
                score=result.score,
                threshold=settings.confidence_threshold,
                model_path=settings.model_path,
            ))
        return result

    # ── Teardown ─────────────────────────────────────────────────────

    def destroy(self) -> None:
        """Release GPU resources, the held frame and the model."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            self.capture.close()
            self.frame_buffer.clear()
            self.engine.unload()
        self.logger.info("Filter destroyed")
