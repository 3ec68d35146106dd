"""
Detect Filter — standalone host driver

Plays a video file through the filter exactly as a media host would:

    RenderStage → video_render() → FrameCapture → FrameBuffer
    TickStage   → video_tick()   → Preprocessor → InferenceEngine → score
                                                          ↕ EventBus
                                        ConditionDetected / ModelStatusChanged
"""
import argparse
import signal
from threading import Event
from typing import Optional

from detect_filter.core.events import ConditionDetected, ModelStatusChanged
from detect_filter.core.preprocessor import PreprocessVariant
from detect_filter.core.registry import PluginModule
from detect_filter.core.stages import RenderStage, TickStage
from detect_filter.Handlers.Video_Surface_Handler import HostGraphicsContext, VideoSurfaceHandler
from detect_filter.utils.config import Config
from detect_filter.utils.constants import (
    DEFAULT_RENDER_FPS, DEFAULT_TICK_RATE,
    S_MODEL_PATH, S_CONFIDENCE_THRESHOLD, S_LOG, S_PREPROCESS,
)
from detect_filter.utils.logger import Logger


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Detect Filter - real-time video frame classifier")
    parser.add_argument('--video', '-v', type=str, required=True,
                        help='Path to the video file used as the upstream source')
    parser.add_argument('--model', '-m', type=str, default=None,
                        help='Path to a TorchScript model (*.pt)')
    parser.add_argument('--threshold', '-t', type=float, default=None,
                        help='Confidence threshold in [0.01, 1.0]')
    parser.add_argument('--log', action='store_true', default=None,
                        help='Log every confidence score')
    parser.add_argument('--preprocess', choices=[v.value for v in PreprocessVariant], default=None,
                        help='Preprocessing variant fed to the model')
    parser.add_argument('--fps', type=float, default=None,
                        help='Render callback rate (defaults to host.render_fps)')
    parser.add_argument('--tick-rate', type=float, default=None,
                        help='Tick callback rate (defaults to host.tick_rate)')
    parser.add_argument('--no-loop', action='store_true',
                        help='Stop at the end of the video instead of looping')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Directory of JSON config files')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Also write a rotating log file into this directory')
    return parser.parse_args(argv)


class DetectFilterHost:
    """
    Standalone host: one video source, one detect filter, two callback threads.
    """

    def __init__(self, args: argparse.Namespace):
        self.config = Config(args.config)
        if args.log_dir:
            self.config.set('logging.file', True)
            self.config.set('logging.directory', args.log_dir)
        self.module = PluginModule(self.config)
        self.module.load()
        self.logger = Logger("DetectFilterHost")

        self.stop_event = Event()

        self.surface = VideoSurfaceHandler(
            args.video,
            loop_video=not args.no_loop and self.config.get_bool('host.loop_video', True),
        )
        self.graphics = HostGraphicsContext()

        settings = {
            S_MODEL_PATH: args.model,
            S_CONFIDENCE_THRESHOLD: args.threshold,
            S_LOG: args.log,
            S_PREPROCESS: args.preprocess,
        }
        self.module.bus.subscribe(ModelStatusChanged, self._on_model_status)
        self.module.bus.subscribe(ConditionDetected, self._on_condition)
        self.controller = self.module.create_filter(
            self.surface, self.graphics,
            {k: v for k, v in settings.items() if v is not None},
        )

        self.render_stage = RenderStage(
            self.controller, self.stop_event,
            fps=args.fps or self.config.get_float('host.render_fps', DEFAULT_RENDER_FPS),
        )
        self.tick_stage = TickStage(
            self.controller, self.stop_event,
            rate=args.tick_rate or self.config.get_float('host.tick_rate', DEFAULT_TICK_RATE),
        )
        self.detections = 0

        self._setup_signals()

    def _setup_signals(self):
        """Handle OS signals for graceful shutdown."""
        def handler(sig, frame):
            self.logger.info("Shutdown signal received")
            self.stop_event.set()
        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)

    def _on_model_status(self, event: ModelStatusChanged) -> None:
        if event.loaded:
            self.logger.info(f"Model ready on {event.device}: {event.path}")
        elif event.path:
            self.logger.warning(f"Model not loaded: {event.path}")

    def _on_condition(self, event: ConditionDetected) -> None:
        self.detections += 1
        self.logger.info(f"Condition detected: score {event.score:.3f} >= {event.threshold:.2f}")

    def run(self) -> int:
        """Start both callback threads and block until EOF or a signal."""
        if not self.surface.start():
            self.module.unload()
            return 1

        self.render_stage.start()
        self.tick_stage.start()

        while not self.stop_event.is_set():
            if self.surface.finished.wait(0.5):
                self.stop_event.set()

        self.stop()
        return 0

    def stop(self):
        """Join both stages, then tear the filter and module down."""
        self.stop_event.set()
        for stage in (self.render_stage, self.tick_stage):
            if stage.is_alive():
                stage.join(timeout=2.0)

        self.module.unload()
        self.surface.stop()
        self.logger.info(
            f"Host stopped: {self.tick_stage.scored} scored tick(s), "
            f"{self.detections} detection(s)"
        )


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    return DetectFilterHost(args).run()


if __name__ == "__main__":
    raise SystemExit(main())
