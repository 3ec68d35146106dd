"""
Host driver stages for running the filter outside a media host.

The two host callbacks are driven by independent threads:

    RenderStage → controller.video_render()   (per rendered frame)
    TickStage   → controller.video_tick()     (fixed logical rate)

They never call into each other; the FrameBuffer is their only meeting point.
"""
from .render import RenderStage
from .tick import TickStage

__all__ = ["RenderStage", "TickStage"]
