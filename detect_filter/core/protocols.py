"""
Protocol definitions (interfaces) for the detect filter.

These are the capabilities the core consumes from the host: the GPU
rendering engine and the model-format backend. Adapters implement them,
enabling dependency injection and easy testing/swapping.
"""
from contextlib import AbstractContextManager
from typing import Protocol, Optional, Tuple, Any, runtime_checkable

import torch


@runtime_checkable
class GraphicsContext(Protocol):
    """Host graphics context. GPU resources may only be touched inside scope()."""

    def scope(self) -> AbstractContextManager:
        """Enter the graphics context for the duration of a with-block."""
        ...


@runtime_checkable
class RenderSurface(Protocol):
    """The upstream video source as seen from a filter attached to it."""

    def is_enabled(self) -> bool:
        """Whether the source currently produces video."""
        ...

    def get_base_size(self) -> Tuple[int, int]:
        """Base (width, height) of the source; (0, 0) if unknown."""
        ...

    def create_target(self, width: int, height: int) -> Any:
        """Allocate a BGRA render target with a matching staging surface."""
        ...

    def destroy_target(self, target: Any) -> None:
        """Release a render target created by create_target()."""
        ...

    def render_into(self, target: Any) -> bool:
        """Render the source at its base resolution into target."""
        ...

    def map_for_read(self, target: Any) -> Optional[Tuple[Any, int]]:
        """
        Stage the target into host-readable memory and map it.

        Returns:
            (buffer, row_stride) where buffer supports the buffer protocol,
            or None if mapping failed.
        """
        ...

    def unmap(self, target: Any) -> None:
        """Unmap a buffer returned by map_for_read()."""
        ...


@runtime_checkable
class ModelBackend(Protocol):
    """Interface for any model-format backend (TorchScript, ...)."""

    def load(self, path: str, device: torch.device) -> Any:
        """
        Deserialize the model at path onto device.

        Returns:
            An executable object with __call__(tensor), to(device) and eval().

        Raises:
            Any exception on a missing, corrupt or incompatible file.
        """
        ...
