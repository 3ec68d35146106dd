"""
Plugin module context.

Replaces process-wide statics with one explicit object: the host calls
load() once, creates/destroys filters through it, and calls unload() at
shutdown. Everything a filter needs is injected from here.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import torch

from detect_filter import __version__
from detect_filter.core.bus import EventBus
from detect_filter.core.controller import FilterController
from detect_filter.core.inference import InferenceEngine
from detect_filter.core.protocols import GraphicsContext, ModelBackend, RenderSurface
from detect_filter.core.settings import FilterSettings, PROPERTIES, PropertySpec
from detect_filter.utils.config import Config
from detect_filter.utils.constants import FILTER_ID, FILTER_NAME
from detect_filter.utils.failures import FailureManager
from detect_filter.utils.logger import Logger


@dataclass
class FilterType:
    """Registration record for a filter type."""
    id: str
    name: str
    properties: List[PropertySpec] = field(default_factory=list)
    defaults: Callable[[], Dict[str, Any]] = FilterSettings.defaults


class PluginModule:
    """Process-wide context with an explicit load/unload lifecycle."""

    def __init__(self, config: Optional[Config] = None,
                 backend: Optional[ModelBackend] = None):
        """
        Args:
            config: Application config (defaults to the packaged configs).
            backend: Model-format backend handed to every filter's engine.
        """
        self.config = config or Config()
        self.backend = backend
        self.bus = EventBus()
        self.failures: Optional[FailureManager] = None
        self.filter_types: Dict[str, FilterType] = {}
        self.filters: List[FilterController] = []
        self.logger = Logger("DetectFilter")
        self.loaded = False

    def load(self) -> bool:
        """Configure logging, report the runtime, and register the filter type."""
        if self.loaded:
            return True

        Logger.setup(self.config.get('logging', {}))
        self.failures = FailureManager(self.config.get('failures', {}))
        self.bus.failures = self.failures

        self.logger.info(
            f"plugin loaded successfully (version {__version__}), "
            f"torch version {torch.__version__}, "
            f"cuda: {'yes' if torch.cuda.is_available() else 'no'}"
        )
        self.register(FilterType(id=FILTER_ID, name=FILTER_NAME, properties=list(PROPERTIES)))
        self.loaded = True
        return True

    def register(self, filter_type: FilterType) -> None:
        self.filter_types[filter_type.id] = filter_type
        self.logger.debug(f"Registered filter type '{filter_type.id}'")

    def create_filter(
        self,
        surface: RenderSurface,
        graphics: GraphicsContext,
        settings: Optional[Mapping[str, Any]] = None,
        filter_id: str = FILTER_ID,
    ) -> FilterController:
        """
        Create a filter instance attached to surface.

        Args:
            surface: The source the filter is attached to.
            graphics: Host graphics context.
            settings: Host key/value settings; missing keys use the defaults,
                      then the packaged 'filter' config section.
            filter_id: Registered filter type to instantiate.
        """
        if not self.loaded:
            raise RuntimeError("PluginModule.load() must be called before creating filters")
        if filter_id not in self.filter_types:
            raise KeyError(f"Unknown filter type: {filter_id}")

        values = dict(self.config.get('filter', {}))
        values.update(settings or {})

        controller = FilterController(
            surface=surface,
            graphics=graphics,
            settings=FilterSettings.from_mapping(values),
            engine=InferenceEngine(backend=self.backend, failures=self.failures),
            bus=self.bus,
            failures=self.failures,
        )
        self.filters.append(controller)
        return controller

    def destroy_filter(self, controller: FilterController) -> None:
        controller.destroy()
        if controller in self.filters:
            self.filters.remove(controller)

    def unload(self) -> None:
        """Destroy every filter still alive and reset process-wide state."""
        if not self.loaded:
            return
        for controller in list(self.filters):
            self.destroy_filter(controller)
        self.bus.clear()
        self.filter_types.clear()
        self.loaded = False
        self.logger.info("plugin unloaded")
        Logger.reset()
