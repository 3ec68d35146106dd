import pytest

from detect_filter.core.events import ConditionDetected
from detect_filter.core.registry import PluginModule
from detect_filter.utils.config import Config

from conftest import FakeSurface, MeanModel, StubBackend, solid_bgra


@pytest.fixture
def module(tmp_path):
    config = Config(str(tmp_path), load_env=False)
    config.set("logging.file", False)
    config.set("filter.confidence_threshold", 0.3)
    plugin = PluginModule(config, backend=StubBackend({"mean.pt": MeanModel()}))
    yield plugin
    plugin.unload()


def test_create_requires_load(module, graphics, surface):
    with pytest.raises(RuntimeError):
        module.create_filter(surface, graphics)


def test_load_registers_filter_type(module):
    assert module.load() is True
    assert module.load() is True
    filter_type = module.filter_types["detect_filter"]
    assert filter_type.name == "Detect filter"
    assert filter_type.defaults()["confidence_threshold"] == 0.2
    assert {p.key for p in filter_type.properties} == {
        "model_path", "confidence_threshold", "log", "preprocess",
    }


def test_unknown_filter_type(module, graphics, surface):
    module.load()
    with pytest.raises(KeyError):
        module.create_filter(surface, graphics, filter_id="blur_filter")


def test_filter_settings_layer_host_over_config(module, graphics, surface):
    module.load()
    controller = module.create_filter(surface, graphics, {"log": True})

    assert controller.settings.confidence_threshold == 0.3
    assert controller.settings.log is True
    assert controller.failures is module.failures
    assert controller.engine.failures is module.failures


def test_filters_share_the_module_bus(module, graphics):
    module.load()
    seen = []
    module.bus.subscribe(ConditionDetected, seen.append)

    surface = FakeSurface(graphics, solid_bgra(8, 8, 255))
    controller = module.create_filter(surface, graphics, {"model_path": "mean.pt"})
    controller.video_render()
    controller.video_tick()

    assert len(seen) == 1


def test_unload_destroys_live_filters(module, graphics, surface):
    module.load()
    controller = module.create_filter(surface, graphics, {"model_path": "mean.pt"})
    controller.video_render()

    module.unload()

    assert module.filters == []
    assert not module.loaded
    assert surface.destroyed == 1
    assert not controller.engine.is_loaded
