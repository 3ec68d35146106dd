import math

import pytest
import torch

from detect_filter.core.inference import InferenceEngine, ModelHandle, TorchScriptBackend
from detect_filter.utils.constants import NOT_READY
from detect_filter.utils.failures import FailureManager

from conftest import FixedLogitsModel, MeanModel, RecordingModel, StubBackend


def test_never_loaded_engine_returns_sentinel_without_computing():
    model = RecordingModel()
    engine = InferenceEngine(backend=StubBackend({"m.pt": model}))

    assert not engine.is_loaded
    assert engine.infer(torch.ones(1, 4, 2, 2)) == NOT_READY
    assert model.inputs == []
    assert engine.load_count == 0


def test_loading_same_path_twice_loads_once(engine, backend):
    assert engine.load("mean.pt") is True
    assert engine.load("mean.pt") is True

    assert engine.load_count == 1
    assert len(backend.loads) == 1
    assert engine.handle == ModelHandle(path="mean.pt", loaded=True, device=torch.device("cpu"))


def test_device_is_selected_once_per_load():
    calls = []

    def selector():
        calls.append(1)
        return torch.device("cpu")

    engine = InferenceEngine(backend=StubBackend({"mean.pt": MeanModel()}), device_selector=selector)
    engine.load("mean.pt")
    for _ in range(3):
        engine.infer(torch.zeros(1, 4, 2, 2))

    assert len(calls) == 1
    assert engine.device == torch.device("cpu")


def test_load_puts_model_in_eval_mode(engine, backend):
    backend.models["mean.pt"].train()
    engine.load("mean.pt")
    assert backend.models["mean.pt"].training is False


def test_invalid_path_leaves_engine_unloaded():
    failures = FailureManager()
    engine = InferenceEngine(backend=StubBackend(), failures=failures,
                             device_selector=lambda: torch.device("cpu"))

    assert engine.load("missing.pt") is False
    assert not engine.is_loaded
    assert engine.handle.path == "missing.pt"
    assert engine.infer(torch.zeros(1, 4, 2, 2)) == NOT_READY
    assert failures.count("ModelLoadFailure") == 1


def test_failed_reload_of_other_path_unloads_previous_model(engine):
    engine.load("mean.pt")
    assert engine.load("broken.pt") is False

    assert not engine.is_loaded
    assert engine.infer(torch.ones(1, 4, 2, 2)) == NOT_READY


def test_failed_path_can_be_retried(engine, backend):
    assert engine.load("later.pt") is False
    backend.models["later.pt"] = MeanModel()
    assert engine.load("later.pt") is True
    assert engine.load_count == 2


def test_empty_path_unloads(engine, backend):
    engine.load("mean.pt")
    assert engine.load("") is False
    assert engine.handle is None
    assert len(backend.loads) == 1


def test_single_logit_is_returned_as_score(engine):
    engine.load("mean.pt")
    assert engine.infer(torch.full((1, 4, 3, 3), 0.25)) == pytest.approx(0.25)


def test_multiple_logits_use_softmax_of_first_class(engine):
    engine.load("two_class.pt")
    expected = math.exp(2.0) / (math.exp(2.0) + math.exp(0.0))
    assert engine.infer(torch.zeros(1, 4, 2, 2)) == pytest.approx(expected, rel=1e-5)


def test_score_is_clamped_to_unit_interval():
    engine = InferenceEngine(
        backend=StubBackend({"neg.pt": FixedLogitsModel([-3.0]), "big.pt": FixedLogitsModel([7.0])}),
        device_selector=lambda: torch.device("cpu"),
    )
    engine.load("neg.pt")
    assert engine.infer(torch.zeros(1, 1, 2, 2)) == 0.0
    engine.load("big.pt")
    assert engine.infer(torch.zeros(1, 1, 2, 2)) == 1.0


@pytest.mark.parametrize("logits", [[float("nan")], [float("inf")], [float("inf"), 0.0], [float("nan"), 1.0]])
def test_non_finite_output_returns_sentinel(logits):
    failures = FailureManager()
    engine = InferenceEngine(
        backend=StubBackend({"bad.pt": FixedLogitsModel(logits)}),
        device_selector=lambda: torch.device("cpu"),
        failures=failures,
    )
    engine.load("bad.pt")

    assert engine.infer(torch.zeros(1, 4, 2, 2)) == NOT_READY
    assert failures.count("RuntimeError") == 1


def test_inference_runs_without_gradients(engine, backend):
    model = RecordingModel()
    backend.models["rec.pt"] = model
    engine.load("rec.pt")

    engine.infer(torch.ones(1, 4, 2, 2))
    assert model.grad_enabled == [False]
    assert torch.is_grad_enabled()


def test_forward_error_returns_sentinel(engine, backend):
    engine.load("mean.pt")
    # MeanModel slices channels, so a 1-D input fails inside forward
    assert engine.infer(torch.zeros(3)) == NOT_READY


def test_torchscript_backend_round_trip(tmp_path):
    path = tmp_path / "mean.pt"
    torch.jit.save(torch.jit.script(MeanModel()), str(path))

    engine = InferenceEngine(device_selector=lambda: torch.device("cpu"))
    assert engine.load(str(path)) is True
    assert engine.infer(torch.ones(1, 4, 2, 2)) == pytest.approx(1.0)


def test_torchscript_backend_rejects_missing_and_corrupt_files(tmp_path):
    corrupt = tmp_path / "corrupt.pt"
    corrupt.write_bytes(b"not a torchscript archive")
    engine = InferenceEngine(backend=TorchScriptBackend(), device_selector=lambda: torch.device("cpu"))

    assert engine.load(str(tmp_path / "missing.pt")) is False
    assert engine.load(str(corrupt)) is False
    assert not engine.is_loaded
