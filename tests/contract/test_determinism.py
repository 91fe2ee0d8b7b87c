import numpy as np

from backpropnet.core.activations import Activation
from backpropnet.core.network import NeuralNetwork
from backpropnet.training import pipelines


def _build(seed):
    net = NeuralNetwork(3, 0.1, 0.8, seed=seed)
    net.add_hidden_layer(5, Activation.RELU)
    net.add_dropout_layer(0.5)
    net.add_hidden_layer(4, Activation.LOGISTIC, 0.2)
    net.add_output_classification_layer(3)
    return net


def _run(net, steps=20):
    rng = np.random.default_rng(1)
    errors = []
    for step in range(steps):
        net.propagate_forward(rng.normal(size=3))
        expected = np.eye(3)[step % 3]
        errors.append(net.calc_error(expected))
        net.propagate_backward(expected)
    return errors


def test_same_seed_builds_same_network():
    assert _build(123).to_text() == _build(123).to_text()
    assert _build(123).to_text() != _build(124).to_text()


def test_same_seed_trains_identically():
    first, second = _build(7), _build(7)
    assert _run(first) == _run(second)
    assert first.to_text() == second.to_text()


def test_reloaded_network_resumes_identically():
    net = _build(3)
    _run(net, steps=5)
    restored = NeuralNetwork.from_text(net.to_text())
    assert _run(net) == _run(restored)
    assert net.to_text() == restored.to_text()


def test_pipeline_runs_are_reproducible(tmp_path):
    results = []
    for name in ("a", "b"):
        config = pipelines.load_preset("xor-classifier")
        config["train"].update({"epochs": 15, "run_dir": str(tmp_path / name)})
        result = pipelines.run_pipeline(config)
        results.append((result.final_error, (tmp_path / name / "network.txt").read_text()))
    assert results[0] == results[1]
