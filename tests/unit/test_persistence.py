import numpy as np
import pytest

from backpropnet.core.activations import Activation
from backpropnet.core.errors import PersistenceError
from backpropnet.core.network import NeuralNetwork
from backpropnet.core.persistence import TokenReader, TokenWriter, format_token
from backpropnet.core.seeding import SeedGenerator


def _network(seed=5, dropout=0.3, classification=False):
    net = NeuralNetwork(3, 0.2, 0.6, seed=seed)
    net.add_hidden_layer(4, Activation.TANH, 0.1)
    net.add_dropout_layer(dropout)
    net.add_hidden_layer(3, Activation.ISRLU, [0.0, 0.1, -0.1])
    if classification:
        net.add_output_classification_layer(3)
    else:
        net.add_output_regression_layer(2, Activation.LOGISTIC)
    return net


def _train(net, steps, expected):
    rng = np.random.default_rng(0)
    for _ in range(steps):
        net.propagate_forward(rng.uniform(-1.0, 1.0, size=3))
        net.propagate_backward(expected)


def test_format_token_round_trips_floats():
    for value in (0.1, 1e-300, -2.5e17, 1.0 / 3.0, float("inf")):
        assert float(format_token(value)) == value
    assert format_token(True) == "1"
    assert format_token(np.int64(7)) == "7"


def test_text_round_trip_is_identical():
    net = _network()
    _train(net, 5, [0.2, 0.8])
    text = net.to_text()
    restored = NeuralNetwork.from_text(text)
    assert restored.to_text() == text
    assert restored.input_size == 3
    assert restored.momentum == 0.6
    assert [layer.layer_type for layer in restored.layers] == [layer.layer_type for layer in net.layers]


def test_round_trip_continues_training_identically():
    net = _network(classification=True)
    _train(net, 3, [0.0, 1.0, 0.0])
    restored = NeuralNetwork.from_text(net.to_text())

    # Both copies share weights, momentum buffers and dropout generator state.
    _train(net, 4, [1.0, 0.0, 0.0])
    _train(restored, 4, [1.0, 0.0, 0.0])
    assert restored.to_text() == net.to_text()
    inputs = [0.3, -0.2, 0.9]
    np.testing.assert_array_equal(net.propagate_forward(inputs), restored.propagate_forward(inputs))
    assert net.calc_error([1.0, 0.0, 0.0]) == restored.calc_error([1.0, 0.0, 0.0])


def test_save_and_load_file(tmp_path):
    net = _network(seed=9)
    _train(net, 2, [0.4, 0.6])
    path = net.save_to_file(tmp_path / "net.txt")
    loaded = NeuralNetwork.load_from_file(path)
    assert loaded.to_text() == path.read_text(encoding="utf-8")
    # The shared seed generator resumes where it stopped.
    assert loaded.seed_generator.seed() == net.seed_generator.seed()


def test_mid_batch_save_and_load_with_dropped_positions(tmp_path):
    rng = np.random.default_rng(4)
    net = _network(dropout=0.5)
    dropout = net.layers[1]
    # Accumulate until the pending mask holds at least one dropped position.
    for _ in range(50):
        net.propagate_forward(rng.uniform(-1.0, 1.0, size=3))
        net.propagate_backward([0.1, 0.9], update=False)
        if not dropout.keep_mask.all():
            break
    assert not dropout.keep_mask.all()
    net.save_to_file(tmp_path / "mid.txt")
    loaded = NeuralNetwork.load_from_file(tmp_path / "mid.txt")
    assert loaded.to_text() == net.to_text()
    np.testing.assert_array_equal(loaded.layers[1].keep_mask, dropout.keep_mask)

    for copy in (net, loaded):
        copy.propagate_forward([0.5, -0.4, 0.2])
        copy.propagate_backward([0.7, 0.3], update=False)
        copy.update_weights()
    assert loaded.to_text() == net.to_text()


def test_zero_layer_network_round_trips():
    net = NeuralNetwork(4, 0.01, seed=1)
    restored = NeuralNetwork.from_text(net.to_text())
    assert len(restored) == 0
    assert restored.to_text() == net.to_text()


def test_layout_of_saved_network():
    net = NeuralNetwork(2, 0.5)
    net.add_hidden_layer([[0.15, 0.2], [0.25, 0.3]], Activation.LOGISTIC, 0.35)
    net.add_output_regression_layer([[0.4, 0.45], [0.5, 0.55]], Activation.LOGISTIC, 0.6)
    lines = [line.strip() for line in net.to_text().splitlines()]
    assert lines[:5] == ["[NetworkBegin]", "LayerNumber: 2", "Momentum: 0.0", "LearningRate: 0.5", "InputSize: 2"]
    assert lines[5].startswith("SeedGenerator: MT19937 ")
    assert "LayerType: 0" in lines and "LayerType: 3" in lines
    assert "Weights: 0.15 0.2 Bias: 0.35" in lines
    assert "WeightsPrevChange: 0.0 0.0 BiasPrevChange: 0.0" in lines
    assert lines[-1] == "[NetworkEnd]"


def test_missing_file_raises_persistence_error(tmp_path):
    with pytest.raises(PersistenceError, match="not accessible") as info:
        NeuralNetwork.load_from_file(tmp_path / "missing.txt")
    assert isinstance(info.value.__cause__, OSError)


def test_wrong_tag_reports_line():
    text = _network().to_text().replace("[NeuronBegin]", "[NeuronStart]", 1)
    with pytest.raises(PersistenceError, match=r"Expected: \[NeuronBegin\] Provided: \[NeuronStart\]") as info:
        NeuralNetwork.from_text(text, source="broken.txt")
    line = info.value.context["line"]
    assert text.splitlines()[line - 1].strip() == "[NeuronStart]"
    assert "broken.txt" in str(info.value)


def test_truncated_text_raises():
    text = _network().to_text()
    with pytest.raises(PersistenceError, match="end of file"):
        NeuralNetwork.from_text(text[: len(text) // 2])


def test_bad_number_and_unknown_ids():
    text = _network().to_text()
    with pytest.raises(PersistenceError, match="integer"):
        NeuralNetwork.from_text(text.replace("LayerNumber: 4", "LayerNumber: four", 1))
    with pytest.raises(PersistenceError, match="LayerType"):
        NeuralNetwork.from_text(text.replace("LayerType: 0", "LayerType: 7", 1))


def test_inconsistent_widths_are_rejected():
    net = NeuralNetwork(2, 0.1, seed=0)
    net.add_output_regression_layer(1)
    text = net.to_text().replace("InputSize: 2", "InputSize: 3", 1)
    with pytest.raises(PersistenceError, match="previous width"):
        NeuralNetwork.from_text(text)


def test_token_reader_and_writer_mirror_each_other():
    writer = TokenWriter()
    writer.line("Values:", 1.5, 2, True, indent=2)
    writer.line("[End]")
    reader = TokenReader(writer.getvalue())
    assert reader.read_float("Values:") == 1.5
    assert reader.read_int() == 2
    assert reader.read_flags(1).tolist() == [True]
    reader.expect("[End]")
    assert reader.exhausted


def _replace_state_word(text, tag, index, value):
    lines = text.splitlines()
    for number, line in enumerate(lines):
        tokens = line.split()
        if tokens and tokens[0] == tag:
            tokens[2 + index] = value
            lines[number] = line[: len(line) - len(line.lstrip())] + " ".join(tokens)
            return "\n".join(lines) + "\n", number + 1
    raise AssertionError(f"{tag} not found")


@pytest.mark.parametrize(
    "tag, index, value",
    [
        ("SeedGenerator:", 1, "-1"),
        ("SeedGenerator:", 624, str(2**32)),
        ("Generator:", 5, "-7"),
        ("SeedGenerator:", 0, "625"),
    ],
)
def test_generator_state_out_of_range_is_persistence_error(tag, index, value):
    text, line = _replace_state_word(_network().to_text(), tag, index, value)
    with pytest.raises(PersistenceError, match="out of range") as info:
        NeuralNetwork.from_text(text)
    assert info.value.context["line"] == line
    assert info.value.context["found"] == value


def test_seed_generator_rejects_words_outside_uint32():
    state = SeedGenerator(2).get_state()
    state[3] = -1
    with pytest.raises(ValueError, match="32-bit"):
        SeedGenerator.from_state(state)
