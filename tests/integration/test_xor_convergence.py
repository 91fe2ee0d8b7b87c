import numpy as np

from backpropnet.core.activations import Activation
from backpropnet.core.network import NeuralNetwork
from backpropnet.data.xor import XOR_INPUTS, XOR_TARGETS
from backpropnet.training.trainer import MLPRegressor


def _train_xor(seed, epochs=10000):
    net = NeuralNetwork(2, 0.5, 0.9, seed=seed)
    net.add_hidden_layer(5, Activation.LOGISTIC)
    net.add_output_regression_layer(1, Activation.LOGISTIC)
    for _ in range(epochs):
        for inputs, target in zip(XOR_INPUTS, XOR_TARGETS):
            net.propagate_forward(inputs)
            net.propagate_backward([target])
    return np.array([net.predict(inputs)[0] for inputs in XOR_INPUTS])


def test_network_learns_xor():
    outputs = _train_xor(10)
    np.testing.assert_allclose(outputs, XOR_TARGETS, atol=0.1)


def test_regressor_preset_settings_learn_xor():
    model = MLPRegressor(
        hidden_layer_sizes=(5,),
        activation="logistic",
        learning_rate_init=0.5,
        momentum=0.9,
        max_iter=2000,
        random_state=10,
    )
    model.fit(XOR_INPUTS, XOR_TARGETS)
    assert model.loss_curve_[-1] < model.loss_curve_[0]
