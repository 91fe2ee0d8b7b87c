import numpy as np
import pytest

from backpropnet.core.network import NeuralNetwork
from backpropnet.core.types import LayerType
from backpropnet.training.schedules import LearningRateSchedule
from backpropnet.training.trainer import MLPClassifier, MLPRegressor, _BaseMLP

X_XOR = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
Y_XOR = [0.0, 1.0, 1.0, 0.0]


def test_constant_schedule_never_changes():
    schedule = LearningRateSchedule("constant", learning_rate_init=0.1)
    for epoch in range(5):
        decision = schedule.step(epoch, 1.0)
        assert not decision.stop
        assert decision.learning_rate is None
    assert schedule.effective_learning_rate == 0.1


def test_invscaling_schedule():
    schedule = LearningRateSchedule("invscaling", learning_rate_init=0.8, power_t=0.5)
    decision = schedule.step(3, 1.0)
    assert decision.learning_rate == pytest.approx(0.4)


def test_adaptive_schedule_divides_after_two_flat_epochs():
    schedule = LearningRateSchedule("adaptive", learning_rate_init=0.5, tol=1e-3)
    assert schedule.step(0, 0.3).learning_rate is None
    assert schedule.step(1, 0.3).learning_rate is None
    assert schedule.step(2, 0.3).learning_rate == pytest.approx(0.1)
    assert schedule.step(3, 0.1).learning_rate is None


def test_early_stopping_window():
    schedule = LearningRateSchedule(early_stopping=True, n_iter_no_change=2, tol=1e-4)
    decisions = [schedule.step(epoch, 0.5) for epoch in range(4)]
    assert [d.stop for d in decisions] == [False, False, False, True]

    improving = LearningRateSchedule(early_stopping=True, n_iter_no_change=2, tol=1e-4)
    assert not any(improving.step(epoch, 1.0 / (epoch + 1)).stop for epoch in range(6))


def test_schedule_rejects_unknown_policy():
    with pytest.raises(ValueError, match="Unknown learning rate policy"):
        LearningRateSchedule("cosine")


def test_regressor_fit_and_predict_shapes():
    model = MLPRegressor(
        hidden_layer_sizes=(4,),
        activation="logistic",
        learning_rate_init=0.5,
        max_iter=30,
        random_state=3,
    )
    model.fit(X_XOR, Y_XOR)
    assert model.n_iter_ == 30
    assert len(model.loss_curve_) == 30
    predictions = model.predict(X_XOR)
    assert predictions.shape == (4,)
    assert np.all((predictions > 0.0) & (predictions < 1.0))
    assert model.predict([0.0, 1.0]).shape == (1,)


def test_regressor_multi_output():
    targets = [[0.0, 1.0], [1.0, 0.0], [1.0, 0.0], [0.0, 1.0]]
    model = MLPRegressor(hidden_layer_sizes=(3,), activation="tanh", max_iter=5, random_state=0)
    model.fit(X_XOR, targets)
    assert model.predict(X_XOR).shape == (4, 2)


def test_training_is_reproducible_with_random_state():
    first = MLPRegressor(hidden_layer_sizes=(3,), activation="logistic", max_iter=10, random_state=11).fit(X_XOR, Y_XOR)
    second = MLPRegressor(hidden_layer_sizes=(3,), activation="logistic", max_iter=10, random_state=11).fit(X_XOR, Y_XOR)
    assert first.loss_curve_ == second.loss_curve_
    assert first.network_.to_text() == second.network_.to_text()


def test_predict_before_fit():
    with pytest.raises(RuntimeError, match="Use fit before predict"):
        MLPRegressor().predict(X_XOR)
    assert MLPClassifier().inspect() == ""


def test_fit_validates_inputs():
    with pytest.raises(ValueError, match="not consistent"):
        MLPRegressor(max_iter=1).fit(X_XOR, Y_XOR[:3])
    with pytest.raises(ValueError, match="same size"):
        MLPRegressor(max_iter=1).fit([[0.0, 1.0], [1.0]], [0.0, 1.0])
    with pytest.raises(ValueError, match="batch_size"):
        MLPRegressor(max_iter=1, batch_size=0).fit(X_XOR, Y_XOR)


def test_fit_on_empty_input_does_nothing():
    model = MLPRegressor().fit([], [])
    assert model.n_iter_ == 0
    assert model.loss_curve_ == []


def test_classifier_spans_integer_label_range():
    model = MLPClassifier(hidden_layer_sizes=(4,), activation="tanh", max_iter=3, random_state=1)
    model.fit([[0.0], [1.0], [2.0]], [3, 5, 5])
    np.testing.assert_array_equal(model.classes_, [3, 4, 5])
    assert model.label_range_ == (3, 5)
    assert model.network_.output_size == 3
    proba = model.predict_proba([[0.5], [1.5]])
    assert proba.shape == (2, 3)
    np.testing.assert_allclose(proba.sum(axis=1), [1.0, 1.0])
    assert set(model.predict([[0.5], [1.5]])) <= {3, 4, 5}


def test_classifier_with_string_labels_learns_xor():
    labels = ["off", "on", "on", "off"]
    model = MLPClassifier(
        hidden_layer_sizes=(6,),
        activation="tanh",
        learning_rate_init=0.1,
        momentum=0.5,
        max_iter=1500,
        random_state=4,
    )
    model.fit(X_XOR, labels)
    assert list(model.classes_) == ["off", "on"]
    assert model.loss_curve_[-1] < model.loss_curve_[0]
    assert model.network_.layers[-1].layer_type is LayerType.OUTPUT_CLASSIFICATION


def test_dropout_layers_follow_hidden_layers():
    model = MLPRegressor(hidden_layer_sizes=(4, 3), activation="relu", dropout=0.2, max_iter=2, random_state=0)
    model.fit(X_XOR, Y_XOR)
    types = [layer.layer_type for layer in model.network_.layers]
    assert types == [
        LayerType.HIDDEN,
        LayerType.DROPOUT,
        LayerType.HIDDEN,
        LayerType.DROPOUT,
        LayerType.OUTPUT_REGRESSION,
    ]


def test_early_stopping_ends_fit():
    model = MLPRegressor(
        hidden_layer_sizes=(2,),
        activation="logistic",
        max_iter=500,
        tol=10.0,
        early_stopping=True,
        n_iter_no_change=2,
        random_state=0,
    )
    model.fit(X_XOR, Y_XOR)
    assert model.n_iter_ == 4


def test_callbacks_and_learning_rate_updates():
    seen = []

    class Recorder:
        def on_epoch(self, epoch, metrics):
            seen.append((epoch, metrics["learning_rate"]))

    plain = []
    model = MLPRegressor(
        hidden_layer_sizes=(2,),
        activation="logistic",
        learning_rate="invscaling",
        learning_rate_init=0.4,
        power_t=1.0,
        max_iter=3,
        random_state=0,
        callbacks=(Recorder(), lambda epoch, metrics: plain.append(metrics["loss"])),
    )
    model.fit(X_XOR, Y_XOR)
    assert [epoch for epoch, _ in seen] == [0, 1, 2]
    # The rate reported for an epoch is the one it trained with.
    assert [lr for _, lr in seen] == pytest.approx([0.4, 0.4, 0.2])
    assert plain == model.loss_curve_


def test_batch_size_larger_than_dataset():
    model = MLPRegressor(hidden_layer_sizes=(2,), activation="logistic", batch_size=10, max_iter=2, random_state=0)
    model.fit(X_XOR, Y_XOR)
    assert model.n_iter_ == 2


def test_get_params_and_save(tmp_path):
    model = MLPRegressor(hidden_layer_sizes=(2,), activation="logistic", max_iter=2, random_state=0, dropout=0.1)
    params = model.get_params()
    assert params["hidden_layer_sizes"] == (2,)
    assert params["dropout"] == 0.1
    model.fit(X_XOR, Y_XOR)
    path = model.save(tmp_path / "model.txt")
    restored = NeuralNetwork.load_from_file(path)
    assert restored.to_text() == model.network_.to_text()
    assert model.inspect().startswith("------")


def test_base_estimator_requires_output_hooks():
    with pytest.raises(TypeError):
        _BaseMLP(hidden_layer_sizes=(2,))

    class NoOutputLayer(_BaseMLP):
        def _prepare_targets(self, y):
            return np.asarray(y, dtype=float).reshape(-1, 1)

    with pytest.raises(TypeError):
        NoOutputLayer()
