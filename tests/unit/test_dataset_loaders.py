import numpy as np
import pytest

from backpropnet.data import available_datasets, get_dataset
from backpropnet.data.idx import (
    IMAGES_MAGIC,
    normalize_images,
    read_idx_images,
    read_idx_labels,
    write_idx_images,
    write_idx_labels,
)
from backpropnet.data.mnist import build_offline_fixture


def test_idx_files_read_back(tmp_path):
    images = np.arange(2 * 3 * 4, dtype=np.uint8).reshape(2, 12)
    write_idx_images(tmp_path / "images", images, rows=3, cols=4)
    write_idx_labels(tmp_path / "labels", [7, 2])

    loaded, attrs = read_idx_images(tmp_path / "images")
    assert (attrs.count, attrs.rows, attrs.cols) == (2, 3, 4)
    np.testing.assert_array_equal(loaded, images)
    np.testing.assert_array_equal(read_idx_labels(tmp_path / "labels"), [7, 2])


def test_idx_header_is_big_endian(tmp_path):
    path = write_idx_images(tmp_path / "images", np.zeros((1, 4)), rows=2, cols=2)
    raw = path.read_bytes()
    assert raw[:4] == IMAGES_MAGIC.to_bytes(4, "big")
    assert raw[4:8] == (1).to_bytes(4, "big")
    assert len(raw) == 16 + 4


def test_idx_wrong_magic_is_empty(tmp_path):
    write_idx_labels(tmp_path / "labels", [1, 2, 3])
    images, attrs = read_idx_images(tmp_path / "labels")
    assert images.size == 0
    assert attrs.count == 0
    images_path = write_idx_images(tmp_path / "images", np.zeros((1, 4)), rows=2, cols=2)
    assert read_idx_labels(images_path).size == 0


def test_idx_truncated_file_raises(tmp_path):
    path = write_idx_images(tmp_path / "images", np.ones((3, 4)), rows=2, cols=2)
    path.write_bytes(path.read_bytes()[:-1])
    with pytest.raises(ValueError, match="not large enough"):
        read_idx_images(path)

    labels = write_idx_labels(tmp_path / "labels", [1, 2, 3])
    labels.write_bytes(labels.read_bytes()[:-2])
    with pytest.raises(ValueError, match="corrupted"):
        read_idx_labels(labels)


def test_idx_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_idx_images(tmp_path / "nope")


def test_normalize_images():
    np.testing.assert_allclose(normalize_images(np.array([0, 51, 255], dtype=np.uint8)), [0.0, 0.2, 1.0])


def test_registry_lists_builtin_datasets():
    assert {"csv_classification", "csv_regression", "mnist", "xor"} <= set(available_datasets())
    with pytest.raises(KeyError, match="Unknown dataset"):
        get_dataset("does-not-exist")


def test_xor_dataset():
    regression = get_dataset("xor", repeat=2)
    assert regression.inputs.shape == (8, 2)
    assert regression.task_type == "regression"
    classes = get_dataset("xor", as_classes=True)
    assert classes.num_classes == 2
    assert classes.targets.dtype == np.int64
    with pytest.raises(ValueError):
        get_dataset("xor", repeat=0)


def test_csv_fixtures():
    iris = get_dataset("csv_classification", standardize_inputs=True)
    assert iris.inputs.shape == (30, 4)
    assert iris.num_classes == 3
    assert iris.provenance["classes"] == ["iris_setosa", "iris_versicolor", "iris_virginica"]
    np.testing.assert_allclose(iris.inputs.mean(axis=0), 0.0, atol=1e-12)

    linear = get_dataset("csv_regression")
    assert linear.d_in == 2
    np.testing.assert_allclose(linear.targets, 0.5 * linear.inputs[:, 0] - 0.25 * linear.inputs[:, 1] + 0.1)


def test_csv_missing_target_column(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("a,b\n1,2\n3,4\n")
    with pytest.raises(KeyError, match="not found"):
        get_dataset("csv_regression", csv_path=path, target_col="y")


def test_mnist_offline_fixture(tmp_path):
    dataset = get_dataset("mnist", cache_dir=tmp_path, max_items=12)
    assert dataset.inputs.shape == (12, 784)
    assert dataset.num_classes == 10
    assert dataset.inputs.max() <= 1.0
    np.testing.assert_array_equal(dataset.targets, np.arange(12) % 10)

    images_path, labels_path = build_offline_fixture(tmp_path / "again", count=4, side=2)
    raw = get_dataset("mnist", images_path=images_path, labels_path=labels_path, normalize=False)
    np.testing.assert_array_equal(raw.inputs.ravel(), np.arange(16, dtype=np.float64))


def test_dataset_split_is_deterministic():
    dataset = get_dataset("csv_classification")
    train, test = dataset.split(0.2, seed=3)
    again_train, _ = dataset.split(0.2, seed=3)
    assert len(train) == 24 and len(test) == 6
    np.testing.assert_array_equal(train.inputs, again_train.inputs)
    assert test.provenance["split"] == "test"
    with pytest.raises(ValueError):
        dataset.split(1.0)
