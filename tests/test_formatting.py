import math

import numpy as np
import pytest

from open_lmm.formatting import (
    convert_to_string,
    format_isometry,
    format_quaternion,
    format_vector,
)


def _numbers(text, prefix):
    assert text.startswith(prefix + "(")
    assert text.endswith(")")
    return [float(part) for part in text[len(prefix) + 1 : -1].split(",")]


def test_bool_rendering():
    assert convert_to_string(True) == "true"
    assert convert_to_string(False) == "false"


def test_int_rendering_round_trips():
    for value in (0, 7, -42, 123456789):
        assert int(convert_to_string(value)) == value


@pytest.mark.parametrize("value", [0.13, 2.0, -3.5, 1e-7, 80.0, 1e20])
def test_float_rendering_round_trips(value):
    text = convert_to_string(value)
    assert float(text) == value
    assert not text.endswith(".0")


def test_string_passes_through():
    assert convert_to_string("lidar") == "lidar"


def test_list_rendering():
    text = convert_to_string([1, 2, 3])
    assert text.startswith("[") and text.endswith("]")
    assert [int(p) for p in text[1:-1].split(",")] == [1, 2, 3]


def test_empty_list_rendering():
    assert convert_to_string([]) == "[]"


def test_nested_list_of_strings():
    text = convert_to_string(["a", "b"])
    assert text[1:-1].split(",") == ["a", "b"]


def test_vector_rendering_has_six_decimals():
    values = [1.5, -2.25, 3.0]
    text = format_vector(values)
    assert _numbers(text, "vec") == pytest.approx(values)
    for part in text[4:-1].split(","):
        assert len(part.split(".")[1]) == 6


def test_numpy_vector_goes_through_vec():
    values = np.array([0.5, 0.25])
    assert convert_to_string(values) == format_vector(values)


def test_quaternion_rendering():
    quat = (0.1, 0.2, 0.3, 0.9)
    text = format_quaternion(quat)
    assert _numbers(text, "quat") == pytest.approx(quat, abs=1e-6)


def test_isometry_identity_rotation():
    pose = np.eye(4)
    pose[:3, 3] = [1.0, 2.0, 3.0]
    values = _numbers(format_isometry(pose), "se3")
    assert values[:3] == pytest.approx([1.0, 2.0, 3.0])
    assert values[3:] == pytest.approx([0.0, 0.0, 0.0, 1.0])


def test_isometry_yaw_rotation():
    pose = np.eye(4)
    pose[:3, :3] = [[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]
    values = _numbers(format_isometry(pose), "se3")
    half = math.sqrt(0.5)
    assert values[3:] == pytest.approx([0.0, 0.0, half, half], abs=1e-6)


def test_numpy_pose_goes_through_se3():
    pose = np.eye(4)
    assert convert_to_string(pose) == format_isometry(pose)


def test_isometry_rejects_wrong_shape():
    with pytest.raises(ValueError):
        format_isometry(np.eye(3))