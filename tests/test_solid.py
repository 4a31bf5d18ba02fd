import json
import math

import numpy as np
import pytest

from open_lmm.config import Config
from open_lmm.descriptor import yaw_pose
from open_lmm.solid import Solid, SolidParams


def _ring_scan(bin_counts, shift_deg=0.0, radius=10.0):
    points = []
    for bin_index, count in bin_counts.items():
        angle = math.radians(3.0 + 6.0 * bin_index + shift_deg)
        for _ in range(count):
            points.append([radius * math.cos(angle), radius * math.sin(angle), 0.0])
    return np.array(points)


def test_default_params_match_source():
    params = SolidParams()
    assert params.num_angle == 60
    assert params.num_range == 40
    assert params.descriptor_vector_dim == params.num_range


def test_invalid_params_raise():
    with pytest.raises(ValueError):
        SolidParams(num_angle=0)
    with pytest.raises(ValueError):
        SolidParams(fov_u=-30.0)


def test_params_from_config(tmp_path):
    path = tmp_path / "loop.json"
    path.write_text(json.dumps({"loop_detector": {"num_angle": 12, "num_range": 8}}))
    params = SolidParams.from_config(Config(path))
    assert params.num_angle == 12
    assert params.num_range == 8
    assert params.num_height == SolidParams().num_height
    assert params.equals(SolidParams(num_angle=12, num_range=8))
    assert not params.equals(SolidParams())


def test_fresh_descriptor_shapes():
    solid = Solid(SolidParams())
    assert solid.descriptor.shape == (100, 1)
    assert solid.descriptor_key.shape == (40,)
    assert not solid.descriptor.any()


def test_make_descriptor_layout():
    solid = Solid().make_descriptor(_ring_scan({0: 1, 1: 2, 2: 3}))
    column = solid.descriptor[:, 0]
    np.testing.assert_allclose(column[:40], solid.descriptor_key)
    np.testing.assert_allclose(column[40:], solid.a_solid_key)
    np.testing.assert_allclose(solid.a_solid_key_from_descriptor(solid.descriptor), solid.a_solid_key)


def test_keys_count_points_in_single_height_layer():
    scan = _ring_scan({0: 1, 1: 2, 2: 3})
    solid = Solid().make_descriptor(scan)
    assert solid.descriptor_key.sum() == pytest.approx(len(scan))
    assert solid.a_solid_key.sum() == pytest.approx(len(scan))
    np.testing.assert_allclose(solid.a_solid_key[:3], [1.0, 2.0, 3.0])


def test_far_points_clamp_to_last_range_bin():
    params = SolidParams()
    scan = np.array([[500.0, 1.0, 0.0], [400.0, 2.0, 0.0], [1.0, 1.0, 0.0]])
    solid = Solid(params).make_descriptor(scan)
    assert solid.descriptor_key[-1] > 0
    assert solid.descriptor_key.sum() == pytest.approx(solid.a_solid_key.sum())


def test_empty_scan_gives_zero_descriptor():
    solid = Solid().make_descriptor(np.zeros((0, 3)))
    assert not solid.descriptor.any()
    assert solid.a_solid_key.shape == (60,)


def test_distance_to_itself():
    solid = Solid().make_descriptor(_ring_scan({0: 1, 1: 2, 2: 3}))
    distance, pose = solid.distance(solid)
    assert distance == pytest.approx(0.0, abs=1e-12)
    np.testing.assert_allclose(pose, np.eye(4), atol=1e-12)


def test_pose_estimation_recovers_yaw():
    counts = {0: 1, 1: 2, 2: 3}
    original = Solid().make_descriptor(_ring_scan(counts))
    rotated = Solid().make_descriptor(_ring_scan(counts, shift_deg=30.0))
    distance, pose = rotated.distance(original)
    assert distance == pytest.approx(0.0, abs=1e-12)
    np.testing.assert_allclose(pose, yaw_pose(math.radians(30.0)), atol=1e-9)


def test_shifted_distance():
    solid = Solid()
    assert solid.shifted_distance(1, [1.0, 2.0, 3.0], [2.0, 3.0, 1.0]) == 0.0
    assert solid.shifted_distance(0, [1.0, 2.0, 3.0], [2.0, 3.0, 1.0]) == 4.0


def test_shifted_distance_size_mismatch():
    with pytest.raises(ValueError):
        Solid().shifted_distance(0, [1.0, 2.0], [1.0])


def test_loop_detection_of_zero_key_is_nan():
    empty = Solid()
    result = empty.loop_detection(empty)
    np.testing.assert_equal(result, float("nan"))
    assert str(float(result)) == "nan"


def test_loop_detection_is_symmetric():
    first = Solid().make_descriptor(_ring_scan({0: 2}, radius=5.0))
    second = Solid().make_descriptor(_ring_scan({0: 2}, radius=25.0))
    assert first.loop_detection(second) == pytest.approx(second.loop_detection(first))
    assert first.loop_detection(second) == pytest.approx(1.0)