import math

import numpy as np
import pytest

from open_lmm.descriptor import Descriptor, _as_points, yaw_pose


def test_yaw_pose_zero_is_identity():
    assert np.allclose(yaw_pose(0.0), np.eye(4))


def test_yaw_pose_quarter_turn_maps_x_to_y():
    point = yaw_pose(math.pi / 2) @ np.array([1.0, 0.0, 0.0, 1.0])
    assert np.allclose(point, [0.0, 1.0, 0.0, 1.0])


@pytest.mark.parametrize("angle", [0.3, -1.2, 2.9, 6.0])
def test_yaw_pose_is_proper_rotation_without_translation(angle):
    pose = yaw_pose(angle)
    rot = pose[:3, :3]
    assert np.allclose(rot @ rot.T, np.eye(3))
    assert np.linalg.det(rot) == pytest.approx(1.0)
    assert np.allclose(pose[:3, 3], 0.0)
    assert np.allclose(pose[3], [0.0, 0.0, 0.0, 1.0])
    assert rot[2, 2] == pytest.approx(1.0)


def test_yaw_pose_composition_adds_angles():
    assert np.allclose(yaw_pose(0.4) @ yaw_pose(0.7), yaw_pose(1.1))


def test_descriptor_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Descriptor()


def test_as_points_keeps_first_three_columns():
    scan = np.arange(8.0).reshape(2, 4)
    assert np.array_equal(_as_points(scan), scan[:, :3])


def test_as_points_empty_scan():
    assert _as_points([]).shape == (0, 3)


def test_as_points_rejects_narrow_scan():
    with pytest.raises(ValueError):
        _as_points(np.zeros((5, 2)))