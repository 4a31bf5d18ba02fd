"""Common interface of lidar place-recognition descriptors kept in a k-d tree."""

from __future__ import annotations

import abc
import math
from typing import Any

import numpy as np


def _as_points(scan: Any) -> np.ndarray:
    """The ``(N, 3)`` x, y, z columns of a scan given as ``(N, >=3)`` values."""
    points = np.asarray(scan, dtype=float)
    if points.size == 0:
        return np.zeros((0, 3))
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(
            f"scan must have shape (N, 3) or wider, got shape {points.shape}"
        )
    return points[:, :3]


def yaw_pose(angle: float) -> np.ndarray:
    """4x4 rigid transform rotating by ``angle`` radians about the z axis."""
    c, s = math.cos(angle), math.sin(angle)
    pose = np.eye(4)
    pose[:2, :2] = [[c, -s], [s, c]]
    return pose


class Descriptor(abc.ABC):
    """A global scan descriptor with a fixed-length key for k-d tree search."""

    @property
    @abc.abstractmethod
    def descriptor(self) -> np.ndarray:
        """The full descriptor matrix."""

    @property
    @abc.abstractmethod
    def descriptor_key(self) -> np.ndarray:
        """The vector indexed by the k-d tree."""

    @abc.abstractmethod
    def distance(self, other: "Descriptor") -> tuple[float, np.ndarray]:
        """Distance to ``other`` and the estimated 4x4 relative pose."""

    @abc.abstractmethod
    def make_descriptor(self, scan: Any) -> "Descriptor":
        """Build a new descriptor of the same kind from a point cloud."""