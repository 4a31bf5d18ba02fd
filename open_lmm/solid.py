"""SOLiD: a range/angle occupancy descriptor weighted by elevation layers."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .config import Config, GlobalConfig, ParamKind
from .descriptor import Descriptor, _as_points, yaw_pose

# Coordinates that are exactly zero are nudged by this single-precision value.
_NEAR_ZERO = float(np.float32(0.001))
_PI_SINGLE = float(np.float32(math.pi))


@dataclass
class SolidParams:
    """Binning layout of a SOLiD descriptor."""

    fov_u: float = 2.0
    fov_d: float = -24.8
    num_angle: int = 60
    num_range: int = 40
    num_height: int = 32
    min_distance: int = 3
    max_distance: int = 80
    voxel_size: float = 0.4

    def __post_init__(self) -> None:
        if self.num_angle <= 0 or self.num_range <= 0 or self.num_height <= 0:
            raise ValueError("num_angle, num_range and num_height must be positive")
        if self.max_distance <= 0:
            raise ValueError("max_distance must be positive")
        if self.fov_u <= self.fov_d:
            raise ValueError("fov_u must be greater than fov_d")

    @property
    def descriptor_vector_dim(self) -> int:
        """Length of the range key."""
        return self.num_range

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "SolidParams":
        """Read the ``loop_detector`` section; defaults to the global loop detector file."""
        if config is None:
            config = Config(GlobalConfig.get_global_config_path("config_loop_detector"))
        section = "loop_detector"
        return cls(
            fov_u=config.param(section, "fov_u", 2.0, ParamKind.DOUBLE),
            fov_d=config.param(section, "fov_d", -24.8, ParamKind.DOUBLE),
            num_angle=config.param(section, "num_angle", 60, ParamKind.INT),
            num_range=config.param(section, "num_range", 40, ParamKind.INT),
            num_height=config.param(section, "num_height", 32, ParamKind.INT),
            min_distance=config.param(section, "min_distance", 3, ParamKind.INT),
            max_distance=config.param(section, "max_distance", 80, ParamKind.INT),
            voxel_size=config.param(section, "voxel_size", 0.4, ParamKind.DOUBLE),
        )

    def equals(self, other: "SolidParams") -> bool:
        """True when every parameter matches."""
        return (
            self.fov_u == other.fov_u
            and self.fov_d == other.fov_d
            and self.num_angle == other.num_angle
            and self.num_range == other.num_range
            and self.num_height == other.num_height
            and self.min_distance == other.min_distance
            and self.max_distance == other.max_distance
            and self.voxel_size == other.voxel_size
        )


def _bin(values: np.ndarray, size: int) -> np.ndarray:
    """Truncated bin indices clamped to ``size - 1``; negative indices wrap to the last bin."""
    clipped = np.minimum(np.trunc(values), size - 1)
    return np.where(clipped < 0, size - 1, clipped).astype(np.int64)


class Solid(Descriptor):
    """SOLiD descriptor: range key (R-SOLiD) stacked over angle key (A-SOLiD)."""

    def __init__(self, params: Optional[SolidParams] = None) -> None:
        self.params = params if params is not None else SolidParams()
        self._descriptor = np.zeros((self.params.num_range + self.params.num_angle, 1))
        self._r_solid_key = np.zeros(self.params.num_range)
        self._a_solid_key = np.zeros(0)

    @property
    def descriptor(self) -> np.ndarray:
        """Column matrix of shape ``(num_range + num_angle, 1)``."""
        return self._descriptor

    @property
    def descriptor_key(self) -> np.ndarray:
        """The range key used for k-d tree search."""
        return self._r_solid_key

    @property
    def a_solid_key(self) -> np.ndarray:
        """The angle key used for yaw estimation."""
        return self._a_solid_key

    def distance(self, other: Descriptor) -> tuple[float, np.ndarray]:
        """Range-key cosine distance and the yaw estimated from the angle keys."""
        return self.loop_detection(other), self.pose_estimation(other)

    def loop_detection(self, other: Descriptor) -> float:
        """One minus the cosine similarity of the range keys (NaN for a zero key)."""
        query = np.asarray(self.descriptor_key, dtype=float)
        candidate = np.asarray(other.descriptor_key, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.float64(query @ candidate) / np.float64(
                np.linalg.norm(query) * np.linalg.norm(candidate)
            )
        return float(1 - similarity)

    def pose_estimation(self, other: Descriptor) -> np.ndarray:
        """Yaw transform aligning this angle key with the other's."""
        query = self._a_solid_key
        candidate = self.a_solid_key_from_descriptor(other.descriptor)
        size = len(query)
        if size == 0:
            return yaw_pose(0.0)
        min_distance = sys.float_info.max
        min_offset = 0
        for offset in range(size):
            dist = self.shifted_distance(offset, query, candidate)
            if dist < min_distance:
                min_distance = dist
                min_offset = offset
        return yaw_pose(min_offset * (2 * math.pi / size))

    def a_solid_key_from_descriptor(self, descriptor: Any) -> np.ndarray:
        """The trailing ``num_angle`` entries of a descriptor's first column."""
        column = np.asarray(descriptor, dtype=float)
        column = column[:, 0] if column.ndim == 2 else column
        return column[len(column) - self.params.num_angle :].copy()

    def shifted_distance(self, offset: int, query: Any, candidate: Any) -> float:
        """L1 distance between ``candidate`` and ``query`` rotated by ``offset``."""
        query = np.asarray(query, dtype=float)
        candidate = np.asarray(candidate, dtype=float)
        if query.shape != candidate.shape:
            raise ValueError(f"key shapes differ: {query.shape} vs {candidate.shape}")
        rotated = np.roll(query, -int(offset))
        return float(np.abs(candidate - rotated).sum())

    def make_descriptor(self, scan: Any) -> "Solid":
        """Build a SOLiD descriptor from an ``(N, >=3)`` point cloud."""
        points = _as_points(scan)
        p = self.params
        solid = Solid(p)

        gap_angle = 360.0 / p.num_angle
        gap_range = float(p.max_distance) / p.num_range
        gap_height = (p.fov_u - p.fov_d) / p.num_height

        x = points[:, 0].copy()
        y = points[:, 1].copy()
        z = points[:, 2]
        x[x == 0.0] = _NEAR_ZERO
        y[y == 0.0] = _NEAR_ZERO

        theta = np.arctan2(y, x) * 180.0 / math.pi
        theta[theta < 0] += 360.0
        dist_xy = np.sqrt(x * x + y * y)
        phi = (np.arctan2(z, dist_xy) * 180.0 / _PI_SINGLE).astype(np.float32)
        phi = phi.astype(np.float64)

        idx_range = _bin(dist_xy / gap_range, p.num_range)
        idx_angle = _bin(theta / gap_angle, p.num_angle)
        idx_height = _bin((phi - p.fov_d) / gap_height, p.num_height)

        range_matrix = np.zeros((p.num_range, p.num_height))
        angle_matrix = np.zeros((p.num_angle, p.num_height))
        np.add.at(range_matrix, (idx_range, idx_height), 1.0)
        np.add.at(angle_matrix, (idx_angle, idx_height), 1.0)

        number_vector = range_matrix.sum(axis=0)
        min_val = float(number_vector.min())
        max_val = float(number_vector.max())
        if max_val > min_val:
            number_vector = (number_vector - min_val) / (max_val - min_val)

        range_solid = range_matrix @ number_vector
        angle_solid = angle_matrix @ number_vector

        solid._descriptor = np.concatenate([range_solid, angle_solid]).reshape(-1, 1)
        solid._r_solid_key = range_solid
        solid._a_solid_key = angle_solid
        return solid