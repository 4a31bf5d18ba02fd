"""Scan Context: a ring/sector height-map descriptor of a lidar scan."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .config import Config, GlobalConfig, ParamKind
from .descriptor import Descriptor, _as_points, yaw_pose


@dataclass
class ScanContextParams:
    """Grid layout of a Scan Context descriptor."""

    number_sectors: int = 60
    number_rings: int = 20
    max_range: float = 80.0

    def __post_init__(self) -> None:
        if self.number_sectors <= 0 or self.number_rings <= 0:
            raise ValueError("number_sectors and number_rings must be positive")
        if self.max_range <= 0:
            raise ValueError("max_range must be positive")

    @property
    def descriptor_vector_dim(self) -> int:
        """Length of the ring key."""
        return self.number_rings

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "ScanContextParams":
        """Read the ``loop_detector`` section; defaults to the global loop detector file."""
        if config is None:
            config = Config(GlobalConfig.get_global_config_path("config_loop_detector"))
        return cls(
            number_sectors=config.param("loop_detector", "num_sector", 60, ParamKind.INT),
            number_rings=config.param("loop_detector", "num_ring", 20, ParamKind.INT),
            max_range=config.param("loop_detector", "max_range", 80.0, ParamKind.DOUBLE),
        )

    def equals(self, other: "ScanContextParams") -> bool:
        """True when both describe the same grid."""
        return (
            self.number_sectors == other.number_sectors
            and self.number_rings == other.number_rings
            and self.max_range == other.max_range
        )


class ScanContext(Descriptor):
    """Scan Context descriptor: max height per (ring, sector) cell plus a ring key."""

    def __init__(self, params: Optional[ScanContextParams] = None) -> None:
        self.params = params if params is not None else ScanContextParams()
        self._descriptor = np.zeros((self.params.number_rings, self.params.number_sectors))
        self._ring_key = np.zeros(self.params.number_rings)

    @property
    def descriptor(self) -> np.ndarray:
        """Matrix of shape ``(number_rings, number_sectors)``."""
        return self._descriptor

    @property
    def descriptor_key(self) -> np.ndarray:
        """Rotation-invariant ring key: occupied fraction of each ring."""
        return self._ring_key

    def distance(self, other: Descriptor) -> tuple[float, np.ndarray]:
        """Minimum shifted cosine distance over all sector offsets, with its yaw."""
        min_distance = sys.float_info.max
        min_offset = 0
        for offset in range(self.params.number_sectors):
            dist = self.shifted_distance(offset, other)
            if dist < min_distance:
                min_distance = dist
                min_offset = offset
        resolution = 2 * math.pi / self.params.number_sectors
        return min_distance, yaw_pose(min_offset * resolution)

    def ring_key_distance(self, other: "ScanContext") -> float:
        """Euclidean distance between the ring keys."""
        return float(np.linalg.norm(self._ring_key - other.descriptor_key))

    def shifted_distance(self, sector_offset: int, other: Descriptor) -> float:
        """Mean column-wise cosine distance with this descriptor shifted by ``sector_offset``."""
        shifted = np.roll(self._descriptor, -int(sector_offset), axis=1)
        theirs = np.asarray(other.descriptor, dtype=float)
        if theirs.shape != shifted.shape:
            raise ValueError(
                f"descriptor shapes differ: {shifted.shape} vs {theirs.shape}"
            )
        this_norm = np.linalg.norm(shifted, axis=0)
        other_norm = np.linalg.norm(theirs, axis=0)
        both = (this_norm > 0) & (other_norm > 0)
        neither = (this_norm == 0) & (other_norm == 0)
        terms = np.ones(shifted.shape[1])
        terms[neither] = 0.0
        dots = np.sum(shifted[:, both] * theirs[:, both], axis=0)
        terms[both] = 1 - dots / (this_norm[both] * other_norm[both])
        return float(terms.sum() / self.params.number_sectors)

    def make_descriptor(self, scan: Any) -> "ScanContext":
        """Build a Scan Context from an ``(N, >=3)`` point cloud."""
        points = _as_points(scan)
        params = self.params
        sc = ScanContext(params)
        ring_resolution = params.max_range / params.number_rings
        sector_resolution = 2 * math.pi / params.number_sectors

        x, y, z = points[:, 0], points[:, 1], points[:, 2]
        ranges = np.hypot(x, y)
        angles = np.fmod(np.arctan2(y, x) + 2 * math.pi, 2 * math.pi)
        inside = ranges < params.max_range
        rings = np.minimum(
            (ranges[inside] / ring_resolution).astype(np.int64), params.number_rings - 1
        )
        sectors = np.minimum(
            (angles[inside] / sector_resolution).astype(np.int64),
            params.number_sectors - 1,
        )
        heights = z[inside]

        desc = sc._descriptor
        for ring, sector, height in zip(rings.tolist(), sectors.tolist(), heights.tolist()):
            cell = desc[ring, sector]
            desc[ring, sector] = height if cell == 0.0 else max(cell, height)

        min_height = float(heights.min()) if heights.size else sys.float_info.max
        occupied = desc != 0.0
        desc[occupied] -= min_height

        sc._ring_key = np.count_nonzero(desc, axis=1) / params.number_sectors
        return sc