"""Descriptor database searched through a k-d tree over descriptor keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np
from scipy.spatial import cKDTree

from .config import Config, GlobalConfig, ParamKind
from .descriptor import Descriptor
from .scan_context import ScanContext, ScanContextParams
from .solid import Solid, SolidParams


@dataclass
class DatabaseParams:
    """Search settings of a descriptor database."""

    descriptor_vector_dim: int = 128
    num_candidates: int = 5
    distance_threshold: float = 0.2
    kdtree_rebuild_threshold: int = 50

    def __post_init__(self) -> None:
        if self.descriptor_vector_dim <= 0:
            raise ValueError("descriptor_vector_dim must be positive")
        if self.kdtree_rebuild_threshold <= 0:
            raise ValueError("kdtree_rebuild_threshold must be positive")

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "DatabaseParams":
        """Read the ``database`` section; defaults to the global loop detector file."""
        if config is None:
            config = Config(GlobalConfig.get_global_config_path("config_loop_detector"))
        return cls(
            descriptor_vector_dim=config.param(
                "database", "descriptor_vector_dim", 128, ParamKind.INT
            ),
            num_candidates=config.param("database", "num_candidates", 5, ParamKind.INT),
            distance_threshold=config.param(
                "database", "distance_threshold", 0.13, ParamKind.DOUBLE
            ),
            kdtree_rebuild_threshold=config.param(
                "database", "rebuild_threshold", 50, ParamKind.INT
            ),
        )


class Match(NamedTuple):
    """A database entry matched by a query, with the estimated relative pose."""

    agent_id: str
    key: int
    rel_pose: np.ndarray


class DatabaseKdtree:
    """Stores descriptors per agent and finds loop candidates among them.

    The k-d tree is rebuilt only every ``kdtree_rebuild_threshold`` insertions,
    so entries added since the last rebuild are not yet searchable.
    """

    def __init__(self, params: Optional[DatabaseParams] = None) -> None:
        self.params = params if params is not None else DatabaseParams()
        self.agent_id: Optional[str] = None
        self._entries: list[tuple[str, int, Descriptor]] = []
        self._keys: list[np.ndarray] = []
        self._tree: Optional[cKDTree] = None
        self._indexed = 0
        self._rebuild()

    def __len__(self) -> int:
        return len(self._entries)

    def set_agent_id(self, agent_id: str) -> None:
        """Remember the agent currently filling the database."""
        self.agent_id = agent_id

    def _check_key(self, key: np.ndarray) -> np.ndarray:
        vector = np.asarray(key, dtype=float).ravel()
        if vector.size != self.params.descriptor_vector_dim:
            raise ValueError(
                f"descriptor key has {vector.size} values, "
                f"expected {self.params.descriptor_vector_dim}"
            )
        return vector

    def _rebuild(self) -> None:
        self._indexed = len(self._keys)
        self._tree = cKDTree(np.vstack(self._keys)) if self._keys else None

    def insert(self, agent_id: str, key: int, descriptor: Descriptor) -> None:
        """Add a descriptor for scan ``key`` of ``agent_id``."""
        vector = self._check_key(descriptor.descriptor_key)
        self._entries.append((agent_id, key, descriptor))
        self._keys.append(vector.copy())
        self.try_rebuild()

    def query(self, query: Descriptor) -> Optional[Match]:
        """The best match within the distance threshold, or None."""
        matches = self.query_k(query, 1)
        return matches[0] if matches else None

    def query_k(self, query: Descriptor, k: int) -> list[Match]:
        """Up to ``k`` matches within the distance threshold, nearest first."""
        number_nn = max(k, self.params.num_candidates)
        neighbors = sorted(
            self.find_descriptor_key_neighbors(query, number_nn), key=lambda n: n[1]
        )
        scored: list[tuple[int, float, np.ndarray]] = []
        for index, _ in neighbors[:number_nn]:
            distance, rel_pose = query.distance(self._entries[index][2])
            if distance < self.params.distance_threshold:
                scored.append((index, distance, rel_pose))
        scored.sort(key=lambda s: s[1])
        return [
            Match(self._entries[index][0], self._entries[index][1], rel_pose)
            for index, _, rel_pose in scored[: max(k, 0)]
        ]

    def try_rebuild(self) -> None:
        """Rebuild the k-d tree when the entry count reaches a multiple of the threshold."""
        if len(self._entries) % self.params.kdtree_rebuild_threshold != 0:
            return
        self._rebuild()

    def find_descriptor_key_neighbors(
        self, query: Descriptor, k: int
    ) -> list[tuple[int, float]]:
        """Indices and key distances of the ``k`` nearest indexed entries."""
        if self._tree is None or k <= 0:
            return []
        vector = self._check_key(query.descriptor_key)
        count = min(k, self._indexed)
        distances, indices = self._tree.query(vector, k=count)
        return [
            (int(i), float(d))
            for i, d in zip(np.atleast_1d(indices), np.atleast_1d(distances))
        ]

    def merge(self, other: "DatabaseKdtree") -> None:
        """Append all entries of ``other`` and rebuild the index over everything."""
        self._entries.extend(other._entries)
        self._keys.extend(key.copy() for key in other._keys)
        self._rebuild()

    def copy(self) -> "DatabaseKdtree":
        """An independent database with the same entries, fully indexed."""
        clone = DatabaseKdtree(self.params)
        clone.agent_id = self.agent_id
        clone._entries = list(self._entries)
        clone._keys = [key.copy() for key in self._keys]
        clone._rebuild()
        return clone


def create_descriptor_module(model: str, config: Optional[Config] = None) -> Descriptor:
    """An empty descriptor of the named model (``scan_context`` or ``solid``)."""
    if model == "scan_context":
        return ScanContext(ScanContextParams.from_config(config))
    if model == "solid":
        return Solid(SolidParams.from_config(config))
    raise ValueError(f"unknown descriptor model: {model!r}")