"""
Euclidean cluster extraction and nearest-cluster selection.

Algorithm:
    1. Build KDTree from spatial coordinates
    2. Region grow (BFS) from every unvisited point using the cluster
       tolerance as neighbour radius
    3. Keep clusters whose size lies in [min_cluster_size, max_cluster_size]
    4. Select the cluster whose centroid is nearest to the sensor origin

A frustum usually also captures background clutter behind the object;
the object is taken to be the closest coherent mass of points.
"""

import logging
import numpy as np
from dataclasses import dataclass
from collections import deque
from typing import List

from scipy.spatial import cKDTree

from .config import CLUSTER_CONFIG

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    """Result of cluster selection."""
    points: np.ndarray           # Selected cluster points (M, 3)
    centroid: np.ndarray         # (3,) centroid, NaN when nothing selected
    status: str                  # 'success', 'no_cluster', 'empty'
    n_input: int                 # Number of input points
    n_clusters: int              # Clusters that satisfied the size bounds

    @property
    def found(self) -> bool:
        return self.status == 'success'


class EuclideanClusterExtractor:
    """
    Region-growing Euclidean clustering over a spatial KDTree.

    Clusters are returned as index arrays, largest first.
    """

    def __init__(
        self,
        cluster_tolerance: float = None,
        min_cluster_size: int = None,
        max_cluster_size: int = None,
    ):
        config = CLUSTER_CONFIG
        self.cluster_tolerance = (
            cluster_tolerance if cluster_tolerance is not None else config['cluster_tolerance']
        )
        self.min_cluster_size = (
            min_cluster_size if min_cluster_size is not None else config['min_cluster_size']
        )
        self.max_cluster_size = (
            max_cluster_size if max_cluster_size is not None else config['max_cluster_size']
        )

        if self.cluster_tolerance <= 0:
            raise ValueError(f"cluster_tolerance must be positive, got {self.cluster_tolerance}")
        if self.min_cluster_size < 1 or self.max_cluster_size < self.min_cluster_size:
            raise ValueError(
                f"Invalid cluster size bounds [{self.min_cluster_size}, {self.max_cluster_size}]"
            )

    def extract(self, points: np.ndarray) -> List[np.ndarray]:
        """
        Partition points into Euclidean clusters.

        Args:
            points: (N, 3) XYZ points

        Returns:
            List of index arrays, one per cluster within the size bounds
        """
        n = len(points)
        if n == 0:
            return []

        xyz = np.asarray(points, dtype=np.float64)[:, :3]
        finite = np.all(np.isfinite(xyz), axis=1)
        finite_indices = np.where(finite)[0]
        if len(finite_indices) == 0:
            return []

        tree = cKDTree(xyz[finite_indices])
        processed = np.zeros(len(finite_indices), dtype=bool)
        clusters = []

        for seed in range(len(finite_indices)):
            if processed[seed]:
                continue
            members = self._region_grow(tree, seed, processed)
            if self.min_cluster_size <= len(members) <= self.max_cluster_size:
                clusters.append(np.sort(finite_indices[members]))

        clusters.sort(key=len, reverse=True)
        return clusters

    def _region_grow(
        self,
        tree: cKDTree,
        seed_idx: int,
        processed: np.ndarray,
    ) -> np.ndarray:
        """
        BFS region growing from seed point.

        Marks every reached point as processed.

        Returns:
            Indices (into the tree data) of the grown cluster
        """
        queue = deque([seed_idx])
        processed[seed_idx] = True
        members = [seed_idx]

        while queue:
            current = queue.popleft()
            neighbor_indices = tree.query_ball_point(tree.data[current], r=self.cluster_tolerance)

            for nb in neighbor_indices:
                if processed[nb]:
                    continue
                processed[nb] = True
                members.append(nb)
                queue.append(nb)

        return np.asarray(members, dtype=int)


class ClusterSelector:
    """
    Pick the cluster closest to the sensor.

    Pipeline:
        1. Euclidean cluster extraction with size bounds
        2. Centroid per cluster
        3. Minimum centroid norm wins (first one on exact ties)
    """

    def __init__(
        self,
        cluster_tolerance: float = None,
        min_cluster_size: int = None,
        max_cluster_size: int = None,
        extractor: EuclideanClusterExtractor = None,
    ):
        self.extractor = extractor or EuclideanClusterExtractor(
            cluster_tolerance=cluster_tolerance,
            min_cluster_size=min_cluster_size,
            max_cluster_size=max_cluster_size,
        )

    def select(self, points: np.ndarray) -> ClusterResult:
        """
        Select the nearest cluster from a frustum subset.

        Args:
            points: (N, 3) points in the cloud frame

        Returns:
            ClusterResult with the selected points and metadata
        """
        n_input = len(points)
        if n_input == 0:
            return ClusterResult(
                points=np.zeros((0, 3)),
                centroid=np.full(3, np.nan),
                status='empty',
                n_input=0,
                n_clusters=0,
            )

        clusters = self.extractor.extract(points)

        best_points = None
        best_centroid = None
        min_distance = np.inf
        for indices in clusters:
            cluster_points = points[indices]
            centroid = cluster_points.mean(axis=0)
            distance = np.linalg.norm(centroid)
            if distance < min_distance:
                min_distance = distance
                best_points = cluster_points
                best_centroid = centroid

        if best_points is None:
            logger.debug("No cluster within size bounds among %d points", n_input)
            return ClusterResult(
                points=np.zeros((0, 3)),
                centroid=np.full(3, np.nan),
                status='no_cluster',
                n_input=n_input,
                n_clusters=0,
            )

        return ClusterResult(
            points=best_points,
            centroid=best_centroid,
            status='success',
            n_input=n_input,
            n_clusters=len(clusters),
        )
