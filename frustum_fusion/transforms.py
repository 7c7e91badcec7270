"""
Rigid transforms and a time-indexed transform buffer.

The buffer keeps a tree of parent -> child edges (tf2 style). Dynamic edges
hold a short time history and are interpolated on lookup; static edges are
valid at any time. Lookups never raise: they return a LookupResult that
either carries the transform or the reason it is unavailable.
"""

import bisect
import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pyquaternion import Quaternion

from .config import TRANSFORM_CONFIG
from .messages import Header

logger = logging.getLogger(__name__)

# Stamps closer than this are treated as equal
_TIME_EPS = 1e-9


class TransformUnavailable(LookupError):
    """Raised by LookupResult.unwrap() when a lookup failed."""


class RigidTransform:
    """
    Rotation + translation acting on row-vector points: p' = R p + t.

    Attributes:
        rotation: pyquaternion.Quaternion (unit)
        translation: (3,) translation vector
    """

    def __init__(
        self,
        rotation: Optional[Quaternion] = None,
        translation=None,
    ):
        self.rotation = rotation.normalised if rotation is not None else Quaternion()
        if translation is None:
            self.translation = np.zeros(3)
        else:
            self.translation = np.asarray(translation, dtype=np.float64).reshape(3)

    @classmethod
    def identity(cls) -> 'RigidTransform':
        return cls()

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'RigidTransform':
        """Build from a (4, 4) homogeneous matrix."""
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected (4, 4) matrix, got {matrix.shape}")
        rotation = Quaternion(matrix=matrix[:3, :3], atol=1e-6)
        return cls(rotation, matrix[:3, 3])

    @classmethod
    def from_xyzw(cls, translation, rotation_xyzw) -> 'RigidTransform':
        """Build from a translation and an (x, y, z, w) quaternion."""
        x, y, z, w = rotation_xyzw
        return cls(Quaternion(w, x, y, z), translation)

    @property
    def matrix(self) -> np.ndarray:
        T = np.eye(4)
        T[:3, :3] = self.rotation.rotation_matrix
        T[:3, 3] = self.translation
        return T

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform (N, 3) points; returns a new array."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return np.zeros((0, 3))
        R = self.rotation.rotation_matrix
        return points @ R.T + self.translation

    def inverse(self) -> 'RigidTransform':
        inv_rot = self.rotation.inverse
        return RigidTransform(inv_rot, -inv_rot.rotate(self.translation))

    def compose(self, other: 'RigidTransform') -> 'RigidTransform':
        """Return self * other, i.e. apply other first, then self."""
        rotation = self.rotation * other.rotation
        translation = self.rotation.rotate(other.translation) + self.translation
        return RigidTransform(rotation, translation)

    def interpolate(self, other: 'RigidTransform', ratio: float) -> 'RigidTransform':
        """Lerp translation and slerp rotation; ratio 0 -> self, 1 -> other."""
        translation = (1.0 - ratio) * self.translation + ratio * other.translation
        rotation = Quaternion.slerp(self.rotation, other.rotation, amount=ratio)
        return RigidTransform(rotation, translation)

    def __repr__(self) -> str:
        return (f"RigidTransform(rotation={self.rotation.elements.tolist()}, "
                f"translation={self.translation.tolist()})")


@dataclass
class TransformStamped:
    """Edge message: transform maps child_frame_id points into header.frame_id."""
    header: Header
    child_frame_id: str
    transform: RigidTransform


@dataclass
class LookupResult:
    """Outcome of a transform lookup."""
    transform: Optional[RigidTransform] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> RigidTransform:
        if self.error is not None:
            raise TransformUnavailable(self.error)
        return self.transform


class _EdgeHistory:
    """Time history for a single child -> parent edge."""

    def __init__(self, parent: str, static: bool):
        self.parent = parent
        self.static = static
        self.stamps: List[float] = []
        self.transforms: List[RigidTransform] = []

    def insert(self, stamp: float, transform: RigidTransform, cache_time: float):
        if self.static:
            self.stamps = [0.0]
            self.transforms = [transform]
            return

        idx = bisect.bisect_left(self.stamps, stamp)
        if idx < len(self.stamps) and abs(self.stamps[idx] - stamp) <= _TIME_EPS:
            self.transforms[idx] = transform
        else:
            self.stamps.insert(idx, stamp)
            self.transforms.insert(idx, transform)

        # Prune samples older than cache_time behind the newest
        oldest_allowed = self.stamps[-1] - cache_time
        keep_from = bisect.bisect_left(self.stamps, oldest_allowed - _TIME_EPS)
        if keep_from > 0:
            del self.stamps[:keep_from]
            del self.transforms[:keep_from]

    def get(self, stamp: float, child: str) -> Tuple[Optional[RigidTransform], Optional[str]]:
        if self.static:
            return self.transforms[0], None

        if not self.stamps:
            return None, f"No transform data for edge {self.parent} -> {child}"

        if stamp == 0.0:
            return self.transforms[-1], None

        oldest, newest = self.stamps[0], self.stamps[-1]
        if stamp < oldest - _TIME_EPS or stamp > newest + _TIME_EPS:
            return None, (
                f"Lookup would require extrapolation for {self.parent} -> {child}: "
                f"requested time {stamp:.6f}, data available in "
                f"[{oldest:.6f}, {newest:.6f}]"
            )

        idx = bisect.bisect_left(self.stamps, stamp)
        if idx < len(self.stamps) and abs(self.stamps[idx] - stamp) <= _TIME_EPS:
            return self.transforms[idx], None
        if idx > 0 and abs(self.stamps[idx - 1] - stamp) <= _TIME_EPS:
            return self.transforms[idx - 1], None

        t0, t1 = self.stamps[idx - 1], self.stamps[idx]
        ratio = (stamp - t0) / (t1 - t0)
        return self.transforms[idx - 1].interpolate(self.transforms[idx], ratio), None


class TransformBuffer:
    """
    Tree of timestamped transforms between named frames.

    Pipeline:
        1. set_transform() records parent -> child edges
        2. lookup_transform() walks source and target up to a common
           ancestor and chains the edges at the requested stamp
    """

    def __init__(self, cache_time: float = None):
        self.cache_time = cache_time if cache_time is not None else TRANSFORM_CONFIG['cache_time']
        self._edges: Dict[str, _EdgeHistory] = {}

    def set_transform(self, msg: TransformStamped, static: bool = False):
        """Insert an edge sample. Re-parenting a child replaces its history."""
        parent = msg.header.frame_id
        child = msg.child_frame_id
        if not parent or not child:
            raise ValueError("Transform needs both a parent and a child frame id")
        if parent == child:
            raise ValueError(f"Transform from {child} to itself is not allowed")

        edge = self._edges.get(child)
        if edge is None or edge.parent != parent or edge.static != static:
            edge = _EdgeHistory(parent, static)
            self._edges[child] = edge
        edge.insert(msg.header.stamp, msg.transform, self.cache_time)

    def set_transform_static(self, msg: TransformStamped):
        self.set_transform(msg, static=True)

    def has_frame(self, frame_id: str) -> bool:
        if frame_id in self._edges:
            return True
        return any(edge.parent == frame_id for edge in self._edges.values())

    def frames(self) -> List[str]:
        names = set(self._edges)
        names.update(edge.parent for edge in self._edges.values())
        return sorted(names)

    def _chain(self, frame_id: str) -> List[str]:
        """Frames from frame_id up to its root, inclusive."""
        chain = [frame_id]
        current = frame_id
        while current in self._edges:
            current = self._edges[current].parent
            if current in chain:
                break
            chain.append(current)
        return chain

    def _to_ancestor(
        self,
        chain: List[str],
        ancestor: str,
        stamp: float,
    ) -> Tuple[Optional[RigidTransform], Optional[str]]:
        result = RigidTransform.identity()
        for child in chain:
            if child == ancestor:
                break
            edge_tf, error = self._edges[child].get(stamp, child)
            if error is not None:
                return None, error
            result = edge_tf.compose(result)
        return result, None

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        stamp: float = 0.0,
    ) -> LookupResult:
        """
        Look up the transform taking points in source_frame to target_frame.

        Args:
            target_frame: Frame the result expresses points in
            source_frame: Frame the input points are expressed in
            stamp: Time in seconds; 0 means latest available

        Returns:
            LookupResult carrying the transform or the failure reason
        """
        if target_frame == source_frame:
            return LookupResult(RigidTransform.identity())

        for frame in (target_frame, source_frame):
            if not self.has_frame(frame):
                return LookupResult(error=f'"{frame}" passed to lookupTransform does not exist')

        source_chain = self._chain(source_frame)
        target_chain = self._chain(target_frame)
        target_set = set(target_chain)
        ancestor = next((f for f in source_chain if f in target_set), None)
        if ancestor is None:
            return LookupResult(error=(
                f'Could not find a connection between "{target_frame}" and '
                f'"{source_frame}" because they are not part of the same tree'
            ))

        source_tf, error = self._to_ancestor(source_chain, ancestor, stamp)
        if error is not None:
            return LookupResult(error=error)
        target_tf, error = self._to_ancestor(target_chain, ancestor, stamp)
        if error is not None:
            return LookupResult(error=error)

        return LookupResult(target_tf.inverse().compose(source_tf))
