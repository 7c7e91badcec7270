"""
Message types exchanged between pipeline stages.

Plain dataclasses mirroring the sensor / vision / visualization messages
the fusion node consumes and produces. Numeric payloads are numpy arrays.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def _as_points(points) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 3))
    if arr.ndim == 1:
        return arr.reshape(-1, 3)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"Expected (N, >=3) points, got shape {arr.shape}")
    # Extra channels (intensity, ring, ...) are dropped
    return arr[:, :3]


@dataclass
class Header:
    frame_id: str = ''
    stamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'frame_id': self.frame_id, 'stamp': float(self.stamp)}


@dataclass
class CameraInfo:
    """Raw camera calibration message (K, D, R, P as in sensor_msgs)."""
    header: Header
    width: int
    height: int
    K: np.ndarray
    P: np.ndarray
    D: np.ndarray = field(default_factory=lambda: np.zeros(5))
    R: np.ndarray = field(default_factory=lambda: np.eye(3))
    distortion_model: str = 'plumb_bob'

    def __post_init__(self):
        self.K = np.asarray(self.K, dtype=np.float64).reshape(3, 3)
        self.P = np.asarray(self.P, dtype=np.float64).reshape(3, 4)
        self.D = np.asarray(self.D, dtype=np.float64).ravel()
        self.R = np.asarray(self.R, dtype=np.float64).reshape(3, 3)


@dataclass
class PointCloud:
    """XYZ point cloud: (N, 3) points expressed in header.frame_id."""
    header: Header
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))

    def __post_init__(self):
        self.points = _as_points(self.points)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def empty(self) -> bool:
        return len(self.points) == 0


@dataclass
class Pose:
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    # (x, y, z, w)
    orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': [float(v) for v in self.position],
            'orientation': [float(v) for v in self.orientation],
        }


@dataclass
class ObjectHypothesis:
    class_id: str
    score: float
    pose: Optional[Pose] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'class_id': self.class_id,
            'score': float(self.score),
            'pose': self.pose.to_dict() if self.pose is not None else None,
        }


@dataclass
class BoundingBox2D:
    """Pixel-space box given by center and full width / height."""
    center_x: float
    center_y: float
    size_x: float
    size_y: float

    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (u_min, u_max, v_min, v_max)."""
        half_w = self.size_x / 2
        half_h = self.size_y / 2
        return (
            self.center_x - half_w, self.center_x + half_w,
            self.center_y - half_h, self.center_y + half_h,
        )


@dataclass
class Detection2D:
    bbox: BoundingBox2D
    results: List[ObjectHypothesis] = field(default_factory=list)


@dataclass
class Detection2DArray:
    header: Header
    detections: List[Detection2D] = field(default_factory=list)


@dataclass
class BoundingBox3D:
    center: Pose
    size: np.ndarray

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.size)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'center': self.center.to_dict(),
            'size': [float(v) for v in self.size],
        }


@dataclass
class Detection3D:
    bbox: BoundingBox3D
    results: List[ObjectHypothesis] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bbox': self.bbox.to_dict(),
            'results': [r.to_dict() for r in self.results],
        }


@dataclass
class Detection3DArray:
    header: Header
    detections: List[Detection3D] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.detections)


# visualization_msgs/Marker constants used here
CUBE = 1
ADD = 0


@dataclass
class Marker:
    header: Header
    ns: str
    id: int
    pose: Pose
    scale: np.ndarray
    color: Tuple[float, float, float, float]
    lifetime: float
    type: int = CUBE
    action: int = ADD

    def to_dict(self) -> Dict[str, Any]:
        return {
            'header': self.header.to_dict(),
            'ns': self.ns,
            'id': self.id,
            'type': self.type,
            'action': self.action,
            'pose': self.pose.to_dict(),
            'scale': [float(v) for v in self.scale],
            'color': list(self.color),
            'lifetime': self.lifetime,
        }


@dataclass
class MarkerArray:
    markers: List[Marker] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.markers)
