"""
Pinhole camera model built from a CameraInfo message.

Projects 3D points in the camera optical frame into the rectified image
using the projection matrix P (same convention as image_geometry).
"""

import logging
import numpy as np
from typing import Tuple

from .messages import CameraInfo

logger = logging.getLogger(__name__)


class PinholeCameraModel:
    """
    Immutable pinhole model for one invocation.

    Attributes:
        tf_frame: Camera optical frame id
        width, height: Image size in pixels
        K: (3, 3) intrinsic matrix
        D: Distortion coefficients (carried, not applied)
        P: (3, 4) rectified projection matrix
    """

    def __init__(
        self,
        K: np.ndarray,
        P: np.ndarray,
        tf_frame: str,
        width: int = 0,
        height: int = 0,
        D: np.ndarray = None,
    ):
        self.K = np.asarray(K, dtype=np.float64).reshape(3, 3)
        self.P = np.asarray(P, dtype=np.float64).reshape(3, 4)
        self.D = np.zeros(5) if D is None else np.asarray(D, dtype=np.float64).ravel()
        self.tf_frame = tf_frame
        self.width = int(width)
        self.height = int(height)

        if not np.any(self.P):
            # Every point projects to NaN, so nothing passes the frustum test
            logger.warning("Camera %r is uncalibrated: projection matrix is zero", tf_frame)

    @classmethod
    def from_camera_info(cls, msg: CameraInfo) -> 'PinholeCameraModel':
        return cls(
            K=msg.K,
            P=msg.P,
            tf_frame=msg.header.frame_id,
            width=msg.width,
            height=msg.height,
            D=msg.D,
        )

    @property
    def fx(self) -> float:
        return float(self.P[0, 0])

    @property
    def fy(self) -> float:
        return float(self.P[1, 1])

    @property
    def cx(self) -> float:
        return float(self.P[0, 2])

    @property
    def cy(self) -> float:
        return float(self.P[1, 2])

    @property
    def tx(self) -> float:
        return float(self.P[0, 3])

    @property
    def ty(self) -> float:
        return float(self.P[1, 3])

    def project_points(self, points: np.ndarray) -> np.ndarray:
        """
        Project (N, 3) camera-frame points to (N, 2) pixel coordinates.

        Points with zero homogeneous scale project to NaN.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return np.zeros((0, 2))

        points_homo = np.hstack([points, np.ones((len(points), 1))])
        proj = points_homo @ self.P.T
        w = proj[:, 2]

        uv = np.full((len(points), 2), np.nan)
        valid = w != 0
        uv[valid] = proj[valid, :2] / w[valid, np.newaxis]
        return uv

    def project_3d_to_pixel(self, point) -> Tuple[float, float]:
        """Project a single (x, y, z) point; returns (u, v)."""
        u, v = self.project_points(np.asarray(point, dtype=np.float64).reshape(1, 3))[0]
        return float(u), float(v)
