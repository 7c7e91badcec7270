"""
3D Bounding Box Fitting aligned to the sensor bearing.

The cluster is rotated about the up (Z) axis so that its centroid bearing
lines up with the local X axis, an axis-aligned box is taken in that
rotated frame, and the box center is rotated back. Only yaw is corrected;
pitch and roll of the object are not modelled.
"""

import numpy as np
from typing import Tuple

from pyquaternion import Quaternion

from .messages import BoundingBox3D, Pose


def bearing_angle(centroid: np.ndarray) -> float:
    """Rotation about Z that zeroes the centroid's lateral (Y) offset."""
    cx, cy, cz = centroid[:3]
    return -np.arctan2(cy, np.sqrt(cx ** 2 + cz ** 2))


def rotation_z(theta: float) -> np.ndarray:
    cos_t, sin_t = np.cos(theta), np.sin(theta)
    return np.array([
        [cos_t, -sin_t, 0.0],
        [sin_t,  cos_t, 0.0],
        [0.0,    0.0,   1.0],
    ])


def quaternion_to_yaw(orientation: Tuple[float, float, float, float]) -> float:
    """Yaw of an (x, y, z, w) quaternion."""
    x, y, z, w = orientation
    return float(np.arctan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y ** 2 + z ** 2)))


class BearingBoxFitter:
    """
    Bearing-aligned bounding box fitter.

    Pipeline:
        1. Centroid and bearing angle theta
        2. Rotate points by theta about Z
        3. Min / max extents in the rotated frame
        4. Rotate the box center back; orientation = inverse rotation
    """

    def fit(self, points: np.ndarray) -> BoundingBox3D:
        """
        Fit a box to a cluster.

        Non-finite results (e.g. NaN points) are passed through untouched;
        the marker builder is where degenerate boxes get filtered.

        Args:
            points: (N, 3) cluster points, N >= 1

        Returns:
            BoundingBox3D with center pose and size in the rotated frame
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            raise ValueError("Cannot fit a bounding box to an empty cluster")

        centroid = points.mean(axis=0)
        theta = bearing_angle(centroid)

        R = rotation_z(theta)
        rotated = points @ R.T

        min_pt = np.min(rotated, axis=0)
        max_pt = np.max(rotated, axis=0)

        center_rotated = (min_pt + max_pt) / 2
        center = R.T @ center_rotated
        size = max_pt - min_pt

        q = Quaternion(axis=[0.0, 0.0, 1.0], angle=-theta)
        orientation = (float(q.x), float(q.y), float(q.z), float(q.w))

        return BoundingBox3D(
            center=Pose(position=center, orientation=orientation),
            size=size,
        )

    def fit_axis_aligned(self, points: np.ndarray) -> BoundingBox3D:
        """Plain axis-aligned box in the points' own frame."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            raise ValueError("Cannot fit a bounding box to an empty cluster")

        min_pt = np.min(points, axis=0)
        max_pt = np.max(points, axis=0)
        return BoundingBox3D(
            center=Pose(position=(min_pt + max_pt) / 2),
            size=max_pt - min_pt,
        )
